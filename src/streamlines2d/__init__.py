import logging

from .geometry import Vector2, BoundingBox, normalized_field, rk4
from .grid import SpatialCell, LookupGrid
from .config import StreamlineConfig
from .integrator import StreamlineIntegrator, IntegratorState, SeedCandidate
from .streamlines import (
    Streamlines,
    Streamline,
    SchedulerState,
    compute_streamlines,
)
from .fields import (
    GriddedField, VelocitySamplerField, NumbaConfig,
    uniform_field, rotation_field, point_vortex_field,
)
from .api import (
    trace_streamlines,
    save_npz, load_npz,
    seed_grid, seed_random,
)
from .plotting import (
    PlotConfig,
    AnimationConfig,
    plot_streamlines,
    plot_grid_occupancy,
    run_animation,
)
from .plotly_viz import plot_streamlines_interactive, PlotlyStreamlineConfig
from .logging_config import setup_logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "Vector2", "BoundingBox", "normalized_field", "rk4",
    "SpatialCell", "LookupGrid",
    "StreamlineConfig",
    "StreamlineIntegrator", "IntegratorState", "SeedCandidate",
    "Streamlines", "Streamline", "SchedulerState", "compute_streamlines",
    "GriddedField", "VelocitySamplerField", "NumbaConfig",
    "uniform_field", "rotation_field", "point_vortex_field",
    "trace_streamlines", "save_npz", "load_npz", "seed_grid", "seed_random",
    "PlotConfig", "AnimationConfig", "plot_streamlines", "plot_grid_occupancy", "run_animation",
    "plot_streamlines_interactive", "PlotlyStreamlineConfig",
    "setup_logging",
]
