from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from collections.abc import Sequence

import numpy as np

try:
    import plotly.graph_objects as go
    _PLOTLY = True
except Exception:  # pragma: no cover
    _PLOTLY = False

from .geometry import BoundingBox, VectorField, normalized_field, Vector2
from .streamlines import Streamline


@dataclass(slots=True)
class PlotlyStreamlineConfig:
    line_width: float = 1.0
    line_color: str = "black"
    show_seeds: bool = True
    show_field: bool = False
    field_nx: int = 24
    field_ny: int = 24
    field_scale: float = 0.6  # arrow length as a fraction of the sample spacing


def _polyline_xy(streamlines: Sequence[Streamline]) -> tuple[list[float | None], list[float | None]]:
    """Concatenate polylines into one trace, separated by None gaps."""
    xs: list[float | None] = []
    ys: list[float | None] = []
    for s in streamlines:
        if len(s) < 2:
            continue
        for p in s.points:
            xs.append(p.x)
            ys.append(p.y)
        xs.append(None)
        ys.append(None)
    return xs, ys


def _field_segments(field: VectorField, box: BoundingBox, nx: int, ny: int, scale: float):
    """Unit-direction glyphs on an nx x ny lattice, as Scatter line segments."""
    sample = normalized_field(field)
    step = min(box.width / nx, box.height / ny) * scale
    xs, ys = [], []
    for y in box.top + (np.arange(ny) + 0.5) * (box.height / ny):
        for x in box.left + (np.arange(nx) + 0.5) * (box.width / nx):
            v = sample(Vector2(float(x), float(y)))
            if v is None:
                continue
            xs.extend([x, x + step * v.x, None])
            ys.extend([y, y + step * v.y, None])
    return xs, ys


def plot_streamlines_interactive(
    streamlines: Sequence[Streamline],
    bounding_box: BoundingBox | dict[str, Any],
    *,
    vector_field: VectorField | None = None,
    config: PlotlyStreamlineConfig | None = None,
    save_html: str | None = None,
) -> Any:
    """Interactive streamline plot with Plotly (pan/zoom, hover). Returns the Figure."""
    if not _PLOTLY:
        raise RuntimeError("plotly is not installed. `pip install plotly`")

    cfg = config or PlotlyStreamlineConfig()
    box = BoundingBox.coerce(bounding_box)

    fig = go.Figure()
    if cfg.show_field and vector_field is not None:
        qx, qy = _field_segments(vector_field, box, cfg.field_nx, cfg.field_ny, cfg.field_scale)
        fig.add_trace(go.Scatter(x=qx, y=qy, mode="lines", line=dict(width=1, color="#ccc"), name="field"))

    lx, ly = _polyline_xy(streamlines)
    fig.add_trace(go.Scattergl(x=lx, y=ly, mode="lines",
                               line=dict(width=cfg.line_width, color=cfg.line_color),
                               name="streamlines"))

    if cfg.show_seeds and streamlines:
        seeds = np.array([tuple(s.seed_point) for s in streamlines])
        fig.add_trace(go.Scattergl(
            x=seeds[:, 0], y=seeds[:, 1], mode="markers",
            marker=dict(size=5, color="red"),
            text=[f"#{k}: {len(s)} points" for k, s in enumerate(streamlines)],
            hoverinfo="text",
            name="seeds",
        ))

    fig.update_layout(
        title=f"{sum(1 for s in streamlines if len(s) > 1)} streamlines",
        xaxis_title="x",
        yaxis_title="y",
        xaxis=dict(scaleanchor="y", scaleratio=1, range=[box.left, box.right]),
        yaxis=dict(range=[box.top, box.bottom]),
        template="plotly_white",
        legend=dict(x=0.01, y=0.99),
    )

    if save_html:
        fig.write_html(save_html, include_plotlyjs="cdn")
    return fig
