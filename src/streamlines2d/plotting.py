from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal
from collections.abc import Iterator, Sequence

import logging
import numpy as np
import matplotlib.pyplot as plt
from matplotlib import animation
from matplotlib.collections import LineCollection
from matplotlib.figure import Figure

from .geometry import BoundingBox
from .grid import LookupGrid
from .streamlines import Streamline, Streamlines

logger = logging.getLogger(__name__)


# ------------------------------
# Plot helpers
# ------------------------------
@dataclass(slots=True)
class PlotConfig:
    figsize: tuple[float, float] = (7.0, 7.0)
    linewidth: float = 0.8
    color: str = "black"
    color_by: Literal["none", "length"] = "none"
    cmap: str = "viridis"
    show_seeds: bool = False
    show_origins: bool = False
    show_grid: bool = False

    def __post_init__(self) -> None:
        if self.linewidth <= 0.0:
            raise ValueError("linewidth must be positive.")
        if self.color_by not in {"none", "length"}:
            raise ValueError(f"Unknown color_by: {self.color_by}")


def _segments(streamlines: Sequence[Streamline]) -> list[np.ndarray]:
    return [s.as_array() for s in streamlines if len(s) > 1]


def _decorate(ax: Any, box: BoundingBox, title: str) -> None:
    ax.set_xlim(box.left, box.right)
    ax.set_ylim(box.top, box.bottom)
    ax.set_aspect("equal", adjustable="box")
    ax.set_title(title)
    ax.set_xlabel("x")
    ax.set_ylabel("y")


def grid_occupancy(grid: LookupGrid) -> np.ndarray:
    """(cells_count, cells_count) array of point counts, indexed [cy, cx]."""
    n = grid.cells_count
    counts = np.zeros((n, n), dtype=np.int64)
    for (cx, cy), cell in grid.occupied_cells():
        # points on the far edge of the box index one past the last cell
        counts[min(cy, n - 1), min(cx, n - 1)] += len(cell)
    return counts


def plot_grid_occupancy(grid: LookupGrid, *, ax: Any | None = None, cmap: str = "Greys", alpha: float = 0.35) -> Any:
    """Shade occupied lookup-grid cells under whatever is already on `ax`."""
    if ax is None:
        _, ax = plt.subplots(figsize=(7.0, 7.0))
    box = grid.bounding_box
    counts = grid_occupancy(grid)
    cell = box.size / grid.cells_count
    extent = (box.left, box.left + cell * counts.shape[1], box.top, box.top + cell * counts.shape[0])
    ax.imshow(
        np.where(counts > 0, counts, np.nan),
        origin="lower", extent=extent, cmap=cmap, alpha=alpha, interpolation="nearest",
    )
    return ax


def plot_streamlines(
    streamlines: Sequence[Streamline],
    bounding_box: BoundingBox | dict[str, Any],
    *,
    grid: LookupGrid | None = None,
    config: PlotConfig | None = None,
    ax: Any | None = None,
    show: bool = True,
) -> Figure:
    cfg = config or PlotConfig()
    box = BoundingBox.coerce(bounding_box)
    if ax is None:
        fig, ax = plt.subplots(figsize=cfg.figsize)
    else:
        fig = ax.figure

    if cfg.show_grid and grid is not None:
        plot_grid_occupancy(grid, ax=ax)

    segs = _segments(streamlines)
    if cfg.color_by == "length" and segs:
        lc = LineCollection(segs, linewidths=cfg.linewidth, cmap=cfg.cmap)
        lc.set_array(np.array([s.shape[0] for s in segs], dtype=np.float64))
        ax.add_collection(lc)
        fig.colorbar(lc, ax=ax, fraction=0.046, pad=0.04).set_label("points per streamline")
    else:
        ax.add_collection(LineCollection(segs, linewidths=cfg.linewidth, colors=cfg.color))

    if cfg.show_seeds and streamlines:
        seeds = np.array([tuple(s.seed_point) for s in streamlines])
        ax.scatter(seeds[:, 0], seeds[:, 1], s=8.0, c="tab:red", zorder=3)
    if cfg.show_origins:
        for s in streamlines:
            if s.origin_point is None:
                continue
            ax.annotate(
                "", xy=tuple(s.seed_point), xytext=tuple(s.origin_point),
                arrowprops=dict(arrowstyle="->", color="#aaa", lw=0.6),
            )

    _decorate(ax, box, f"{len(segs)} streamlines")
    if show:
        plt.show()
    return fig


# ------------------------------
# Incremental animation
# ------------------------------
@dataclass(slots=True)
class AnimationConfig:
    figsize: tuple[float, float] = (7.0, 7.0)
    linewidth: float = 0.8
    active_linewidth: float = 2.0
    color: str = "black"
    active_color: str = "tab:red"
    max_frames: int = 100_000


def run_animation(
    engine: Streamlines,
    *,
    config: AnimationConfig | None = None,
    save_path: str | None = None,
    fps: int = 30,
    show: bool = True,
) -> animation.FuncAnimation:
    """Advance `engine` one turn per frame and draw progress as it happens.

    Pair this with small `steps_per_iteration` (and optionally an
    `on_point_added` callback returning True) to watch individual
    streamlines grow.
    """
    cfg = config or AnimationConfig()
    box = engine.config.bounding_box

    fig, ax = plt.subplots(figsize=cfg.figsize)
    finished = LineCollection([], linewidths=cfg.linewidth, colors=cfg.color)
    ax.add_collection(finished)
    (active,) = ax.plot([], [], lw=cfg.active_linewidth, color=cfg.active_color)
    _decorate(ax, box, "0 streamlines")
    ttl = ax.title

    def _frames() -> Iterator[int]:
        k = 0
        while k < cfg.max_frames and not engine.done and not engine.disposed:
            yield k
            k += 1

    def _update(_i: int) -> list[Any]:
        engine.step()
        lines = engine.streamlines
        finished.set_segments(_segments(lines))
        if engine.done:
            active.set_data([], [])
        else:
            pts = np.array([tuple(p) for p in engine.active_integrator.get_streamline()])
            active.set_data(pts[:, 0], pts[:, 1])
        ttl.set_text(f"{len(lines)} streamlines, turn {engine.turns}")
        return [finished, active, ttl]

    anim = animation.FuncAnimation(
        fig, _update, frames=_frames, interval=1000 / fps, blit=False, cache_frame_data=False,
    )

    if save_path:
        if save_path.lower().endswith(".mp4"):
            Writer = animation.FFMpegWriter
            writer = Writer(fps=fps, metadata={"artist": "streamlines2d"}, bitrate=1800)
            anim.save(save_path, writer=writer, dpi=150)
        elif save_path.lower().endswith(".gif"):
            anim.save(save_path, writer="pillow", fps=fps, dpi=100)
        else:
            raise ValueError("Unsupported extension. Use .mp4 or .gif")
        logger.info("Animation saved to %s", save_path)
    if show:
        plt.show()
    return anim
