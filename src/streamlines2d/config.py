from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional
from collections.abc import Mapping, Sequence

import logging
import math
import numpy as np

from .geometry import BoundingBox, Vector2, VectorField

logger = logging.getLogger(__name__)

PointCallback = Callable[[Vector2, Vector2, "StreamlineConfig"], Any]
StreamlineCallback = Callable[[list[Vector2], "StreamlineConfig"], Any]
RandomSource = Callable[[], float]


@dataclass(frozen=True, slots=True)
class StreamlineConfig:
    """Resolved, immutable options for one streamline computation.

    Build it with `StreamlineConfig.create`, which applies the defaults:
      - seed: uniform random point in the box (drawn from `random`)
      - d_sep: 1 / max(width, height)
      - d_test: d_sep * 0.5
      - time_step: 0.01
      - steps_per_iteration: 10 state transitions per turn
      - max_time_per_iteration: 1000 ms wall clock per turn
    A sequence of seeds uses its head as the initial seed and keeps the rest
    in `seeds`, which override the geometric seed candidates in order.
    """
    vector_field: VectorField
    bounding_box: BoundingBox
    seed: Vector2
    seeds: tuple[Vector2, ...] = ()
    d_sep: float = 0.1
    d_test: float = 0.05
    time_step: float = 0.01
    forward_only: bool = False
    steps_per_iteration: int = 10
    max_time_per_iteration: float = 1000.0
    on_point_added: Optional[PointCallback] = None
    on_streamline_added: Optional[StreamlineCallback] = None
    random: Optional[RandomSource] = None
    asynchronous: bool = False

    def __post_init__(self) -> None:
        if not callable(self.vector_field):
            raise TypeError("vector_field must be callable.")
        for name in ("on_point_added", "on_streamline_added", "random"):
            cb = getattr(self, name)
            if cb is not None and not callable(cb):
                raise TypeError(f"{name} must be callable.")
        for name in ("d_sep", "d_test", "time_step", "max_time_per_iteration"):
            val = getattr(self, name)
            if not (math.isfinite(val) and val > 0.0):
                raise ValueError(f"{name} must be positive.")
        if self.steps_per_iteration < 1:
            raise ValueError("steps_per_iteration must be >= 1.")
        if not self.bounding_box.contains(self.seed.x, self.seed.y):
            raise ValueError(f"seed {tuple(self.seed)} lies outside the bounding box.")

    @classmethod
    def create(
        cls,
        vector_field: VectorField | None,
        bounding_box: BoundingBox | Mapping[str, Any] | None,
        *,
        seed: Vector2 | Sequence[Any] | None = None,
        d_sep: float | None = None,
        d_test: float | None = None,
        time_step: float | None = None,
        forward_only: bool = False,
        steps_per_iteration: int | None = None,
        max_time_per_iteration: float | None = None,
        on_point_added: PointCallback | None = None,
        on_streamline_added: StreamlineCallback | None = None,
        random: RandomSource | None = None,
        asynchronous: bool = False,
    ) -> StreamlineConfig:
        """Normalize user options; non-positive numeric options fall back to defaults."""
        if vector_field is None:
            raise ValueError("vector_field is required to compute streamlines.")
        if bounding_box is None:
            raise ValueError("Bounding box {left, top, width, height} is required")
        box = BoundingBox.coerce(bounding_box)

        initial, queue = _split_seed(seed)
        if initial is None:
            draw = random if random is not None else np.random.default_rng().random
            initial = Vector2(
                float(draw()) * box.width + box.left,
                float(draw()) * box.height + box.top,
            )
            logger.debug("No seed given; using random seed (%.4f, %.4f)", initial.x, initial.y)

        sep = d_sep if d_sep is not None and d_sep > 0 else 1.0 / box.size
        test = d_test if d_test is not None and d_test > 0 else sep * 0.5
        return cls(
            vector_field=vector_field,
            bounding_box=box,
            seed=initial,
            seeds=queue,
            d_sep=float(sep),
            d_test=float(test),
            time_step=float(time_step) if time_step is not None and time_step > 0 else 0.01,
            forward_only=bool(forward_only),
            steps_per_iteration=int(steps_per_iteration) if steps_per_iteration and steps_per_iteration > 0 else 10,
            max_time_per_iteration=(
                float(max_time_per_iteration)
                if max_time_per_iteration is not None and max_time_per_iteration > 0
                else 1000.0
            ),
            on_point_added=on_point_added,
            on_streamline_added=on_streamline_added,
            random=random,
            asynchronous=bool(asynchronous),
        )


def _split_seed(seed: Any) -> tuple[Vector2 | None, tuple[Vector2, ...]]:
    """A single point is the initial seed; a sequence of points is head + queue."""
    if seed is None:
        return None, ()
    if isinstance(seed, Vector2):
        return seed, ()
    if len(seed) == 2 and all(isinstance(c, (int, float, np.integer, np.floating)) for c in seed):
        return Vector2.coerce(seed), ()
    points = [Vector2.coerce(s) for s in seed]
    if not points:
        return None, ()
    return points[0], tuple(points[1:])
