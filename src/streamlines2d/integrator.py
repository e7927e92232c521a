from __future__ import annotations

from collections import deque
from enum import Enum
from typing import NamedTuple

import logging

from .config import StreamlineConfig
from .geometry import Vector2, normalized_field, rk4
from .grid import LookupGrid

logger = logging.getLogger(__name__)

# Distances closer than this to a threshold count as "at" the threshold (not taken).
SAME_DISTANCE_EPS = 1e-4

# The private grid rejects candidates closer than this fraction of a step.
SELF_SPACING_FACTOR = 0.9


def is_same(a: float, b: float) -> bool:
    return abs(a - b) < SAME_DISTANCE_EPS


class IntegratorState(Enum):
    FORWARD = 1
    BACKWARD = 2
    DONE = 3


class SeedCandidate(NamedTuple):
    point: Vector2
    origin: Vector2 | None  # parent streamline point it was offset from


class StreamlineIntegrator:
    """Grows one streamline in both directions from a seed point.

    Each accepted point goes to a private grid immediately (self-intersection
    test) and to the shared grid only once the streamline is DONE.
    """

    def __init__(
        self,
        start: Vector2,
        grid: LookupGrid,
        config: StreamlineConfig,
        *,
        seed_queue: deque[Vector2] | None = None,
        origin: Vector2 | None = None,
    ) -> None:
        self._start = start
        self._origin = origin
        self._grid = grid
        self._config = config
        self._field = normalized_field(config.vector_field)
        self._seed_queue: deque[Vector2] = seed_queue if seed_queue is not None else deque()

        self._forward: list[Vector2] = []
        self._backward: list[Vector2] = []  # nearest-to-seed first
        self._points: list[Vector2] | None = None
        self._pos = start
        self._state = IntegratorState.FORWARD
        self._last_checked_seed = -1
        self._own_grid = LookupGrid(config.bounding_box, config.time_step * SELF_SPACING_FACTOR)

    # -------- properties --------
    @property
    def state(self) -> IntegratorState: return self._state

    @property
    def seed_point(self) -> Vector2: return self._start

    @property
    def origin_point(self) -> Vector2 | None: return self._origin

    @property
    def position(self) -> Vector2: return self._pos

    @property
    def last_checked_seed(self) -> int: return self._last_checked_seed

    def __len__(self) -> int:
        return len(self._forward) + len(self._backward) + 1

    def get_streamline(self) -> list[Vector2]:
        """Points ordered from the backward end to the forward end."""
        if self._points is not None:
            return self._points
        return self._backward[::-1] + [self._start] + self._forward

    # -------- growth --------
    def next(self) -> bool:
        """Grow until DONE (returns True) or until `on_point_added` asks to pause (False)."""
        if self._state is IntegratorState.DONE:
            return True
        while True:
            if self._state is IntegratorState.FORWARD:
                point = self._grow(1.0)
                if point is not None:
                    previous = self._forward[-1] if self._forward else self._start
                    self._forward.append(point)
                    if self._accept(point, previous):
                        return False
                    continue
                if self._config.forward_only:
                    self._state = IntegratorState.DONE
                else:
                    self._pos = self._start
                    self._state = IntegratorState.BACKWARD

            if self._state is IntegratorState.BACKWARD:
                point = self._grow(-1.0)
                if point is not None:
                    previous = self._backward[-1] if self._backward else self._start
                    self._backward.append(point)
                    if self._accept(point, previous):
                        return False
                    continue
                self._state = IntegratorState.DONE

            self._commit()
            return True

    def _accept(self, point: Vector2, previous: Vector2) -> bool:
        self._own_grid.occupy_coordinates(point)
        self._pos = point
        cb = self._config.on_point_added
        if cb is None:
            return False
        return bool(cb(point, previous, self._config))

    def _commit(self) -> None:
        self._points = self._backward[::-1] + [self._start] + self._forward
        for p in self._points:
            self._grid.occupy_coordinates(p)
        logger.debug(
            "Streamline from (%.4f, %.4f) done with %d points",
            self._start.x, self._start.y, len(self._points),
        )

    def _grow(self, direction: float) -> Vector2 | None:
        displacement = rk4(self._pos, self._config.time_step, self._field)
        if displacement is None:
            return None  # singularity
        candidate = self._pos + displacement * direction
        x, y = candidate.x, candidate.y
        if self._grid.is_outside(x, y):
            return None
        if self._grid.is_taken(x, y, self._check_d_test):
            return None
        if self._own_grid.is_taken(x, y, self._check_self_spacing):
            return None
        return candidate

    # -------- distance predicates --------
    def _check_d_test(self, distance: float, _point: Vector2) -> bool:
        d_test = self._config.d_test
        if is_same(distance, d_test):
            return False
        return distance < d_test

    def _check_d_sep(self, distance: float, _point: Vector2) -> bool:
        d_sep = self._config.d_sep
        if is_same(distance, d_sep):
            return False
        return distance < d_sep

    def _check_self_spacing(self, distance: float, _point: Vector2) -> bool:
        limit = self._config.time_step * SELF_SPACING_FACTOR
        if is_same(distance, limit):
            return False
        return distance < limit

    # -------- seeding --------
    def _is_free(self, x: float, y: float) -> bool:
        return not self._grid.is_outside(x, y) and not self._grid.is_taken(x, y, self._check_d_sep)

    def get_next_valid_seed(self) -> SeedCandidate | None:
        """Next free seed at distance d_sep on either side of this streamline.

        Points are scanned once, in order. When the first side of a point
        yields a seed the cursor stays on that point, so the next call tries
        the opposite side (by then the first side is covered by the new
        streamline). A pending explicit seed replaces the first-side
        candidate. Returns None once every point has been scanned.
        """
        points = self.get_streamline()
        d_sep = self._config.d_sep
        while self._last_checked_seed < len(points) - 1:
            self._last_checked_seed += 1
            p = points[self._last_checked_seed]
            v = self._field(p)
            if v is None:
                continue

            # normal to (x, y) is (-y, x)
            cx = p.x - v.y * d_sep
            cy = p.y + v.x * d_sep
            origin: Vector2 | None = p
            if self._seed_queue:
                queued = self._seed_queue.popleft()
                cx, cy = queued.x, queued.y
                origin = None

            if self._is_free(cx, cy):
                self._last_checked_seed -= 1
                return SeedCandidate(Vector2(cx, cy), origin)

            ox = p.x + v.y * d_sep
            oy = p.y - v.x * d_sep
            if self._is_free(ox, oy):
                return SeedCandidate(Vector2(ox, oy), p)
        return None
