from __future__ import annotations

from typing import Callable
from collections.abc import Iterator

import math

from .geometry import BoundingBox, Vector2

# predicate(distance, stored_point) -> True when the stored point "takes" the query
DistancePredicate = Callable[[float, Vector2], bool]


class SpatialCell:
    """Append-only bucket of occupied points."""

    __slots__ = ("_points",)

    def __init__(self) -> None:
        self._points: list[Vector2] = []

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[Vector2]:
        return iter(self._points)

    def occupy(self, point: Vector2) -> None:
        self._points.append(point)

    def is_taken(self, x: float, y: float, predicate: DistancePredicate) -> bool:
        for p in self._points:
            if predicate(math.hypot(p.x - x, p.y - y), p):
                return True
        return False

    def get_min_distance(self, x: float, y: float) -> float:
        d_min = math.inf
        for p in self._points:
            d = math.hypot(p.x - x, p.y - y)
            if d < d_min:
                d_min = d
        return d_min


class LookupGrid:
    """Uniform spatial hash over a bounding box.

    The grid is square with side `bounding_box.size` and
    ceil(size / spacing) cells per side, so a cell is at most `spacing` wide.
    `is_taken` / `find_nearest` only scan the query's cell and its 8
    neighbours: every point within one cell width of the query is seen,
    farther ones may not be.
    """

    def __init__(self, bounding_box: BoundingBox, spacing: float) -> None:
        if not (math.isfinite(spacing) and spacing > 0.0):
            raise ValueError("spacing must be positive.")
        self._box = bounding_box
        self._spacing = float(spacing)
        self._size = bounding_box.size
        self._cells_count = math.ceil(self._size / self._spacing)
        self._cells: dict[tuple[int, int], SpatialCell] = {}
        self._n_points = 0

    # -------- properties --------
    @property
    def bounding_box(self) -> BoundingBox: return self._box

    @property
    def spacing(self) -> float: return self._spacing

    @property
    def cells_count(self) -> int: return self._cells_count

    def __len__(self) -> int:
        return self._n_points

    # -------- indexing --------
    def grid_x(self, x: float) -> int:
        return math.floor(self._cells_count * (x - self._box.left) / self._size)

    def grid_y(self, y: float) -> int:
        return math.floor(self._cells_count * (y - self._box.top) / self._size)

    def is_outside(self, x: float, y: float) -> bool:
        return not self._box.contains(x, y)

    def occupied_cells(self) -> Iterator[tuple[tuple[int, int], SpatialCell]]:
        return iter(self._cells.items())

    # -------- mutation --------
    def occupy_coordinates(self, point: Vector2) -> None:
        self._cell_for(point.x, point.y).occupy(point)
        self._n_points += 1

    def _cell_for(self, x: float, y: float) -> SpatialCell:
        box = self._box
        if not (box.left <= x <= box.left + self._size):
            raise ValueError(f"x={x} is out of bounds.")
        if not (box.top <= y <= box.top + self._size):
            raise ValueError(f"y={y} is out of bounds.")
        key = (self.grid_x(x), self.grid_y(y))
        cell = self._cells.get(key)
        if cell is None:
            cell = SpatialCell()
            self._cells[key] = cell
        return cell

    # -------- queries --------
    def _neighbours(self, x: float, y: float) -> Iterator[SpatialCell]:
        cx = self.grid_x(x)
        cy = self.grid_y(y)
        cells = self._cells
        for col in (cx - 1, cx, cx + 1):
            for row in (cy - 1, cy, cy + 1):
                cell = cells.get((col, row))
                if cell is not None:
                    yield cell

    def is_taken(self, x: float, y: float, predicate: DistancePredicate) -> bool:
        if not self._cells:
            return False
        return any(cell.is_taken(x, y, predicate) for cell in self._neighbours(x, y))

    def find_nearest(self, x: float, y: float) -> float:
        """Distance to the nearest point within the 3x3 neighbourhood, else +inf."""
        return min((cell.get_min_distance(x, y) for cell in self._neighbours(x, y)), default=math.inf)
