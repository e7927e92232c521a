from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional
from collections.abc import Iterator, Mapping

import math
import numpy as np


# ---------------------------
# 2D vector value type
# ---------------------------
@dataclass(frozen=True, slots=True)
class Vector2:
    """Immutable 2D point / displacement."""

    x: float
    y: float

    def __add__(self, other: Vector2) -> Vector2:
        return Vector2(self.x + other.x, self.y + other.y)

    def __sub__(self, other: Vector2) -> Vector2:
        return Vector2(self.x - other.x, self.y - other.y)

    def __mul__(self, scalar: float) -> Vector2:
        return Vector2(self.x * scalar, self.y * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> Vector2:
        return Vector2(-self.x, -self.y)

    def __iter__(self) -> Iterator[float]:
        yield self.x
        yield self.y

    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def distance_to(self, other: Vector2) -> float:
        return math.hypot(other.x - self.x, other.y - self.y)

    def normalized(self) -> Vector2 | None:
        """Unit vector, or None when the length is zero or not finite."""
        l = self.length()
        if l == 0.0 or not math.isfinite(l):
            return None
        return Vector2(self.x / l, self.y / l)

    @staticmethod
    def coerce(value: Any) -> Vector2:
        if isinstance(value, Vector2):
            return value
        arr = np.asarray(value, dtype=np.float64)
        if arr.shape != (2,):
            raise ValueError(f"Expected a 2D point, got shape {arr.shape}.")
        return Vector2(float(arr[0]), float(arr[1]))


VectorField = Callable[[Vector2], Any]
UnitSampler = Callable[[Vector2], Optional[Vector2]]


# ---------------------------
# Bounding box
# ---------------------------
_BOX_REQUIRED = "Bounding box {left, top, width, height} is required"


def _as_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.integer, np.floating)):
        raise ValueError(_BOX_REQUIRED)
    out = float(value)
    if math.isnan(out):
        raise ValueError(_BOX_REQUIRED)
    return out


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned box; `top` is the minimum y."""

    left: float
    top: float
    width: float
    height: float

    def __post_init__(self) -> None:
        for name in ("left", "top", "width", "height"):
            object.__setattr__(self, name, _as_number(getattr(self, name)))
        if self.width <= 0.0 or self.height <= 0.0:
            raise ValueError("Bounding box cannot be empty")

    @property
    def size(self) -> float:
        return max(self.width, self.height)

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float) -> bool:
        return self.left <= x <= self.right and self.top <= y <= self.bottom

    @classmethod
    def from_size(cls, left: float, top: float, size: float) -> BoundingBox:
        return cls(left, top, size, size)

    @classmethod
    def coerce(cls, value: Any) -> BoundingBox:
        """Accept a BoundingBox or a mapping with width/height or the `size` shorthand."""
        if isinstance(value, BoundingBox):
            return value
        if not isinstance(value, Mapping):
            raise ValueError(_BOX_REQUIRED)
        if "left" not in value or "top" not in value:
            raise ValueError(_BOX_REQUIRED)
        if value.get("size") is not None:
            size = _as_number(value["size"])
            return cls(value["left"], value["top"], size, size)
        if "width" not in value or "height" not in value:
            raise ValueError(_BOX_REQUIRED)
        return cls(value["left"], value["top"], value["width"], value["height"])


# ---------------------------
# Field sampling & integration
# ---------------------------
def normalized_field(vector_field: VectorField) -> UnitSampler:
    """Wrap a caller field so it yields unit vectors, or None at a singularity.

    None, NaN components and zero-length vectors all count as singular.
    """

    def sample(p: Vector2) -> Vector2 | None:
        vec = vector_field(p)
        if vec is None:
            return None
        if not isinstance(vec, Vector2):
            vec = Vector2.coerce(vec)
        if math.isnan(vec.x) or math.isnan(vec.y):
            return None
        return vec.normalized()

    return sample


def rk4(pos: Vector2, h: float, f: UnitSampler) -> Vector2 | None:
    """One classic RK4 step; returns the displacement, not the new position."""
    k1 = f(pos)
    if k1 is None:
        return None
    k2 = f(pos + k1 * (0.5 * h))
    if k2 is None:
        return None
    k3 = f(pos + k2 * (0.5 * h))
    if k3 is None:
        return None
    k4 = f(pos + k3 * h)
    if k4 is None:
        return None
    return (k1 + k2 * 2.0 + k3 * 2.0 + k4) * (h / 6.0)
