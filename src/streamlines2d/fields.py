"""Adapters that turn common field sources into `f(Vector2) -> Vector2 | None`.

The engine only ever calls a field one point at a time, so each adapter
here is a small callable object. None signals a singularity (or a point
the source cannot answer for, e.g. outside a sampled grid).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import math
import numpy as np
from numpy.typing import NDArray

from .geometry import Vector2

# ---------------------------
# Optional Numba (JIT) support
# ---------------------------
try:
    from numba import njit  # type: ignore
    _NUMBA = True
except Exception:  # pragma: no cover
    _NUMBA = False


def _maybe_njit(func):
    # Decorate with njit if available; else hand back the plain function
    if _NUMBA:  # pragma: no cover
        return njit(cache=True, fastmath=False, nogil=True)(func)  # type: ignore[misc]
    return func


def _bilinear(
    U: np.ndarray, V: np.ndarray, x0: float, y0: float, dx: float, dy: float, x: float, y: float
) -> tuple[float, float]:
    ny, nx = U.shape
    gx = (x - x0) / dx
    gy = (y - y0) / dy
    if gx < 0.0 or gy < 0.0 or gx > nx - 1 or gy > ny - 1:
        return math.nan, math.nan
    ix = min(int(math.floor(gx)), nx - 2)
    iy = min(int(math.floor(gy)), ny - 2)
    tx = gx - ix
    ty = gy - iy
    w00 = (1.0 - tx) * (1.0 - ty)
    w10 = tx * (1.0 - ty)
    w01 = (1.0 - tx) * ty
    w11 = tx * ty
    u = w00 * U[iy, ix] + w10 * U[iy, ix + 1] + w01 * U[iy + 1, ix] + w11 * U[iy + 1, ix + 1]
    v = w00 * V[iy, ix] + w10 * V[iy, ix + 1] + w01 * V[iy + 1, ix] + w11 * V[iy + 1, ix + 1]
    return u, v


_bilinear_jit = _maybe_njit(_bilinear)


@dataclass(slots=True)
class NumbaConfig:
    """Toggle Numba JIT for gridded-field sampling.
    If enabled and numba is available, use the compiled bilinear kernel.
    """
    enabled: bool = False


# ---------------------------
# Analytic fields
# ---------------------------
def uniform_field(u: float, v: float):
    """Constant field (u, v) everywhere; singular everywhere when both are zero."""
    vec = Vector2(float(u), float(v))

    def field(_p: Vector2) -> Vector2:
        return vec

    return field


def rotation_field(center: tuple[float, float] = (0.0, 0.0), omega: float = 1.0):
    """Solid-body rotation u = omega * (-(y - cy), x - cx); singular at the center."""
    cx, cy = float(center[0]), float(center[1])

    def field(p: Vector2) -> Vector2:
        return Vector2(-omega * (p.y - cy), omega * (p.x - cx))

    return field


def point_vortex_field(center: tuple[float, float], circulation: float = 1.0, sigma: float = 0.0):
    """Velocity of a (Lamb–Oseen regularised when sigma > 0) point vortex."""
    cx, cy = float(center[0]), float(center[1])
    sigma2 = float(sigma) ** 2

    def field(p: Vector2) -> Vector2 | None:
        rx = p.x - cx
        ry = p.y - cy
        r2 = rx * rx + ry * ry
        if r2 == 0.0:
            return None
        f = 1.0 - math.exp(-r2 / (2.0 * sigma2)) if sigma2 > 0.0 else 1.0
        coef = circulation * f / (2.0 * math.pi * r2)
        # k x r = (-ry, rx)
        return Vector2(-ry * coef, rx * coef)

    return field


# ---------------------------
# Sampled fields
# ---------------------------
class GriddedField:
    """Bilinear interpolation of U, V sampled on a regular (ny, nx) grid.

    xs, ys: 1-D, strictly increasing, uniformly spaced axes (like the
    first row/column of a `np.meshgrid(..., indexing="xy")` pair).
    Points outside the grid or touching NaN samples are singular.
    """

    def __init__(
        self,
        xs: np.ndarray,
        ys: np.ndarray,
        U: np.ndarray,
        V: np.ndarray,
        *,
        numba_cfg: NumbaConfig | None = None,
    ) -> None:
        xs = np.asarray(xs, dtype=np.float64)
        ys = np.asarray(ys, dtype=np.float64)
        U = np.ascontiguousarray(U, dtype=np.float64)
        V = np.ascontiguousarray(V, dtype=np.float64)
        if xs.ndim != 1 or ys.ndim != 1 or xs.size < 2 or ys.size < 2:
            raise ValueError("xs and ys must be 1-D with at least 2 samples.")
        if U.shape != (ys.size, xs.size) or V.shape != U.shape:
            raise ValueError("U and V must have shape (len(ys), len(xs)).")
        dx = np.diff(xs)
        dy = np.diff(ys)
        if (dx <= 0).any() or (dy <= 0).any():
            raise ValueError("xs and ys must be strictly increasing.")
        if not (np.allclose(dx, dx[0]) and np.allclose(dy, dy[0])):
            raise ValueError("xs and ys must be uniformly spaced.")
        self._U = U
        self._V = V
        self._x0 = float(xs[0])
        self._y0 = float(ys[0])
        self._dx = float(dx[0])
        self._dy = float(dy[0])
        self._numba = numba_cfg or NumbaConfig()

    @classmethod
    def from_meshgrid(cls, X: np.ndarray, Y: np.ndarray, U: np.ndarray, V: np.ndarray, **kw: Any) -> GriddedField:
        return cls(np.asarray(X)[0, :], np.asarray(Y)[:, 0], U, V, **kw)

    @property
    def extent(self) -> tuple[float, float, float, float]:
        """(xmin, xmax, ymin, ymax) covered by the samples."""
        ny, nx = self._U.shape
        return (self._x0, self._x0 + self._dx * (nx - 1), self._y0, self._y0 + self._dy * (ny - 1))

    def __call__(self, p: Vector2) -> Vector2 | None:
        kernel = _bilinear_jit if (self._numba.enabled and _NUMBA) else _bilinear
        u, v = kernel(self._U, self._V, self._x0, self._y0, self._dx, self._dy, p.x, p.y)
        if math.isnan(u) or math.isnan(v):
            return None
        return Vector2(float(u), float(v))


class VelocitySystem(Protocol):
    def velocities(self, xq: NDArray[np.float64]) -> NDArray[np.float64]: ...


class VelocitySamplerField:
    """Wrap any object exposing `velocities(xq[N,2]) -> u[N,2]` (e.g. a vortex particle system)."""

    def __init__(self, system: VelocitySystem) -> None:
        if not callable(getattr(system, "velocities", None)):
            raise TypeError("system must provide a velocities(xq) method.")
        self._system = system

    def __call__(self, p: Vector2) -> Vector2 | None:
        u = np.asarray(self._system.velocities(np.array([[p.x, p.y]], dtype=np.float64)), dtype=np.float64)
        if u.shape != (1, 2) or not np.isfinite(u).all():
            return None
        return Vector2(float(u[0, 0]), float(u[0, 1]))
