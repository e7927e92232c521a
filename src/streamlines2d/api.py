from __future__ import annotations

from typing import Any, Mapping
from collections.abc import Sequence

import logging
import numpy as np

from .geometry import BoundingBox, Vector2, VectorField
from .streamlines import Streamline, compute_streamlines

logger = logging.getLogger(__name__)


def trace_streamlines(
    vector_field: VectorField,
    bounding_box: BoundingBox | Mapping[str, Any],
    **options: Any,
) -> list[Streamline]:
    """Compute all streamlines synchronously and return them in production order."""
    options.pop("asynchronous", None)
    engine = compute_streamlines(vector_field, bounding_box, **options)
    return engine.run()  # type: ignore[return-value]


# ----------------------
# Seeder utilities
# ----------------------

def seed_grid(bounding_box: BoundingBox | Mapping[str, Any], nx: int, ny: int) -> list[Vector2]:
    """Cell-centred nx x ny lattice of seeds covering the box, row by row."""
    if nx < 1 or ny < 1:
        raise ValueError("nx and ny must be >= 1.")
    box = BoundingBox.coerce(bounding_box)
    xs = box.left + (np.arange(nx) + 0.5) * (box.width / nx)
    ys = box.top + (np.arange(ny) + 0.5) * (box.height / ny)
    return [Vector2(float(x), float(y)) for y in ys for x in xs]


def seed_random(
    bounding_box: BoundingBox | Mapping[str, Any],
    n: int,
    rng: np.random.Generator | None = None,
) -> list[Vector2]:
    """n uniform random seeds inside the box."""
    if n < 1:
        raise ValueError("n must be >= 1.")
    rng = np.random.default_rng() if rng is None else rng
    box = BoundingBox.coerce(bounding_box)
    u = rng.random(size=(n, 2))
    x = box.left + u[:, 0] * box.width
    y = box.top + u[:, 1] * box.height
    return [Vector2(float(a), float(b)) for a, b in zip(x, y)]


# ----------------------
# Result I/O (.npz)
# ----------------------

_SCHEMA_VERSION = 1


def save_npz(streamlines: Sequence[Streamline], path: str, metadata: Mapping[str, Any] | None = None) -> None:
    """Save streamlines to .npz with schema versioning.

    Arrays stored:
      - points:  float64 [M,2], all streamlines concatenated
      - offsets: int64 [K+1], streamline k is points[offsets[k]:offsets[k+1]]
      - seeds:   float64 [K,2]
      - origins: float64 [K,2], NaN where a streamline has no parent point
    """
    arrays = [s.as_array() for s in streamlines]
    lengths = np.array([a.shape[0] for a in arrays], dtype=np.int64)
    offsets = np.concatenate([[0], np.cumsum(lengths)]).astype(np.int64)
    points = np.vstack(arrays) if arrays else np.zeros((0, 2), dtype=np.float64)
    seeds = np.array([tuple(s.seed_point) for s in streamlines], dtype=np.float64).reshape(-1, 2)
    origins = np.array(
        [tuple(s.origin_point) if s.origin_point is not None else (np.nan, np.nan) for s in streamlines],
        dtype=np.float64,
    ).reshape(-1, 2)

    data: dict[str, Any] = {
        "points": points,
        "offsets": offsets,
        "seeds": seeds,
        "origins": origins,
        "schema_version": int(_SCHEMA_VERSION),
    }
    if metadata:
        data["metadata"] = np.array(dict(metadata), dtype=object)

    np.savez(path, **data)
    logger.info("Saved %d streamlines (%d points) to %s", len(arrays), points.shape[0], path)


def load_npz(path: str) -> list[Streamline]:
    """Load streamlines written by `save_npz`. Requires a compatible schema_version."""
    with np.load(path, allow_pickle=True) as npz:
        schema = int(npz.get("schema_version", np.array(0)))
        if schema != _SCHEMA_VERSION:
            raise ValueError(f"Incompatible schema_version {schema}; expected {_SCHEMA_VERSION}.")
        points = np.asarray(npz["points"], dtype=np.float64)
        offsets = np.asarray(npz["offsets"], dtype=np.int64)
        seeds = np.asarray(npz["seeds"], dtype=np.float64)
        origins = np.asarray(npz["origins"], dtype=np.float64)

    if offsets.size != seeds.shape[0] + 1:
        raise ValueError("offsets and seeds are inconsistent.")
    out: list[Streamline] = []
    for k in range(seeds.shape[0]):
        chunk = points[offsets[k]:offsets[k + 1]]
        origin = origins[k]
        out.append(Streamline(
            points=[Vector2(float(x), float(y)) for x, y in chunk],
            seed_point=Vector2(float(seeds[k, 0]), float(seeds[k, 1])),
            origin_point=None if np.isnan(origin).any() else Vector2(float(origin[0]), float(origin[1])),
        ))
    logger.debug("Loaded %d streamlines from %s", len(out), path)
    return out
