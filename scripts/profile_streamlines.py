from __future__ import annotations

import argparse
import math
import time
import tracemalloc

import numpy as np

from streamlines2d import GriddedField, NumbaConfig, compute_streamlines


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--d-sep", type=float, default=0.05)
    ap.add_argument("--time-step", type=float, default=0.01)
    ap.add_argument("--samples", type=int, default=256, help="gridded field resolution per axis")
    ap.add_argument("--numba", action="store_true")
    ap.add_argument("--steps-per-iteration", type=int, default=10)
    args = ap.parse_args()

    xs = np.linspace(0.0, 2.0 * math.pi, args.samples)
    X, Y = np.meshgrid(xs, xs, indexing="xy")
    field = GriddedField.from_meshgrid(
        X, Y, np.sin(X) * np.cos(Y), -np.cos(X) * np.sin(Y),
        numba_cfg=NumbaConfig(enabled=bool(args.numba)),
    )
    engine = compute_streamlines(
        field,
        {"left": 0.0, "top": 0.0, "size": 2.0 * math.pi},
        seed=(1.0, 2.0),
        d_sep=args.d_sep,
        time_step=args.time_step,
        steps_per_iteration=args.steps_per_iteration,
    )

    tracemalloc.start()
    t0 = time.perf_counter()
    lines = engine.run()
    elapsed = time.perf_counter() - t0
    current, peak = tracemalloc.get_traced_memory()
    tracemalloc.stop()
    print(
        f"streamlines(d_sep={args.d_sep}, h={args.time_step}, numba={args.numba}) "
        f"lines={len(lines)} points={len(engine.get_grid())} turns={engine.turns} "
        f"time={elapsed:.2f}s peak={peak/1e6:.1f} MB"
    )

if __name__ == "__main__":
    main()
