from __future__ import annotations

import logging

from streamlines2d import (
    PlotConfig,
    Vector2,
    compute_streamlines,
    plot_streamlines,
    point_vortex_field,
    setup_logging,
)


def main() -> None:
    setup_logging(logging.INFO)

    left = point_vortex_field(center=(-0.1, 0.0), circulation=+1.0, sigma=0.02)
    right = point_vortex_field(center=(+0.1, 0.0), circulation=-1.0, sigma=0.02)

    def dipole(p: Vector2) -> Vector2 | None:
        a = left(p)
        b = right(p)
        if a is None or b is None:
            return None
        return a + b

    box = {"left": -0.6, "top": -0.45, "width": 1.2, "height": 0.9}
    engine = compute_streamlines(dipole, box, seed=(0.0, 0.0), d_sep=0.02, time_step=0.004)
    lines = engine.run()

    plot_streamlines(
        lines,
        box,
        grid=engine.get_grid(),
        config=PlotConfig(color_by="length", show_seeds=True),
    )

if __name__ == "__main__":
    main()
