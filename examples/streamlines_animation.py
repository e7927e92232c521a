from __future__ import annotations

import math

from streamlines2d import AnimationConfig, Vector2, compute_streamlines, run_animation


def main() -> None:
    def cellular(p: Vector2) -> Vector2:
        return Vector2(math.sin(p.x) * math.cos(p.y), -math.cos(p.x) * math.sin(p.y))

    # Pause after every point so each frame shows the active streamline growing.
    engine = compute_streamlines(
        cellular,
        {"left": 0.0, "top": 0.0, "size": 2.0 * math.pi},
        seed=(1.0, 2.0),
        d_sep=0.15,
        time_step=0.02,
        steps_per_iteration=1,
        on_point_added=lambda new, prev, cfg: True,
    )

    cfg = AnimationConfig(active_color="tab:orange", max_frames=20_000)
    run_animation(engine, config=cfg, save_path=None, fps=60)

if __name__ == "__main__":
    main()
