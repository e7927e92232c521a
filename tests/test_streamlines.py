from __future__ import annotations

import asyncio
import math

import numpy as np
import pytest

from streamlines2d import (
    SchedulerState,
    StreamlineConfig,
    Streamlines,
    Vector2,
    compute_streamlines,
)
from streamlines2d.fields import point_vortex_field, uniform_field

BOX = {"left": 0.0, "top": 0.0, "width": 10.0, "height": 10.0}


def wavy(p: Vector2) -> Vector2:
    return Vector2(1.0, 0.6 * math.sin(p.x * 1.3) + 0.2 * math.cos(p.y))


def cross_min_distance(lines) -> float:
    """Smallest distance between points of different streamlines (brute force)."""
    arrays = [s.as_array() for s in lines]
    best = math.inf
    for i in range(len(arrays)):
        for j in range(i + 1, len(arrays)):
            a, b = arrays[i], arrays[j]
            d = np.sqrt(((a[:, None, :] - b[None, :, :]) ** 2).sum(axis=2))
            best = min(best, float(d.min()))
    return best


# ----------------------
# Configuration
# ----------------------

def test_defaults() -> None:
    cfg = StreamlineConfig.create(wavy, {"left": 0, "top": 0, "width": 4, "height": 2}, seed=(1.0, 1.0))
    assert cfg.d_sep == pytest.approx(0.25)
    assert cfg.d_test == pytest.approx(0.125)
    assert cfg.time_step == pytest.approx(0.01)
    assert cfg.steps_per_iteration == 10
    assert cfg.max_time_per_iteration == pytest.approx(1000.0)
    assert cfg.seeds == ()
    assert not cfg.asynchronous


def test_non_positive_options_fall_back_to_defaults() -> None:
    cfg = StreamlineConfig.create(wavy, BOX, seed=(1.0, 1.0), d_sep=-1, d_test=0, time_step=0, steps_per_iteration=0)
    assert cfg.d_sep == pytest.approx(0.1)
    assert cfg.d_test == pytest.approx(0.05)
    assert cfg.time_step == pytest.approx(0.01)
    assert cfg.steps_per_iteration == 10


def test_size_shorthand() -> None:
    cfg = StreamlineConfig.create(wavy, {"left": -1, "top": -1, "size": 2}, seed=(0.0, 0.0))
    assert (cfg.bounding_box.width, cfg.bounding_box.height) == (2.0, 2.0)


@pytest.mark.parametrize(
    "box",
    [None, {"left": 0, "top": 0, "width": 0, "height": 1}, {"left": 0, "top": 0, "width": 1, "height": -2}, {"top": 0, "size": 1}],
)
def test_invalid_box_fails_construction(box) -> None:
    with pytest.raises(ValueError):
        compute_streamlines(wavy, box)


def test_missing_or_invalid_field() -> None:
    with pytest.raises(ValueError):
        compute_streamlines(None, BOX)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        compute_streamlines(42, BOX)  # type: ignore[arg-type]
    with pytest.raises(TypeError):
        compute_streamlines(wavy, BOX, on_point_added="nope")


def test_seed_outside_box_fails() -> None:
    with pytest.raises(ValueError):
        compute_streamlines(wavy, BOX, seed=(11.0, 5.0))


def test_random_seed_uses_random_source() -> None:
    values = iter([0.25, 0.75])
    cfg = StreamlineConfig.create(wavy, BOX, random=lambda: next(values))
    assert cfg.seed == Vector2(2.5, 7.5)


def test_seed_sequence_becomes_queue() -> None:
    cfg = StreamlineConfig.create(wavy, BOX, seed=[(1, 1), Vector2(2, 2), np.array([3.0, 3.0])])
    assert cfg.seed == Vector2(1.0, 1.0)
    assert cfg.seeds == (Vector2(2.0, 2.0), Vector2(3.0, 3.0))


# ----------------------
# Scenarios
# ----------------------

def test_zero_field_finishes_without_streamlines() -> None:
    engine = compute_streamlines(uniform_field(0.0, 0.0), BOX, seed=(5.0, 5.0), d_sep=1.0, time_step=0.1)
    assert engine.run() == []
    assert engine.state is SchedulerState.DONE
    assert len(engine.get_grid()) == 1


def test_forward_only_single_line() -> None:
    added = []
    engine = compute_streamlines(
        uniform_field(1.0, 0.0), BOX, seed=(5.0, 5.0), d_sep=1.0, d_test=0.5, time_step=0.1,
        forward_only=True, on_streamline_added=lambda pts, cfg: added.append(len(pts)),
    )
    lines = engine.run()
    first = lines[0]
    assert first.seed_point == Vector2(5.0, 5.0)
    assert first.origin_point is None
    assert 49 <= len(first) <= 52
    assert added[0] == len(first)
    assert len(added) == len(lines)


def test_dense_uniform_field_packs_parallel_lines() -> None:
    box = {"left": 0.0, "top": 0.0, "width": 1.0, "height": 1.0}
    d_sep, h = 0.05, 0.01
    lines = compute_streamlines(uniform_field(1.0, 0.0), box, seed=(0.5, 0.5), d_sep=d_sep, time_step=h).run()
    total = sum(len(s) for s in lines)
    expected = 1.0 / (d_sep * h)
    assert 0.6 * expected < total < 1.4 * expected
    ys = sorted(float(s.as_array()[:, 1].mean()) for s in lines)
    gaps = np.diff(ys)
    assert np.allclose(gaps, d_sep, atol=1e-6)


def test_seed_queue_drives_first_streamlines() -> None:
    seeds = [Vector2(2.0, 2.0), Vector2(5.0, 5.0), Vector2(8.0, 8.0)]
    lines = compute_streamlines(uniform_field(1.0, 0.0), BOX, seed=list(seeds), d_sep=1.0, time_step=0.1).run()
    assert [s.seed_point for s in lines[:3]] == seeds
    assert all(s.origin_point is None for s in lines[:3])
    assert all(s.origin_point is not None for s in lines[3:])


# ----------------------
# Properties
# ----------------------

def test_determinism() -> None:
    def run():
        lines = compute_streamlines(wavy, BOX, seed=(3.0, 4.0), d_sep=0.5, time_step=0.05).run()
        return [s.as_array() for s in lines]

    a, b = run(), run()
    assert len(a) == len(b)
    for x, y in zip(a, b):
        np.testing.assert_allclose(x, y, atol=1e-12)


def test_random_source_makes_runs_reproducible() -> None:
    def run():
        rng = np.random.default_rng(11)
        return compute_streamlines(wavy, BOX, d_sep=0.8, time_step=0.1, random=rng.random).run()

    a, b = run(), run()
    assert [s.seed_point for s in a] == [s.seed_point for s in b]


@pytest.mark.parametrize("field", [wavy, point_vortex_field((5.0, 5.0), 1.0, sigma=0.5)])
def test_separation_and_containment(field) -> None:
    engine = compute_streamlines(field, BOX, seed=(2.0, 3.0), d_sep=0.6, time_step=0.05)
    lines = engine.run()
    assert len(lines) > 5
    assert cross_min_distance(lines) >= engine.config.d_test - 1e-4
    for s in lines:
        arr = s.as_array()
        assert (arr[:, 0] >= 0.0).all() and (arr[:, 0] <= 10.0).all()
        assert (arr[:, 1] >= 0.0).all() and (arr[:, 1] <= 10.0).all()
    # 1-point streamlines are committed but not reported
    assert len(engine.get_grid()) >= sum(len(s) for s in lines)


def test_consecutive_points_are_about_one_step_apart() -> None:
    h = 0.05
    for s in compute_streamlines(wavy, BOX, seed=(2.0, 3.0), d_sep=0.6, time_step=h).run():
        arr = s.as_array()
        steps = np.sqrt((np.diff(arr, axis=0) ** 2).sum(axis=1))
        assert (steps <= h * (1.0 + 1e-9)).all()
        assert (steps > 0.9 * h - 1e-4).all()


def test_seeds_sit_d_sep_from_their_origin() -> None:
    lines = compute_streamlines(wavy, BOX, seed=(5.0, 5.0), d_sep=0.5, time_step=0.05).run()
    for s in lines[1:]:
        assert s.origin_point is not None
        assert s.seed_point.distance_to(s.origin_point) == pytest.approx(0.5)


# ----------------------
# Scheduling
# ----------------------

def test_turns_are_bounded_by_step_count() -> None:
    kw = dict(seed=(3.0, 4.0), d_sep=0.8, time_step=0.1)
    big = compute_streamlines(wavy, BOX, steps_per_iteration=1000, **kw)
    small = compute_streamlines(wavy, BOX, steps_per_iteration=1, **kw)
    big.run()
    small.run()
    assert small.turns > big.turns
    assert [len(s) for s in small.streamlines] == [len(s) for s in big.streamlines]


def test_turns_are_bounded_by_time_budget() -> None:
    kw = dict(seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=50)
    relaxed = compute_streamlines(wavy, BOX, **kw)
    tight = compute_streamlines(wavy, BOX, max_time_per_iteration=1e-9, **kw)
    relaxed.run()
    tight.run()
    assert tight.turns > relaxed.turns


def test_step_drives_incrementally() -> None:
    engine = compute_streamlines(wavy, BOX, seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=1)
    assert engine.state is SchedulerState.INIT
    finished = engine.step()
    assert not finished
    assert engine.state is not SchedulerState.INIT
    while not engine.step():
        pass
    assert engine.done
    assert engine.queue_length == 0
    assert engine.step() is True


def test_pausing_callback_does_not_change_result() -> None:
    kw = dict(seed=(3.0, 4.0), d_sep=0.8, time_step=0.1)
    plain = compute_streamlines(wavy, BOX, **kw).run()
    paused = compute_streamlines(wavy, BOX, on_point_added=lambda *_: True, **kw)
    lines = paused.run()
    assert [len(s) for s in lines] == [len(s) for s in plain]
    assert paused.turns > 1


def test_dispose_stops_further_turns() -> None:
    engine: Streamlines

    def on_line(points, config):
        if len(engine.streamlines) >= 2:
            engine.dispose()

    engine = compute_streamlines(
        wavy, BOX, seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=1,
        on_streamline_added=on_line,
    )
    lines = engine.run()
    assert engine.disposed
    assert not engine.done
    assert len(lines) == 2
    assert engine.step() is False


# ----------------------
# Async execution
# ----------------------

def test_async_run_resolves_future() -> None:
    kw = dict(seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=1)
    expected = compute_streamlines(wavy, BOX, **kw).run()

    async def main():
        engine = compute_streamlines(wavy, BOX, asynchronous=True, **kw)
        fut = engine.run()
        assert isinstance(fut, asyncio.Future)
        assert engine.run() is fut
        return engine, await fut

    engine, lines = asyncio.run(main())
    assert engine.done
    assert engine.turns > 1
    assert [len(s) for s in lines] == [len(s) for s in expected]


def test_async_run_needs_running_loop() -> None:
    engine = compute_streamlines(wavy, BOX, seed=(3.0, 4.0), asynchronous=True)
    with pytest.raises(RuntimeError):
        engine.run()


def test_run_async_coroutine() -> None:
    kw = dict(seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=2)
    expected = compute_streamlines(wavy, BOX, **kw).run()
    lines = asyncio.run(compute_streamlines(wavy, BOX, **kw).run_async())
    assert [s.seed_point for s in lines] == [s.seed_point for s in expected]


def test_dispose_cancels_pending_future() -> None:
    async def main():
        engine = compute_streamlines(
            wavy, BOX, seed=(3.0, 4.0), d_sep=0.2, time_step=0.05, steps_per_iteration=1, asynchronous=True,
        )
        fut = engine.run()
        await asyncio.sleep(0)
        engine.dispose()
        with pytest.raises(asyncio.CancelledError):
            await fut
        return engine

    engine = asyncio.run(main())
    assert engine.disposed
    assert not engine.done


def test_callback_error_fails_future() -> None:
    def boom(points, config):
        raise KeyError("stop")

    async def main():
        engine = compute_streamlines(wavy, BOX, seed=(3.0, 4.0), d_sep=0.8, asynchronous=True, on_streamline_added=boom)
        await engine.run()

    with pytest.raises(KeyError):
        asyncio.run(main())


def test_dispose_during_final_async_turn() -> None:
    async def main():
        errors: list[dict] = []
        asyncio.get_running_loop().set_exception_handler(lambda _loop, ctx: errors.append(ctx))
        engine: Streamlines
        # d_sep larger than the box: one streamline, then DONE in the same turn
        engine = compute_streamlines(
            uniform_field(1.0, 0.0), BOX, seed=(5.0, 5.0), d_sep=20.0, d_test=0.5, time_step=0.1,
            asynchronous=True, on_streamline_added=lambda *_: engine.dispose(),
        )
        fut = engine.run()
        with pytest.raises(asyncio.CancelledError):
            await fut
        for _ in range(3):
            await asyncio.sleep(0)
        return engine, errors

    engine, errors = asyncio.run(main())
    assert errors == []
    assert engine.disposed
    assert engine.done
    assert len(engine.streamlines) == 1


def test_dispose_mid_async_turn_schedules_nothing_more() -> None:
    async def main():
        engine: Streamlines
        engine = compute_streamlines(
            wavy, BOX, seed=(3.0, 4.0), d_sep=0.8, time_step=0.1, steps_per_iteration=1,
            asynchronous=True, on_streamline_added=lambda *_: engine.dispose(),
        )
        fut = engine.run()
        with pytest.raises(asyncio.CancelledError):
            await fut
        turns = engine.turns
        for _ in range(5):
            await asyncio.sleep(0)
        return engine, turns

    engine, turns = asyncio.run(main())
    assert engine.turns == turns
    assert not engine.done
    assert len(engine.streamlines) == 1


def test_streamline_callback_gets_its_own_copy() -> None:
    engine = compute_streamlines(
        wavy, BOX, seed=(3.0, 4.0), d_sep=0.8, time_step=0.1,
        on_streamline_added=lambda points, cfg: points.clear(),
    )
    lines = engine.run()
    assert len(lines) > 1
    assert all(len(s) > 1 for s in lines)
    assert len(engine.get_grid()) >= sum(len(s) for s in lines)
