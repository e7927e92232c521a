from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Any

import asyncio
import logging
import time
import numpy as np
from numpy.typing import NDArray

from .config import StreamlineConfig
from .geometry import BoundingBox, Vector2, VectorField
from .grid import LookupGrid
from .integrator import StreamlineIntegrator

logger = logging.getLogger(__name__)

FloatArray = NDArray[np.float64]


class SchedulerState(Enum):
    INIT = 0
    STREAMLINE = 1
    PROCESS_QUEUE = 2
    DONE = 3
    SEED_STREAMLINE = 4


@dataclass(slots=True)
class Streamline:
    """A finished streamline: ordered points plus where it was seeded from."""
    points: list[Vector2]
    seed_point: Vector2
    origin_point: Vector2 | None = None

    def __len__(self) -> int:
        return len(self.points)

    def as_array(self) -> FloatArray:
        """(N,2) float64 array of the points."""
        return np.array([(p.x, p.y) for p in self.points], dtype=np.float64).reshape(-1, 2)


class Streamlines:
    """Incremental driver for evenly-spaced streamline placement.

    The scheduler owns the shared LookupGrid (cell size d_sep) and a FIFO of
    finished integrators. It walks the state machine

        INIT -> PROCESS_QUEUE -> SEED_STREAMLINE <-> STREAMLINE -> ... -> DONE

    in turns of at most `steps_per_iteration` transitions, also bounded by
    `max_time_per_iteration` milliseconds, so a host loop can interleave
    other work. Only one integrator is ever active, which is what keeps the
    shared grid single-writer.
    """

    def __init__(self, config: StreamlineConfig) -> None:
        self._config = config
        self._grid = LookupGrid(config.bounding_box, config.d_sep)
        self._seed_queue: deque[Vector2] = deque(config.seeds)
        self._finished: deque[StreamlineIntegrator] = deque()
        self._streamlines: list[Streamline] = []
        self._integrator = self._spawn(config.seed, None)
        self._state = SchedulerState.INIT
        self._disposed = False
        self._turns = 0
        self._started_at: float | None = None

        self._loop: asyncio.AbstractEventLoop | None = None
        self._future: asyncio.Future[list[Streamline]] | None = None
        self._handle: asyncio.Handle | None = None

    # -------- properties --------
    @property
    def config(self) -> StreamlineConfig: return self._config

    @property
    def state(self) -> SchedulerState: return self._state

    @property
    def done(self) -> bool: return self._state is SchedulerState.DONE

    @property
    def disposed(self) -> bool: return self._disposed

    @property
    def turns(self) -> int: return self._turns

    @property
    def active_integrator(self) -> StreamlineIntegrator: return self._integrator

    @property
    def queue_length(self) -> int: return len(self._finished)

    @property
    def streamlines(self) -> list[Streamline]:
        return list(self._streamlines)

    def get_grid(self) -> LookupGrid:
        return self._grid

    # -------- execution --------
    def run(self) -> list[Streamline] | asyncio.Future[list[Streamline]]:
        """Drain to completion (sync) or schedule turns on the running loop (async).

        In async mode this must be called from inside a running asyncio loop;
        the returned future resolves with the streamlines, and repeated calls
        return the same future.
        """
        if self._config.asynchronous:
            return self._schedule()
        while not self._disposed and not self.step():
            pass
        return self.streamlines

    async def run_async(self) -> list[Streamline]:
        """Coroutine form: one turn per event-loop iteration."""
        while not self._disposed and not self.step():
            await asyncio.sleep(0)
        return self.streamlines

    def step(self) -> bool:
        """Run one bounded turn; True once the computation is DONE."""
        if self._disposed:
            return self.done
        if self.done:
            return True
        if self._started_at is None:
            self._started_at = time.perf_counter()
        self._turns += 1
        budget = self._config.max_time_per_iteration / 1000.0
        start = time.perf_counter()

        for _ in range(self._config.steps_per_iteration):
            if self._state is SchedulerState.INIT:
                self._init_processing()
            if self._state is SchedulerState.STREAMLINE:
                self._continue_streamline()
            if self._state is SchedulerState.PROCESS_QUEUE:
                self._process_queue()
            if self._state is SchedulerState.SEED_STREAMLINE:
                self._seed_streamline()

            if self._state is SchedulerState.DONE:
                self._log_completion()
                return True
            if time.perf_counter() - start > budget:
                break
        return False

    def dispose(self) -> None:
        """Stop scheduling further turns; a turn in progress is not interrupted."""
        if self._disposed:
            return
        self._disposed = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        if self._future is not None and not self._future.done():
            self._future.cancel()
        if not self.done:
            logger.info("Streamline computation disposed after %d streamlines", len(self._streamlines))

    def _schedule(self) -> asyncio.Future[list[Streamline]]:
        if self._future is not None:
            return self._future
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._future = loop.create_future()
        if self._disposed:
            self._future.cancel()
        else:
            self._handle = loop.call_soon(self._next_turn)
        return self._future

    def _next_turn(self) -> None:
        self._handle = None
        if self._disposed or self._future is None or self._future.done():
            return
        try:
            finished = self.step()
        except Exception as exc:
            if self._future.done():
                logger.exception("Streamline turn failed after the computation was disposed")
            else:
                self._future.set_exception(exc)
            return
        # a callback may have disposed the engine during this turn
        if self._disposed or self._future.done():
            return
        if finished:
            self._future.set_result(self.streamlines)
        else:
            assert self._loop is not None
            self._handle = self._loop.call_soon(self._next_turn)

    # -------- state handlers --------
    def _spawn(self, seed: Vector2, origin: Vector2 | None) -> StreamlineIntegrator:
        return StreamlineIntegrator(seed, self._grid, self._config, seed_queue=self._seed_queue, origin=origin)

    def _init_processing(self) -> None:
        if self._integrator.next():
            self._add_to_queue()
            self._state = SchedulerState.PROCESS_QUEUE

    def _continue_streamline(self) -> None:
        if self._integrator.next():
            self._add_to_queue()
            self._state = SchedulerState.SEED_STREAMLINE

    def _process_queue(self) -> None:
        if self._finished:
            self._state = SchedulerState.SEED_STREAMLINE
        else:
            self._state = SchedulerState.DONE

    def _seed_streamline(self) -> None:
        candidate = self._finished[0].get_next_valid_seed()
        if candidate is not None:
            self._integrator = self._spawn(candidate.point, candidate.origin)
            self._state = SchedulerState.STREAMLINE
        else:
            exhausted = self._finished.popleft()
            logger.debug(
                "No free seeds left around streamline from (%.4f, %.4f); %d queued",
                exhausted.seed_point.x, exhausted.seed_point.y, len(self._finished),
            )
            self._state = SchedulerState.PROCESS_QUEUE

    def _add_to_queue(self) -> None:
        integrator = self._integrator
        points = integrator.get_streamline()
        if len(points) <= 1:
            return
        self._finished.append(integrator)
        self._streamlines.append(Streamline(list(points), integrator.seed_point, integrator.origin_point))
        cb = self._config.on_streamline_added
        if cb is not None:
            cb(list(points), self._config)

    def _log_completion(self) -> None:
        elapsed = time.perf_counter() - (self._started_at or time.perf_counter())
        logger.info(
            "Computed %d streamlines (%d points) in %d turns, %.3f s",
            len(self._streamlines), len(self._grid), self._turns, elapsed,
        )


def compute_streamlines(
    vector_field: VectorField,
    bounding_box: BoundingBox | dict[str, Any],
    **options: Any,
) -> Streamlines:
    """Build a Streamlines scheduler from a field, a box and keyword options.

    Options are those of `StreamlineConfig.create` (seed, d_sep, d_test,
    time_step, forward_only, steps_per_iteration, max_time_per_iteration,
    on_point_added, on_streamline_added, random, asynchronous).
    """
    return Streamlines(StreamlineConfig.create(vector_field, bounding_box, **options))
