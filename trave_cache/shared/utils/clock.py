"""Injectable clocks and cancelable timers.

All cache timestamps are integer milliseconds. Timers (dedup window clearing,
periodic cleanup, banner hide delay) are scheduled through the clock so tests
can drive them deterministically with `ManualClock`.
"""

from __future__ import annotations

import asyncio
import heapq
import inspect
import itertools
import time
from typing import Callable, Protocol

from loguru import logger


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Time source used by every cache component."""

    def now_ms(self) -> int: ...

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable: ...


class SystemClock:
    """Wall clock backed by the running asyncio loop."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(delay_ms, 0) / 1000, callback)


class _ManualTimer:
    __slots__ = ("due_ms", "callback", "cancelled")

    def __init__(self, due_ms: int, callback: Callable[[], None]) -> None:
        self.due_ms = due_ms
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Virtual clock for deterministic tests.

    Time only moves through `advance()` / `set()`; due timers fire synchronously
    in due order, with `now_ms()` equal to each timer's due time while it runs.
    """

    def __init__(self, start_ms: int = 0) -> None:
        self._now = start_ms
        self._timers: list[tuple[int, int, _ManualTimer]] = []
        self._seq = itertools.count()

    def now_ms(self) -> int:
        return self._now

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancellable:
        timer = _ManualTimer(self._now + max(delay_ms, 0), callback)
        heapq.heappush(self._timers, (timer.due_ms, next(self._seq), timer))
        return timer

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, timer in self._timers if not timer.cancelled)

    def advance(self, delta_ms: int) -> None:
        if delta_ms < 0:
            raise ValueError("ManualClock cannot move backwards")
        self.set(self._now + delta_ms)

    def set(self, now_ms: int) -> None:
        if now_ms < self._now:
            raise ValueError("ManualClock cannot move backwards")
        while self._timers and self._timers[0][0] <= now_ms:
            due_ms, _, timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = due_ms
            timer.callback()
        self._now = now_ms


class PeriodicTask:
    """Cancelable repeating timer owned by a component's lifecycle."""

    def __init__(
        self,
        clock: Clock,
        interval_ms: int,
        action: Callable[[], object],
        name: str = "periodic",
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be > 0")
        self._clock = clock
        self._interval_ms = interval_ms
        self._action = action
        self._name = name
        self._handle: Cancellable | None = None
        # 完了するまで実行中の非同期 action を保持する
        self._tasks: set[asyncio.Future[object]] = set()

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        if self._handle is None:
            self._schedule()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self) -> None:
        self._handle = self._clock.call_later(self._interval_ms, self._tick)

    def _tick(self) -> None:
        try:
            result = self._action()
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)
                task.add_done_callback(self._log_task_failure)
        except Exception as e:
            logger.warning(f"定期タスクエラー ({self._name}): {e}")
        if self._handle is not None:
            self._schedule()

    def _log_task_failure(self, task: asyncio.Future[object]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(f"定期タスクエラー ({self._name}): {exc}")
