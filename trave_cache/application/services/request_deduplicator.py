"""In-memory request deduplication with singleflight coalescing."""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, Iterable, Literal, Sequence, TypeVar

from loguru import logger

from trave_cache.models.cache import BatchItem, DeduplicationStats, PendingRequest, ResultEntry
from trave_cache.shared.config.settings import (
    DEDUP_CACHE_DURATION_MS,
    DEDUP_CLEANUP_INTERVAL_MS,
    DEDUP_WINDOW_MS,
)
from trave_cache.shared.exceptions import ensure_non_negative
from trave_cache.shared.utils.clock import Clock, PeriodicTask, SystemClock

T = TypeVar("T")
FetchState = Literal["hit", "miss", "wait"]


class RequestDeduplicator(Generic[T]):
    """Collapses concurrent fetches per key into one producer invocation.

    - `hit`: in-memory result younger than `cache_duration` returned
    - `wait`: caller joined a pending request for the same key
    - `miss`: caller started the producer

    The producer runs as its own task, so a cancelled caller never cancels a
    fetch other callers are waiting on. All table mutations happen
    synchronously (in done callbacks or between awaits), so no lock is needed
    on a single event loop.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        dedup_window_ms: int = DEDUP_WINDOW_MS,
        cache_duration_ms: int = DEDUP_CACHE_DURATION_MS,
        cleanup_interval_ms: int = DEDUP_CLEANUP_INTERVAL_MS,
    ) -> None:
        self._clock = clock or SystemClock()
        self._dedup_window_ms = ensure_non_negative("dedup_window_ms", dedup_window_ms)
        self._cache_duration_ms = ensure_non_negative("cache_duration_ms", cache_duration_ms)
        self._results: dict[str, ResultEntry[T]] = {}
        self._pending: dict[str, PendingRequest[T]] = {}
        self._cleanup = PeriodicTask(
            self._clock,
            cleanup_interval_ms,
            self.purge_stale_results,
            name="dedup_cleanup",
        )

    # --- lifecycle ---

    @property
    def is_running(self) -> bool:
        return self._cleanup.is_running

    @property
    def cache_duration_ms(self) -> int:
        return self._cache_duration_ms

    def start(self) -> None:
        """Start the periodic purge of old in-memory results."""
        self._cleanup.start()

    def stop(self) -> None:
        self._cleanup.stop()

    # --- fetch ---

    async def deduplicated_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        dedup_window: int | None = None,
        cache_duration: int | None = None,
    ) -> T:
        value, _state = await self.fetch_with_state(key, producer, dedup_window, cache_duration)
        return value

    async def fetch_with_state(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        dedup_window: int | None = None,
        cache_duration: int | None = None,
    ) -> tuple[T, FetchState]:
        """Fetch through the dedup tables and report how the value was obtained.

        Exceptions from `producer` are propagated to every joined caller and
        never cached.
        """
        window = self._dedup_window_ms if dedup_window is None else ensure_non_negative("dedup_window", dedup_window)
        duration = (
            self._cache_duration_ms if cache_duration is None else ensure_non_negative("cache_duration", cache_duration)
        )
        now = self._clock.now_ms()

        result = self._results.get(key)
        if result is not None and now - result.stored_at < duration:
            self._log_state(key, "hit")
            return result.value, "hit"

        pending = self._pending.get(key)
        if pending is not None and self._joinable(pending, now, window):
            self._log_state(key, "wait")
            return await asyncio.shield(pending.task), "wait"

        pending = self._start(key, producer, now, window, duration)
        self._log_state(key, "miss")
        return await asyncio.shield(pending.task), "miss"

    @staticmethod
    def _joinable(pending: PendingRequest[T], now: int, window: int) -> bool:
        if pending.in_flight:
            return True
        return pending.settled_at is not None and now - pending.settled_at < window

    def _start(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        now: int,
        window: int,
        duration: int,
    ) -> PendingRequest[T]:
        previous = self._pending.pop(key, None)
        if previous is not None:
            previous.cancel_clear_timer()

        async def _run() -> T:
            return await producer()

        task = asyncio.ensure_future(_run())
        pending = PendingRequest(key=key, task=task, started_at=now)
        self._pending[key] = pending
        # Registered before any waiter shields the task, so tables are updated
        # before awaiting callers resume.
        task.add_done_callback(lambda t: self._settle(pending, t, window, duration))
        return pending

    def _settle(self, pending: PendingRequest[T], task: asyncio.Task[T], window: int, duration: int) -> None:
        if task.cancelled():
            self._discard(pending)
            return

        exc = task.exception()
        if self._pending.get(pending.key) is not pending:
            # Invalidated while in flight: the result must not resurrect state.
            return

        if exc is not None:
            self._pending.pop(pending.key, None)
            logger.debug(
                f"dedup producer failed: {pending.key}: {exc}",
                event="dedup_fetch",
                cacheState="error",
                cacheKey=pending.key,
            )
            return

        now = self._clock.now_ms()
        pending.settled_at = now
        self._results[pending.key] = ResultEntry(value=task.result(), stored_at=now, cache_duration=duration)
        pending.clear_handle = self._clock.call_later(window, lambda: self._discard(pending))

    def _discard(self, pending: PendingRequest[T]) -> None:
        if self._pending.get(pending.key) is pending:
            del self._pending[pending.key]
        pending.cancel_clear_timer()

    @staticmethod
    def _log_state(key: str, state: FetchState) -> None:
        logger.debug(
            f"dedup {state}: {key}",
            event="dedup_fetch",
            cacheState=state,
            cacheKey=key,
        )

    async def batch_fetch(
        self,
        items: Sequence[BatchItem[T] | tuple[str, Callable[[], Awaitable[T]]]],
        dedup_window: int | None = None,
        cache_duration: int | None = None,
    ) -> list[T]:
        """Run `deduplicated_fetch` for every item concurrently.

        The returned list is positionally aligned with `items`.
        """
        coros = []
        for item in items:
            key, producer = (item.key, item.producer) if isinstance(item, BatchItem) else item
            coros.append(self.deduplicated_fetch(key, producer, dedup_window, cache_duration))
        return list(await asyncio.gather(*coros))

    # --- invalidation ---

    def invalidate_request(self, key: str) -> None:
        """Drop the in-memory result and pending entry for `key`.

        An in-flight producer keeps running for callers already waiting on it.
        """
        self._results.pop(key, None)
        pending = self._pending.pop(key, None)
        if pending is not None:
            pending.cancel_clear_timer()

    def invalidate_requests(self, keys: Iterable[str]) -> None:
        for key in keys:
            self.invalidate_request(key)

    def invalidate_prefix(self, prefix: str) -> int:
        keys = {key for key in (*self._results, *self._pending) if key.startswith(prefix)}
        self.invalidate_requests(keys)
        return len(keys)

    def clear_deduplication_cache(self) -> None:
        for pending in self._pending.values():
            pending.cancel_clear_timer()
        self._pending.clear()
        self._results.clear()

    def get_deduplication_stats(self) -> DeduplicationStats:
        return DeduplicationStats(
            cached_requests=len(self._results),
            pending_requests=len(self._pending),
        )

    def purge_stale_results(self) -> int:
        """Drop results older than twice their cache duration to bound memory."""
        now = self._clock.now_ms()
        stale = [
            key for key, entry in self._results.items() if now - entry.stored_at > entry.cache_duration * 2
        ]
        for key in stale:
            self._results.pop(key, None)
        if stale:
            logger.debug(f"dedup cleanup: {len(stale)} results purged", event="dedup_cleanup")
        return len(stale)
