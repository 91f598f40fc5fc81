"""
Offline-First Fetch Service

接続状態に応じて取得戦略を切り替える。

- オンライン（または不明）: 重複排除 → TTL キャッシュ → producer
- オフライン: 永続キャッシュのみを参照し、producer は呼ばない
- refresh: 接続状態に関係なくキャッシュをバイパスして再取得する
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Generic, TypeVar

from loguru import logger

from trave_cache.application.services.connectivity_monitor import ConnectivityMonitor
from trave_cache.application.services.request_deduplicator import RequestDeduplicator
from trave_cache.application.services.ttl_cache import TtlCache
from trave_cache.models.connectivity import ConnectivitySnapshot, FetchResult
from trave_cache.shared.config.settings import OFFLINE_TTL_MS
from trave_cache.shared.exceptions import NoCachedDataError, ensure_non_negative
from trave_cache.shared.utils.listeners import ListenerRegistry, Unsubscribe

T = TypeVar("T")

_MISS = object()


class OfflineFirstService:
    """オフラインファースト取得ポリシー

    Args:
        ttl_cache: 永続 TTL キャッシュ
        deduplicator: インメモリ重複排除
        monitor: 接続状態モニター
        offline_ttl_ms: ttl 未指定時の有効期間（デフォルト24時間）
    """

    def __init__(
        self,
        ttl_cache: TtlCache,
        deduplicator: RequestDeduplicator,
        monitor: ConnectivityMonitor,
        offline_ttl_ms: int = OFFLINE_TTL_MS,
    ) -> None:
        self._cache = ttl_cache
        self._dedup = deduplicator
        self._monitor = monitor
        self._offline_ttl_ms = ensure_non_negative("offline_ttl_ms", offline_ttl_ms)

    @property
    def monitor(self) -> ConnectivityMonitor:
        return self._monitor

    def _resolve_ttl(self, ttl: int | None) -> int:
        return self._offline_ttl_ms if ttl is None else ensure_non_negative("ttl", ttl)

    def _result_duration(self, ttl_ms: int) -> int:
        # インメモリ結果が永続エントリより長く残らないようにする
        return min(ttl_ms, self._dedup.cache_duration_ms)

    async def offline_first_fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> FetchResult[T]:
        """接続状態に応じて取得し、結果またはエラーを FetchResult で返す"""
        ttl_ms = self._resolve_ttl(ttl)
        online = self._monitor.is_online
        try:
            if online is False:
                data = await self._cache.get_cached_data(key, default=_MISS)
                if data is _MISS:
                    raise NoCachedDataError(key)
            else:
                data = await self._dedup.deduplicated_fetch(
                    key,
                    lambda: self._cache.fetch_with_cache(key, producer, ttl_ms),
                    cache_duration=self._result_duration(ttl_ms),
                )
        except Exception as e:
            logger.warning(f"オフラインファースト取得に失敗 ({key}): {e}", event="offline_first", cacheKey=key)
            return FetchResult(error=e, is_online=online)
        return FetchResult(data=data, is_online=online)

    async def refresh(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> FetchResult[T]:
        """プルリフレッシュ: 接続状態に関係なくキャッシュをバイパスして再取得する"""
        ttl_ms = self._resolve_ttl(ttl)
        online = self._monitor.is_online
        self._dedup.invalidate_request(key)
        try:
            data = await self._dedup.deduplicated_fetch(
                key,
                lambda: self._cache.fetch_with_cache(key, producer, ttl_ms, force_refresh=True),
                cache_duration=self._result_duration(ttl_ms),
            )
        except Exception as e:
            logger.warning(f"リフレッシュに失敗 ({key}): {e}", event="offline_first_refresh", cacheKey=key)
            return FetchResult(error=e, is_online=online)
        return FetchResult(data=data, is_online=online)

    def resource(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> OfflineFirstResource[T]:
        return OfflineFirstResource(self, key, producer, self._resolve_ttl(ttl))


class OfflineFirstResource(Generic[T]):
    """単一キーの取得状態（data / loading / error）を保持する

    attach() すると接続状態が変わるたびに自動で再読み込みする。
    エラー時は直前の data を保持したまま error を設定する。
    読み込みが重なった場合は最後に開始したものの結果だけを反映する。
    """

    def __init__(
        self,
        service: OfflineFirstService,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl_ms: int,
    ) -> None:
        self._service = service
        self.key = key
        self._producer = producer
        self._ttl_ms = ttl_ms
        self.data: T | None = None
        self.loading = False
        self.error: BaseException | None = None
        self.is_online: bool | None = service.monitor.is_online
        self._listeners = ListenerRegistry[OfflineFirstResource[T]](f"resource:{key}")
        self._detach: Unsubscribe | None = None
        self._reload_task: asyncio.Task[None] | None = None
        self._generation = 0

    def add_listener(self, listener: Callable[[OfflineFirstResource[T]], None]) -> Unsubscribe:
        return self._listeners.add(listener)

    def _apply(self, result: FetchResult[T]) -> None:
        self.is_online = result.is_online
        if result.error is None:
            self.data = result.data
        self.error = result.error

    async def _track(self, fetch: Callable[[], Awaitable[FetchResult[T]]], reset_error: bool) -> None:
        self._generation += 1
        generation = self._generation
        self.loading = True
        if reset_error:
            self.error = None
        self._listeners.notify(self)
        try:
            result = await fetch()
            if generation == self._generation:
                self._apply(result)
            else:
                logger.debug(f"古い読み込み結果を破棄: {self.key}")
        finally:
            if generation == self._generation:
                self.loading = False
                self._listeners.notify(self)

    async def load(self) -> None:
        await self._track(
            lambda: self._service.offline_first_fetch(self.key, self._producer, self._ttl_ms),
            reset_error=True,
        )

    async def refresh(self) -> None:
        await self._track(
            lambda: self._service.refresh(self.key, self._producer, self._ttl_ms),
            reset_error=False,
        )

    def attach(self) -> None:
        """接続状態の変化で再読み込みする"""
        if self._detach is None:
            self._detach = self._service.monitor.add_listener(self._on_connectivity)

    def _cancel_reload(self) -> None:
        if self._reload_task is not None and not self._reload_task.done():
            self._reload_task.cancel()
        self._reload_task = None

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._cancel_reload()

    async def wait_reloaded(self) -> None:
        if self._reload_task is not None:
            await self._reload_task

    def _on_connectivity(self, snapshot: ConnectivitySnapshot) -> None:
        if snapshot.is_online == self.is_online:
            return
        self.is_online = snapshot.is_online
        self._cancel_reload()
        self._reload_task = asyncio.ensure_future(self.load())
