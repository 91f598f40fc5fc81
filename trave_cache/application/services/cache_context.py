"""
Cache Context

キャッシュ層の DI ルート。アプリケーション起動時に1度だけ構築し、
各コンシューマーに渡す。タイマー・購読のライフサイクルはここで管理する。
"""

from __future__ import annotations

from typing import Awaitable, Callable, TypeVar

from loguru import logger

from trave_cache.application.services.connectivity_monitor import (
    ConnectivityMonitor,
    ConnectivitySource,
    ManualConnectivitySource,
)
from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.application.services.offline_banner import OfflineBanner
from trave_cache.application.services.offline_first_service import OfflineFirstService
from trave_cache.application.services.request_deduplicator import RequestDeduplicator
from trave_cache.application.services.ttl_cache import TtlCache
from trave_cache.infrastructure.db.base import MEMORY_DB_PATH
from trave_cache.infrastructure.external_api.reachability_probe import HttpReachabilityProbe
from trave_cache.infrastructure.storage.memory_store import InMemoryKeyValueStore
from trave_cache.infrastructure.storage.protocols import KeyValueStore
from trave_cache.infrastructure.storage.sqlite_store import SqliteKeyValueStore
from trave_cache.shared.config.settings import Settings, get_settings
from trave_cache.shared.exceptions import StoreError, ensure_non_negative
from trave_cache.shared.utils.clock import Clock, SystemClock

T = TypeVar("T")


class CacheContext:
    """キャッシュ層のコンポーネント一式"""

    def __init__(
        self,
        store: KeyValueStore,
        connectivity: ConnectivitySource,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.clock = clock or SystemClock()
        self.settings = settings
        self.connectivity = connectivity
        self.store = DurableCacheStore(store)
        self.ttl_cache = TtlCache(
            self.store,
            self.clock,
            key_prefix=settings.cache_key_prefix,
            default_ttl_ms=settings.default_ttl_ms,
        )
        self.deduplicator: RequestDeduplicator = RequestDeduplicator(
            self.clock,
            dedup_window_ms=settings.dedup_window_ms,
            cache_duration_ms=settings.dedup_cache_duration_ms,
            cleanup_interval_ms=settings.dedup_cleanup_interval_ms,
        )
        self.monitor = ConnectivityMonitor(connectivity)
        self.banner = OfflineBanner(self.clock, reconnected_ms=settings.banner_reconnected_ms)
        self.offline = OfflineFirstService(
            self.ttl_cache,
            self.deduplicator,
            self.monitor,
            offline_ttl_ms=settings.offline_ttl_ms,
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self.deduplicator.start()
        await self.monitor.start()
        self.banner.attach(self.monitor)
        if isinstance(self.connectivity, HttpReachabilityProbe):
            self.connectivity.start()
        self._started = True
        logger.info("キャッシュコンテキストを起動しました")

    async def stop(self) -> None:
        if not self._started:
            return
        self.banner.detach()
        self.monitor.stop()
        self.deduplicator.stop()
        self.deduplicator.clear_deduplication_cache()
        if isinstance(self.connectivity, HttpReachabilityProbe):
            await self.connectivity.aclose()
        await self.store.close()
        self._started = False
        logger.info("キャッシュコンテキストを停止しました")

    async def __aenter__(self) -> CacheContext:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.stop()

    async def fetch(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """重複排除 → TTL キャッシュ → producer の完全なパイプライン"""
        ttl_ms = self.ttl_cache.default_ttl_ms if ttl is None else ensure_non_negative("ttl", ttl)
        return await self.deduplicator.deduplicated_fetch(
            key,
            lambda: self.ttl_cache.fetch_with_cache(key, producer, ttl_ms),
            cache_duration=min(ttl_ms, self.deduplicator.cache_duration_ms),
        )

    async def invalidate(self, key: str) -> None:
        """インメモリと永続キャッシュの両方から key を削除する"""
        self.deduplicator.invalidate_request(key)
        await self.ttl_cache.clear_cache(key)


def _build_store(settings: Settings) -> KeyValueStore:
    if settings.cache_db_path == MEMORY_DB_PATH:
        return InMemoryKeyValueStore()
    try:
        return SqliteKeyValueStore(settings.cache_db_path)
    except StoreError as e:
        # fail open: 永続化できなくてもアプリは動作させる
        logger.warning(f"cache.db を開けないためインメモリストアを使用します: {e}")
        return InMemoryKeyValueStore()


def build_cache_context(
    settings: Settings | None = None,
    *,
    store: KeyValueStore | None = None,
    connectivity: ConnectivitySource | None = None,
    clock: Clock | None = None,
    probe: bool = False,
) -> CacheContext:
    """設定からキャッシュコンテキストを構築する

    Args:
        settings: 設定（未指定時は環境変数から）
        store: 永続ストア（未指定時は cache_db_path の SQLite）
        connectivity: 接続状態ソース（未指定時は probe に従う）
        clock: 時刻ソース
        probe: True なら HTTP 到達性プローブを接続状態ソースに使う
    """
    settings = settings or get_settings()
    clock = clock or SystemClock()
    if connectivity is None:
        if probe:
            connectivity = HttpReachabilityProbe(
                settings.connectivity_probe_url,
                timeout=settings.connectivity_probe_timeout,
                interval_ms=settings.connectivity_probe_interval_ms,
                clock=clock,
            )
        else:
            connectivity = ManualConnectivitySource()
    return CacheContext(
        store=store if store is not None else _build_store(settings),
        connectivity=connectivity,
        clock=clock,
        settings=settings,
    )
