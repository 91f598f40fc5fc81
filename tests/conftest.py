"""
PyTest設定ファイル

キャッシュ層のテストで共通に使うフィクスチャを定義します。
時刻はすべて ManualClock で制御します。
"""

import pytest

from trave_cache.application.services.connectivity_monitor import (
    ConnectivityMonitor,
    ManualConnectivitySource,
)
from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.application.services.request_deduplicator import RequestDeduplicator
from trave_cache.application.services.ttl_cache import TtlCache
from trave_cache.infrastructure.storage.memory_store import InMemoryKeyValueStore
from trave_cache.shared.utils.clock import ManualClock


@pytest.fixture
def manual_clock():
    """t=0 から始まる仮想時計"""
    return ManualClock(start_ms=0)


@pytest.fixture
def memory_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def durable_store(memory_store):
    return DurableCacheStore(memory_store)


@pytest.fixture
def ttl_cache(durable_store, manual_clock):
    return TtlCache(durable_store, manual_clock)


@pytest.fixture
def deduplicator(manual_clock):
    dedup = RequestDeduplicator(manual_clock)
    yield dedup
    dedup.stop()
    dedup.clear_deduplication_cache()


@pytest.fixture
def connectivity_source():
    """オンライン状態で始まる手動接続ソース"""
    return ManualConnectivitySource()


@pytest.fixture
async def monitor(connectivity_source):
    mon = ConnectivityMonitor(connectivity_source)
    await mon.start()
    yield mon
    mon.stop()
