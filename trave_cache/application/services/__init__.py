"""
Cache Services
"""

from __future__ import annotations

from trave_cache.application.services.cache_context import CacheContext, build_cache_context
from trave_cache.application.services.connectivity_monitor import (
    ConnectivityMonitor,
    ConnectivitySource,
    ManualConnectivitySource,
)
from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.application.services.offline_banner import OfflineBanner
from trave_cache.application.services.offline_first_service import OfflineFirstResource, OfflineFirstService
from trave_cache.application.services.request_deduplicator import RequestDeduplicator
from trave_cache.application.services.ttl_cache import TtlCache

__all__ = [
    "CacheContext",
    "ConnectivityMonitor",
    "ConnectivitySource",
    "DurableCacheStore",
    "ManualConnectivitySource",
    "OfflineBanner",
    "OfflineFirstResource",
    "OfflineFirstService",
    "RequestDeduplicator",
    "TtlCache",
    "build_cache_context",
]
