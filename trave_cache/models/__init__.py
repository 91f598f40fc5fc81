"""
データモデル
"""

from trave_cache.models.cache import (
    BatchItem,
    CacheEntry,
    CacheInfo,
    DeduplicationStats,
    PendingRequest,
    Producer,
    ResultEntry,
)
from trave_cache.models.connectivity import (
    BANNER_MESSAGES,
    BannerState,
    ConnectivitySnapshot,
    FetchResult,
)

__all__ = [
    "BANNER_MESSAGES",
    "BannerState",
    "BatchItem",
    "CacheEntry",
    "CacheInfo",
    "ConnectivitySnapshot",
    "DeduplicationStats",
    "FetchResult",
    "PendingRequest",
    "Producer",
    "ResultEntry",
]
