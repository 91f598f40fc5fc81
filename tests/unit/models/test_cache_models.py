"""models のテスト"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from trave_cache.models.cache import CacheEntry, DeduplicationStats
from trave_cache.models.connectivity import (
    BANNER_MESSAGES,
    BannerState,
    ConnectivitySnapshot,
    FetchResult,
)


class TestCacheEntry:
    def test_serializes_with_wire_field_names(self) -> None:
        entry = CacheEntry(value={"id": 1}, written_at=1000, ttl=500)

        assert json.loads(entry.to_json()) == {"value": {"id": 1}, "writtenAt": 1000, "ttl": 500}

    def test_parses_wire_format(self) -> None:
        entry = CacheEntry.model_validate_json('{"value": [1, 2], "writtenAt": 10, "ttl": 20}')

        assert entry.value == [1, 2]
        assert entry.written_at == 10
        assert entry.ttl == 20

    def test_expiry_boundary_is_strict(self) -> None:
        entry = CacheEntry(value="v", written_at=0, ttl=1000)

        assert not entry.is_expired(0)
        assert not entry.is_expired(1000)
        assert entry.is_expired(1001)

    def test_zero_ttl_is_always_expired(self) -> None:
        entry = CacheEntry(value="v", written_at=0, ttl=0)

        assert entry.is_expired(0)

    def test_negative_ttl_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            CacheEntry(value="v", written_at=0, ttl=-1)

    def test_missing_value_is_invalid(self) -> None:
        with pytest.raises(ValidationError):
            CacheEntry.model_validate_json('{"writtenAt": 0, "ttl": 1}')


def test_deduplication_stats_total() -> None:
    stats = DeduplicationStats(cached_requests=2, pending_requests=3)

    assert stats.total == 5


class TestConnectivitySnapshot:
    @pytest.mark.parametrize(
        ("connected", "reachable", "expected"),
        [
            (True, True, True),
            (True, False, False),
            (False, None, False),
            (True, None, None),
            (None, None, None),
        ],
    )
    def test_is_online_tri_state(self, connected, reachable, expected) -> None:
        snapshot = ConnectivitySnapshot(is_connected=connected, is_internet_reachable=reachable)

        assert snapshot.is_online is expected

    def test_factories(self) -> None:
        assert ConnectivitySnapshot.online("wifi").is_online is True
        assert ConnectivitySnapshot.online("wifi").connection_type == "wifi"
        assert ConnectivitySnapshot.offline().is_online is False
        assert ConnectivitySnapshot.offline().connection_type == "none"

    def test_is_frozen(self) -> None:
        snapshot = ConnectivitySnapshot.online()

        with pytest.raises(ValidationError):
            snapshot.is_connected = False  # type: ignore[misc]


def test_banner_messages() -> None:
    assert BANNER_MESSAGES[BannerState.HIDDEN] is None
    assert BANNER_MESSAGES[BannerState.SHOWING_OFFLINE] == "No internet connection"
    assert BANNER_MESSAGES[BannerState.SHOWING_RECONNECTED] == "Back online"


def test_fetch_result_unwrap() -> None:
    assert FetchResult(data=1).unwrap() == 1

    with pytest.raises(KeyError):
        FetchResult(error=KeyError("missing")).unwrap()
