"""
HttpReachabilityProbe Unit Tests

respx を使用した HTTP モックテスト。到達性判定・変更通知・ポーリングを検証。
"""

import asyncio

import httpx
import pytest
import respx

from trave_cache.infrastructure.external_api.reachability_probe import HttpReachabilityProbe
from trave_cache.models.connectivity import ConnectivitySnapshot
from trave_cache.shared.utils.clock import ManualClock

PROBE_URL = "https://probe.test/generate_204"


@pytest.fixture
async def probe():
    """テスト用プローブ（ManualClock）"""
    p = HttpReachabilityProbe(PROBE_URL, timeout=1.0, interval_ms=1000, clock=ManualClock())
    yield p
    await p.aclose()


class TestFetch:
    @respx.mock
    @pytest.mark.asyncio
    async def test_success_status_is_reachable(self, probe):
        respx.get(PROBE_URL).mock(return_value=httpx.Response(204))

        snapshot = await probe.fetch()

        assert snapshot.is_connected is True
        assert snapshot.is_internet_reachable is True
        assert snapshot.is_online is True

    @respx.mock
    @pytest.mark.asyncio
    async def test_error_status_is_not_reachable(self, probe):
        respx.get(PROBE_URL).mock(return_value=httpx.Response(503))

        snapshot = await probe.fetch()

        assert snapshot.is_connected is True
        assert snapshot.is_internet_reachable is False
        assert snapshot.is_online is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_connect_error_is_offline(self, probe):
        respx.get(PROBE_URL).mock(side_effect=httpx.ConnectError("unreachable"))

        snapshot = await probe.fetch()

        assert snapshot == ConnectivitySnapshot.offline()

    @respx.mock
    @pytest.mark.asyncio
    async def test_timeout_is_not_reachable(self, probe):
        respx.get(PROBE_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        snapshot = await probe.fetch()

        assert snapshot.is_internet_reachable is False
        assert snapshot.is_online is False


class TestPoll:
    @respx.mock
    @pytest.mark.asyncio
    async def test_notifies_only_on_change(self, probe):
        route = respx.get(PROBE_URL)
        route.side_effect = [
            httpx.Response(204),
            httpx.Response(204),
            httpx.ConnectError("down"),
        ]
        seen: list[bool | None] = []
        probe.add_listener(lambda s: seen.append(s.is_online))

        await probe.poll()
        await probe.poll()
        await probe.poll()

        assert seen == [True, False]
        assert probe.last_snapshot == ConnectivitySnapshot.offline()
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_start_polls_on_interval(self):
        clock = ManualClock()
        respx.get(PROBE_URL).mock(return_value=httpx.Response(204))
        probe = HttpReachabilityProbe(PROBE_URL, interval_ms=1000, clock=clock)
        notified = asyncio.Event()
        probe.add_listener(lambda _s: notified.set())

        probe.start()
        clock.advance(999)
        assert not notified.is_set()

        clock.advance(1)
        await asyncio.wait_for(notified.wait(), timeout=1)
        await probe.aclose()

        assert probe.last_snapshot is not None
        assert probe.last_snapshot.is_online is True

    @pytest.mark.asyncio
    async def test_injected_client_is_not_closed(self):
        client = httpx.AsyncClient()
        probe = HttpReachabilityProbe(PROBE_URL, client=client)

        await probe.aclose()

        assert not client.is_closed
        await client.aclose()
