"""
HTTP Reachability Probe

プローブ URL への GET でインターネット到達性を判定する接続状態ソース。
start() 後は PeriodicTask でポーリングし、状態が変わった時のみリスナーに通知する。
"""

from __future__ import annotations

from typing import Callable

import httpx
from loguru import logger

from trave_cache.models.connectivity import ConnectivitySnapshot
from trave_cache.shared.utils.clock import Clock, PeriodicTask, SystemClock
from trave_cache.shared.utils.listeners import ListenerRegistry, Unsubscribe


class HttpReachabilityProbe:
    """httpx ベースの接続状態ソース

    Args:
        url: プローブ先 URL（2xx / 3xx を到達可能とみなす）
        timeout: リクエストタイムアウト（秒）
        interval_ms: ポーリング間隔（ミリ秒）
        clock: タイマー用の時刻ソース
        client: 差し替え用の httpx.AsyncClient（未指定時は内部で生成）
    """

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        interval_ms: int = 15_000,
        clock: Clock | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=False)
        self._listeners = ListenerRegistry[ConnectivitySnapshot]("reachability_probe")
        self._last: ConnectivitySnapshot | None = None
        self._poller = PeriodicTask(clock or SystemClock(), interval_ms, self.poll, name="reachability_probe")

    @property
    def url(self) -> str:
        return self._url

    @property
    def last_snapshot(self) -> ConnectivitySnapshot | None:
        return self._last

    async def fetch(self) -> ConnectivitySnapshot:
        """1回だけプローブしてスナップショットを返す"""
        try:
            resp = await self._client.get(self._url)
        except httpx.TimeoutException:
            logger.debug(f"到達性プローブがタイムアウト: {self._url}")
            return ConnectivitySnapshot(is_connected=True, is_internet_reachable=False, connection_type="unknown")
        except httpx.TransportError as e:
            logger.debug(f"到達性プローブに失敗: {self._url}: {e}")
            return ConnectivitySnapshot.offline()

        reachable = resp.status_code < 400
        return ConnectivitySnapshot(
            is_connected=True,
            is_internet_reachable=reachable,
            connection_type="unknown",
        )

    def add_listener(self, listener: Callable[[ConnectivitySnapshot], None]) -> Unsubscribe:
        return self._listeners.add(listener)

    async def poll(self) -> ConnectivitySnapshot:
        snapshot = await self.fetch()
        if snapshot != self._last:
            self._last = snapshot
            self._listeners.notify(snapshot)
        return snapshot

    def start(self) -> None:
        self._poller.start()

    def stop(self) -> None:
        self._poller.stop()

    async def aclose(self) -> None:
        self.stop()
        if self._owns_client:
            await self._client.aclose()
