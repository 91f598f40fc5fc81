"""
Connectivity Monitor

接続状態ソースを購読し、現在のスナップショットを保持する。
初期値はワンショットの fetch() で取得し、以降は変更通知で更新する。
"""

from __future__ import annotations

from typing import Callable, Protocol

from loguru import logger

from trave_cache.models.connectivity import ConnectivitySnapshot
from trave_cache.shared.utils.listeners import ListenerRegistry, Unsubscribe

ConnectivityListener = Callable[[ConnectivitySnapshot], None]


class ConnectivitySource(Protocol):
    """プラットフォームの接続状態プロバイダー"""

    async def fetch(self) -> ConnectivitySnapshot: ...

    def add_listener(self, listener: ConnectivityListener) -> Unsubscribe: ...


class ManualConnectivitySource:
    """ホストアプリケーションから状態をプッシュする接続状態ソース"""

    def __init__(self, snapshot: ConnectivitySnapshot | None = None) -> None:
        self._snapshot = snapshot if snapshot is not None else ConnectivitySnapshot.online()
        self._listeners = ListenerRegistry[ConnectivitySnapshot]("connectivity_source")

    @property
    def snapshot(self) -> ConnectivitySnapshot:
        return self._snapshot

    async def fetch(self) -> ConnectivitySnapshot:
        return self._snapshot

    def add_listener(self, listener: ConnectivityListener) -> Unsubscribe:
        return self._listeners.add(listener)

    def update(self, snapshot: ConnectivitySnapshot) -> None:
        if snapshot == self._snapshot:
            return
        self._snapshot = snapshot
        self._listeners.notify(snapshot)

    def set_online(self, online: bool) -> None:
        self.update(ConnectivitySnapshot.online() if online else ConnectivitySnapshot.offline())


class ConnectivityMonitor:
    """接続状態の購読と現在値の保持"""

    def __init__(self, source: ConnectivitySource) -> None:
        self._source = source
        self._snapshot = ConnectivitySnapshot()
        self._listeners = ListenerRegistry[ConnectivitySnapshot]("connectivity_monitor")
        self._unsubscribe: Unsubscribe | None = None
        self._notified = False

    @property
    def is_started(self) -> bool:
        return self._unsubscribe is not None

    @property
    def is_online(self) -> bool | None:
        return self._snapshot.is_online

    def get_connectivity_snapshot(self) -> ConnectivitySnapshot:
        return self._snapshot

    def add_listener(self, listener: ConnectivityListener) -> Unsubscribe:
        return self._listeners.add(listener)

    async def start(self) -> ConnectivitySnapshot:
        """初期状態をプローブし、変更通知の購読を開始する"""
        if self._unsubscribe is None:
            self._notified = False
            self._unsubscribe = self._source.add_listener(self._on_source_change)
            try:
                initial = await self._source.fetch()
            except Exception as e:
                logger.warning(f"接続状態の初期取得に失敗: {e}")
            else:
                # fetch 中に通知が届いていれば、そちらが新しい
                if not self._notified:
                    self._apply(initial)
            logger.info(f"接続監視を開始: online={self.is_online}")
        return self._snapshot

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("接続監視を停止")

    def _on_source_change(self, snapshot: ConnectivitySnapshot) -> None:
        self._notified = True
        self._apply(snapshot)

    def _apply(self, snapshot: ConnectivitySnapshot) -> None:
        previous = self._snapshot
        self._snapshot = snapshot
        if previous.is_online != snapshot.is_online:
            logger.info(
                f"接続状態が変化: {previous.is_online} -> {snapshot.is_online}",
                event="connectivity_change",
                connectionType=snapshot.connection_type,
            )
        if previous != snapshot:
            self._listeners.notify(snapshot)
