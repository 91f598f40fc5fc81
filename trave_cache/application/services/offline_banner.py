"""
Offline Banner

接続状態からバナー表示状態を導出するステートマシン。

HIDDEN -> SHOWING_OFFLINE        : オフラインになった瞬間
SHOWING_OFFLINE -> SHOWING_RECONNECTED : オンラインに戻った瞬間
SHOWING_RECONNECTED -> HIDDEN    : 表示時間経過後（その前にオフラインになればタイマー取消）
"""

from __future__ import annotations

from typing import Callable

from loguru import logger

from trave_cache.application.services.connectivity_monitor import ConnectivityMonitor
from trave_cache.models.connectivity import BANNER_MESSAGES, BannerState, ConnectivitySnapshot
from trave_cache.shared.config.settings import BANNER_RECONNECTED_MS
from trave_cache.shared.exceptions import ensure_non_negative
from trave_cache.shared.utils.clock import Cancellable, Clock, SystemClock
from trave_cache.shared.utils.listeners import ListenerRegistry, Unsubscribe


class OfflineBanner:
    """オフライン / 再接続バナーの状態管理"""

    def __init__(self, clock: Clock | None = None, reconnected_ms: int = BANNER_RECONNECTED_MS) -> None:
        self._clock = clock or SystemClock()
        self._reconnected_ms = ensure_non_negative("reconnected_ms", reconnected_ms)
        self._state = BannerState.HIDDEN
        self._hide_timer: Cancellable | None = None
        self._listeners = ListenerRegistry[BannerState]("offline_banner")
        self._detach: Unsubscribe | None = None

    @property
    def state(self) -> BannerState:
        return self._state

    @property
    def visible(self) -> bool:
        return self._state is not BannerState.HIDDEN

    @property
    def message(self) -> str | None:
        return BANNER_MESSAGES[self._state]

    def add_listener(self, listener: Callable[[BannerState], None]) -> Unsubscribe:
        return self._listeners.add(listener)

    def attach(self, monitor: ConnectivityMonitor) -> None:
        """モニターの変更通知を購読し、現在値を反映する"""
        self.detach()
        self._detach = monitor.add_listener(self._on_snapshot)
        self.on_connectivity(monitor.is_online)

    def detach(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._cancel_hide_timer()

    def _on_snapshot(self, snapshot: ConnectivitySnapshot) -> None:
        self.on_connectivity(snapshot.is_online)

    def on_connectivity(self, is_online: bool | None) -> BannerState:
        """接続状態の変化を反映する（None は不明として無視）"""
        if is_online is False:
            self._cancel_hide_timer()
            self._transition(BannerState.SHOWING_OFFLINE)
        elif is_online is True and self._state is BannerState.SHOWING_OFFLINE:
            self._transition(BannerState.SHOWING_RECONNECTED)
            self._hide_timer = self._clock.call_later(self._reconnected_ms, self._hide)
        return self._state

    def _hide(self) -> None:
        self._hide_timer = None
        if self._state is BannerState.SHOWING_RECONNECTED:
            self._transition(BannerState.HIDDEN)

    def _cancel_hide_timer(self) -> None:
        if self._hide_timer is not None:
            self._hide_timer.cancel()
            self._hide_timer = None

    def _transition(self, state: BannerState) -> None:
        if state is self._state:
            return
        logger.debug(f"バナー状態: {self._state.value} -> {state.value}", event="offline_banner")
        self._state = state
        self._listeners.notify(state)
