"""Listener registration with cancelable subscriptions."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from loguru import logger

E = TypeVar("E")

Unsubscribe = Callable[[], None]


class ListenerRegistry(Generic[E]):
    """Calls every listener in registration order.

    A failing listener is logged and does not stop the others.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: list[Callable[[E], None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: Callable[[E], None]) -> Unsubscribe:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self, event: E) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"{self._name} リスナーエラー: {e}")
