"""Durable key-value store adapter contract."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class KeyValueStore(Protocol):
    """Async string-keyed store that survives process restarts.

    Implementations may raise on I/O failure; the durable cache store layer
    catches everything and degrades to a cache miss.
    """

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...

    async def multi_remove(self, keys: list[str]) -> None: ...

    async def get_all_keys(self) -> list[str]: ...

    async def close(self) -> None: ...
