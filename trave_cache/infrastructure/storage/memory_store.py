"""In-memory key-value store used when no durable medium is available."""

from __future__ import annotations


class InMemoryKeyValueStore:
    """Dict-backed KeyValueStore. Not durable across restarts.

    Every operation completes without suspending, so no lock is needed under
    the event-loop model.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def multi_remove(self, keys: list[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def get_all_keys(self) -> list[str]:
        return list(self._data)

    async def close(self) -> None:
        return None

    def __len__(self) -> int:
        return len(self._data)
