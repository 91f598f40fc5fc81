"""
Durable Cache Store

KeyValueStore アダプターの fail-open 境界。
アダプターの例外はここで全て捕捉してログに残し、キャッシュミス / no-op に変換する。
"""

from __future__ import annotations

from loguru import logger

from trave_cache.infrastructure.storage.protocols import KeyValueStore


class DurableCacheStore:
    """永続ストアの薄いラッパー（例外を伝播しない）"""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    @property
    def adapter(self) -> KeyValueStore:
        return self._store

    @staticmethod
    def _log_failure(operation: str, error: Exception, key: str | None = None) -> None:
        logger.warning(
            f"キャッシュストア {operation} に失敗: {error}",
            event="cache_store_error",
            operation=operation,
            cacheKey=key,
        )

    async def get(self, key: str) -> str | None:
        try:
            return await self._store.get(key)
        except Exception as e:
            self._log_failure("get", e, key)
            return None

    async def set(self, key: str, value: str) -> bool:
        try:
            await self._store.set(key, value)
            return True
        except Exception as e:
            self._log_failure("set", e, key)
            return False

    async def remove(self, key: str) -> None:
        try:
            await self._store.remove(key)
        except Exception as e:
            self._log_failure("remove", e, key)

    async def remove_many(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            await self._store.multi_remove(keys)
        except Exception as e:
            self._log_failure("multi_remove", e)

    async def list_keys(self, prefix: str = "") -> list[str]:
        try:
            keys = await self._store.get_all_keys()
        except Exception as e:
            self._log_failure("get_all_keys", e)
            return []
        return [key for key in keys if key.startswith(prefix)]

    async def close(self) -> None:
        try:
            await self._store.close()
        except Exception as e:
            self._log_failure("close", e)
