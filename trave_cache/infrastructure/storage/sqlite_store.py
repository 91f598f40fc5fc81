"""
SQLite Key-Value Store

KeyValueDb（同期 SQLAlchemy Core）を asyncio.to_thread でラップした永続ストア。
StaticPool の単一接続を共有するため、ワーカースレッドからの呼び出しは
ロックで直列化する。SQLAlchemy / OS のエラーは StoreError に変換する。
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, TypeVar

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from trave_cache.infrastructure.db.kv_db import KeyValueDb
from trave_cache.shared.exceptions import StoreError

R = TypeVar("R")


class SqliteKeyValueStore:
    """cache.db を使う KeyValueStore 実装"""

    def __init__(self, db_path: str) -> None:
        try:
            self._db = KeyValueDb(db_path)
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"cache.db の初期化に失敗: {e}") from e
        self._lock = threading.Lock()
        logger.info(f"KeyValueDb (SQLAlchemy) を初期化: {db_path}")

    @property
    def db(self) -> KeyValueDb:
        return self._db

    def _locked(self, fn: Callable[..., R], *args: object) -> R:
        with self._lock:
            return fn(*args)

    async def _run(self, operation: str, fn: Callable[..., R], *args: object, key: str | None = None) -> R:
        try:
            return await asyncio.to_thread(self._locked, fn, *args)
        except (SQLAlchemyError, OSError) as e:
            raise StoreError(f"{operation} failed: {e}", key=key) from e

    async def get(self, key: str) -> str | None:
        return await self._run("get", self._db.get_value, key, key=key)

    async def set(self, key: str, value: str) -> None:
        await self._run("set", self._db.set_value, key, value, key=key)

    async def remove(self, key: str) -> None:
        await self._run("remove", self._db.delete_values, [key], key=key)

    async def multi_remove(self, keys: list[str]) -> None:
        await self._run("multi_remove", self._db.delete_values, list(keys))

    async def get_all_keys(self) -> list[str]:
        return await self._run("get_all_keys", self._db.list_keys)

    async def close(self) -> None:
        await asyncio.to_thread(self._locked, self._db.close)
