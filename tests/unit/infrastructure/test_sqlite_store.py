"""SQLite / in-memory KeyValueStore adapters のテスト"""

from __future__ import annotations

import asyncio
import threading
import time

import pytest
from sqlalchemy.exc import OperationalError

from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.infrastructure.storage import InMemoryKeyValueStore, KeyValueStore, SqliteKeyValueStore
from trave_cache.shared.exceptions import StoreError


@pytest.mark.asyncio
async def test_sqlite_store_round_trip(tmp_path) -> None:
    store = SqliteKeyValueStore(str(tmp_path / "cache.db"))
    try:
        await store.set("a", "1")
        await store.set("b", "2")
        await store.set("c", "3")

        assert await store.get("a") == "1"
        assert sorted(await store.get_all_keys()) == ["a", "b", "c"]

        await store.remove("a")
        await store.multi_remove(["b", "missing"])

        assert await store.get("a") is None
        assert await store.get_all_keys() == ["c"]
    finally:
        await store.close()


@pytest.mark.asyncio
async def test_sqlite_store_survives_reopen(tmp_path) -> None:
    path = str(tmp_path / "cache.db")
    store = SqliteKeyValueStore(path)
    await store.set("persisted", '{"value": 1}')
    await store.close()

    reopened = SqliteKeyValueStore(path)
    try:
        assert await reopened.get("persisted") == '{"value": 1}'
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_sqlite_store_wraps_database_errors(tmp_path, monkeypatch) -> None:
    store = SqliteKeyValueStore(str(tmp_path / "cache.db"))

    def broken(_key: str) -> str | None:
        raise OperationalError("SELECT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store.db, "get_value", broken)
    try:
        with pytest.raises(StoreError) as exc_info:
            await store.get("k")
        assert exc_info.value.key == "k"
    finally:
        await store.close()


def test_sqlite_store_init_failure_raises_store_error(tmp_path) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")

    with pytest.raises(StoreError):
        SqliteKeyValueStore(str(blocker / "cache.db"))


@pytest.mark.asyncio
async def test_memory_store() -> None:
    store = InMemoryKeyValueStore({"x": "1"})

    await store.set("y", "2")
    await store.multi_remove(["x"])

    assert await store.get("x") is None
    assert await store.get_all_keys() == ["y"]
    assert len(store) == 1


def test_adapters_satisfy_protocol(tmp_path) -> None:
    sqlite_store = SqliteKeyValueStore(str(tmp_path / "cache.db"))
    try:
        assert isinstance(sqlite_store, KeyValueStore)
        assert isinstance(InMemoryKeyValueStore(), KeyValueStore)
    finally:
        sqlite_store.db.close()


@pytest.mark.asyncio
async def test_sqlite_store_concurrent_writes_all_persist(tmp_path) -> None:
    path = str(tmp_path / "cache.db")
    store = DurableCacheStore(SqliteKeyValueStore(path))
    keys = [f"k{i}" for i in range(200)]

    results = await asyncio.gather(*(store.set(key, f"v-{key}") for key in keys))
    await store.close()

    assert all(results)
    reopened = SqliteKeyValueStore(path)
    try:
        assert sorted(await reopened.get_all_keys()) == sorted(keys)
        assert await reopened.get("k0") == "v-k0"
        assert await reopened.get("k199") == "v-k199"
    finally:
        await reopened.close()


@pytest.mark.asyncio
async def test_sqlite_store_serializes_worker_calls(tmp_path, monkeypatch) -> None:
    store = SqliteKeyValueStore(str(tmp_path / "cache.db"))
    original = store.db.set_value
    active = 0
    max_active = 0
    guard = threading.Lock()

    def tracking_set(key: str, value: str) -> None:
        nonlocal active, max_active
        with guard:
            active += 1
            max_active = max(max_active, active)
        try:
            time.sleep(0.001)
            original(key, value)
        finally:
            with guard:
                active -= 1

    monkeypatch.setattr(store.db, "set_value", tracking_set)
    try:
        await asyncio.gather(*(store.set(f"k{i}", "v") for i in range(20)))
    finally:
        await store.close()

    assert max_active == 1
