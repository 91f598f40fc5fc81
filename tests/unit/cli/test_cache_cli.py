"""entrypoints/cli/cache.py のテスト"""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest
import respx
from loguru import logger
from typer.testing import CliRunner

from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.application.services.ttl_cache import TtlCache
from trave_cache.entrypoints.cli.cache import app
from trave_cache.infrastructure.storage.sqlite_store import SqliteKeyValueStore

runner = CliRunner()

PROBE_URL = "https://probe.test/generate_204"


def _seed(db_path: str, entries: dict[str, tuple[object, int]]) -> None:
    async def _run() -> None:
        store = DurableCacheStore(SqliteKeyValueStore(db_path))
        cache = TtlCache(store)
        for key, (value, ttl) in entries.items():
            await cache.cache_data(key, value, ttl)
        await store.set("unrelated", "keep")
        await store.close()

    asyncio.run(_run())


@pytest.fixture(autouse=True)
def _reset_logger():
    """CLI が CliRunner の stderr に付けたシンクを外す"""
    yield
    logger.remove()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "cache.db")


class TestInfo:
    def test_empty_cache(self, db_path):
        result = runner.invoke(app, ["--db", db_path, "info"])

        assert result.exit_code == 0
        assert "キャッシュは空です" in result.output

    def test_lists_keys(self, db_path):
        _seed(db_path, {"posts:1": ({"id": 1}, 60_000), "user:42": ({"name": "Ann"}, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "info"])

        assert result.exit_code == 0
        assert "posts:1" in result.output
        assert "user:42" in result.output
        assert "unrelated" not in result.output


class TestGet:
    def test_prints_json(self, db_path):
        _seed(db_path, {"user:42": ({"name": "Ann"}, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "get", "user:42"])

        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"name": "Ann"}

    def test_missing_key_exits_1(self, db_path):
        result = runner.invoke(app, ["--db", db_path, "get", "missing"])

        assert result.exit_code == 1

    def test_db_path_from_environment(self, db_path, monkeypatch):
        from trave_cache.shared.config.settings import reload_settings

        _seed(db_path, {"k": ("v", 60_000)})
        monkeypatch.setenv("TRAVE_CACHE_DB_PATH", db_path)
        reload_settings()
        try:
            result = runner.invoke(app, ["get", "k"])
        finally:
            monkeypatch.delenv("TRAVE_CACHE_DB_PATH")
            reload_settings()

        assert result.exit_code == 0
        assert json.loads(result.stdout) == "v"


class TestClear:
    def test_clear_single_key(self, db_path):
        _seed(db_path, {"a": (1, 60_000), "b": (2, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "clear", "a"])

        assert result.exit_code == 0
        assert runner.invoke(app, ["--db", db_path, "get", "a"]).exit_code == 1
        assert runner.invoke(app, ["--db", db_path, "get", "b"]).exit_code == 0
        assert "キャッシュを削除しました: a" in result.output

    def test_clear_missing_key_reports_absence(self, db_path):
        _seed(db_path, {"a": (1, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "clear", "missing"])

        assert result.exit_code == 1
        assert "キャッシュがありません: missing" in result.output
        assert "削除しました" not in result.output
        assert runner.invoke(app, ["--db", db_path, "get", "a"]).exit_code == 0

    def test_clear_all_keeps_unrelated_keys(self, db_path):
        _seed(db_path, {"a": (1, 60_000), "b": (2, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "clear", "--all"])

        assert result.exit_code == 0
        assert "2 件" in result.output

        async def _remaining() -> list[str]:
            store = SqliteKeyValueStore(db_path)
            try:
                return await store.get_all_keys()
            finally:
                await store.close()

        assert asyncio.run(_remaining()) == ["unrelated"]

    def test_requires_key_or_all(self, db_path):
        result = runner.invoke(app, ["--db", db_path, "clear"])

        assert result.exit_code == 2


class TestPurge:
    def test_purges_expired_entries(self, db_path):
        _seed(db_path, {"expired": (1, 0), "fresh": (2, 60_000)})

        result = runner.invoke(app, ["--db", db_path, "purge"])

        assert result.exit_code == 0
        assert "1 件" in result.output
        assert runner.invoke(app, ["--db", db_path, "get", "fresh"]).exit_code == 0


class TestProbe:
    @respx.mock
    def test_online(self):
        respx.get(PROBE_URL).mock(return_value=httpx.Response(204))

        result = runner.invoke(app, ["probe", "--url", PROBE_URL])

        assert result.exit_code == 0
        assert "True" in result.output

    @respx.mock
    def test_offline_exits_1(self):
        respx.get(PROBE_URL).mock(side_effect=httpx.ConnectError("down"))

        result = runner.invoke(app, ["probe", "--url", PROBE_URL])

        assert result.exit_code == 1
        assert "False" in result.output
