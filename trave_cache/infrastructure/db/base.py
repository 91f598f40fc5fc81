"""
Base Database Access

cache.db 用の SQLAlchemy Core Engine を管理する。
asyncio.to_thread のワーカースレッドから呼ばれるため、単一接続を
StaticPool で共有し check_same_thread を無効にする。
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.pool import StaticPool

MEMORY_DB_PATH = ":memory:"
BUSY_TIMEOUT_MS = 5000


def _sqlite_url(db_path: str) -> str:
    if db_path == MEMORY_DB_PATH:
        return "sqlite://"
    path = Path(db_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path}"


class BaseDbAccess:
    """SQLite Engine の生成・PRAGMA 設定・破棄"""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._engine = create_engine(
            _sqlite_url(db_path),
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        event.listen(self._engine, "connect", self._on_connect)

    def _on_connect(self, dbapi_conn: object, _connection_record: object) -> None:
        cursor = dbapi_conn.cursor()  # type: ignore[attr-defined]
        try:
            if not self.in_memory:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        finally:
            cursor.close()

    @property
    def engine(self) -> Engine:
        return self._engine

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def in_memory(self) -> bool:
        return self._db_path == MEMORY_DB_PATH

    def close(self) -> None:
        self._engine.dispose()
