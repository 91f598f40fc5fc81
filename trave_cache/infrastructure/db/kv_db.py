"""
Key-Value Database Access (SQLAlchemy Core)

cache.db の同期 CRUD 操作を提供する。
非同期側からは asyncio.to_thread 経由で呼び出される。
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, insert, select

from trave_cache.infrastructure.db.base import BaseDbAccess
from trave_cache.infrastructure.db.tables import cache_meta, cache_metadata, kv_entries

SCHEMA_VERSION = "1.0.0"


class KeyValueDb(BaseDbAccess):
    """cache.db CRUD"""

    def __init__(self, db_path: str) -> None:
        super().__init__(db_path)
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        """テーブル作成（IF NOT EXISTS）"""
        cache_meta.create_all(self.engine, checkfirst=True)
        self._set_metadata("schema_version", SCHEMA_VERSION)

    def _now(self) -> str:
        return datetime.now().isoformat()  # noqa: DTZ005

    # --- Metadata ---

    def _get_metadata(self, key: str) -> str | None:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(cache_metadata.c.value).where(cache_metadata.c.key == key)
            ).fetchone()
            return row[0] if row else None

    def _set_metadata(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(cache_metadata)
                .values(key=key, value=value, updated_at=self._now())
                .prefix_with("OR REPLACE")
            )

    def get_schema_version(self) -> str:
        return self._get_metadata("schema_version") or "unknown"

    # ===== Entries =====

    def get_value(self, key: str) -> str | None:
        with self.engine.connect() as conn:
            row = conn.execute(select(kv_entries.c.value).where(kv_entries.c.key == key)).fetchone()
            return row[0] if row else None

    def set_value(self, key: str, value: str) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                insert(kv_entries)
                .values(key=key, value=value, updated_at=self._now())
                .prefix_with("OR REPLACE")
            )

    def delete_values(self, keys: list[str]) -> int:
        if not keys:
            return 0
        with self.engine.begin() as conn:
            result = conn.execute(delete(kv_entries).where(kv_entries.c.key.in_(keys)))
            return result.rowcount

    def list_keys(self, prefix: str = "") -> list[str]:
        stmt = select(kv_entries.c.key).order_by(kv_entries.c.key)
        if prefix:
            stmt = stmt.where(kv_entries.c.key.startswith(prefix, autoescape=True))
        with self.engine.connect() as conn:
            keys = [row[0] for row in conn.execute(stmt).fetchall()]
        # SQLite の LIKE は ASCII の大文字小文字を区別しない
        return [key for key in keys if key.startswith(prefix)]
