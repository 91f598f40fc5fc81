"""
SQLAlchemy Core Table Definitions

cache.db のテーブル定義。
値は TTL エンジンがシリアライズした JSON 文字列をそのまま保持する。
"""

from __future__ import annotations

from sqlalchemy import Column, MetaData, Table, Text

cache_meta = MetaData()

# --- kv_entries ---
kv_entries = Table(
    "kv_entries",
    cache_meta,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", Text, nullable=False),
)

# --- cache_metadata ---
cache_metadata = Table(
    "cache_metadata",
    cache_meta,
    Column("key", Text, primary_key=True),
    Column("value", Text, nullable=False),
    Column("updated_at", Text),
)
