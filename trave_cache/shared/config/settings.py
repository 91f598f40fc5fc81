"""
Centralized settings

環境変数とデフォルト値の単一ソースを提供する。
各呼び出し側の ttl / dedup_window / cache_duration は引数で上書き可能で、
ここで定義するのはデフォルト値のみ。
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

load_dotenv(find_dotenv(usecwd=True), override=False)

DEFAULT_KEY_PREFIX = "@trave_cache_"
DEFAULT_TTL_MS = 60 * 60 * 1000
OFFLINE_TTL_MS = 24 * 60 * 60 * 1000
DEDUP_WINDOW_MS = 1000
DEDUP_CACHE_DURATION_MS = 5 * 60 * 1000
DEDUP_CLEANUP_INTERVAL_MS = 60 * 1000
BANNER_RECONNECTED_MS = 2000


def _default_data_dir() -> str:
    """XDG準拠のデフォルトデータディレクトリ"""
    env = os.environ.get("TRAVE_CACHE_DATA_DIR")
    if env:
        return env
    return str(Path.home() / ".local" / "share" / "trave-cache")


class Settings(BaseModel):
    """アプリケーション設定"""

    log_level: str = Field(default="WARNING", alias="LOG_LEVEL")

    # durable store
    cache_db_path: str = Field(default="", alias="TRAVE_CACHE_DB_PATH")
    cache_key_prefix: str = Field(
        default=DEFAULT_KEY_PREFIX, min_length=1, alias="TRAVE_CACHE_KEY_PREFIX"
    )

    # TTL cache
    default_ttl_ms: int = Field(default=DEFAULT_TTL_MS, ge=0, alias="TRAVE_CACHE_DEFAULT_TTL_MS")
    offline_ttl_ms: int = Field(default=OFFLINE_TTL_MS, ge=0, alias="TRAVE_CACHE_OFFLINE_TTL_MS")

    # request deduplication
    dedup_window_ms: int = Field(default=DEDUP_WINDOW_MS, ge=0, alias="TRAVE_CACHE_DEDUP_WINDOW_MS")
    dedup_cache_duration_ms: int = Field(
        default=DEDUP_CACHE_DURATION_MS, ge=0, alias="TRAVE_CACHE_DEDUP_CACHE_DURATION_MS"
    )
    dedup_cleanup_interval_ms: int = Field(
        default=DEDUP_CLEANUP_INTERVAL_MS, gt=0, alias="TRAVE_CACHE_DEDUP_CLEANUP_INTERVAL_MS"
    )

    # connectivity
    banner_reconnected_ms: int = Field(
        default=BANNER_RECONNECTED_MS, ge=0, alias="TRAVE_CACHE_BANNER_RECONNECTED_MS"
    )
    connectivity_probe_url: str = Field(
        default="https://clients3.google.com/generate_204", alias="TRAVE_CACHE_PROBE_URL"
    )
    connectivity_probe_interval_ms: int = Field(
        default=15_000, gt=0, alias="TRAVE_CACHE_PROBE_INTERVAL_MS"
    )
    connectivity_probe_timeout: float = Field(default=5.0, gt=0, alias="TRAVE_CACHE_PROBE_TIMEOUT")

    model_config = {"populate_by_name": True}

    def model_post_init(self, __context: Any) -> None:
        """環境変数未設定時にXDGデフォルトパスを自動設定"""
        if not self.cache_db_path:
            self.cache_db_path = str(Path(_default_data_dir()) / "cache.db")


@lru_cache
def get_settings() -> Settings:
    """キャッシュされた設定を取得"""
    return Settings.model_validate(dict(os.environ))


def reload_settings() -> Settings:
    """環境変数の再読み込み"""
    get_settings.cache_clear()
    return get_settings()
