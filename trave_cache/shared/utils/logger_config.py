"""
Loguruベースのログ設定

ライブラリ自体は import 時にハンドラーを変更しない。
CLI やホストアプリケーションが setup_logger() を1度呼ぶ。
"""

from __future__ import annotations

import re
import sys
from typing import Any, TextIO

from loguru import logger

from trave_cache.shared.config.settings import reload_settings

LOG_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# (pattern, replacement) の順に適用
_MASKS: list[tuple[re.Pattern[str], str]] = [
    # URL 埋め込みの認証情報
    (re.compile(r"(https?://)[^/\s:@]+:[^/\s@]+@"), r"\1***:***@"),
    # Authorization ヘッダー
    (re.compile(r"(bearer)\s+[A-Za-z0-9._~+/=-]+", re.IGNORECASE), r"\1 ***"),
    # トークン類（認証系のキャッシュキーに含まれ得る）
    (
        re.compile(r"(password|passwd|token|secret|api_?key)[=:\s]+[^\s&]+", re.IGNORECASE),
        r"\1=***",
    ),
    # cache.db の場所はファイル名のみ残す
    (re.compile(r"(?:/[^\s/]+)+/([^/\s]+\.db)"), r".../\1"),
    (re.compile(r"/(?:home|root|Users)/[^\s]+"), "[HOME_PATH]"),
]


def sanitize_sensitive_info(message: str) -> str:
    """ログメッセージから認証情報とローカルパスを除去する"""
    for pattern, replacement in _MASKS:
        message = pattern.sub(replacement, message)
    return message


def _secure_message_filter(record: dict[str, Any]) -> bool:
    record["message"] = sanitize_sensitive_info(str(record["message"]))
    return True


def _resolve_level(verbose: bool, quiet: bool, level_override: str | None) -> str:
    if level_override:
        return level_override.upper()
    if quiet:
        return "ERROR"
    if verbose:
        return "DEBUG"
    # 環境変数 LOG_LEVEL、デフォルトは WARNING
    return reload_settings().log_level.upper()


def setup_logger(
    verbose: bool = False,
    quiet: bool = False,
    level_override: str | None = None,
    sink: TextIO | None = None,
) -> str:
    """
    ログ設定（既存ハンドラーは全て置き換える）

    Args:
        verbose: DEBUG レベルで出力
        quiet: ERROR レベルのみ出力
        level_override: ログレベルの直接指定（verbose / quiet より優先）
        sink: 出力先（デフォルトは stderr）

    Returns:
        適用されたログレベル
    """
    level = _resolve_level(verbose, quiet, level_override)

    logger.remove()
    logger.add(
        sink if sink is not None else sys.stderr,
        level=level,
        format=LOG_FORMAT,
        backtrace=level == "DEBUG",
        diagnose=False,
        filter=_secure_message_filter,
    )

    logger.debug(f"ログ設定完了: level={level}")
    return level
