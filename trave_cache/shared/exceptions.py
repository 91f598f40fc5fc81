"""
カスタム例外モジュール

プロジェクト固有の例外クラスを定義

producer（呼び出し側が渡すフェッチ関数）の例外はラップせず、そのまま伝播する。
"""


class TraveCacheError(Exception):
    """プロジェクトの基底例外クラス"""

    pass


# =============================================================================
# ストレージ関連
# =============================================================================


class StoreError(TraveCacheError):
    """永続ストアの I/O エラー（境界で捕捉され、キャッシュミスとして扱われる）"""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


class SerializationError(TraveCacheError):
    """キャッシュエントリのシリアライズ / デシリアライズエラー"""

    def __init__(self, message: str, key: str | None = None) -> None:
        super().__init__(message)
        self.key = key


# =============================================================================
# オフライン関連
# =============================================================================


class NoCachedDataError(TraveCacheError):
    """オフライン時にキャッシュが存在しないエラー"""

    def __init__(self, key: str) -> None:
        super().__init__(f"No cached data available for '{key}'")
        self.key = key


# =============================================================================
# 設定関連
# =============================================================================


class ConfigurationError(TraveCacheError):
    """設定エラーの基底クラス"""

    pass


class InvalidTtlError(ConfigurationError, ValueError):
    """負の TTL / ウィンドウ / 保持期間が指定されたエラー"""

    def __init__(self, name: str, value: int) -> None:
        super().__init__(f"{name} must be >= 0 (got {value})")
        self.name = name
        self.value = value


def ensure_non_negative(name: str, value: int) -> int:
    """ミリ秒指定の期間を検証して返す"""
    if value < 0:
        raise InvalidTtlError(name, value)
    return value
