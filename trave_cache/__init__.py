"""
trave-cache

クライアントサイドのキャッシュアサイド・リクエスト重複排除・オフラインフォールバック。
"""

__version__ = "0.3.0"
