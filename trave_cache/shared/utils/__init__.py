"""
ユーティリティモジュール
"""
