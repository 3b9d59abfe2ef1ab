"""
URL Inspector パッケージ。

Search Console の URL 検査 API を対象 URL の一覧に対して逐次実行し、
結果をワークブックへ書き戻すモジュール群をまとめる。
"""

__all__ = [
    "config",
    "client",
    "control",
    "credentials",
    "errors",
    "models",
    "records",
    "runner",
    "selector",
    "storage",
    "cli",
]
