"""URL 検査ジョブで使用する例外クラス群。"""

from __future__ import annotations


class InspectorError(RuntimeError):
    """url_inspector が送出する例外の基底クラス。"""


class RunConfigurationError(InspectorError):
    """実行前提が満たされずジョブ全体を中断する致命的エラー。"""


class MissingStoreError(RunConfigurationError):
    """行ストアまたは設定ストアが見つからない。"""


class MissingSiteUrlError(RunConfigurationError):
    """設定に siteUrl が存在しない。"""


class InspectionError(InspectorError):
    """1 件の URL 検査に限定される失敗。行に記録されジョブは継続する。"""


class TransportError(InspectionError):
    """接続失敗やタイムアウトなど通信レベルの失敗。"""


class ApiHttpError(InspectionError):
    """2xx 以外の HTTP ステータス。ステータスコードと応答本文を保持する。"""

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"HTTP {status_code} {body}")


class MalformedResponseError(InspectionError):
    """2xx 応答だが期待する構造を持たない。"""


class CredentialError(InspectionError):
    """アクセストークンを取得できない。"""


__all__ = [
    "ApiHttpError",
    "CredentialError",
    "InspectionError",
    "InspectorError",
    "MalformedResponseError",
    "MissingSiteUrlError",
    "MissingStoreError",
    "RunConfigurationError",
    "TransportError",
]
