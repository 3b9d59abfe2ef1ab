from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Protocol, Sequence

import google.auth
import google.auth.exceptions
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from .errors import CredentialError

logger = logging.getLogger(__name__)

SEARCH_CONSOLE_SCOPES = ["https://www.googleapis.com/auth/webmasters.readonly"]


class CredentialProvider(Protocol):
    def get_token(self) -> str: ...


class StaticTokenProvider:
    def __init__(self, token: str) -> None:
        self._token = token

    def get_token(self) -> str:
        if not self._token:
            raise CredentialError("Access token is empty")
        return self._token


class GoogleCredentialProvider:
    """サービスアカウント鍵、または Application Default Credentials からトークンを取得する。"""

    def __init__(
        self,
        credentials_file: Optional[Path] = None,
        *,
        scopes: Sequence[str] = SEARCH_CONSOLE_SCOPES,
    ) -> None:
        self.credentials_file = credentials_file
        self.scopes = list(scopes)
        self._credentials = None

    def _load(self):
        if self.credentials_file is not None:
            if not self.credentials_file.exists():
                raise CredentialError(f"Credentials file not found: {self.credentials_file}")
            return service_account.Credentials.from_service_account_file(
                str(self.credentials_file), scopes=self.scopes
            )
        credentials, project = google.auth.default(scopes=self.scopes)
        logger.debug("Application Default Credentials を使用します (project=%s)", project)
        return credentials

    def get_token(self) -> str:
        try:
            if self._credentials is None:
                self._credentials = self._load()
            if not self._credentials.valid:
                self._credentials.refresh(Request())
        except (google.auth.exceptions.GoogleAuthError, ValueError) as exc:
            raise CredentialError(f"Failed to obtain access token: {exc}") from exc
        token = self._credentials.token
        if not token:
            raise CredentialError("Access token is empty")
        return token
