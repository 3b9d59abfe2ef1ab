from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .client import URL_INSPECTION_ENDPOINT

DEFAULT_MAX_REQUESTS_PER_RUN = 100
DEFAULT_DELAY_MS = 1100


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        pass
    # スプレッドシート由来の "3.0" のような値も受け付ける
    try:
        number = float(text)
    except ValueError:
        return None
    return int(number) if number.is_integer() else None


class RunSettings(BaseModel):
    """1 回の実行で使う設定のスナップショット。"""

    model_config = ConfigDict(frozen=True)

    site_url: str = ""
    max_requests_per_run: int = DEFAULT_MAX_REQUESTS_PER_RUN
    delay_ms: int = DEFAULT_DELAY_MS

    @field_validator("site_url", mode="before")
    @classmethod
    def _strip_site_url(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("max_requests_per_run", mode="before")
    @classmethod
    def _lenient_budget(cls, value: Any) -> int:
        parsed = _parse_int(value)
        if parsed is None or parsed <= 0:
            return DEFAULT_MAX_REQUESTS_PER_RUN
        return parsed

    @field_validator("delay_ms", mode="before")
    @classmethod
    def _lenient_delay(cls, value: Any) -> int:
        parsed = _parse_int(value)
        if parsed is None or parsed < 0:
            return DEFAULT_DELAY_MS
        return parsed

    @classmethod
    def from_snapshot(cls, snapshot: Mapping[str, Any]) -> "RunSettings":
        return cls(
            site_url=snapshot.get("siteUrl"),
            max_requests_per_run=snapshot.get("maxRequestsPerRun"),
            delay_ms=snapshot.get("delayMs"),
        )


class AppConfig(BaseModel):
    workbook_dir: Path = Field(default=Path("./workbook"))
    credentials_file: Optional[Path] = None
    access_token: Optional[str] = None
    endpoint: str = URL_INSPECTION_ENDPOINT
    language_code: str = "en-US"
    request_timeout: float = 30.0
    stop_file: Optional[Path] = None

    @field_validator("request_timeout")
    @classmethod
    def _validate_timeout(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("request_timeout は 0 より大きい値を指定してください。")
        return value

    def stop_path(self) -> Path:
        if self.stop_file is not None:
            return self.stop_file
        return self.workbook_dir / "STOP"
