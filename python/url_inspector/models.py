from __future__ import annotations

from datetime import datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field

QUICK_CHECK_HEADERS: List[str] = [
    "URL",
    "Result",
    "IndexingState",
    "CoverageState",
    "LastCrawlTime",
    "RobotsTxtState",
    "PageFetchState",
    "MobileUsability",
    "CanonicalUrl",
    "InspectionTime",
    "Error",
]
SETTINGS_HEADERS: List[str] = ["Key", "Value"]
LOGS_HEADERS: List[str] = ["Timestamp", "Type", "Message", "Details"]

# QUICK_CHECK_HEADERS と同じ並び
ROW_FIELDS: List[str] = [
    "url",
    "result",
    "indexing_state",
    "coverage_state",
    "last_crawl_time",
    "robots_txt_state",
    "page_fetch_state",
    "mobile_usability",
    "canonical_url",
    "inspection_time",
    "error",
]

ERROR_RESULT = "ERROR"


class RunMode:
    ALL = "all"
    NEW = "new"
    EMPTY = "empty"
    ERRORS = "errors"


def _text(mapping: Any, key: str) -> str:
    if not isinstance(mapping, dict):
        return ""
    value = mapping.get(key)
    if value is None:
        return ""
    return str(value)


class SubjectRow(BaseModel):
    url: str = ""
    result: str = ""
    indexing_state: str = ""
    coverage_state: str = ""
    last_crawl_time: str = ""
    robots_txt_state: str = ""
    page_fetch_state: str = ""
    mobile_usability: str = ""
    canonical_url: str = ""
    inspection_time: str = ""
    error: str = ""

    def never_processed(self) -> bool:
        return not self.result and not self.inspection_time


class InspectionResult(BaseModel):
    indexing_state: str = ""
    coverage_state: str = ""
    last_crawl_time: str = ""
    robots_txt_state: str = ""
    page_fetch_state: str = ""
    mobile_usability: str = ""
    canonical_url: str = ""
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, inspection_result: dict[str, Any]) -> "InspectionResult":
        """API 応答の inspectionResult オブジェクトから必要な項目を取り出す。"""
        index_status = inspection_result.get("indexStatusResult") or {}
        mobile = inspection_result.get("mobileUsabilityResult") or {}
        canonical = _text(index_status, "googleCanonical") or _text(index_status, "userCanonical")
        return cls(
            indexing_state=_text(index_status, "indexingState"),
            coverage_state=_text(index_status, "coverageState"),
            last_crawl_time=_text(index_status, "lastCrawlTime"),
            robots_txt_state=_text(index_status, "robotsTxtState"),
            page_fetch_state=_text(index_status, "pageFetchState"),
            mobile_usability=_text(mobile, "verdict"),
            canonical_url=canonical,
            raw=inspection_result,
        )


class RowUpdate(BaseModel):
    """1 行分の検査結果。url 列は含まない。"""

    result: str
    indexing_state: str = ""
    coverage_state: str = ""
    last_crawl_time: str = ""
    robots_txt_state: str = ""
    page_fetch_state: str = ""
    mobile_usability: str = ""
    canonical_url: str = ""
    inspection_time: datetime
    error: str = ""

    def as_row_values(self) -> dict[str, str]:
        values = self.model_dump(exclude={"inspection_time"})
        values["inspection_time"] = self.inspection_time.isoformat()
        return values


class LogEntry(BaseModel):
    timestamp: datetime
    level: Literal["INFO", "ERROR"]
    category: str
    detail: str = ""


class RunState(BaseModel):
    run_type: str
    mode: str
    processed: int = 0
    inspected: int = 0
    stop_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
