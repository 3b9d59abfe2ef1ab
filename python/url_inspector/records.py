from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from .models import ERROR_RESULT, InspectionResult, RowUpdate


def _now(inspected_at: Optional[datetime]) -> datetime:
    return inspected_at if inspected_at is not None else datetime.now(timezone.utc)


def build_success_record(result: InspectionResult, *, inspected_at: Optional[datetime] = None) -> RowUpdate:
    summary = result.indexing_state or result.coverage_state or "OK"
    return RowUpdate(
        result=summary,
        indexing_state=result.indexing_state,
        coverage_state=result.coverage_state,
        last_crawl_time=result.last_crawl_time,
        robots_txt_state=result.robots_txt_state,
        page_fetch_state=result.page_fetch_state,
        mobile_usability=result.mobile_usability,
        canonical_url=result.canonical_url,
        inspection_time=_now(inspected_at),
        error="",
    )


def build_error_record(error: BaseException, *, inspected_at: Optional[datetime] = None) -> RowUpdate:
    # error 列が空だと成功行と区別できないため、メッセージが無ければ例外名を使う
    message = str(error) or type(error).__name__
    return RowUpdate(
        result=ERROR_RESULT,
        inspection_time=_now(inspected_at),
        error=message,
    )
