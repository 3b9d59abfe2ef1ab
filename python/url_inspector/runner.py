from __future__ import annotations

import logging
from typing import Optional

from .client import InspectionClient
from .config import RunSettings
from .control import Clock, MemoryStopFlag, RateLimiter, StopFlag, SystemClock
from .credentials import CredentialProvider
from .errors import InspectionError, MissingSiteUrlError, MissingStoreError
from .models import LogEntry, RunMode, RunState
from .records import build_error_record, build_success_record
from .selector import normalize_mode, should_process
from .storage import LogSink, RowStore, SettingsStore

logger = logging.getLogger(__name__)

STOP_REQUESTED = "Stop requested"
LIMIT_REACHED = "Limit reached"


class InspectionRunner:
    """検査対象行を順に処理し、結果を行ストアへ書き戻す。

    1 回の実行は逐次処理のみで、API 呼び出しの間には設定された待機を挟む。
    同じストアに対する同時実行は呼び出し側で防ぐこと。
    """

    def __init__(
        self,
        row_store: Optional[RowStore],
        settings_store: Optional[SettingsStore],
        client: InspectionClient,
        credentials: CredentialProvider,
        *,
        log_sink: Optional[LogSink] = None,
        stop_flag: Optional[StopFlag] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._rows = row_store
        self._settings = settings_store
        self._client = client
        self._credentials = credentials
        self._log_sink = log_sink
        self._stop_flag = stop_flag if stop_flag is not None else MemoryStopFlag()
        self._clock = clock if clock is not None else SystemClock()
        self.last_run: Optional[RunState] = None

    def run(self, run_type: str = "full", mode: Optional[str] = None) -> str:
        rows = self._rows
        if rows is None:
            raise MissingStoreError("Quick Check sheet not found")
        if self._settings is None:
            raise MissingStoreError("Settings sheet not found")

        settings = RunSettings.from_snapshot(self._settings.snapshot())
        if not settings.site_url:
            raise MissingSiteUrlError("Missing siteUrl setting")

        self._stop_flag.clear()
        limiter = RateLimiter(settings.delay_ms, self._clock)
        state = RunState(run_type=run_type, mode=normalize_mode(mode), started_at=self._clock.now())
        self.last_run = state
        logger.info(
            "検査を開始します: type=%s mode=%s limit=%d delay=%dms",
            run_type,
            state.mode,
            settings.max_requests_per_run,
            settings.delay_ms,
        )

        for index, listed in enumerate(rows.list_rows()):
            url = listed.url.strip()
            if not url:
                continue
            if self._stop_flag.is_set():
                state.stop_reason = STOP_REQUESTED
                self._log("INFO", STOP_REQUESTED, f"Stopped after {state.processed} URLs")
                break

            row = rows.read_row(index)
            if not should_process(state.mode, row.result, row.error):
                continue
            if state.processed >= settings.max_requests_per_run:
                state.stop_reason = LIMIT_REACHED
                self._log("INFO", LIMIT_REACHED, f"maxRequestsPerRun={settings.max_requests_per_run}")
                break

            state.inspected += 1
            self._inspect_row(rows, index, url, settings.site_url)
            state.processed += 1
            limiter.pause()

        state.finished_at = self._clock.now()
        if state.inspected == 0:
            return f'No rows matched mode "{state.mode}"'
        return f'Processed {state.processed} URLs in mode "{state.mode}"'

    def _inspect_row(self, rows: RowStore, index: int, url: str, site_url: str) -> None:
        try:
            token = self._credentials.get_token()
            result = self._client.inspect(url, site_url, token)
        except InspectionError as exc:
            record = build_error_record(exc, inspected_at=self._clock.now())
            rows.write_row(index, record)
            self._log("ERROR", "Inspection", f"Failed for {url}: {record.error}")
            return

        rows.write_row(index, build_success_record(result, inspected_at=self._clock.now()))
        self._log("INFO", "Inspection", f"OK for {url}")

    def _log(self, level: str, category: str, detail: str) -> None:
        if level == "ERROR":
            logger.error("%s: %s", category, detail)
        else:
            logger.info("%s: %s", category, detail)
        if self._log_sink is not None:
            self._log_sink.append(
                LogEntry(timestamp=self._clock.now(), level=level, category=category, detail=detail)
            )


def run_quick_check(runner: InspectionRunner, mode: Optional[str] = RunMode.NEW) -> str:
    return runner.run("quick", normalize_mode(mode, RunMode.NEW))


def run_full_inspection(runner: InspectionRunner, mode: Optional[str] = RunMode.ALL) -> str:
    return runner.run("full", normalize_mode(mode, RunMode.ALL))
