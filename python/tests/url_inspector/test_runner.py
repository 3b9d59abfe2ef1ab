"""InspectionRunner のテスト"""

from __future__ import annotations

import httpx
import pytest

from url_inspector.client import InspectionClient
from url_inspector.control import MemoryStopFlag
from url_inspector.errors import (
    CredentialError,
    MalformedResponseError,
    MissingSiteUrlError,
    MissingStoreError,
    TransportError,
)
from url_inspector.models import InspectionResult, SubjectRow
from url_inspector.runner import InspectionRunner, run_full_inspection, run_quick_check
from url_inspector.storage import MemoryWorkbook

from .conftest import FakeInspectionClient, FlippingStopFlag

SITE = "sc-domain:example.com"
PROVIDER_FIELDS = (
    "indexing_state",
    "coverage_state",
    "last_crawl_time",
    "robots_txt_state",
    "page_fetch_state",
    "mobile_usability",
    "canonical_url",
)


def _workbook(urls, **settings) -> MemoryWorkbook:
    snapshot = {"siteUrl": SITE, "delayMs": "0"}
    snapshot.update(settings)
    return MemoryWorkbook([SubjectRow(url=url) for url in urls], snapshot)


def _urls(count: int) -> list[str]:
    return [f"https://example.com/{i}" for i in range(count)]


class TestPreconditions:
    def test_missing_row_store(self, fake_client):
        runner = InspectionRunner(None, MemoryWorkbook(), fake_client, None)
        with pytest.raises(MissingStoreError):
            runner.run("full", "all")

    def test_missing_settings_store(self, fake_client):
        runner = InspectionRunner(MemoryWorkbook(), None, fake_client, None)
        with pytest.raises(MissingStoreError):
            runner.run("full", "all")

    def test_missing_site_url_touches_no_rows(self, make_runner, fake_client):
        workbook = _workbook(_urls(2), siteUrl="  ")
        with pytest.raises(MissingSiteUrlError):
            make_runner(workbook, fake_client).run("full", "all")
        assert fake_client.calls == []
        assert all(row.never_processed() for row in workbook.rows)


class TestScenarios:
    def test_budget_of_one_processes_first_row_only(self, make_runner):
        """maxRequestsPerRun=1 では先頭の 1 行だけが処理される"""
        workbook = _workbook(["https://example.com/a", "https://example.com/b"], maxRequestsPerRun="1")
        client = FakeInspectionClient({"https://example.com/a": InspectionResult(indexing_state="INDEXED")})

        message = make_runner(workbook, client).run("full", "all")

        assert message == 'Processed 1 URLs in mode "all"'
        assert workbook.rows[0].result == "INDEXED"
        assert workbook.rows[1].never_processed()
        assert [entry.category for entry in workbook.entries] == ["Inspection", "Limit reached"]

    def test_http_500_is_recorded_as_error(self, make_runner):
        client = InspectionClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="server error"))
        )
        workbook = _workbook(["https://example.com/a"])

        make_runner(workbook, client).run("full", "all")

        row = workbook.rows[0]
        assert row.result == "ERROR"
        assert "500" in row.error
        assert "server error" in row.error
        assert all(getattr(row, field) == "" for field in PROVIDER_FIELDS)
        assert row.inspection_time
        assert workbook.entries[-1].level == "ERROR"
        assert workbook.entries[-1].detail.startswith("Failed for https://example.com/a: HTTP 500")


class TestProperties:
    def test_one_record_per_processed_row(self, make_runner):
        urls = _urls(4)
        client = FakeInspectionClient(
            {urls[1]: TransportError("down"), urls[3]: MalformedResponseError("No inspectionResult in response")}
        )
        workbook = _workbook(urls)

        make_runner(workbook, client).run("full", "all")

        for row in workbook.rows:
            assert row.inspection_time
            assert (row.result == "ERROR") == bool(row.error)
        assert [row.result for row in workbook.rows] == ["INDEXED", "ERROR", "INDEXED", "ERROR"]
        assert len(client.calls) == 4

    def test_failure_recovers_on_next_run(self, make_runner):
        """エラー行は後続の実行で成功すると error がクリアされる"""
        url = "https://example.com/a"
        client = FakeInspectionClient({url: TransportError("down")})
        workbook = _workbook([url])
        runner = make_runner(workbook, client)

        runner.run("full", "all")
        assert workbook.rows[0].result == "ERROR"

        client.responses[url] = InspectionResult(coverage_state="Submitted and indexed")
        runner.run("full", "errors")
        assert workbook.rows[0].result == "Submitted and indexed"
        assert workbook.rows[0].error == ""

    def test_rerunning_all_is_idempotent(self, make_runner, fake_client):
        workbook = _workbook(_urls(3))
        runner = make_runner(workbook, fake_client)

        runner.run("full", "all")
        first = [row.model_copy() for row in workbook.rows]
        runner.run("full", "all")

        assert workbook.rows == first

    def test_new_mode_on_processed_store_matches_nothing(self, make_runner, fake_client):
        workbook = MemoryWorkbook(
            [SubjectRow(url=url, result="INDEXED", inspection_time="t") for url in _urls(3)],
            {"siteUrl": SITE},
        )
        message = make_runner(workbook, fake_client).run("quick", "new")
        assert message == 'No rows matched mode "new"'
        assert fake_client.calls == []

    def test_errors_mode_selects_error_rows(self, make_runner, fake_client):
        rows = [
            SubjectRow(url="https://example.com/0", result="ERROR", error="HTTP 404 x"),
            SubjectRow(url="https://example.com/1", result="INDEXED"),
            SubjectRow(url="https://example.com/2", result="", error="stale"),
            SubjectRow(url="https://example.com/3"),
        ]
        workbook = MemoryWorkbook(rows, {"siteUrl": SITE, "delayMs": "0"})

        message = make_runner(workbook, fake_client).run("full", "errors")

        assert [call[0] for call in fake_client.calls] == ["https://example.com/0", "https://example.com/2"]
        assert message == 'Processed 2 URLs in mode "errors"'
        assert workbook.rows[3].never_processed()

    def test_budget_leaves_remaining_rows_untouched(self, make_runner, fake_client):
        workbook = _workbook(_urls(5), maxRequestsPerRun="2")

        message = make_runner(workbook, fake_client).run("full", "all")

        assert message.startswith("Processed 2")
        assert [row.result for row in workbook.rows] == ["INDEXED", "INDEXED", "", "", ""]
        assert all(row.never_processed() for row in workbook.rows[2:])
        assert len(fake_client.calls) == 2

    def test_stop_after_first_row(self, make_runner, fake_client):
        """1 行目の処理後に停止要求が立つと 1 行だけ処理される"""
        workbook = _workbook(_urls(3))
        stop_flag = FlippingStopFlag(set_after_polls=1)

        message = make_runner(workbook, fake_client, stop_flag=stop_flag).run("full", "all")

        assert message == 'Processed 1 URLs in mode "all"'
        assert len(fake_client.calls) == 1
        assert stop_flag.cleared == 1
        stop_entry = workbook.entries[-1]
        assert stop_entry.level == "INFO"
        assert stop_entry.category == "Stop requested"

    def test_stale_stop_flag_is_cleared(self, make_runner, fake_client):
        workbook = _workbook(_urls(2))
        stop_flag = MemoryStopFlag()
        stop_flag.set()

        message = make_runner(workbook, fake_client, stop_flag=stop_flag).run("full", "all")

        assert message == 'Processed 2 URLs in mode "all"'
        assert not stop_flag.is_set()


class TestRunDetails:
    def test_empty_urls_are_skipped_silently(self, make_runner, fake_client):
        workbook = _workbook(["", "https://example.com/a", "   "], maxRequestsPerRun="1")

        message = make_runner(workbook, fake_client).run("full", "all")

        assert message == 'Processed 1 URLs in mode "all"'
        assert [call[0] for call in fake_client.calls] == ["https://example.com/a"]
        assert workbook.rows[0].never_processed()
        assert [entry.category for entry in workbook.entries] == ["Inspection"]

    def test_delay_between_requests(self, make_runner, fake_client, clock):
        workbook = _workbook(_urls(2), delayMs="250")
        make_runner(workbook, fake_client).run("full", "all")
        assert clock.sleeps == [0.25, 0.25]

    def test_zero_delay_never_sleeps(self, make_runner, fake_client, clock):
        make_runner(_workbook(_urls(2)), fake_client).run("full", "all")
        assert clock.sleeps == []

    def test_credential_failure_is_recorded_per_row(self, make_runner, fake_client, clock):
        class BrokenCredentials:
            def get_token(self) -> str:
                raise CredentialError("Failed to obtain access token: expired")

        workbook = _workbook(_urls(2))
        runner = InspectionRunner(workbook, workbook, fake_client, BrokenCredentials(), clock=clock)

        message = runner.run("full", "all")

        assert message == 'Processed 2 URLs in mode "all"'
        assert all(row.result == "ERROR" for row in workbook.rows)
        assert "expired" in workbook.rows[0].error
        assert fake_client.calls == []

    def test_last_run_state(self, make_runner, fake_client):
        runner = make_runner(_workbook(_urls(3), maxRequestsPerRun="2"), fake_client)
        runner.run("quick", "all")
        state = runner.last_run
        assert state.run_type == "quick"
        assert state.processed == 2
        assert state.inspected == 2
        assert state.stop_reason == "Limit reached"


class TestEntryPoints:
    def test_quick_check_defaults_to_new(self, make_runner, fake_client):
        rows = [SubjectRow(url="https://example.com/done", result="INDEXED"), SubjectRow(url="https://example.com/new")]
        workbook = MemoryWorkbook(rows, {"siteUrl": SITE, "delayMs": "0"})

        message = run_quick_check(make_runner(workbook, fake_client))

        assert message == 'Processed 1 URLs in mode "new"'
        assert [call[0] for call in fake_client.calls] == ["https://example.com/new"]

    def test_full_inspection_defaults_to_all(self, make_runner, fake_client):
        rows = [SubjectRow(url="https://example.com/done", result="INDEXED"), SubjectRow(url="https://example.com/new")]
        workbook = MemoryWorkbook(rows, {"siteUrl": SITE, "delayMs": "0"})

        message = run_full_inspection(make_runner(workbook, fake_client))

        assert message == 'Processed 2 URLs in mode "all"'

    def test_unknown_mode_behaves_like_all(self, make_runner, fake_client):
        rows = [SubjectRow(url="https://example.com/done", result="INDEXED"), SubjectRow(url="https://example.com/new")]
        workbook = MemoryWorkbook(rows, {"siteUrl": SITE, "delayMs": "0"})

        message = run_quick_check(make_runner(workbook, fake_client), "whatever")

        assert message == 'Processed 2 URLs in mode "whatever"'

    def test_site_url_and_token_passed_to_client(self, make_runner, fake_client):
        run_full_inspection(make_runner(_workbook(["https://example.com/a"]), fake_client))
        assert fake_client.calls == [("https://example.com/a", SITE, "test-token")]
