from __future__ import annotations

from datetime import datetime, timezone

import pytest

from url_inspector.credentials import StaticTokenProvider
from url_inspector.models import InspectionResult
from url_inspector.runner import InspectionRunner

FIXED_NOW = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.current = now
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)


class FakeInspectionClient:
    """URL ごとに結果または例外を返す検査クライアント。"""

    def __init__(self, responses=None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[tuple[str, str, str]] = []

    def inspect(self, url: str, site_url: str, credential: str) -> InspectionResult:
        self.calls.append((url, site_url, credential))
        outcome = self.responses.get(url, InspectionResult(indexing_state="INDEXED"))
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FlippingStopFlag:
    """指定回数のポーリング後に停止要求が立つフラグ。"""

    def __init__(self, set_after_polls: int) -> None:
        self.set_after_polls = set_after_polls
        self.polls = 0
        self.cleared = 0

    def is_set(self) -> bool:
        self.polls += 1
        return self.polls > self.set_after_polls

    def set(self) -> None:
        self.set_after_polls = 0

    def clear(self) -> None:
        self.cleared += 1


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_client() -> FakeInspectionClient:
    return FakeInspectionClient()


@pytest.fixture
def make_runner(clock):
    def _make(workbook, client, **kwargs):
        kwargs.setdefault("log_sink", workbook)
        kwargs.setdefault("clock", clock)
        return InspectionRunner(workbook, workbook, client, StaticTokenProvider("test-token"), **kwargs)

    return _make
