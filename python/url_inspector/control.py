"""レート制御・時計・停止フラグ。"""

from __future__ import annotations

import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...

    def sleep(self, seconds: float) -> None: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def sleep(self, seconds: float) -> None:
        time.sleep(seconds)


class RateLimiter:
    """連続する API 呼び出しの間に固定の待機を挟む。"""

    def __init__(self, delay_ms: int, clock: Clock) -> None:
        self.delay_ms = max(0, delay_ms)
        self._clock = clock

    def pause(self) -> None:
        if self.delay_ms > 0:
            self._clock.sleep(self.delay_ms / 1000)


class StopFlag(Protocol):
    def is_set(self) -> bool: ...

    def set(self) -> None: ...

    def clear(self) -> None: ...


class MemoryStopFlag:
    def __init__(self) -> None:
        self._value = False

    def is_set(self) -> bool:
        return self._value

    def set(self) -> None:
        self._value = True

    def clear(self) -> None:
        self._value = False


class FileStopFlag:
    """ファイルの有無を停止要求として扱う。別プロセスから作成できる。"""

    def __init__(self, path: Path) -> None:
        self.path = path

    def is_set(self) -> bool:
        return self.path.exists()

    def set(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch()

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
