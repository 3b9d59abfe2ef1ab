from __future__ import annotations

from typing import Optional

from .models import ERROR_RESULT, RunMode


def normalize_mode(mode: Optional[str], default: str = RunMode.ALL) -> str:
    normalized = (mode or "").strip().lower()
    return normalized or default


def should_process(mode: str, stored_result: Optional[str], stored_error: Optional[str]) -> bool:
    """実行モードに照らして、その行を検査対象にするかどうかを返す。

    未知のモードは ``all`` と同じ扱いになる。
    """
    if mode in (RunMode.NEW, RunMode.EMPTY):
        return not stored_result
    if mode == RunMode.ERRORS:
        return stored_result == ERROR_RESULT or bool(stored_error)
    return True
