"""検査対象行・設定・ログの保存先。

ワークブックは CSV ファイルを並べたディレクトリで、元のスプレッドシートの
シート構成 (Quick Check / Settings / Logs) に対応する。
"""

from __future__ import annotations

import csv
import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol

from .errors import MissingStoreError
from .models import (
    LOGS_HEADERS,
    QUICK_CHECK_HEADERS,
    ROW_FIELDS,
    SETTINGS_HEADERS,
    LogEntry,
    RowUpdate,
    SubjectRow,
)

QUICK_CHECK_FILE = "quick_check.csv"
SETTINGS_FILE = "settings.csv"
LOGS_FILE = "logs.csv"

HEADER_TO_FIELD = dict(zip(QUICK_CHECK_HEADERS, ROW_FIELDS))


class RowStore(Protocol):
    def list_rows(self) -> List[SubjectRow]: ...

    def read_row(self, index: int) -> SubjectRow: ...

    def write_row(self, index: int, update: RowUpdate) -> None: ...


class SettingsStore(Protocol):
    def snapshot(self) -> Dict[str, str]: ...


class LogSink(Protocol):
    def append(self, entry: LogEntry) -> None: ...


def _apply(row: SubjectRow, update: RowUpdate) -> SubjectRow:
    # url 列は上書きしない
    return row.model_copy(update=update.as_row_values())


class MemoryWorkbook:
    """メモリ上の行・設定・ログ。RowStore / SettingsStore / LogSink を兼ねる。"""

    def __init__(
        self,
        rows: Iterable[SubjectRow] = (),
        settings: Optional[Dict[str, str]] = None,
    ) -> None:
        self.rows: List[SubjectRow] = list(rows)
        self.settings: Dict[str, str] = dict(settings or {})
        self.entries: List[LogEntry] = []

    def list_rows(self) -> List[SubjectRow]:
        return list(self.rows)

    def read_row(self, index: int) -> SubjectRow:
        return self.rows[index]

    def write_row(self, index: int, update: RowUpdate) -> None:
        self.rows[index] = _apply(self.rows[index], update)

    def snapshot(self) -> Dict[str, str]:
        return dict(self.settings)

    def append(self, entry: LogEntry) -> None:
        self.entries.append(entry)


class CsvRowStore:
    """quick_check.csv を読み書きする。

    結果列以外の列（メモ欄など）は読み込んだまま書き戻す。
    """

    def __init__(self, path: Path) -> None:
        if not path.exists():
            raise MissingStoreError(f"Quick Check sheet not found: {path}")
        self.path = path
        self._fieldnames: List[str] = []
        self._records: Optional[List[Dict[str, str]]] = None

    def _load(self) -> List[Dict[str, str]]:
        # Excel / スプレッドシートの「CSV UTF-8」出力は BOM 付き
        with self.path.open("r", newline="", encoding="utf-8-sig") as fp:
            reader = csv.DictReader(fp)
            records = [dict(record) for record in reader]
            fieldnames = list(reader.fieldnames or [])
        for header in QUICK_CHECK_HEADERS:
            if header not in fieldnames:
                fieldnames.append(header)
        self._fieldnames = fieldnames
        self._records = records
        return records

    def _cached(self) -> List[Dict[str, str]]:
        if self._records is None:
            return self._load()
        return self._records

    @staticmethod
    def _to_row(record: Dict[str, str]) -> SubjectRow:
        return SubjectRow(**{field: record.get(header) or "" for header, field in HEADER_TO_FIELD.items()})

    def list_rows(self) -> List[SubjectRow]:
        return [self._to_row(record) for record in self._load()]

    def read_row(self, index: int) -> SubjectRow:
        return self._to_row(self._cached()[index])

    def write_row(self, index: int, update: RowUpdate) -> None:
        records = self._cached()
        values = update.as_row_values()
        for header, field in HEADER_TO_FIELD.items():
            if field in values:
                records[index][header] = values[field]
        self._write_all(records)

    def _write_all(self, records: List[Dict[str, str]]) -> None:
        # 書き込み途中で中断されても元ファイルが壊れないよう置き換える
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", newline="", encoding="utf-8") as fp:
            writer = csv.DictWriter(fp, fieldnames=self._fieldnames, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(records)
        os.replace(tmp_path, self.path)


class CsvSettingsStore:
    def __init__(self, path: Path) -> None:
        if not path.exists():
            raise MissingStoreError(f"Settings sheet not found: {path}")
        self.path = path

    def snapshot(self) -> Dict[str, str]:
        settings: Dict[str, str] = {}
        with self.path.open("r", newline="", encoding="utf-8-sig") as fp:
            reader = csv.DictReader(fp)
            for record in reader:
                key = (record.get("Key") or "").strip()
                if key and key not in settings:
                    settings[key] = record.get("Value") or ""
        return settings


class CsvLogSink:
    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, entry: LogEntry) -> None:
        is_new = not self.path.exists()
        with self.path.open("a", newline="", encoding="utf-8") as fp:
            writer = csv.writer(fp)
            if is_new:
                writer.writerow(LOGS_HEADERS)
            writer.writerow([entry.timestamp.isoformat(), entry.level, entry.category, entry.detail])


def init_workbook(directory: Path, *, site_url: Optional[str] = None, urls: Iterable[str] = ()) -> List[Path]:
    """ワークブックのひな形を作成する。既存ファイルは上書きしない。"""
    directory.mkdir(parents=True, exist_ok=True)
    created: List[Path] = []

    quick_check = directory / QUICK_CHECK_FILE
    if not quick_check.exists():
        with quick_check.open("w", newline="", encoding="utf-8") as fp:
            writer = csv.writer(fp)
            writer.writerow(QUICK_CHECK_HEADERS)
            for url in urls:
                writer.writerow([url] + [""] * (len(QUICK_CHECK_HEADERS) - 1))
        created.append(quick_check)

    settings = directory / SETTINGS_FILE
    if not settings.exists():
        with settings.open("w", newline="", encoding="utf-8") as fp:
            writer = csv.writer(fp)
            writer.writerow(SETTINGS_HEADERS)
            writer.writerow(["siteUrl", site_url or ""])
        created.append(settings)

    logs = directory / LOGS_FILE
    if not logs.exists():
        with logs.open("w", newline="", encoding="utf-8") as fp:
            csv.writer(fp).writerow(LOGS_HEADERS)
        created.append(logs)

    return created
