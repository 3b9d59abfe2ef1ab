from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.table import Table

from .client import InspectionClient
from .config import AppConfig
from .control import FileStopFlag
from .credentials import CredentialProvider, GoogleCredentialProvider, StaticTokenProvider
from .errors import RunConfigurationError
from .models import RunMode, RunState
from .runner import InspectionRunner, run_full_inspection, run_quick_check
from .storage import (
    LOGS_FILE,
    QUICK_CHECK_FILE,
    SETTINGS_FILE,
    CsvLogSink,
    CsvRowStore,
    CsvSettingsStore,
    init_workbook,
)

app = typer.Typer(help="Search Console URL 検査の一括実行ツール")
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="YAML形式の設定ファイル")
WorkbookOption = typer.Option(None, "--workbook", help="ワークブック（CSV）ディレクトリの上書き")
TokenOption = typer.Option(None, "--token", envvar="URL_INSPECTOR_TOKEN", help="アクセストークンを直接指定")
CredentialsOption = typer.Option(None, "--credentials", help="サービスアカウントJSONのパス")
VerboseOption = typer.Option(False, "--verbose", "-v", help="詳細ログを表示")


def load_config_from_path(path: Optional[Path]) -> dict:
    if path is None:
        return {}
    if not path.exists():
        raise typer.BadParameter(f"設定ファイルが見つかりません: {path}")
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise typer.BadParameter("設定ファイルの形式が不正です。")
    return data


def load_app_config(
    config_path: Optional[Path],
    *,
    workbook: Optional[Path] = None,
    token: Optional[str] = None,
    credentials_path: Optional[Path] = None,
) -> AppConfig:
    config_dict = load_config_from_path(config_path)
    try:
        config = AppConfig(**config_dict)
    except Exception as exc:
        raise typer.BadParameter(f"設定の読み込みに失敗しました: {exc}") from exc

    update_data = {}
    if workbook is not None:
        update_data["workbook_dir"] = workbook
    if token:
        update_data["access_token"] = token
    if credentials_path is not None:
        update_data["credentials_file"] = credentials_path
    if update_data:
        config = config.model_copy(update=update_data)
    return config


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _credential_provider(config: AppConfig) -> CredentialProvider:
    if config.access_token:
        return StaticTokenProvider(config.access_token)
    return GoogleCredentialProvider(config.credentials_file)


def _execute(config: AppConfig, quick: bool, mode: str) -> None:
    directory = config.workbook_dir
    try:
        row_store = CsvRowStore(directory / QUICK_CHECK_FILE)
        settings_store = CsvSettingsStore(directory / SETTINGS_FILE)
    except RunConfigurationError as exc:
        console.print(f"[red]ワークブックを開けません:[/] {exc}")
        raise typer.Exit(code=1) from exc

    with InspectionClient(
        endpoint=config.endpoint,
        timeout=config.request_timeout,
        language_code=config.language_code,
    ) as client:
        runner = InspectionRunner(
            row_store,
            settings_store,
            client,
            _credential_provider(config),
            log_sink=CsvLogSink(directory / LOGS_FILE),
            stop_flag=FileStopFlag(config.stop_path()),
        )
        try:
            if quick:
                message = run_quick_check(runner, mode)
            else:
                message = run_full_inspection(runner, mode)
        except RunConfigurationError as exc:
            console.print(f"[red]検査を開始できません:[/] {exc}")
            raise typer.Exit(code=1) from exc

    if runner.last_run is not None:
        _print_summary(runner.last_run)
    console.print(f"[green]{message}[/]")


@app.command()
def quick(
    mode: str = typer.Option(RunMode.NEW, "--mode", "-m", help="all / new / empty / errors"),
    config_path: Optional[Path] = ConfigOption,
    workbook: Optional[Path] = WorkbookOption,
    token: Optional[str] = TokenOption,
    credentials_path: Optional[Path] = CredentialsOption,
    verbose: bool = VerboseOption,
) -> None:
    """未検査の URL だけを検査します（既定モード: new）。"""
    _configure_logging(verbose)
    config = load_app_config(config_path, workbook=workbook, token=token, credentials_path=credentials_path)
    _execute(config, True, mode)


@app.command()
def full(
    mode: str = typer.Option(RunMode.ALL, "--mode", "-m", help="all / new / empty / errors"),
    config_path: Optional[Path] = ConfigOption,
    workbook: Optional[Path] = WorkbookOption,
    token: Optional[str] = TokenOption,
    credentials_path: Optional[Path] = CredentialsOption,
    verbose: bool = VerboseOption,
) -> None:
    """すべての URL を検査します（既定モード: all）。"""
    _configure_logging(verbose)
    config = load_app_config(config_path, workbook=workbook, token=token, credentials_path=credentials_path)
    _execute(config, False, mode)


@app.command()
def stop(
    config_path: Optional[Path] = ConfigOption,
    workbook: Optional[Path] = WorkbookOption,
) -> None:
    """実行中の検査に停止を要求します。次の URL の処理前に停止します。"""
    config = load_app_config(config_path, workbook=workbook)
    FileStopFlag(config.stop_path()).set()
    console.print(f"停止を要求しました: {config.stop_path()}")


@app.command()
def init(
    site_url: Optional[str] = typer.Option(None, "--site-url", help="Search Console のプロパティ (例: sc-domain:example.com)"),
    urls: Optional[List[str]] = typer.Option(None, "--url", help="検査対象 URL（複数指定可）"),
    config_path: Optional[Path] = ConfigOption,
    workbook: Optional[Path] = WorkbookOption,
) -> None:
    """ワークブックのひな形（quick_check / settings / logs）を作成します。"""
    config = load_app_config(config_path, workbook=workbook)
    created = init_workbook(config.workbook_dir, site_url=site_url, urls=urls or [])
    if not created:
        console.print("既存のファイルがあるため何も作成しませんでした。")
        return
    for path in created:
        console.print(f"[green]作成しました:[/] {path}")


def _print_summary(state: RunState) -> None:
    table = Table(title="検査結果サマリ")
    table.add_column("項目")
    table.add_column("値", justify="right")
    for label, value in [
        ("実行種別", state.run_type),
        ("モード", state.mode),
        ("対象行数", state.inspected),
        ("API 呼び出し数", state.processed),
        ("終了理由", state.stop_reason or "完了"),
        ("開始時刻", state.started_at.isoformat() if state.started_at else ""),
        ("終了時刻", state.finished_at.isoformat() if state.finished_at else ""),
    ]:
        table.add_row(label, str(value))
    console.print(table)


if __name__ == "__main__":
    app()
