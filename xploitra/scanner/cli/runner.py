from __future__ import annotations
import functools
import click

from xploitra.scanner.interfaces import (
    CLIArguments,
    ConsoleMode,
    LogLevel,
    OutputConfig,
    OutputFormat,
    ProgressInfo,
    RendererType,
    ScanDepth,
    ScanNotFoundError,
    ScanStatus,
    Severity,
    VulnerabilityType,
    XploitraException,
)
from xploitra.scanner.cli.config_builder import build_app_config, load_config, resolve_db_path
from xploitra.scanner.finding import build_scan_report
from xploitra.scanner.logger import init_logger
from xploitra.scanner.report import output_report
from xploitra.scanner.scan_engine import ScanEngine
from xploitra.scanner.storage import SQLiteStorage

from rich.console import Console
from rich.table import Table
from rich.progress import (
    Progress,
    SpinnerColumn,
    TextColumn,
    BarColumn,
    TaskProgressColumn,
    TimeElapsedColumn,
)
from rich import box

console = Console()

STATUS_STYLES = {
    ScanStatus.PENDING: "cyan",
    ScanStatus.RUNNING: "yellow",
    ScanStatus.COMPLETED: "green",
    ScanStatus.FAILED: "red",
}


def handle_errors(func):
    """XploitraException → ClickException (exit code 1)"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except XploitraException as exc:
            raise click.ClickException(f"[{exc.error_code}] {exc.message}") from exc
    return wrapper


def open_storage(db_path, config_path=None) -> SQLiteStorage:
    return SQLiteStorage(resolve_db_path(db_path, load_config(config_path)))


def db_option(func):
    func = click.option("--config", "config_path", help="JSON config file / 설정 파일 경로")(func)
    return click.option("--db", "db_path", help="SQLite database path / 스캔 기록 DB 경로 (env: XPLOITRA_DB_PATH)")(func)


# CLI Root
@click.group()
def cli():
    """Xploitra web vulnerability scanner. For authorized testing only."""


# scan 명령어
@cli.command("scan")
@click.option("-u", "--url", required=True, help="Target URL to scan\n스캔 대상 URL")
@click.option(
    "-d",
    "--depth",
    type=click.Choice([d.value for d in ScanDepth], case_sensitive=False),
    help="Crawl depth tier (quick=1, standard=3, deep=5) / 크롤링 깊이",
)
@click.option("--ai-payloads/--static-payloads", default=None, help="Use LLM-generated payloads / 생성형 페이로드 사용")
@click.option("-r", "--rate-limit", type=click.IntRange(min=1), help="Requests per second / 초당 요청 수")
@click.option(
    "-t",
    "--type",
    "types",
    multiple=True,
    type=click.Choice([t.value for t in VulnerabilityType], case_sensitive=False),
    help="Vulnerability types to test (can be used multiple times) / 테스트할 취약점 유형",
)
@click.option(
    "--renderer",
    type=click.Choice([r.value for r in RendererType], case_sensitive=False),
    help="Page renderer: headless browser or plain HTTP / 페이지 탐색 엔진",
)
@db_option
@click.option("-o", "--output", help="Output file path (e.g., result.json) / 결과 출력 파일 경로")
@click.option(
    "--output-format",
    type=click.Choice([fmt.value for fmt in OutputFormat], case_sensitive=False),
    help="Output format / 결과 출력 형식 (JSON, CSV, TEXT, CONSOLE)",
)
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging / 상세 로그 출력")
@click.option("--log-file", help="Log file path / 로그 파일 경로")
@handle_errors
def scan(url, depth, ai_payloads, rate_limit, types, renderer, db_path, config_path,
         output, output_format, verbose, log_file):
    args = CLIArguments(
        url=url,
        depth=depth,
        ai_payloads=ai_payloads,
        rate_limit=rate_limit,
        types=list(types),
        renderer=renderer,
        config=config_path,
        db_path=db_path,
        output=output,
        output_format=output_format,
        verbose=verbose,
        log_file=log_file,
    )
    config = build_app_config(args)
    logger = init_logger(
        config.logging_config.level == LogLevel.DEBUG,
        str(config.logging_config.file_path) if config.logging_config.file_path else None,
        config.logging_config.max_file_size,
        config.logging_config.backup_count,
    )

    storage = SQLiteStorage(config.db_path)

    # 진행률 UI 준비
    progress = Progress(
        SpinnerColumn(style="bold cyan"),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(bar_width=None, complete_style="green", finished_style="magenta"),
        TaskProgressColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        auto_refresh=False,
    )
    progress_task = progress.add_task("🧭 스캔 준비 중", total=100)

    def on_progress(info: ProgressInfo):
        progress.update(
            progress_task,
            completed=info.percentage,
            description=info.message,
            refresh=True,
        )

    engine = ScanEngine(
        storage,
        engine_config=config.engine_config,
        llm_config=config.llm_config,
        on_progress=on_progress,
        logger=logger.getChild("engine"),
    )

    try:
        engine.ensure_store_idle()
        record = engine.create_scan(config.scan_options)
        console.print(f"🔍 Scan [bold]#{record.id}[/] → {record.target_url}")
        with progress:
            try:
                result = engine.run_scan(record.id)
            except KeyboardInterrupt:
                result = engine.stop_scan(record.id)
        report = build_scan_report(result, storage.get_vulnerabilities_by_scan(result.id))
    finally:
        storage.close()

    output_report(report, config.output_config)
    if config.output_config.path and config.output_config.format != OutputFormat.CONSOLE:
        console.print(f"📄 Report saved to {config.output_config.path}")

    if result.status == ScanStatus.FAILED:
        raise click.ClickException(f"Scan #{result.id} failed: {result.error}")


@cli.command("history")
@click.option("-n", "--limit", default=50, show_default=True, type=click.IntRange(min=1), help="Number of scans / 조회 개수")
@db_option
@handle_errors
def history(limit, db_path, config_path):
    storage = open_storage(db_path, config_path)
    scans = storage.get_scans(limit)
    if not scans:
        console.print("No scans recorded yet.")
        return

    table = Table(title="📜 Scan History", box=box.MINIMAL_HEAVY_HEAD, header_style="bold white")
    table.add_column("ID", justify="right")
    table.add_column("Target")
    table.add_column("Depth")
    table.add_column("Status", justify="center")
    table.add_column("Progress", justify="right")
    table.add_column("Endpoints", justify="right")
    table.add_column("Findings", justify="right")
    table.add_column("Created")
    for s in scans:
        color = STATUS_STYLES.get(s.status, "white")
        table.add_row(
            str(s.id),
            s.target_url,
            s.scan_depth.value,
            f"[{color}]{s.status.value}[/{color}]",
            f"{s.progress}%",
            f"{s.endpoints_tested}/{s.endpoints_found}",
            str(s.vulnerabilities_found),
            s.created_at.strftime("%Y-%m-%d %H:%M:%S") if s.created_at else "-",
        )
    console.print(table)


@cli.command("show")
@click.argument("scan_id", type=int)
@db_option
@handle_errors
def show(scan_id, db_path, config_path):
    storage = open_storage(db_path, config_path)
    report = _load_report(storage, scan_id)
    output_report(report, OutputConfig(format=OutputFormat.CONSOLE, console_mode=ConsoleMode.VERBOSE))


@cli.command("stop")
@click.argument("scan_id", type=int)
@db_option
@handle_errors
def stop(scan_id, db_path, config_path):
    """실행 중인 스캔을 중지 (다른 프로세스의 스캔은 다음 체크포인트에서 멈춤)"""
    storage = open_storage(db_path, config_path)
    stopped = ScanEngine(storage).stop_scan(scan_id)
    console.print(f"🛑 Scan #{stopped.id} stopped ({stopped.status.value})")


@cli.command("export")
@click.argument("scan_id", type=int)
@click.option(
    "-f",
    "--format",
    "export_format",
    default=OutputFormat.JSON.value,
    show_default=True,
    type=click.Choice([OutputFormat.JSON.value, OutputFormat.CSV.value, OutputFormat.TEXT.value], case_sensitive=False),
)
@click.option("-o", "--output", help="Output file path (stdout if omitted) / 저장 경로")
@db_option
@handle_errors
def export(scan_id, export_format, output, db_path, config_path):
    storage = open_storage(db_path, config_path)
    report = _load_report(storage, scan_id)
    output_report(report, OutputConfig(format=OutputFormat(export_format.upper()), path=output))


@cli.command("stats")
@click.option("-n", "--latest", default=10, show_default=True, type=click.IntRange(min=0), help="Latest findings to list / 최근 취약점 개수")
@db_option
@handle_errors
def stats(latest, db_path, config_path):
    storage = open_storage(db_path, config_path)
    s = storage.get_security_stats()

    summary = Table(title="📊 Security Stats", box=box.SIMPLE_HEAVY, show_header=False, padding=(0, 1), min_width=30)
    summary.add_row("Critical", f"[red bold]{s.critical}[/]")
    summary.add_row("High", f"[red]{s.high}[/]")
    summary.add_row("Medium", f"[yellow]{s.medium}[/]")
    summary.add_row("Scans", str(s.scanned))
    console.print(summary)

    vulns = storage.get_latest_vulnerabilities(latest) if latest else []
    if not vulns:
        return
    table = Table(title="🚨 Latest Findings", box=box.MINIMAL_HEAVY_HEAD, header_style="bold white")
    table.add_column("Scan", justify="right")
    table.add_column("Severity", justify="center")
    table.add_column("Title")
    table.add_column("Endpoint")
    table.add_column("Parameter")
    for v in vulns:
        color = "red" if v.severity in (Severity.CRITICAL, Severity.HIGH) else "yellow"
        table.add_row(str(v.scan_id), f"[{color}]{v.severity.value}[/{color}]", v.title, v.endpoint, v.parameter or "-")
    console.print(table)


def _load_report(storage, scan_id):
    scan_record = storage.get_scan(scan_id)
    if scan_record is None:
        raise ScanNotFoundError(f"Scan {scan_id} not found", error_code="SCAN_NOT_FOUND")
    return build_scan_report(scan_record, storage.get_vulnerabilities_by_scan(scan_id))


if __name__ == "__main__":
    cli()
