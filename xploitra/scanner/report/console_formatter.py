# 콘솔 데이터 구성

"""
Console Formatter Module

ScanReport 객체를 콘솔 출력용 문자열로 변환하는 기능을 제공합니다.
파일 저장은 하지 않으며, format()은 출력 문자열을 반환합니다.
"""

from __future__ import annotations
import io

from rich.console import Console
from rich.table import Table
from rich import box

from xploitra.scanner.interfaces import (
    ConsoleMode,
    ScanReport,
    ScanStatus,
    Severity,
)
from xploitra.scanner.report.base import ReportFormatter

SEVERITY_STYLES = {
    Severity.CRITICAL: "red bold",
    Severity.HIGH: "red",
    Severity.MEDIUM: "yellow",
    Severity.LOW: "blue",
    Severity.INFO: "white",
}

STATUS_STYLES = {
    ScanStatus.PENDING: "cyan",
    ScanStatus.RUNNING: "yellow",
    ScanStatus.COMPLETED: "green",
    ScanStatus.FAILED: "red",
}


class ConsoleFormatter(ReportFormatter):
    """
    Console 형식 Formatter

    - SILENT: 출력 없음
    - SUMMARY: 스캔 요약 + 취약점 표
    - VERBOSE: 위 내용 + 취약점별 상세 (payload/evidence/remediation)
    """

    writes_file = False

    def __init__(self, mode: ConsoleMode = ConsoleMode.SUMMARY):
        self.mode = mode

    def format(self, report: ScanReport) -> str:
        if self.mode == ConsoleMode.SILENT:
            return ""

        buffer = io.StringIO()
        console = Console(file=buffer, force_terminal=True, width=120)
        scan = report.scan

        # 1. Summary Table
        status_color = STATUS_STYLES.get(scan.status, "white")
        summary_table = Table(
            title="🚀 Xploitra Scan Summary",
            title_style="bold magenta",
            box=box.SIMPLE_HEAVY,
            show_header=False,
            padding=(0, 1),
        )
        summary_table.add_row("🆔 Scan ID", str(scan.id))
        summary_table.add_row("🎯 Target URL", f"[bold]{scan.target_url}[/]")
        summary_table.add_row("📏 Depth", scan.scan_depth.value)
        summary_table.add_row("📌 Status", f"[{status_color}]{scan.status.value}[/{status_color}]")
        summary_table.add_row("📊 Progress", f"{scan.progress}%")
        summary_table.add_row("🌐 Endpoints", f"{scan.endpoints_tested}/{scan.endpoints_found} tested")
        summary_table.add_row("🔎 Findings Detected", f"[bold yellow]{scan.vulnerabilities_found}[/]")
        if scan.started_at and scan.completed_at:
            duration = (scan.completed_at - scan.started_at).total_seconds()
            summary_table.add_row(" ⏱ Duration", f"{duration:.2f} seconds")
        if scan.error:
            summary_table.add_row("❌ Error", f"[red]{scan.error}[/red]")

        console.print(summary_table)

        # 2. Findings Table
        if report.vulnerabilities:
            findings_table = Table(
                title="🧩 Vulnerabilities",
                title_style="bold cyan",
                box=box.MINIMAL_HEAVY_HEAD,
                header_style="bold white",
            )
            findings_table.add_column("#", justify="right")
            findings_table.add_column("Severity", justify="center")
            findings_table.add_column("Title")
            findings_table.add_column("Endpoint")
            findings_table.add_column("Parameter")

            for index, v in enumerate(report.vulnerabilities, 1):
                color = SEVERITY_STYLES.get(v.severity, "white")
                findings_table.add_row(
                    str(index),
                    f"[{color}]{v.severity.value}[/{color}]",
                    v.title,
                    v.endpoint,
                    v.parameter or "-",
                )
            console.print(findings_table)
        else:
            console.print("[green]No vulnerabilities found.[/green]")

        # 3. Detailed Findings (if verbose)
        if self.mode == ConsoleMode.VERBOSE and report.vulnerabilities:
            console.print("\n[bold underline]Detailed Findings[/bold underline]\n")
            for v in report.vulnerabilities:
                color = SEVERITY_STYLES.get(v.severity, "white")
                console.print(f"  [{color}][{v.severity.value}] {v.title}[/{color}]")
                console.print(f"    Endpoint: {v.endpoint}")
                if v.parameter:
                    console.print(f"    Parameter: {v.parameter}")
                if v.payload:
                    console.print(f"    Payload: {v.payload}", markup=False, highlight=False)
                if v.evidence:
                    console.print(f"    Evidence: {v.evidence}", markup=False, highlight=False)
                console.print(f"    Remediation: {v.remediation}")
                console.print("")

        return buffer.getvalue()
