"""
스캔 보고서 출력

ScanReport를 JSON / CSV / TEXT 파일로 내보내거나 콘솔 표로 출력한다.
"""

from __future__ import annotations

from typing import Dict, Type

from xploitra.scanner.interfaces import OutputConfig, OutputFormat, ScanReport

from .base import ReportFormatter
from .console_formatter import ConsoleFormatter
from .csv_formatter import CSVFormatter
from .json_formatter import JSONFormatter, scan_report_to_dict
from .text_formatter import TextFormatter

FORMATTER_MAP: Dict[OutputFormat, Type[ReportFormatter]] = {
    OutputFormat.JSON: JSONFormatter,
    OutputFormat.CSV: CSVFormatter,
    OutputFormat.TEXT: TextFormatter,
    OutputFormat.CONSOLE: ConsoleFormatter,
}


def get_formatter(config: OutputConfig) -> ReportFormatter:
    fmt = OutputFormat(config.format)
    if fmt == OutputFormat.JSON:
        return JSONFormatter(pretty_print=config.pretty_print)
    if fmt == OutputFormat.CONSOLE:
        return ConsoleFormatter(mode=config.console_mode)
    return FORMATTER_MAP[fmt]()


def output_report(report: ScanReport, config: OutputConfig) -> None:
    """
    path가 있으면 파일로 저장하고, 없으면 stdout으로 출력한다.
    CONSOLE 형식은 path가 있어도 화면에만 출력한다.
    """
    formatter = get_formatter(config)
    if config.path and formatter.writes_file:
        formatter.save(report, config.path)
        return

    text = formatter.format(report)
    if text:
        print(text, end="" if text.endswith("\n") else "\n")


__all__ = [
    "ReportFormatter",
    "JSONFormatter",
    "CSVFormatter",
    "TextFormatter",
    "ConsoleFormatter",
    "FORMATTER_MAP",
    "get_formatter",
    "output_report",
    "scan_report_to_dict",
]
