"""
Text Formatter Module

다운로드용 평문 보고서. 취약점은 번호를 붙여 나열합니다.
"""

from __future__ import annotations
from typing import List

from xploitra.scanner.interfaces import ScanReport
from xploitra.scanner.report.base import ReportFormatter

REPORT_VERSION = "1.0"


def _fmt_time(value) -> str:
    return value.isoformat() if value else "N/A"


class TextFormatter(ReportFormatter):

    def format(self, report: ScanReport) -> str:
        scan = report.scan
        lines: List[str] = [
            "XPLOITRA SECURITY SCAN REPORT",
            "=====================================",
            "",
            f"Target URL: {scan.target_url}",
            f"Scan Started: {_fmt_time(scan.started_at)}",
            f"Scan Completed: {_fmt_time(scan.completed_at)}",
            f"Status: {scan.status.value}",
        ]
        if scan.error:
            lines.append(f"Error: {scan.error}")
        lines += [
            f"Endpoints Found: {scan.endpoints_found}",
            f"Endpoints Tested: {scan.endpoints_tested}",
            f"Vulnerabilities Found: {scan.vulnerabilities_found}",
            "",
        ]

        if report.vulnerabilities:
            lines += ["VULNERABILITIES FOUND", "====================", ""]
            for index, v in enumerate(report.vulnerabilities, 1):
                lines.append(f"{index}. {v.title}")
                lines.append(f"   Severity: {v.severity.value.upper()}")
                lines.append(f"   Type: {v.type.value}")
                lines.append(f"   Endpoint: {v.endpoint}")
                if v.parameter:
                    lines.append(f"   Parameter: {v.parameter}")
                lines.append(f"   Description: {v.description}")
                if v.payload:
                    lines.append(f"   Payload: {v.payload}")
                lines.append(f"   Remediation: {v.remediation}")
                lines.append("")
        else:
            lines.append("No vulnerabilities found.")

        lines += [
            "",
            f"Report generated by Xploitra v{REPORT_VERSION}",
            "For authorized testing only.",
        ]
        return "\n".join(lines) + "\n"
