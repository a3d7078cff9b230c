# csv 변환 + csv 저장

"""
CSV Formatter Module

ScanReport의 취약점 목록을 CSV 문자열로 직렬화하고 파일로 저장합니다.
"""

from __future__ import annotations
import csv
import io

from xploitra.scanner.interfaces import ScanReport
from xploitra.scanner.report.base import ReportFormatter

CSV_HEADER = [
    "ID",
    "Scan ID",
    "Type",
    "Severity",
    "Title",
    "Endpoint",
    "Parameter",
    "Payload",
    "Evidence",
    "Remediation",
    "Found At",
]


class CSVFormatter(ReportFormatter):

    def format(self, report: ScanReport) -> str:
        output = io.StringIO()
        writer = csv.writer(output)
        writer.writerow(CSV_HEADER)

        for v in report.vulnerabilities:
            writer.writerow(
                [
                    v.id,
                    v.scan_id,
                    v.type.value,
                    v.severity.value,
                    v.title,
                    v.endpoint,
                    v.parameter or "",
                    v.payload or "",
                    v.evidence or "",
                    v.remediation or "",
                    v.found_at.isoformat() if v.found_at else "",
                ]
            )

        return output.getvalue()
