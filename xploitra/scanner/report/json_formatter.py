# Json 변환

from __future__ import annotations

import json
from collections import Counter
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from typing import Any, Dict

from xploitra.scanner.interfaces import ScanReport
from xploitra.scanner.report.base import ReportFormatter


def _jsonable(obj: Any) -> Any:
    """datetime → ISO8601, Enum → 값"""
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {obj.__class__.__name__} is not JSON serializable")


def scan_report_to_dict(report: ScanReport) -> Dict[str, Any]:
    """ScanReport → JSON 호환 dict (심각도/유형별 집계 포함)"""
    data = json.loads(json.dumps(asdict(report), default=_jsonable))
    data["summary"] = {
        "total": len(report.vulnerabilities),
        "by_severity": dict(Counter(v.severity.value for v in report.vulnerabilities)),
        "by_type": dict(Counter(v.type.value for v in report.vulnerabilities)),
    }
    return data


class JSONFormatter(ReportFormatter):
    def __init__(self, pretty_print: bool = True):
        self.pretty_print = pretty_print

    def format(self, report: ScanReport) -> str:
        return json.dumps(
            scan_report_to_dict(report),
            ensure_ascii=False,
            indent=2 if self.pretty_print else None,
        )
