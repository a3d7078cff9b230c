"""
Finding 처리 모듈
오라클이 확인한 주입 지점을 저장 가능한 VulnerabilityDraft로 변환합니다.

심각도/제목/조치 방안은 취약점 유형(과 쿼리/폼 구분)만으로 결정되며
페이로드나 탐지 방식과는 무관합니다.

Args & Returns Types:
- severity_for -> Severity
- build_query_finding -> VulnerabilityDraft
- build_form_finding -> VulnerabilityDraft
- build_scan_report -> ScanReport
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from xploitra.scanner.interfaces import (
    Scan,
    ScanReport,
    Severity,
    Vulnerability,
    VulnerabilityDraft,
    VulnerabilityType,
)


@dataclass(frozen=True)
class FindingTemplate:
    title: str
    description: str
    evidence: str
    remediation: str


SEVERITY_MAP: Dict[VulnerabilityType, Severity] = {
    VulnerabilityType.XSS: Severity.HIGH,
    VulnerabilityType.SQLI: Severity.CRITICAL,
    VulnerabilityType.DIRECTORY_TRAVERSAL: Severity.MEDIUM,
}

QUERY_TEMPLATES: Dict[VulnerabilityType, FindingTemplate] = {
    VulnerabilityType.XSS: FindingTemplate(
        title="Cross-Site Scripting (XSS)",
        description="Parameter '{name}' is vulnerable to XSS attacks",
        evidence="Payload executed: {payload}",
        remediation="Implement proper input validation and output encoding",
    ),
    VulnerabilityType.SQLI: FindingTemplate(
        title="SQL Injection",
        description="Parameter '{name}' is vulnerable to SQL injection attacks",
        evidence="SQL injection successful with payload: {payload}",
        remediation="Use parameterized queries and input validation",
    ),
    VulnerabilityType.DIRECTORY_TRAVERSAL: FindingTemplate(
        title="Directory Traversal",
        description="Parameter '{name}' allows access to system files",
        evidence="Directory traversal successful with payload: {payload}",
        remediation="Implement proper file path validation and access controls",
    ),
}

FORM_TEMPLATES: Dict[VulnerabilityType, FindingTemplate] = {
    VulnerabilityType.XSS: FindingTemplate(
        title="Cross-Site Scripting (XSS) in Form",
        description="Form input '{name}' is vulnerable to XSS attacks",
        evidence="XSS payload executed in form: {payload}",
        remediation="Implement proper input validation and output encoding for form inputs",
    ),
    VulnerabilityType.SQLI: FindingTemplate(
        title="SQL Injection in Form",
        description="Form input '{name}' is vulnerable to SQL injection attacks",
        evidence="SQL injection successful in form: {payload}",
        remediation="Use parameterized queries and proper input validation for form data",
    ),
}


def severity_for(vuln_type: VulnerabilityType) -> Severity:
    return SEVERITY_MAP[VulnerabilityType(vuln_type)]


def _build(
    template: FindingTemplate,
    scan_id: int,
    vuln_type: VulnerabilityType,
    endpoint: str,
    name: str,
    payload: str,
) -> VulnerabilityDraft:
    return VulnerabilityDraft(
        scan_id=scan_id,
        type=vuln_type,
        severity=severity_for(vuln_type),
        title=template.title,
        description=template.description.format(name=name),
        endpoint=endpoint,
        parameter=name,
        payload=payload,
        evidence=template.evidence.format(payload=payload),
        remediation=template.remediation,
    )


def build_query_finding(
    scan_id: int,
    vuln_type: VulnerabilityType,
    endpoint: str,
    parameter: str,
    payload: str,
) -> VulnerabilityDraft:
    """쿼리 파라미터 주입으로 확인된 취약점"""
    vuln_type = VulnerabilityType(vuln_type)
    return _build(QUERY_TEMPLATES[vuln_type], scan_id, vuln_type, endpoint, parameter, payload)


def build_form_finding(
    scan_id: int,
    vuln_type: VulnerabilityType,
    action: str,
    input_name: str,
    payload: str,
) -> VulnerabilityDraft:
    """폼 입력 주입으로 확인된 취약점 (endpoint는 폼 action)"""
    vuln_type = VulnerabilityType(vuln_type)
    if vuln_type not in FORM_TEMPLATES:
        raise ValueError(f"Form testing is not supported for {vuln_type.value}")
    return _build(FORM_TEMPLATES[vuln_type], scan_id, vuln_type, action, input_name, payload)


def build_scan_report(scan: Scan, vulnerabilities: Optional[List[Vulnerability]] = None) -> ScanReport:
    return ScanReport(scan=scan, vulnerabilities=list(vulnerabilities or []))


__all__ = [
    "FindingTemplate",
    "SEVERITY_MAP",
    "QUERY_TEMPLATES",
    "FORM_TEMPLATES",
    "severity_for",
    "build_query_finding",
    "build_form_finding",
    "build_scan_report",
]
