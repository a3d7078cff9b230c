"""
탐지 오라클

VulnerabilityOracle 구현체를 취약점 유형별로 제공한다.
build_oracles()는 오케스트레이터가 사용하는 {유형: 오라클} 매핑을 만든다.
"""

from __future__ import annotations

from typing import Dict, Optional

from xploitra.scanner.clients import HttpClient
from xploitra.scanner.interfaces import VulnerabilityType
from .base import DEFAULT_PROBE_TIMEOUT, HttpOracle, VulnerabilityOracle
from .directory_traversal import DirectoryTraversalOracle
from .sqli import SQLiOracle
from .xss import XSSOracle

ORACLE_MAP = {
    VulnerabilityType.XSS: XSSOracle,
    VulnerabilityType.SQLI: SQLiOracle,
    VulnerabilityType.DIRECTORY_TRAVERSAL: DirectoryTraversalOracle,
}


def build_oracles(
    http_client: Optional[HttpClient] = None,
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> Dict[VulnerabilityType, VulnerabilityOracle]:
    return {vuln_type: cls(http_client, timeout) for vuln_type, cls in ORACLE_MAP.items()}


__all__ = [
    "VulnerabilityOracle",
    "HttpOracle",
    "XSSOracle",
    "SQLiOracle",
    "DirectoryTraversalOracle",
    "ORACLE_MAP",
    "build_oracles",
]
