"""
페이로드 공급자

- PayloadSource: generate(vuln_type, target) -> 비어 있지 않은 페이로드 목록
- StaticPayloadSource / GenerativePayloadSource 두 가지 구현
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from xploitra.scanner.clients import HttpClient
from xploitra.scanner.interfaces import LLMConfig, VulnerabilityType
from .generative import GenerativePayloadSource
from .static import STATIC_PAYLOADS, StaticPayloadSource, get_static_payloads


class PayloadSource(Protocol):

    def generate(self, vuln_type: VulnerabilityType, target: str) -> List[str]: ...


def build_payload_source(
    ai_payloads: bool,
    llm_config: Optional[LLMConfig] = None,
    http_client: Optional[HttpClient] = None,
) -> PayloadSource:
    if ai_payloads:
        return GenerativePayloadSource(llm_config, http_client)
    return StaticPayloadSource()


__all__ = [
    "PayloadSource",
    "StaticPayloadSource",
    "GenerativePayloadSource",
    "STATIC_PAYLOADS",
    "get_static_payloads",
    "build_payload_source",
]
