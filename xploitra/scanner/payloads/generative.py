"""
생성형(LLM) 페이로드 공급자

OpenAI 호환 chat-completions 엔드포인트에 클래스별 페이로드 생성을 요청한다.
응답 형식: {"payloads": ["...", ...]}

전송/파싱 실패 또는 빈 목록이면 해당 호출에 한해 정적 목록으로 대체한다.
API 키가 없으면 한 번만 경고하고 항상 정적 목록을 사용한다.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from requests import RequestException

from xploitra.scanner.clients import HttpClient, HttpClientConfig
from xploitra.scanner.interfaces import (
    LLMConfig,
    PayloadGenerationError,
    VulnerabilityType,
)
from xploitra.scanner.logger import get_logger
from .static import get_static_payloads

logger = get_logger("payloads")

_PROMPTS: Dict[VulnerabilityType, Dict[str, Any]] = {
    VulnerabilityType.XSS: {
        "count": 5,
        "expert": "XSS vulnerability testing",
        "noun": "XSS",
        "focus": "Focus on different XSS techniques like script injection, event handlers, and HTML injection.",
    },
    VulnerabilityType.SQLI: {
        "count": 5,
        "expert": "SQL injection testing",
        "noun": "SQL injection",
        "focus": "Include different techniques like union-based, error-based, and boolean-based SQL injection.",
    },
    VulnerabilityType.DIRECTORY_TRAVERSAL: {
        "count": 3,
        "expert": "directory traversal testing",
        "noun": "directory traversal",
        "focus": "Include different encoding techniques and path variations.",
    },
}


def build_messages(vuln_type: VulnerabilityType, target: str) -> List[Dict[str, str]]:
    prompt = _PROMPTS[VulnerabilityType(vuln_type)]
    system = (
        f"You are a cybersecurity expert specializing in {prompt['expert']}. "
        f"Generate realistic {prompt['noun']} payloads for ethical security testing. "
        "Respond with JSON containing an array of payloads."
    )
    user = (
        f"Generate {prompt['count']} {prompt['noun']} payloads for testing the URL: {target}. "
        f"{prompt['focus']} "
        'Return JSON format: {"payloads": ["payload1", "payload2", ...]}'
    )
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": user},
    ]


def parse_payloads(content: str) -> List[str]:
    """모델 응답 본문에서 payloads 배열 추출 (문자열만 유지)"""
    try:
        data = json.loads(content or "")
    except ValueError as exc:
        raise PayloadGenerationError(
            "LLM response is not valid JSON", error_code="LLM_BAD_JSON"
        ) from exc

    payloads = data.get("payloads") if isinstance(data, dict) else None
    if not isinstance(payloads, list):
        raise PayloadGenerationError(
            "LLM response has no payloads array", error_code="LLM_NO_PAYLOADS"
        )
    return [p for p in payloads if isinstance(p, str) and p]


class GenerativePayloadSource:
    """LLM 기반 PayloadSource. 실패 시 정적 목록 대체."""

    def __init__(self, config: Optional[LLMConfig] = None, http_client: Optional[HttpClient] = None):
        self.config = config or LLMConfig()
        self._owns_client = http_client is None
        self.http_client = http_client or HttpClient(HttpClientConfig(retry=0, timeout=self.config.timeout))
        self._warned_no_key = False

    def close(self) -> None:
        # 주입받은 세션은 호출한 쪽이 닫는다
        if self._owns_client:
            self.http_client.close()

    def _request(self, vuln_type: VulnerabilityType, target: str) -> List[str]:
        body = {
            "model": self.config.model,
            "messages": build_messages(vuln_type, target),
            "response_format": {"type": "json_object"},
        }
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = self.http_client.post(
                self.config.endpoint, json=body, headers=headers, timeout=self.config.timeout
            )
        except RequestException as exc:
            raise PayloadGenerationError(
                f"LLM request failed: {exc.__class__.__name__}", error_code="LLM_UNREACHABLE"
            ) from exc

        if response.status_code >= 400:
            raise PayloadGenerationError(
                f"LLM request failed with HTTP {response.status_code}",
                error_code="LLM_HTTP_ERROR",
                context={"status_code": response.status_code},
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise PayloadGenerationError(
                "Unexpected LLM response shape", error_code="LLM_BAD_RESPONSE"
            ) from exc
        return parse_payloads(content)

    def generate(self, vuln_type: VulnerabilityType, target: str) -> List[str]:
        vuln_type = VulnerabilityType(vuln_type)
        if not self.config.api_key:
            if not self._warned_no_key:
                logger.warning("OPENAI_API_KEY is not set; using static payloads")
                self._warned_no_key = True
            return get_static_payloads(vuln_type)

        try:
            payloads = self._request(vuln_type, target)
        except PayloadGenerationError as exc:
            logger.warning("Payload generation failed for %s (%s); using static payloads", vuln_type.value, exc.message)
            return get_static_payloads(vuln_type)

        if not payloads:
            logger.warning("LLM returned no %s payloads; using static payloads", vuln_type.value)
            return get_static_payloads(vuln_type)

        logger.debug("Generated %d %s payloads for %s", len(payloads), vuln_type.value, target)
        return payloads


__all__ = ["GenerativePayloadSource", "build_messages", "parse_payloads"]
