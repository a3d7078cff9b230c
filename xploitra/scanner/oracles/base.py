"""
HTTP 탐지 오라클 공통 베이스

- confirm_query: 페이로드가 삽입된 probe URL을 GET으로 요청
- confirm_form: 폼 action으로 입력값 하나를 페이로드로 채워 제출 (POST는 form data, GET은 query)
- 응답 판정은 클래스별 analyze()가 담당
"""

from __future__ import annotations

from typing import Optional, Protocol

from requests import RequestException, Response

from xploitra.scanner.clients import HttpClient, HttpClientConfig
from xploitra.scanner.interfaces import OracleError, VulnerabilityType
from xploitra.scanner.logger import get_logger

logger = get_logger("oracles")

DEFAULT_PROBE_TIMEOUT = 10.0


class VulnerabilityOracle(Protocol):

    vuln_type: VulnerabilityType

    def confirm_query(self, probe_url: str, parameter: str, payload: str) -> bool: ...
    def confirm_form(self, action: str, method: str, input_name: str, payload: str) -> bool: ...


class HttpOracle:
    vuln_type: VulnerabilityType

    def __init__(self, http_client: Optional[HttpClient] = None, timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.http_client = http_client or HttpClient(HttpClientConfig(timeout=timeout))
        self.timeout = timeout

    def analyze(self, body: str, payload: str) -> bool:
        raise NotImplementedError

    def _send(self, method: str, url: str, **kwargs) -> Response:
        try:
            return self.http_client.request(method, url, timeout=self.timeout, **kwargs)
        except RequestException as exc:
            raise OracleError(
                f"Probe request failed: {method} {url} ({exc.__class__.__name__})",
                error_code="PROBE_FAILED",
                context={"url": url, "type": self.vuln_type.value},
            ) from exc

    def confirm_query(self, probe_url: str, parameter: str, payload: str) -> bool:
        response = self._send("GET", probe_url)
        confirmed = self.analyze(response.text or "", payload)
        if confirmed:
            logger.debug("%s confirmed on parameter %r: %s", self.vuln_type.value, parameter, probe_url)
        return confirmed

    def confirm_form(self, action: str, method: str, input_name: str, payload: str) -> bool:
        fields = {input_name: payload}
        if (method or "GET").upper() == "POST":
            response = self._send("POST", action, data=fields)
        else:
            response = self._send("GET", action, params=fields)
        confirmed = self.analyze(response.text or "", payload)
        if confirmed:
            logger.debug("%s confirmed on form input %r: %s", self.vuln_type.value, input_name, action)
        return confirmed


def find_indicator(body: str, indicators) -> Optional[str]:
    """응답 본문에서 첫 번째로 발견된 지표 문자열 (대소문자 무시)"""
    text_lower = body.lower()
    for indicator in indicators:
        if indicator.lower() in text_lower:
            return indicator
    return None
