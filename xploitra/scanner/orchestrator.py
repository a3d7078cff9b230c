"""
테스트 오케스트레이터
---------------------
크롤링된 Endpoint 목록에 페이로드를 주입하고, 오라클이 확인한 주입 지점을 Finding으로 저장합니다.

- 쿼리 파라미터: xss 3개 / sqli 3개 / directory_traversal 2개 페이로드
- 폼 입력(text-like만): xss / sqli 각 2개 페이로드
- Endpoint 하나가 끝날 때마다 endpoints_tested/progress 체크포인트 저장 후 1/rps 초 대기
- 체크포인트 저장이 거부되면(스캔이 더 이상 running이 아님) 그 자리에서 중단
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Mapping, Optional

from xploitra.scanner.finding import build_form_finding, build_query_finding
from xploitra.scanner.interfaces import (
    Endpoint,
    Form,
    Scan,
    ScanOptions,
    ScanStatus,
    VulnerabilityDraft,
    VulnerabilityType,
    XploitraException,
)
from xploitra.scanner.oracles import VulnerabilityOracle
from xploitra.scanner.payloads import PayloadSource, get_static_payloads
from xploitra.scanner.storage import ScanStorage
from xploitra.utils.url import set_query_param

QUERY_PAYLOAD_LIMITS: Dict[VulnerabilityType, int] = {
    VulnerabilityType.XSS: 3,
    VulnerabilityType.SQLI: 3,
    VulnerabilityType.DIRECTORY_TRAVERSAL: 2,
}
FORM_PAYLOAD_LIMITS: Dict[VulnerabilityType, int] = {
    VulnerabilityType.XSS: 2,
    VulnerabilityType.SQLI: 2,
}

PROGRESS_CRAWL_DONE = 30
PROGRESS_TEST_SPAN = 60
PROGRESS_TEST_CAP = 90


def progress_for(tested: int, total: int) -> int:
    """테스트 단계 진행률: 30 → 90 (Endpoint 개수 기준 선형)"""
    if total <= 0:
        return PROGRESS_TEST_CAP
    return min(PROGRESS_CRAWL_DONE + (tested * PROGRESS_TEST_SPAN) // total, PROGRESS_TEST_CAP)


class ScanStopped(Exception):
    """체크포인트 저장이 거부됨 (외부에서 중지된 스캔)"""


class TestOrchestrator:
    __test__ = False  # pytest 수집 대상 아님

    def __init__(
        self,
        storage: ScanStorage,
        payload_source: PayloadSource,
        oracles: Mapping[VulnerabilityType, VulnerabilityOracle],
        *,
        sleep: Callable[[float], None] = time.sleep,
        on_checkpoint: Optional[Callable[[Scan], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.storage = storage
        self.payload_source = payload_source
        self.oracles = dict(oracles)
        self.sleep = sleep
        self.on_checkpoint = on_checkpoint
        self.logger = logger or logging.getLogger("xploitra.orchestrator")

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def test(self, scan_id: int, endpoints: List[Endpoint], options: ScanOptions) -> int:
        """
        모든 Endpoint를 순서대로 테스트합니다.

        Returns:
            int: 테스트를 마친 Endpoint 개수

        Raises:
            ScanStopped: 체크포인트 저장이 거부된 경우
        """
        total = len(endpoints)
        delay = 1.0 / options.rate_limit
        self.logger.info("🔍 Testing %d endpoint(s)", total)

        for tested, endpoint in enumerate(endpoints, 1):
            self._test_endpoint(scan_id, endpoint, options)

            scan = self.storage.update_scan(
                scan_id,
                {"endpoints_tested": tested, "progress": progress_for(tested, total)},
                expected_status=ScanStatus.RUNNING,
            )
            if scan is None:
                self.logger.info("Scan %s is no longer running; stopping after %d endpoint(s)", scan_id, tested)
                raise ScanStopped(scan_id)
            if self.on_checkpoint:
                self.on_checkpoint(scan)

            self.sleep(delay)

        return total

    # ------------------------------------------------------------------ #
    # Internal
    # ------------------------------------------------------------------ #
    def _test_endpoint(self, scan_id: int, endpoint: Endpoint, options: ScanOptions) -> None:
        if endpoint.parameters:
            for vuln_type in QUERY_PAYLOAD_LIMITS:
                if options.is_enabled(vuln_type):
                    self._test_query(scan_id, endpoint, vuln_type)

        for form in endpoint.forms:
            if not form.inputs:
                continue
            for vuln_type in FORM_PAYLOAD_LIMITS:
                if options.is_enabled(vuln_type):
                    self._test_form(scan_id, form, vuln_type)

    def _payloads(self, vuln_type: VulnerabilityType, target: str, limit: int) -> List[str]:
        try:
            payloads = list(self.payload_source.generate(vuln_type, target))
        except Exception as exc:
            self.logger.warning("Payload supply failed for %s (%s); using static payloads", vuln_type.value, exc)
            payloads = []
        if not payloads:
            payloads = get_static_payloads(vuln_type)
        return payloads[:limit]

    def _confirm(self, probe: Callable[[], bool], description: str) -> bool:
        try:
            return bool(probe())
        except XploitraException as exc:
            self.logger.warning("Probe failed (%s): %s", description, exc.message)
        except Exception as exc:
            self.logger.warning("Probe failed (%s): %s", description, exc)
        return False

    def _test_query(self, scan_id: int, endpoint: Endpoint, vuln_type: VulnerabilityType) -> None:
        oracle = self.oracles.get(vuln_type)
        if oracle is None:
            self.logger.debug("No oracle registered for %s", vuln_type.value)
            return

        payloads = self._payloads(vuln_type, endpoint.url, QUERY_PAYLOAD_LIMITS[vuln_type])
        for parameter in endpoint.parameters:
            for payload in payloads:
                probe_url = set_query_param(endpoint.url, parameter, payload)
                confirmed = self._confirm(
                    lambda: oracle.confirm_query(probe_url, parameter, payload),
                    f"{vuln_type.value} {endpoint.url} {parameter}",
                )
                if confirmed:
                    self._record(build_query_finding(scan_id, vuln_type, endpoint.url, parameter, payload))

    def _test_form(self, scan_id: int, form: Form, vuln_type: VulnerabilityType) -> None:
        oracle = self.oracles.get(vuln_type)
        if oracle is None:
            self.logger.debug("No oracle registered for %s", vuln_type.value)
            return

        payloads = self._payloads(vuln_type, form.action, FORM_PAYLOAD_LIMITS[vuln_type])
        for field in form.inputs:
            if not field.is_text_like:
                continue
            for payload in payloads:
                confirmed = self._confirm(
                    lambda: oracle.confirm_form(form.action, form.method, field.name, payload),
                    f"{vuln_type.value} form {form.action} {field.name}",
                )
                if confirmed:
                    self._record(build_form_finding(scan_id, vuln_type, form.action, field.name, payload))

    def _record(self, draft: VulnerabilityDraft) -> None:
        vuln = self.storage.create_vulnerability(draft)
        if vuln is None:
            self.logger.debug("Finding discarded for scan %s: %s", draft.scan_id, draft.title)
            return
        self.logger.warning(
            "🚨 %s [%s] at %s (%s)", vuln.title, vuln.severity.value, vuln.endpoint, vuln.parameter
        )


__all__ = [
    "TestOrchestrator",
    "ScanStopped",
    "progress_for",
    "QUERY_PAYLOAD_LIMITS",
    "FORM_PAYLOAD_LIMITS",
]
