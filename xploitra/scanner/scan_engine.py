"""
Scan 엔진
-------------
ScanOptions 검증 ↔ Crawler ↔ TestOrchestrator ↔ ScanStorage 흐름을 담당합니다.

상태 전이: pending → running → completed | failed (종료 상태는 한 번만)
진행률: 생성 시 0, 크롤링 완료 시 30, 테스트 중 30→90, 완료 시 100

엔진 인스턴스 하나는 동시에 하나의 스캔만 실행합니다 (single-flight).
같은 저장소를 쓰는 다른 엔진(다른 프로세스)과의 충돌은 저장소의 start_scan이 막습니다.
중지 요청은 협조적으로 처리되며, 실행 중인 탐색/탐지 요청을 끊지 않습니다.
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from xploitra.scanner.clients import (
    BrowserClientConfig,
    HttpClient,
    HttpClientConfig,
    HttpRenderingClient,
    RenderingEngine,
    SeleniumBrowserClient,
)
from xploitra.scanner.crawler import Crawler
from xploitra.scanner.interfaces import (
    EngineConfig,
    LLMConfig,
    ProgressInfo,
    RendererType,
    Scan,
    ScanDepth,
    ScanInProgressError,
    ScanNotFoundError,
    ScanOptions,
    ScanStateError,
    ScanStatus,
    ValidationError,
    VulnerabilityType,
    XploitraException,
)
from xploitra.scanner.oracles import VulnerabilityOracle, build_oracles
from xploitra.scanner.orchestrator import PROGRESS_CRAWL_DONE, ScanStopped, TestOrchestrator
from xploitra.scanner.payloads import PayloadSource, build_payload_source
from xploitra.scanner.storage import ScanStorage
from xploitra.utils.url import is_absolute_http_url

STOPPED_BY_USER = "Stopped by user"


def validate_options(options: ScanOptions) -> ScanOptions:
    """
    스캔 설정 검증 및 정규화. 잘못된 설정은 ValidationError.

    - target_url: scheme(http/https) + host가 있는 절대 URL
    - rate_limit: 양의 정수
    - vulnerability_types: 비어 있지 않은 알려진 유형 집합 (순서 유지, 중복 제거)
    - scan_depth: 알 수 없는 값은 standard
    """
    target_url = (options.target_url or "").strip() if isinstance(options.target_url, str) else ""
    if not is_absolute_http_url(target_url):
        raise ValidationError(
            f"Invalid target URL: {options.target_url!r}",
            error_code="INVALID_URL",
            context={"target_url": options.target_url},
        )

    rate_limit = options.rate_limit
    if isinstance(rate_limit, bool) or not isinstance(rate_limit, int) or rate_limit <= 0:
        raise ValidationError(
            f"Rate limit must be a positive integer: {rate_limit!r}",
            error_code="INVALID_RATE_LIMIT",
        )

    try:
        types = tuple(dict.fromkeys(VulnerabilityType(t) for t in options.vulnerability_types or ()))
    except ValueError as exc:
        raise ValidationError(str(exc), error_code="INVALID_VULNERABILITY_TYPE") from exc
    if not types:
        raise ValidationError(
            "At least one vulnerability type must be enabled",
            error_code="NO_VULNERABILITY_TYPES",
        )

    return ScanOptions(
        target_url=target_url,
        scan_depth=ScanDepth.resolve(options.scan_depth),
        ai_payloads=bool(options.ai_payloads),
        rate_limit=rate_limit,
        vulnerability_types=types,
    )


def build_renderer(config: EngineConfig) -> RenderingEngine:
    """EngineConfig.renderer에 맞는 탐색 엔진 생성"""
    if RendererType(config.renderer) == RendererType.HTTP:
        http_config = HttpClientConfig(
            timeout=config.navigation_timeout,
            verify_ssl=config.verify_ssl,
            base_headers={"User-Agent": config.user_agent},
        )
        return HttpRenderingClient(HttpClient(http_config))
    return SeleniumBrowserClient(config=BrowserClientConfig(user_agent=config.user_agent))


def build_default_oracles(config: EngineConfig) -> Tuple[Dict[VulnerabilityType, VulnerabilityOracle], HttpClient]:
    """스캔 하나에서 쓰는 HTTP 오라클과 공유 세션. 세션은 호출한 쪽이 닫는다."""
    http_client = HttpClient(
        HttpClientConfig(
            timeout=config.probe_timeout,
            verify_ssl=config.verify_ssl,
            base_headers={"User-Agent": config.user_agent},
        )
    )
    return build_oracles(http_client, config.probe_timeout), http_client


class ScanEngine:
    """
    ScanEngine: 스캔 수명 주기(생성/실행/중지)와 진행률 집계를 담당

    - storage(필수): ScanStorage
    - renderer_factory(선택): 스캔마다 새 RenderingEngine 생성 (기본: EngineConfig.renderer)
    - payload_source_factory(선택): ScanOptions → PayloadSource (기본: ai_payloads 플래그로 선택)
    - oracles(선택): {VulnerabilityType: VulnerabilityOracle} (기본: 스캔마다 HTTP 오라클 생성)
    - on_progress(선택): 체크포인트마다 ProgressInfo 콜백
    """

    def __init__(
        self,
        storage: ScanStorage,
        *,
        engine_config: Optional[EngineConfig] = None,
        llm_config: Optional[LLMConfig] = None,
        renderer_factory: Optional[Callable[[], RenderingEngine]] = None,
        payload_source_factory: Optional[Callable[[ScanOptions], PayloadSource]] = None,
        oracles: Optional[Mapping[VulnerabilityType, VulnerabilityOracle]] = None,
        sleep: Callable[[float], None] = time.sleep,
        on_progress: Optional[Callable[[ProgressInfo], None]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if storage is None:
            raise ValueError("ScanEngine requires a ScanStorage instance.")

        self.storage = storage
        self.engine_config = engine_config or EngineConfig()
        self.llm_config = llm_config or LLMConfig()
        self.renderer_factory = renderer_factory or (lambda: build_renderer(self.engine_config))
        self.payload_source_factory = payload_source_factory or self._default_payload_source
        self._oracles = dict(oracles) if oracles is not None else None
        self.sleep = sleep
        self.on_progress = on_progress
        self.logger = logger or logging.getLogger("xploitra.engine")

        self._lock = threading.Lock()
        self._active_scan_id: Optional[int] = None
        self._worker: Optional[threading.Thread] = None

    # ------------------------------------------------------------------ #
    # 상태 조회
    # ------------------------------------------------------------------ #
    @property
    def is_busy(self) -> bool:
        return self._lock.locked()

    @property
    def active_scan_id(self) -> Optional[int]:
        return self._active_scan_id

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def create_scan(self, options: ScanOptions) -> Scan:
        """설정 검증 후 pending 상태의 Scan 레코드 생성"""
        options = validate_options(options)
        scan = self.storage.create_scan(options)
        self.logger.info("Created scan %s for %s", scan.id, scan.target_url)
        self._notify(scan, "Scan created")
        return scan

    def run_scan(self, scan_id: int) -> Scan:
        """
        pending 상태의 Scan을 현재 스레드에서 끝까지 실행합니다.

        Raises:
            ScanInProgressError: 다른 스캔이 실행 중 (같은 저장소를 쓰는 다른 엔진 포함)
            ScanNotFoundError: 존재하지 않는 scan_id
            ScanStateError: pending 상태가 아닌 Scan
        """
        self._acquire()
        try:
            scan = self.storage.get_scan(scan_id)
            if scan is None:
                raise ScanNotFoundError(
                    f"Scan {scan_id} not found", error_code="SCAN_NOT_FOUND", context={"scan_id": scan_id}
                )
            if scan.status != ScanStatus.PENDING:
                raise ScanStateError(
                    f"Scan {scan_id} is {scan.status.value}, expected pending",
                    error_code="NOT_PENDING",
                    context={"scan_id": scan_id, "status": scan.status.value},
                )
            return self._execute(scan)
        finally:
            self._release()

    def submit_scan(self, options: ScanOptions) -> Scan:
        """
        검증 → 잠금 → Scan 생성 → 백그라운드 스레드에서 실행.
        잠금을 얻지 못하면 레코드를 만들지 않고 ScanInProgressError.
        """
        options = validate_options(options)
        self._acquire()
        try:
            self.ensure_store_idle()
            scan = self.storage.create_scan(options)
            self._active_scan_id = scan.id
            self._notify(scan, "Scan created")
            worker = threading.Thread(
                target=self._execute_and_release,
                args=(scan,),
                name=f"xploitra-scan-{scan.id}",
                daemon=True,
            )
            worker.start()
        except BaseException:
            self._release()
            raise
        self._worker = worker
        return scan

    def ensure_store_idle(self) -> None:
        """저장소에 running Scan이 있으면 ScanInProgressError (같은 DB를 쓰는 다른 프로세스 포함)"""
        running = [s.id for s in self.storage.get_active_scans() if s.status == ScanStatus.RUNNING]
        if running:
            raise ScanInProgressError(
                "Another scan is already in progress",
                error_code="SCAN_IN_PROGRESS",
                context={"active_scan_id": running[0]},
            )

    def wait(self, timeout: Optional[float] = None) -> bool:
        """백그라운드 스캔 종료 대기. 종료되었으면 True"""
        worker = self._worker
        if worker is None:
            return True
        worker.join(timeout)
        return not worker.is_alive()

    def stop_scan(self, scan_id: int) -> Scan:
        """pending/running Scan을 failed("Stopped by user")로 강제 전환"""
        scan = self.storage.get_scan(scan_id)
        if scan is None:
            raise ScanNotFoundError(
                f"Scan {scan_id} not found", error_code="SCAN_NOT_FOUND", context={"scan_id": scan_id}
            )
        if scan.status.is_terminal:
            raise ScanStateError(
                f"Scan {scan_id} already {scan.status.value}",
                error_code="ALREADY_TERMINAL",
                context={"scan_id": scan_id, "status": scan.status.value},
            )

        stopped = self.storage.update_scan(
            scan_id,
            {"status": ScanStatus.FAILED, "error": STOPPED_BY_USER, "completed_at": datetime.utcnow()},
        )
        if stopped is None:
            # 조회와 갱신 사이에 종료됨
            raise ScanStateError(f"Scan {scan_id} already finished", error_code="ALREADY_TERMINAL")

        self.logger.info("🛑 Scan %s stopped by user", scan_id)
        self._notify(stopped, STOPPED_BY_USER)
        return stopped

    # ------------------------------------------------------------------ #
    # 실행 흐름
    # ------------------------------------------------------------------ #
    def _acquire(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise ScanInProgressError(
                "Another scan is already in progress",
                error_code="SCAN_IN_PROGRESS",
                context={"active_scan_id": self._active_scan_id},
            )

    def _release(self) -> None:
        self._active_scan_id = None
        self._lock.release()

    def _execute_and_release(self, scan: Scan) -> None:
        try:
            self._execute(scan)
        except ScanInProgressError as exc:
            # submit 확인 이후 다른 프로세스가 먼저 시작한 경우
            self.logger.warning("Scan %s could not start: %s", scan.id, exc.message)
            self._fail(scan.id, exc.message, expected_status=ScanStatus.PENDING)
        finally:
            self._release()

    def _execute(self, scan: Scan) -> Scan:
        self._active_scan_id = scan.id
        try:
            started = self.storage.start_scan(scan.id, datetime.utcnow())
        except ScanInProgressError:
            raise
        except XploitraException as exc:
            self.logger.exception("💥 Could not start scan %s: %s", scan.id, exc)
            self._fail(scan.id, exc.message, expected_status=ScanStatus.PENDING)
            return self._snapshot(scan)
        if started is None:
            self.logger.info("Scan %s was stopped before it started", scan.id)
            return self._snapshot(scan)

        self.logger.info("🧭 Starting scan %s for target %s", scan.id, scan.target_url)
        self._notify(started, "Scan started")

        renderer = None
        payload_source = None
        probe_client = None
        try:
            options = started.options
            renderer = self.renderer_factory()
            crawler = Crawler(
                renderer,
                navigation_timeout=self.engine_config.navigation_timeout,
                max_links=self.engine_config.max_links_per_page,
                sleep=self.sleep,
                logger=self.logger.getChild("crawler"),
            )
            endpoints = crawler.crawl(
                options.target_url,
                options.max_depth,
                options.rate_limit,
                cancelled=lambda: self._is_stopped(scan.id),
            )

            crawled = self._checkpoint(
                scan.id,
                {"endpoints_found": len(endpoints), "progress": PROGRESS_CRAWL_DONE},
                f"Crawl finished: {len(endpoints)} endpoint(s)",
            )

            if self._oracles is not None:
                oracles = self._oracles
            else:
                oracles, probe_client = build_default_oracles(self.engine_config)
            payload_source = self.payload_source_factory(options)
            orchestrator = TestOrchestrator(
                self.storage,
                payload_source,
                oracles,
                sleep=self.sleep,
                on_checkpoint=lambda s: self._notify(
                    s, f"Tested {s.endpoints_tested}/{s.endpoints_found} endpoint(s)"
                ),
                logger=self.logger.getChild("orchestrator"),
            )
            orchestrator.test(crawled.id, endpoints, options)

            self._checkpoint(
                scan.id,
                {"status": ScanStatus.COMPLETED, "progress": 100, "completed_at": datetime.utcnow()},
                "Scan completed",
            )
            self.logger.info("🏁 Scan %s completed", scan.id)
        except ScanStopped:
            self.logger.info("Scan %s stopped; remaining work discarded", scan.id)
        except Exception as exc:
            self.logger.exception("💥 Scan %s failed: %s", scan.id, exc)
            self._fail(scan.id, str(exc) or exc.__class__.__name__)
        finally:
            for resource in (renderer, payload_source, probe_client):
                self._close(resource)

        return self._snapshot(started)

    def _checkpoint(self, scan_id: int, updates: Dict[str, Any], message: str) -> Scan:
        updated = self.storage.update_scan(scan_id, updates, expected_status=ScanStatus.RUNNING)
        if updated is None:
            raise ScanStopped(scan_id)
        self._notify(updated, message)
        return updated

    def _fail(self, scan_id: int, message: str, expected_status: ScanStatus = ScanStatus.RUNNING) -> None:
        try:
            failed = self.storage.update_scan(
                scan_id,
                {"status": ScanStatus.FAILED, "error": message, "completed_at": datetime.utcnow()},
                expected_status=expected_status,
            )
        except XploitraException:
            self.logger.exception("Could not record failure for scan %s", scan_id)
            return
        if failed is not None:
            self._notify(failed, f"Scan failed: {message}")

    def _snapshot(self, last_known: Scan) -> Scan:
        """저장소를 읽지 못하면 마지막으로 알던 상태를 반환"""
        try:
            return self.storage.get_scan(last_known.id) or last_known
        except XploitraException as exc:
            self.logger.warning("Could not reload scan %s: %s", last_known.id, exc.message)
            return last_known

    def _is_stopped(self, scan_id: int) -> bool:
        scan = self.storage.get_scan(scan_id)
        return scan is None or scan.status != ScanStatus.RUNNING

    def _close(self, resource: Any) -> None:
        close = getattr(resource, "close", None)
        if close is None:
            return
        try:
            close()
        except Exception as exc:
            self.logger.debug("%s close failed: %s", resource.__class__.__name__, exc)

    def _default_payload_source(self, options: ScanOptions) -> PayloadSource:
        return build_payload_source(options.ai_payloads, self.llm_config)

    def _notify(self, scan: Scan, message: str) -> None:
        if not self.on_progress:
            return
        info = ProgressInfo(
            scan_id=scan.id,
            current=scan.endpoints_tested,
            total=scan.endpoints_found,
            percentage=float(scan.progress),
            message=message,
        )
        try:
            self.on_progress(info)
        except Exception:
            self.logger.exception("on_progress callback failed")


__all__ = ["ScanEngine", "validate_options", "build_renderer", "build_default_oracles", "STOPPED_BY_USER"]
