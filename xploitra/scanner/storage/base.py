"""
저장소 공통 인터페이스

규칙 (모든 구현체 공통):
- Scan 갱신은 레코드 전체를 교체하는 단일 원자 연산이다. 읽는 쪽은 부분 갱신 상태를 보지 않는다.
- 종료 상태(completed/failed)의 Scan은 더 이상 갱신되지 않는다. update_scan은 None을 반환한다.
- expected_status가 주어지면 현재 상태가 일치할 때만 갱신한다.
- create_vulnerability는 Scan이 running일 때만 기록하며, vulnerabilities_found를 같은 연산 안에서 1 증가시킨다.
- start_scan은 pending → running 전이를 하나의 원자 연산으로 처리한다.
  저장소 전체에서 running Scan은 최대 하나이며, 다른 Scan이 running이면 ScanInProgressError.
"""

from __future__ import annotations

from dataclasses import fields
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from xploitra.scanner.interfaces import (
    Scan,
    ScanInProgressError,
    ScanOptions,
    ScanStatus,
    SecurityStats,
    StorageError,
    Vulnerability,
    VulnerabilityDraft,
)

DEFAULT_SCAN_LIMIT = 50
DEFAULT_VULNERABILITY_LIMIT = 10

# 엔진이 갱신할 수 있는 필드 (설정/식별 필드는 불변)
MUTABLE_SCAN_FIELDS = frozenset({
    "status",
    "progress",
    "endpoints_found",
    "endpoints_tested",
    "vulnerabilities_found",
    "error",
    "started_at",
    "completed_at",
})


class ScanStorage(Protocol):

    def create_scan(self, options: ScanOptions) -> Scan: ...
    def get_scan(self, scan_id: int) -> Optional[Scan]: ...
    def update_scan(
        self,
        scan_id: int,
        updates: Dict[str, Any],
        expected_status: Optional[ScanStatus] = None,
    ) -> Optional[Scan]: ...
    def start_scan(self, scan_id: int, started_at: Optional[datetime] = None) -> Optional[Scan]: ...
    def get_scans(self, limit: int = DEFAULT_SCAN_LIMIT) -> List[Scan]: ...
    def get_active_scans(self) -> List[Scan]: ...

    def create_vulnerability(self, draft: VulnerabilityDraft) -> Optional[Vulnerability]: ...
    def get_vulnerabilities_by_scan(self, scan_id: int) -> List[Vulnerability]: ...
    def get_latest_vulnerabilities(self, limit: int = DEFAULT_VULNERABILITY_LIMIT) -> List[Vulnerability]: ...

    def get_security_stats(self) -> SecurityStats: ...


def validate_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """허용되지 않은 필드 갱신 요청은 StorageError"""
    unknown = set(updates) - MUTABLE_SCAN_FIELDS
    if unknown:
        raise StorageError(
            f"Cannot update scan fields: {', '.join(sorted(unknown))}",
            error_code="IMMUTABLE_FIELD",
            context={"fields": sorted(unknown)},
        )
    if "status" in updates:
        updates = dict(updates)
        updates["status"] = ScanStatus(updates["status"])
    return updates


def scan_in_progress(active_scan_id: Optional[int]) -> ScanInProgressError:
    return ScanInProgressError(
        "Another scan is already in progress",
        error_code="SCAN_IN_PROGRESS",
        context={"active_scan_id": active_scan_id},
    )


def can_update(scan: Scan, expected_status: Optional[ScanStatus]) -> bool:
    if scan.status.is_terminal:
        return False
    if expected_status is not None and scan.status != ScanStatus(expected_status):
        return False
    return True


def vulnerability_from_draft(vuln_id: int, draft: VulnerabilityDraft, found_at) -> Vulnerability:
    values = {f.name: getattr(draft, f.name) for f in fields(draft)}
    return Vulnerability(id=vuln_id, found_at=found_at, **values)
