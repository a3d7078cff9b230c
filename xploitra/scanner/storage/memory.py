"""In-process scan/vulnerability store guarded by a single lock."""

from __future__ import annotations

import threading
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Optional

from xploitra.scanner.interfaces import (
    Scan,
    ScanOptions,
    ScanStatus,
    SecurityStats,
    Severity,
    Vulnerability,
    VulnerabilityDraft,
)
from xploitra.scanner.logger import get_logger
from .base import (
    DEFAULT_SCAN_LIMIT,
    DEFAULT_VULNERABILITY_LIMIT,
    ScanStorage,
    can_update,
    scan_in_progress,
    validate_updates,
    vulnerability_from_draft,
)

logger = get_logger("storage")


class MemoryStorage(ScanStorage):

    def __init__(self):
        self._lock = threading.RLock()
        self._scans: Dict[int, Scan] = {}
        self._vulnerabilities: Dict[int, Vulnerability] = {}
        self._next_scan_id = 1
        self._next_vuln_id = 1

    # ------------------------------------------------------------------ #
    # Scans
    # ------------------------------------------------------------------ #
    def create_scan(self, options: ScanOptions) -> Scan:
        with self._lock:
            scan = Scan(
                id=self._next_scan_id,
                target_url=options.target_url,
                scan_depth=options.scan_depth,
                ai_payloads=options.ai_payloads,
                rate_limit=options.rate_limit,
                vulnerability_types=tuple(options.vulnerability_types),
                created_at=datetime.utcnow(),
            )
            self._scans[scan.id] = scan
            self._next_scan_id += 1
            return scan

    def get_scan(self, scan_id: int) -> Optional[Scan]:
        with self._lock:
            return self._scans.get(scan_id)

    def update_scan(
        self,
        scan_id: int,
        updates: Dict[str, Any],
        expected_status: Optional[ScanStatus] = None,
    ) -> Optional[Scan]:
        updates = validate_updates(updates)
        with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None or not can_update(scan, expected_status):
                return None
            updated = replace(scan, **updates)
            self._scans[scan_id] = updated
            return updated

    def start_scan(self, scan_id: int, started_at: Optional[datetime] = None) -> Optional[Scan]:
        with self._lock:
            scan = self._scans.get(scan_id)
            if scan is None or scan.status != ScanStatus.PENDING:
                return None
            running = [s.id for s in self._scans.values() if s.status == ScanStatus.RUNNING]
            if running:
                raise scan_in_progress(running[0])
            started = replace(scan, status=ScanStatus.RUNNING, started_at=started_at or datetime.utcnow())
            self._scans[scan_id] = started
            return started

    def get_scans(self, limit: int = DEFAULT_SCAN_LIMIT) -> List[Scan]:
        with self._lock:
            scans = sorted(self._scans.values(), key=lambda s: (s.created_at, s.id), reverse=True)
        return scans[:limit]

    def get_active_scans(self) -> List[Scan]:
        with self._lock:
            return [
                scan for scan in self._scans.values()
                if scan.status in (ScanStatus.RUNNING, ScanStatus.PENDING)
            ]

    # ------------------------------------------------------------------ #
    # Vulnerabilities
    # ------------------------------------------------------------------ #
    def create_vulnerability(self, draft: VulnerabilityDraft) -> Optional[Vulnerability]:
        with self._lock:
            scan = self._scans.get(draft.scan_id)
            if scan is None or scan.status != ScanStatus.RUNNING:
                logger.debug("Discarding finding for scan %s (not running)", draft.scan_id)
                return None

            vuln = vulnerability_from_draft(self._next_vuln_id, draft, datetime.utcnow())
            self._vulnerabilities[vuln.id] = vuln
            self._next_vuln_id += 1
            self._scans[scan.id] = replace(
                scan, vulnerabilities_found=scan.vulnerabilities_found + 1
            )
            return vuln

    def get_vulnerabilities_by_scan(self, scan_id: int) -> List[Vulnerability]:
        with self._lock:
            vulns = [v for v in self._vulnerabilities.values() if v.scan_id == scan_id]
        return sorted(vulns, key=lambda v: (v.found_at, v.id), reverse=True)

    def get_latest_vulnerabilities(self, limit: int = DEFAULT_VULNERABILITY_LIMIT) -> List[Vulnerability]:
        with self._lock:
            vulns = list(self._vulnerabilities.values())
        return sorted(vulns, key=lambda v: (v.found_at, v.id), reverse=True)[:limit]

    def get_security_stats(self) -> SecurityStats:
        with self._lock:
            severities = [v.severity for v in self._vulnerabilities.values()]
            return SecurityStats(
                critical=severities.count(Severity.CRITICAL),
                high=severities.count(Severity.HIGH),
                medium=severities.count(Severity.MEDIUM),
                scanned=len(self._scans),
            )
