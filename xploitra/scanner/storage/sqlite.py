"""
SQLite 저장소

CLI가 여러 번 실행되어도 스캔 이력/중지/내보내기가 동작하도록 디스크에 기록한다.
조건부 갱신과 카운터 증가는 하나의 트랜잭션 안에서 처리한다.
"""

from __future__ import annotations

import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from xploitra.scanner.interfaces import (
    Scan,
    ScanDepth,
    ScanOptions,
    ScanStatus,
    SecurityStats,
    Severity,
    StorageError,
    Vulnerability,
    VulnerabilityDraft,
    VulnerabilityType,
)
from xploitra.scanner.logger import get_logger
from .base import (
    DEFAULT_SCAN_LIMIT,
    DEFAULT_VULNERABILITY_LIMIT,
    ScanStorage,
    scan_in_progress,
    validate_updates,
)

logger = get_logger("storage")

SCHEMA = """
CREATE TABLE IF NOT EXISTS scans (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    target_url TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'pending',
    progress INTEGER NOT NULL DEFAULT 0,
    scan_depth TEXT NOT NULL DEFAULT 'standard',
    ai_payloads INTEGER NOT NULL DEFAULT 1,
    rate_limit INTEGER NOT NULL DEFAULT 5,
    vulnerability_types TEXT NOT NULL DEFAULT '',
    endpoints_found INTEGER NOT NULL DEFAULT 0,
    endpoints_tested INTEGER NOT NULL DEFAULT 0,
    vulnerabilities_found INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    started_at TEXT,
    completed_at TEXT,
    error TEXT
);

CREATE TABLE IF NOT EXISTS vulnerabilities (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    scan_id INTEGER NOT NULL REFERENCES scans(id),
    type TEXT NOT NULL,
    severity TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL,
    endpoint TEXT NOT NULL,
    parameter TEXT,
    payload TEXT,
    evidence TEXT,
    remediation TEXT,
    found_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_scans_status ON scans(status);
CREATE INDEX IF NOT EXISTS idx_vulnerabilities_scan ON vulnerabilities(scan_id);
"""

_TERMINAL = (ScanStatus.COMPLETED.value, ScanStatus.FAILED.value)


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteStorage(ScanStorage):

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()
        self._conn = sqlite3.connect(self.db_path, timeout=10, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        with self._conn:
            self._conn.executescript(SCHEMA)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ------------------------------------------------------------------ #
    # Row mapping
    # ------------------------------------------------------------------ #
    @staticmethod
    def _row_to_scan(row: sqlite3.Row) -> Scan:
        types = tuple(
            VulnerabilityType(name) for name in row["vulnerability_types"].split(",") if name
        )
        return Scan(
            id=row["id"],
            target_url=row["target_url"],
            scan_depth=ScanDepth.resolve(row["scan_depth"]),
            ai_payloads=bool(row["ai_payloads"]),
            rate_limit=row["rate_limit"],
            vulnerability_types=types,
            status=ScanStatus(row["status"]),
            progress=row["progress"],
            endpoints_found=row["endpoints_found"],
            endpoints_tested=row["endpoints_tested"],
            vulnerabilities_found=row["vulnerabilities_found"],
            error=row["error"],
            created_at=_parse_dt(row["created_at"]),
            started_at=_parse_dt(row["started_at"]),
            completed_at=_parse_dt(row["completed_at"]),
        )

    @staticmethod
    def _row_to_vulnerability(row: sqlite3.Row) -> Vulnerability:
        return Vulnerability(
            id=row["id"],
            scan_id=row["scan_id"],
            type=VulnerabilityType(row["type"]),
            severity=Severity(row["severity"]),
            title=row["title"],
            description=row["description"],
            endpoint=row["endpoint"],
            parameter=row["parameter"],
            payload=row["payload"],
            evidence=row["evidence"],
            remediation=row["remediation"],
            found_at=_parse_dt(row["found_at"]),
        )

    # ------------------------------------------------------------------ #
    # Scans
    # ------------------------------------------------------------------ #
    def create_scan(self, options: ScanOptions) -> Scan:
        with self._lock, self._conn:
            cursor = self._conn.execute(
                "INSERT INTO scans (target_url, scan_depth, ai_payloads, rate_limit, "
                "vulnerability_types, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (
                    options.target_url,
                    ScanDepth.resolve(options.scan_depth).value,
                    int(options.ai_payloads),
                    options.rate_limit,
                    ",".join(VulnerabilityType(t).value for t in options.vulnerability_types),
                    _dt(datetime.utcnow()),
                ),
            )
            scan_id = cursor.lastrowid
        return self.get_scan(scan_id)

    def get_scan(self, scan_id: int) -> Optional[Scan]:
        with self._lock:
            try:
                row = self._conn.execute("SELECT * FROM scans WHERE id = ?", (scan_id,)).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to read scan {scan_id}: {exc}") from exc
        return self._row_to_scan(row) if row else None

    def start_scan(self, scan_id: int, started_at: Optional[datetime] = None) -> Optional[Scan]:
        """
        pending → running 전이. 다른 프로세스가 같은 DB에서 실행 중인 Scan도 검사한다.
        UPDATE 한 문장 안에서 running 여부를 확인하므로 두 프로세스가 동시에 시작할 수 없다.
        """
        running = ScanStatus.RUNNING.value
        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(
                        "UPDATE scans SET status = ?, started_at = ? "
                        "WHERE id = ? AND status = ? "
                        "AND NOT EXISTS (SELECT 1 FROM scans WHERE status = ?)",
                        (running, _dt(started_at or datetime.utcnow()), scan_id, ScanStatus.PENDING.value, running),
                    )
                    blocker = None
                    if cursor.rowcount == 0:
                        blocker = self._conn.execute(
                            "SELECT id FROM scans WHERE status = ? AND id != ? "
                            "AND EXISTS (SELECT 1 FROM scans WHERE id = ? AND status = ?) LIMIT 1",
                            (running, scan_id, scan_id, ScanStatus.PENDING.value),
                        ).fetchone()
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to start scan {scan_id}: {exc}") from exc
            if blocker is not None:
                raise scan_in_progress(blocker["id"])
            if cursor.rowcount == 0:
                return None
            return self.get_scan(scan_id)

    def update_scan(
        self,
        scan_id: int,
        updates: Dict[str, Any],
        expected_status: Optional[ScanStatus] = None,
    ) -> Optional[Scan]:
        updates = validate_updates(updates)
        if not updates:
            return self.get_scan(scan_id)

        columns = []
        values: List[Any] = []
        for key, value in updates.items():
            if isinstance(value, datetime):
                value = _dt(value)
            elif isinstance(value, ScanStatus):
                value = value.value
            columns.append(f"{key} = ?")
            values.append(value)

        query = (
            f"UPDATE scans SET {', '.join(columns)} "
            "WHERE id = ? AND status NOT IN (?, ?)"
        )
        values.extend([scan_id, *_TERMINAL])
        if expected_status is not None:
            query += " AND status = ?"
            values.append(ScanStatus(expected_status).value)

        with self._lock:
            try:
                with self._conn:
                    cursor = self._conn.execute(query, values)
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to update scan {scan_id}: {exc}") from exc
            if cursor.rowcount == 0:
                return None
            return self.get_scan(scan_id)

    def get_scans(self, limit: int = DEFAULT_SCAN_LIMIT) -> List[Scan]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM scans ORDER BY created_at DESC, id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_scan(row) for row in rows]

    def get_active_scans(self) -> List[Scan]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM scans WHERE status IN (?, ?) ORDER BY id",
                (ScanStatus.RUNNING.value, ScanStatus.PENDING.value),
            ).fetchall()
        return [self._row_to_scan(row) for row in rows]

    # ------------------------------------------------------------------ #
    # Vulnerabilities
    # ------------------------------------------------------------------ #
    def create_vulnerability(self, draft: VulnerabilityDraft) -> Optional[Vulnerability]:
        found_at = _dt(datetime.utcnow())
        with self._lock:
            try:
                with self._conn:
                    counted = self._conn.execute(
                        "UPDATE scans SET vulnerabilities_found = vulnerabilities_found + 1 "
                        "WHERE id = ? AND status = ?",
                        (draft.scan_id, ScanStatus.RUNNING.value),
                    )
                    if counted.rowcount == 0:
                        logger.debug("Discarding finding for scan %s (not running)", draft.scan_id)
                        return None
                    cursor = self._conn.execute(
                        "INSERT INTO vulnerabilities (scan_id, type, severity, title, description, "
                        "endpoint, parameter, payload, evidence, remediation, found_at) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                        (
                            draft.scan_id,
                            VulnerabilityType(draft.type).value,
                            Severity(draft.severity).value,
                            draft.title,
                            draft.description,
                            draft.endpoint,
                            draft.parameter,
                            draft.payload,
                            draft.evidence,
                            draft.remediation,
                            found_at,
                        ),
                    )
            except sqlite3.Error as exc:
                raise StorageError(f"Failed to record vulnerability: {exc}") from exc
            row = self._conn.execute(
                "SELECT * FROM vulnerabilities WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
        return self._row_to_vulnerability(row)

    def get_vulnerabilities_by_scan(self, scan_id: int) -> List[Vulnerability]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM vulnerabilities WHERE scan_id = ? ORDER BY found_at DESC, id DESC",
                (scan_id,),
            ).fetchall()
        return [self._row_to_vulnerability(row) for row in rows]

    def get_latest_vulnerabilities(self, limit: int = DEFAULT_VULNERABILITY_LIMIT) -> List[Vulnerability]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT * FROM vulnerabilities ORDER BY found_at DESC, id DESC LIMIT ?", (limit,)
            ).fetchall()
        return [self._row_to_vulnerability(row) for row in rows]

    def get_security_stats(self) -> SecurityStats:
        with self._lock:
            counts = dict(
                self._conn.execute(
                    "SELECT severity, COUNT(*) FROM vulnerabilities GROUP BY severity"
                ).fetchall()
            )
            scanned = self._conn.execute("SELECT COUNT(*) FROM scans").fetchone()[0]
        return SecurityStats(
            critical=counts.get(Severity.CRITICAL.value, 0),
            high=counts.get(Severity.HIGH.value, 0),
            medium=counts.get(Severity.MEDIUM.value, 0),
            scanned=scanned,
        )
