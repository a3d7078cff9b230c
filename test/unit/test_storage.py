"""
ScanStorage 계약 테스트 (MemoryStorage / SQLiteStorage 공통)
"""

import threading
from datetime import datetime

import pytest

from xploitra.scanner.interfaces import (
    ScanDepth,
    ScanInProgressError,
    ScanOptions,
    ScanStatus,
    Severity,
    StorageError,
    VulnerabilityDraft,
    VulnerabilityType,
)
from xploitra.scanner.storage import SQLiteStorage

from test.mock_data import start_scan


def make_draft(scan_id, severity=Severity.HIGH, title="Cross-Site Scripting (XSS)"):
    return VulnerabilityDraft(
        scan_id=scan_id,
        type=VulnerabilityType.XSS,
        severity=severity,
        title=title,
        description="reflected",
        endpoint="https://example.test/search",
        parameter="q",
        payload="<script>alert(1)</script>",
        evidence="Payload reflected in response",
        remediation="Encode output",
    )


def test_create_scan_starts_pending_with_zero_counters(storage):
    options = ScanOptions(
        target_url="https://example.test/",
        scan_depth=ScanDepth.DEEP,
        ai_payloads=False,
        rate_limit=2,
        vulnerability_types=(VulnerabilityType.SQLI, VulnerabilityType.XSS),
    )
    scan = storage.create_scan(options)

    assert scan.id > 0
    assert scan.status == ScanStatus.PENDING
    assert (scan.progress, scan.endpoints_found, scan.endpoints_tested, scan.vulnerabilities_found) == (0, 0, 0, 0)
    assert scan.options == options
    assert isinstance(scan.created_at, datetime)
    assert scan.started_at is None and scan.completed_at is None
    assert storage.get_scan(scan.id) == scan


def test_get_missing_scan_returns_none(storage):
    assert storage.get_scan(999) is None
    assert storage.update_scan(999, {"progress": 10}) is None


def test_update_scan_replaces_whole_record(storage):
    scan = start_scan(storage)
    updated = storage.update_scan(scan.id, {"endpoints_found": 4, "progress": 30})

    assert updated.endpoints_found == 4
    assert updated.progress == 30
    assert updated.status == ScanStatus.RUNNING
    assert storage.get_scan(scan.id) == updated


def test_update_rejects_immutable_fields(storage):
    scan = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    with pytest.raises(StorageError) as exc_info:
        storage.update_scan(scan.id, {"target_url": "https://evil.test/"})
    assert exc_info.value.error_code == "IMMUTABLE_FIELD"


def test_expected_status_guards_transition(storage):
    scan = storage.create_scan(ScanOptions(target_url="https://example.test/"))

    assert storage.update_scan(scan.id, {"progress": 50}, expected_status=ScanStatus.RUNNING) is None
    started = storage.update_scan(scan.id, {"status": ScanStatus.RUNNING}, expected_status=ScanStatus.PENDING)
    assert started.status == ScanStatus.RUNNING


@pytest.mark.parametrize("terminal", [ScanStatus.COMPLETED, ScanStatus.FAILED])
def test_terminal_scan_is_frozen(storage, terminal):
    scan = start_scan(storage)
    done = storage.update_scan(scan.id, {"status": terminal, "progress": 100, "completed_at": datetime.utcnow()})

    assert storage.update_scan(scan.id, {"progress": 10}) is None
    assert storage.update_scan(scan.id, {"status": ScanStatus.RUNNING}) is None
    assert storage.create_vulnerability(make_draft(scan.id)) is None
    assert storage.get_scan(scan.id) == done


def test_create_vulnerability_increments_counter(storage):
    scan = start_scan(storage)
    first = storage.create_vulnerability(make_draft(scan.id))
    second = storage.create_vulnerability(make_draft(scan.id, Severity.CRITICAL, "SQL Injection"))

    assert first.id != second.id
    assert first.payload == "<script>alert(1)</script>"
    assert isinstance(first.found_at, datetime)
    assert storage.get_scan(scan.id).vulnerabilities_found == 2
    assert [v.id for v in storage.get_vulnerabilities_by_scan(scan.id)] == [second.id, first.id]


def test_finding_for_pending_scan_is_discarded(storage):
    scan = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    assert storage.create_vulnerability(make_draft(scan.id)) is None
    assert storage.get_vulnerabilities_by_scan(scan.id) == []
    assert storage.get_scan(scan.id).vulnerabilities_found == 0


def test_get_scans_newest_first_with_limit(storage):
    ids = [storage.create_scan(ScanOptions(target_url=f"https://e{i}.test/")).id for i in range(3)]

    assert [s.id for s in storage.get_scans()] == list(reversed(ids))
    assert [s.id for s in storage.get_scans(2)] == [ids[2], ids[1]]


def test_active_scans(storage):
    pending = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    running = start_scan(storage)
    finished = start_scan(storage)
    storage.update_scan(finished.id, {"status": ScanStatus.COMPLETED})

    assert sorted(s.id for s in storage.get_active_scans()) == [pending.id, running.id]


def test_latest_vulnerabilities_and_stats(storage):
    first = start_scan(storage)
    second = start_scan(storage)
    storage.create_vulnerability(make_draft(first.id, Severity.HIGH))
    storage.create_vulnerability(make_draft(first.id, Severity.CRITICAL))
    storage.create_vulnerability(make_draft(second.id, Severity.MEDIUM))
    last = storage.create_vulnerability(make_draft(second.id, Severity.CRITICAL))

    latest = storage.get_latest_vulnerabilities(2)
    assert len(latest) == 2
    assert latest[0].id == last.id

    stats = storage.get_security_stats()
    assert (stats.critical, stats.high, stats.medium, stats.scanned) == (2, 1, 1, 2)


def test_concurrent_findings_are_all_counted(storage):
    scan = start_scan(storage)

    def record():
        for _ in range(20):
            storage.create_vulnerability(make_draft(scan.id))

    threads = [threading.Thread(target=record) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert storage.get_scan(scan.id).vulnerabilities_found == 80
    assert len(storage.get_vulnerabilities_by_scan(scan.id)) == 80


def test_start_scan_moves_pending_to_running(storage):
    scan = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    started = storage.start_scan(scan.id)

    assert started.status == ScanStatus.RUNNING
    assert isinstance(started.started_at, datetime)
    assert storage.get_scan(scan.id) == started
    # 이미 running이거나 없는 Scan은 시작하지 않는다
    assert storage.start_scan(scan.id) is None
    assert storage.start_scan(999) is None


def test_start_scan_refuses_while_another_scan_runs(storage):
    first = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    second = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    storage.start_scan(first.id)

    with pytest.raises(ScanInProgressError) as exc_info:
        storage.start_scan(second.id)
    assert exc_info.value.error_code == "SCAN_IN_PROGRESS"
    assert exc_info.value.context["active_scan_id"] == first.id
    assert storage.get_scan(second.id).status == ScanStatus.PENDING

    storage.update_scan(first.id, {"status": ScanStatus.COMPLETED})
    assert storage.start_scan(second.id).status == ScanStatus.RUNNING


def test_stopped_scan_is_not_started(storage):
    scan = storage.create_scan(ScanOptions(target_url="https://example.test/"))
    storage.update_scan(scan.id, {"status": ScanStatus.FAILED, "error": "Stopped by user"})

    assert storage.start_scan(scan.id) is None
    assert storage.get_scan(scan.id).status == ScanStatus.FAILED


def test_sqlite_start_is_exclusive_across_connections(tmp_path):
    db = tmp_path / "shared.db"
    first_process = SQLiteStorage(db)
    second_process = SQLiteStorage(db)
    try:
        first = first_process.create_scan(ScanOptions(target_url="https://example.test/"))
        second = second_process.create_scan(ScanOptions(target_url="https://example.test/"))
        first_process.start_scan(first.id)

        with pytest.raises(ScanInProgressError):
            second_process.start_scan(second.id)
        assert [s.id for s in second_process.get_active_scans() if s.status == ScanStatus.RUNNING] == [first.id]
    finally:
        first_process.close()
        second_process.close()


def test_sqlite_storage_persists_across_connections(tmp_path):
    db_path = tmp_path / "nested" / "xploitra.db"
    store = SQLiteStorage(db_path)
    scan = start_scan(store)
    store.create_vulnerability(make_draft(scan.id))
    store.close()

    reopened = SQLiteStorage(db_path)
    try:
        loaded = reopened.get_scan(scan.id)
        assert loaded.status == ScanStatus.RUNNING
        assert loaded.vulnerabilities_found == 1
        assert loaded.vulnerability_types == scan.vulnerability_types
        assert reopened.get_vulnerabilities_by_scan(scan.id)[0].parameter == "q"
    finally:
        reopened.close()
