"""
xploitra.scanner.storage 패키지 공개 API

- MemoryStorage: 프로세스 내 저장소 (테스트/단발성 실행)
- SQLiteStorage: 디스크 저장소 (CLI 이력/중지/내보내기)
"""

from .base import (
    DEFAULT_SCAN_LIMIT,
    DEFAULT_VULNERABILITY_LIMIT,
    MUTABLE_SCAN_FIELDS,
    ScanStorage,
)
from .memory import MemoryStorage
from .sqlite import SQLiteStorage

__all__ = [
    "ScanStorage",
    "MemoryStorage",
    "SQLiteStorage",
    "MUTABLE_SCAN_FIELDS",
    "DEFAULT_SCAN_LIMIT",
    "DEFAULT_VULNERABILITY_LIMIT",
]
