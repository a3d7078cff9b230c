from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# ============================================================================
# Enum Types
# ============================================================================

class ScanStatus(str, Enum):
    """스캔 상태"""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.COMPLETED, ScanStatus.FAILED)


class ScanDepth(str, Enum):
    """크롤링 깊이 단계"""
    QUICK = "quick"
    STANDARD = "standard"
    DEEP = "deep"

    @property
    def max_depth(self) -> int:
        return {ScanDepth.QUICK: 1, ScanDepth.STANDARD: 3, ScanDepth.DEEP: 5}[self]

    @classmethod
    def resolve(cls, value: Any) -> "ScanDepth":
        """알 수 없는 값은 STANDARD로 처리"""
        if isinstance(value, ScanDepth):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.STANDARD


class VulnerabilityType(str, Enum):
    """취약점 유형"""
    XSS = "xss"
    SQLI = "sqli"
    DIRECTORY_TRAVERSAL = "directory_traversal"


class Severity(str, Enum):
    """심각도 레벨"""
    INFO = "info"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class OutputFormat(str, Enum):
    """출력 형식"""
    JSON = "JSON"
    CSV = "CSV"
    TEXT = "TEXT"
    CONSOLE = "CONSOLE"


class ConsoleMode(str, Enum):
    """콘솔 출력 모드"""
    SILENT = "SILENT"
    SUMMARY = "SUMMARY"
    VERBOSE = "VERBOSE"


class LogLevel(str, Enum):
    """로그 레벨"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RendererType(str, Enum):
    """페이지 탐색 엔진 종류"""
    BROWSER = "browser"
    HTTP = "http"


# ============================================================================
# Input Types (입력 타입)
# ============================================================================

@dataclass(frozen=True)
class ScanOptions:
    """스캔 시작 시 전달되는 설정 (시작 후 변경 불가)"""
    target_url: str
    scan_depth: ScanDepth = ScanDepth.STANDARD
    ai_payloads: bool = True
    rate_limit: int = 5
    vulnerability_types: Tuple[VulnerabilityType, ...] = (
        VulnerabilityType.XSS,
        VulnerabilityType.SQLI,
        VulnerabilityType.DIRECTORY_TRAVERSAL,
    )

    @property
    def max_depth(self) -> int:
        return ScanDepth.resolve(self.scan_depth).max_depth

    def is_enabled(self, vuln_type: VulnerabilityType) -> bool:
        return vuln_type in self.vulnerability_types


@dataclass(frozen=True)
class CLIArguments:
    """CLI 명령어 인자를 구조화 (None은 설정 파일/기본값 사용)"""
    url: str
    depth: Optional[str] = None
    ai_payloads: Optional[bool] = None
    rate_limit: Optional[int] = None
    types: List[str] = field(default_factory=list)
    renderer: Optional[str] = None
    config: Optional[str] = None
    db_path: Optional[str] = None
    output: Optional[str] = None
    output_format: Optional[str] = None
    verbose: bool = False
    log_file: Optional[str] = None


# ============================================================================
# Configuration Types (설정 타입)
# ============================================================================

@dataclass(frozen=True)
class EngineConfig:
    """스캔 엔진 동작 설정"""
    navigation_timeout: float = 30.0
    max_links_per_page: int = 10
    probe_timeout: float = 10.0
    user_agent: str = "Xploitra-Scanner/1.0.0"
    verify_ssl: bool = True
    renderer: RendererType = RendererType.BROWSER


@dataclass(frozen=True)
class LLMConfig:
    """생성형 페이로드(LLM) 설정"""
    api_key: Optional[str] = None
    model: str = "gpt-4o"
    endpoint: str = "https://api.openai.com/v1/chat/completions"
    timeout: float = 30.0


@dataclass(frozen=True)
class OutputConfig:
    """출력 설정"""
    format: OutputFormat = OutputFormat.CONSOLE
    path: Optional[Path] = None
    pretty_print: bool = True
    console_mode: ConsoleMode = ConsoleMode.SUMMARY


@dataclass(frozen=True)
class LoggingConfig:
    """로깅 설정"""
    level: LogLevel = LogLevel.INFO
    file_path: Optional[Path] = None
    max_file_size: int = 10485760
    backup_count: int = 5


@dataclass(frozen=True)
class AppConfig:
    """CLI에서 사용하는 전체 설정 묶음"""
    scan_options: ScanOptions
    engine_config: EngineConfig = field(default_factory=EngineConfig)
    llm_config: LLMConfig = field(default_factory=LLMConfig)
    output_config: OutputConfig = field(default_factory=OutputConfig)
    logging_config: LoggingConfig = field(default_factory=LoggingConfig)
    db_path: Optional[Path] = None


# ============================================================================
# Crawl Types (크롤링 결과 - 저장되지 않음)
# ============================================================================

TEXT_LIKE_INPUT_TYPES = frozenset({"text", "email", "search", "password"})


@dataclass(frozen=True)
class FormInput:
    name: str
    type: str = "text"

    @property
    def is_text_like(self) -> bool:
        return self.type.lower() in TEXT_LIKE_INPUT_TYPES


@dataclass(frozen=True)
class Form:
    action: str
    method: str = "GET"
    inputs: Tuple[FormInput, ...] = ()


@dataclass(frozen=True)
class Endpoint:
    url: str
    method: str = "GET"
    parameters: Tuple[str, ...] = ()
    forms: Tuple[Form, ...] = ()


# ============================================================================
# Record Types (저장소 레코드)
# ============================================================================

@dataclass(frozen=True)
class Scan:
    """스캔 1회 실행에 대한 레코드. 갱신은 항상 전체 교체로 이루어진다."""
    id: int
    target_url: str
    scan_depth: ScanDepth = ScanDepth.STANDARD
    ai_payloads: bool = True
    rate_limit: int = 5
    vulnerability_types: Tuple[VulnerabilityType, ...] = ()
    status: ScanStatus = ScanStatus.PENDING
    progress: int = 0
    endpoints_found: int = 0
    endpoints_tested: int = 0
    vulnerabilities_found: int = 0
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def options(self) -> ScanOptions:
        return ScanOptions(
            target_url=self.target_url,
            scan_depth=self.scan_depth,
            ai_payloads=self.ai_payloads,
            rate_limit=self.rate_limit,
            vulnerability_types=self.vulnerability_types,
        )


@dataclass(frozen=True)
class VulnerabilityDraft:
    """저장 전 취약점 정보 (id/found_at은 저장소가 부여)"""
    scan_id: int
    type: VulnerabilityType
    severity: Severity
    title: str
    description: str
    endpoint: str
    parameter: Optional[str] = None
    payload: Optional[str] = None
    evidence: Optional[str] = None
    remediation: Optional[str] = None


@dataclass(frozen=True)
class Vulnerability:
    """확인된 취약점 (Finding)"""
    id: int
    scan_id: int
    type: VulnerabilityType
    severity: Severity
    title: str
    description: str
    endpoint: str
    parameter: Optional[str] = None
    payload: Optional[str] = None
    evidence: Optional[str] = None
    remediation: Optional[str] = None
    found_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class SecurityStats:
    critical: int = 0
    high: int = 0
    medium: int = 0
    scanned: int = 0


# ============================================================================
# Output Types (출력 타입)
# ============================================================================

@dataclass(frozen=True)
class ProgressInfo:
    """진행 상황 정보"""
    scan_id: int
    current: int
    total: int
    percentage: float
    message: str


@dataclass(frozen=True)
class ScanReport:
    """내보내기용 스캔 스냅샷"""
    scan: Scan
    vulnerabilities: List[Vulnerability] = field(default_factory=list)
    exported_at: datetime = field(default_factory=datetime.utcnow)


# ============================================================================
# Error Types (에러 타입)
# ============================================================================

class XploitraException(Exception):
    """모든 Xploitra 예외의 베이스 클래스"""
    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN",
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.timestamp = datetime.now()
        self.context = context or {}


class ConfigurationError(XploitraException):
    """설정 오류"""
    pass


class ValidationError(XploitraException):
    """입력 검증 오류"""
    pass


class ScanInProgressError(XploitraException):
    """다른 스캔이 이미 실행 중"""
    pass


class ScanNotFoundError(XploitraException):
    """존재하지 않는 스캔"""
    pass


class ScanStateError(XploitraException):
    """허용되지 않는 상태 전이"""
    pass


class NavigationError(XploitraException):
    """페이지 탐색 실패 (URL 단위로 복구 가능)"""
    pass


class PayloadGenerationError(XploitraException):
    """페이로드 생성 실패"""
    pass


class OracleError(XploitraException):
    """탐지 요청 실패"""
    pass


class StorageError(XploitraException):
    """저장소 오류"""
    pass
