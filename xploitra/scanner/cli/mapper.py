from pathlib import Path
from typing import Any, Dict, Optional

from xploitra.scanner.interfaces import (
    CLIArguments,
    OutputFormat,
    ScanDepth,
    ScanOptions,
    ValidationError,
    VulnerabilityType,
)
from xploitra.utils.url import is_absolute_http_url

ALL_TYPES = tuple(VulnerabilityType)

SUFFIX_FORMATS = {
    ".json": OutputFormat.JSON,
    ".csv": OutputFormat.CSV,
    ".txt": OutputFormat.TEXT,
}


def _pick(cli_value: Any, config_value: Any, default: Any) -> Any:
    if cli_value is not None:
        return cli_value
    if config_value is not None:
        return config_value
    return default


def cliargs_to_scan_options(args: CLIArguments, file_config: Optional[Dict[str, Any]] = None) -> ScanOptions:
    """
    CLIArguments -> ScanOptions 변환 함수
    우선순위: CLI 입력 → 설정 파일의 "scan" 섹션 → 기본값
    """
    scan_cfg = (file_config or {}).get("scan", {}) or {}

    # URL 유효성 검증
    if not is_absolute_http_url(args.url):
        raise ValidationError(f"Invalid URL format: {args.url}", error_code="INVALID_URL")

    depth = ScanDepth.resolve(_pick(args.depth, scan_cfg.get("depth"), ScanDepth.STANDARD))

    rate_limit = _pick(args.rate_limit, scan_cfg.get("rate_limit"), 5)
    if isinstance(rate_limit, bool) or not isinstance(rate_limit, int) or rate_limit <= 0:
        raise ValidationError(f"Rate limit must be a positive integer: {rate_limit}", error_code="INVALID_RATE_LIMIT")

    # "types" 키가 없을 때만 전체 유형, 빈 목록은 거부
    raw_types = list(args.types) if args.types else scan_cfg.get("types")
    if raw_types is None:
        raw_types = [t.value for t in ALL_TYPES]
    if isinstance(raw_types, str) or not isinstance(raw_types, (list, tuple)):
        raise ValidationError(f"Vulnerability types must be a list: {raw_types!r}", error_code="INVALID_VULNERABILITY_TYPE")
    if not raw_types:
        raise ValidationError("At least one vulnerability type must be enabled", error_code="NO_VULNERABILITY_TYPES")
    try:
        types = tuple(dict.fromkeys(VulnerabilityType(str(t).lower()) for t in raw_types))
    except ValueError:
        raise ValidationError(
            f"Unknown vulnerability type in: {', '.join(map(str, raw_types))}", error_code="INVALID_VULNERABILITY_TYPE"
        )

    return ScanOptions(
        target_url=args.url.strip(),
        scan_depth=depth,
        ai_payloads=bool(_pick(args.ai_payloads, scan_cfg.get("ai_payloads"), True)),
        rate_limit=rate_limit,
        vulnerability_types=types,
    )


def resolve_output_format(output_format: Optional[str], output: Optional[str]) -> OutputFormat:
    """명시된 형식 → 출력 파일 확장자 → CONSOLE"""
    if output_format:
        try:
            return OutputFormat(output_format.upper())
        except ValueError:
            raise ValidationError(f"Unknown output format: {output_format}")
    if output:
        return SUFFIX_FORMATS.get(Path(output).suffix.lower(), OutputFormat.JSON)
    return OutputFormat.CONSOLE
