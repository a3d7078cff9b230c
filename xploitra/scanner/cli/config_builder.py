import json
from pathlib import Path
from typing import Any, Dict, Optional

from xploitra.scanner.interfaces import (
    AppConfig,
    CLIArguments,
    ConfigurationError,
    ConsoleMode,
    EngineConfig,
    LLMConfig,
    LogLevel,
    LoggingConfig,
    OutputConfig,
    RendererType,
)
from xploitra.scanner.cli.mapper import cliargs_to_scan_options, resolve_output_format
from xploitra.utils.url import resolve_setting

DEFAULT_DB_PATH = Path.home() / ".xploitra" / "xploitra.db"

ENV_DB_PATH = "XPLOITRA_DB_PATH"
ENV_API_KEY = "OPENAI_API_KEY"
ENV_LLM_MODEL = "XPLOITRA_LLM_MODEL"
ENV_LLM_ENDPOINT = "XPLOITRA_LLM_ENDPOINT"


def load_config(path: Optional[str]) -> Dict[str, Any]:
    """JSON 설정 파일 로드 (경로가 없으면 빈 dict)"""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Failed to load config {path}: {e}", error_code="CONFIG_LOAD_FAILED") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must contain a JSON object", error_code="CONFIG_INVALID")
    return data


def resolve_db_path(cli_value: Optional[str], file_config: Optional[Dict[str, Any]] = None) -> Path:
    """우선순위: --db → XPLOITRA_DB_PATH → 설정 파일 db_path → ~/.xploitra/xploitra.db"""
    value = resolve_setting(
        cli_value,
        ENV_DB_PATH,
        (file_config or {}).get("db_path"),
        str(DEFAULT_DB_PATH),
    )
    return Path(value).expanduser()


def build_engine_config(args: CLIArguments, file_config: Dict[str, Any]) -> EngineConfig:
    engine_cfg = file_config.get("engine", {}) or {}
    defaults = EngineConfig()

    renderer_value = args.renderer or engine_cfg.get("renderer") or defaults.renderer.value
    try:
        renderer = RendererType(str(renderer_value).lower())
    except ValueError:
        raise ConfigurationError(f"Unknown renderer: {renderer_value}", error_code="CONFIG_INVALID")

    verify_ssl = engine_cfg.get("verify_ssl", defaults.verify_ssl)
    if not isinstance(verify_ssl, bool):
        raise ConfigurationError(
            f"engine.verify_ssl must be true or false, got {verify_ssl!r}", error_code="CONFIG_INVALID"
        )

    try:
        return EngineConfig(
            navigation_timeout=float(engine_cfg.get("navigation_timeout", defaults.navigation_timeout)),
            max_links_per_page=int(engine_cfg.get("max_links_per_page", defaults.max_links_per_page)),
            probe_timeout=float(engine_cfg.get("probe_timeout", defaults.probe_timeout)),
            user_agent=str(engine_cfg.get("user_agent", defaults.user_agent)),
            verify_ssl=verify_ssl,
            renderer=renderer,
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid engine settings: {e}", error_code="CONFIG_INVALID") from e


def build_llm_config(file_config: Dict[str, Any]) -> LLMConfig:
    llm_cfg = file_config.get("llm", {}) or {}
    defaults = LLMConfig()
    return LLMConfig(
        api_key=resolve_setting(None, ENV_API_KEY, llm_cfg.get("api_key")),
        model=resolve_setting(None, ENV_LLM_MODEL, llm_cfg.get("model"), defaults.model),
        endpoint=resolve_setting(None, ENV_LLM_ENDPOINT, llm_cfg.get("endpoint"), defaults.endpoint),
        timeout=float(llm_cfg.get("timeout", defaults.timeout)),
    )


def build_app_config(args: CLIArguments) -> AppConfig:
    """
    CLIArguments -> AppConfig 변환
    CLI 입력 + 환경변수 + 설정 파일을 합쳐 실제 실행 설정 구성
    """
    file_config = load_config(args.config)

    output_format = resolve_output_format(args.output_format, args.output)
    output_cfg = OutputConfig(
        format=output_format,
        path=Path(args.output) if args.output else None,
        pretty_print=True,
        console_mode=ConsoleMode.VERBOSE if args.verbose else ConsoleMode.SUMMARY,
    )

    logging_cfg = LoggingConfig(
        level=LogLevel.DEBUG if args.verbose else LogLevel.INFO,
        file_path=Path(args.log_file) if args.log_file else None,
    )

    return AppConfig(
        scan_options=cliargs_to_scan_options(args, file_config),
        engine_config=build_engine_config(args, file_config),
        llm_config=build_llm_config(file_config),
        output_config=output_cfg,
        logging_config=logging_cfg,
        db_path=resolve_db_path(args.db_path, file_config),
    )
