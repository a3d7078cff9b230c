import json
from datetime import datetime
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from xploitra.scanner.cli.config_builder import (
    DEFAULT_DB_PATH,
    build_app_config,
    build_engine_config,
    build_llm_config,
    load_config,
    resolve_db_path,
)
from xploitra.scanner.cli.mapper import cliargs_to_scan_options, resolve_output_format
from xploitra.scanner.cli import runner as runner_module
from xploitra.scanner.cli.runner import cli
from xploitra.scanner.finding import build_query_finding
from xploitra.scanner.interfaces import (
    CLIArguments,
    ConfigurationError,
    ConsoleMode,
    OutputFormat,
    RendererType,
    ScanDepth,
    ScanOptions,
    ScanStatus,
    ValidationError,
    VulnerabilityType,
)
from xploitra.scanner.storage import SQLiteStorage

from test.mock_data import start_scan


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("XPLOITRA_DB_PATH", "OPENAI_API_KEY", "XPLOITRA_LLM_MODEL", "XPLOITRA_LLM_ENDPOINT"):
        monkeypatch.delenv(key, raising=False)


# ---------------------------------------------------------------------- #
# mapper
# ---------------------------------------------------------------------- #
def test_scan_options_defaults():
    options = cliargs_to_scan_options(CLIArguments(url="https://example.test/"))

    assert options == ScanOptions(target_url="https://example.test/")
    assert options.vulnerability_types == tuple(VulnerabilityType)


def test_scan_options_cli_overrides_config_section():
    file_config = {"scan": {"depth": "deep", "rate_limit": 2, "ai_payloads": False, "types": ["sqli"]}}

    from_file = cliargs_to_scan_options(CLIArguments(url="https://example.test/"), file_config)
    assert from_file.scan_depth == ScanDepth.DEEP
    assert from_file.rate_limit == 2
    assert from_file.ai_payloads is False
    assert from_file.vulnerability_types == (VulnerabilityType.SQLI,)

    args = CLIArguments(url="https://example.test/", depth="quick", rate_limit=9, ai_payloads=True, types=["XSS", "xss"])
    from_cli = cliargs_to_scan_options(args, file_config)
    assert from_cli.scan_depth == ScanDepth.QUICK
    assert from_cli.rate_limit == 9
    assert from_cli.ai_payloads is True
    assert from_cli.vulnerability_types == (VulnerabilityType.XSS,)


@pytest.mark.parametrize(
    "args, file_config",
    [
        (CLIArguments(url="not-a-url"), None),
        (CLIArguments(url="https://example.test/"), {"scan": {"rate_limit": 0}}),
        (CLIArguments(url="https://example.test/"), {"scan": {"rate_limit": "fast"}}),
        (CLIArguments(url="https://example.test/", types=["csrf"]), None),
        (CLIArguments(url="https://example.test/"), {"scan": {"types": []}}),
        (CLIArguments(url="https://example.test/"), {"scan": {"types": "xss"}}),
    ],
)
def test_scan_options_validation(args, file_config):
    with pytest.raises(ValidationError):
        cliargs_to_scan_options(args, file_config)


@pytest.mark.parametrize(
    "output_format, output, expected",
    [
        ("json", None, OutputFormat.JSON),
        ("TEXT", "report.json", OutputFormat.TEXT),
        (None, "out/report.CSV", OutputFormat.CSV),
        (None, "report.txt", OutputFormat.TEXT),
        (None, "report.out", OutputFormat.JSON),
        (None, None, OutputFormat.CONSOLE),
    ],
)
def test_resolve_output_format(output_format, output, expected):
    assert resolve_output_format(output_format, output) == expected


def test_resolve_output_format_rejects_unknown():
    with pytest.raises(ValidationError):
        resolve_output_format("pdf", None)


# ---------------------------------------------------------------------- #
# config_builder
# ---------------------------------------------------------------------- #
def test_load_config(tmp_path):
    assert load_config(None) == {}

    path = tmp_path / "xploitra.json"
    path.write_text(json.dumps({"db_path": "scans.db"}), encoding="utf-8")
    assert load_config(str(path)) == {"db_path": "scans.db"}

    with pytest.raises(ConfigurationError) as exc_info:
        load_config(str(tmp_path / "missing.json"))
    assert exc_info.value.error_code == "CONFIG_LOAD_FAILED"

    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigurationError) as exc_info:
        load_config(str(path))
    assert exc_info.value.error_code == "CONFIG_INVALID"


def test_resolve_db_path_priority(monkeypatch, tmp_path):
    file_config = {"db_path": str(tmp_path / "from-config.db")}

    assert resolve_db_path(None) == DEFAULT_DB_PATH
    assert resolve_db_path(None, file_config) == tmp_path / "from-config.db"

    monkeypatch.setenv("XPLOITRA_DB_PATH", str(tmp_path / "from-env.db"))
    assert resolve_db_path(None, file_config) == tmp_path / "from-env.db"
    assert resolve_db_path(str(tmp_path / "cli.db"), file_config) == tmp_path / "cli.db"


def test_build_engine_config():
    args = CLIArguments(url="https://example.test/")
    config = build_engine_config(args, {"engine": {"renderer": "HTTP", "navigation_timeout": "12", "verify_ssl": False}})

    assert config.renderer == RendererType.HTTP
    assert config.navigation_timeout == 12.0
    assert config.verify_ssl is False
    assert build_engine_config(CLIArguments(url="x", renderer="browser"), {"engine": {"renderer": "http"}}).renderer == RendererType.BROWSER

    with pytest.raises(ConfigurationError):
        build_engine_config(args, {"engine": {"renderer": "lynx"}})
    with pytest.raises(ConfigurationError):
        build_engine_config(args, {"engine": {"probe_timeout": "soon"}})
    with pytest.raises(ConfigurationError) as exc_info:
        build_engine_config(args, {"engine": {"verify_ssl": "false"}})
    assert exc_info.value.error_code == "CONFIG_INVALID"


def test_build_llm_config_reads_env(monkeypatch):
    assert build_llm_config({}).api_key is None

    monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
    config = build_llm_config({"llm": {"api_key": "sk-file", "model": "gpt-4o-mini"}})
    assert config.api_key == "sk-env"
    assert config.model == "gpt-4o-mini"


def test_build_app_config(tmp_path):
    config_path = tmp_path / "xploitra.json"
    config_path.write_text(json.dumps({"scan": {"depth": "quick"}, "db_path": str(tmp_path / "x.db")}), encoding="utf-8")
    args = CLIArguments(
        url="https://example.test/",
        config=str(config_path),
        output=str(tmp_path / "report.csv"),
        verbose=True,
        log_file=str(tmp_path / "scan.log"),
    )

    config = build_app_config(args)

    assert config.scan_options.scan_depth == ScanDepth.QUICK
    assert config.output_config.format == OutputFormat.CSV
    assert config.output_config.path == tmp_path / "report.csv"
    assert config.output_config.console_mode == ConsoleMode.VERBOSE
    assert config.logging_config.file_path == tmp_path / "scan.log"
    assert config.db_path == tmp_path / "x.db"


# ---------------------------------------------------------------------- #
# commands
# ---------------------------------------------------------------------- #
@pytest.fixture
def db_path(tmp_path):
    """완료된 스캔 1개(SQLi 1건) + 대기 중 스캔 1개"""
    path = tmp_path / "cli.db"
    storage = SQLiteStorage(path)
    done = start_scan(storage, ScanOptions(target_url="https://example.test/", scan_depth=ScanDepth.QUICK))
    storage.create_vulnerability(
        build_query_finding(done.id, VulnerabilityType.SQLI, "https://example.test/item?id=1", "id", "' OR '1'='1")
    )
    storage.update_scan(done.id, {"status": ScanStatus.COMPLETED, "progress": 100, "completed_at": datetime.utcnow()})
    storage.create_scan(ScanOptions(target_url="https://pending.test/"))
    storage.close()
    return path


@pytest.fixture
def runner(monkeypatch):
    # 표 컬럼이 잘리지 않도록 넓은 콘솔 사용
    monkeypatch.setattr(runner_module, "console", Console(width=200))
    return CliRunner()


def test_history(runner, db_path):
    result = runner.invoke(cli, ["history", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Scan History" in result.output
    assert "completed" in result.output
    assert "pending" in result.output


def test_history_empty(runner, tmp_path):
    result = runner.invoke(cli, ["history", "--db", str(tmp_path / "empty.db")])
    assert result.exit_code == 0
    assert "No scans recorded yet." in result.output


def test_show(runner, db_path):
    result = runner.invoke(cli, ["show", "1", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "SQL Injection" in result.output
    assert "Detailed Findings" in result.output


def test_show_unknown_scan(runner, db_path):
    result = runner.invoke(cli, ["show", "99", "--db", str(db_path)])

    assert result.exit_code == 1
    assert "SCAN_NOT_FOUND" in result.output


def test_export_json_to_stdout(runner, db_path):
    result = runner.invoke(cli, ["export", "1", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["scan"]["status"] == "completed"
    assert data["vulnerabilities"][0]["type"] == "sqli"


def test_export_csv_to_file(runner, db_path, tmp_path):
    out = tmp_path / "exports" / "scan-1.csv"
    result = runner.invoke(cli, ["export", "1", "-f", "csv", "-o", str(out), "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    lines = out.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("ID,Scan ID,Type,Severity")
    assert len(lines) == 2


def test_stats(runner, db_path):
    result = runner.invoke(cli, ["stats", "--db", str(db_path)])

    assert result.exit_code == 0, result.output
    assert "Security Stats" in result.output
    assert "Critical" in result.output and "Scans" in result.output
    assert "Latest Findings" in result.output
    assert "critical" in result.output


def test_stop(runner, db_path):
    result = runner.invoke(cli, ["stop", "2", "--db", str(db_path)])
    assert result.exit_code == 0, result.output
    assert "stopped" in result.output

    storage = SQLiteStorage(db_path)
    try:
        stopped = storage.get_scan(2)
    finally:
        storage.close()
    assert stopped.status == ScanStatus.FAILED
    assert stopped.error == "Stopped by user"

    again = runner.invoke(cli, ["stop", "1", "--db", str(db_path)])
    assert again.exit_code == 1
    assert "ALREADY_TERMINAL" in again.output


def test_scan_rejects_invalid_url_before_creating_records(runner, tmp_path):
    db = tmp_path / "scan.db"
    result = runner.invoke(cli, ["scan", "-u", "not-a-url", "--db", str(db)])

    assert result.exit_code == 1
    assert "INVALID_URL" in result.output
    assert not Path(db).exists()


def test_scan_refuses_while_another_process_is_scanning(runner, tmp_path):
    db = tmp_path / "busy.db"
    storage = SQLiteStorage(db)
    busy = start_scan(storage, ScanOptions(target_url="https://busy.test/"))
    storage.close()

    result = runner.invoke(cli, ["scan", "-u", "https://example.test/", "--renderer", "http", "--db", str(db)])

    assert result.exit_code == 1
    assert "SCAN_IN_PROGRESS" in result.output
    storage = SQLiteStorage(db)
    try:
        assert [s.id for s in storage.get_scans()] == [busy.id]
    finally:
        storage.close()
