from xploitra.scanner.interfaces import VulnerabilityType
from .base import HttpOracle, find_indicator

# SQL 에러 기반 탐지를 위한 핵심 에러 키워드
ERROR_INDICATORS = [
    "unclosed quotation mark",
    "you have an error in your sql syntax",
    "database error",
    "error in your query",
    "mysql_fetch_array()",
    "unknown column",
    "error converting data type",
    "quoted string not properly terminated",
    "pg_query(): query failed",
    "sqlite3.operationalerror",
    "sqlstate[",
    "ora-01756",
]


class SQLiOracle(HttpOracle):
    vuln_type = VulnerabilityType.SQLI

    def analyze(self, body: str, payload: str) -> bool:
        return find_indicator(body, ERROR_INDICATORS) is not None
