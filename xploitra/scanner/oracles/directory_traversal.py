from xploitra.scanner.interfaces import VulnerabilityType
from .base import HttpOracle, find_indicator

# 시스템 파일 내용이 노출되었을 때 나타나는 문자열
FILE_SIGNATURES = [
    "root:x:0:0:",
    "daemon:x:1:1:",
    "[boot loader]",
    "[operating systems]",
    "# copyright (c) 1993-2009 microsoft corp.",
    "# this is a sample hosts file used by microsoft tcp/ip for windows.",
]


class DirectoryTraversalOracle(HttpOracle):
    vuln_type = VulnerabilityType.DIRECTORY_TRAVERSAL

    def analyze(self, body: str, payload: str) -> bool:
        return find_indicator(body, FILE_SIGNATURES) is not None
