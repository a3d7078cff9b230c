"""
Report formatter 공통 베이스

format()은 ScanReport를 문자열로 직렬화하고, save()는 같은 내용을 UTF-8 파일로 기록한다.
화면 전용 형식은 writes_file = False로 두고 save()를 쓰지 않는다.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from xploitra.scanner.interfaces import ScanReport


class ReportFormatter(ABC):
    writes_file = True

    @abstractmethod
    def format(self, report: ScanReport) -> str:
        pass

    def save(self, report: ScanReport, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        # csv 모듈이 이미 \r\n을 쓰므로 줄바꿈 변환 없이 기록
        path.write_text(self.format(report), encoding="utf-8", newline="")
        return path
