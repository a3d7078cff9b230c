import html

from xploitra.scanner.interfaces import VulnerabilityType
from .base import HttpOracle


class XSSOracle(HttpOracle):
    """페이로드가 인코딩 없이 그대로 반사되면 확인"""

    vuln_type = VulnerabilityType.XSS

    def analyze(self, body: str, payload: str) -> bool:
        if not payload or payload not in body:
            return False
        # 이스케이프해도 모양이 같은 페이로드는 반사만으로 판단할 수 없다
        return html.escape(payload) != payload
