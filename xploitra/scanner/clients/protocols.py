"""
탐색 엔진 / HTTP 클라이언트 인터페이스

- RenderingEngine: 크롤러가 쓰는 페이지 탐색 엔진 (Selenium 브라우저, 정적 HTML 두 가지 구현)
- HttpClientConfig: 오라클, 생성형 페이로드, 정적 HTML 탐색이 공유하는 requests 설정
- BrowserClientConfig: 헤드리스 Chrome 옵션

구현체는 http_client.py, browser_client.py, http_renderer.py
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from xploitra.scanner.interfaces import Form


class RenderingEngine(Protocol):
    """
    navigate() 실패는 NavigationError로 알린다.
    extract_*()는 마지막으로 성공한 navigate() 결과 페이지를 대상으로 한다.
    """

    def navigate(self, url: str, timeout: float) -> None: ...
    def extract_forms(self) -> List[Form]: ...
    def extract_same_origin_links(self, origin: str) -> List[str]: ...
    def close(self) -> None: ...


@dataclass
class HttpClientConfig:
    # 전송 오류(연결/타임아웃)만 재시도, HTTP 상태 코드는 호출 측이 판단
    retry: int = 1
    backoff: float = 0.2
    timeout: Optional[float] = 10.0
    verify_ssl: bool = True
    base_headers: Dict[str, str] = field(default_factory=dict)
    allow_redirects: bool = True


@dataclass
class BrowserClientConfig:
    headless: bool = True
    poll_frequency: float = 0.5
    window_size: str = "1280,800"
    user_agent: Optional[str] = None


__all__ = [
    "RenderingEngine",
    "HttpClientConfig",
    "BrowserClientConfig",
]
