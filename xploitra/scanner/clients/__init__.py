"""
페이지 탐색 엔진과 HTTP 클라이언트

- SeleniumBrowserClient: 헤드리스 Chrome (기본)
- HttpRenderingClient: requests + BeautifulSoup, 스크립트 미실행
- HttpClient: 재시도/타임아웃이 통일된 requests 세션
"""

from .protocols import BrowserClientConfig, HttpClientConfig, RenderingEngine
from .http_client import HttpClient
from .browser_client import SeleniumBrowserClient
from .http_renderer import HttpRenderingClient

__all__ = [
    "RenderingEngine",
    "HttpClientConfig",
    "BrowserClientConfig",
    "HttpClient",
    "SeleniumBrowserClient",
    "HttpRenderingClient",
]
