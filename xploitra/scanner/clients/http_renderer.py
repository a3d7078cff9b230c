"""
정적 HTML 탐색 엔진 (requests + BeautifulSoup)

브라우저를 띄울 수 없는 환경에서 사용하는 RenderingEngine 구현체.
스크립트는 실행하지 않으며, 응답 HTML을 그대로 파싱한다.
"""

from __future__ import annotations

from typing import List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from requests import RequestException

from xploitra.scanner.interfaces import Form, FormInput, NavigationError
from xploitra.utils.url import HTTP_SCHEMES, is_same_origin
from .http_client import HttpClient
from .protocols import RenderingEngine


class HttpRenderingClient(RenderingEngine):

    def __init__(self, http_client: Optional[HttpClient] = None):
        self.http_client = http_client or HttpClient()
        self.current_url: Optional[str] = None
        self._soup: Optional[BeautifulSoup] = None

    def navigate(self, url: str, timeout: float) -> None:
        self._soup = None
        try:
            response = self.http_client.get(url, timeout=timeout)
        except RequestException as exc:
            raise NavigationError(
                f"Navigation failed: {url} ({exc.__class__.__name__})",
                error_code="NAVIGATION_FAILED",
                context={"url": url},
            ) from exc

        if response.status_code >= 400:
            raise NavigationError(
                f"Navigation failed: {url} (HTTP {response.status_code})",
                error_code="NAVIGATION_HTTP_ERROR",
                context={"url": url, "status_code": response.status_code},
            )

        self.current_url = response.url or url
        self._soup = BeautifulSoup(response.text or "", "html.parser")

    def _require_page(self) -> BeautifulSoup:
        if self._soup is None:
            raise NavigationError("No page loaded", error_code="NO_PAGE")
        return self._soup

    def extract_forms(self) -> List[Form]:
        soup = self._require_page()
        forms: List[Form] = []

        for form in soup.find_all("form"):
            action = form.get("action")
            method = (form.get("method") or "GET").upper()
            inputs = []
            for field in form.find_all(["input", "textarea", "select"]):
                name = field.get("name")
                if not name:
                    continue
                if field.name == "input":
                    input_type = (field.get("type") or "text").lower()
                elif field.name == "select":
                    # 브라우저의 select.type 값과 맞춘다
                    input_type = "select-multiple" if field.has_attr("multiple") else "select-one"
                else:
                    input_type = "textarea"
                inputs.append(FormInput(name=name, type=input_type))

            forms.append(
                Form(
                    action=urljoin(self.current_url, action) if action else self.current_url,
                    method=method if method in ("GET", "POST") else "GET",
                    inputs=tuple(inputs),
                )
            )
        return forms

    def extract_same_origin_links(self, origin: str) -> List[str]:
        soup = self._require_page()
        links = []
        for anchor in soup.find_all("a", href=True):
            href = urljoin(self.current_url, anchor["href"].strip())
            # fragment 제거 (브라우저의 a.href와 달리 탐색 대상 URL만 유지)
            href = href.split("#", 1)[0]
            if href.split(":", 1)[0].lower() not in HTTP_SCHEMES:
                continue
            if is_same_origin(origin, href):
                links.append(href)
        return links

    def close(self) -> None:
        self.http_client.close()


__all__ = ["HttpRenderingClient"]
