"""
Browser Client (Selenium 기반)

- WebDriver 래핑 -> RenderingEngine 공통 인터페이스 제공
- navigate(), extract_forms(), extract_same_origin_links() 등 크롤러에 필요한 최소 기능만 노출
- 폼/링크 추출은 페이지 내 스크립트로 수행하므로 action/href는 항상 절대 URL
"""

from __future__ import annotations

import os
from typing import Any, List, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.support.ui import WebDriverWait
from webdriver_manager.chrome import ChromeDriverManager

from xploitra.scanner.interfaces import Form, FormInput, NavigationError
from xploitra.utils.url import HTTP_SCHEMES, is_same_origin
from .protocols import BrowserClientConfig, RenderingEngine

_EXTRACT_FORMS_JS = """
return Array.from(document.querySelectorAll('form')).map(function (form) {
  return {
    action: form.action || window.location.href,
    method: (form.method || 'GET').toUpperCase(),
    inputs: Array.from(form.querySelectorAll('input, textarea, select')).map(function (input) {
      return {name: input.name || '', type: input.type || 'text'};
    }).filter(function (input) { return input.name; })
  };
});
"""

_EXTRACT_LINKS_JS = """
return Array.from(document.querySelectorAll('a[href]')).map(function (link) {
  return link.href;
});
"""


def setup_driver(config: Optional[BrowserClientConfig] = None):
    """헤드리스 Chrome WebDriver 생성"""
    config = config or BrowserClientConfig()

    options = webdriver.ChromeOptions()
    if config.headless:
        options.add_argument("--headless=new")
    options.add_argument("--disable-gpu")
    options.add_argument("--no-sandbox")
    options.add_argument("--disable-setuid-sandbox")
    options.add_argument(f"--window-size={config.window_size}")
    if config.user_agent:
        options.add_argument(f"--user-agent={config.user_agent}")

    options.add_experimental_option("excludeSwitches", ["enable-logging"])
    options.add_argument("--log-level=3")

    return webdriver.Chrome(
        service=Service(
            executable_path=ChromeDriverManager().install(),
            log_output=os.devnull,
        ),
        options=options,
    )


# ----------------------------------------------------------
# selenium 기반 구현체
# ----------------------------------------------------------

class SeleniumBrowserClient(RenderingEngine):
    """WebDriver를 래핑해 공통 인터페이스를 제공."""

    def __init__(self, driver: Any = None, config: Optional[BrowserClientConfig] = None):
        self.config = config or BrowserClientConfig()
        self.driver = driver if driver is not None else setup_driver(self.config)

    # ----------------------------------------------------------
    # 기본 탐색 API
    # ----------------------------------------------------------
    def navigate(self, url: str, timeout: float) -> None:
        """
        URL로 이동 후 문서 로딩 완료까지 대기합니다.
        timeout 초과나 드라이버 오류는 NavigationError로 변환합니다.
        """
        try:
            self.driver.set_page_load_timeout(timeout)
            self.driver.get(url)
            WebDriverWait(
                self.driver, timeout, poll_frequency=self.config.poll_frequency
            ).until(lambda d: d.execute_script("return document.readyState") == "complete")
        except TimeoutException as exc:
            raise NavigationError(
                f"Navigation timed out after {timeout}s: {url}",
                error_code="NAVIGATION_TIMEOUT",
                context={"url": url},
            ) from exc
        except WebDriverException as exc:
            raise NavigationError(
                f"Navigation failed: {url} ({exc.msg or exc.__class__.__name__})",
                error_code="NAVIGATION_FAILED",
                context={"url": url},
            ) from exc

    # ----------------------------------------------------------
    # 페이지 정보 추출
    # ----------------------------------------------------------
    def extract_forms(self) -> List[Form]:
        raw_forms = self.driver.execute_script(_EXTRACT_FORMS_JS) or []
        forms: List[Form] = []
        for raw in raw_forms:
            inputs = tuple(
                FormInput(name=item["name"], type=(item.get("type") or "text").lower())
                for item in raw.get("inputs", [])
                if item.get("name")
            )
            forms.append(
                Form(
                    action=raw.get("action") or self.driver.current_url,
                    method=(raw.get("method") or "GET").upper(),
                    inputs=inputs,
                )
            )
        return forms

    def extract_same_origin_links(self, origin: str) -> List[str]:
        hrefs = self.driver.execute_script(_EXTRACT_LINKS_JS) or []
        return [
            href
            for href in hrefs
            if isinstance(href, str)
            and href.split(":", 1)[0].lower() in HTTP_SCHEMES
            and is_same_origin(origin, href)
        ]

    # ----------------------------------------------------------
    # 브라우저 종료
    # ----------------------------------------------------------
    def close(self) -> None:
        self.driver.quit()

    @property
    def raw(self):
        return self.driver


__all__ = [
    "SeleniumBrowserClient",
    "setup_driver",
]
