"""
HTTP Client (requests 기반)

세션 하나로 탐지 요청, LLM 호출, 정적 HTML 탐색을 처리한다.
호출마다 넘긴 인자(timeout 등)가 HttpClientConfig 기본값보다 우선한다.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Optional

import requests
from requests import RequestException, Response

from xploitra.scanner.logger import get_logger
from .protocols import HttpClientConfig

logger = get_logger("http")


class HttpClient:

    def __init__(
        self,
        config: Optional[HttpClientConfig] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config or HttpClientConfig()
        self.session = session or requests.Session()
        self.session.headers.update(self.config.base_headers)
        self.sleep = sleep

    def _defaults(self) -> Dict[str, Any]:
        return {
            "timeout": self.config.timeout,
            "verify": self.config.verify_ssl,
            "allow_redirects": self.config.allow_redirects,
        }

    def request(self, method: str, url: str, **kwargs) -> Response:
        """
        전송 오류는 retry 횟수만큼 지수 백오프로 재시도 후 마지막 예외를 그대로 올린다.
        """
        options = {**self._defaults(), **kwargs}
        attempts = max(self.config.retry, 0) + 1

        for attempt in range(1, attempts + 1):
            try:
                return self.session.request(method, url, **options)
            except RequestException as exc:
                if attempt == attempts:
                    raise
                delay = self.config.backoff * (2 ** (attempt - 1))
                logger.debug("%s %s failed (%s); retry %d/%d in %.2fs",
                             method, url, exc.__class__.__name__, attempt, attempts - 1, delay)
                self.sleep(delay)
        raise AssertionError("unreachable")

    def get(self, url: str, **kwargs) -> Response:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, data=None, **kwargs) -> Response:
        return self.request("POST", url, data=data, **kwargs)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["HttpClient", "HttpClientConfig"]
