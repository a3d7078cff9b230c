"""
크롤러
-------
seed URL의 origin 범위 안에서 깊이 제한 DFS로 Endpoint 목록을 수집합니다.

- (url, depth) 작업 스택 + 방문 집합(정확한 URL 문자열 기준)
- 방문 표시는 탐색 전에 한다 (자기 참조 링크/순환 제외)
- 자식 링크는 링크 순서대로, 각 자식의 하위 트리를 다음 형제보다 먼저 방문
- 탐색은 항상 순차적이며 매 탐색 시도 후 1/rps 초 대기
- URL 단위 실패는 로그만 남기고 해당 가지를 버린다
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Set, Tuple

from xploitra.scanner.clients.protocols import RenderingEngine
from xploitra.scanner.interfaces import Endpoint, XploitraException
from xploitra.utils.url import HTTP_SCHEMES, get_origin, is_same_origin, query_param_names

DEFAULT_NAVIGATION_TIMEOUT = 30.0
DEFAULT_MAX_LINKS = 10


class Crawler:

    def __init__(
        self,
        renderer: RenderingEngine,
        *,
        navigation_timeout: float = DEFAULT_NAVIGATION_TIMEOUT,
        max_links: int = DEFAULT_MAX_LINKS,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.renderer = renderer
        self.navigation_timeout = navigation_timeout
        self.max_links = max_links
        self.sleep = sleep
        self.logger = logger or logging.getLogger("xploitra.crawler")

    def crawl(
        self,
        seed_url: str,
        max_depth: int,
        requests_per_second: int,
        cancelled: Optional[Callable[[], bool]] = None,
    ) -> List[Endpoint]:
        origin = get_origin(seed_url)
        delay = 1.0 / requests_per_second
        visited: Set[str] = set()
        endpoints: List[Endpoint] = []
        stack: List[Tuple[str, int]] = [(seed_url, 0)]

        self.logger.info("🕷️ Crawling %s (max depth %d)", seed_url, max_depth)

        while stack:
            url, depth = stack.pop()
            if depth >= max_depth or url in visited:
                continue
            if cancelled is not None and cancelled():
                self.logger.info("Crawl cancelled after %d endpoint(s)", len(endpoints))
                break
            visited.add(url)

            try:
                endpoint, links = self._visit(url, origin, with_links=depth < max_depth - 1)
            except XploitraException as exc:
                self.logger.warning("Skipping %s: %s", url, exc.message)
                continue
            except Exception as exc:
                self.logger.warning("Skipping %s: %s", url, exc, exc_info=self.logger.isEnabledFor(logging.DEBUG))
                continue
            finally:
                self.sleep(delay)

            endpoints.append(endpoint)
            self.logger.debug(
                "Endpoint %s: %d parameter(s), %d form(s), %d link(s)",
                url, len(endpoint.parameters), len(endpoint.forms), len(links),
            )

            # 역순으로 쌓아야 첫 번째 링크가 먼저 나온다
            for link in reversed(links):
                if link not in visited:
                    stack.append((link, depth + 1))

        self.logger.info("Crawl finished: %d endpoint(s)", len(endpoints))
        return endpoints

    def _visit(self, url: str, origin: str, with_links: bool) -> Tuple[Endpoint, List[str]]:
        self.renderer.navigate(url, self.navigation_timeout)
        forms = self.renderer.extract_forms()
        endpoint = Endpoint(
            url=url,
            method="GET",
            parameters=tuple(query_param_names(url)),
            forms=tuple(forms),
        )

        links: List[str] = []
        if with_links:
            links = self._select_links(self.renderer.extract_same_origin_links(origin), origin)
        return endpoint, links

    def _select_links(self, hrefs: List[str], origin: str) -> List[str]:
        """http(s) + 같은 origin만, 중복 제거(첫 등장 우선), 최대 max_links개"""
        selected: List[str] = []
        for href in hrefs:
            if not href or href.split(":", 1)[0].lower() not in HTTP_SCHEMES:
                continue
            if not is_same_origin(origin, href) or href in selected:
                continue
            selected.append(href)
            if len(selected) >= self.max_links:
                break
        return selected


__all__ = ["Crawler", "DEFAULT_NAVIGATION_TIMEOUT", "DEFAULT_MAX_LINKS"]
