from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit
from typing import List, Optional
import os

HTTP_SCHEMES = ("http", "https")


def is_absolute_http_url(url: Optional[str]) -> bool:
    """스킴(http/https)과 호스트가 모두 있는 절대 URL인지 확인"""
    if not url or not isinstance(url, str):
        return False
    try:
        parts = urlsplit(url.strip())
        # 포트 파싱 오류도 잘못된 URL로 취급
        parts.port
    except ValueError:
        return False
    return parts.scheme.lower() in HTTP_SCHEMES and bool(parts.hostname)


def get_origin(url: str) -> str:
    """scheme://host[:port] 형태의 origin 반환 (기본 포트는 생략)"""
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    port = parts.port
    if port is None or (scheme, port) in (("http", 80), ("https", 443)):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


def is_same_origin(origin: str, url: str) -> bool:
    try:
        return get_origin(url) == origin
    except ValueError:
        return False


def query_param_names(url: str) -> List[str]:
    """쿼리 파라미터 이름 목록 (등장 순서 유지, 중복 제거)"""
    names = [name for name, _ in parse_qsl(urlsplit(url).query, keep_blank_values=True)]
    return list(dict.fromkeys(names))


def set_query_param(url: str, name: str, value: str) -> str:
    """
    name 파라미터를 value 하나로 교체한 URL 반환.
    나머지 파라미터는 그대로 유지하며, 없던 파라미터라면 맨 뒤에 추가한다.
    """
    parts = urlsplit(url)
    pairs = parse_qsl(parts.query, keep_blank_values=True)

    result = []
    replaced = False
    for key, current in pairs:
        if key != name:
            result.append((key, current))
        elif not replaced:
            result.append((key, value))
            replaced = True
    if not replaced:
        result.append((name, value))

    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(result), parts.fragment))


def resolve_setting(
    cli_arg: Optional[str] = None,
    env_key: Optional[str] = None,
    config_value: Optional[str] = None,
    default: Optional[str] = None,
) -> Optional[str]:
    """
    우선순위 적용:
      1. cli_arg
      2. 환경변수 env_key
      3. config_value (설정 파일)
      4. default
    """
    if cli_arg:
        return cli_arg
    if env_key:
        env = os.getenv(env_key)
        if env:
            return env
    if config_value:
        return config_value
    return default
