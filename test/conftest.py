"""
Pytest fixtures for integration and unit tests.
"""

import pytest
import responses

from xploitra.scanner.clients.http_client import HttpClient
from xploitra.scanner.clients.protocols import HttpClientConfig
from xploitra.scanner.interfaces import ScanOptions, VulnerabilityType
from xploitra.scanner.storage import MemoryStorage, SQLiteStorage

from test.mock_data import SleepRecorder


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: end-to-end engine flow tests")


@pytest.fixture
def responses_mock():
    """Provides a responses mock instance for mocking HTTP requests."""
    with responses.RequestsMock() as rsps:
        yield rsps


@pytest.fixture
def http_client():
    """재시도 없는 HttpClient (responses와 함께 사용)"""
    client = HttpClient(HttpClientConfig(retry=0, timeout=5))
    yield client
    client.close()


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture(params=["memory", "sqlite"])
def storage(request, tmp_path):
    """두 저장소 구현체에 같은 계약 테스트를 적용"""
    if request.param == "memory":
        yield MemoryStorage()
    else:
        store = SQLiteStorage(tmp_path / "scans.db")
        yield store
        store.close()


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def xss_options():
    return ScanOptions(
        target_url="https://example.test/",
        vulnerability_types=(VulnerabilityType.XSS,),
        rate_limit=5,
    )

