"""
SeleniumBrowserClient 테스트 (WebDriver는 MagicMock으로 대체)
"""

from unittest.mock import MagicMock, patch

import pytest
from selenium.common.exceptions import TimeoutException, WebDriverException

from xploitra.scanner.clients import BrowserClientConfig, SeleniumBrowserClient
from xploitra.scanner.interfaces import Form, FormInput, NavigationError


@pytest.fixture
def driver():
    mock = MagicMock()
    mock.execute_script.return_value = "complete"
    mock.current_url = "https://example.test/"
    return mock


@pytest.fixture
def client(driver):
    return SeleniumBrowserClient(driver=driver, config=BrowserClientConfig(poll_frequency=0.01))


def test_navigate_waits_for_document_ready(client, driver):
    client.navigate("https://example.test/page", timeout=7)

    driver.set_page_load_timeout.assert_called_once_with(7)
    driver.get.assert_called_once_with("https://example.test/page")
    driver.execute_script.assert_called_with("return document.readyState")


@pytest.mark.parametrize(
    "error, code",
    [
        (TimeoutException("page load"), "NAVIGATION_TIMEOUT"),
        (WebDriverException("net::ERR_NAME_NOT_RESOLVED"), "NAVIGATION_FAILED"),
    ],
)
def test_navigate_errors_become_navigation_errors(client, driver, error, code):
    driver.get.side_effect = error

    with pytest.raises(NavigationError) as exc_info:
        client.navigate("https://missing.test/", timeout=3)
    assert exc_info.value.error_code == code
    assert exc_info.value.context == {"url": "https://missing.test/"}


def test_extract_forms_maps_script_result(client, driver):
    driver.execute_script.return_value = [
        {
            "action": "https://example.test/login",
            "method": "post",
            "inputs": [{"name": "user", "type": "TEXT"}, {"name": "", "type": "hidden"}, {"name": "pw", "type": "password"}],
        },
        {"action": "", "method": "", "inputs": []},
    ]

    forms = client.extract_forms()

    assert forms == [
        Form("https://example.test/login", "POST", (FormInput("user", "text"), FormInput("pw", "password"))),
        Form("https://example.test/", "GET", ()),
    ]


def test_extract_links_keeps_same_origin_http_only(client, driver):
    driver.execute_script.return_value = [
        "https://example.test/a",
        "https://example.test:443/b",
        "https://other.test/",
        "mailto:x@example.test",
        "javascript:void(0)",
        None,
    ]

    assert client.extract_same_origin_links("https://example.test") == [
        "https://example.test/a",
        "https://example.test:443/b",
    ]


def test_close_quits_driver(client, driver):
    client.close()
    driver.quit.assert_called_once()


def test_driver_is_created_from_config():
    config = BrowserClientConfig(user_agent="Xploitra-Test")
    with patch("xploitra.scanner.clients.browser_client.setup_driver") as setup:
        client = SeleniumBrowserClient(config=config)

    setup.assert_called_once_with(config)
    assert client.raw is setup.return_value
