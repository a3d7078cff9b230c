import pytest
import requests
from responses import matchers

from xploitra.scanner.clients import HttpClient, HttpClientConfig

from test.mock_data import SleepRecorder

URL = "https://example.test/ping"


def test_config_headers_and_defaults_are_applied(responses_mock):
    responses_mock.get(URL, body="pong", match=[matchers.header_matcher({"User-Agent": "Xploitra-Test"})])

    with HttpClient(HttpClientConfig(base_headers={"User-Agent": "Xploitra-Test"})) as client:
        assert client.get(URL).text == "pong"


def test_transport_errors_are_retried_with_backoff(responses_mock):
    responses_mock.get(URL, body=requests.ConnectionError("reset"))
    responses_mock.get(URL, body=requests.ConnectionError("reset"))
    responses_mock.get(URL, body="ok")
    sleep = SleepRecorder()

    client = HttpClient(HttpClientConfig(retry=2, backoff=0.5), sleep=sleep)

    assert client.get(URL).text == "ok"
    assert sleep.calls == [0.5, 1.0]


def test_last_error_is_raised_when_retries_exhausted(responses_mock):
    responses_mock.get(URL, body=requests.Timeout("slow"))
    responses_mock.get(URL, body=requests.Timeout("slow"))
    sleep = SleepRecorder()

    client = HttpClient(HttpClientConfig(retry=1), sleep=sleep)

    with pytest.raises(requests.Timeout):
        client.get(URL)
    assert len(sleep.calls) == 1


def test_http_error_status_is_not_retried(responses_mock):
    responses_mock.post(URL, status=503, match=[matchers.urlencoded_params_matcher({"a": "1"})])
    sleep = SleepRecorder()

    response = HttpClient(HttpClientConfig(retry=3), sleep=sleep).post(URL, data={"a": "1"})

    assert response.status_code == 503
    assert sleep.calls == []
    assert len(responses_mock.calls) == 1
