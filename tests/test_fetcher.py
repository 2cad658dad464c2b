import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from unittest.mock import Mock, call, patch

import pytest
import requests
from urllib3.exceptions import ReadTimeoutError
from urllib3.response import HTTPResponse

from ginkohub.errors import InvalidTargetError, UpstreamError
from ginkohub.fetcher import (
    build_outbound_headers,
    extract_metadata,
    fetch_with_retry,
    passthrough_headers,
    validate_target,
)
from ginkohub.utils import ExponentialRetry, get_fetch_session, get_http_session


@pytest.mark.parametrize("url, reason", [
    (None, "Missing url"),
    ("", "Missing url"),
    ("not a url", "Invalid url"),
    ("http://", "Invalid url"),
    ("ftp://example.com/file", "Invalid url protocol"),
    ("javascript://example.com", "Invalid url protocol"),
])
def test_validate_target_rejects(url, reason):
    with pytest.raises(InvalidTargetError) as exc:
        validate_target(url)
    assert str(exc.value) == reason


def test_validate_target_github_only():
    assert validate_target("https://github.com/python/cpython", github_only=True).hostname == "github.com"
    assert validate_target("https://gist.GitHub.com/x", github_only=True)
    for url in ("https://example.com", "https://github.com.evil.io/", "https://notgithub.com"):
        with pytest.raises(InvalidTargetError, match="URL host not allowed"):
            validate_target(url, github_only=True)


def test_header_precedence():
    inbound = {
        "accept": "text/html",
        "x-proxy-header-accept": "application/json",
        "x-custom": "inbound",
        "authorization": "Bearer inbound",
        "cookie": "session=secret",
        "host": "tools.example",
        "connection": "keep-alive",
        "accept-encoding": "gzip",
    }
    headers = build_outbound_headers(inbound, '{"Authorization": "Bearer json", "X-Extra": "1"}')

    assert headers["accept"] == "application/json"
    assert headers["authorization"] == "Bearer json"
    assert headers["x-extra"] == "1"
    assert headers["x-custom"] == "inbound"
    for dropped in ("cookie", "host", "connection", "accept-encoding", "x-proxy-header-accept"):
        assert dropped not in headers


def test_malformed_json_headers_are_ignored():
    headers = build_outbound_headers({"x-a": "1"}, "{not json")
    assert headers["x-a"] == "1"


def test_default_user_agent():
    assert build_outbound_headers({})["user-agent"].startswith("Mozilla/5.0")
    assert build_outbound_headers({"user-agent": "curl/8"})["user-agent"] == "curl/8"
    assert build_outbound_headers({"x-proxy-header-user-agent": "bot/1", "user-agent": "curl/8"})["user-agent"] == "bot/1"


def test_backoff_doubles_from_first_retry():
    retry = ExponentialRetry(total=3, status_forcelist={503}, backoff_factor=1.0, allowed_methods=None)
    assert retry.get_backoff_time() == 0

    waits = []
    for _ in range(3):
        retry = retry.increment("GET", "/", response=HTTPResponse(status=503))
        waits.append(retry.get_backoff_time())
    assert waits == [1.0, 2.0, 4.0]


def test_read_timeout_is_not_retried():
    retry = ExponentialRetry(total=3, read=3)
    with pytest.raises(ReadTimeoutError):
        retry.increment("GET", "/", error=ReadTimeoutError(None, "/", "timed out"))


def test_fetch_session_retry_policy():
    retry = get_fetch_session().get_adapter("https://example.com").max_retries
    assert isinstance(retry, ExponentialRetry)
    assert (retry.total, retry.connect, retry.status) == (3, 3, 3)
    assert retry.backoff_factor == 1.0
    assert retry.allowed_methods is None
    assert 500 in retry.status_forcelist and 503 in retry.status_forcelist
    assert 404 not in retry.status_forcelist
    assert retry.raise_on_status is False

    assert get_http_session().get_adapter("https://example.com").max_retries.total == 0


class ScriptedHandler(BaseHTTPRequestHandler):
    """Answers with the next status in ``server.script``; the last one repeats."""

    def _respond(self):
        self.server.hits += 1
        status = self.server.script[min(self.server.hits, len(self.server.script)) - 1]
        if status == "slow":
            threading.Event().wait(1)
            status = 200
        body = b"ok" if status < 500 else b"unavailable"
        try:
            self.send_response(status)
            self.send_header("Content-Length", str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        except OSError:
            pass

    do_GET = do_POST = _respond

    def log_message(self, *args):
        pass


@pytest.fixture
def upstream(monkeypatch):
    for var in ("HTTP_PROXY", "HTTPS_PROXY", "ALL_PROXY", "http_proxy", "https_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    server = ThreadingHTTPServer(("127.0.0.1", 0), ScriptedHandler)
    server.script = [200]
    server.hits = 0
    server.url = f"http://127.0.0.1:{server.server_address[1]}/"
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def backoff_sleep():
    with patch("urllib3.util.retry.time.sleep") as sleep:
        yield sleep


def test_retry_on_5xx_then_success(upstream, backoff_sleep):
    upstream.script = [503, 502, 200]
    response = fetch_with_retry("GET", upstream.url, {})

    assert response.status_code == 200
    assert response.text == "ok"
    assert upstream.hits == 3
    assert backoff_sleep.call_args_list == [call(1.0), call(2.0)]


def test_post_is_retried_too(upstream, backoff_sleep):
    upstream.script = [500, 201]
    response = fetch_with_retry("POST", upstream.url, {}, b'{"a": 1}')
    assert response.status_code == 201
    assert upstream.hits == 2


def test_5xx_exhausts_retries(upstream, backoff_sleep):
    upstream.script = [503]
    with pytest.raises(UpstreamError, match="503"):
        fetch_with_retry("GET", upstream.url, {})

    assert upstream.hits == 4
    assert backoff_sleep.call_args_list == [call(1.0), call(2.0), call(4.0)]


def test_4xx_is_not_retried(upstream, backoff_sleep):
    upstream.script = [404]
    assert fetch_with_retry("GET", upstream.url, {}).status_code == 404
    assert upstream.hits == 1
    backoff_sleep.assert_not_called()


def test_slow_upstream_is_not_retried(upstream, backoff_sleep):
    upstream.script = ["slow"]
    with pytest.raises(UpstreamError):
        fetch_with_retry("GET", upstream.url, {}, timeout=0.2)
    assert upstream.hits == 1
    backoff_sleep.assert_not_called()


def test_connection_refused_exhausts_retries(monkeypatch, backoff_sleep):
    for var in ("HTTP_PROXY", "ALL_PROXY", "http_proxy", "all_proxy"):
        monkeypatch.delenv(var, raising=False)
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    with pytest.raises(UpstreamError):
        fetch_with_retry("GET", f"http://127.0.0.1:{port}/", {})
    assert backoff_sleep.call_args_list == [call(1.0), call(2.0), call(4.0)]


def test_no_retry_on_non_transient_failure():
    session = Mock()
    session.request.side_effect = requests.TooManyRedirects("Exceeded 5 redirects")
    with patch("ginkohub.fetcher.get_fetch_session", return_value=session):
        with pytest.raises(UpstreamError, match="Exceeded 5 redirects"):
            fetch_with_retry("GET", "https://example.com", {})
    assert session.request.call_count == 1



def test_passthrough_headers_allow_list(make_response):
    upstream = make_response(200, headers={
        "Content-Type": "text/html",
        "ETag": '"abc"',
        "Server": "nginx",
        "Content-Encoding": "gzip",
    }).headers
    assert passthrough_headers(upstream) == {"content-type": "text/html", "etag": '"abc"'}


def test_metadata_prefers_open_graph():
    html = """
    <html><head>
      <title>Plain title</title>
      <meta property="og:title" content="OG title">
      <meta name="twitter:description" content="Tweet sized">
      <meta property="og:image" content="/img/cover.png">
      <link rel="canonical" href="/articles/1">
      <link rel="shortcut icon" href="/static/fav.ico">
    </head></html>
    """
    meta = extract_metadata(html, "https://example.com/articles/1?ref=x")

    assert meta["title"] == "OG title"
    assert meta["description"] == "Tweet sized"
    assert meta["image"] == "https://example.com/img/cover.png"
    assert meta["url"] == "https://example.com/articles/1"
    assert meta["favicon"] == "https://example.com/static/fav.ico"
    assert meta["site_name"] == "example.com"


def test_metadata_fallbacks():
    meta = extract_metadata(
        "<html><head><title> Only title </title><meta name='description' content='Desc'></head></html>",
        "https://example.com/page",
    )
    assert meta["title"] == "Only title"
    assert meta["description"] == "Desc"
    assert meta["image"] is None
    assert meta["url"] == "https://example.com/page"
    assert meta["favicon"] == "https://example.com/favicon.ico"
