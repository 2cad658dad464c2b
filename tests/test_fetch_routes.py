from unittest.mock import Mock, patch

import pytest
import requests


@pytest.fixture
def session():
    session = Mock()
    with patch("ginkohub.fetcher.get_http_session", return_value=session), \
            patch("ginkohub.fetcher.get_fetch_session", return_value=session):
        yield session


@pytest.mark.parametrize("prefix", ["/api", "/api/v1"])
def test_ftp_rejected_before_network(client, session, prefix):
    response = client.get(f"{prefix}/fetch", params={"url": "ftp://example.com"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid url protocol"}
    session.request.assert_not_called()


def test_missing_url(client, session):
    response = client.get("/api/fetch")
    assert response.status_code == 400
    assert response.json() == {"error": "Missing url"}


def test_unknown_format(client, session):
    response = client.get("/api/fetch", params={"url": "https://example.com", "format": "xml"})
    assert response.status_code == 400


def test_raw_passthrough(client, session, make_response, store):
    session.request.return_value = make_response(
        404,
        "<h1>gone</h1>",
        headers={"Content-Type": "text/html; charset=utf-8", "ETag": "v1", "Server": "secret"},
    )
    response = client.get(
        "/api/fetch",
        params={"url": "https://example.com/x", "headers": '{"Accept": "text/html"}'},
        headers={"x-proxy-header-authorization": "Bearer t", "cookie": "a=b"},
    )

    assert response.status_code == 404
    assert response.text == "<h1>gone</h1>"
    assert response.headers["etag"] == "v1"
    assert "server" not in response.headers

    method, url = session.request.call_args.args
    sent = session.request.call_args.kwargs["headers"]
    assert (method, url) == ("GET", "https://example.com/x")
    assert sent["authorization"] == "Bearer t"
    assert sent["accept"] == "text/html"
    assert "cookie" not in sent
    assert session.request.call_args.kwargs["timeout"] == 15
    assert store.get("usage:fetch") == 1


def test_post_body_is_forwarded(client, session, make_response):
    session.request.return_value = make_response(201, '{"ok": true}', headers={"Content-Type": "application/json"})
    response = client.post("/api/fetch", params={"url": "https://api.example.com/items"}, content=b'{"a": 1}')

    assert response.status_code == 201
    assert session.request.call_args.args[0] == "POST"
    assert session.request.call_args.kwargs["data"] == b'{"a": 1}'


def test_json_format(client, session, make_response):
    session.request.return_value = make_response(
        200, "hello", headers={"Content-Type": "text/plain"}, url="https://example.com/final"
    )
    response = client.get("/api/v1/fetch", params={"url": "https://example.com/", "format": "json"})

    assert response.status_code == 200
    body = response.json()
    assert body["contents"] == "hello"
    assert body["status"]["http_code"] == 200
    assert body["status"]["url"] == "https://example.com/final"
    assert body["status"]["content_type"] == "text/plain"
    assert isinstance(body["status"]["response_time"], int)


def test_meta_format(client, session, make_response):
    session.request.return_value = make_response(200, '<head><meta property="og:title" content="X"></head>')
    response = client.get("/api/fetch", params={"url": "https://example.com/post", "format": "meta"})

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "X"
    assert body["status"] == 200
    assert body["url"] == "https://example.com/post"


def test_upstream_failure_is_502(client, session):
    session.request.side_effect = requests.ConnectionError("connection refused")
    response = client.get("/api/fetch", params={"url": "https://example.com"})

    assert response.status_code == 502
    assert "connection refused" in response.json()["error"]
    assert session.request.call_count == 1


def test_5xx_left_after_retries_is_502(client, session, make_response, store):
    session.request.return_value = make_response(503, "down")
    response = client.get("/api/fetch", params={"url": "https://flaky.example.com"})

    assert response.status_code == 502
    assert response.json() == {"error": "Failed to fetch url: Upstream responded with 503"}
    assert store.get("usage:fetch") is None


def test_github_proxy_rejects_other_hosts(client, session):
    response = client.get("/api/github/proxy", params={"url": "https://example.com"})
    assert response.status_code == 400
    assert response.json() == {"error": "URL host not allowed"}
    session.request.assert_not_called()


def test_github_proxy_passes_5xx_through(client, session, make_response):
    session.request.return_value = make_response(503, "unicorn", headers={"Content-Type": "text/html"})
    response = client.get("/api/github/proxy", params={"url": "https://github.com/python"})

    assert response.status_code == 503
    assert response.text == "unicorn"
    assert session.request.call_count == 1
    assert session.request.call_args.kwargs["timeout"] == 10


def test_github_proxy_upstream_error(client, session):
    session.request.side_effect = requests.Timeout("read timed out")
    response = client.get("/api/github/proxy", params={"url": "https://github.com/python"})
    assert response.status_code == 502
    assert response.json() == {"error": "Failed to fetch url"}
