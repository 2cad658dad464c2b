"""Outbound fetch engine behind the ``/fetch`` and ``/github/proxy`` routes.

Target validation, outbound header assembly, the retrying fetch and HTML
metadata extraction all live here so the routes stay thin.
"""

from __future__ import annotations

import json
from typing import Iterable, Iterator, Mapping, Optional, Tuple
from urllib.parse import SplitResult, urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from ginkohub.config import Config
from ginkohub.errors import InvalidTargetError, UpstreamError
from ginkohub.logger import get_logger
from ginkohub.utils import get_fetch_session, get_http_session

logger = get_logger("fetcher")

HEADER_PREFIX = "x-proxy-header-"

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "host",
    "accept-encoding",
    "content-length",
    "transfer-encoding",
    "upgrade",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
})

PASSTHROUGH_HEADERS = (
    "content-type",
    "cache-control",
    "etag",
    "last-modified",
    "content-language",
    "content-security-policy",
    "set-cookie",
    "location",
)

HeaderPairs = Iterable[Tuple[str, str]]


def is_allowed_github_host(hostname: str) -> bool:
    host = hostname.lower()
    return host == "github.com" or host.endswith(".github.com")


def validate_target(url: Optional[str], github_only: bool = False) -> SplitResult:
    """Check a caller-supplied URL before anything goes on the wire.

    Raises:
        InvalidTargetError: with a short reason suitable for a 400 response
    """
    if not url:
        raise InvalidTargetError("Missing url")
    try:
        parsed = urlsplit(url.strip())
        hostname = parsed.hostname
    except ValueError:
        raise InvalidTargetError("Invalid url")
    if not parsed.scheme or not parsed.netloc or not hostname:
        raise InvalidTargetError("Invalid url")
    if parsed.scheme.lower() not in ("http", "https"):
        raise InvalidTargetError("Invalid url protocol")
    if github_only and not is_allowed_github_host(hostname):
        raise InvalidTargetError("URL host not allowed")
    return parsed


def _override_headers(inbound: Mapping[str, str]) -> Iterator[Tuple[str, str]]:
    for name, value in inbound.items():
        lower = name.lower()
        if lower.startswith(HEADER_PREFIX) and len(lower) > len(HEADER_PREFIX):
            yield lower[len(HEADER_PREFIX):], value


def _json_headers(raw: Optional[str]) -> Iterator[Tuple[str, str]]:
    if not raw:
        return
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.debug("Ignoring malformed headers parameter")
        return
    if not isinstance(parsed, dict):
        return
    for name, value in parsed.items():
        if value is not None:
            yield str(name).lower(), str(value)


def _passthrough_headers(inbound: Mapping[str, str]) -> Iterator[Tuple[str, str]]:
    for name, value in inbound.items():
        lower = name.lower()
        if lower in HOP_BY_HOP_HEADERS or lower == "cookie" or lower.startswith(HEADER_PREFIX):
            continue
        yield lower, value


def merge_header_sources(sources: Iterable[HeaderPairs]) -> dict:
    """Merge header sources in priority order; earlier sources win."""
    merged: dict = {}
    for source in sources:
        for name, value in source:
            merged.setdefault(name, value)
    return merged


def build_outbound_headers(
    inbound: Mapping[str, str],
    headers_json: Optional[str] = None,
    user_agent: str = Config.DEFAULT_USER_AGENT,
) -> dict:
    """Assemble the header set sent upstream.

    Priority: ``x-proxy-header-*`` overrides, then the JSON ``headers``
    parameter, then the caller's own headers minus hop-by-hop and cookies.
    A user agent is always present.
    """
    headers = merge_header_sources([
        _override_headers(inbound),
        _json_headers(headers_json),
        _passthrough_headers(inbound),
    ])
    headers.setdefault("user-agent", user_agent)
    return headers


def fetch_once(
    method: str,
    url: str,
    headers: dict,
    body: Optional[bytes] = None,
    timeout: float = Config.GITHUB_PROXY_TIMEOUT,
) -> requests.Response:
    """Single outbound request; every HTTP status counts as a response."""
    try:
        return get_http_session().request(
            method,
            url,
            headers=headers,
            data=body or None,
            timeout=timeout,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        raise UpstreamError(str(e)) from e


def fetch_with_retry(
    method: str,
    url: str,
    headers: dict,
    body: Optional[bytes] = None,
    timeout: float = Config.FETCH_TIMEOUT,
) -> requests.Response:
    """Send one outbound request through the retrying fetch session.

    The session's transport retries connection failures (refused, reset,
    DNS) and upstream 5xx responses with a 1s, 2s, 4s backoff.

    Raises:
        UpstreamError: on a non-transient failure or once retries run out
    """
    try:
        response = get_fetch_session().request(
            method,
            url,
            headers=headers,
            data=body or None,
            timeout=timeout,
            allow_redirects=True,
        )
    except requests.RequestException as e:
        raise UpstreamError(str(e)) from e

    if response.status_code >= 500:
        logger.warning(f"Fetch {url} still failing with {response.status_code} after retries")
        raise UpstreamError(f"Upstream responded with {response.status_code}")
    return response


def passthrough_headers(upstream: Mapping[str, str]) -> dict:
    """Response headers copied back to the caller in raw mode."""
    return {name: upstream[name] for name in PASSTHROUGH_HEADERS if upstream.get(name) is not None}


def _meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    for name in names:
        for attr in ("property", "name"):
            tag = soup.find("meta", attrs={attr: name})
            if tag is not None:
                content = (tag.get("content") or "").strip()
                if content:
                    return content
    return None


def _link_href(soup: BeautifulSoup, *rels: str) -> Optional[str]:
    for rel in rels:
        for link in soup.find_all("link", href=True):
            link_rels = [r.lower() for r in (link.get("rel") or [])]
            if rel in link_rels:
                return link["href"].strip()
    return None


def extract_metadata(html: str, base_url: str) -> dict:
    """Pull Open Graph, Twitter card and plain HTML metadata from a page.

    Every URL in the result is absolute, resolved against ``base_url``.
    """
    soup = BeautifulSoup(html or "", "html.parser")

    title = _meta_content(soup, "og:title", "twitter:title")
    if not title and soup.title and soup.title.string:
        title = soup.title.string.strip() or None

    image = _meta_content(soup, "og:image", "og:image:url", "twitter:image", "twitter:image:src")
    canonical = _meta_content(soup, "og:url") or _link_href(soup, "canonical") or base_url
    favicon = _link_href(soup, "icon", "apple-touch-icon") or "/favicon.ico"

    return {
        "title": title,
        "description": _meta_content(soup, "og:description", "twitter:description", "description"),
        "image": urljoin(base_url, image) if image else None,
        "url": urljoin(base_url, canonical),
        "site_name": _meta_content(soup, "og:site_name", "application-name") or urlsplit(base_url).hostname,
        "favicon": urljoin(base_url, favicon),
    }
