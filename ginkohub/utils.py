"""Utility functions for the GinkoHub Tools API."""

from __future__ import annotations

import base64
from typing import Optional

import requests
from fastapi import Request
from requests.adapters import HTTPAdapter
from urllib3.exceptions import ReadTimeoutError
from urllib3.util.retry import Retry

from ginkohub.config import Config
from ginkohub.logger import get_logger
from ginkohub.store import KeyValueStore

logger = get_logger("utils")

_HTTP_SESSION: requests.Session | None = None
_FETCH_SESSION: requests.Session | None = None


class ExponentialRetry(Retry):
    """Retry waiting ``backoff_factor * 2**(n-1)`` seconds before retry ``n``.

    Stock ``Retry`` skips the wait before the first retry. Read timeouts are
    raised straight away; a slow upstream is not retried.
    """

    def get_backoff_time(self) -> float:
        consecutive = 0
        for record in reversed(self.history):
            if record.redirect_location is not None:
                break
            consecutive += 1
        if consecutive == 0:
            return 0
        return min(self.backoff_max, self.backoff_factor * (2 ** (consecutive - 1)))

    def increment(self, method=None, url=None, response=None, error=None, _pool=None, _stacktrace=None):
        if isinstance(error, ReadTimeoutError):
            raise error.with_traceback(_stacktrace)
        return super().increment(method, url, response, error, _pool, _stacktrace)

    def sleep(self, response=None) -> None:
        if self.history:
            last = self.history[-1]
            reason = last.status or last.error
            logger.warning(f"Outbound request to {last.url} failed ({reason}); retrying in {self.get_backoff_time():.0f}s")
        super().sleep(response)


def _pooled_session(retry: Retry) -> requests.Session:
    session = requests.Session()
    adapter = HTTPAdapter(pool_connections=50, pool_maxsize=50, max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    session.max_redirects = Config.MAX_REDIRECTS
    return session


def get_http_session() -> requests.Session:
    """Shared requests session with connection pooling and no retries.

    Used for scraping, feeds and the GitHub proxy, which all make one attempt.
    """
    global _HTTP_SESSION
    if _HTTP_SESSION is None:
        _HTTP_SESSION = _pooled_session(Retry(total=0, raise_on_status=False))
    return _HTTP_SESSION


def get_fetch_session() -> requests.Session:
    """Shared session for the generic fetch proxy.

    Connection failures (refused, reset, DNS) and 5xx responses are retried
    ``Config.FETCH_RETRIES`` times for any method, waiting 1s, 2s, 4s with the
    default backoff. When retries run out on a 5xx the last response is
    returned rather than raised.
    """
    global _FETCH_SESSION
    if _FETCH_SESSION is None:
        retry = ExponentialRetry(
            total=Config.FETCH_RETRIES,
            connect=Config.FETCH_RETRIES,
            read=Config.FETCH_RETRIES,
            status=Config.FETCH_RETRIES,
            other=0,
            allowed_methods=None,
            status_forcelist=frozenset(range(500, 600)),
            backoff_factor=Config.FETCH_BACKOFF,
            respect_retry_after_header=False,
            raise_on_status=False,
        )
        _FETCH_SESSION = _pooled_session(retry)
    return _FETCH_SESSION


def client_ip(request: Request) -> str:
    """Best guess at the caller's address (first X-Forwarded-For hop)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def sanitize_ip(ip: str) -> str:
    """Make an address safe to embed in a store key."""
    return ip.replace(":", "_")


def encode_visitor(ip: str) -> str:
    return base64.urlsafe_b64encode(ip.encode("utf-8")).decode("ascii").rstrip("=")


def acquire_lock(store: KeyValueStore, key: str, ttl: int) -> bool:
    """Set ``key`` only if absent. True means this caller now holds it."""
    return bool(store.set(key, "1", nx=True, ex=ttl))


def release_lock(store: KeyValueStore, key: str) -> None:
    """Drop a lock taken for a write that did not happen. Never raises."""
    try:
        store.delete(key)
    except Exception as e:
        logger.warning(f"Releasing lock {key} failed: {e}")


def track_usage(store: KeyValueStore, feature: str) -> None:
    """Bump the usage counters for ``feature``. Never raises."""
    try:
        store.incr("usage:total")
        store.incr(f"usage:{feature}")
    except Exception as e:
        logger.debug(f"Usage tracking for {feature} skipped: {e}")


def read_usage(store: KeyValueStore) -> dict:
    """All ``usage:*`` counters keyed by feature name."""
    counters = {}
    for key in sorted(store.keys("usage:*")):
        value = store.get(key)
        counters[key.split(":", 1)[1]] = int(value or 0)
    return counters


def cache_get(store: KeyValueStore, key: str) -> Optional[object]:
    """Read-through cache lookup; a failing store reads as a miss."""
    try:
        return store.get(key)
    except Exception as e:
        logger.warning(f"Cache read for {key} failed: {e}")
        return None


def cache_set(store: KeyValueStore, key: str, value: object, ttl: int) -> None:
    """Best-effort cache write."""
    try:
        store.set(key, value, ex=ttl)
    except Exception as e:
        logger.warning(f"Cache write for {key} failed: {e}")
