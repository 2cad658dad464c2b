"""Key-value store used for caches, counters and locks.

Two interchangeable backends share one interface:

* ``MemoryStore`` keeps everything in process. Entries with a TTL are
  dropped once they expire and everything is lost on restart.
* ``RemoteStore`` talks to an Upstash-compatible Redis over its REST API,
  so state is shared across processes and survives restarts.

Consumers only ever call ``get``, ``set``, ``incr``, ``delete`` and ``keys``.
"""

from __future__ import annotations

import copy
import json
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from upstash_redis import Redis

from ginkohub.errors import StoreError
from ginkohub.logger import get_logger

logger = get_logger("store")


def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a key pattern where ``*`` matches any run of characters."""
    parts = (re.escape(part) for part in pattern.split("*"))
    return re.compile("^" + ".*".join(parts) + "$")


class KeyValueStore(ABC):
    """Capability interface shared by every backend."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the stored value, or ``None`` when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None) -> Optional[str]:
        """Store ``value``.

        Args:
            nx: Only write when the key does not exist yet
            ex: Expire the key after this many seconds

        Returns:
            ``"OK"`` when written, ``None`` when ``nx`` blocked the write
        """

    @abstractmethod
    def incr(self, key: str) -> int:
        """Add one to an integer key (absent counts as 0) and return it."""

    @abstractmethod
    def delete(self, key: str) -> int:
        """Remove ``key``; returns how many keys were removed (0 or 1)."""

    @abstractmethod
    def keys(self, pattern: str) -> List[str]:
        """Return every live key matching ``pattern``."""


@dataclass
class _Entry:
    value: Any
    expires_at: Optional[float] = None

    def expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class MemoryStore(KeyValueStore):
    """In-process store. Check-and-set runs under one lock.

    Values are copied in and out so callers never share mutable state with
    the store, matching the serializing remote backend.
    """

    name = "memory"

    # seconds between full sweeps of expired entries on write
    PURGE_INTERVAL = 60.0

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = RLock()
        self._data: Dict[str, _Entry] = {}
        self._last_purge = clock()

    def _live(self, key: str, now: float) -> Optional[_Entry]:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry.expired(now):
            self._data.pop(key, None)
            return None
        return entry

    def _purge(self, now: float) -> None:
        expired_keys = [k for k, v in self._data.items() if v.expired(now)]
        for k in expired_keys:
            self._data.pop(k, None)
        self._last_purge = now

    def _maybe_purge(self, now: float) -> None:
        if now - self._last_purge >= self.PURGE_INTERVAL:
            self._purge(now)

    def get(self, key: str) -> Any:
        with self._lock:
            entry = self._live(key, self._clock())
            return None if entry is None else copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None) -> Optional[str]:
        now = self._clock()
        with self._lock:
            self._maybe_purge(now)
            if nx and self._live(key, now) is not None:
                return None
            expires_at = now + ex if ex else None
            self._data[key] = _Entry(value=copy.deepcopy(value), expires_at=expires_at)
            return "OK"

    def incr(self, key: str) -> int:
        now = self._clock()
        with self._lock:
            entry = self._live(key, now)
            current = 0 if entry is None else entry.value
            try:
                next_value = int(current) + 1
            except (TypeError, ValueError) as e:
                raise StoreError(f"Value at {key} is not an integer") from e
            expires_at = None if entry is None else entry.expires_at
            self._data[key] = _Entry(value=next_value, expires_at=expires_at)
            return next_value

    def delete(self, key: str) -> int:
        with self._lock:
            entry = self._live(key, self._clock())
            self._data.pop(key, None)
            return 0 if entry is None else 1

    def keys(self, pattern: str) -> List[str]:
        regex = glob_to_regex(pattern)
        now = self._clock()
        with self._lock:
            self._purge(now)
            return [k for k in self._data if regex.match(k)]


class RemoteStore(KeyValueStore):
    """Upstash Redis over REST. Values are stored as JSON text."""

    name = "remote"

    def __init__(self, client: Redis):
        self._client = client

    @classmethod
    def from_credentials(cls, url: str, token: str) -> "RemoteStore":
        return cls(Redis(url=url, token=token))

    def get(self, key: str) -> Any:
        try:
            raw = self._client.get(key)
        except Exception as e:
            raise StoreError(f"get {key} failed: {e}") from e
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError):
            return raw

    def set(self, key: str, value: Any, nx: bool = False, ex: Optional[int] = None) -> Optional[str]:
        try:
            written = self._client.set(key, json.dumps(value), ex=ex, nx=nx)
        except Exception as e:
            raise StoreError(f"set {key} failed: {e}") from e
        return "OK" if written else None

    def incr(self, key: str) -> int:
        try:
            return int(self._client.incr(key))
        except Exception as e:
            raise StoreError(f"incr {key} failed: {e}") from e

    def delete(self, key: str) -> int:
        try:
            return int(self._client.delete(key))
        except Exception as e:
            raise StoreError(f"delete {key} failed: {e}") from e

    def keys(self, pattern: str) -> List[str]:
        try:
            return list(self._client.keys(pattern))
        except Exception as e:
            raise StoreError(f"keys {pattern} failed: {e}") from e


def create_store(url: Optional[str], token: Optional[str], environment: str = "production") -> KeyValueStore:
    """Pick the backend from configuration.

    Development mode or missing credentials always give the in-process store.
    """
    if environment == "development" or not url or not token:
        logger.info("Storage: in-memory mode active (development or no remote config)")
        return MemoryStore()
    logger.info("Storage: remote Redis active")
    return RemoteStore.from_credentials(url, token)
