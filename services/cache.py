"""
services/cache.py
────────────────────────────────────────────────────────────────────────
Score-cache backends injected into `core.engagement.EngagementScorer`.

Every backend speaks the same three calls on JSON strings:

    get(key) -> str | None
    set(key, value, ttl) -> bool
    delete(key) -> None

`RedisScoreCache` never raises – Redis being down just means every
lookup is a miss (slower, still correct).
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional, Protocol, Tuple

import redis

_LOG = logging.getLogger(__name__)


class ScoreCache(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str, ttl: int) -> bool: ...

    def delete(self, key: str) -> None: ...


# ──────────────────────────────────────────────────────────────────────
#  In-process cache (tests, single worker)
# ──────────────────────────────────────────────────────────────────────
class InMemoryScoreCache:
    """
    Expired entries are purged on every write and the live set is capped
    at `max_entries` (soonest-to-expire evicted first), so arbitrary
    window strings cannot grow the dict without bound.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, max_entries: int = 1024) -> None:
        self._clock = clock
        self._max_entries = max(1, max_entries)
        self._data: Dict[str, Tuple[float, str]] = {}

    def get(self, key: str) -> Optional[str]:
        hit = self._data.get(key)
        if hit is None:
            return None
        expires_at, value = hit
        if self._clock() >= expires_at:
            self._data.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ttl: int) -> bool:
        now = self._clock()
        self._purge(now)
        self._data.pop(key, None)
        while len(self._data) >= self._max_entries:
            oldest = min(self._data, key=lambda k: self._data[k][0])
            del self._data[oldest]
        self._data[key] = (now + ttl, value)
        return True

    def _purge(self, now: float) -> None:
        for k in [k for k, (expires_at, _) in self._data.items() if now >= expires_at]:
            del self._data[k]

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class NullScoreCache:
    """Caching switched off."""

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str, ttl: int) -> bool:
        return False

    def delete(self, key: str) -> None:
        return None


# ──────────────────────────────────────────────────────────────────────
#  Redis
# ──────────────────────────────────────────────────────────────────────
class RedisScoreCache:
    """
    Thin wrapper around redis.Redis.
    All methods return None / False on failure instead of raising.
    """

    def __init__(self, url: str, client: Any | None = None) -> None:
        self._url = url
        self._client: Optional[Any] = client
        if self._client is None:
            try:
                self._client = redis.from_url(url, decode_responses=True)
                self._client.ping()
                _LOG.info("Redis score cache connected: %s", url)
            except Exception as e:
                _LOG.warning("Redis unavailable (%s). Score caching disabled.", e)
                self._client = None

    @property
    def available(self) -> bool:
        return self._client is not None

    def get(self, key: str) -> Optional[str]:
        if not self.available:
            return None
        try:
            return self._client.get(key)
        except Exception as e:
            _LOG.warning("Redis get %s failed: %s", key, e)
            return None

    def set(self, key: str, value: str, ttl: int) -> bool:
        if not self.available:
            return False
        try:
            self._client.setex(key, ttl, value)
            return True
        except Exception as e:
            _LOG.warning("Redis set %s failed: %s", key, e)
            return False

    def delete(self, key: str) -> None:
        if not self.available:
            return
        try:
            self._client.delete(key)
        except Exception as e:
            _LOG.warning("Redis delete %s failed: %s", key, e)


def build_score_cache(backend: str, redis_url: str | None = None) -> ScoreCache:
    backend = (backend or "memory").lower()
    if backend == "redis":
        if not redis_url:
            _LOG.warning("score_cache_backend=redis but REDIS_URL unset – using memory")
            return InMemoryScoreCache()
        return RedisScoreCache(redis_url)
    if backend == "none":
        return NullScoreCache()
    return InMemoryScoreCache()
