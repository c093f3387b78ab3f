"""
Multi-window quota limiter
==========================

Each inbound request consumes one unit from every configured fixed window
(e.g. minute, hour, day) for its client identity. Counters live in an
external store that only needs INCR / EXPIRE / TTL; nothing is cached in
process.

The limiter fails open: if the store is slow or unreachable the affected
window reports the request as allowed with its full quota.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

import redis.asyncio as aioredis

from config import RateLimitWindow

logger = logging.getLogger(__name__)

KEY_PREFIX = "rate_limit"


class CounterStore(Protocol):
    """Minimal atomic-counter interface consumed by QuotaLimiter."""

    async def incr(self, key: str) -> int: ...

    async def expire(self, key: str, seconds: int) -> None: ...

    async def ttl(self, key: str) -> Optional[int]: ...


class RedisCounterStore:
    """CounterStore backed by redis.asyncio"""

    def __init__(self, client: aioredis.Redis):
        self.client = client

    @classmethod
    def from_url(cls, url: str, timeout_seconds: float) -> "RedisCounterStore":
        client = aioredis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(client)

    async def incr(self, key: str) -> int:
        return int(await self.client.incr(key))

    async def expire(self, key: str, seconds: int) -> None:
        await self.client.expire(key, seconds)

    async def ttl(self, key: str) -> Optional[int]:
        value = await self.client.ttl(key)
        # -1: no expiry, -2: missing key
        if value is None or value < 0:
            return None
        return int(value)

    async def close(self) -> None:
        await self.client.aclose()


@dataclass(frozen=True)
class WindowStatus:
    name: str
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int


@dataclass(frozen=True)
class QuotaDecision:
    """Overall admission decision plus the primary window used for reporting"""
    allowed: bool
    limit: int
    remaining: int
    reset_seconds: int
    windows: List[WindowStatus] = field(default_factory=list)

    def headers(self) -> Dict[str, str]:
        """Response headers describing the primary window and every configured window."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_seconds),
        }
        for window in self.windows:
            label = window.name.capitalize()
            headers[f"X-RateLimit-{label}-Limit"] = str(window.limit)
            headers[f"X-RateLimit-{label}-Remaining"] = str(window.remaining)
            headers[f"X-RateLimit-{label}-Reset"] = str(window.reset_seconds)
        return headers

    def to_payload(self) -> Dict[str, object]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "resetSeconds": self.reset_seconds,
            "windows": [
                {
                    "name": window.name,
                    "allowed": window.allowed,
                    "limit": window.limit,
                    "remaining": window.remaining,
                    "resetSeconds": window.reset_seconds,
                }
                for window in self.windows
            ],
        }


class AdmissionDenied(RuntimeError):
    """A client exhausted at least one quota window."""

    public_message = "Too many requests. Please slow down."

    def __init__(self, decision: QuotaDecision):
        super().__init__(self.public_message)
        self.decision = decision


def pick_primary(windows: Sequence[WindowStatus]) -> WindowStatus:
    """
    Choose the window reported at top level: least remaining quota, ties
    broken by the sooner reset. Equal on both keeps the earlier window.
    """
    if not windows:
        raise ValueError("pick_primary needs at least one window")
    primary = windows[0]
    for window in windows[1:]:
        if window.remaining < primary.remaining:
            primary = window
        elif window.remaining == primary.remaining and window.reset_seconds < primary.reset_seconds:
            primary = window
    return primary


class QuotaLimiter:
    """Consumes one request unit from every configured window"""

    def __init__(self, store: CounterStore, windows: Sequence[RateLimitWindow], timeout_seconds: float = 0.5):
        if not windows:
            raise ValueError("QuotaLimiter needs at least one window")
        self.store = store
        self.windows = tuple(windows)
        self.timeout_seconds = timeout_seconds

    @staticmethod
    def key_for(window_name: str, client_id: str) -> str:
        return f"{KEY_PREFIX}:{window_name}:{client_id}"

    async def consume(self, client_id: str) -> QuotaDecision:
        statuses = [await self._consume_window(window, client_id) for window in self.windows]
        primary = pick_primary(statuses)
        return QuotaDecision(
            allowed=all(status.allowed for status in statuses),
            limit=primary.limit,
            remaining=primary.remaining,
            reset_seconds=primary.reset_seconds,
            windows=statuses,
        )

    async def _call(self, awaitable):
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    async def _consume_window(self, window: RateLimitWindow, client_id: str) -> WindowStatus:
        key = self.key_for(window.name, client_id)
        try:
            count = await self._call(self.store.incr(key))
        except Exception as exc:
            logger.warning("Counter store unavailable for %s window, failing open: %s", window.name, exc)
            return self._fail_open(window)

        if count is None:
            return self._fail_open(window)

        if count == 1:
            await self._set_expiry(key, window)

        try:
            ttl = await self._call(self.store.ttl(key))
        except Exception as exc:
            logger.warning("Could not read TTL of %s: %s", key, exc)
            ttl = None
        else:
            if count > 1 and (ttl is None or ttl < 0):
                # counter lost its expiry (first EXPIRE failed); re-arm it
                await self._set_expiry(key, window)

        reset_seconds = ttl if ttl is not None and ttl > 0 else window.window_seconds
        return WindowStatus(
            name=window.name,
            allowed=count <= window.limit,
            limit=window.limit,
            remaining=max(0, window.limit - count),
            reset_seconds=reset_seconds,
        )

    async def _set_expiry(self, key: str, window: RateLimitWindow) -> None:
        try:
            await self._call(self.store.expire(key, window.window_seconds))
        except Exception as exc:
            logger.warning("Could not set expiry on %s: %s", key, exc)

    @staticmethod
    def _fail_open(window: RateLimitWindow) -> WindowStatus:
        return WindowStatus(
            name=window.name,
            allowed=True,
            limit=window.limit,
            remaining=window.limit,
            reset_seconds=window.window_seconds,
        )


_shared_limiter: Optional[QuotaLimiter] = None


def get_quota_limiter() -> QuotaLimiter:
    """Return the shared limiter backed by the configured Redis instance."""
    global _shared_limiter
    if _shared_limiter is None:
        from config import config

        store = RedisCounterStore.from_url(config.REDIS_URL, config.REDIS_TIMEOUT_SECONDS)
        _shared_limiter = QuotaLimiter(store, config.RATE_LIMIT_WINDOWS, config.REDIS_TIMEOUT_SECONDS)
    return _shared_limiter
