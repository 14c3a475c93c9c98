"""Authentication gate, identity providers and per-caller rate limiting."""

from __future__ import annotations

import asyncio
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from secrets import token_hex
from typing import Any, Callable, Protocol, cast

from fastapi import Request
from redis import Redis
from supabase import Client

from .bootstrap import LOG_DEBUG, LOG_ERROR, LOG_WARNING, METRICS

SESSION_COOKIE = "sb-access-token"


class AuthenticationError(PermissionError):
    """Raised when no valid session can be resolved for the caller."""


class RateLimitExceeded(RuntimeError):
    """Raised when a caller exceeds the request budget for an endpoint."""

    def __init__(self, retry_after: int) -> None:
        super().__init__("Rate limit exceeded")
        self.retry_after = retry_after


@dataclass(frozen=True, slots=True)
class Identity:
    """Opaque identifier of the authenticated caller."""

    user_id: str


class IdentityProvider(Protocol):
    def resolve(self, token: str) -> str | None:
        """Return the user id for a session token, ``None`` if the session is invalid."""


@dataclass
class SupabaseIdentityProvider:
    """Resolve sessions through Supabase Auth."""

    client: Client

    def resolve(self, token: str) -> str | None:
        response = self.client.auth.get_user(token)
        user = getattr(response, "user", None)
        return getattr(user, "id", None) if user else None


@dataclass
class StaticTokenIdentityProvider:
    """Token table for local development when Supabase is not configured."""

    tokens: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_csv(cls, raw_value: str) -> "StaticTokenIdentityProvider":
        tokens: dict[str, str] = {}
        for item in raw_value.split(","):
            token, _, user_id = item.strip().partition(":")
            if token and user_id:
                tokens[token] = user_id
        return cls(tokens=tokens)

    def resolve(self, token: str) -> str | None:
        return self.tokens.get(token)


def extract_session_token(request: Request) -> str | None:
    """Read the bearer token, falling back to the Supabase session cookie."""

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    cookie = request.cookies.get(SESSION_COOKIE)
    return cookie or None


async def authenticate(request: Request, provider: IdentityProvider) -> Identity:
    """Resolve the caller or raise ``AuthenticationError``; never returns a partial identity."""

    token = extract_session_token(request)
    if not token:
        METRICS.increment("auth.missing_session")
        raise AuthenticationError("Missing session")

    try:
        user_id = await asyncio.to_thread(provider.resolve, token)
    except Exception as exc:
        # The token itself is never logged.
        LOG_ERROR("Session lookup failed", error=str(exc))
        METRICS.increment("auth.lookup_error")
        raise AuthenticationError("Session lookup failed") from exc

    if not user_id:
        LOG_WARNING("Invalid session", path=request.url.path)
        METRICS.increment("auth.invalid_session")
        raise AuthenticationError("Invalid session")

    LOG_DEBUG("Authentication successful", user_id=user_id)
    METRICS.increment("auth.success")
    return Identity(user_id=str(user_id))


def get_rate_limit_key(user_id: str, endpoint: str) -> str:
    return f"rate_limit:{user_id}:{endpoint}"


class RateLimiter(Protocol):
    def check(self, user_id: str, endpoint: str) -> tuple[bool, int, int]:
        """Record one request and return ``(allowed, remaining, reset_epoch)``."""


def _prune(hits: deque[float], window_start: float) -> None:
    while hits and hits[0] <= window_start:
        hits.popleft()


class InMemoryRateLimiter:
    """Sliding-window counter held in process memory.

    Counts are per process and reset on restart; use ``RedisRateLimiter`` when
    several workers must share a budget.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._last_sweep = float("-inf")
        self._lock = threading.Lock()

    def check(self, user_id: str, endpoint: str) -> tuple[bool, int, int]:
        key = get_rate_limit_key(user_id, endpoint)
        now = self._clock()
        window_start = now - self.window_seconds

        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._evict_idle(window_start)
                self._last_sweep = now

            hits = self._hits.setdefault(key, deque())
            _prune(hits, window_start)

            reset_time = int((hits[0] if hits else now) + self.window_seconds)
            if len(hits) >= self.max_requests:
                return False, 0, reset_time

            hits.append(now)
            return True, self.max_requests - len(hits), reset_time

    def _evict_idle(self, window_start: float) -> None:
        # Caller holds the lock; runs at most once per window.
        for key in list(self._hits):
            hits = self._hits[key]
            _prune(hits, window_start)
            if not hits:
                del self._hits[key]

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._hits)

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()


class RedisRateLimiter:
    """Sorted-set sliding window shared by every worker pointing at the same Redis."""

    def __init__(self, connection: Redis, max_requests: int, window_seconds: int) -> None:
        self.connection = connection
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @classmethod
    def from_url(cls, url: str, max_requests: int, window_seconds: int) -> "RedisRateLimiter":
        connection = Redis.from_url(url, socket_timeout=2.0, socket_connect_timeout=2.0, decode_responses=True)
        return cls(connection, max_requests, window_seconds)

    def check(self, user_id: str, endpoint: str) -> tuple[bool, int, int]:
        key = get_rate_limit_key(user_id, endpoint)
        current_time = time.time()
        window_start = current_time - self.window_seconds
        reset_time = int(current_time + self.window_seconds)

        try:
            pipe = self.connection.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zadd(key, {f"{current_time}:{token_hex(4)}": current_time})
            pipe.expire(key, self.window_seconds)
            results = pipe.execute()
        except Exception as error:
            # Fail open: a Redis outage must not lock every caller out.
            LOG_ERROR("Rate limit check failed", error=str(error), user_id=user_id)
            return True, self.max_requests, reset_time

        current_count = cast(int, results[1])
        if current_count >= self.max_requests:
            LOG_WARNING("Rate limit exceeded", user_id=user_id, endpoint=endpoint, count=current_count)
            return False, 0, reset_time
        return True, self.max_requests - current_count - 1, reset_time


async def enforce_rate_limit(limiter: RateLimiter | None, user_id: str, endpoint: str) -> dict[str, Any]:
    """Raise ``RateLimitExceeded`` when over budget; return header values otherwise."""

    if limiter is None:
        return {}

    allowed, remaining, reset_time = await asyncio.to_thread(limiter.check, user_id, endpoint)
    if not allowed:
        METRICS.increment("rate_limit.exceeded", endpoint=endpoint)
        raise RateLimitExceeded(retry_after=max(reset_time - int(time.time()), 0))
    return {"X-RateLimit-Remaining": str(remaining), "X-RateLimit-Reset": str(reset_time)}


__all__ = [
    "AuthenticationError",
    "Identity",
    "IdentityProvider",
    "InMemoryRateLimiter",
    "RateLimitExceeded",
    "RateLimiter",
    "RedisRateLimiter",
    "StaticTokenIdentityProvider",
    "SupabaseIdentityProvider",
    "authenticate",
    "enforce_rate_limit",
    "extract_session_token",
]
