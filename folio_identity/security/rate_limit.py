"""Sliding window rate limiters guarding reset-link consumption."""

from __future__ import annotations

import logging
import time
from collections import deque
from threading import Lock
from typing import Deque, DefaultDict, Final, Protocol

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from ..config import Settings

logger = logging.getLogger(__name__)


class RateLimiter(Protocol):
    def allow(self, key: str) -> bool: ...


class InMemoryRateLimiter:
    """Thread-safe per-process sliding window limiter.

    Keys whose newest attempt has left the window are dropped at most once per
    window, so callers choosing fresh keys cannot grow the table forever.
    """

    def __init__(self, max_requests: int, window_seconds: int) -> None:
        self._max_requests = max_requests
        self._window = window_seconds
        self._events: DefaultDict[str, Deque[float]] = DefaultDict(deque)
        self._lock = Lock()
        self._last_sweep = time.monotonic()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def allow(self, key: str) -> bool:
        """Record an attempt for ``key`` and report whether it is within the limit."""
        now = time.monotonic()
        with self._lock:
            if now - self._last_sweep > self._window:
                self._sweep(now)
            attempts = self._events[key]
            while attempts and now - attempts[0] > self._window:
                attempts.popleft()
            if len(attempts) >= self._max_requests:
                return False
            attempts.append(now)
            return True

    def _sweep(self, now: float) -> None:
        stale = [
            key
            for key, attempts in self._events.items()
            if not attempts or now - attempts[-1] > self._window
        ]
        for key in stale:
            del self._events[key]
        self._last_sweep = now


class RedisRateLimiter:
    """Limiter shared across workers, kept in Redis sorted sets."""

    _LUA_SCRIPT: Final[str] = """
    local key = KEYS[1]
    local seq_key = key .. ':seq'
    local window_ms = tonumber(ARGV[1])
    local max_requests = tonumber(ARGV[2])
    local now_ms = tonumber(ARGV[3])

    redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)
    if redis.call('ZCARD', key) >= max_requests then
        return 0
    end
    local seq = redis.call('INCR', seq_key)
    redis.call('PEXPIRE', seq_key, window_ms)
    redis.call('ZADD', key, now_ms, tostring(now_ms) .. ':' .. tostring(seq))
    redis.call('PEXPIRE', key, window_ms)
    return 1
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "folio:rate",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._script = client.register_script(self._LUA_SCRIPT)

    def allow(self, key: str) -> bool:
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        try:
            result = self._script(keys=[redis_key], args=[self._window_ms, self._max_requests, now_ms])
        except ResponseError as exc:
            message = str(exc).lower()
            if "unknown command" in message and "eval" in message:
                return self._allow_without_lua(redis_key, now_ms)
            raise
        return int(result) == 1

    def _allow_without_lua(self, redis_key: str, now_ms: int) -> bool:
        """Non-atomic variant for Redis deployments with scripting disabled."""
        self._client.zremrangebyscore(redis_key, 0, now_ms - self._window_ms)
        if self._client.zcard(redis_key) >= self._max_requests:
            return False
        seq = self._client.incr(f"{redis_key}:seq")
        pipe = self._client.pipeline()
        pipe.pexpire(f"{redis_key}:seq", self._window_ms)
        pipe.zadd(redis_key, {f"{now_ms}:{seq}": now_ms})
        pipe.pexpire(redis_key, self._window_ms)
        pipe.execute()
        return True


def build_rate_limiter(settings: Settings) -> RateLimiter:
    """Instantiate the configured backend, falling back to memory if Redis is down."""
    if settings.rate_limit_backend == "redis" and settings.redis_url:
        try:
            client = Redis.from_url(settings.redis_url)
            client.ping()
        except RedisError as exc:
            logger.warning("redis rate limiter unavailable, falling back to in-memory: %s", exc)
        else:
            logger.info("rate limiter configured for redis backend")
            return RedisRateLimiter(
                client,
                max_requests=settings.rate_limit_requests,
                window_seconds=settings.rate_limit_window_seconds,
            )

    logger.info("rate limiter using in-memory backend")
    return InMemoryRateLimiter(
        max_requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
