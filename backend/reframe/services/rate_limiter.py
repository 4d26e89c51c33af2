"""Token-bucket rate limiting keyed by caller (IP or user id).

Each key gets a bucket of `rpm` tokens refilled continuously at rpm/60000
tokens per millisecond. An empty bucket puts the key into a fixed 45 second
cooldown regardless of rpm.

Two stores implement the same algorithm:
- InMemoryRateLimitStore: per-process dict, buckets live for the process
  lifetime. Instances behind a load balancer do not share counts.
- RedisRateLimitStore: buckets kept in Redis hashes and updated by a Lua
  script, so every instance sees the same counts.
"""
import logging
import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Protocol

import redis.asyncio as redis

logger = logging.getLogger(__name__)

COOLDOWN_MS = 45_000
LOOPBACK_IP = "127.0.0.1"
REDIS_KEY_PREFIX = "reframe:rl:"


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after_ms: int


@dataclass
class RateLimitBucket:
    key: str
    tokens: float
    last_refill: float
    cooldown_until: float | None = None


def now_ms() -> float:
    return time.time() * 1000


class RateLimitStore(Protocol):
    async def acquire(self, key: str, rpm: int, now: float) -> RateLimitResult:
        ...


class InMemoryRateLimitStore:
    """Process-local bucket map. Growth is unbounded by design of the key space."""

    def __init__(self) -> None:
        self._buckets: dict[str, RateLimitBucket] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> RateLimitBucket | None:
        return self._buckets.get(key)

    async def acquire(self, key: str, rpm: int, now: float) -> RateLimitResult:
        with self._lock:
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = RateLimitBucket(key=key, tokens=float(rpm), last_refill=now)
                self._buckets[key] = bucket
            return _consume(bucket, rpm, now)


def _consume(bucket: RateLimitBucket, rpm: int, now: float) -> RateLimitResult:
    elapsed = max(0.0, now - bucket.last_refill)
    bucket.tokens = min(float(rpm), bucket.tokens + elapsed * (rpm / 60_000))
    bucket.last_refill = now

    if bucket.cooldown_until is not None and now < bucket.cooldown_until:
        return RateLimitResult(
            allowed=False,
            remaining=0,
            retry_after_ms=int(bucket.cooldown_until - now),
        )

    if bucket.tokens < 1:
        bucket.cooldown_until = now + COOLDOWN_MS
        return RateLimitResult(allowed=False, remaining=0, retry_after_ms=COOLDOWN_MS)

    bucket.tokens -= 1
    bucket.cooldown_until = None
    return RateLimitResult(allowed=True, remaining=int(bucket.tokens), retry_after_ms=0)


# KEYS[1] = bucket key; ARGV = rpm, now_ms, cooldown_ms
TOKEN_BUCKET_SCRIPT = """
local rpm = tonumber(ARGV[1])
local now = tonumber(ARGV[2])
local cooldown = tonumber(ARGV[3])
local state = redis.call('HMGET', KEYS[1], 'tokens', 'last_refill', 'cooldown_until')
local tokens = tonumber(state[1]) or rpm
local last_refill = tonumber(state[2]) or now
local cooldown_until = tonumber(state[3]) or 0

local elapsed = math.max(0, now - last_refill)
tokens = math.min(rpm, tokens + elapsed * rpm / 60000)

local allowed = 0
local remaining = 0
local retry_after = 0
if cooldown_until > now then
  retry_after = cooldown_until - now
elseif tokens < 1 then
  cooldown_until = now + cooldown
  retry_after = cooldown
else
  tokens = tokens - 1
  cooldown_until = 0
  allowed = 1
  remaining = math.floor(tokens)
end

redis.call('HSET', KEYS[1], 'tokens', tostring(tokens), 'last_refill', tostring(now),
  'cooldown_until', tostring(cooldown_until))
redis.call('PEXPIRE', KEYS[1], math.max(120000, cooldown * 2))
return {allowed, remaining, math.ceil(retry_after)}
"""


class RedisRateLimitStore:
    """Shared buckets for multi-instance deployments."""

    def __init__(self, client: redis.Redis) -> None:
        self._client = client
        self._script = client.register_script(TOKEN_BUCKET_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> "RedisRateLimitStore":
        return cls(redis.from_url(url, decode_responses=True))

    async def acquire(self, key: str, rpm: int, now: float) -> RateLimitResult:
        allowed, remaining, retry_after = await self._script(
            keys=[f"{REDIS_KEY_PREFIX}{key}"],
            args=[rpm, int(now), COOLDOWN_MS],
        )
        return RateLimitResult(
            allowed=bool(int(allowed)),
            remaining=int(remaining),
            retry_after_ms=int(retry_after),
        )


class RateLimiter:
    """Checks and consumes one token for a caller key."""

    def __init__(
        self,
        store: RateLimitStore,
        default_rpm: int = 20,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self.store = store
        self.default_rpm = default_rpm
        self._clock = clock

    async def check(self, key: str, rpm: int | None = None) -> RateLimitResult:
        rpm = rpm or self.default_rpm
        result = await self.store.acquire(key, rpm, self._clock())
        if not result.allowed:
            logger.info(
                f"Rate limit hit: key={key}, rpm={rpm}, retry_after_ms={result.retry_after_ms}"
            )
        return result


def get_client_ip(
    headers: Mapping[str, str],
    peer: str | None = None,
    trust_forwarded: bool = True,
) -> str:
    """Resolve the caller IP.

    Prefers the first X-Forwarded-For entry, then X-Real-IP. These headers
    are client-controlled unless a trusted proxy sets them, so they can be
    ignored with trust_forwarded=False (the socket peer is used instead).
    """
    if trust_forwarded:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        real_ip = headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()
    return peer or LOOPBACK_IP
