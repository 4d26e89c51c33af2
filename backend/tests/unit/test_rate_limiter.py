"""
Unit tests for the token-bucket rate limiter and client IP resolution.
"""
import pytest

from reframe.services.rate_limiter import (
    COOLDOWN_MS,
    REDIS_KEY_PREFIX,
    InMemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
    get_client_ip,
)


class TestTokenBucket:

    @pytest.mark.asyncio
    async def test_three_calls_allowed_then_denied(self, fake_clock):
        """rpm=3: three rapid calls pass, the last with nothing left; the fourth is denied."""
        limiter = RateLimiter(InMemoryRateLimitStore(), clock=fake_clock)

        results = [await limiter.check("1.2.3.4", rpm=3) for _ in range(3)]
        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [2, 1, 0]

        denied = await limiter.check("1.2.3.4", rpm=3)
        assert denied.allowed is False
        assert denied.remaining == 0
        assert denied.retry_after_ms == COOLDOWN_MS

    @pytest.mark.asyncio
    async def test_cooldown_reports_time_left(self, fake_clock):
        limiter = RateLimiter(InMemoryRateLimitStore(), clock=fake_clock)
        await limiter.check("k", rpm=1)
        await limiter.check("k", rpm=1)

        fake_clock.advance(10_000)
        result = await limiter.check("k", rpm=1)
        assert result.allowed is False
        assert result.retry_after_ms == COOLDOWN_MS - 10_000

    @pytest.mark.asyncio
    async def test_cooldown_is_fixed_regardless_of_rpm(self, fake_clock):
        """Refill would allow a token after 1s at rpm=60, but the cooldown still holds."""
        limiter = RateLimiter(InMemoryRateLimitStore(), clock=fake_clock)
        for _ in range(60):
            assert (await limiter.check("k", rpm=60)).allowed
        assert not (await limiter.check("k", rpm=60)).allowed

        fake_clock.advance(2_000)
        assert not (await limiter.check("k", rpm=60)).allowed

        fake_clock.advance(COOLDOWN_MS)
        assert (await limiter.check("k", rpm=60)).allowed

    @pytest.mark.asyncio
    async def test_tokens_refill_over_time(self, fake_clock):
        store = InMemoryRateLimitStore()
        limiter = RateLimiter(store, clock=fake_clock)
        await limiter.check("k", rpm=6)
        await limiter.check("k", rpm=6)
        assert store.get("k").tokens == pytest.approx(4)

        fake_clock.advance(10_000)  # one token per 10s at rpm=6
        result = await limiter.check("k", rpm=6)
        assert result.allowed
        assert store.get("k").tokens == pytest.approx(4)

    @pytest.mark.asyncio
    async def test_refill_is_capped_at_rpm(self, fake_clock):
        store = InMemoryRateLimitStore()
        limiter = RateLimiter(store, clock=fake_clock)
        await limiter.check("k", rpm=5)
        fake_clock.advance(10 * 60_000)
        result = await limiter.check("k", rpm=5)
        assert result.remaining == 4

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, fake_clock):
        limiter = RateLimiter(InMemoryRateLimitStore(), clock=fake_clock)
        await limiter.check("a", rpm=1)
        assert not (await limiter.check("a", rpm=1)).allowed
        assert (await limiter.check("b", rpm=1)).allowed

    @pytest.mark.asyncio
    async def test_default_rpm_is_used(self, fake_clock):
        limiter = RateLimiter(InMemoryRateLimitStore(), default_rpm=2, clock=fake_clock)
        assert (await limiter.check("k")).remaining == 1


class StubScript:
    """Records calls the way a registered redis-py Script is awaited."""

    def __init__(self, reply):
        self.reply = reply
        self.calls = []

    async def __call__(self, keys=None, args=None):
        self.calls.append({"keys": keys, "args": args})
        return self.reply


class StubRedis:
    def __init__(self, reply):
        self.script = StubScript(reply)

    def register_script(self, source):
        self.script.source = source
        return self.script


class TestRedisStore:

    @pytest.mark.asyncio
    async def test_allowed_reply(self):
        client = StubRedis([1, 7, 0])
        store = RedisRateLimitStore(client)

        result = await store.acquire("ip:1.2.3.4", rpm=10, now=1234.9)

        assert result.allowed is True
        assert result.remaining == 7
        assert result.retry_after_ms == 0
        call = client.script.calls[0]
        assert call["keys"] == [f"{REDIS_KEY_PREFIX}ip:1.2.3.4"]
        assert call["args"] == [10, 1234, COOLDOWN_MS]

    @pytest.mark.asyncio
    async def test_denied_reply(self):
        store = RedisRateLimitStore(StubRedis([0, 0, 45000]))
        result = await store.acquire("k", rpm=10, now=0)
        assert result.allowed is False
        assert result.retry_after_ms == 45000

    def test_script_uses_fixed_cooldown_and_expiry(self):
        client = StubRedis([1, 0, 0])
        RedisRateLimitStore(client)
        assert "PEXPIRE" in client.script.source
        assert "cooldown_until" in client.script.source


class TestGetClientIp:

    def test_prefers_first_forwarded_entry(self):
        headers = {"x-forwarded-for": " 203.0.113.7 , 10.0.0.1", "x-real-ip": "198.51.100.2"}
        assert get_client_ip(headers) == "203.0.113.7"

    def test_falls_back_to_real_ip(self):
        assert get_client_ip({"x-real-ip": "198.51.100.2"}) == "198.51.100.2"

    def test_falls_back_to_loopback(self):
        assert get_client_ip({}) == "127.0.0.1"

    def test_peer_used_when_headers_absent(self):
        assert get_client_ip({}, peer="192.0.2.10") == "192.0.2.10"

    def test_untrusted_headers_are_ignored(self):
        headers = {"x-forwarded-for": "203.0.113.7"}
        assert get_client_ip(headers, peer="192.0.2.10", trust_forwarded=False) == "192.0.2.10"
