import os

# Keep tests off real providers, real Redis and the on-disk database
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LLM_API_KEY"] = ""
os.environ["MODERATION_API_KEY"] = ""
os.environ["REDIS_URL"] = ""
os.environ["BOT_PROTECTION_ENABLED"] = "false"
os.environ["AI_AUDIT_ENABLED"] = "false"

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from langchain_core.messages import AIMessage
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from reframe.api.deps import (
    get_coach_service,
    get_moderation_check,
    get_rate_limiter,
    get_safety_event_repository,
)
from reframe.config import Settings, get_settings
from reframe.db.session import Base
from reframe.main import app
from reframe.models.safety_event import SafetyEvent  # noqa: F401
from reframe.services.coach import CoachService
from reframe.services.rate_limiter import InMemoryRateLimitStore, RateLimiter

get_settings.cache_clear()


class FakeClock:
    """Millisecond clock advanced by hand."""

    def __init__(self, start: float = 1_700_000_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class FakeStructuredModel:
    def __init__(self, parent: "FakeChatModel", schema):
        self.parent = parent
        self.schema = schema

    async def ainvoke(self, messages):
        self.parent.structured_calls.append((self.schema, messages))
        return self.parent.next_response(self.parent.structured_responses)


class FakeChatModel:
    """Scripted stand-in for a LangChain chat model.

    Responses are consumed in order; the last one repeats. Exceptions in the
    script are raised instead of returned.
    """

    def __init__(self, structured=None, text=None):
        self.structured_responses = list(structured or [])
        self.text_responses = list(text or [])
        self.structured_calls = []
        self.text_calls = []

    def with_structured_output(self, schema):
        return FakeStructuredModel(self, schema)

    async def ainvoke(self, messages):
        self.text_calls.append(messages)
        response = self.next_response(self.text_responses)
        return response if isinstance(response, AIMessage) else AIMessage(content=response)

    @property
    def call_count(self) -> int:
        return len(self.structured_calls) + len(self.text_calls)

    @staticmethod
    def next_response(queue):
        if not queue:
            raise RuntimeError("no scripted response")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, BaseException):
            raise item
        return item


class FakeSafetyEventRecorder:
    def __init__(self):
        self.events = []

    async def record(self, category, source, user_id=None, client_ip=None):
        self.events.append(
            {"category": category, "source": source, "user_id": user_id, "client_ip": client_ip}
        )


@pytest.fixture
def settings():
    """Settings with a configured provider and fast timeouts."""
    return Settings(
        _env_file=None,
        llm_api_key="sk-test-key",
        moderation_api_key="",
        ai_request_timeout_ms=1000,
        ai_max_retries=2,
        rate_limit_rpm=20,
        ai_rpm_per_user=30,
    )


@pytest.fixture
def unconfigured_settings():
    return Settings(_env_file=None, llm_api_key="", moderation_api_key="")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def rate_limiter(fake_clock):
    return RateLimiter(InMemoryRateLimitStore(), default_rpm=20, clock=fake_clock)


@pytest.fixture
def fake_llm():
    return FakeChatModel()


@pytest.fixture
def safety_recorder():
    return FakeSafetyEventRecorder()


@pytest.fixture
def make_coach_service(settings, rate_limiter, safety_recorder, fake_llm):
    """Build a CoachService wired to fakes; keyword args override the defaults."""

    def _make(**overrides):
        kwargs = {
            "settings": settings,
            "rate_limiter": rate_limiter,
            "safety_events": safety_recorder,
            "moderation": None,
            "llm_factory": lambda _settings=None: fake_llm,
        }
        kwargs.update(overrides)
        return CoachService(**kwargs)

    return _make


@pytest.fixture
def test_client(settings, rate_limiter, safety_recorder, make_coach_service):
    """FastAPI test client with every external dependency replaced."""
    service = make_coach_service()
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    app.dependency_overrides[get_safety_event_repository] = lambda: safety_recorder
    app.dependency_overrides[get_moderation_check] = lambda: None
    app.dependency_overrides[get_coach_service] = lambda: service

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def session_factory():
    """Async session factory over a fresh in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def coach_body():
    """Build a minimal coach request body."""

    def _body(text="I feel like I always mess things up at work.", mode="coach", **extra):
        body = {"mode": mode, "messages": [{"role": "user", "content": text}]}
        body.update(extra)
        return body

    return _body
