"""Dependency wiring for API routes.

Singletons are built lazily from settings; tests replace them through
`app.dependency_overrides`.
"""
import logging
from functools import lru_cache

from fastapi import Depends

from reframe.config import Settings, get_settings
from reframe.db.session import async_session_factory
from reframe.services.coach import CoachService
from reframe.services.moderation import ModerationCheck, build_moderation_check
from reframe.services.rate_limiter import (
    InMemoryRateLimitStore,
    RateLimiter,
    RedisRateLimitStore,
)
from reframe.services.safety_events import SafetyEventRepository

logger = logging.getLogger(__name__)


@lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    if settings.redis_url:
        logger.info("Rate limiter using Redis store")
        store = RedisRateLimitStore.from_url(settings.redis_url)
    else:
        logger.info("Rate limiter using in-memory store (single instance only)")
        store = InMemoryRateLimitStore()
    return RateLimiter(store, default_rpm=settings.rate_limit_rpm)


@lru_cache
def get_safety_event_repository() -> SafetyEventRepository:
    return SafetyEventRepository(async_session_factory)


@lru_cache
def get_moderation_check() -> ModerationCheck | None:
    return build_moderation_check(get_settings())


def get_coach_service(
    settings: Settings = Depends(get_settings),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
    safety_events: SafetyEventRepository = Depends(get_safety_event_repository),
    moderation: ModerationCheck | None = Depends(get_moderation_check),
) -> CoachService:
    return CoachService(
        settings=settings,
        rate_limiter=rate_limiter,
        safety_events=safety_events,
        moderation=moderation,
    )
