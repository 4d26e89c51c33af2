"""App-wide AI feature endpoints (recap, suggestions, skills, affirmation)."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from reframe.api.deps import get_rate_limiter
from reframe.api.middleware import (
    RateLimitExceeded,
    check_rate_limit,
    error_response,
    rate_limited_response,
    request_user_id,
)
from reframe.config import Settings, get_settings
from reframe.schemas.ai import (
    AffirmationRequest,
    SkillsRecommendRequest,
    TodaySuggestionsRequest,
    WeeklyRecapRequest,
)
from reframe.services.app_features import (
    run_affirmation,
    run_skills_recommend,
    run_today_suggestions,
    run_weekly_recap,
)
from reframe.services.llm_provider import AINotConfiguredError
from reframe.services.llm_runner import ModelInvocationError
from reframe.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)
router = APIRouter()

UNAVAILABLE_MESSAGES = {
    "weekly_recap": "AI weekly recap is not available.",
    "today_suggestions": "AI today suggestions are not available.",
    "skills_recommend": "AI skill recommendations are not available.",
    "affirmation": "AI affirmations are not available.",
}


async def _run_feature(feature, runner, body, request, settings, limiter):
    if not settings.is_feature_enabled(feature):
        return error_response(503, UNAVAILABLE_MESSAGES[feature])

    try:
        await check_rate_limit(request, limiter, settings, prefix="ai", rpm=settings.ai_rpm_per_user)
    except RateLimitExceeded as e:
        return rate_limited_response(e.retry_after_ms, e.message)

    try:
        result = await runner(body, user_id=request_user_id(request))
    except AINotConfiguredError:
        return error_response(503, UNAVAILABLE_MESSAGES[feature])
    except ModelInvocationError as e:
        logger.error(f"{feature} failed: {e.message}")
        return error_response(500, "Something went wrong. Please try again.")

    return JSONResponse(result.model_dump(mode="json", by_alias=True, exclude_none=True))


@router.post("/weekly-recap")
async def weekly_recap(
    body: WeeklyRecapRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Short encouraging recap of recent check-ins and activity."""
    return await _run_feature("weekly_recap", run_weekly_recap, body, request, settings, limiter)


@router.post("/today-suggestions")
async def today_suggestions(
    body: TodaySuggestionsRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Daily tip plus up to three suggested next actions."""
    return await _run_feature(
        "today_suggestions", run_today_suggestions, body, request, settings, limiter
    )


@router.post("/skills-recommend")
async def skills_recommend(
    body: SkillsRecommendRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    return await _run_feature(
        "skills_recommend", run_skills_recommend, body, request, settings, limiter
    )


@router.post("/affirmation")
async def affirmation(
    body: AffirmationRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    return await _run_feature("affirmation", run_affirmation, body, request, settings, limiter)
