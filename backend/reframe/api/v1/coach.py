"""Coaching endpoint.

Bot protection runs first, then the coaching pipeline (validation, rate
limit, risk screening, model call, sanitation).
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from reframe.api.deps import get_coach_service
from reframe.api.middleware import (
    error_response,
    rate_limited_response,
    request_client_ip,
    request_user_id,
)
from reframe.config import Settings, get_settings
from reframe.schemas.coach import ErrorResponse
from reframe.services.coach import CoachError, CoachRateLimited, CoachService
from reframe.utils.bot_protection import BotProtectionError, verify_bot_protection

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/coach",
    responses={
        400: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
async def coach(
    request: Request,
    settings: Settings = Depends(get_settings),
    service: CoachService = Depends(get_coach_service),
):
    """Run one coaching turn. Returns the mode's result or a blocked response."""
    try:
        verify_bot_protection(request.headers, settings)
    except BotProtectionError as e:
        return error_response(403, e.message)

    client_ip = request_client_ip(request, settings)
    raw_body = await request.body()

    try:
        result = await service.run(raw_body, client_ip, user_id=request_user_id(request))
    except CoachRateLimited as e:
        return rate_limited_response(e.retry_after_ms, e.message)
    except CoachError as e:
        return error_response(e.status_code, e.message)

    return JSONResponse(result.model_dump(mode="json", by_alias=True, exclude_none=True))
