"""Health check endpoint with dependency verification."""
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from reframe.config import Settings, get_settings
from reframe.db.session import async_engine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(settings: Settings = Depends(get_settings)):
    """
    Health check endpoint with dependency verification.

    Checks:
    - Database connectivity (SELECT 1 query)
    - Redis connectivity (PING command), when REDIS_URL is set
    - Whether an AI provider credential is configured

    Always returns 200 so load balancers keep routing; `status` is
    "degraded" when a dependency check fails.
    """
    checks = {"app": "ok"}
    healthy = True

    # Check database
    try:
        async with async_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["db"] = "ok"
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        checks["db"] = f"error: {type(e).__name__}"
        healthy = False

    # Check Redis
    if settings.redis_url:
        try:
            import redis.asyncio as redis

            client = redis.from_url(settings.redis_url, socket_connect_timeout=2)
            try:
                await client.ping()
            finally:
                await client.aclose()
            checks["redis"] = "ok"
        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            checks["redis"] = f"error: {type(e).__name__}"
            healthy = False
    else:
        checks["redis"] = "not_configured"

    checks["ai"] = "configured" if settings.ai_available else "not_configured"

    return JSONResponse(
        status_code=200,
        content={
            "status": "ok" if healthy else "degraded",
            "service": "reframe",
            "checks": checks,
        },
    )
