import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from reframe.api.router import api_router
from reframe.config import get_settings
from reframe.db.session import Base, async_engine
from reframe.utils.logging import setup_logging

import reframe.models.safety_event  # noqa: F401  (registers the table on Base.metadata)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Reframe backend starting up...")

    if settings.database_url.startswith("sqlite"):
        async with async_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    if not settings.ai_available:
        logger.warning("No LLM credential configured; AI endpoints will return 503")

    yield
    await async_engine.dispose()
    logger.info("Reframe backend shutting down...")


app = FastAPI(
    title="Reframe",
    description="Safety-gated CBT coaching API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content={
            "status": "error",
            "code": 400,
            "message": "Invalid request payload.",
        },
    )


@app.exception_handler(429)
async def rate_limit_handler(request: Request, exc):
    return JSONResponse(
        status_code=429,
        content={
            "status": "error",
            "code": 429,
            "message": "Too many requests. Please try again later.",
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc):
    logger.exception("Internal server error")
    return JSONResponse(
        status_code=500,
        content={
            "status": "error",
            "code": 500,
            "message": "An internal error occurred. Please try again later.",
        },
    )
