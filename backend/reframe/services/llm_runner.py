"""Timeout and retry wrapper for model invocations.

Every LLM call goes through `run_with_timeout_and_retry`. Each attempt is
bounded by `asyncio.wait_for`, which cancels the in-flight call when the
timeout fires. Only transient failures (timeouts, connection resets,
429/502/503, structured-output parsing) are retried.
"""
import asyncio
import json
import logging
import random
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from langchain_core.exceptions import OutputParserException
from pydantic import ValidationError

from reframe.config import get_settings
from reframe.services.audit import audit_ai_usage

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_MARKERS = (
    "timeout",
    "timed out",
    "econnreset",
    "connection reset",
    "502",
    "503",
    "429",
    "response_format",
    "parsing",
    "structured",
)


class ModelInvocationError(Exception):
    """Raised when a model call fails after all permitted attempts."""

    def __init__(self, message: str, transient: bool = False):
        self.message = message
        self.transient = transient
        super().__init__(message)


class ModelTimeoutError(ModelInvocationError):
    """Raised when a single attempt exceeds the request timeout."""

    def __init__(self, timeout_ms: int):
        super().__init__(f"AI request timed out after {timeout_ms}ms", transient=True)


def is_retryable(error: BaseException) -> bool:
    """Classify a failure as transient (retry) or permanent (surface now)."""
    if isinstance(error, ModelInvocationError):
        return error.transient
    if isinstance(
        error,
        (asyncio.TimeoutError, ConnectionError, OutputParserException, ValidationError, json.JSONDecodeError),
    ):
        return True
    message = str(error).lower()
    return any(marker in message for marker in RETRYABLE_MARKERS)


def _backoff_seconds(attempt: int, base_ms: int) -> float:
    if base_ms <= 0:
        return 0.0
    delay_ms = base_ms * (2**attempt)
    return random.uniform(0, delay_ms) / 1000


async def run_with_timeout_and_retry(
    fn: Callable[[], Awaitable[T]],
    feature: str,
    user_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    timeout_ms: int | None = None,
    max_retries: int | None = None,
    backoff_ms: int | None = None,
    audit_enabled: bool | None = None,
) -> T:
    """Run an async model call with a per-attempt timeout and bounded retries.

    Args:
        fn: Zero-argument callable returning a fresh awaitable per attempt.
        feature: Feature name for logs and audit records.
        user_id: Caller id for audit records.
        metadata: Extra audit fields (e.g. mode).
        timeout_ms: Per-attempt timeout. Defaults to AI_REQUEST_TIMEOUT_MS.
        max_retries: Additional attempts for transient failures. Defaults to AI_MAX_RETRIES.
        backoff_ms: Base for exponential backoff with jitter. Defaults to AI_RETRY_BACKOFF_MS.
        audit_enabled: Override for AI_AUDIT_ENABLED.

    Returns:
        Whatever `fn` resolves to.

    Raises:
        ModelInvocationError: When the call fails permanently or retries run out.
    """
    settings = get_settings()
    timeout_ms = settings.ai_request_timeout_ms if timeout_ms is None else timeout_ms
    max_retries = settings.ai_max_retries if max_retries is None else max_retries
    backoff_ms = settings.ai_retry_backoff_ms if backoff_ms is None else backoff_ms

    last_error: ModelInvocationError | None = None

    for attempt in range(max_retries + 1):
        start = time.monotonic()
        try:
            result = await asyncio.wait_for(fn(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            last_error = ModelTimeoutError(timeout_ms)
            last_error.__cause__ = e
        except Exception as e:
            last_error = ModelInvocationError(str(e) or type(e).__name__, transient=is_retryable(e))
            last_error.__cause__ = e
        else:
            audit_ai_usage(
                feature,
                success=True,
                user_id=user_id,
                latency_ms=int((time.monotonic() - start) * 1000),
                metadata=metadata,
                enabled=audit_enabled,
            )
            return result

        if attempt == max_retries or not last_error.transient:
            break

        logger.warning(
            f"Attempt {attempt + 1}/{max_retries + 1}: {feature} call failed "
            f"(retrying): {last_error.message}"
        )
        delay = _backoff_seconds(attempt, backoff_ms)
        if delay:
            await asyncio.sleep(delay)

    logger.warning(f"{feature} call failed after {attempt + 1} attempt(s): {last_error.message}")
    audit_ai_usage(
        feature,
        success=False,
        user_id=user_id,
        error=last_error.message,
        metadata=metadata,
        enabled=audit_enabled,
    )
    raise last_error
