"""Safety-gated coaching pipeline.

Request flow, in this exact order:
1. Validate body size, JSON and schema.
2. Rate-limit the caller (before any model cost).
3. Screen for risk: heuristics first, then the optional moderation
   cross-check only if heuristics did not flag. A flag ends the request
   with a safe response and a persisted safety event.
4. Check that AI is configured and the coach feature is on.
5. Invoke the model with the mode's prompt and output schema.
6. Coach mode only: fall back to a plain-text reply, then to a canned
   message, so it always answers.
7. Sanitize to the mode's bounds.

Errors below this layer are mapped to CoachError subclasses carrying an
HTTP status and a client-safe message.
"""
import json
import logging
from collections.abc import Awaitable, Callable

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage
from pydantic import ValidationError

from reframe.config import Settings
from reframe.schemas.coach import (
    BlockedResponse,
    CoachMode,
    CoachRequest,
    CoachRunResult,
    CoachSettings,
    SafetyCategory,
    SafetySource,
)
from reframe.services.llm_provider import get_chat_llm
from reframe.services.llm_runner import run_with_timeout_and_retry
from reframe.services.moderation import ModerationCheck
from reframe.services.output_schemas import (
    CoachOutput,
    OutputModel,
    ainvoke_validated,
    get_output_schema,
)
from reframe.services.prompts import build_coach_messages
from reframe.services.rate_limiter import RateLimiter
from reframe.services.safety import (
    build_safe_response,
    combine_conversation_text,
    detect_high_risk_from_messages,
)
from reframe.services.safety_events import SafetyEventRecorder
from reframe.services.sanitizer import (
    COACH_FALLBACK_MESSAGE,
    MESSAGE_MIN_LENGTH,
    sanitize_result,
)

logger = logging.getLogger(__name__)

LLMFactory = Callable[[CoachSettings | None], BaseChatModel]
Strategy = Callable[[CoachRequest, list[BaseMessage], str | None], Awaitable[OutputModel | None]]


class CoachError(Exception):
    """Base for failures surfaced to the caller."""

    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidCoachRequest(CoachError):
    status_code = 400

    def __init__(self, message: str = "Invalid request payload."):
        super().__init__(message)


class PayloadTooLarge(CoachError):
    status_code = 413

    def __init__(self, message: str = "Request payload is too large."):
        super().__init__(message)


class CoachRateLimited(CoachError):
    status_code = 429

    def __init__(self, retry_after_ms: int):
        self.retry_after_ms = retry_after_ms
        super().__init__("Too many requests. Please wait a moment before trying again.")


class AINotConfigured(CoachError):
    status_code = 503

    def __init__(self, message: str = "AI is not configured. Add an API key to enable AI Coach."):
        super().__init__(message)


class AIFeatureDisabled(CoachError):
    status_code = 503

    def __init__(self, message: str = "AI Coach is currently disabled."):
        super().__init__(message)


class CoachFailed(CoachError):
    status_code = 500

    def __init__(self, message: str = "AI request failed. Please try again in a moment."):
        super().__init__(message)


def parse_coach_request(raw_body: bytes, max_body_bytes: int) -> CoachRequest:
    """Validate a raw request body into a CoachRequest."""
    if len(raw_body) > max_body_bytes:
        raise PayloadTooLarge()

    try:
        payload = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise InvalidCoachRequest("Invalid JSON payload.")

    try:
        return CoachRequest.model_validate(payload)
    except ValidationError as e:
        logger.info(f"Rejected coach request: {e.error_count()} validation error(s)")
        raise InvalidCoachRequest()


def _message_text(content: str | list) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [p if isinstance(p, str) else p.get("text", "") for p in content]
        return "".join(parts)
    return ""


class CoachService:
    """Runs one coaching request through screening, invocation and sanitation."""

    def __init__(
        self,
        settings: Settings,
        rate_limiter: RateLimiter,
        safety_events: SafetyEventRecorder | None = None,
        moderation: ModerationCheck | None = None,
        llm_factory: LLMFactory = get_chat_llm,
    ):
        self.settings = settings
        self.rate_limiter = rate_limiter
        self.safety_events = safety_events
        self.moderation = moderation
        self.llm_factory = llm_factory

    async def run(
        self,
        raw_body: bytes,
        client_key: str,
        user_id: str | None = None,
    ) -> CoachRunResult | BlockedResponse:
        request = parse_coach_request(raw_body, self.settings.max_body_bytes)

        rate = await self.rate_limiter.check(client_key, self.settings.rate_limit_rpm)
        if not rate.allowed:
            raise CoachRateLimited(rate.retry_after_ms)

        category = await self.screen(request)
        if category is not None:
            await self._record_safety_event(category, user_id, client_key)
            return BlockedResponse(category=category, safe_response=build_safe_response())

        if not self.settings.ai_available:
            raise AINotConfigured()
        if not self.settings.is_feature_enabled("coach"):
            raise AIFeatureDisabled()

        output = await self._dispatch(request, user_id)
        return sanitize_result(request.mode, output)

    async def screen(self, request: CoachRequest) -> SafetyCategory | None:
        """Heuristic match first; moderation only runs when heuristics are clear."""
        category = detect_high_risk_from_messages(request.messages)
        if category is not None:
            logger.info(f"Heuristic risk screen flagged: category={category.value}")
            return category

        if self.moderation is None:
            return None

        category = await self.moderation(combine_conversation_text(request.messages))
        if category is not None:
            logger.info(f"Moderation cross-check flagged: category={category.value}")
        return category

    async def _record_safety_event(
        self, category: SafetyCategory, user_id: str | None, client_key: str
    ) -> None:
        if self.safety_events is None:
            return
        try:
            await self.safety_events.record(
                category, SafetySource.COACH, user_id=user_id, client_ip=client_key
            )
        except Exception as e:
            logger.error(f"Failed to persist safety event ({category.value}): {e}")

    def _strategies(self, mode: CoachMode) -> list[Strategy]:
        if mode == CoachMode.COACH:
            return [self._invoke_structured, self._invoke_plain_text, self._canned_reply]
        return [self._invoke_structured]

    async def _dispatch(self, request: CoachRequest, user_id: str | None) -> OutputModel:
        messages = build_coach_messages(request)
        last_error: Exception | None = None

        for strategy in self._strategies(request.mode):
            try:
                output = await strategy(request, messages, user_id)
            except Exception as e:
                logger.warning(
                    f"Coach {request.mode.value} strategy {strategy.__name__} failed: {e}"
                )
                last_error = e
                continue
            if output is not None:
                return output

        raise CoachFailed() from last_error

    async def _invoke_structured(
        self, request: CoachRequest, messages: list[BaseMessage], user_id: str | None
    ) -> OutputModel:
        schema = get_output_schema(request.mode)
        llm = self.llm_factory(request.settings)
        structured = llm.with_structured_output(schema)

        return await self._run(
            lambda: ainvoke_validated(structured, messages, schema),
            user_id=user_id,
            metadata={"mode": request.mode.value},
        )

    async def _invoke_plain_text(
        self, request: CoachRequest, messages: list[BaseMessage], user_id: str | None
    ) -> OutputModel | None:
        llm = self.llm_factory(request.settings)
        response = await self._run(
            lambda: llm.ainvoke(messages),
            user_id=user_id,
            metadata={"mode": request.mode.value, "fallback": True},
        )
        text = _message_text(getattr(response, "content", "")).strip()
        if len(text) < MESSAGE_MIN_LENGTH:
            return None
        return CoachOutput(message=text)

    async def _canned_reply(
        self, request: CoachRequest, messages: list[BaseMessage], user_id: str | None
    ) -> OutputModel:
        logger.warning("Coach model unavailable, returning canned reply")
        return CoachOutput(message=COACH_FALLBACK_MESSAGE)

    async def _run(self, fn, user_id: str | None, metadata: dict):
        return await run_with_timeout_and_retry(
            fn,
            feature="coach",
            user_id=user_id,
            metadata=metadata,
            timeout_ms=self.settings.ai_request_timeout_ms,
            max_retries=self.settings.ai_max_retries,
            backoff_ms=self.settings.ai_retry_backoff_ms,
            audit_enabled=self.settings.ai_audit_enabled,
        )
