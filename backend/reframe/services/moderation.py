"""Optional provider-side moderation cross-check.

Advisory only: any failure is logged and treated as "not flagged", so the
coaching flow is only ever blocked by an explicit flag.
"""
import logging
from collections.abc import Awaitable, Callable, Mapping

from openai import AsyncOpenAI

from reframe.config import Settings
from reframe.schemas.coach import SafetyCategory

logger = logging.getLogger(__name__)

ModerationCheck = Callable[[str], Awaitable[SafetyCategory | None]]

SELF_HARM_FLAGS = ("self-harm", "self-harm/intent", "self-harm/instructions")
VIOLENCE_FLAGS = ("violence", "violence/graphic")


def category_from_moderation(categories: Mapping[str, bool]) -> SafetyCategory | None:
    if any(categories.get(flag) for flag in SELF_HARM_FLAGS):
        return SafetyCategory.SELF_HARM_RISK
    if any(categories.get(flag) for flag in VIOLENCE_FLAGS):
        return SafetyCategory.VIOLENCE_RISK
    return None


async def optional_moderation_check(
    client: AsyncOpenAI | None,
    text: str,
    model: str = "omni-moderation-latest",
) -> SafetyCategory | None:
    """Classify text with the provider's moderation endpoint.

    Returns None when no client is configured, nothing is flagged, or the
    call fails.
    """
    if client is None or not text.strip():
        return None

    try:
        moderation = await client.moderations.create(model=model, input=text)
    except Exception as e:
        logger.warning(f"Moderation check unavailable, continuing without it: {e}")
        return None

    if not moderation.results:
        return None
    result = moderation.results[0]
    if not result.flagged:
        return None

    categories = result.categories.model_dump(by_alias=True)
    return category_from_moderation(categories) or SafetyCategory.OTHER


def build_moderation_check(settings: Settings) -> ModerationCheck | None:
    """Create the moderation callable, or None when no credential exists."""
    api_key = settings.effective_moderation_key
    if not api_key:
        return None

    client = AsyncOpenAI(api_key=api_key, timeout=settings.ai_request_timeout_ms / 1000)

    async def check(text: str) -> SafetyCategory | None:
        return await optional_moderation_check(client, text, model=settings.moderation_model)

    return check
