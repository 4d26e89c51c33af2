"""Heuristic risk detection for coaching conversations.

Regex phrase lists checked before any model call. Self-harm patterns are
always evaluated before violence patterns.
"""
import re
from collections.abc import Iterable

from reframe.schemas.coach import ChatMessage, MessageRole, SafetyCategory

SELF_HARM_PATTERNS = [
    re.compile(r"kill myself", re.IGNORECASE),
    re.compile(r"end my life", re.IGNORECASE),
    re.compile(r"suicide", re.IGNORECASE),
    re.compile(r"self harm", re.IGNORECASE),
    re.compile(r"hurt myself", re.IGNORECASE),
    re.compile(r"i want to die", re.IGNORECASE),
    re.compile(r"no reason to live", re.IGNORECASE),
    re.compile(r"goodbye forever", re.IGNORECASE),
]

VIOLENCE_PATTERNS = [
    re.compile(r"kill (him|her|them|someone)", re.IGNORECASE),
    re.compile(r"hurt (him|her|them|someone)", re.IGNORECASE),
    re.compile(r"shoot (him|her|them|someone)", re.IGNORECASE),
    re.compile(r"attack (him|her|them|someone)", re.IGNORECASE),
    re.compile(r"imminent violence", re.IGNORECASE),
    re.compile(r"plan to harm", re.IGNORECASE),
]

SAFE_RESPONSE = (
    "I'm really glad you reached out. I can't continue this coaching flow right now. "
    "Please contact a trusted person, a local professional service, or emergency "
    "services if there is immediate danger."
)


def detect_high_risk_text(text: str) -> SafetyCategory | None:
    """Classify free text as self-harm risk, violence risk, or nothing."""
    normalized = text.strip()
    if not normalized:
        return None

    if any(pattern.search(normalized) for pattern in SELF_HARM_PATTERNS):
        return SafetyCategory.SELF_HARM_RISK

    if any(pattern.search(normalized) for pattern in VIOLENCE_PATTERNS):
        return SafetyCategory.VIOLENCE_RISK

    return None


def combine_conversation_text(messages: Iterable[ChatMessage]) -> str:
    """Join non-system message contents in conversation order."""
    return "\n".join(m.content for m in messages if m.role != MessageRole.SYSTEM)


def detect_high_risk_from_messages(
    messages: Iterable[ChatMessage],
) -> SafetyCategory | None:
    return detect_high_risk_text(combine_conversation_text(messages))


def build_safe_response() -> str:
    return SAFE_RESPONSE
