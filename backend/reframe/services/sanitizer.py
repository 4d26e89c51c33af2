"""Clamp validated model output to the bounds the client displays.

Whatever the model returned, the sanitized result is well-formed and
bounded for its mode.
"""
import re
from collections.abc import Callable

from reframe.schemas.coach import (
    CoachMode,
    CoachReply,
    CoachRunResult,
    DistortionItem,
    DistortionsResult,
    ReframeResult,
    SocraticResult,
    ToolSuggestion,
)
from reframe.services.output_schemas import (
    VALID_SKILL_IDS,
    CoachOutput,
    DistortionsOutput,
    OutputModel,
    ReframeOutput,
    SocraticOutput,
    ToolSuggestionOutput,
)

MESSAGE_MAX_LENGTH = 520
MESSAGE_MIN_LENGTH = 10
MAX_DISTORTION_ITEMS = 4
DISTORTION_NAME_MAX_LENGTH = 80
DISTORTION_REASON_MAX_LENGTH = 160
MAX_QUESTIONS = 8
MIN_QUESTIONS = 5
QUESTION_MAX_LENGTH = 180
QUESTION_MAX_WORDS = 16
MAX_BALANCED_THOUGHTS = 3
BALANCED_THOUGHT_MAX_LENGTH = 200
ACTION_STEP_MAX_LENGTH = 160
TOOL_LABEL_MAX_LENGTH = 80
TOOL_DESCRIPTION_MAX_LENGTH = 200

COACH_FALLBACK_MESSAGE = (
    "I hear you. When you're ready, you could try putting one thought into words, "
    "or pick a pathway above to focus on thought challenging, problem solving, or a quick skill."
)
DEFAULT_DISTORTION = "Possible pattern"
DEFAULT_DISTORTION_REASON = "May match the thought pattern."
DEFAULT_BALANCED_THOUGHT = "A more balanced view may be available."
DEFAULT_ACTION_STEP = "Take one small step in the next 10 minutes."
GENERIC_SOCRATIC_QUESTIONS = (
    "What evidence supports this thought?",
    "What evidence challenges this thought?",
    "What would I tell a close friend?",
    "Is there a more balanced way to view this?",
    "What is one helpful step right now?",
)


def to_short_text(value: str | None, fallback: str, max_length: int) -> str:
    """Collapse whitespace, trim and truncate; empty input yields the fallback."""
    if not isinstance(value, str):
        return fallback
    text = re.sub(r"\s+", " ", value).strip()[:max_length].strip()
    return text or fallback


def truncate_words(text: str, max_words: int) -> str:
    return " ".join(text.split()[:max_words])


def sanitize_coach_message(value: str) -> str:
    """Collapse runs of blank lines and trim. Too-short replies become ''."""
    trimmed = re.sub(r"\n{3,}", "\n\n", value).strip()
    if len(trimmed) < MESSAGE_MIN_LENGTH:
        return ""
    return trimmed


def normalize_tool_suggestion(raw: ToolSuggestionOutput | None) -> ToolSuggestion | None:
    if raw is None:
        return None
    label = raw.label.strip()[:TOOL_LABEL_MAX_LENGTH]
    description = raw.description.strip()[:TOOL_DESCRIPTION_MAX_LENGTH]
    if not label or not description:
        return None

    skill_id = (raw.skill_id or "").strip() or None
    if skill_id is not None and skill_id not in VALID_SKILL_IDS:
        skill_id = None

    return ToolSuggestion(
        type=raw.type,
        label=label,
        description=description,
        skill_id=skill_id,
    )


def sanitize_coach(out: CoachOutput) -> CoachReply:
    message = sanitize_coach_message(out.message) or COACH_FALLBACK_MESSAGE
    return CoachReply(
        message=message[:MESSAGE_MAX_LENGTH],
        tool_suggestion=normalize_tool_suggestion(out.tool_suggestion),
    )


def sanitize_distortions(out: DistortionsOutput) -> DistortionsResult:
    items = [
        DistortionItem(
            distortion=to_short_text(item.distortion, DEFAULT_DISTORTION, DISTORTION_NAME_MAX_LENGTH),
            reason=to_short_text(item.reason, DEFAULT_DISTORTION_REASON, DISTORTION_REASON_MAX_LENGTH),
        )
        for item in out.items[:MAX_DISTORTION_ITEMS]
    ]
    return DistortionsResult(items=items)


def sanitize_socratic(out: SocraticOutput) -> SocraticResult:
    questions = []
    for question in out.questions:
        short = truncate_words(to_short_text(question, "", QUESTION_MAX_LENGTH), QUESTION_MAX_WORDS)
        if short:
            questions.append(short)
    questions = questions[:MAX_QUESTIONS]

    # Backfill to the minimum with generic questions
    for generic in GENERIC_SOCRATIC_QUESTIONS:
        if len(questions) >= MIN_QUESTIONS:
            break
        if generic not in questions:
            questions.append(generic)

    return SocraticResult(questions=questions)


def sanitize_reframe(out: ReframeOutput) -> ReframeResult:
    thoughts = [
        to_short_text(thought, "", BALANCED_THOUGHT_MAX_LENGTH)
        for thought in out.balanced_thoughts
    ]
    thoughts = [t for t in thoughts if t][:MAX_BALANCED_THOUGHTS]
    return ReframeResult(
        balanced_thoughts=thoughts or [DEFAULT_BALANCED_THOUGHT],
        action_step=to_short_text(out.action_step, DEFAULT_ACTION_STEP, ACTION_STEP_MAX_LENGTH),
    )


SANITIZERS: dict[CoachMode, Callable[..., CoachRunResult]] = {
    CoachMode.COACH: sanitize_coach,
    CoachMode.DISTORTIONS: sanitize_distortions,
    CoachMode.SOCRATIC: sanitize_socratic,
    CoachMode.REFRAME: sanitize_reframe,
}


def sanitize_result(mode: CoachMode, output: OutputModel) -> CoachRunResult:
    return SANITIZERS[mode](output)
