"""App-wide AI features: weekly recap, today suggestions, skills recommend, affirmation.

Each uses structured output, the shared model config and the runner.
"""
import logging

from langchain_core.language_models import BaseChatModel

from reframe.schemas.ai import (
    AffirmationRequest,
    SkillsRecommendRequest,
    TodaySuggestionsRequest,
    WeeklyRecapRequest,
)
from reframe.services.llm_provider import get_chat_llm
from reframe.services.llm_runner import run_with_timeout_and_retry
from reframe.services.output_schemas import (
    VALID_SKILL_IDS,
    AffirmationOutput,
    OutputModel,
    SkillsRecommendOutput,
    TodaySuggestionsOutput,
    WeeklyRecapOutput,
    ainvoke_validated,
)
from reframe.services.prompts import build_feature_messages, load_prompt

logger = logging.getLogger(__name__)

MAX_RECOMMENDED_SKILLS = 4


async def _invoke(
    feature: str,
    schema: type[OutputModel],
    feature_prompt: str,
    user_text: str,
    llm: BaseChatModel | None,
    user_id: str | None,
) -> OutputModel:
    llm = llm or get_chat_llm()
    structured = llm.with_structured_output(schema)
    messages = build_feature_messages(feature_prompt, user_text)

    return await run_with_timeout_and_retry(
        lambda: ainvoke_validated(structured, messages, schema),
        feature=feature,
        user_id=user_id,
    )


async def run_weekly_recap(
    body: WeeklyRecapRequest,
    llm: BaseChatModel | None = None,
    user_id: str | None = None,
) -> WeeklyRecapOutput:
    avg_mood = body.avg_mood if body.avg_mood is not None else "n/a"
    text = (
        f"Last {body.window_days} days: {body.checkin_count} check-ins, "
        f"average mood {avg_mood}, {body.thought_record_count} thought records, "
        f"{body.skill_count} skills completed."
    )
    if body.streak:
        text += f" Current streak: {body.streak} days."

    return await _invoke(
        "weekly_recap", WeeklyRecapOutput, load_prompt("weekly_recap"), text, llm, user_id
    )


async def run_today_suggestions(
    body: TodaySuggestionsRequest,
    llm: BaseChatModel | None = None,
    user_id: str | None = None,
) -> TodaySuggestionsOutput:
    parts = [f"Mood: {body.mood}/10, Energy: {body.energy}/10."]
    if body.goals:
        parts.append(f"Goals: {', '.join(body.goals)}.")
    if body.recent_actions:
        parts.append(f"Recent: {body.recent_actions}.")
    if body.intention:
        parts.append(f"Today's intention: {body.intention}.")

    return await _invoke(
        "today_suggestions",
        TodaySuggestionsOutput,
        load_prompt("today_suggestions"),
        " ".join(parts),
        llm,
        user_id,
    )


async def run_skills_recommend(
    body: SkillsRecommendRequest,
    llm: BaseChatModel | None = None,
    user_id: str | None = None,
) -> SkillsRecommendOutput:
    """Recommend skills; ids outside the allow-list are dropped."""
    parts = [f"Goals: {', '.join(body.goals) or 'general wellness'}."]
    if body.recent_mood is not None:
        parts.append(f"Recent mood: {body.recent_mood}/10.")
    if body.recent_themes:
        parts.append(f"Recent themes: {body.recent_themes}.")

    prompt = load_prompt("skills_recommend").format(skill_ids=", ".join(VALID_SKILL_IDS))
    result = await _invoke(
        "skills_recommend", SkillsRecommendOutput, prompt, " ".join(parts), llm, user_id
    )

    filtered = [skill_id for skill_id in result.skill_ids if skill_id in VALID_SKILL_IDS]
    dropped = len(result.skill_ids) - len(filtered)
    if dropped:
        logger.info(f"Dropped {dropped} unknown skill id(s) from recommendation")

    return SkillsRecommendOutput.model_construct(
        skill_ids=filtered[:MAX_RECOMMENDED_SKILLS],
        reason=result.reason,
    )


async def run_affirmation(
    body: AffirmationRequest,
    llm: BaseChatModel | None = None,
    user_id: str | None = None,
) -> AffirmationOutput:
    text = f"Context: {body.context}" if body.context else "No specific context."
    return await _invoke(
        "affirmation", AffirmationOutput, load_prompt("affirmation"), text, llm, user_id
    )
