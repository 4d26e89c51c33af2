"""Structured output schemas requested from the model.

One schema per coaching mode plus the app-wide feature schemas. They are
passed to `with_structured_output` so the provider shapes its reply, and the
same pydantic validation rejects malformed replies before sanitation.
Only array bounds are enforced here; string lengths are left to sanitizer.py,
which clamps them to the display bounds.
"""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from reframe.schemas.coach import CoachMode, ToolType


class OutputModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Coaching modes ---


class ToolSuggestionOutput(OutputModel):
    type: ToolType
    label: str
    description: str
    skill_id: str | None = None


class CoachOutput(OutputModel):
    """Coach mode: one message plus an optional tool suggestion."""

    message: str = Field(
        ...,
        description="Short coaching reply with one question; natural and specific",
    )
    tool_suggestion: ToolSuggestionOutput | None = None


class DistortionItemOutput(OutputModel):
    distortion: str = Field(..., description="CBT distortion name")
    reason: str = Field(
        ...,
        description="One sentence tying the distortion to their words",
    )


class DistortionsOutput(OutputModel):
    items: list[DistortionItemOutput] = Field(..., max_length=4)


class SocraticOutput(OutputModel):
    questions: list[str] = Field(
        ...,
        min_length=1,
        max_length=8,
        description="Socratic questions, each 16 words or fewer",
    )


class ReframeOutput(OutputModel):
    balanced_thoughts: list[str] = Field(
        ...,
        min_length=1,
        max_length=3,
        description="Balanced alternative thoughts",
    )
    action_step: str = Field(
        ...,
        description="One tiny, concrete action for the next 10-60 minutes",
    )


COACH_MODE_SCHEMAS: dict[CoachMode, type[OutputModel]] = {
    CoachMode.COACH: CoachOutput,
    CoachMode.DISTORTIONS: DistortionsOutput,
    CoachMode.SOCRATIC: SocraticOutput,
    CoachMode.REFRAME: ReframeOutput,
}


def get_output_schema(mode: CoachMode) -> type[OutputModel]:
    return COACH_MODE_SCHEMAS[CoachMode(mode)]


def describe_output_schema(mode: CoachMode) -> dict:
    """JSON schema of the shape the model must return for a mode."""
    return get_output_schema(mode).model_json_schema(by_alias=True)


async def ainvoke_validated(structured, messages, schema: type[OutputModel]) -> OutputModel:
    """Invoke a structured-output runnable and validate its reply against `schema`.

    Some providers return a plain dict instead of the pydantic instance.
    """
    raw = await structured.ainvoke(messages)
    if isinstance(raw, schema):
        return raw
    return schema.model_validate(raw)


# --- App-wide features ---

VALID_SKILL_IDS = (
    "box-breathing",
    "grounding-54321",
    "name-the-feeling",
    "worry-time-container",
    "behavioral-activation",
    "values-clarification",
    "sleep-winddown",
    "self-compassion-break",
    "urge-surfing",
    "two-column-balance",
    "micro-boundary",
    "three-good-things",
)


class WeeklyRecapOutput(OutputModel):
    recap: str = Field(..., description="2-3 sentence encouraging recap of the period")


class SuggestedAction(OutputModel):
    title: str
    description: str
    href: Literal["/coach", "/thought-records/new", "/skills", "/insights"]


class TodaySuggestionsOutput(OutputModel):
    daily_tip: str = Field(..., description="One short CBT-aligned daily tip")
    suggested_actions: list[SuggestedAction] = Field(..., min_length=1, max_length=3)


class SkillsRecommendOutput(OutputModel):
    skill_ids: list[str] = Field(..., min_length=2, max_length=4)
    reason: str | None = None


class AffirmationOutput(OutputModel):
    affirmation: str = Field(..., description="One short first-person affirmation")
