import enum
from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MAX_MESSAGES = 20
MAX_CONTENT_LENGTH = 4000


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON with the web client."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CoachMode(str, enum.Enum):
    COACH = "coach"
    DISTORTIONS = "distortions"
    SOCRATIC = "socratic"
    REFRAME = "reframe"


class MessageRole(str, enum.Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class Pathway(str, enum.Enum):
    THOUGHT_CHALLENGING = "thought_challenging"
    PROBLEM_SOLVING = "problem_solving"
    EMOTION_REGULATION = "emotion_regulation"


class SafetyCategory(str, enum.Enum):
    SELF_HARM_RISK = "self_harm_risk"
    VIOLENCE_RISK = "violence_risk"
    OTHER = "other"


class SafetySource(str, enum.Enum):
    COACH = "coach"
    THOUGHT_RECORD = "thought_record"


class ToolType(str, enum.Enum):
    THOUGHT_RECORD = "thought_record"
    SKILL = "skill"
    PROBLEM_STEP = "problem_step"


# --- Request ---


class ChatMessage(CamelModel):
    """A single conversation turn. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole
    content: str = Field(..., min_length=1, max_length=MAX_CONTENT_LENGTH)


class CoachContext(CamelModel):
    pathway: Pathway | None = None
    user_name: str | None = Field(None, max_length=80)
    selected_text: str | None = Field(None, max_length=2000)


class CoachSettings(CamelModel):
    model: str | None = Field(None, max_length=80)
    temperature: float | None = Field(None, ge=0, le=1)
    max_tokens: int | None = Field(None, ge=64, le=520)


class CoachRequest(CamelModel):
    """Request body for POST /v1/coach."""

    mode: CoachMode
    messages: list[ChatMessage] = Field(..., min_length=1, max_length=MAX_MESSAGES)
    context: CoachContext | None = None
    settings: CoachSettings | None = None


# --- Results (one shape per mode) ---


class ToolSuggestion(CamelModel):
    type: ToolType
    label: str
    description: str
    skill_id: str | None = None


class CoachReply(CamelModel):
    mode: Literal[CoachMode.COACH] = Field(CoachMode.COACH, exclude=True)
    message: str
    tool_suggestion: ToolSuggestion | None = None


class DistortionItem(CamelModel):
    distortion: str
    reason: str


class DistortionsResult(CamelModel):
    mode: Literal[CoachMode.DISTORTIONS] = Field(CoachMode.DISTORTIONS, exclude=True)
    items: list[DistortionItem]


class SocraticResult(CamelModel):
    mode: Literal[CoachMode.SOCRATIC] = Field(CoachMode.SOCRATIC, exclude=True)
    questions: list[str]


class ReframeResult(CamelModel):
    mode: Literal[CoachMode.REFRAME] = Field(CoachMode.REFRAME, exclude=True)
    balanced_thoughts: list[str]
    action_step: str


CoachRunResult = Union[CoachReply, DistortionsResult, SocraticResult, ReframeResult]


class BlockedResponse(CamelModel):
    """Returned instead of a model reply when risk screening flags the request."""

    blocked: Literal[True] = True
    category: SafetyCategory
    safe_response: str


class ErrorResponse(BaseModel):
    status: str = "error"
    code: int
    message: str
