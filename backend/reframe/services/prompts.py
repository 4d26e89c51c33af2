"""Prompt loading and message building for coaching and app features."""
import logging
from functools import lru_cache
from pathlib import Path

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from reframe.schemas.coach import ChatMessage, CoachMode, CoachRequest, MessageRole

logger = logging.getLogger(__name__)

PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

MODE_CATEGORIES = {
    CoachMode.COACH: "coach",
    CoachMode.DISTORTIONS: "distortion assist",
    CoachMode.SOCRATIC: "Socratic questions",
    CoachMode.REFRAME: "balanced reframe",
}

PATHWAY_HINT = (
    "The user chose the pathway: {pathway}. Stay aligned with it: "
    "thought_challenging = testing thoughts with evidence; "
    "problem_solving = breaking problems down and next steps; "
    "emotion_regulation = naming feelings and using calming/grounding before problem-solving."
)
NO_PATHWAY_HINT = (
    "No pathway selected yet. Invite them to choose what fits best right now: "
    "thought challenging, problem solving, or emotion regulation. Keep it brief and clear."
)


@lru_cache
def load_prompt(name: str) -> str:
    """Load a prompt template by file stem."""
    prompt_path = PROMPTS_DIR / f"{name}.txt"
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
    return prompt_path.read_text(encoding="utf-8").strip()


def system_prompt(mode: CoachMode) -> str:
    return f"{load_prompt('base_system')}\nTask category: {MODE_CATEGORIES[mode]}."


def mode_prompt(request: CoachRequest) -> str:
    """Mode-specific instructions, with any client context appended."""
    context = request.context

    if request.mode == CoachMode.COACH:
        pathway = context.pathway if context else None
        hint = PATHWAY_HINT.format(pathway=pathway.value) if pathway else NO_PATHWAY_HINT
        prompt = load_prompt("coach").format(pathway_hint=hint)
    else:
        prompt = load_prompt(request.mode.value)

    extra = []
    if context and context.user_name:
        extra.append(f"The user's name is {context.user_name}.")
    if context and context.selected_text:
        extra.append(f'The user highlighted this text to work on: "{context.selected_text}"')
    if extra:
        prompt = f"{prompt}\n\nContext:\n" + "\n".join(extra)

    return prompt


def to_langchain_messages(messages: list[ChatMessage]) -> list[BaseMessage]:
    """Convert conversation history to LangChain messages, preserving order."""
    converted: list[BaseMessage] = []
    for message in messages:
        if message.role == MessageRole.SYSTEM:
            converted.append(SystemMessage(content=message.content))
        elif message.role == MessageRole.ASSISTANT:
            converted.append(AIMessage(content=message.content))
        else:
            converted.append(HumanMessage(content=message.content))
    return converted


def build_coach_messages(request: CoachRequest) -> list[BaseMessage]:
    """System prompt + mode instructions + conversation history."""
    return [
        SystemMessage(content=system_prompt(request.mode)),
        SystemMessage(content=mode_prompt(request)),
        *to_langchain_messages(request.messages),
    ]


def build_feature_messages(feature_prompt: str, user_text: str) -> list[BaseMessage]:
    return [
        SystemMessage(content=load_prompt("app_system")),
        SystemMessage(content=feature_prompt),
        HumanMessage(content=user_text),
    ]
