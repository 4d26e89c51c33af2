"""Multi-provider LLM service abstraction.

Supports: OpenAI, Groq, Google (Gemini)
"""
import logging
from typing import Literal

from langchain_core.language_models import BaseChatModel

from reframe.config import get_settings
from reframe.schemas.coach import CoachSettings

logger = logging.getLogger(__name__)

LLMProvider = Literal["openai", "groq", "google"]


class AINotConfiguredError(Exception):
    """Raised when no provider credential is configured."""

    def __init__(self, message: str = "AI is not configured."):
        self.message = message
        super().__init__(message)


def get_llm(
    model: str | None = None,
    provider: LLMProvider | None = None,
    temperature: float | None = None,
    max_tokens: int | None = None,
) -> BaseChatModel:
    """Get an LLM instance for the configured provider.

    Args:
        model: Model name. If None, uses LLM_MODEL from settings.
        provider: Provider name. If None, uses LLM_PROVIDER from settings.
        temperature: Sampling temperature. If None, uses LLM_TEMPERATURE.
        max_tokens: Completion token budget, capped at LLM_MAX_TOKENS.

    Returns:
        BaseChatModel instance for the provider.
    """
    settings = get_settings()
    provider = provider or settings.llm_provider
    model = model or settings.llm_model
    temperature = settings.llm_temperature if temperature is None else temperature
    max_tokens = min(max_tokens or settings.llm_max_tokens, settings.llm_max_tokens)
    api_key = settings.llm_api_key

    if not settings.ai_available:
        raise AINotConfiguredError(
            f"LLM API key not configured. Set LLM_API_KEY in .env for provider '{provider}'."
        )

    logger.debug(f"Creating LLM: provider={provider}, model={model}")

    if provider == "openai":
        from langchain_openai import ChatOpenAI

        return ChatOpenAI(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "groq":
        from langchain_groq import ChatGroq

        return ChatGroq(
            model=model,
            api_key=api_key,
            temperature=temperature,
            max_tokens=max_tokens,
        )

    elif provider == "google":
        from langchain_google_genai import ChatGoogleGenerativeAI

        return ChatGoogleGenerativeAI(
            model=model,
            google_api_key=api_key,
            temperature=temperature,
            max_output_tokens=max_tokens,
        )

    else:
        raise ValueError(
            f"Unknown LLM provider: '{provider}'. Supported: openai, groq, google."
        )


def get_chat_llm(settings: CoachSettings | None = None) -> BaseChatModel:
    """Get the chat LLM, honoring optional per-request overrides."""
    if settings is None:
        return get_llm()
    return get_llm(
        model=settings.model,
        temperature=settings.temperature,
        max_tokens=settings.max_tokens,
    )
