from functools import lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PLACEHOLDER_KEYS = ("placeholder", "your-api-key-here", "your-openai-api-key-here")

AI_FEATURES = (
    "coach",
    "weekly_recap",
    "today_suggestions",
    "skills_recommend",
    "affirmation",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000"

    # Database (safety events)
    database_url: str = "sqlite+aiosqlite:///./reframe.db"

    # Redis - optional, shared rate-limit buckets across instances
    redis_url: str = ""

    # LLM - Multi-provider support (openai, groq, google)
    llm_provider: str = "openai"
    llm_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("llm_api_key", "openai_api_key"),
    )
    llm_model: str = Field(
        default="gpt-4o-mini",
        validation_alias=AliasChoices("llm_model", "openai_model"),
    )
    llm_temperature: float = 0.4
    llm_max_tokens: int = 520

    # Moderation (OpenAI moderation endpoint)
    moderation_api_key: str = ""
    moderation_model: str = "omni-moderation-latest"

    # Model invocation
    ai_request_timeout_ms: int = 25_000
    ai_max_retries: int = 2
    ai_retry_backoff_ms: int = 0  # 0 = immediate retry
    ai_audit_enabled: bool = False

    # Feature flags
    ai_feature_coach: bool = True
    ai_feature_weekly_recap: bool = True
    ai_feature_today_suggestions: bool = True
    ai_feature_skills_recommend: bool = True
    ai_feature_affirmation: bool = True

    # Rate limiting
    rate_limit_rpm: int = 20
    ai_rpm_per_user: int = 30
    trust_forwarded_headers: bool = True

    # Bot protection
    bot_protection_enabled: bool = False
    bot_protection_token: str = ""
    bot_protection_header: str = "x-reframe-human"

    # Request limits
    max_body_bytes: int = 20 * 1024

    @property
    def ai_available(self) -> bool:
        """True when a usable provider credential is configured."""
        key = self.llm_api_key.strip()
        return bool(key) and key not in PLACEHOLDER_KEYS

    @property
    def effective_moderation_key(self) -> str:
        if self.moderation_api_key:
            return self.moderation_api_key
        if self.llm_provider == "openai" and self.ai_available:
            return self.llm_api_key
        return ""

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def is_feature_enabled(self, feature: str) -> bool:
        if feature not in AI_FEATURES:
            raise ValueError(f"Unknown AI feature: '{feature}'")
        return self.ai_available and bool(getattr(self, f"ai_feature_{feature}"))


@lru_cache
def get_settings() -> Settings:
    return Settings()
