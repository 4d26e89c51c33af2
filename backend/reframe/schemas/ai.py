from pydantic import Field

from reframe.schemas.coach import CamelModel


class WeeklyRecapRequest(CamelModel):
    window_days: int = Field(..., ge=1, le=90)
    checkin_count: int = Field(..., ge=0)
    avg_mood: str | None
    thought_record_count: int = Field(..., ge=0)
    skill_count: int = Field(..., ge=0)
    streak: int | None = Field(None, ge=0)


class TodaySuggestionsRequest(CamelModel):
    mood: float = Field(..., ge=0, le=10)
    energy: float = Field(..., ge=0, le=10)
    goals: list[str] | None = None
    recent_actions: str | None = Field(None, max_length=500)
    intention: str | None = Field(None, max_length=300)


class SkillsRecommendRequest(CamelModel):
    goals: list[str] = Field(default_factory=list)
    recent_mood: float | None = Field(None, ge=0, le=10)
    recent_themes: str | None = Field(None, max_length=400)


class AffirmationRequest(CamelModel):
    context: str | None = Field(None, max_length=300)
