"""
Integration tests for safety event persistence on SQLite.
"""
import pytest
from sqlalchemy import select

from reframe.models.safety_event import SafetyEvent
from reframe.schemas.coach import SafetyCategory, SafetySource
from reframe.services.safety_events import SafetyEventRepository


@pytest.mark.asyncio
async def test_record_safety_event(session_factory):
    repo = SafetyEventRepository(session_factory)

    event = await repo.record(
        SafetyCategory.SELF_HARM_RISK, SafetySource.COACH, user_id="user-1", client_ip="203.0.113.5"
    )

    assert event.id.startswith("safety_")
    assert event.category == "self_harm_risk"
    assert event.source == "coach"
    assert event.created_at is not None

    async with session_factory() as session:
        stored = (await session.execute(select(SafetyEvent))).scalars().all()
    assert len(stored) == 1
    assert stored[0].user_id == "user-1"
    assert stored[0].client_ip == "203.0.113.5"


@pytest.mark.asyncio
async def test_count_by_category(session_factory):
    repo = SafetyEventRepository(session_factory)
    await repo.record(SafetyCategory.VIOLENCE_RISK, SafetySource.COACH)
    await repo.record(SafetyCategory.VIOLENCE_RISK, SafetySource.THOUGHT_RECORD)
    await repo.record(SafetyCategory.OTHER, SafetySource.COACH)

    assert await repo.count_by_category(SafetyCategory.VIOLENCE_RISK) == 2
    assert await repo.count_by_category(SafetyCategory.SELF_HARM_RISK) == 0


@pytest.mark.asyncio
async def test_plain_string_values_are_accepted(session_factory):
    repo = SafetyEventRepository(session_factory)
    event = await repo.record("other", "thought_record")
    assert event.category == "other"
    assert event.source == "thought_record"
