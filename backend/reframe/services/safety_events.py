"""Persistence of safety events raised by risk screening."""
import logging
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from reframe.models.safety_event import SafetyEvent
from reframe.schemas.coach import SafetyCategory, SafetySource

logger = logging.getLogger(__name__)


class SafetyEventRecorder(Protocol):
    async def record(
        self,
        category: SafetyCategory,
        source: SafetySource,
        user_id: str | None = None,
        client_ip: str | None = None,
    ) -> None:
        ...


class SafetyEventRepository:
    """Writes safety events through an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def record(
        self,
        category: SafetyCategory,
        source: SafetySource,
        user_id: str | None = None,
        client_ip: str | None = None,
    ) -> SafetyEvent:
        event = SafetyEvent(
            user_id=user_id,
            client_ip=client_ip,
            category=SafetyCategory(category).value,
            source=SafetySource(source).value,
        )
        async with self._session_factory() as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)

        logger.info(f"Safety event recorded: id={event.id}, category={event.category}, source={event.source}")
        return event

    async def count_by_category(self, category: SafetyCategory) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count()).select_from(SafetyEvent).where(
                    SafetyEvent.category == SafetyCategory(category).value
                )
            )
            return int(result.scalar_one())
