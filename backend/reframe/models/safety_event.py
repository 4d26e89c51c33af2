import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from reframe.db.session import Base


def new_safety_event_id() -> str:
    return f"safety_{uuid.uuid4()}"


class SafetyEvent(Base):
    """A risk category detected in user text that blocked the coaching flow."""

    __tablename__ = "safety_events"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_safety_event_id)
    user_id: Mapped[str | None] = mapped_column(String(36), index=True, nullable=True)
    client_ip: Mapped[str | None] = mapped_column(String(45), nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SafetyEvent(id={self.id}, category={self.category}, source={self.source})>"
