"""Booking ORM models."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import SessionStatusEnum

if TYPE_CHECKING:
    from app.modules.subscriptions.models import Subscription


class TutoringSession(BaseModelMixin, Base):
    """Session on a tutor calendar; occupies `[scheduled_at, +duration)` unless canceled."""

    __tablename__ = "tutoring_sessions"
    __table_args__ = (Index("ix_tutoring_sessions_tutor_scheduled", "tutor_id", "scheduled_at"),)

    subscription_id: Mapped[UUID] = mapped_column(
        ForeignKey("subscriptions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tutor_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    parent_id: Mapped[UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[SessionStatusEnum] = mapped_column(
        SAEnum(SessionStatusEnum, name="session_status_enum", native_enum=False),
        default=SessionStatusEnum.SCHEDULED,
        nullable=False,
        index=True,
    )
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    series_id: Mapped[UUID | None] = mapped_column(PGUUID(as_uuid=True), nullable=True, index=True)
    series_position: Mapped[int | None] = mapped_column(Integer, nullable=True)

    canceled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)

    subscription: Mapped["Subscription"] = relationship(back_populates="sessions")
