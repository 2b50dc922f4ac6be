"""Scheduling ORM models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base, BaseModelMixin


class AvailabilityWindow(BaseModelMixin, Base):
    """Recurring weekly window a tutor accepts bookings in (tutor-local time)."""

    __tablename__ = "availability_windows"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="day_of_week_range"),
        CheckConstraint("start_time < end_time", name="window_time_order"),
        Index("ix_availability_windows_tutor_day", "tutor_id", "day_of_week"),
    )

    tutor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class TimeBlock(BaseModelMixin, Base):
    """One-off interval in which the tutor is unavailable."""

    __tablename__ = "time_blocks"
    __table_args__ = (
        CheckConstraint("start_at < end_at", name="block_time_order"),
        Index("ix_time_blocks_tutor_start", "tutor_id", "start_at"),
    )

    tutor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(255), nullable=True)
