"""Subscription ORM models."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base, BaseModelMixin
from app.core.enums import SubscriptionStatusEnum

if TYPE_CHECKING:
    from app.modules.booking.models import TutoringSession
    from app.modules.identity.models import User


class Subscription(BaseModelMixin, Base):
    """Parent enrollment in a course taught by a specific tutor."""

    __tablename__ = "subscriptions"

    parent_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tutor_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    course_title: Mapped[str] = mapped_column(String(255), nullable=False)
    session_duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    status: Mapped[SubscriptionStatusEnum] = mapped_column(
        SAEnum(SubscriptionStatusEnum, name="subscription_status_enum", native_enum=False),
        default=SubscriptionStatusEnum.ACTIVE,
        nullable=False,
    )

    parent: Mapped[User] = relationship(foreign_keys=[parent_id])
    tutor: Mapped[User] = relationship(foreign_keys=[tutor_id])
    sessions: Mapped[list[TutoringSession]] = relationship(back_populates="subscription")
