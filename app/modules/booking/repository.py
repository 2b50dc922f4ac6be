"""Booking repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import acquire_advisory_xact_lock
from app.core.enums import RoleEnum, SessionStatusEnum
from app.modules.booking.models import TutoringSession


class BookingRepository:
    """DB operations for tutoring sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def lock_tutor_calendar(self, tutor_id: UUID) -> None:
        """Serialize insert-if-free commits for one tutor until transaction end."""
        await acquire_advisory_xact_lock(self.session, f"tutor-calendar:{tutor_id}")

    async def create_session(
        self,
        subscription_id: UUID,
        tutor_id: UUID,
        parent_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        notes: str | None = None,
        series_id: UUID | None = None,
        series_position: int | None = None,
    ) -> TutoringSession:
        tutoring_session = TutoringSession(
            subscription_id=subscription_id,
            tutor_id=tutor_id,
            parent_id=parent_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            status=SessionStatusEnum.SCHEDULED,
            notes=notes,
            series_id=series_id,
            series_position=series_position,
        )
        self.session.add(tutoring_session)
        await self.session.flush()
        return tutoring_session

    async def get_session_by_id(self, session_id: UUID) -> TutoringSession | None:
        stmt = select(TutoringSession).where(TutoringSession.id == session_id)
        return await self.session.scalar(stmt)

    async def list_tutor_sessions_in_range(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> list[TutoringSession]:
        """Non-canceled sessions whose interval intersects `[start_at, end_at)`."""
        session_end = TutoringSession.scheduled_at + func.make_interval(
            0, 0, 0, 0, 0, TutoringSession.duration_minutes,
        )
        stmt = (
            select(TutoringSession)
            .where(
                TutoringSession.tutor_id == tutor_id,
                TutoringSession.status != SessionStatusEnum.CANCELED,
                TutoringSession.scheduled_at < end_at,
                session_end > start_at,
            )
            .order_by(TutoringSession.scheduled_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_sessions(
        self,
        user_id: UUID,
        role_name: RoleEnum,
        limit: int,
        offset: int,
    ) -> tuple[list[TutoringSession], int]:
        base_stmt: Select[tuple[TutoringSession]] = select(TutoringSession)

        if role_name == RoleEnum.PARENT:
            base_stmt = base_stmt.where(TutoringSession.parent_id == user_id)
        elif role_name == RoleEnum.TUTOR:
            base_stmt = base_stmt.where(TutoringSession.tutor_id == user_id)

        count_stmt = select(func.count()).select_from(base_stmt.subquery())
        total = int((await self.session.scalar(count_stmt)) or 0)

        stmt = base_stmt.order_by(TutoringSession.scheduled_at.asc()).limit(limit).offset(offset)
        items = list((await self.session.scalars(stmt)).all())
        return items, total

    async def save(self, tutoring_session: TutoringSession) -> TutoringSession:
        await self.session.flush()
        return tutoring_session
