"""Scheduling repository layer."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.scheduling.models import AvailabilityWindow, TimeBlock


class SchedulingRepository:
    """DB access for availability windows and time blocks."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_window(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: str,
        end_time: str,
        is_active: bool = True,
    ) -> AvailabilityWindow:
        window = AvailabilityWindow(
            tutor_id=tutor_id,
            day_of_week=day_of_week,
            start_time=start_time,
            end_time=end_time,
            is_active=is_active,
        )
        self.session.add(window)
        await self.session.flush()
        return window

    async def get_window_by_id(self, window_id: UUID) -> AvailabilityWindow | None:
        stmt = select(AvailabilityWindow).where(AvailabilityWindow.id == window_id)
        return await self.session.scalar(stmt)

    async def list_windows(self, tutor_id: UUID, active_only: bool = False) -> list[AvailabilityWindow]:
        stmt: Select[tuple[AvailabilityWindow]] = select(AvailabilityWindow).where(
            AvailabilityWindow.tutor_id == tutor_id,
        )
        if active_only:
            stmt = stmt.where(AvailabilityWindow.is_active.is_(True))
        stmt = stmt.order_by(AvailabilityWindow.day_of_week.asc(), AvailabilityWindow.start_time.asc())
        return list((await self.session.scalars(stmt)).all())

    async def update_window(self, window: AvailabilityWindow, **changes) -> AvailabilityWindow:
        for key, value in changes.items():
            if value is not None:
                setattr(window, key, value)
        await self.session.flush()
        return window

    async def delete_window(self, window: AvailabilityWindow) -> None:
        await self.session.delete(window)
        await self.session.flush()

    async def create_block(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
        reason: str | None,
    ) -> TimeBlock:
        block = TimeBlock(tutor_id=tutor_id, start_at=start_at, end_at=end_at, reason=reason)
        self.session.add(block)
        await self.session.flush()
        return block

    async def get_block_by_id(self, block_id: UUID) -> TimeBlock | None:
        stmt = select(TimeBlock).where(TimeBlock.id == block_id)
        return await self.session.scalar(stmt)

    async def list_blocks_in_range(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> list[TimeBlock]:
        stmt = (
            select(TimeBlock)
            .where(
                TimeBlock.tutor_id == tutor_id,
                TimeBlock.start_at < end_at,
                TimeBlock.end_at > start_at,
            )
            .order_by(TimeBlock.start_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def list_upcoming_blocks(self, tutor_id: UUID, now: datetime) -> list[TimeBlock]:
        stmt = (
            select(TimeBlock)
            .where(TimeBlock.tutor_id == tutor_id, TimeBlock.end_at > now)
            .order_by(TimeBlock.start_at.asc())
        )
        return list((await self.session.scalars(stmt)).all())

    async def delete_block(self, block: TimeBlock) -> None:
        await self.session.delete(block)
        await self.session.flush()
