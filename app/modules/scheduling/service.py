"""Scheduling business logic layer."""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import RoleEnum
from app.modules.booking.models import TutoringSession
from app.modules.booking.repository import BookingRepository
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import user_timezone
from app.modules.scheduling.models import AvailabilityWindow, TimeBlock
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import (
    AvailabilityWindowCreate,
    AvailabilityWindowUpdate,
    AvailableSlotsRead,
    SlotOptionRead,
    TimeBlockCreate,
)
from app.modules.scheduling.slots import BusyInterval, collect_busy, find_open_starts, format_time_label
from app.shared.exceptions import BusinessRuleException, NotFoundException, UnauthorizedException
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)
settings = get_settings()


class SchedulingService:
    """Tutor availability: weekly windows, time blocks and slot resolution."""

    def __init__(
        self,
        repository: SchedulingRepository,
        booking_repository: BookingRepository,
        identity_repository: IdentityRepository,
    ) -> None:
        self.repository = repository
        self.booking_repository = booking_repository
        self.identity_repository = identity_repository

    @staticmethod
    def _target_tutor_id(requested_tutor_id: UUID | None, actor: User) -> UUID:
        if actor.role.name == RoleEnum.ADMIN:
            if requested_tutor_id is None:
                raise BusinessRuleException("tutor_id is required when an admin manages availability")
            return requested_tutor_id
        if actor.role.name != RoleEnum.TUTOR:
            raise UnauthorizedException("Only tutors or admins can manage availability")
        if requested_tutor_id is not None and requested_tutor_id != actor.id:
            raise UnauthorizedException("Tutors can only manage their own availability")
        return actor.id

    @staticmethod
    def _ensure_can_manage(tutor_id: UUID, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.TUTOR and actor.id == tutor_id:
            return
        raise UnauthorizedException("You cannot manage this tutor's availability")

    @staticmethod
    def _validate_time_range(start_time: str, end_time: str) -> None:
        # Fixed-width HH:MM compares correctly as strings.
        if end_time <= start_time:
            raise BusinessRuleException("End time must be after start time")

    async def _ensure_window_free(
        self,
        tutor_id: UUID,
        day_of_week: int,
        start_time: str,
        end_time: str,
        exclude_id: UUID | None = None,
    ) -> None:
        for window in await self.repository.list_windows(tutor_id, active_only=True):
            if window.id == exclude_id or window.day_of_week != day_of_week:
                continue
            if start_time < window.end_time and window.start_time < end_time:
                raise BusinessRuleException("Availability window overlaps an existing window")

    async def get_tutor(self, tutor_id: UUID) -> User:
        """Return active tutor account."""
        tutor = await self.identity_repository.get_user_by_id(tutor_id)
        if tutor is None or tutor.role.name != RoleEnum.TUTOR:
            raise NotFoundException("Tutor not found")
        if not tutor.is_active:
            raise BusinessRuleException("Tutor is inactive")
        return tutor

    async def create_window(self, payload: AvailabilityWindowCreate, actor: User) -> AvailabilityWindow:
        """Add a recurring weekly window."""
        tutor_id = self._target_tutor_id(payload.tutor_id, actor)
        self._validate_time_range(payload.start_time, payload.end_time)
        if payload.is_active:
            await self._ensure_window_free(tutor_id, payload.day_of_week, payload.start_time, payload.end_time)

        window = await self.repository.create_window(
            tutor_id=tutor_id,
            day_of_week=payload.day_of_week,
            start_time=payload.start_time,
            end_time=payload.end_time,
            is_active=payload.is_active,
        )
        logger.info("Availability window %s created for tutor %s", window.id, tutor_id)
        return window

    async def update_window(
        self,
        window_id: UUID,
        payload: AvailabilityWindowUpdate,
        actor: User,
    ) -> AvailabilityWindow:
        """Change window times or toggle it on/off."""
        window = await self.repository.get_window_by_id(window_id)
        if window is None:
            raise NotFoundException("Availability window not found")
        self._ensure_can_manage(window.tutor_id, actor)

        changes = payload.model_dump(exclude_none=True)
        start_time = changes.get("start_time", window.start_time)
        end_time = changes.get("end_time", window.end_time)
        is_active = changes.get("is_active", window.is_active)

        self._validate_time_range(start_time, end_time)
        if is_active:
            await self._ensure_window_free(
                window.tutor_id,
                window.day_of_week,
                start_time,
                end_time,
                exclude_id=window.id,
            )
        return await self.repository.update_window(window, **changes)

    async def delete_window(self, window_id: UUID, actor: User) -> None:
        """Remove a weekly window."""
        window = await self.repository.get_window_by_id(window_id)
        if window is None:
            raise NotFoundException("Availability window not found")
        self._ensure_can_manage(window.tutor_id, actor)
        await self.repository.delete_window(window)

    async def list_windows(self, tutor_id: UUID, active_only: bool = False) -> list[AvailabilityWindow]:
        """List weekly windows of tutor."""
        return await self.repository.list_windows(tutor_id, active_only=active_only)

    async def create_block(self, payload: TimeBlockCreate, actor: User) -> TimeBlock:
        """Add one-off unavailable block; overlapping blocks are rejected, never merged."""
        tutor_id = self._target_tutor_id(payload.tutor_id, actor)
        start_at = ensure_utc(payload.start_at)
        end_at = ensure_utc(payload.end_at)

        if end_at <= start_at:
            raise BusinessRuleException("End time must be after start time")

        existing = await self.repository.list_blocks_in_range(tutor_id, start_at, end_at)
        if existing:
            raise BusinessRuleException("Time block overlaps an existing block")

        block = await self.repository.create_block(tutor_id, start_at, end_at, payload.reason)
        logger.info("Time block %s created for tutor %s", block.id, tutor_id)
        return block

    async def delete_block(self, block_id: UUID, actor: User) -> None:
        """Remove time block."""
        block = await self.repository.get_block_by_id(block_id)
        if block is None:
            raise NotFoundException("Time block not found")
        self._ensure_can_manage(block.tutor_id, actor)
        await self.repository.delete_block(block)

    async def list_blocks(self, tutor_id: UUID, actor: User) -> list[TimeBlock]:
        """List time blocks that have not ended yet."""
        self._ensure_can_manage(tutor_id, actor)
        return await self.repository.list_upcoming_blocks(tutor_id, utc_now())

    async def load_occupancy(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> tuple[list[TutoringSession], list[TimeBlock]]:
        """Fetch live sessions and blocks intersecting the range (never cached)."""
        sessions = await self.booking_repository.list_tutor_sessions_in_range(tutor_id, start_at, end_at)
        blocks = await self.repository.list_blocks_in_range(tutor_id, start_at, end_at)
        return sessions, blocks

    async def load_busy_intervals(
        self,
        tutor_id: UUID,
        start_at: datetime,
        end_at: datetime,
    ) -> list[BusyInterval]:
        """Occupancy of the range as normalized intervals."""
        sessions, blocks = await self.load_occupancy(tutor_id, start_at, end_at)
        return collect_busy(sessions, blocks)

    async def resolve_slots(
        self,
        tutor: User,
        day: date,
        duration_minutes: int,
        now: datetime | None = None,
    ) -> AvailableSlotsRead:
        """Compute bookable starts for tutor on `day` from fresh data."""
        tz: ZoneInfo = user_timezone(tutor)
        day_start = datetime.combine(day, time.min, tzinfo=tz)
        day_end = day_start + timedelta(days=1)

        windows = await self.repository.list_windows(tutor.id, active_only=True)
        busy = await self.load_busy_intervals(tutor.id, day_start, day_end)
        starts = find_open_starts(
            day,
            windows,
            busy,
            duration_minutes,
            now or utc_now(),
            tz=tz,
            step_minutes=settings.slot_step_minutes,
        )
        return AvailableSlotsRead(
            tutor_id=tutor.id,
            day=day,
            timezone=tz.key,
            duration_minutes=duration_minutes,
            slots=[
                SlotOptionRead(label=format_time_label(start.hour, start.minute), start_at=start)
                for start in starts
            ],
        )

    async def list_tutor_slots(
        self,
        tutor_id: UUID,
        day: date,
        duration_minutes: int | None = None,
    ) -> AvailableSlotsRead:
        """Public slot listing for a tutor."""
        tutor = await self.get_tutor(tutor_id)
        return await self.resolve_slots(tutor, day, duration_minutes or settings.default_session_minutes)


async def get_scheduling_service(session: AsyncSession = Depends(get_db_session)) -> SchedulingService:
    """Dependency provider for scheduling service."""
    return SchedulingService(
        repository=SchedulingRepository(session),
        booking_repository=BookingRepository(session),
        identity_repository=IdentityRepository(session),
    )
