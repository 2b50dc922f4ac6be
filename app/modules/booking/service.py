"""Booking business logic layer."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from uuid import UUID, uuid4
from zoneinfo import ZoneInfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_db_session
from app.core.enums import (
    BookingStateEnum,
    RecurrenceFrequencyEnum,
    RoleEnum,
    SessionStatusEnum,
    SubscriptionStatusEnum,
)
from app.core.metrics import record_booking_outcome
from app.modules.booking.flow import BatchBookingResult, BookingFlow
from app.modules.booking.models import TutoringSession
from app.modules.booking.repository import BookingRepository
from app.modules.booking.schemas import (
    AvailabilitySnapshotRead,
    BookedIntervalRead,
    BookingOutcomeRead,
    BookingPreviewRead,
    BookingRequest,
    RecurringSessionsCreate,
    ScheduleRequest,
    SessionCancelRequest,
    SessionCreate,
)
from app.modules.identity.models import User
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.service import user_timezone
from app.modules.outbox.repository import OutboxRepository
from app.modules.scheduling.recurrence import partition_by_conflict, plan_recurrence
from app.modules.scheduling.repository import SchedulingRepository
from app.modules.scheduling.schemas import AvailabilityWindowRead, AvailableSlotsRead, TimeBlockRead
from app.modules.scheduling.service import SchedulingService
from app.modules.scheduling.models import AvailabilityWindow
from app.modules.scheduling.slots import BusyInterval, conflicts_with_any, find_open_starts, fits_window
from app.modules.subscriptions.models import Subscription
from app.modules.subscriptions.repository import SubscriptionsRepository
from app.shared.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
)
from app.shared.utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass(slots=True)
class PlannedBooking:
    """Occurrences of a request plus the occupancy snapshot they were checked against."""

    subscription: Subscription
    tz: ZoneInfo
    occurrences: list[datetime]
    busy: list[BusyInterval]


class SubscriptionCommitter:
    """Binds booking flow commits to one subscription."""

    def __init__(self, service: BookingService, subscription: Subscription, notes: str | None) -> None:
        self.service = service
        self.subscription = subscription
        self.notes = notes

    async def create_session(self, scheduled_at: datetime) -> UUID:
        tutoring_session = await self.service.create_session(
            subscription_id=self.subscription.id,
            tutor_id=self.subscription.tutor_id,
            parent_id=self.subscription.parent_id,
            scheduled_at=scheduled_at,
            duration_minutes=self.subscription.session_duration_minutes,
            notes=self.notes,
        )
        return tutoring_session.id

    async def create_recurring_sessions(self, occurrences: Sequence[datetime]) -> BatchBookingResult:
        return await self.service.create_recurring_sessions(
            subscription_id=self.subscription.id,
            tutor_id=self.subscription.tutor_id,
            parent_id=self.subscription.parent_id,
            occurrences=occurrences,
            duration_minutes=self.subscription.session_duration_minutes,
            notes=self.notes,
        )


class BookingService:
    """Booking domain service: planning, conflict flow and insert-if-free commits."""

    def __init__(
        self,
        booking_repository: BookingRepository,
        subscriptions_repository: SubscriptionsRepository,
        scheduling_service: SchedulingService,
        outbox_repository: OutboxRepository,
    ) -> None:
        self.booking_repository = booking_repository
        self.subscriptions_repository = subscriptions_repository
        self.scheduling_service = scheduling_service
        self.outbox_repository = outbox_repository

    async def _get_active_subscription(self, subscription_id: UUID) -> Subscription:
        subscription = await self.subscriptions_repository.get_subscription_by_id(subscription_id)
        if subscription is None:
            raise NotFoundException("Subscription not found")
        if subscription.status != SubscriptionStatusEnum.ACTIVE:
            raise BusinessRuleException("Subscription is not active")
        return subscription

    async def _subscription_for_actor(self, subscription_id: UUID, actor: User) -> Subscription:
        subscription = await self._get_active_subscription(subscription_id)
        if actor.role.name == RoleEnum.ADMIN:
            return subscription
        if actor.role.name == RoleEnum.PARENT and subscription.parent_id == actor.id:
            return subscription
        raise UnauthorizedException("Subscription does not belong to current parent")

    @staticmethod
    def _validate_session_access(tutoring_session: TutoringSession, actor: User) -> None:
        if actor.role.name == RoleEnum.ADMIN:
            return
        if actor.role.name == RoleEnum.PARENT and tutoring_session.parent_id == actor.id:
            return
        if actor.role.name == RoleEnum.TUTOR and tutoring_session.tutor_id == actor.id:
            return
        raise UnauthorizedException("You cannot manage this session")

    async def _calendar_rules(self, tutor_id: UUID) -> tuple[list[AvailabilityWindow], ZoneInfo]:
        """Active weekly windows and the zone they are read in."""
        tutor = await self.scheduling_service.get_tutor(tutor_id)
        windows = await self.scheduling_service.list_windows(tutor_id, active_only=True)
        return windows, user_timezone(tutor)

    async def _validate_commit_target(
        self,
        subscription_id: UUID,
        tutor_id: UUID,
        parent_id: UUID,
        duration_minutes: int,
    ) -> Subscription:
        subscription = await self._get_active_subscription(subscription_id)
        if subscription.tutor_id != tutor_id or subscription.parent_id != parent_id:
            raise BusinessRuleException("Subscription does not match tutor and parent")
        if duration_minutes <= 0:
            raise BusinessRuleException("Session duration must be positive")
        return subscription

    async def _insert_if_free(
        self,
        subscription_id: UUID,
        tutor_id: UUID,
        parent_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        notes: str | None,
        windows: Sequence[AvailabilityWindow],
        tz: ZoneInfo,
        series_id: UUID | None = None,
        series_position: int | None = None,
    ) -> TutoringSession:
        """Re-check the live calendar and insert; caller holds the tutor lock."""
        scheduled_at = ensure_utc(scheduled_at)
        if scheduled_at <= utc_now():
            raise BusinessRuleException("Cannot book a session in the past")
        if not fits_window(scheduled_at, duration_minutes, windows, tz):
            raise BusinessRuleException("Selected time is outside the tutor's availability")

        ends_at = scheduled_at + timedelta(minutes=duration_minutes)
        busy = await self.scheduling_service.load_busy_intervals(tutor_id, scheduled_at, ends_at)
        if conflicts_with_any(scheduled_at, duration_minutes, busy):
            raise ConflictException("Selected time is no longer available")

        return await self.booking_repository.create_session(
            subscription_id=subscription_id,
            tutor_id=tutor_id,
            parent_id=parent_id,
            scheduled_at=scheduled_at,
            duration_minutes=duration_minutes,
            notes=notes,
            series_id=series_id,
            series_position=series_position,
        )

    async def create_session(
        self,
        subscription_id: UUID,
        tutor_id: UUID,
        parent_id: UUID,
        scheduled_at: datetime,
        duration_minutes: int,
        notes: str | None = None,
    ) -> TutoringSession:
        """Commit one session; any rejection propagates to the caller verbatim."""
        subscription = await self._validate_commit_target(subscription_id, tutor_id, parent_id, duration_minutes)
        await self.booking_repository.lock_tutor_calendar(tutor_id)
        windows, tz = await self._calendar_rules(tutor_id)

        try:
            tutoring_session = await self._insert_if_free(
                subscription_id=subscription_id,
                tutor_id=tutor_id,
                parent_id=parent_id,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                notes=notes,
                windows=windows,
                tz=tz,
            )
        except (BusinessRuleException, ConflictException):
            record_booking_outcome("single", booked=0, failed=1)
            raise

        record_booking_outcome("single", booked=1, failed=0)
        await self.outbox_repository.create_outbox_event(
            aggregate_type="tutoring_session",
            aggregate_id=str(tutoring_session.id),
            event_type="session.booked",
            payload={
                "session_id": str(tutoring_session.id),
                "subscription_id": str(subscription.id),
                "tutor_id": str(tutor_id),
                "parent_id": str(parent_id),
                "course_title": subscription.course_title,
                "scheduled_at": tutoring_session.scheduled_at.isoformat(),
                "duration_minutes": duration_minutes,
            },
        )
        logger.info("Session %s booked for subscription %s", tutoring_session.id, subscription.id)
        return tutoring_session

    async def create_recurring_sessions(
        self,
        subscription_id: UUID,
        tutor_id: UUID,
        parent_id: UUID,
        occurrences: Sequence[datetime],
        duration_minutes: int,
        notes: str | None = None,
    ) -> BatchBookingResult:
        """Commit occurrences independently and report per-item outcome counts.

        Occurrences taken since the preview, or already in the past, count as
        failed; only an invalid subscription or batch raises.
        """
        subscription = await self._validate_commit_target(subscription_id, tutor_id, parent_id, duration_minutes)
        if not occurrences:
            raise BusinessRuleException("At least one session is required")
        if len(occurrences) > settings.recurrence_max_count:
            raise BusinessRuleException(
                f"Number of sessions must be between 1 and {settings.recurrence_max_count}",
            )

        await self.booking_repository.lock_tutor_calendar(tutor_id)
        windows, tz = await self._calendar_rules(tutor_id)

        result = BatchBookingResult(total_booked=0, total_failed=0, series_id=uuid4())
        ordered = sorted(occurrences, key=ensure_utc)
        for position, occurrence in enumerate(ordered, start=1):
            try:
                tutoring_session = await self._insert_if_free(
                    subscription_id=subscription_id,
                    tutor_id=tutor_id,
                    parent_id=parent_id,
                    scheduled_at=occurrence,
                    duration_minutes=duration_minutes,
                    notes=notes,
                    windows=windows,
                    tz=tz,
                    series_id=result.series_id,
                    series_position=position,
                )
            except (BusinessRuleException, ConflictException) as exc:
                result.total_failed += 1
                logger.warning(
                    "Occurrence %s of series %s rejected: %s",
                    ensure_utc(occurrence).isoformat(),
                    result.series_id,
                    exc.message,
                )
                continue
            result.total_booked += 1
            result.session_ids.append(tutoring_session.id)

        record_booking_outcome("recurring", booked=result.total_booked, failed=result.total_failed)
        if result.total_booked:
            await self.outbox_repository.create_outbox_event(
                aggregate_type="session_series",
                aggregate_id=str(result.series_id),
                event_type="session.series.booked",
                payload={
                    "series_id": str(result.series_id),
                    "subscription_id": str(subscription.id),
                    "tutor_id": str(tutor_id),
                    "parent_id": str(parent_id),
                    "course_title": subscription.course_title,
                    "session_ids": [str(item) for item in result.session_ids],
                    "total_booked": result.total_booked,
                    "total_failed": result.total_failed,
                    "duration_minutes": duration_minutes,
                },
            )
        logger.info(
            "Series %s for subscription %s: %d booked, %d failed",
            result.series_id,
            subscription.id,
            result.total_booked,
            result.total_failed,
        )
        return result

    async def get_availability(self, subscription_id: UUID, actor: User) -> AvailabilitySnapshotRead:
        """Windows, booked intervals and blocks of the subscription's tutor."""
        subscription = await self._subscription_for_actor(subscription_id, actor)
        tutor = await self.scheduling_service.get_tutor(subscription.tutor_id)
        tz = user_timezone(tutor)

        now = utc_now()
        horizon_end = now + timedelta(days=settings.availability_horizon_days)
        windows = await self.scheduling_service.list_windows(tutor.id, active_only=True)
        sessions, blocks = await self.scheduling_service.load_occupancy(tutor.id, now, horizon_end)

        return AvailabilitySnapshotRead(
            subscription_id=subscription.id,
            tutor_id=tutor.id,
            timezone=tz.key,
            duration_minutes=subscription.session_duration_minutes,
            availability=[AvailabilityWindowRead.model_validate(item) for item in windows],
            booked=[BookedIntervalRead.model_validate(item) for item in sessions],
            blocks=[TimeBlockRead.model_validate(item) for item in blocks],
        )

    async def list_available_slots(
        self,
        subscription_id: UUID,
        day: date,
        actor: User,
        now: datetime | None = None,
    ) -> AvailableSlotsRead:
        """Bookable starts on `day` for the subscription's tutor and course length."""
        subscription = await self._subscription_for_actor(subscription_id, actor)
        tutor = await self.scheduling_service.get_tutor(subscription.tutor_id)
        return await self.scheduling_service.resolve_slots(
            tutor,
            day,
            subscription.session_duration_minutes,
            now=now,
        )

    async def _plan(self, payload: BookingRequest, actor: User) -> PlannedBooking:
        subscription = await self._subscription_for_actor(payload.subscription_id, actor)
        tutor = await self.scheduling_service.get_tutor(subscription.tutor_id)
        tz = user_timezone(tutor)

        occurrences = plan_recurrence(
            payload.day,
            payload.time_label,
            payload.frequency,
            payload.count,
            tz=tz,
            max_count=settings.recurrence_max_count,
        )
        windows = await self.scheduling_service.list_windows(tutor.id, active_only=True)
        candidates = find_open_starts(
            payload.day,
            windows,
            [],
            subscription.session_duration_minutes,
            utc_now(),
            tz,
            settings.slot_step_minutes,
        )
        # Candidates ignore occupancy; a taken first date is reported as a conflict.
        if ensure_utc(occurrences[0]) not in {ensure_utc(item) for item in candidates}:
            raise BusinessRuleException("Selected time is not an available slot")

        horizon_end = occurrences[-1] + timedelta(minutes=subscription.session_duration_minutes)
        busy = await self.scheduling_service.load_busy_intervals(tutor.id, occurrences[0], horizon_end)
        return PlannedBooking(subscription=subscription, tz=tz, occurrences=occurrences, busy=busy)

    async def preview(self, payload: BookingRequest, actor: User) -> BookingPreviewRead:
        """Plan occurrences and partition them by conflicts without persisting."""
        plan = await self._plan(payload, actor)
        duration = plan.subscription.session_duration_minutes
        conflict_set = partition_by_conflict(plan.occurrences, plan.busy, duration)
        return BookingPreviewRead(
            state=conflict_set.decision(),
            timezone=plan.tz.key,
            duration_minutes=duration,
            occurrences=plan.occurrences,
            conflicts=list(conflict_set.conflicts),
            valid_sessions=list(conflict_set.valid_sessions),
        )

    async def schedule(self, payload: ScheduleRequest, actor: User) -> BookingOutcomeRead:
        """Run the booking flow; a partial series commits only with `confirm_partial`."""
        plan = await self._plan(payload, actor)
        duration = plan.subscription.session_duration_minutes

        notes = payload.notes
        if notes is None and payload.frequency != RecurrenceFrequencyEnum.NONE:
            notes = f"Recurring series ({payload.frequency})"

        flow = BookingFlow(
            committer=SubscriptionCommitter(self, plan.subscription, notes),
            occurrences=plan.occurrences,
            busy=plan.busy,
            duration_minutes=duration,
        )
        await flow.submit()
        if flow.state == BookingStateEnum.PARTIAL_CONFLICT and payload.confirm_partial:
            await flow.confirm()

        conflicts = list(flow.conflict_set.conflicts) if flow.conflict_set else []
        valid_sessions = list(flow.conflict_set.valid_sessions) if flow.conflict_set else list(plan.occurrences)
        result = flow.result
        return BookingOutcomeRead(
            state=flow.state,
            decision=flow.decision,
            timezone=plan.tz.key,
            duration_minutes=duration,
            occurrences=plan.occurrences,
            conflicts=conflicts,
            valid_sessions=valid_sessions,
            total_booked=result.total_booked if result else 0,
            total_failed=result.total_failed if result else 0,
            session_ids=result.session_ids if result else [],
            series_id=result.series_id if result else None,
        )

    async def book_single(self, payload: SessionCreate, actor: User) -> TutoringSession:
        """Commit one session at an explicit instant."""
        subscription = await self._subscription_for_actor(payload.subscription_id, actor)
        return await self.create_session(
            subscription_id=subscription.id,
            tutor_id=subscription.tutor_id,
            parent_id=subscription.parent_id,
            scheduled_at=payload.scheduled_at,
            duration_minutes=subscription.session_duration_minutes,
            notes=payload.notes,
        )

    async def book_recurring(self, payload: RecurringSessionsCreate, actor: User) -> BatchBookingResult:
        """Commit a planned series at explicit instants."""
        subscription = await self._subscription_for_actor(payload.subscription_id, actor)
        return await self.create_recurring_sessions(
            subscription_id=subscription.id,
            tutor_id=subscription.tutor_id,
            parent_id=subscription.parent_id,
            occurrences=payload.occurrences,
            duration_minutes=subscription.session_duration_minutes,
            notes=payload.notes,
        )

    async def cancel_session(
        self,
        session_id: UUID,
        payload: SessionCancelRequest,
        actor: User,
    ) -> TutoringSession:
        """Cancel session; its time becomes bookable again."""
        tutoring_session = await self.booking_repository.get_session_by_id(session_id)
        if tutoring_session is None:
            raise NotFoundException("Session not found")

        self._validate_session_access(tutoring_session, actor)

        if tutoring_session.status == SessionStatusEnum.CANCELED:
            raise ConflictException("Session already canceled")
        if tutoring_session.status == SessionStatusEnum.COMPLETED:
            raise BusinessRuleException("Completed session cannot be canceled")
        if ensure_utc(tutoring_session.scheduled_at) <= utc_now():
            raise BusinessRuleException("Past session cannot be canceled")

        tutoring_session.status = SessionStatusEnum.CANCELED
        tutoring_session.canceled_at = utc_now()
        tutoring_session.cancellation_reason = payload.reason
        await self.booking_repository.save(tutoring_session)

        await self.outbox_repository.create_outbox_event(
            aggregate_type="tutoring_session",
            aggregate_id=str(tutoring_session.id),
            event_type="session.canceled",
            payload={
                "session_id": str(tutoring_session.id),
                "tutor_id": str(tutoring_session.tutor_id),
                "parent_id": str(tutoring_session.parent_id),
                "scheduled_at": tutoring_session.scheduled_at.isoformat(),
                "reason": payload.reason,
            },
        )
        return tutoring_session

    async def list_sessions(
        self,
        actor: User,
        limit: int,
        offset: int,
    ) -> tuple[list[TutoringSession], int]:
        """List sessions for actor according to role."""
        return await self.booking_repository.list_sessions(actor.id, actor.role.name, limit, offset)


async def get_booking_service(session: AsyncSession = Depends(get_db_session)) -> BookingService:
    """Dependency provider for booking service."""
    booking_repository = BookingRepository(session)
    return BookingService(
        booking_repository=booking_repository,
        subscriptions_repository=SubscriptionsRepository(session),
        scheduling_service=SchedulingService(
            repository=SchedulingRepository(session),
            booking_repository=booking_repository,
            identity_repository=IdentityRepository(session),
        ),
        outbox_repository=OutboxRepository(session),
    )
