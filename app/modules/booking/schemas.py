"""Booking schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import get_settings
from app.core.enums import BookingStateEnum, RecurrenceFrequencyEnum, SessionStatusEnum
from app.modules.scheduling.schemas import AvailabilityWindowRead, TimeBlockRead
from app.modules.scheduling.slots import parse_time_label

settings = get_settings()


class BookingRequest(BaseModel):
    """Selected subscription, date and time plus optional recurrence."""

    subscription_id: UUID
    day: date
    time_label: str = Field(examples=["2:30 PM"])
    frequency: RecurrenceFrequencyEnum = RecurrenceFrequencyEnum.NONE
    count: int = Field(default=1, ge=1, le=settings.recurrence_max_count)
    notes: str | None = Field(default=None, max_length=1024)

    @field_validator("time_label")
    @classmethod
    def validate_time_label(cls, value: str) -> str:
        """Reject labels the shared parser cannot read."""
        parse_time_label(value)
        return value.strip()


class ScheduleRequest(BookingRequest):
    """Booking request; `confirm_partial` acknowledges dropping conflicting dates."""

    confirm_partial: bool = False


class SessionCreate(BaseModel):
    """Single session commit request."""

    subscription_id: UUID
    scheduled_at: datetime
    notes: str | None = Field(default=None, max_length=1024)


class RecurringSessionsCreate(BaseModel):
    """Batch commit of already planned occurrences."""

    subscription_id: UUID
    occurrences: list[datetime] = Field(min_length=1, max_length=settings.recurrence_max_count)
    notes: str | None = Field(default=None, max_length=1024)


class SessionCancelRequest(BaseModel):
    """Cancel session request."""

    reason: str | None = Field(default=None, max_length=512)


class TutoringSessionRead(BaseModel):
    """Tutoring session response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subscription_id: UUID
    tutor_id: UUID
    parent_id: UUID
    scheduled_at: datetime
    duration_minutes: int
    status: SessionStatusEnum
    notes: str | None
    series_id: UUID | None
    series_position: int | None
    canceled_at: datetime | None
    cancellation_reason: str | None
    created_at: datetime


class BatchBookingRead(BaseModel):
    """Outcome of a batch commit: `total_booked` succeeded, `total_failed` failed."""

    model_config = ConfigDict(from_attributes=True)

    total_booked: int
    total_failed: int
    session_ids: list[UUID]
    series_id: UUID | None = None


class BookedIntervalRead(BaseModel):
    """Occupied interval on a tutor calendar."""

    model_config = ConfigDict(from_attributes=True)

    scheduled_at: datetime
    duration_minutes: int


class AvailabilitySnapshotRead(BaseModel):
    """Everything a client needs to compute slots for a subscription."""

    subscription_id: UUID
    tutor_id: UUID
    timezone: str
    duration_minutes: int
    availability: list[AvailabilityWindowRead]
    booked: list[BookedIntervalRead]
    blocks: list[TimeBlockRead]


class BookingPreviewRead(BaseModel):
    """Planned occurrences partitioned by conflicts."""

    state: BookingStateEnum
    timezone: str
    duration_minutes: int
    occurrences: list[datetime]
    conflicts: list[datetime]
    valid_sessions: list[datetime]


class BookingOutcomeRead(BookingPreviewRead):
    """Where the booking flow stopped and what it persisted."""

    decision: BookingStateEnum | None = None
    total_booked: int = 0
    total_failed: int = 0
    session_ids: list[UUID] = Field(default_factory=list)
    series_id: UUID | None = None
