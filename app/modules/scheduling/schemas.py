"""Scheduling schemas."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
# Window ends may also be "24:00" so an evening window can run to midnight.
END_HHMM_PATTERN = r"^(([01]\d|2[0-3]):[0-5]\d|24:00)$"


class AvailabilityWindowCreate(BaseModel):
    """Create weekly availability window request.

    `tutor_id` is only needed when an admin manages another tutor's calendar.
    """

    tutor_id: UUID | None = None
    day_of_week: int = Field(ge=0, le=6, description="0 = Sunday ... 6 = Saturday")
    start_time: str = Field(pattern=HHMM_PATTERN, examples=["09:00"])
    end_time: str = Field(pattern=END_HHMM_PATTERN, examples=["17:00", "24:00"])
    is_active: bool = True


class AvailabilityWindowUpdate(BaseModel):
    """Partial update of a weekly availability window."""

    start_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    end_time: str | None = Field(default=None, pattern=END_HHMM_PATTERN)
    is_active: bool | None = None


class AvailabilityWindowRead(BaseModel):
    """Availability window response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool
    created_at: datetime
    updated_at: datetime


class TimeBlockCreate(BaseModel):
    """Create one-off unavailable block request."""

    tutor_id: UUID | None = None
    start_at: datetime
    end_at: datetime
    reason: str | None = Field(default=None, max_length=255)


class TimeBlockRead(BaseModel):
    """Time block response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    tutor_id: UUID
    start_at: datetime
    end_at: datetime
    reason: str | None
    created_at: datetime


class SlotOptionRead(BaseModel):
    """Single bookable start."""

    label: str
    start_at: datetime


class AvailableSlotsRead(BaseModel):
    """Bookable starts for one tutor on one date."""

    tutor_id: UUID
    day: date
    timezone: str
    duration_minutes: int
    slots: list[SlotOptionRead]
