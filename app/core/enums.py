"""Core enums used across modules."""

from enum import StrEnum


class RoleEnum(StrEnum):
    """System roles."""

    PARENT = "parent"
    TUTOR = "tutor"
    ADMIN = "admin"


class SubscriptionStatusEnum(StrEnum):
    """Parent course subscription status."""

    ACTIVE = "active"
    PAUSED = "paused"
    CANCELED = "canceled"


class SessionStatusEnum(StrEnum):
    """Tutoring session lifecycle status."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"


class RecurrenceFrequencyEnum(StrEnum):
    """How often a booked session repeats."""

    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"


class BookingStateEnum(StrEnum):
    """Booking decision flow states."""

    IDLE = "idle"
    PREVIEW = "preview"
    NO_CONFLICT = "no_conflict"
    ALL_CONFLICT = "all_conflict"
    PARTIAL_CONFLICT = "partial_conflict"
    COMMITTED = "committed"
    ABORTED = "aborted"


class OutboxStatusEnum(StrEnum):
    """Outbox event status for integration publishing."""

    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"
