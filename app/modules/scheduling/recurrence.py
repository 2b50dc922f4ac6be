"""Recurring session planning and conflict partitioning."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from app.core.enums import BookingStateEnum, RecurrenceFrequencyEnum
from app.modules.scheduling.slots import OccupiedLike, conflicts_with_any, parse_time_label
from app.shared.exceptions import BusinessRuleException

MIN_OCCURRENCES = 1
MAX_OCCURRENCES = 52

INTERVAL_DAYS = {
    RecurrenceFrequencyEnum.WEEKLY: 7,
    RecurrenceFrequencyEnum.BIWEEKLY: 14,
}


@dataclass(frozen=True, slots=True)
class ConflictSet:
    """Occurrences split by whether they collide with the tutor calendar."""

    conflicts: tuple[datetime, ...]
    valid_sessions: tuple[datetime, ...]

    @property
    def total(self) -> int:
        return len(self.conflicts) + len(self.valid_sessions)

    def decision(self) -> BookingStateEnum:
        """Map the partition onto the booking flow branch it selects."""
        if not self.conflicts:
            return BookingStateEnum.NO_CONFLICT
        if not self.valid_sessions:
            return BookingStateEnum.ALL_CONFLICT
        return BookingStateEnum.PARTIAL_CONFLICT


def plan_recurrence(
    base_date: date,
    base_time_label: str,
    frequency: RecurrenceFrequencyEnum,
    count: int,
    tz: tzinfo = UTC,
    max_count: int = MAX_OCCURRENCES,
) -> list[datetime]:
    """Expand a chosen start into `count` occurrences, oldest first.

    Each occurrence is rebuilt from its calendar date and the base wall-clock
    time in `tz`, so a 2:00 PM series stays at 2:00 PM local across DST
    changes instead of drifting by the offset difference.
    """
    if not MIN_OCCURRENCES <= count <= max_count:
        raise BusinessRuleException(
            f"Number of sessions must be between {MIN_OCCURRENCES} and {max_count}",
        )
    if frequency == RecurrenceFrequencyEnum.NONE and count != 1:
        raise BusinessRuleException("A one-off booking cannot have more than one session")

    hour, minute = parse_time_label(base_time_label)
    wall_clock = time(hour, minute)
    interval_days = INTERVAL_DAYS.get(frequency, 0)

    return [
        datetime.combine(base_date + timedelta(days=index * interval_days), wall_clock, tzinfo=tz)
        for index in range(count)
    ]


def partition_by_conflict(
    occurrences: Iterable[datetime],
    busy: Sequence[OccupiedLike],
    duration_minutes: float,
) -> ConflictSet:
    """Split occurrences into conflicting and bookable ones, keeping order."""
    conflicts: list[datetime] = []
    valid_sessions: list[datetime] = []
    for occurrence in occurrences:
        if conflicts_with_any(occurrence, duration_minutes, busy):
            conflicts.append(occurrence)
        else:
            valid_sessions.append(occurrence)
    return ConflictSet(conflicts=tuple(conflicts), valid_sessions=tuple(valid_sessions))
