"""Availability resolution: weekly windows and occupancy to bookable starts.

Everything here is pure. Callers fetch windows, sessions and time blocks
first and pass `now` explicitly, so results are reproducible in tests.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo
from typing import Protocol

SLOT_STEP_MINUTES = 30
MINUTES_PER_DAY = 24 * 60

_TIME_LABEL_RE = re.compile(r"(\d{1,2}):(\d{2})")


class WindowLike(Protocol):
    """Recurring weekly availability window (tutor-local `HH:MM`)."""

    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool


class OccupiedLike(Protocol):
    """Anything that takes time on the tutor calendar."""

    scheduled_at: datetime
    duration_minutes: float


class BlockLike(Protocol):
    start_at: datetime
    end_at: datetime


@dataclass(frozen=True, slots=True)
class BusyInterval:
    """Normalized occupied interval `[scheduled_at, scheduled_at + duration)`."""

    scheduled_at: datetime
    duration_minutes: float

    @classmethod
    def from_block(cls, block: BlockLike) -> BusyInterval:
        minutes = (block.end_at - block.start_at).total_seconds() / 60
        return cls(scheduled_at=block.start_at, duration_minutes=minutes)

    @property
    def ends_at(self) -> datetime:
        return self.scheduled_at + timedelta(minutes=self.duration_minutes)


def _as_instant(value: datetime) -> datetime:
    return value.astimezone(UTC) if value.tzinfo is not None else value


def overlaps(
    a_start: datetime,
    a_duration_minutes: float,
    b_start: datetime,
    b_duration_minutes: float,
) -> bool:
    """Half-open interval overlap: intervals that only touch do not overlap.

    Aware values are compared as UTC instants, so a local start never gains
    or loses an hour across a DST change.
    """
    a_start = _as_instant(a_start)
    b_start = _as_instant(b_start)
    a_end = a_start + timedelta(minutes=a_duration_minutes)
    b_end = b_start + timedelta(minutes=b_duration_minutes)
    return a_start < b_end and b_start < a_end


def conflicts_with_any(
    start: datetime,
    duration_minutes: float,
    busy: Iterable[OccupiedLike],
) -> bool:
    """Return True if `[start, start + duration)` hits any busy interval."""
    return any(
        overlaps(start, duration_minutes, item.scheduled_at, item.duration_minutes)
        for item in busy
    )


def collect_busy(
    sessions: Iterable[OccupiedLike] = (),
    blocks: Iterable[BlockLike] = (),
) -> list[BusyInterval]:
    """Merge booked sessions and time blocks into one occupancy list."""
    busy = [BusyInterval(item.scheduled_at, item.duration_minutes) for item in sessions]
    busy.extend(BusyInterval.from_block(block) for block in blocks)
    return busy


def parse_time_label(label: str) -> tuple[int, int]:
    """Convert a display label such as "2:30 PM" into 24-hour (hour, minute).

    Labels without an AM/PM suffix are read as 24-hour time. "12 AM" is
    midnight and "12 PM" stays noon.
    """
    match = _TIME_LABEL_RE.search(label)
    if match is None:
        raise ValueError(f"Unrecognized time label: {label!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    lowered = label.lower()
    if "pm" in lowered and hour != 12:
        hour += 12
    elif "am" in lowered and hour == 12:
        hour = 0

    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time label out of range: {label!r}")
    return hour, minute


def format_time_label(hour: int, minute: int) -> str:
    """Render 24-hour time as a 12-hour label ("9:00 AM")."""
    suffix = "AM" if hour < 12 else "PM"
    return f"{hour % 12 or 12}:{minute:02d} {suffix}"


def minutes_of_day(value: str) -> int:
    """Return minute offset of a fixed-width `HH:MM` string ("24:00" is 1440)."""
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def sunday_based_weekday(day: date) -> int:
    """Day index with Sunday=0 ... Saturday=6."""
    return day.isoweekday() % 7


def _local_start(day: date, minute_offset: int, tz: tzinfo) -> datetime | None:
    """Aware start at `minute_offset` on `day`, or None when the clock skips it."""
    start = datetime.combine(day, time(minute_offset // 60, minute_offset % 60), tzinfo=tz)
    wall_clock = start.replace(tzinfo=None)
    if start.astimezone(UTC).astimezone(tz).replace(tzinfo=None) != wall_clock:
        return None
    return start


def fits_window(
    start: datetime,
    duration_minutes: float,
    windows: Sequence[WindowLike],
    tz: tzinfo = UTC,
) -> bool:
    """Return True if the session lies inside one active window of its local weekday."""
    local_start = start.astimezone(tz)
    local_end = (start.astimezone(UTC) + timedelta(minutes=duration_minutes)).astimezone(tz)
    begin = local_start.hour * 60 + local_start.minute
    end = (
        (local_end.date() - local_start.date()).days * MINUTES_PER_DAY
        + local_end.hour * 60
        + local_end.minute
    )
    weekday = sunday_based_weekday(local_start.date())
    return any(
        window.is_active
        and window.day_of_week == weekday
        and minutes_of_day(window.start_time) <= begin
        and end <= minutes_of_day(window.end_time)
        for window in windows
    )


def find_open_starts(
    day: date,
    windows: Sequence[WindowLike],
    busy: Sequence[OccupiedLike],
    duration_minutes: int,
    now: datetime,
    tz: tzinfo = UTC,
    step_minutes: int = SLOT_STEP_MINUTES,
) -> list[datetime]:
    """Return unique session starts bookable on `day`, ordered by instant.

    A start qualifies when it sits on the step grid of an active window for
    the weekday, the whole session fits before the window end, it is strictly
    after `now`, and it overlaps nothing in `busy`. Wall-clock times skipped
    by a DST change are never offered.
    """
    weekday = sunday_based_weekday(day)
    starts: dict[datetime, datetime] = {}

    for window in windows:
        if not window.is_active or window.day_of_week != weekday:
            continue

        cursor = minutes_of_day(window.start_time)
        window_end = minutes_of_day(window.end_time)
        while cursor + duration_minutes <= window_end:
            start = _local_start(day, cursor, tz)
            cursor += step_minutes
            if start is None:
                continue
            instant = start.astimezone(UTC)
            if instant > now and not conflicts_with_any(instant, duration_minutes, busy):
                starts.setdefault(instant, start)

    return [starts[instant] for instant in sorted(starts)]


def compute_available_slots(
    day: date,
    windows: Sequence[WindowLike],
    bookings: Sequence[OccupiedLike],
    duration_minutes: int,
    now: datetime,
    tz: tzinfo = UTC,
    step_minutes: int = SLOT_STEP_MINUTES,
) -> list[str]:
    """Return bookable starts on `day` as chronologically ordered labels."""
    starts = find_open_starts(day, windows, bookings, duration_minutes, now, tz, step_minutes)
    return [format_time_label(start.hour, start.minute) for start in starts]
