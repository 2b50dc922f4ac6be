from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from zoneinfo import ZoneInfo

from app.modules.scheduling.slots import (
    BusyInterval,
    collect_busy,
    compute_available_slots,
    conflicts_with_any,
    find_open_starts,
    fits_window,
    minutes_of_day,
    overlaps,
    sunday_based_weekday,
)

MONDAY = date(2026, 3, 2)
MONDAY_8AM = datetime(2026, 3, 2, 8, 0, tzinfo=UTC)


@dataclass
class FakeWindow:
    day_of_week: int
    start_time: str
    end_time: str
    is_active: bool = True


@dataclass
class FakeBooking:
    scheduled_at: datetime
    duration_minutes: int


@dataclass
class FakeBlock:
    start_at: datetime
    end_at: datetime


def at(hour: int, minute: int = 0, day: date = MONDAY) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=UTC)


def test_weekday_index_starts_on_sunday() -> None:
    assert sunday_based_weekday(date(2026, 3, 1)) == 0
    assert sunday_based_weekday(MONDAY) == 1
    assert sunday_based_weekday(date(2026, 3, 7)) == 6


def test_touching_intervals_do_not_overlap() -> None:
    assert not overlaps(at(9), 60, at(10), 60)
    assert not overlaps(at(10), 60, at(9), 60)
    assert overlaps(at(9, 30), 60, at(10), 60)
    assert overlaps(at(10), 30, at(9), 120)


def test_full_free_window_yields_every_half_hour() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="17:00")]

    slots = compute_available_slots(MONDAY, windows, [], 60, MONDAY_8AM)

    assert len(slots) == 15
    assert slots[0] == "9:00 AM"
    assert slots[1] == "9:30 AM"
    assert slots[-1] == "4:00 PM"
    assert "4:30 PM" not in slots


def test_existing_booking_excludes_overlapping_starts_only() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="17:00")]
    bookings = [FakeBooking(scheduled_at=at(10), duration_minutes=60)]

    slots = compute_available_slots(MONDAY, windows, bookings, 60, MONDAY_8AM)

    assert "9:00 AM" in slots
    assert "9:30 AM" not in slots
    assert "10:00 AM" not in slots
    assert "10:30 AM" not in slots
    assert "11:00 AM" in slots
    assert len(slots) == 12


def test_windows_for_other_days_and_inactive_windows_are_ignored() -> None:
    windows = [
        FakeWindow(day_of_week=2, start_time="09:00", end_time="12:00"),
        FakeWindow(day_of_week=1, start_time="09:00", end_time="12:00", is_active=False),
    ]

    assert compute_available_slots(MONDAY, windows, [], 60, MONDAY_8AM) == []


def test_window_shorter_than_session_yields_nothing() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="09:45")]

    assert compute_available_slots(MONDAY, windows, [], 60, MONDAY_8AM) == []


def test_only_starts_strictly_after_now_are_offered() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="12:00")]
    now = at(10)

    slots = compute_available_slots(MONDAY, windows, [], 60, now)

    assert slots == ["10:30 AM", "11:00 AM"]


def test_off_grid_duration_uses_exact_fit_check() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="11:00")]
    bookings = [FakeBooking(scheduled_at=at(10, 30), duration_minutes=30)]

    starts = find_open_starts(MONDAY, windows, bookings, 45, MONDAY_8AM)

    # 09:30 + 45 = 10:15 is clear of 10:30; 10:00 + 45 = 10:45 is not.
    assert starts == [at(9), at(9, 30)]


def test_multiple_windows_are_merged_sorted_and_unique() -> None:
    windows = [
        FakeWindow(day_of_week=1, start_time="14:00", end_time="16:00"),
        FakeWindow(day_of_week=1, start_time="09:00", end_time="11:00"),
        FakeWindow(day_of_week=1, start_time="10:00", end_time="11:00"),
    ]

    slots = compute_available_slots(MONDAY, windows, [], 60, MONDAY_8AM)

    assert slots == ["9:00 AM", "9:30 AM", "10:00 AM", "2:00 PM", "2:30 PM", "3:00 PM"]


def test_time_blocks_remove_candidates_like_bookings() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="12:00")]
    busy = collect_busy(blocks=[FakeBlock(start_at=at(9, 15), end_at=at(10, 15))])

    slots = compute_available_slots(MONDAY, windows, busy, 60, MONDAY_8AM)

    assert slots == ["10:30 AM", "11:00 AM"]


def test_windows_are_read_in_tutor_local_time() -> None:
    tz = ZoneInfo("Europe/Berlin")
    windows = [FakeWindow(day_of_week=1, start_time="09:00", end_time="10:00")]

    starts = find_open_starts(MONDAY, windows, [], 60, MONDAY_8AM - timedelta(hours=2), tz=tz)

    assert len(starts) == 1
    assert starts[0].astimezone(UTC) == at(8)


def test_returned_slots_respect_containment_future_and_non_overlap() -> None:
    windows = [
        FakeWindow(day_of_week=1, start_time="08:00", end_time="12:30"),
        FakeWindow(day_of_week=1, start_time="13:00", end_time="18:00"),
    ]
    bookings = [
        FakeBooking(scheduled_at=at(9, 15), duration_minutes=50),
        FakeBooking(scheduled_at=at(15), duration_minutes=90),
    ]
    now = at(8, 10)
    duration = 45

    starts = find_open_starts(MONDAY, windows, bookings, duration, now)

    assert starts == sorted(set(starts))
    for start in starts:
        assert start > now
        assert not conflicts_with_any(start, duration, bookings)
        start_minutes = start.hour * 60 + start.minute
        assert any(
            minutes_of_day(window.start_time) <= start_minutes
            and start_minutes + duration <= minutes_of_day(window.end_time)
            for window in windows
        )


def test_block_interval_length_is_preserved() -> None:
    block = FakeBlock(start_at=at(9), end_at=at(10, 30))

    interval = BusyInterval.from_block(block)

    assert interval.duration_minutes == 90
    assert interval.ends_at == at(10, 30)


def test_spring_forward_skips_missing_local_times() -> None:
    tz = ZoneInfo("America/New_York")
    sunday = date(2026, 3, 8)
    windows = [FakeWindow(day_of_week=0, start_time="01:00", end_time="04:00")]
    now = datetime(2026, 3, 7, tzinfo=UTC)

    starts = find_open_starts(sunday, windows, [], 60, now, tz=tz)

    instants = [start.astimezone(UTC) for start in starts]
    assert instants == [
        datetime(2026, 3, 8, 6, 0, tzinfo=UTC),
        datetime(2026, 3, 8, 6, 30, tzinfo=UTC),
        datetime(2026, 3, 8, 7, 0, tzinfo=UTC),
    ]
    assert len(set(instants)) == len(starts)
    assert compute_available_slots(sunday, windows, [], 60, now, tz=tz) == ["1:00 AM", "1:30 AM", "3:00 AM"]


def test_fall_back_overlap_uses_elapsed_time() -> None:
    tz = ZoneInfo("America/New_York")
    # 00:30 EDT is 04:30Z; two real hours later is 06:30Z, not 07:30Z.
    local_start = datetime(2026, 11, 1, 0, 30, tzinfo=tz)

    assert overlaps(local_start, 120, datetime(2026, 11, 1, 6, 15, tzinfo=UTC), 30)
    assert not overlaps(local_start, 120, datetime(2026, 11, 1, 6, 45, tzinfo=UTC), 30)


def test_window_may_run_to_midnight() -> None:
    windows = [FakeWindow(day_of_week=1, start_time="22:00", end_time="24:00")]

    slots = compute_available_slots(MONDAY, windows, [], 60, MONDAY_8AM)

    assert slots == ["10:00 PM", "10:30 PM", "11:00 PM"]
    assert fits_window(at(23), 60, windows)


def test_fits_window_checks_local_weekday_and_bounds() -> None:
    tz = ZoneInfo("America/New_York")
    windows = [FakeWindow(day_of_week=1, start_time="15:00", end_time="19:00")]

    assert fits_window(at(20), 60, windows, tz)
    assert fits_window(at(23), 60, windows, tz)
    assert not fits_window(at(23, 30), 60, windows, tz)
    assert not fits_window(at(8), 60, windows, tz)
    assert not fits_window(at(20, day=date(2026, 3, 3)), 60, windows, tz)
    assert not fits_window(at(20), 60, [FakeWindow(1, "15:00", "19:00", is_active=False)], tz)
