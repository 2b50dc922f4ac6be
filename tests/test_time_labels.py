from __future__ import annotations

import pytest

from app.modules.scheduling.slots import format_time_label, parse_time_label


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("2:30 PM", (14, 30)),
        ("9:00 AM", (9, 0)),
        ("12:00 PM", (12, 0)),
        ("12:30 AM", (0, 30)),
        ("11:59 pm", (23, 59)),
        ("14:15", (14, 15)),
    ],
)
def test_parse_time_label(label: str, expected: tuple[int, int]) -> None:
    assert parse_time_label(label) == expected


@pytest.mark.parametrize("label", ["", "noon", "25:00", "9:75 AM"])
def test_parse_time_label_rejects_malformed_input(label: str) -> None:
    with pytest.raises(ValueError):
        parse_time_label(label)


def test_format_time_label_uses_twelve_hour_clock() -> None:
    assert format_time_label(0, 0) == "12:00 AM"
    assert format_time_label(9, 5) == "9:05 AM"
    assert format_time_label(12, 0) == "12:00 PM"
    assert format_time_label(16, 30) == "4:30 PM"


def test_formatted_labels_parse_back_to_same_time() -> None:
    for hour, minute in [(0, 0), (11, 30), (12, 0), (23, 30)]:
        assert parse_time_label(format_time_label(hour, minute)) == (hour, minute)
