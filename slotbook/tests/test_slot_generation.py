from __future__ import annotations

from datetime import time, timedelta

import pytest

from slotbook.domain import ResourceSchedule, Slot, TimeWindow, WorkingWindow, time_to_offset
from slotbook.errors import InvalidSlotError, InvalidWindowError
from slotbook.slots import SlotGenerator, generate
from slotbook.tests.conftest import MONDAY, TUESDAY, slot


def _window(start: str, end: str, minutes: int) -> TimeWindow:
    return TimeWindow(start=time.fromisoformat(start), end=time.fromisoformat(end), duration=timedelta(minutes=minutes))


def test_twenty_minute_slots_in_one_hour() -> None:
    slots = list(generate(_window("09:00", "10:00", 20), resource_id="doctorA", on=MONDAY))
    assert slots == [slot("09:00", "09:20"), slot("09:20", "09:40"), slot("09:40", "10:00")]


def test_trailing_remainder_is_discarded() -> None:
    slots = list(generate(_window("09:00", "10:00", 25)))
    assert [(s.start, s.end) for s in slots] == [
        (time(9, 0), time(9, 25)),
        (time(9, 25), time(9, 50)),
    ]


def test_window_shorter_than_duration_yields_nothing() -> None:
    assert list(generate(_window("09:00", "09:10", 15))) == []


@pytest.mark.parametrize(
    "start, end, minutes",
    [
        ("09:00", "10:00", 20),
        ("08:15", "17:45", 45),
        ("00:00", "23:59", 7),
        ("13:00", "13:31", 30),
    ],
)
def test_slots_cover_window_without_gaps_or_overlaps(start: str, end: str, minutes: int) -> None:
    window = _window(start, end, minutes)
    slots = list(generate(window))
    duration = timedelta(minutes=minutes)

    assert slots[0].start == window.start
    for previous, current in zip(slots, slots[1:]):
        assert previous.end == current.start
    for s in slots:
        assert time_to_offset(s.end) - time_to_offset(s.start) == duration
    remainder = time_to_offset(window.end) - time_to_offset(slots[-1].end)
    assert timedelta(0) <= remainder < duration


def test_sequence_is_restartable_and_sized() -> None:
    sequence = generate(_window("09:00", "10:00", 20))
    assert list(sequence) == list(sequence)
    assert len(sequence) == 3


def test_sequence_membership() -> None:
    sequence = generate(_window("09:00", "10:00", 20), resource_id="doctorA", on=MONDAY)
    assert slot("09:20", "09:40") in sequence
    assert slot("09:10", "09:30") not in sequence  # misaligned
    assert slot("09:20", "09:30") not in sequence  # wrong length
    assert slot("10:00", "10:20") not in sequence  # past the window
    assert slot("09:20", "09:40", on=TUESDAY) not in sequence
    assert "09:20" not in sequence


@pytest.mark.parametrize("minutes", [0, -5])
def test_non_positive_duration_is_rejected(minutes: int) -> None:
    with pytest.raises(InvalidWindowError, match="duration"):
        generate(_window("09:00", "10:00", minutes))


@pytest.mark.parametrize("start, end", [("10:00", "10:00"), ("11:00", "10:00")])
def test_end_not_after_start_is_rejected(start: str, end: str) -> None:
    with pytest.raises(InvalidWindowError, match="after start"):
        generate(_window(start, end, 20))


def test_generate_accepts_a_mapping() -> None:
    window = {"start": time(9), "end": time(10), "duration": timedelta(minutes=30)}
    assert len(generate(window)) == 2


@pytest.mark.parametrize("missing", ["start", "end", "duration"])
def test_generate_rejects_a_mapping_missing_a_field(missing: str) -> None:
    window = {"start": time(9), "end": time(10), "duration": timedelta(minutes=30)}
    del window[missing]

    with pytest.raises(InvalidWindowError, match=missing):
        generate(window)


def test_weekday_out_of_range_is_rejected() -> None:
    with pytest.raises(InvalidWindowError, match="weekday"):
        WorkingWindow(weekday=7, start=time(9), end=time(10), duration=timedelta(minutes=20))


def test_overlapping_windows_on_the_same_day_are_rejected() -> None:
    with pytest.raises(InvalidWindowError, match="Overlapping"):
        ResourceSchedule(
            resource_id="doctorA",
            windows=(
                WorkingWindow(weekday=0, start=time(9), end=time(11), duration=timedelta(minutes=20)),
                WorkingWindow(weekday=0, start=time(10), end=time(12), duration=timedelta(minutes=20)),
            ),
        )


def test_same_hours_on_different_days_are_allowed() -> None:
    schedule = ResourceSchedule(
        resource_id="doctorA",
        windows=(
            WorkingWindow(weekday=1, start=time(9), end=time(10), duration=timedelta(minutes=20)),
            WorkingWindow(weekday=0, start=time(9), end=time(10), duration=timedelta(minutes=20)),
        ),
    )
    assert [w.weekday for w in schedule.windows] == [0, 1]


def test_generator_combines_windows_for_the_weekday() -> None:
    schedule = ResourceSchedule(
        resource_id="doctorA",
        windows=(
            WorkingWindow(weekday=0, start=time(14), end=time(15), duration=timedelta(minutes=30)),
            WorkingWindow(weekday=0, start=time(9), end=time(10), duration=timedelta(minutes=20)),
        ),
    )
    generator = SlotGenerator(schedule)

    assert [s.start for s in generator.slots_for(MONDAY)] == [
        time(9, 0), time(9, 20), time(9, 40), time(14, 0), time(14, 30),
    ]
    assert generator.slots_for(TUESDAY) == []
    assert generator.contains(slot("14:30", "15:00"))
    assert not generator.contains(slot("14:30", "15:00", resource_id="doctorB"))


def test_slot_id_round_trip() -> None:
    s = slot("09:20", "09:40", resource_id="clinic:room-1")
    assert s.slot_id == "clinic:room-1:20240101092000-094000"
    assert Slot.from_id(s.slot_id) == s


@pytest.mark.parametrize("slot_id", ["no-colon", ":20240101092000-094000", "doctorA:2024-01-01", "doctorA:20241301092000-094000"])
def test_malformed_slot_id_is_rejected(slot_id: str) -> None:
    with pytest.raises(InvalidSlotError):
        Slot.from_id(slot_id)
