# slotbook/slots.py
"""
Slot generation.

Slots are derived on demand from working windows and are never stored until
booked. A window [start, end) with duration d yields [start, start+d),
[start+d, start+2d), ... as long as the interval fits; a trailing remainder
shorter than d is dropped.
"""

from datetime import date, timedelta
from typing import Iterator, List, Optional

from slotbook.domain import ResourceSchedule, Slot, TimeWindow, offset_to_time, time_to_offset
from slotbook.errors import InvalidWindowError


class SlotSequence:
    """Lazy, finite and restartable: every iteration starts again from the first slot."""

    def __init__(self, window: TimeWindow, resource_id: str = "", on: Optional[date] = None):
        self.window = window
        self.resource_id = resource_id
        self.date = on if on is not None else date.min
        self._first = time_to_offset(window.start)
        self._count = (time_to_offset(window.end) - self._first) // window.duration

    def __iter__(self) -> Iterator[Slot]:
        step = self.window.duration
        for index in range(self._count):
            slot_start = self._first + index * step
            yield Slot(
                resource_id=self.resource_id,
                date=self.date,
                start=offset_to_time(slot_start),
                end=offset_to_time(slot_start + step),
            )

    def __len__(self) -> int:
        return self._count

    def __contains__(self, slot: object) -> bool:
        if not isinstance(slot, Slot):
            return False
        if slot.resource_id != self.resource_id or slot.date != self.date:
            return False
        offset = time_to_offset(slot.start) - self._first
        step = self.window.duration
        if offset < timedelta(0) or offset % step:
            return False
        if offset // step >= self._count:
            return False
        return time_to_offset(slot.end) - time_to_offset(slot.start) == step

    def __repr__(self) -> str:
        return (
            f"SlotSequence({self.resource_id!r}, {self.date}, "
            f"{self.window.start:%H:%M}-{self.window.end:%H:%M} every {self.window.duration})"
        )


def generate(window: TimeWindow, *, resource_id: str = "", on: Optional[date] = None) -> SlotSequence:
    """Cut `window` into back-to-back slots.

    The window is validated when it is built (InvalidWindowError on duration <= 0
    or end <= start), so an invalid window never reaches iteration.
    """
    if not isinstance(window, TimeWindow):
        try:
            window = TimeWindow(start=window["start"], end=window["end"], duration=window["duration"])
        except KeyError as e:
            raise InvalidWindowError(f"Missing working window field: {e.args[0]}") from e
    return SlotSequence(window, resource_id=resource_id, on=on)


class SlotGenerator:
    """Candidate slots for one resource, across all of its windows for a given date."""

    def __init__(self, schedule: ResourceSchedule):
        self.schedule = schedule

    def sequences_for(self, on: date) -> List[SlotSequence]:
        return [
            generate(window, resource_id=self.schedule.resource_id, on=on)
            for window in self.schedule.windows_on(on)
        ]

    def slots_for(self, on: date) -> List[Slot]:
        slots: List[Slot] = []
        for sequence in self.sequences_for(on):
            slots.extend(sequence)
        return sorted(slots)

    def contains(self, slot: Slot) -> bool:
        if slot.resource_id != self.schedule.resource_id:
            return False
        return any(slot in sequence for sequence in self.sequences_for(slot.date))
