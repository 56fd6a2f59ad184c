# slotbook/domain.py

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

from slotbook.errors import InvalidSlotError, InvalidWindowError

SLOT_ID_DATE_FORMAT = "%Y%m%d"
SLOT_ID_TIME_FORMAT = "%H%M%S"


def time_to_offset(value: time) -> timedelta:
    """Offset of a wall-clock time from midnight."""
    return timedelta(
        hours=value.hour,
        minutes=value.minute,
        seconds=value.second,
        microseconds=value.microsecond,
    )


def offset_to_time(offset: timedelta) -> time:
    return (datetime.min + offset).time()


class BookingStatus(str, enum.Enum):
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not BookingStatus.SCHEDULED


@dataclass(frozen=True)
class TimeWindow:
    """A same-day window [start, end) cut into slots of `duration`."""

    start: time
    end: time
    duration: timedelta

    def __post_init__(self) -> None:
        if self.duration <= timedelta(0):
            raise InvalidWindowError(f"Slot duration must be positive, got {self.duration}")
        if self.end <= self.start:
            raise InvalidWindowError(
                f"Window end {self.end:%H:%M} must be after start {self.start:%H:%M}"
            )

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class WorkingWindow(TimeWindow):
    """One entry of a resource's weekly working hours. weekday: Monday=0 .. Sunday=6."""

    weekday: int = 0

    def __post_init__(self) -> None:
        super().__post_init__()
        if not 0 <= self.weekday <= 6:
            raise InvalidWindowError(f"weekday must be in 0..6, got {self.weekday}")


@dataclass(frozen=True)
class ResourceSchedule:
    """A schedulable entity (practitioner, room, ...) and its weekly working windows."""

    resource_id: str
    windows: Tuple[WorkingWindow, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if not self.resource_id:
            raise InvalidWindowError("resource_id must be a non-empty string")
        ordered = tuple(sorted(self.windows, key=lambda w: (w.weekday, w.start)))
        for previous, current in zip(ordered, ordered[1:]):
            if previous.weekday == current.weekday and previous.overlaps(current):
                raise InvalidWindowError(
                    f"Overlapping working windows for {self.resource_id!r} on weekday "
                    f"{current.weekday}: {previous.start:%H:%M}-{previous.end:%H:%M} and "
                    f"{current.start:%H:%M}-{current.end:%H:%M}"
                )
        object.__setattr__(self, "windows", ordered)

    def windows_on(self, on: date) -> Tuple[WorkingWindow, ...]:
        weekday = on.weekday()
        return tuple(w for w in self.windows if w.weekday == weekday)


@dataclass(frozen=True, order=True)
class Slot:
    """A candidate bookable interval [start, end) for one resource on one date."""

    resource_id: str
    date: date
    start: time
    end: time

    @property
    def slot_id(self) -> str:
        return (
            f"{self.resource_id}:{self.date.strftime(SLOT_ID_DATE_FORMAT)}"
            f"{self.start.strftime(SLOT_ID_TIME_FORMAT)}-{self.end.strftime(SLOT_ID_TIME_FORMAT)}"
        )

    @classmethod
    def from_id(cls, slot_id: str) -> "Slot":
        # Format: <resource>:<YYYYMMDDHHMMSS>-<HHMMSS>; the resource part may itself contain ':'
        resource_id, sep, stamp = slot_id.rpartition(":")
        if not sep or not resource_id:
            raise InvalidSlotError(f"Invalid slot id {slot_id!r}: missing resource part")
        try:
            start_raw, end_raw = stamp.split("-")
            start_at = datetime.strptime(start_raw, SLOT_ID_DATE_FORMAT + SLOT_ID_TIME_FORMAT)
            end_at = datetime.strptime(end_raw, SLOT_ID_TIME_FORMAT)
        except ValueError as e:
            raise InvalidSlotError(f"Invalid slot id {slot_id!r}: {e}") from e
        return cls(resource_id=resource_id, date=start_at.date(), start=start_at.time(), end=end_at.time())

    def on(self, resource_id: str, on: date) -> "Slot":
        """The same interval re-keyed to another resource/date."""
        return Slot(resource_id=resource_id, date=on, start=self.start, end=self.end)


@dataclass(frozen=True)
class Booking:
    """Detached snapshot of a persisted reservation."""

    id: int
    slot: Slot
    requester_id: str
    status: BookingStatus
    created_at: datetime
    updated_at: datetime
    cancelled_by: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status is BookingStatus.SCHEDULED

    @classmethod
    def from_record(cls, record) -> "Booking":
        return cls(
            id=record.id,
            slot=Slot(
                resource_id=record.resource_id,
                date=record.booking_date,
                start=record.slot_start,
                end=record.slot_end,
            ),
            requester_id=record.requester_id,
            status=BookingStatus(record.status),
            created_at=record.created_at,
            updated_at=record.updated_at,
            cancelled_by=record.cancelled_by,
        )
