"""Resource time-slot generation and booking."""

from slotbook.availability import AvailabilityIndex
from slotbook.domain import Booking, BookingStatus, ResourceSchedule, Slot, TimeWindow, WorkingWindow
from slotbook.errors import (
    BookingNotFoundError,
    InvalidSlotError,
    InvalidTransitionError,
    InvalidWindowError,
    LockTimeoutError,
    NotAuthorizedError,
    RequesterLimitExceededError,
    SchedulingError,
    SlotTakenError,
    UnknownResourceError,
)
from slotbook.scheduler import BookingScheduler
from slotbook.slots import SlotGenerator, SlotSequence, generate

__all__ = [
    "AvailabilityIndex",
    "Booking",
    "BookingNotFoundError",
    "BookingScheduler",
    "BookingStatus",
    "InvalidSlotError",
    "InvalidTransitionError",
    "InvalidWindowError",
    "LockTimeoutError",
    "NotAuthorizedError",
    "RequesterLimitExceededError",
    "ResourceSchedule",
    "SchedulingError",
    "Slot",
    "SlotGenerator",
    "SlotSequence",
    "SlotTakenError",
    "TimeWindow",
    "UnknownResourceError",
    "WorkingWindow",
    "generate",
]
