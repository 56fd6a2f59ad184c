# slotbook/errors.py
"""
Scheduling exceptions.

Validation errors are caller bugs and are never retried. SlotTakenError is
expected under load: retry against a different slot, not the same one.
Limit and authorization errors are terminal for the request. Only
LockTimeoutError is retryable as-is.
"""

from datetime import date
from typing import Optional


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    retryable = False


# --- Validation ---

class InvalidWindowError(SchedulingError, ValueError):
    """Raised when a working window has a non-positive duration or end <= start."""


class InvalidSlotError(SchedulingError, ValueError):
    """Raised when a slot is not one the resource's working windows generate for that date."""


class UnknownResourceError(InvalidSlotError):
    """Raised when no schedule is registered for the resource."""

    def __init__(self, resource_id: str):
        super().__init__(f"Unknown resource {resource_id!r}: no working windows registered")
        self.resource_id = resource_id


# --- Contention ---

class SlotTakenError(SchedulingError):
    """Raised when a Scheduled booking already exists for the requested slot."""

    def __init__(self, resource_id: str, on: date, start, end):
        super().__init__(
            f"Slot {start:%H:%M}-{end:%H:%M} on {on.isoformat()} "
            f"for resource {resource_id!r} is already booked"
        )
        self.resource_id = resource_id
        self.date = on
        self.start = start
        self.end = end


# --- Limits / authorization ---

class RequesterLimitExceededError(SchedulingError):
    """Raised when the requester already holds `cap` Scheduled bookings."""

    def __init__(self, requester_id: str, active: int, cap: int):
        super().__init__(
            f"Requester {requester_id!r} already has {active} scheduled booking(s); limit is {cap}"
        )
        self.requester_id = requester_id
        self.active = active
        self.cap = cap


class NotAuthorizedError(SchedulingError):
    """Raised when a requester tries to cancel somebody else's booking."""

    def __init__(self, booking_id: int, requester_id: str):
        super().__init__(
            f"Requester {requester_id!r} may not cancel booking {booking_id}: "
            "not the original requester and no override capability"
        )
        self.booking_id = booking_id
        self.requester_id = requester_id


# --- Lifecycle ---

class BookingNotFoundError(SchedulingError, LookupError):
    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} does not exist")
        self.booking_id = booking_id


class InvalidTransitionError(SchedulingError):
    """Raised on any transition out of a terminal status."""

    def __init__(self, booking_id: int, current: str, target: str):
        super().__init__(f"Booking {booking_id} is {current}; cannot move to {target}")
        self.booking_id = booking_id
        self.current = current
        self.target = target


# --- Infrastructure ---

class LockTimeoutError(SchedulingError):
    """Raised when the per-slot (or per-requester) lock could not be acquired in time."""

    retryable = True

    def __init__(self, key: tuple, timeout: float, detail: Optional[str] = None):
        message = f"Timed out after {timeout:.2f}s waiting for lock {key!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
        self.key = key
        self.timeout = timeout
