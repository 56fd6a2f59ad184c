# slotbook/scheduler.py

from __future__ import annotations

import logging
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.orm import sessionmaker
from tenacity import RetryCallState, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from slotbook.availability import AvailabilityIndex
from slotbook.config import Settings
from slotbook.domain import Booking, BookingStatus, Slot
from slotbook.errors import (
    InvalidSlotError,
    InvalidTransitionError,
    LockTimeoutError,
    NotAuthorizedError,
    RequesterLimitExceededError,
    SlotTakenError,
)
from slotbook.locks import KeyedLocks
from slotbook.slots import SlotGenerator
from slotbook.store import BookingStore, ResourceCatalog

logger = logging.getLogger(__name__)


def _validate_identifier(value: str, label: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{label} must be a non-empty string")
    return value.strip()


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    reason = _short_exc(retry_state)
    if sleep_seconds is None:
        logger.info("Retrying reserve after attempt %s (%s)", retry_state.attempt_number, reason)
        return
    logger.info(
        "Retrying reserve in %.2fs after attempt %s (%s)",
        sleep_seconds,
        retry_state.attempt_number,
        reason,
    )


class BookingScheduler:
    """Reserves slots for requesters.

    reserve() checks, in order: the slot is one the resource's working windows
    generate for that date (InvalidSlotError), the slot is free
    (SlotTakenError), the requester is under their cap
    (RequesterLimitExceededError). The availability check and the insert run
    under a per-slot lock, and the database's partial unique index backs it up
    across processes.

    The requester cap is only exact within one process: the count and the
    insert are serialized by the in-process requester lock, and no database
    constraint backs the cap. Several processes sharing one database can each
    pass the count for the same requester and overshoot the cap. Deployments
    that need a hard cap run a single scheduler process per database.
    """

    def __init__(
        self,
        catalog: ResourceCatalog,
        store: BookingStore,
        index: AvailabilityIndex,
        *,
        lock_timeout_seconds: float = 5.0,
        reserve_retry_attempts: int = 3,
        locks: Optional[KeyedLocks] = None,
    ):
        self.catalog = catalog
        self.store = store
        self.index = index
        self.lock_timeout_seconds = lock_timeout_seconds
        self.reserve_retry_attempts = reserve_retry_attempts
        self.locks = locks or KeyedLocks()

    @classmethod
    def from_settings(cls, settings: Settings, session_factory: sessionmaker) -> "BookingScheduler":
        store = BookingStore(session_factory)
        return cls(
            ResourceCatalog(session_factory, default_cap=settings.requester_cap),
            store,
            AvailabilityIndex(store, ttl_seconds=settings.snapshot_ttl_seconds),
            lock_timeout_seconds=settings.lock_timeout_seconds,
            reserve_retry_attempts=settings.reserve_retry_attempts,
        )

    # --- queries ---

    def generator_for(self, resource_id: str) -> SlotGenerator:
        return SlotGenerator(self.catalog.get(resource_id))

    def slot_board(self, resource_id: str, on: date) -> List[Tuple[Slot, bool]]:
        """Every generated slot for the date, paired with whether it is booked."""
        slots = self.generator_for(resource_id).slots_for(on)
        booked = self.index.booked_slots(resource_id, on)
        return [(slot, slot in booked) for slot in slots]

    def available_slots(self, resource_id: str, on: date) -> List[Slot]:
        return [slot for slot, is_booked in self.slot_board(resource_id, on) if not is_booked]

    def get_booking(self, booking_id: int) -> Booking:
        return self.store.get(booking_id)

    def bookings_for(self, requester_id: str, include_terminal: bool = False) -> List[Booking]:
        return self.store.for_requester(_validate_identifier(requester_id, "requester_id"), include_terminal)

    # --- commands ---

    @staticmethod
    def _slot_key(slot: Slot) -> tuple:
        return ("slot", slot.resource_id, slot.date, slot.start)

    def reserve(self, resource_id: str, on: date, slot: Slot, requester_id: str) -> Booking:
        requester_id = _validate_identifier(requester_id, "requester_id")
        slot = slot.on(resource_id, on)

        # (a) shape: must be a generated slot
        if not self.generator_for(resource_id).contains(slot):
            raise InvalidSlotError(
                f"{slot.start:%H:%M}-{slot.end:%H:%M} on {on.isoformat()} is not a slot "
                f"generated by the working windows of resource {resource_id!r}"
            )

        try:
            # Requester lock first, then slot lock: a fixed order for every reserve call.
            with self.locks.hold(("requester", requester_id), self.lock_timeout_seconds), \
                    self.locks.hold(self._slot_key(slot), self.lock_timeout_seconds):
                # (b) availability, read through to the store
                if not self.index.is_free(resource_id, on, slot, fresh=True):
                    logger.info("Reserve rejected: %s already booked (requester=%s)", slot.slot_id, requester_id)
                    raise SlotTakenError(resource_id, on, slot.start, slot.end)

                # (c) per-requester cap
                policy = self.catalog.requester_policy(requester_id)
                active = self.store.count_active(requester_id)
                if active >= policy.booking_cap:
                    logger.info(
                        "Reserve rejected: requester %s at limit (%d/%d)", requester_id, active, policy.booking_cap
                    )
                    raise RequesterLimitExceededError(requester_id, active, policy.booking_cap)

                booking = self.store.insert_scheduled(slot, requester_id)
                self.index.note_booked(slot)
        except LockTimeoutError as e:
            logger.warning("Reserve of %s for %s timed out waiting for a lock (%s)", slot.slot_id, requester_id, e)
            raise

        logger.info("Booked %s for %s (booking_id=%s)", slot.slot_id, requester_id, booking.id)
        return booking

    def reserve_with_retry(self, resource_id: str, on: date, slot: Slot, requester_id: str) -> Booking:
        """reserve(), retried with backoff on LockTimeoutError only."""
        decorated = retry(
            retry=retry_if_exception_type(LockTimeoutError),
            stop=stop_after_attempt(self.reserve_retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
            before_sleep=_log_before_sleep,
            reraise=True,
        )(self.reserve)

        return decorated(resource_id, on, slot, requester_id)

    def cancel(self, booking_id: int, requester_id: str) -> Booking:
        requester_id = _validate_identifier(requester_id, "requester_id")
        booking = self.store.get(booking_id)

        if booking.requester_id != requester_id:
            if not self.catalog.requester_policy(requester_id).can_override:
                logger.info("Cancel of booking %s refused for %s", booking_id, requester_id)
                raise NotAuthorizedError(booking_id, requester_id)

        if booking.status is BookingStatus.CANCELLED:
            return booking
        if booking.status is BookingStatus.COMPLETED:
            raise InvalidTransitionError(booking_id, booking.status.value, BookingStatus.CANCELLED.value)

        updated = self._move(booking, BookingStatus.CANCELLED, cancelled_by=requester_id)
        logger.info("Cancelled booking %s (%s) by %s", booking_id, booking.slot.slot_id, requester_id)
        return updated

    def complete(self, booking_id: int) -> Booking:
        booking = self.store.get(booking_id)
        if booking.status is BookingStatus.COMPLETED:
            return booking
        if booking.status is BookingStatus.CANCELLED:
            raise InvalidTransitionError(booking_id, booking.status.value, BookingStatus.COMPLETED.value)

        updated = self._move(booking, BookingStatus.COMPLETED)
        logger.info("Completed booking %s (%s)", booking_id, booking.slot.slot_id)
        return updated

    def _move(self, booking: Booking, target: BookingStatus, cancelled_by: Optional[str] = None) -> Booking:
        with self.locks.hold(self._slot_key(booking.slot), self.lock_timeout_seconds):
            updated = self.store.move_from_scheduled(booking.id, target, cancelled_by=cancelled_by)
            if updated is None:
                # Lost a race with another transition; same target is a no-op, anything else is terminal.
                current = self.store.get(booking.id)
                if current.status is target:
                    return current
                raise InvalidTransitionError(booking.id, current.status.value, target.value)
            self.index.note_released(booking.slot)
        return updated
