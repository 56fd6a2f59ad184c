# slotbook/store.py

import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from slotbook.domain import Booking, BookingStatus, ResourceSchedule, Slot, WorkingWindow
from slotbook.errors import BookingNotFoundError, InvalidWindowError, SlotTakenError, UnknownResourceError
from slotbook.models import BookingRecord, RequesterRecord, ResourceRecord, WorkingHoursRecord

logger = logging.getLogger(__name__)

_SCHEDULED = BookingStatus.SCHEDULED.value


class BookingStore:
    """Append-mostly booking table. Rows are never deleted, only moved to a terminal status."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def scheduled_slots(self, resource_id: str, on: date) -> FrozenSet[Slot]:
        with self._session_factory() as db:
            rows = db.query(BookingRecord.slot_start, BookingRecord.slot_end).filter(
                BookingRecord.resource_id == resource_id,
                BookingRecord.booking_date == on,
                BookingRecord.status == _SCHEDULED,
            ).all()
        return frozenset(Slot(resource_id=resource_id, date=on, start=start, end=end) for start, end in rows)

    def count_active(self, requester_id: str) -> int:
        with self._session_factory() as db:
            return db.query(func.count(BookingRecord.id)).filter(
                BookingRecord.requester_id == requester_id,
                BookingRecord.status == _SCHEDULED,
            ).scalar() or 0

    def insert_scheduled(self, slot: Slot, requester_id: str) -> Booking:
        """Insert a Scheduled row; the partial unique index turns a lost race into SlotTakenError."""
        with self._session_factory() as db:
            record = BookingRecord(
                resource_id=slot.resource_id,
                booking_date=slot.date,
                slot_start=slot.start,
                slot_end=slot.end,
                requester_id=requester_id,
                status=_SCHEDULED,
            )
            db.add(record)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise SlotTakenError(slot.resource_id, slot.date, slot.start, slot.end) from e
            db.refresh(record)
            return Booking.from_record(record)

    def get(self, booking_id: int) -> Booking:
        with self._session_factory() as db:
            record = db.get(BookingRecord, booking_id)
            if record is None:
                raise BookingNotFoundError(booking_id)
            return Booking.from_record(record)

    def move_from_scheduled(
        self, booking_id: int, target: BookingStatus, *, cancelled_by: Optional[str] = None
    ) -> Optional[Booking]:
        """Conditionally move a Scheduled booking to `target`.

        Returns None when the row was no longer Scheduled at update time.
        """
        values = {"status": target.value, "updated_at": datetime.now(timezone.utc)}
        if cancelled_by is not None:
            values["cancelled_by"] = cancelled_by
        with self._session_factory() as db:
            updated = db.query(BookingRecord).filter(
                BookingRecord.id == booking_id,
                BookingRecord.status == _SCHEDULED,
            ).update(values, synchronize_session=False)
            db.commit()
            if not updated:
                return None
            record = db.get(BookingRecord, booking_id)
            return Booking.from_record(record)

    def for_requester(self, requester_id: str, include_terminal: bool = False) -> List[Booking]:
        with self._session_factory() as db:
            query = db.query(BookingRecord).filter(BookingRecord.requester_id == requester_id)
            if not include_terminal:
                query = query.filter(BookingRecord.status == _SCHEDULED)
            records = query.order_by(BookingRecord.booking_date, BookingRecord.slot_start, BookingRecord.id).all()
            return [Booking.from_record(r) for r in records]


@dataclass(frozen=True)
class RequesterPolicy:
    requester_id: str
    booking_cap: int
    can_override: bool = False


class ResourceCatalog:
    """Loads resource schedules and requester policies.

    A loaded schedule is immutable and cached for the scheduling cycle; call
    refresh() to start a new cycle after working hours change.
    """

    def __init__(self, session_factory: sessionmaker, default_cap: int = 3):
        self._session_factory = session_factory
        self.default_cap = default_cap
        self._schedules: Dict[str, ResourceSchedule] = {}
        self._lock = threading.Lock()

    def get(self, resource_id: str) -> ResourceSchedule:
        with self._lock:
            cached = self._schedules.get(resource_id)
        if cached is not None:
            return cached

        with self._session_factory() as db:
            record = db.get(ResourceRecord, resource_id)
            if record is None:
                raise UnknownResourceError(resource_id)
            schedule = ResourceSchedule(
                resource_id=record.id,
                windows=tuple(
                    WorkingWindow(
                        weekday=row.weekday,
                        start=row.start_time,
                        end=row.end_time,
                        duration=timedelta(minutes=row.slot_minutes),
                    )
                    for row in record.working_hours
                ),
            )

        with self._lock:
            # Another thread may have loaded it meanwhile; keep the first one for the cycle.
            return self._schedules.setdefault(resource_id, schedule)

    def resource_ids(self) -> List[str]:
        with self._session_factory() as db:
            return [rid for (rid,) in db.query(ResourceRecord.id).order_by(ResourceRecord.id).all()]

    def save(self, schedule: ResourceSchedule) -> None:
        """Insert or replace a resource and its working hours."""
        rows = []
        for window in schedule.windows:
            minutes, remainder = divmod(window.duration, timedelta(minutes=1))
            if remainder:
                raise InvalidWindowError(
                    f"Stored slot durations must be whole minutes, got {window.duration} for {schedule.resource_id!r}"
                )
            rows.append(
                WorkingHoursRecord(
                    weekday=window.weekday,
                    start_time=window.start,
                    end_time=window.end,
                    slot_minutes=minutes,
                )
            )

        with self._session_factory() as db:
            record = db.get(ResourceRecord, schedule.resource_id)
            if record is None:
                record = ResourceRecord(id=schedule.resource_id)
                db.add(record)
            record.working_hours = rows
            db.commit()

        logger.info("Saved resource %s with %d working window(s)", schedule.resource_id, len(rows))
        with self._lock:
            self._schedules.pop(schedule.resource_id, None)

    def refresh(self) -> None:
        with self._lock:
            self._schedules.clear()

    def requester_policy(self, requester_id: str) -> RequesterPolicy:
        with self._session_factory() as db:
            record = db.get(RequesterRecord, requester_id)
        if record is None:
            return RequesterPolicy(requester_id=requester_id, booking_cap=self.default_cap)
        cap = record.booking_cap if record.booking_cap is not None else self.default_cap
        return RequesterPolicy(requester_id=requester_id, booking_cap=cap, can_override=bool(record.can_override))

    def save_requester(self, requester_id: str, booking_cap: Optional[int] = None, can_override: bool = False) -> None:
        if booking_cap is not None and booking_cap < 0:
            raise ValueError(f"booking_cap must be >= 0, got {booking_cap}")
        with self._session_factory() as db:
            record = db.get(RequesterRecord, requester_id)
            if record is None:
                record = RequesterRecord(id=requester_id)
                db.add(record)
            record.booking_cap = booking_cap
            record.can_override = can_override
            db.commit()
