# slotbook/availability.py
"""
Read-only availability view over the booking store.

Snapshots are cached per (resource, date) for at most `ttl_seconds`. Writes
that go through BookingScheduler update the cached entry immediately
(refresh-on-write), so within one process a reader never misses its own
bookings; bookings written by other processes become visible after at most
`ttl_seconds`. `fresh=True` always reads through to the store.

Every write bumps a per-key generation. A store read only becomes the cached
snapshot if no write to that key (and no invalidate) happened while it ran;
otherwise it is returned to its caller and dropped.
"""

import logging
import threading
import time
from datetime import date
from typing import Callable, Dict, FrozenSet, Optional, Tuple

from slotbook.domain import Slot
from slotbook.store import BookingStore

logger = logging.getLogger(__name__)

_Key = Tuple[str, date]


class AvailabilityIndex:
    def __init__(
        self,
        store: BookingStore,
        ttl_seconds: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._store = store
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshots: Dict[_Key, Tuple[FrozenSet[Slot], float]] = {}
        self._generations: Dict[_Key, int] = {}
        self._epoch = 0

    def booked_slots(self, resource_id: str, on: date, *, fresh: bool = False) -> FrozenSet[Slot]:
        key = (resource_id, on)
        now = self._clock()
        with self._lock:
            cached = self._snapshots.get(key)
            seen = self._version(key)
        if not fresh and cached is not None and now - cached[1] <= self.ttl_seconds:
            return cached[0]

        booked = self._store.scheduled_slots(resource_id, on)
        with self._lock:
            if self._version(key) == seen:
                self._snapshots[key] = (booked, now)
            else:
                logger.debug("Discarding availability load for %s on %s: written during read", resource_id, on)
        return booked

    def is_free(self, resource_id: str, on: date, slot: Slot, *, fresh: bool = False) -> bool:
        return slot.on(resource_id, on) not in self.booked_slots(resource_id, on, fresh=fresh)

    # --- refresh-on-write hooks ---

    def note_booked(self, slot: Slot) -> None:
        self._apply(slot, add=True)

    def note_released(self, slot: Slot) -> None:
        self._apply(slot, add=False)

    def _version(self, key: _Key) -> Tuple[int, int]:
        return self._epoch, self._generations.get(key, 0)

    def _apply(self, slot: Slot, *, add: bool) -> None:
        key = (slot.resource_id, slot.date)
        with self._lock:
            # bumped even with nothing cached: a load may be in flight
            self._generations[key] = self._generations.get(key, 0) + 1
            cached = self._snapshots.get(key)
            if cached is None:
                return
            booked, loaded_at = cached
            booked = booked | {slot} if add else booked - {slot}
            self._snapshots[key] = (booked, loaded_at)

    def invalidate(self, resource_id: Optional[str] = None, on: Optional[date] = None) -> None:
        with self._lock:
            self._epoch += 1
            if resource_id is None and on is None:
                self._snapshots.clear()
                self._generations.clear()
            else:
                for key in list(self._snapshots):
                    if (resource_id is None or key[0] == resource_id) and (on is None or key[1] == on):
                        del self._snapshots[key]
        logger.debug("Invalidated availability snapshots (resource=%s, date=%s)", resource_id, on)
