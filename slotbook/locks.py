# slotbook/locks.py

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List

from slotbook.errors import LockTimeoutError


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class KeyedLocks:
    """One mutex per key, created on first use and dropped once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = _Entry()
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: Hashable, timeout: float) -> Iterator[None]:
        """Hold the lock for `key`; raise LockTimeoutError after `timeout` seconds."""
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=timeout):
                raise LockTimeoutError(key if isinstance(key, tuple) else (key,), timeout)
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

    def held_keys(self) -> List[Hashable]:
        with self._guard:
            return [key for key, entry in self._entries.items() if entry.lock.locked()]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
