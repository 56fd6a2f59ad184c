from __future__ import annotations

from datetime import date, time, timedelta

import pytest

from slotbook.config import Settings
from slotbook.database import build_engine, build_session_factory, create_db_tables
from slotbook.domain import ResourceSchedule, Slot, WorkingWindow
from slotbook.scheduler import BookingScheduler

# 2024-01-01 is a Monday.
MONDAY = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)


def slot(start: str, end: str, *, resource_id: str = "doctorA", on: date = MONDAY) -> Slot:
    return Slot(resource_id=resource_id, date=on, start=time.fromisoformat(start), end=time.fromisoformat(end))


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'slotbook-test.db'}")
    create_db_tables(engine)
    yield build_session_factory(engine)
    engine.dispose()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="sqlite://",
        requester_cap=3,
        lock_timeout_seconds=5.0,
        snapshot_ttl_seconds=0.0,
        reserve_retry_attempts=3,
    )


@pytest.fixture
def scheduler(settings: Settings, session_factory) -> BookingScheduler:
    sched = BookingScheduler.from_settings(settings, session_factory)
    # doctorA: Mondays 09:00-10:00 in 20 minute slots, Mondays 14:00-15:00 in 30 minute slots.
    sched.catalog.save(
        ResourceSchedule(
            resource_id="doctorA",
            windows=(
                WorkingWindow(weekday=0, start=time(9), end=time(10), duration=timedelta(minutes=20)),
                WorkingWindow(weekday=0, start=time(14), end=time(15), duration=timedelta(minutes=30)),
            ),
        )
    )
    return sched
