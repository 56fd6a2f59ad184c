# slotbook/loader.py
"""Load resource schedules and requester policies from a JSON document.

Expected shape::

    {
      "resources": [
        {"id": "doctorA",
         "windows": [{"weekday": "monday", "start": "09:00", "end": "12:00", "slot_minutes": 20}]}
      ],
      "requesters": [{"id": "frontdesk", "booking_cap": 10, "can_override": true}]
    }
"""

import json
from dataclasses import dataclass, field
from datetime import time, timedelta
from pathlib import Path
from typing import List, Optional

from slotbook.domain import ResourceSchedule, WorkingWindow
from slotbook.store import ResourceCatalog

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


@dataclass(frozen=True)
class RequesterEntry:
    requester_id: str
    booking_cap: Optional[int] = None
    can_override: bool = False


@dataclass
class SeedData:
    resources: List[ResourceSchedule] = field(default_factory=list)
    requesters: List[RequesterEntry] = field(default_factory=list)


def _coerce_weekday(value: object) -> int:
    if isinstance(value, bool):
        raise ValueError(f"Unsupported weekday value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        name = value.strip().lower()
        for index, weekday in enumerate(WEEKDAYS):
            if name in (weekday, weekday[:3]):
                return index
    raise ValueError(f"Unsupported weekday value: {value!r}")


def _coerce_time(value: object) -> time:
    if isinstance(value, time):
        return value
    if isinstance(value, str):
        try:
            return time.fromisoformat(value.strip())
        except ValueError as exc:
            raise ValueError(f"Times must be ISO formatted (HH:MM), got {value!r}") from exc
    raise ValueError(f"Unsupported time value: {value!r}")


def _parse_window(entry: object) -> WorkingWindow:
    if not isinstance(entry, dict):
        raise ValueError("Each working window must be a dictionary.")
    try:
        return WorkingWindow(
            weekday=_coerce_weekday(entry["weekday"]),
            start=_coerce_time(entry["start"]),
            end=_coerce_time(entry["end"]),
            duration=timedelta(minutes=int(entry["slot_minutes"])),
        )
    except KeyError as exc:
        raise ValueError(f"Missing working window field: {exc.args[0]}") from exc


def _parse_resource(entry: object) -> ResourceSchedule:
    if not isinstance(entry, dict):
        raise ValueError("Each resource entry must be a dictionary.")
    if "id" not in entry:
        raise ValueError("Missing required resource field: id")
    windows = entry.get("windows", [])
    if not isinstance(windows, list):
        raise ValueError(f"Resource {entry['id']!r}: windows must be a list.")
    return ResourceSchedule(resource_id=str(entry["id"]), windows=tuple(_parse_window(w) for w in windows))


def _parse_requester(entry: object) -> RequesterEntry:
    if not isinstance(entry, dict):
        raise ValueError("Each requester entry must be a dictionary.")
    if "id" not in entry:
        raise ValueError("Missing required requester field: id")
    cap = entry.get("booking_cap")
    return RequesterEntry(
        requester_id=str(entry["id"]),
        booking_cap=int(cap) if cap is not None else None,
        can_override=bool(entry.get("can_override", False)),
    )


def parse_seed(raw: object) -> SeedData:
    if not isinstance(raw, dict):
        raise ValueError("Seed data must be a JSON object.")
    return SeedData(
        resources=[_parse_resource(e) for e in raw.get("resources", [])],
        requesters=[_parse_requester(e) for e in raw.get("requesters", [])],
    )


def load_seed_file(path: Path) -> SeedData:
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid seed data in {path}: {exc.msg}") from exc
    return parse_seed(raw)


def apply_seed(catalog: ResourceCatalog, seed: SeedData) -> None:
    for schedule in seed.resources:
        catalog.save(schedule)
    for requester in seed.requesters:
        catalog.save_requester(requester.requester_id, requester.booking_cap, requester.can_override)
