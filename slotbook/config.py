# slotbook/config.py

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from slotbook.database import DEFAULT_DATABASE_URL


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL

    # Max simultaneous Scheduled bookings per requester (overridable per requester row).
    requester_cap: int = 3

    # How long reserve/cancel wait for a slot lock before giving up with LockTimeoutError.
    lock_timeout_seconds: float = 5.0

    # Upper bound on how stale an availability snapshot may be.
    snapshot_ttl_seconds: float = 2.0

    # reserve_with_retry: attempts on LockTimeoutError only.
    reserve_retry_attempts: int = 3

    log_level: str = "INFO"


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name, str(default)).strip()
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected an integer.") from e
    if value < minimum:
        raise RuntimeError(f"{name} must be >= {minimum}")
    return value


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, str(default)).strip()
    try:
        return float(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected a number.") from e


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in the working directory; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    lock_timeout_seconds = _float_env("SLOTBOOK_LOCK_TIMEOUT_SECONDS", 5.0)
    if lock_timeout_seconds <= 0:
        raise RuntimeError("SLOTBOOK_LOCK_TIMEOUT_SECONDS must be > 0")

    snapshot_ttl_seconds = _float_env("SLOTBOOK_SNAPSHOT_TTL_SECONDS", 2.0)
    if snapshot_ttl_seconds < 0:
        raise RuntimeError("SLOTBOOK_SNAPSHOT_TTL_SECONDS must be >= 0")

    return Settings(
        database_url=os.getenv("SLOTBOOK_DATABASE_URL", DEFAULT_DATABASE_URL),
        requester_cap=_int_env("SLOTBOOK_REQUESTER_CAP", 3, minimum=1),
        lock_timeout_seconds=lock_timeout_seconds,
        snapshot_ttl_seconds=snapshot_ttl_seconds,
        reserve_retry_attempts=_int_env("SLOTBOOK_RESERVE_RETRY_ATTEMPTS", 3, minimum=1),
        log_level=os.getenv("SLOTBOOK_LOG_LEVEL", "INFO").strip().upper() or "INFO",
    )
