from __future__ import annotations

import pytest

from slotbook.config import load_settings

_ENV_VARS = (
    "SLOTBOOK_DATABASE_URL",
    "SLOTBOOK_REQUESTER_CAP",
    "SLOTBOOK_LOCK_TIMEOUT_SECONDS",
    "SLOTBOOK_SNAPSHOT_TTL_SECONDS",
    "SLOTBOOK_RESERVE_RETRY_ATTEMPTS",
    "SLOTBOOK_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so monkeypatch also removes whatever load_dotenv writes during the test.
    for name in _ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_load_settings_defaults(tmp_path) -> None:
    settings = load_settings(dotenv_path=str(tmp_path / "missing.env"))

    assert settings.database_url == "sqlite:///./slotbook.db"
    assert settings.requester_cap == 3
    assert settings.lock_timeout_seconds == 5.0
    assert settings.snapshot_ttl_seconds == 2.0
    assert settings.reserve_retry_attempts == 3
    assert settings.log_level == "INFO"


def test_load_settings_reads_environment(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("SLOTBOOK_DATABASE_URL", "sqlite:///tmp/x.db")
    monkeypatch.setenv("SLOTBOOK_REQUESTER_CAP", "5")
    monkeypatch.setenv("SLOTBOOK_LOCK_TIMEOUT_SECONDS", "0.5")
    monkeypatch.setenv("SLOTBOOK_SNAPSHOT_TTL_SECONDS", "0")
    monkeypatch.setenv("SLOTBOOK_RESERVE_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("SLOTBOOK_LOG_LEVEL", "debug")

    settings = load_settings(dotenv_path=str(tmp_path / "missing.env"))

    assert settings.database_url == "sqlite:///tmp/x.db"
    assert settings.requester_cap == 5
    assert settings.lock_timeout_seconds == 0.5
    assert settings.snapshot_ttl_seconds == 0.0
    assert settings.reserve_retry_attempts == 1
    assert settings.log_level == "DEBUG"


def test_load_settings_reads_dotenv_file(tmp_path) -> None:
    dotenv = tmp_path / ".env"
    dotenv.write_text("SLOTBOOK_REQUESTER_CAP=7\n")

    assert load_settings(dotenv_path=str(dotenv)).requester_cap == 7


def test_load_settings_does_not_override_existing_env_with_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("SLOTBOOK_REQUESTER_CAP", "2")
    dotenv = tmp_path / ".env"
    dotenv.write_text("SLOTBOOK_REQUESTER_CAP=9\n")

    assert load_settings(dotenv_path=str(dotenv)).requester_cap == 2


@pytest.mark.parametrize(
    "name, value, message",
    [
        ("SLOTBOOK_REQUESTER_CAP", "abc", r"Invalid SLOTBOOK_REQUESTER_CAP"),
        ("SLOTBOOK_REQUESTER_CAP", "0", r"SLOTBOOK_REQUESTER_CAP must be >= 1"),
        ("SLOTBOOK_RESERVE_RETRY_ATTEMPTS", "0", r"SLOTBOOK_RESERVE_RETRY_ATTEMPTS must be >= 1"),
        ("SLOTBOOK_LOCK_TIMEOUT_SECONDS", "0", r"SLOTBOOK_LOCK_TIMEOUT_SECONDS must be > 0"),
        ("SLOTBOOK_LOCK_TIMEOUT_SECONDS", "soon", r"Invalid SLOTBOOK_LOCK_TIMEOUT_SECONDS"),
        ("SLOTBOOK_SNAPSHOT_TTL_SECONDS", "-1", r"SLOTBOOK_SNAPSHOT_TTL_SECONDS must be >= 0"),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch, tmp_path, name: str, value: str, message: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(RuntimeError, match=message):
        load_settings(dotenv_path=str(tmp_path / "missing.env"))
