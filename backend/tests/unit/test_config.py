"""Settings.from_env: environment defaults and misconfiguration."""

from __future__ import annotations

import pytest

from core.config import Settings
from core.errors import ConfigurationError

_VARS = (
    "ENV",
    "AUTH_SECRET",
    "DATABASE_URL",
    "DB_BATCH_SIZE",
    "LOG_LEVEL",
    "MANAGED_ALLIANCES",
    "INACTIVITY_MERIT_THRESHOLD",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize(
    "env,batch_size,log_level",
    [("development", 10, "DEBUG"), ("test", 5, "WARNING")],
)
def test_environment_defaults(monkeypatch, env, batch_size, log_level) -> None:
    monkeypatch.setenv("ENV", env)
    settings = Settings.from_env()
    assert settings.env == env
    assert settings.batch_size == batch_size
    assert settings.log_level == log_level


def test_test_environment_uses_memory_database(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "test")
    assert Settings.from_env().database_url == "sqlite+aiosqlite:///:memory:"


def test_production_requires_auth_secret(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "production")
    with pytest.raises(ConfigurationError):
        Settings.from_env()
    monkeypatch.setenv("AUTH_SECRET", "s3cret")
    settings = Settings.from_env()
    assert settings.batch_size == 50
    assert settings.auth_secret == "s3cret"


def test_unknown_environment(monkeypatch) -> None:
    monkeypatch.setenv("ENV", "staging")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_malformed_integer(monkeypatch) -> None:
    monkeypatch.setenv("DB_BATCH_SIZE", "lots")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_batch_size_range(monkeypatch) -> None:
    monkeypatch.setenv("DB_BATCH_SIZE", "0")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_overrides(monkeypatch) -> None:
    monkeypatch.setenv("MANAGED_ALLIANCES", "AAA, BBB,")
    monkeypatch.setenv("INACTIVITY_MERIT_THRESHOLD", "25,000")
    settings = Settings.from_env()
    assert settings.managed_alliances == ["AAA", "BBB"]
    assert settings.inactivity_merit_threshold == 25_000
