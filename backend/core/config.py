import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import List, Optional

from .errors import ConfigurationError

ENVIRONMENTS = ("development", "test", "production")

# Per-environment defaults for tunables; anything set in the environment wins.
_ENV_DEFAULTS = {
    "development": {"batch_size": 10, "log_level": "DEBUG"},
    "test": {"batch_size": 5, "log_level": "WARNING"},
    "production": {"batch_size": 50, "log_level": "INFO"},
}

_DEV_AUTH_SECRET = "player-tracker-dev-secret"


def _default_database_url(env: str) -> str:
    if env == "test":
        return "sqlite+aiosqlite:///:memory:"
    return "sqlite+aiosqlite:///./player_tracker.db"


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace(",", "").strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _get_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Application settings loaded from environment variables with safe defaults."""

    app_name: str = "Player Tracker"
    env: str = "development"
    database_url: str = ""  # set from from_env
    log_level: str = "INFO"

    auth_secret: str = _DEV_AUTH_SECRET
    auth_token_ttl_minutes: int = 720
    password_min_length: int = 8
    admin_username: Optional[str] = None
    admin_password: Optional[str] = None

    batch_size: int = 20
    realm_power_floor: int = 10_000_000
    realm_cutoff_days: int = 7
    inactivity_merit_threshold: int = 10_000
    inactivity_kill_threshold: int = 10_000
    managed_alliances: List[str] = field(default_factory=lambda: ["PLAC", "FLAs", "Plaf"])
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables.

        Raises ConfigurationError for an unknown ENV, malformed integers, or a
        production environment without AUTH_SECRET.
        """
        env = os.getenv("ENV", cls.env).strip().lower()
        if env not in ENVIRONMENTS:
            raise ConfigurationError(
                f"ENV must be one of {', '.join(ENVIRONMENTS)}, got {env!r}"
            )
        env_defaults = _ENV_DEFAULTS[env]

        auth_secret = os.getenv("AUTH_SECRET")
        if not auth_secret:
            if env == "production":
                raise ConfigurationError("AUTH_SECRET is required in production")
            auth_secret = _DEV_AUTH_SECRET

        batch_size = _get_int("DB_BATCH_SIZE", env_defaults["batch_size"])
        if not 1 <= batch_size <= 1000:
            raise ConfigurationError("DB_BATCH_SIZE must be between 1 and 1000")

        return cls(
            app_name=os.getenv("APP_NAME", cls.app_name),
            env=env,
            database_url=os.getenv("DATABASE_URL") or _default_database_url(env),
            log_level=os.getenv("LOG_LEVEL", env_defaults["log_level"]),
            auth_secret=auth_secret,
            auth_token_ttl_minutes=_get_int("AUTH_TOKEN_TTL_MINUTES", cls.auth_token_ttl_minutes),
            password_min_length=_get_int("PASSWORD_MIN_LENGTH", cls.password_min_length),
            admin_username=os.getenv("ADMIN_USERNAME") or None,
            admin_password=os.getenv("ADMIN_PASSWORD") or None,
            batch_size=batch_size,
            realm_power_floor=_get_int("REALM_POWER_FLOOR", cls.realm_power_floor),
            realm_cutoff_days=_get_int("REALM_CUTOFF_DAYS", cls.realm_cutoff_days),
            inactivity_merit_threshold=_get_int(
                "INACTIVITY_MERIT_THRESHOLD", cls.inactivity_merit_threshold
            ),
            inactivity_kill_threshold=_get_int(
                "INACTIVITY_KILL_THRESHOLD", cls.inactivity_kill_threshold
            ),
            managed_alliances=_get_list("MANAGED_ALLIANCES", ["PLAC", "FLAs", "Plaf"]),
            cors_origins=_get_list(
                "CORS_ORIGINS", ["http://localhost:3000", "http://127.0.0.1:3000"]
            ),
        )


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings.from_env()
