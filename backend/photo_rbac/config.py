import logging
import os
import threading

from dotenv import load_dotenv
from pydantic import BaseModel, Field
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError


load_dotenv()

SUPPORTED_DRIVERS = ("postgresql+asyncpg", "sqlite+aiosqlite")

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean value")


def _env_int(name: str, default: int, *, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        bound = "greater than 0" if minimum == 1 else f"greater than or equal to {minimum}"
        raise ValueError(f"{name} must be {bound}")
    return value


def _check_database_url(url: str) -> None:
    if not url:
        raise ValueError("DATABASE_URL environment variable must be set")
    try:
        parsed = make_url(url)
    except ArgumentError as exc:
        raise ValueError("DATABASE_URL is not a valid database URL") from exc
    if parsed.drivername not in SUPPORTED_DRIVERS:
        raise ValueError(
            "DATABASE_URL must start with one of: "
            + ", ".join(f"'{driver}://'" for driver in SUPPORTED_DRIVERS)
        )
    if parsed.drivername == "postgresql+asyncpg" and not parsed.host:
        raise ValueError("DATABASE_URL must include hostname")


class Settings(BaseModel):
    app_name: str = Field(default="Photo RBAC")
    debug: bool = Field(default=False)
    database_url: str = Field(default="")
    # Pool sizing applies to PostgreSQL only
    db_pool_size: int = Field(default=5)
    db_max_overflow: int = Field(default=10)
    db_pool_recycle: int = Field(default=1800)
    db_pool_pre_ping: bool = Field(default=True)
    log_level: str = Field(default="INFO")
    # Take the client address from the first X-Forwarded-For hop
    trust_forwarded_for: bool = Field(default=False)

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the environment.

        Raises:
            ValueError: Naming the first missing or malformed variable
        """
        defaults = cls()

        database_url = os.getenv("DATABASE_URL", "").strip()
        _check_database_url(database_url)

        log_level = os.getenv("LOG_LEVEL", defaults.log_level).strip().upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ValueError(f"LOG_LEVEL '{log_level}' is not a logging level")

        return cls(
            app_name=os.getenv("APP_NAME", defaults.app_name),
            debug=_env_bool("DEBUG", defaults.debug),
            database_url=database_url,
            db_pool_size=_env_int("DB_POOL_SIZE", defaults.db_pool_size, minimum=1),
            db_max_overflow=_env_int("DB_MAX_OVERFLOW", defaults.db_max_overflow, minimum=0),
            db_pool_recycle=_env_int("DB_POOL_RECYCLE", defaults.db_pool_recycle, minimum=1),
            db_pool_pre_ping=_env_bool("DB_POOL_PRE_PING", defaults.db_pool_pre_ping),
            log_level=log_level,
            trust_forwarded_for=_env_bool("TRUST_FORWARDED_FOR", defaults.trust_forwarded_for),
        )


_settings_instance: Settings | None = None
_settings_lock = threading.Lock()


def get_settings() -> Settings:
    """Settings for this process, read from the environment once.

    Raises:
        ValueError: If required environment variables are missing or invalid
    """
    global _settings_instance

    if _settings_instance is None:
        with _settings_lock:
            if _settings_instance is None:
                _settings_instance = Settings.from_env()
    return _settings_instance


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings_instance
    with _settings_lock:
        _settings_instance = None


class _LazySettings:
    def __getattr__(self, name: str):
        return getattr(get_settings(), name)


settings = _LazySettings()  # type: ignore[assignment]
