"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    """
    Read a comma-separated list; blank entries are dropped.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    items = tuple(item.strip() for item in raw_value.split(",") if item.strip())
    return items or default


@dataclass(frozen=True)
class AuthSettings:
    """
    Bearer token verification for the admin endpoints.
    """

    jwt_secret: str | None = None
    jwt_algorithm: str = "HS256"
    admin_roles: tuple[str, ...] = ("ADMIN",)


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Periodic discovery and metadata sync jobs.
    """

    enabled: bool = False
    discovery_day_of_week: str = "sun"
    discovery_hour: int = 3
    sync_interval_hours: int = 6


@lru_cache(maxsize=1)
def get_auth_settings() -> AuthSettings:
    """
    Return cached auth settings from environment variables.
    """

    return AuthSettings(
        jwt_secret=_get_optional_str_env("JWT_SECRET"),
        jwt_algorithm=_get_str_env("JWT_ALGORITHM", "HS256"),
        admin_roles=tuple(
            role.upper() for role in _get_csv_env("DISCOVERY_ADMIN_ROLES", ("ADMIN",))
        ),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    """
    Return cached scheduler settings from environment variables.
    """

    return SchedulerSettings(
        enabled=_get_bool_env("DISCOVERY_SCHEDULER_ENABLED", False),
        discovery_day_of_week=_get_str_env("DISCOVERY_SCHEDULE_DAY_OF_WEEK", "sun"),
        discovery_hour=min(23, max(0, _get_int_env("DISCOVERY_SCHEDULE_HOUR", 3))),
        sync_interval_hours=max(1, _get_int_env("SYNC_SCHEDULE_INTERVAL_HOURS", 6)),
    )
