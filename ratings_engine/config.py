"""
Configuration settings for the ratings engine.

Values come from environment variables (a local .env file is loaded first),
optionally overlaid on top of a YAML file named by RATINGS_CONFIG.
Environment variables always win over the YAML file.
"""

import logging
import os
from dataclasses import dataclass, fields
from functools import lru_cache
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from ratings_engine.utilities.common import load_yaml_config

load_dotenv()

logger = logging.getLogger(__name__)

# Default connection parameters
DEFAULT_HOST = "localhost"
DEFAULT_PORT = "5432"
DEFAULT_DB = "teacher_ratings"
DEFAULT_USER = os.getenv("USER", "postgres")

# Minimum weekly sample before an average is shown
DEFAULT_MIN_WEEKLY_RATINGS = 3


@dataclass(frozen=True)
class Settings:
    """Runtime settings. Field names double as YAML keys."""

    database_url: Optional[str] = None
    timezone: str = "UTC"
    min_weekly_ratings: int = DEFAULT_MIN_WEEKLY_RATINGS
    default_leaderboard_limit: int = 10
    max_leaderboard_limit: int = 100
    max_submitter_id_length: int = 255
    log_level: str = "INFO"

    def __post_init__(self):
        if self.min_weekly_ratings < 1:
            raise ValueError(f"min_weekly_ratings must be >= 1, got {self.min_weekly_ratings}")
        if not (1 <= self.default_leaderboard_limit <= self.max_leaderboard_limit):
            raise ValueError(
                "default_leaderboard_limit must be between 1 and max_leaderboard_limit "
                f"({self.default_leaderboard_limit} / {self.max_leaderboard_limit})"
            )
        if self.max_submitter_id_length < 1:
            raise ValueError("max_submitter_id_length must be positive")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {self.timezone}")

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


# Env var name -> (setting name, converter)
_ENV_OVERRIDES = {
    "DATABASE_URL": ("database_url", str),
    "RATINGS_TIMEZONE": ("timezone", str),
    "MIN_WEEKLY_RATINGS": ("min_weekly_ratings", int),
    "DEFAULT_LEADERBOARD_LIMIT": ("default_leaderboard_limit", int),
    "MAX_LEADERBOARD_LIMIT": ("max_leaderboard_limit", int),
    "MAX_SUBMITTER_ID_LENGTH": ("max_submitter_id_length", int),
    "LOG_LEVEL": ("log_level", str),
}

# Setting name -> converter, shared by env vars and YAML values
_CONVERTERS = {setting: convert for setting, convert in _ENV_OVERRIDES.values()}


def _convert_yaml_value(key: str, value, config_path: str):
    convert = _CONVERTERS[key]
    # YAML booleans are never valid; counts must be integers or numeric strings
    if isinstance(value, bool) or (convert is int and not isinstance(value, (int, str))):
        raise ValueError(f"Invalid value for '{key}' in {config_path}: {value!r}")
    try:
        return convert(value)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid value for '{key}' in {config_path}: {value!r}")


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Build Settings from an optional YAML file plus environment variables.

    Args:
        config_path: YAML file path (defaults to the RATINGS_CONFIG env var)

    Returns:
        Settings instance

    Raises:
        ValueError: If a value cannot be converted or fails validation
    """
    values = {}
    known = {f.name for f in fields(Settings)}

    config_path = config_path or os.getenv("RATINGS_CONFIG")
    if config_path:
        for key, value in load_yaml_config(config_path).items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key '{key}' in {config_path}")
                continue
            if value is None:
                continue
            values[key] = _convert_yaml_value(key, value, config_path)

    for env_name, (setting, convert) in _ENV_OVERRIDES.items():
        raw = os.getenv(env_name)
        if raw is None or raw == "":
            continue
        try:
            values[setting] = convert(raw)
        except ValueError:
            raise ValueError(f"Invalid value for {env_name}: {raw!r}")

    return Settings(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once."""
    return load_settings()


def get_database_url(settings: Optional[Settings] = None) -> str:
    """
    Get the database connection URL.

    Priority:
    1. DATABASE_URL (env var or YAML database_url)
    2. Build from individual components (POSTGRES_HOST, POSTGRES_PORT, etc.)
    3. Default local development URL

    Returns:
        Database connection URL string
    """
    settings = settings or get_settings()
    if settings.database_url:
        return settings.database_url

    host = os.getenv("POSTGRES_HOST", DEFAULT_HOST)
    port = os.getenv("POSTGRES_PORT", DEFAULT_PORT)
    database = os.getenv("POSTGRES_DB", DEFAULT_DB)
    user = os.getenv("POSTGRES_USER", DEFAULT_USER)
    password = os.getenv("POSTGRES_PASSWORD", "")

    if password:
        return f"postgresql://{user}:{password}@{host}:{port}/{database}"
    else:
        return f"postgresql://{user}@{host}:{port}/{database}"
