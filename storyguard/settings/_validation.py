"""Validation functions for Settings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from storyguard.utils.exceptions import InvalidDatabaseNameError
from storyguard.utils.validation import (
    validate_database_name,
    validate_in_range,
    validate_string_in_choices,
)

if TYPE_CHECKING:
    from storyguard.settings._settings import Settings

logger = logging.getLogger(__name__)

LOG_LEVELS: dict[str, str] = {
    "DEBUG": "Debug",
    "INFO": "Info",
    "WARNING": "Warning",
    "ERROR": "Error",
}

DEFAULT_BACKUP_INTERVAL = 30  # minutes
MAX_BACKUP_INTERVAL = 24 * 60


def validate(settings: Settings) -> bool:
    """Validate all settings fields.

    Returns:
        True if any settings were corrected in place (e.g. a bad backup
        interval reset to the default), False otherwise.

    Raises:
        ValueError: If any field contains an invalid value.
        TypeError: If a numeric field holds a non-numeric value.
    """
    validate_string_in_choices(settings.log_level, "log_level", list(LOG_LEVELS))
    _validate_directories(settings)
    _validate_database_name(settings)
    changed = _validate_backup_interval(settings)
    validate_in_range(settings.backup_cooldown_seconds, "backup_cooldown_seconds", 0, 3600)
    validate_in_range(settings.backup_retention, "backup_retention", 0, 1000)
    validate_in_range(settings.recent_activity_limit, "recent_activity_limit", 1, 500)
    validate_in_range(settings.min_mentions, "min_mentions", 1, 100)
    return changed


def _validate_directories(settings: Settings) -> None:
    """Validate directory settings are strings (empty means built-in default)."""
    for name in ("database_directory", "backup_directory", "exports_directory"):
        value = getattr(settings, name)
        if not isinstance(value, str):
            raise ValueError(f"{name} must be a string, got {type(value).__name__}")


def _validate_database_name(settings: Settings) -> None:
    """Validate current_database_name with the same rules as new databases.

    An empty name is allowed and means the Default database.
    """
    name = settings.current_database_name
    if not isinstance(name, str):
        raise ValueError(f"current_database_name must be a string, got {type(name).__name__}")
    if not name:
        return
    try:
        validate_database_name(name)
    except InvalidDatabaseNameError as e:
        raise ValueError(f"current_database_name is not usable: {e}") from e


def _validate_backup_interval(settings: Settings) -> bool:
    """Reset a missing or sub-minute backup interval to the default.

    Raises:
        ValueError: If the interval exceeds one day.
    """
    interval = settings.backup_interval
    if isinstance(interval, bool) or not isinstance(interval, int) or interval < 1:
        logger.warning(
            "Invalid backup_interval %r, using default of %d minutes",
            interval,
            DEFAULT_BACKUP_INTERVAL,
        )
        settings.backup_interval = DEFAULT_BACKUP_INTERVAL
        return True
    validate_in_range(interval, "backup_interval", 1, MAX_BACKUP_INTERVAL)
    return False
