"""Safety net for settings persistence.

Provides:
- A known-good copy (settings.json.bak) taken before every write
- Recovery from that copy when the primary file is unusable
- Per-key change logging when settings are loaded or saved
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _backup_path(settings_path: Path) -> Path:
    return settings_path.with_suffix(".json.bak")


def _read_json_object(path: Path) -> dict[str, Any] | None:
    """Read *path* and return its JSON object, or None when unusable."""
    if not path.exists() or path.stat().st_size == 0:
        return None
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        logger.warning("%s holds %s instead of a JSON object", path, type(data).__name__)
        return None
    return data


def _create_settings_backup(settings_path: Path) -> bool:
    """Copy the settings file to settings.json.bak before it is overwritten.

    A missing, empty or corrupt primary file is never copied, so a good
    backup cannot be replaced with bad data. Failures are logged only.

    Args:
        settings_path: Path to the primary settings file.

    Returns:
        True if a backup was written, False otherwise.
    """
    try:
        if _read_json_object(settings_path) is None:
            logger.debug("Nothing usable to back up at %s", settings_path)
            return False
        shutil.copy2(settings_path, _backup_path(settings_path))
        logger.debug("Created settings backup at %s", _backup_path(settings_path))
        return True
    except json.JSONDecodeError:
        logger.warning("Settings file contains invalid JSON, skipping backup")
        return False
    except OSError as e:
        logger.warning("Failed to create settings backup: %s", e)
        return False


def _recover_from_backup(settings_path: Path) -> dict[str, Any] | None:
    """Load settings from settings.json.bak.

    Args:
        settings_path: Path to the primary settings file.

    Returns:
        The recovered settings dict, or None if there is no usable backup.
    """
    backup = _backup_path(settings_path)
    try:
        data = _read_json_object(backup)
    except json.JSONDecodeError as e:
        logger.error("Settings backup %s is corrupted: %s", backup, e)
        return None
    except OSError as e:
        logger.error("Cannot read settings backup %s: %s", backup, e)
        return None
    if data is None:
        logger.debug("No usable settings backup at %s", backup)
        return None
    logger.info("Recovered %d settings from %s", len(data), backup)
    return data


def _log_settings_changes(original: dict[str, Any], final: dict[str, Any], label: str) -> int:
    """Log each key that was added, removed or changed between two snapshots.

    Args:
        original: Settings dict before the operation.
        final: Settings dict after the operation.
        label: Short label for the log lines (e.g. "load", "save").

    Returns:
        Number of changes found.
    """
    changes = 0
    for key in sorted(set(original) | set(final)):
        if key not in original:
            logger.info("[%s] added %s = %r", label, key, final[key])
        elif key not in final:
            logger.info("[%s] removed %s (was %r)", label, key, original[key])
        elif original[key] != final[key]:
            logger.info("[%s] changed %s: %r -> %r", label, key, original[key], final[key])
        else:
            continue
        changes += 1

    if changes:
        logger.info("[%s] total changes: %d", label, changes)
    else:
        logger.debug("[%s] no changes detected", label)
    return changes
