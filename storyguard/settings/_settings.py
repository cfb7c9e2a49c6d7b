"""Main Settings dataclass for StoryGuard.

Settings are stored in settings.json next to the package and can be changed
from the command line or by editing the file.
"""

from __future__ import annotations

import copy
import json
import logging
import shutil
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, ClassVar

from storyguard.settings import _validation as _validation_mod
from storyguard.settings._backup import (
    _create_settings_backup,
    _log_settings_changes,
    _recover_from_backup,
)
from storyguard.settings._paths import DATABASES_DIR, EXPORTS_DIR, SETTINGS_FILE
from storyguard.utils.file_io import atomic_write_json as _atomic_write_json

logger = logging.getLogger(__name__)


def _merge_with_defaults(data: dict[str, Any], settings_cls: type[Settings]) -> bool:
    """Merge loaded JSON data with dataclass defaults.

    Adds missing keys with their default values and drops keys that no
    longer exist on the dataclass. Modifies *data* in place.

    Returns:
        True if any changes were made, False otherwise.
    """
    defaults = asdict(settings_cls())
    known_fields = {f.name for f in fields(settings_cls)}
    changed = False

    for key in list(data):
        if key not in known_fields:
            logger.info("Removing obsolete setting: %s", key)
            del data[key]
            changed = True

    for key in sorted(known_fields):
        if key not in data:
            logger.info("Adding new setting with default: %s", key)
            data[key] = defaults[key]
            changed = True

    return changed


@dataclass
class Settings:
    """Application settings."""

    # Storage locations (empty string means the built-in output/ directories)
    database_directory: str = ""
    backup_directory: str = "backup"  # Relative paths resolve inside database_directory
    exports_directory: str = ""
    current_database_name: str = "Default"

    # Persistence
    auto_save: bool = True

    # Auto-backup
    enable_auto_backup: bool = False
    backup_interval: int = 30  # Minutes between automatic backups
    backup_cooldown_seconds: int = 10  # Backups closer together than this are skipped
    backup_retention: int = 20  # Backups kept per database, 0 = unlimited

    # Dashboard
    recent_activity_limit: int = 20

    # Book analysis
    min_mentions: int = 3

    # Logging
    log_level: str = "INFO"

    def get_database_directory(self) -> Path:
        """Return the folder holding database files."""
        if self.database_directory:
            return Path(self.database_directory).expanduser()
        return DATABASES_DIR

    def get_backup_directory(self) -> Path:
        """Return the backup folder, resolving relative paths against the database folder."""
        backup_dir = Path(self.backup_directory or "backup").expanduser()
        if not backup_dir.is_absolute():
            backup_dir = self.get_database_directory() / backup_dir
        return backup_dir

    def get_exports_directory(self) -> Path:
        """Return the folder for JSON exports."""
        if self.exports_directory:
            return Path(self.exports_directory).expanduser()
        return EXPORTS_DIR

    def save(self) -> None:
        """Save settings to JSON file."""
        self.validate()
        previous: dict[str, Any] = {}
        if SETTINGS_FILE.exists():
            try:
                with open(SETTINGS_FILE, encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    previous = loaded
            except (OSError, json.JSONDecodeError) as e:
                logger.debug("Could not read previous settings for change log: %s", e)
        data = asdict(self)
        _log_settings_changes(previous, data, "save")
        SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
        _create_settings_backup(SETTINGS_FILE)
        _atomic_write_json(SETTINGS_FILE, data)

    def validate(self) -> bool:
        """Validate all settings fields. Delegates to _validation module.

        Returns:
            True if any settings were corrected during validation, False otherwise.

        Raises:
            ValueError: If any field contains an invalid value.
        """
        return _validation_mod.validate(self)

    # Class-level cache for settings (speeds up repeated load() calls)
    _cached_instance: ClassVar[Settings | None] = None

    @classmethod
    def load(cls, use_cache: bool = True) -> Settings:
        """Load settings from JSON file, or create defaults.

        New settings get default values and removed settings are cleaned up.
        A corrupt file is kept aside as settings.json.corrupt and the
        settings.json.bak copy is used instead when available.

        Args:
            use_cache: If True, return cached instance if available. Set to False
                to force reload from disk.

        Returns:
            Settings instance.
        """
        if use_cache and cls._cached_instance is not None:
            return cls._cached_instance

        data: dict[str, Any] = {}
        if SETTINGS_FILE.exists():
            try:
                with open(SETTINGS_FILE, encoding="utf-8") as f:
                    loaded = json.load(f)
                if isinstance(loaded, dict):
                    data = loaded
                else:
                    logger.error(
                        "Corrupted settings file (expected JSON object, got %s)",
                        type(loaded).__name__,
                    )
                    cls._keep_corrupt_copy()
            except json.JSONDecodeError as e:
                logger.error("Corrupted settings file (invalid JSON): %s", e)
                cls._keep_corrupt_copy()
            except OSError as e:
                logger.error("Cannot read settings file: %s", e)

        loaded_from_file = bool(data)
        recovered_from_backup = False
        if not data:
            recovered = _recover_from_backup(SETTINGS_FILE)
            if recovered is not None:
                data = recovered
                loaded_from_file = True
                recovered_from_backup = True
            else:
                logger.info("No stored settings found, using defaults")

        original_data = copy.deepcopy(data)
        changed = _merge_with_defaults(data, cls)

        try:
            settings = cls(**data)
            changed = settings.validate() or changed
        except TypeError as e:
            raise ValueError(f"A setting has an invalid type: {e}") from e

        final_data = asdict(settings)
        _log_settings_changes(original_data, final_data, "load")

        if changed or not loaded_from_file or recovered_from_backup:
            try:
                SETTINGS_FILE.parent.mkdir(parents=True, exist_ok=True)
                if loaded_from_file and not recovered_from_backup:
                    _create_settings_backup(SETTINGS_FILE)
                _atomic_write_json(SETTINGS_FILE, final_data)
            except OSError as write_err:
                logger.warning(
                    "Could not persist settings to disk: %s - changes will not survive restart",
                    write_err,
                )

        cls._cached_instance = settings
        return settings

    @staticmethod
    def _keep_corrupt_copy() -> None:
        corrupt_path = SETTINGS_FILE.with_suffix(".json.corrupt")
        try:
            shutil.copy(SETTINGS_FILE, corrupt_path)
            logger.info("Backed up corrupted settings to %s", corrupt_path)
        except OSError as copy_err:
            logger.warning("Failed to backup corrupted settings: %s", copy_err)

    @classmethod
    def clear_cache(cls) -> None:
        """Clear the cached settings instance.

        Use this in tests that need to verify settings loading behavior,
        or after programmatically modifying settings files.
        """
        cls._cached_instance = None
