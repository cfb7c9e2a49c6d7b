"""Backup service - snapshots of story databases with checksums.

A backup is a single JSON file holding the whole database in file format,
a ``metadata`` block describing the backup and a ``checksum`` of the entity
payload. Backups are written next to the databases (``backup_directory``
is resolved against the database folder when relative).
"""

import json
import logging
import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from storyguard.memory.entities import StoryDatabase
from storyguard.services.database_service import DatabaseService
from storyguard.utils.exceptions import BackupError
from storyguard.utils.file_io import atomic_write_json, canonical_digest, read_json_file
from storyguard.utils.validation import validate_path_inside, validate_string_in_choices

logger = logging.getLogger(__name__)

# Major database version understood by this release
SUPPORTED_MAJOR_VERSION = 2

BACKUP_TYPES = ("manual", "auto", "export")

# Keys that describe the backup rather than the database
_ENVELOPE_KEYS = frozenset({"metadata", "checksum"})

_TIMESTAMP_FORMAT = "%Y-%m-%d_%H-%M-%S"
_BACKUP_NAME_RE = re.compile(
    r"^(?P<database>.+)_backup_(?P<stamp>\d{4}-\d{2}-\d{2}_\d{2}-\d{2}-\d{2})(?:_\d+)?\.json$"
)


def payload_checksum(data: dict[str, Any]) -> str:
    """Return the checksum of a snapshot, ignoring the backup envelope."""
    return canonical_digest({k: v for k, v in data.items() if k not in _ENVELOPE_KEYS})


@dataclass
class BackupVerificationResult:
    """Result of verifying a backup's integrity."""

    valid: bool
    checksum_valid: bool = False
    json_parseable: bool = True
    content_valid: bool = True
    version_compatible: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


class BackupVerifier:
    """Verifies backup file integrity before restoration."""

    def verify(self, backup_path: Path) -> BackupVerificationResult:
        """Verify a backup file's integrity.

        Performs the following checks:
        1. JSON parseability (file holds a JSON object)
        2. Checksum verification (sha256 of the payload matches, if present)
        3. Content validity (payload loads as a database)
        4. Version compatibility (major version is supported)

        Args:
            backup_path: Path to the backup file.

        Returns:
            BackupVerificationResult with detailed check results.
        """
        result = BackupVerificationResult(valid=True)

        if not backup_path.is_file():
            result.valid = False
            result.errors.append(f"Backup file not found: {backup_path}")
            return result

        data = self._check_json_parseability(backup_path, result)
        if data is None:
            result.valid = False
            return result

        self._check_metadata(data, result)
        self._check_checksum(data, result)
        self._check_content(data, result)
        self._check_version_compatibility(data, result)

        result.valid = (
            result.json_parseable and result.content_valid and result.version_compatible
        )
        # A checksum that is present but wrong means the file was altered
        if "checksum" in data and not result.checksum_valid:
            result.valid = False

        if result.valid:
            logger.info("Backup verification passed: %s", backup_path.name)
        else:
            logger.warning(
                "Backup verification failed: %s - Errors: %s", backup_path.name, result.errors
            )
        return result

    def _check_json_parseability(
        self, backup_path: Path, result: BackupVerificationResult
    ) -> dict[str, Any] | None:
        """Read the file and check it holds a JSON object."""
        try:
            data = read_json_file(backup_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            result.json_parseable = False
            result.errors.append(f"Invalid JSON: {e}")
            return None
        except OSError as e:
            result.json_parseable = False
            result.errors.append(f"Cannot read backup: {e}")
            return None
        if not isinstance(data, dict):
            result.json_parseable = False
            result.errors.append(f"Backup must be a JSON object, got {type(data).__name__}")
            return None
        return data

    def _check_metadata(self, data: dict[str, Any], result: BackupVerificationResult) -> None:
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            result.warnings.append("Backup has no metadata block")
        elif not metadata.get("databaseName"):
            result.warnings.append("Backup metadata does not name its database")

    def _check_checksum(self, data: dict[str, Any], result: BackupVerificationResult) -> None:
        expected = data.get("checksum")
        if not expected:
            result.warnings.append("Backup has no checksum; integrity cannot be confirmed")
            return
        actual = payload_checksum(data)
        result.checksum_valid = actual == expected
        if not result.checksum_valid:
            result.errors.append(
                f"Checksum mismatch: expected {str(expected)[:12]}..., got {actual[:12]}..."
            )

    def _check_content(self, data: dict[str, Any], result: BackupVerificationResult) -> None:
        if "characters" not in data:
            result.content_valid = False
            result.errors.append("Backup is missing the characters list")
            return
        try:
            StoryDatabase.from_json_dict(data)
        except PydanticValidationError as e:
            result.content_valid = False
            result.errors.append(
                f"Backup content is not a valid database: {e.error_count()} errors"
            )

    def _check_version_compatibility(
        self, data: dict[str, Any], result: BackupVerificationResult
    ) -> None:
        version = str(data.get("version", "")).strip()
        if not version:
            result.warnings.append("Backup has no version; assuming it is compatible")
            return
        try:
            major = int(version.split(".")[0])
        except ValueError:
            result.version_compatible = False
            result.errors.append(f"Invalid database version in backup: {version!r}")
            return
        if major > SUPPORTED_MAJOR_VERSION:
            result.version_compatible = False
            result.errors.append(
                f"Backup version {version} is newer than supported version "
                f"{SUPPORTED_MAJOR_VERSION}.x"
            )
        elif major < SUPPORTED_MAJOR_VERSION:
            result.warnings.append(f"Backup was written by an older release ({version})")


@dataclass
class BackupInfo:
    """Information about a backup."""

    filename: str
    path: Path
    database_name: str
    created_at: datetime
    backup_type: str
    size_bytes: int
    counts: dict[str, int] = field(default_factory=dict)


def _parse_backup_name(filename: str) -> tuple[str, datetime] | None:
    match = _BACKUP_NAME_RE.match(filename)
    if match is None:
        return None
    try:
        created_at = datetime.strptime(match.group("stamp"), _TIMESTAMP_FORMAT)
    except ValueError:
        return None
    return match.group("database"), created_at


class BackupService:
    """Database backup and restore operations."""

    def __init__(self, database: DatabaseService):
        """Initialize backup service.

        Args:
            database: Service owning the open database.
        """
        self.database = database
        self.settings = database.settings
        self._lock = threading.Lock()
        self._last_backup_at: float | None = None
        logger.debug("BackupService initialized")

    @property
    def backup_directory(self) -> Path:
        """Folder holding backup files, created when missing."""
        backup_dir = self.settings.get_backup_directory()
        backup_dir.mkdir(parents=True, exist_ok=True)
        return backup_dir

    def get_backup_path(self, backup_filename: str) -> Path:
        """Get the full path to a backup file.

        Raises:
            BackupError: If the filename would point outside the backup folder.
        """
        if (
            not backup_filename
            or ".." in backup_filename
            or "/" in backup_filename
            or "\\" in backup_filename
        ):
            raise BackupError(f"Invalid backup filename: {backup_filename!r}")
        backup_dir = self.backup_directory
        try:
            return validate_path_inside(backup_dir / backup_filename, backup_dir)
        except ValueError as e:
            raise BackupError(str(e)) from e

    def _in_cooldown(self) -> bool:
        if self._last_backup_at is None:
            return False
        return time.monotonic() - self._last_backup_at < self.settings.backup_cooldown_seconds

    def _unique_path(self, database_name: str, created_at: datetime) -> Path:
        stem = f"{database_name}_backup_{created_at.strftime(_TIMESTAMP_FORMAT)}"
        path = self.get_backup_path(f"{stem}.json")
        counter = 1
        while path.exists():
            path = self.get_backup_path(f"{stem}_{counter}.json")
            counter += 1
        return path

    def create_backup(self, backup_type: str = "manual", force: bool = False) -> Path | None:
        """Create a backup of the current database.

        Args:
            backup_type: "manual", "auto" or "export"; stored in the metadata.
            force: Ignore the cooldown between backups.

        Returns:
            Path to the created backup, or None when skipped by the cooldown.

        Raises:
            BackupError: If the backup file cannot be written.
        """
        try:
            validate_string_in_choices(backup_type, "backup_type", list(BACKUP_TYPES))
        except (TypeError, ValueError) as e:
            raise BackupError(f"Unknown backup type {backup_type!r}: {e}") from e

        with self._lock:
            if not force and self._in_cooldown():
                logger.info(
                    "Skipping %s backup: last backup was less than %ds ago",
                    backup_type,
                    self.settings.backup_cooldown_seconds,
                )
                return None

            database_name = self.database.current_name
            logger.info("Creating %s backup for database: %s", backup_type, database_name)
            data = self.database.snapshot()
            created_at = datetime.now()
            data["metadata"] = {
                "databaseName": database_name,
                "backupTime": created_at.isoformat(),
                "backupType": backup_type,
            }
            data["checksum"] = payload_checksum(data)

            backup_path = self._unique_path(database_name, created_at)
            try:
                atomic_write_json(backup_path, data)
            except OSError as e:
                raise BackupError(f"Could not write backup {backup_path.name}: {e}") from e
            self._last_backup_at = time.monotonic()

        logger.info("Backup created: %s (%d bytes)", backup_path, backup_path.stat().st_size)
        self.prune_backups(database_name)
        return backup_path

    def prune_backups(self, database_name: str) -> int:
        """Delete the oldest backups of a database beyond ``backup_retention``.

        Returns:
            Number of backups deleted.
        """
        retention = self.settings.backup_retention
        if retention <= 0:
            return 0
        backups = self.list_backups(database_name)
        deleted = 0
        for info in backups[retention:]:
            try:
                info.path.unlink()
                deleted += 1
                logger.debug("Pruned old backup %s", info.filename)
            except OSError as e:
                logger.warning("Could not delete old backup %s: %s", info.filename, e)
        if deleted:
            logger.info("Pruned %d old backups of %s", deleted, database_name)
        return deleted

    def list_backups(self, database_name: str | None = None) -> list[BackupInfo]:
        """List available backups.

        Args:
            database_name: Only list backups of this database (case-insensitive).

        Returns:
            List of BackupInfo objects sorted by created_at descending.
        """
        logger.debug("Listing available backups")
        backups: list[BackupInfo] = []
        backup_dir = self.settings.get_backup_directory()
        if not backup_dir.is_dir():
            return backups

        for backup_file in backup_dir.glob("*_backup_*.json"):
            parsed = _parse_backup_name(backup_file.name)
            if parsed is None:
                logger.debug("Skipping %s: not a backup filename", backup_file.name)
                continue
            name_from_file, created_at = parsed
            try:
                data = read_json_file(backup_file)
            except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
                logger.warning("Could not read backup file %s: %s", backup_file.name, e)
                continue
            if not isinstance(data, dict):
                logger.warning("Backup %s is not a JSON object, skipping", backup_file.name)
                continue

            metadata = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
            db_name = metadata.get("databaseName") or name_from_file
            if database_name and db_name.lower() != database_name.lower():
                continue
            backup_time = metadata.get("backupTime")
            if backup_time:
                try:
                    created_at = datetime.fromisoformat(backup_time)
                except (TypeError, ValueError):
                    logger.debug("Bad backupTime in %s, using filename", backup_file.name)

            backups.append(
                BackupInfo(
                    filename=backup_file.name,
                    path=backup_file,
                    database_name=db_name,
                    created_at=created_at,
                    backup_type=metadata.get("backupType", "manual"),
                    size_bytes=backup_file.stat().st_size,
                    counts={
                        key: len(data[key])
                        for key in ("characters", "locations", "plots", "worldElements")
                        if isinstance(data.get(key), list)
                    },
                )
            )

        backups.sort(key=lambda b: (b.created_at, b.filename), reverse=True)
        logger.debug("Found %d backups", len(backups))
        return backups

    def verify_backup(self, backup_filename: str) -> BackupVerificationResult:
        """Check a backup's checksum, content and version."""
        return BackupVerifier().verify(self.get_backup_path(backup_filename))

    def restore_backup(self, backup_filename: str, as_new_name: str | None = None) -> str:
        """Restore a database from a backup.

        Args:
            backup_filename: Name of the backup file.
            as_new_name: Restore into a new database with this name and open it.
                When omitted, the current database is replaced.

        Returns:
            Name of the database holding the restored content.

        Raises:
            BackupError: If the backup is missing, corrupt or fails its checksum.
            DatabaseExistsError: If *as_new_name* is already taken.
        """
        logger.info("Restoring backup: %s", backup_filename)
        backup_path = self.get_backup_path(backup_filename)
        if not backup_path.is_file():
            raise BackupError(f"Backup not found: {backup_filename}")

        result = BackupVerifier().verify(backup_path)
        if not result.valid:
            error_summary = "; ".join(result.errors[:3])
            if len(result.errors) > 3:
                error_summary += f" (+{len(result.errors) - 3} more errors)"
            raise BackupError(f"Backup verification failed: {error_summary}")

        data = read_json_file(backup_path)
        data.pop("checksum", None)
        data["metadata"] = None
        restored = StoryDatabase.from_json_dict(data)

        if as_new_name:
            self.database.create_database(as_new_name, restored)
            self.database.open_database(as_new_name)
            target = as_new_name
        else:
            target = self.database.current_name
            self.database.replace_current(restored)

        logger.info("Backup %s restored into database %s", backup_filename, target)
        return target

    def delete_backup(self, backup_filename: str) -> bool:
        """Delete a backup file.

        Returns:
            True if deleted successfully, False if backup not found.
        """
        logger.info("Deleting backup: %s", backup_filename)
        backup_path = self.get_backup_path(backup_filename)
        if not backup_path.exists():
            logger.warning("Backup file not found: %s", backup_filename)
            return False
        backup_path.unlink()
        logger.info("Deleted backup: %s", backup_filename)
        return True
