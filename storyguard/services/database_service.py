"""Database service - named story databases stored as JSON files."""

import copy
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from storyguard.memory.entities import Activity, StoryDatabase
from storyguard.settings import Settings
from storyguard.utils.constants import (
    APP_VERSION,
    DATABASE_MARKER_KEYS,
    DEFAULT_DATABASE_NAME,
    EXCLUDED_DATABASE_FILES,
    MIN_DATABASE_FILE_SIZE,
)
from storyguard.utils.exceptions import (
    DatabaseError,
    DatabaseExistsError,
    DatabaseNotFoundError,
)
from storyguard.utils.file_io import atomic_write_json, canonical_digest, read_json_file
from storyguard.utils.validation import (
    validate_database_name,
    validate_not_none,
    validate_path_inside,
)

logger = logging.getLogger(__name__)


@dataclass
class DatabaseInfo:
    """Summary information about a database file for listing."""

    name: str
    path: Path
    size: int
    modified: datetime


def is_database_file(path: Path) -> bool:
    """Check whether *path* looks like a StoryGuard database file.

    A database file is a ``.json`` file that is not one of the tool config
    files, holds at least 50 bytes and mentions one of the database keys.
    """
    if path.suffix.lower() != ".json" or path.name.lower() in EXCLUDED_DATABASE_FILES:
        return False
    try:
        if not path.is_file() or path.stat().st_size < MIN_DATABASE_FILE_SIZE:
            return False
        text = path.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as e:
        logger.warning("Cannot inspect %s: %s", path, e)
        return False
    return any(f'"{key}"' in text for key in DATABASE_MARKER_KEYS)


class DatabaseService:
    """Owns the open database and the folder of database files.

    All reads and writes of the open database go through this service so
    the auto-backup timer thread and callers on the main thread see a
    consistent snapshot.
    """

    def __init__(self, settings: Settings):
        """Initialize database service.

        Args:
            settings: Application settings.
        """
        validate_not_none(settings, "settings")
        self.settings = settings
        self._lock = threading.RLock()
        self._current: StoryDatabase | None = None
        self._current_name: str | None = None
        self._last_saved_digest: str | None = None
        logger.debug("DatabaseService initialized for %s", self.directory)

    @property
    def lock(self) -> threading.RLock:
        """Lock guarding the open database; hold it while mutating entities."""
        return self._lock

    @property
    def directory(self) -> Path:
        """Folder holding database files."""
        return self.settings.get_database_directory()

    def _ensure_directory(self) -> Path:
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def path_for(self, name: str) -> Path:
        """Return the file path for database *name*.

        Raises:
            InvalidDatabaseNameError: If the name is not a valid file stem.
        """
        name = validate_database_name(name)
        path = self.directory / f"{name}.json"
        try:
            validate_path_inside(path, self.directory)
        except ValueError as e:
            raise DatabaseError(str(e)) from e
        return path

    def exists(self, name: str) -> bool:
        """Check whether a database file called *name* exists."""
        return self.path_for(name).is_file()

    # ========== Listing ==========

    def list_databases(self) -> list[DatabaseInfo]:
        """List database files in the database folder, sorted by name."""
        directory = self.directory
        if not directory.is_dir():
            logger.debug("Database folder %s does not exist yet", directory)
            return []

        databases = []
        for path in directory.glob("*.json"):
            if not is_database_file(path):
                logger.debug("Skipping non-database file %s", path.name)
                continue
            try:
                stat = path.stat()
            except OSError as e:
                logger.warning("Cannot stat %s: %s", path, e)
                continue
            databases.append(
                DatabaseInfo(
                    name=path.stem,
                    path=path,
                    size=stat.st_size,
                    modified=datetime.fromtimestamp(stat.st_mtime),
                )
            )
        databases.sort(key=lambda info: info.name.lower())
        logger.debug("Found %d databases in %s", len(databases), directory)
        return databases

    # ========== Reading and writing files ==========

    def load_database(self, name: str) -> StoryDatabase:
        """Read database *name* from disk without making it current.

        Raises:
            DatabaseNotFoundError: If no file exists for the name.
            DatabaseError: If the file is not valid JSON or not a database.
        """
        path = self.path_for(name)
        if not path.is_file():
            raise DatabaseNotFoundError(f"Database '{name}' not found in {self.directory}")
        try:
            data = read_json_file(path)
        except json.JSONDecodeError as e:
            raise DatabaseError(f"Database '{name}' is corrupted (invalid JSON): {e}") from e
        except OSError as e:
            raise DatabaseError(f"Cannot read database '{name}': {e}") from e
        if not isinstance(data, dict):
            raise DatabaseError(
                f"Database '{name}' must contain a JSON object, got {type(data).__name__}"
            )
        try:
            database = StoryDatabase.from_json_dict(data)
        except PydanticValidationError as e:
            raise DatabaseError(f"Database '{name}' has invalid content: {e}") from e
        database.db_name = path.stem
        logger.debug("Loaded database %s (%s)", name, database.entity_counts())
        return database

    def write_database(self, name: str, database: StoryDatabase) -> Path:
        """Write *database* to the file for *name* atomically."""
        self._ensure_directory()
        path = self.path_for(name)
        database.db_name = path.stem
        database.version = APP_VERSION
        atomic_write_json(path, database.to_json_dict())
        logger.debug("Wrote database %s to %s", name, path)
        return path

    # ========== Lifecycle ==========

    def create_database(self, name: str, database: StoryDatabase | None = None) -> StoryDatabase:
        """Create a new database file.

        Args:
            name: Name of the new database.
            database: Initial content. Defaults to an empty database.

        Returns:
            The database that was written.

        Raises:
            InvalidDatabaseNameError: If the name is invalid.
            DatabaseExistsError: If a database with that name already exists.
        """
        name = validate_database_name(name)
        if self.exists(name):
            raise DatabaseExistsError(f"Database '{name}' already exists")
        database = database if database is not None else StoryDatabase()
        self.write_database(name, database)
        logger.info("Created database %s", name)
        return database

    def open_database(self, name: str) -> StoryDatabase:
        """Load database *name* and make it the current database.

        The name is stored in settings so the same database opens on the
        next start.
        """
        name = validate_database_name(name)
        database = self.load_database(name)
        with self._lock:
            self._current = database
            self._current_name = name
            self._last_saved_digest = canonical_digest(database.to_json_dict())
        self._remember_current_name(name)
        logger.info("Opened database %s", name)
        return database

    def _remember_current_name(self, name: str) -> None:
        if self.settings.current_database_name == name:
            return
        self.settings.current_database_name = name
        try:
            self.settings.save()
        except (OSError, ValueError) as e:
            logger.warning("Could not persist current database name %s: %s", name, e)

    @property
    def current_name(self) -> str:
        """Name of the current database (``Default`` when none is set)."""
        with self._lock:
            if self._current_name:
                return self._current_name
        return self.settings.current_database_name or DEFAULT_DATABASE_NAME

    @property
    def current(self) -> StoryDatabase:
        """The current database, opened on first access.

        A missing default database is created. If the remembered database
        has been removed outside the application, the default one is used.
        """
        with self._lock:
            if self._current is not None:
                return self._current
            name = self.current_name
            if not self.exists(name):
                if name != DEFAULT_DATABASE_NAME:
                    logger.warning(
                        "Remembered database %s no longer exists, falling back to %s",
                        name,
                        DEFAULT_DATABASE_NAME,
                    )
                    name = DEFAULT_DATABASE_NAME
                if not self.exists(name):
                    self.create_database(name)
            return self.open_database(name)

    def replace_current(self, database: StoryDatabase) -> None:
        """Swap the content of the current database and save it."""
        with self._lock:
            name = self.current_name
            database.db_name = name
            self._current = database
            self._current_name = name
            self._last_saved_digest = None
            self.save()
        logger.info("Replaced content of database %s", name)

    def save(self, force: bool = False) -> bool:
        """Write the current database to disk.

        Args:
            force: Write even when nothing changed since the last save.

        Returns:
            True if the file was written, False if the save was skipped
            because the content is unchanged.
        """
        with self._lock:
            database = self.current
            data = database.to_json_dict()
            digest = canonical_digest(data)
            if not force and digest == self._last_saved_digest:
                logger.debug("Database %s unchanged, skipping save", self.current_name)
                return False
            self.write_database(self.current_name, database)
            self._last_saved_digest = digest
        logger.info("Saved database %s", self.current_name)
        return True

    def save_if_enabled(self) -> bool:
        """Save the current database when ``auto_save`` is enabled."""
        if not self.settings.auto_save:
            return False
        return self.save()

    @property
    def has_unsaved_changes(self) -> bool:
        """True when the in-memory database differs from the last save."""
        with self._lock:
            if self._current is None:
                return False
            return canonical_digest(self._current.to_json_dict()) != self._last_saved_digest

    def snapshot(self) -> dict[str, Any]:
        """Return a deep copy of the current database in file format."""
        with self._lock:
            return copy.deepcopy(self.current.to_json_dict())

    def rename_database(self, old_name: str, new_name: str) -> Path:
        """Rename a database file.

        Raises:
            DatabaseNotFoundError: If *old_name* does not exist.
            DatabaseExistsError: If *new_name* is already taken.
        """
        old_name = validate_database_name(old_name)
        new_name = validate_database_name(new_name)
        old_path = self.path_for(old_name)
        new_path = self.path_for(new_name)
        if not old_path.is_file():
            raise DatabaseNotFoundError(f"Database '{old_name}' not found")
        if new_path.exists() and old_name.lower() != new_name.lower():
            raise DatabaseExistsError(f"Database '{new_name}' already exists")

        with self._lock:
            is_current = self._current_name == old_name or (
                self._current is None and self.current_name == old_name
            )
            database = (
                self._current
                if is_current and self._current is not None
                else self.load_database(old_name)
            )
            self.write_database(new_name, database)
            if old_path.resolve() != new_path.resolve():
                old_path.unlink()
            if is_current:
                self._current = database
                self._current_name = new_name
                self._last_saved_digest = canonical_digest(database.to_json_dict())
        if is_current:
            self._remember_current_name(new_name)
        logger.info("Renamed database %s to %s", old_name, new_name)
        return new_path

    def delete_database(self, name: str) -> None:
        """Delete a database file.

        Deleting the current database switches to the default one, which is
        created if needed.

        Raises:
            DatabaseNotFoundError: If the database does not exist.
        """
        path = self.path_for(name)
        if not path.is_file():
            raise DatabaseNotFoundError(f"Database '{name}' not found")
        with self._lock:
            was_current = self.current_name == path.stem
            path.unlink()
            logger.info("Deleted database %s", name)
            if was_current:
                self._current = None
                self._current_name = None
                self._last_saved_digest = None
                if not self.exists(DEFAULT_DATABASE_NAME):
                    self.create_database(DEFAULT_DATABASE_NAME)
                self.open_database(DEFAULT_DATABASE_NAME)

    # ========== Recent activity ==========

    def record_activity(
        self, activity_type: str, description: str, entity_id: str = ""
    ) -> Activity:
        """Add an entry to the top of the recent activity feed."""
        activity = Activity(type=activity_type, description=description, entity_id=entity_id)
        with self._lock:
            feed = self.current.recent_activity
            feed.insert(0, activity)
            del feed[self.settings.recent_activity_limit :]
        logger.debug("Activity: %s - %s", activity_type, description)
        return activity

    def recent_activity(self) -> list[Activity]:
        """Return the activity feed, newest first."""
        with self._lock:
            return list(self.current.recent_activity)

    def clear_activity(self) -> None:
        """Empty the recent activity feed."""
        with self._lock:
            self.current.recent_activity.clear()
        logger.info("Cleared recent activity")
