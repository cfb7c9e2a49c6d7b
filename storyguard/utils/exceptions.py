"""Centralized exception hierarchy for StoryGuard.

Exception Hierarchy:

    StoryGuardError (base for all application errors)
    ├── DatabaseError (database file read/write failures)
    │   ├── DatabaseNotFoundError (named database has no file)
    │   ├── DatabaseExistsError (name already taken)
    │   └── InvalidDatabaseNameError (name unusable as a file name)
    ├── EntityError (entity operations)
    │   ├── EntityNotFoundError (unknown id or name)
    │   └── DuplicateEntityError (name already used by another entity)
    ├── ValidationError (invalid entity or input data)
    │   └── ImportValidationError (import file rejected)
    ├── BackupError (backup create/restore failures)
    ├── ExportError (export/file related errors)
    └── ConfigError (configuration parsing/validation failures)

Usage:
    from storyguard.utils.exceptions import DatabaseError, StoryGuardError

    try:
        container.database.open_database(name)
    except DatabaseNotFoundError:
        logger.error("No database called %s", name)
    except StoryGuardError:
        logger.error("Database operation failed")
"""

import logging

logger = logging.getLogger(__name__)


class StoryGuardError(Exception):
    """Base exception for all StoryGuard errors.

    All custom exceptions inherit from this class so callers can catch
    every application-specific error with a single except clause.
    """

    pass


class DatabaseError(StoryGuardError):
    """Raised when a database file cannot be read, parsed or written."""

    pass


class DatabaseNotFoundError(DatabaseError):
    """Raised when a named database has no file in the database folder."""

    pass


class DatabaseExistsError(DatabaseError):
    """Raised when creating or renaming onto a name that is already taken."""

    pass


class InvalidDatabaseNameError(DatabaseError):
    """Raised when a database name cannot be used as a file name."""

    pass


class EntityError(StoryGuardError):
    """Base exception for entity operations."""

    pass


class EntityNotFoundError(EntityError):
    """Raised when an entity id or name does not exist in the open database.

    Attributes:
        kind: Entity kind ("character", "location", ...).
        key: The id or name that was looked up.
    """

    def __init__(self, message: str, kind: str | None = None, key: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.key = key
        logger.debug("EntityNotFoundError: kind=%s key=%s", kind, key)


class DuplicateEntityError(EntityError):
    """Raised when an entity name collides with an existing entity.

    Attributes:
        kind: Entity kind ("character", "tag", ...).
        name: The name that was rejected.
        existing_id: Id of the entity already using the name.
    """

    def __init__(
        self,
        message: str,
        kind: str | None = None,
        name: str | None = None,
        existing_id: str | None = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.name = name
        self.existing_id = existing_id
        logger.debug("DuplicateEntityError: kind=%s name=%s existing=%s", kind, name, existing_id)


class ValidationError(StoryGuardError):
    """Raised when entity or input data fails validation.

    Wraps pydantic validation errors so callers only deal with the
    StoryGuard hierarchy.
    """

    pass


class ImportValidationError(ValidationError):
    """Raised when an import file is not a compatible StoryGuard database.

    Attributes:
        missing_keys: Required keys absent from the file.
        version: Version string found in the file, if any.
    """

    def __init__(
        self,
        message: str,
        missing_keys: list[str] | None = None,
        version: str | None = None,
    ):
        super().__init__(message)
        self.missing_keys = missing_keys or []
        self.version = version


class BackupError(StoryGuardError):
    """Raised when a backup cannot be created, verified or restored."""

    pass


class ExportError(StoryGuardError):
    """Raised when a database export fails."""

    pass


class ConfigError(StoryGuardError):
    """Raised when configuration values are invalid or cannot be loaded."""

    pass
