"""Input validation utilities for services.

This module provides reusable validation functions that raise clear
ValueError or TypeError exceptions for invalid inputs.
"""

from pathlib import Path

from storyguard.utils.exceptions import InvalidDatabaseNameError

# Longest database name accepted, keeps file names portable
MAX_DATABASE_NAME_LENGTH = 100

_INVALID_NAME_CHARS = frozenset('<>:"/\\|?*')
_RESERVED_NAMES = frozenset(
    {"con", "prn", "aux", "nul"}
    | {f"com{i}" for i in range(1, 10)}
    | {f"lpt{i}" for i in range(1, 10)}
)


def validate_not_none(value, param_name: str):
    """Validate that a required parameter is not None.

    Args:
        value: The value to validate
        param_name: Name of the parameter for error messages

    Raises:
        ValueError: If value is None
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")


def validate_not_empty(value: str | None, param_name: str) -> None:
    """Validate that a string parameter is not None or empty.

    Args:
        value: The string value to validate
        param_name: Name of the parameter for error messages

    Raises:
        ValueError: If value is None, empty string, or only whitespace
        TypeError: If value is not a string
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")
    if not isinstance(value, str):
        raise TypeError(f"Parameter '{param_name}' must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValueError(f"Parameter '{param_name}' cannot be empty")


def validate_in_range(
    value: int | float | None,
    param_name: str,
    min_val: int | float | None = None,
    max_val: int | float | None = None,
) -> None:
    """Validate that a numeric parameter is within a specified range.

    Args:
        value: The numeric value to validate
        param_name: Name of the parameter for error messages
        min_val: Minimum allowed value (inclusive), None for no minimum
        max_val: Maximum allowed value (inclusive), None for no maximum

    Raises:
        ValueError: If value is None or not in range
        TypeError: If value is not int or float
    """
    if value is None:
        raise ValueError(f"Parameter '{param_name}' cannot be None")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"Parameter '{param_name}' must be numeric, got {type(value).__name__}")
    if min_val is not None and value < min_val:
        raise ValueError(f"Parameter '{param_name}' must be >= {min_val}, got {value}")
    if max_val is not None and value > max_val:
        raise ValueError(f"Parameter '{param_name}' must be <= {max_val}, got {value}")


def validate_string_in_choices(value: str | None, param_name: str, choices: list[str]) -> None:
    """Ensure the string parameter is one of the allowed choices.

    Raises:
        ValueError: If `value` is empty or not one of `choices`.
    """
    validate_not_empty(value, param_name)
    if value not in choices:
        raise ValueError(f"Parameter '{param_name}' must be one of {choices}, got '{value}'")


def validate_database_name(name: str | None) -> str:
    """Check that a database name is usable as a file stem.

    Args:
        name: Proposed database name. Surrounding whitespace is removed.

    Returns:
        The stripped name.

    Raises:
        InvalidDatabaseNameError: If the name is empty, too long, contains
            path separators or reserved characters, or is a reserved device name.
    """
    if name is None or not isinstance(name, str) or not name.strip():
        raise InvalidDatabaseNameError("Database name cannot be empty")
    name = name.strip()
    if len(name) > MAX_DATABASE_NAME_LENGTH:
        raise InvalidDatabaseNameError(
            f"Database name must be at most {MAX_DATABASE_NAME_LENGTH} characters, got {len(name)}"
        )
    bad = sorted(_INVALID_NAME_CHARS & set(name))
    if bad:
        raise InvalidDatabaseNameError(
            f"Database name {name!r} contains invalid characters: {''.join(bad)}"
        )
    if name in (".", "..") or name.startswith(".") or any(ord(c) < 32 for c in name):
        raise InvalidDatabaseNameError(f"Database name {name!r} is not allowed")
    if name.lower() in _RESERVED_NAMES:
        raise InvalidDatabaseNameError(f"Database name {name!r} is reserved by the system")
    return name


def validate_path_inside(path: Path, base_dir: Path) -> Path:
    """Resolve *path* and require it to stay inside *base_dir*.

    Args:
        path: Path to check.
        base_dir: Directory the path must be contained in.

    Returns:
        The resolved path.

    Raises:
        ValueError: If the resolved path escapes *base_dir*.
    """
    resolved = path.resolve()
    try:
        resolved.relative_to(base_dir.resolve())
    except ValueError as e:
        raise ValueError(f"Path {path} is outside {base_dir}") from e
    return resolved
