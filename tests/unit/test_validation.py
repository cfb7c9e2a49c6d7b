"""Tests for input validation utilities."""

import pytest

from storyguard.utils.exceptions import InvalidDatabaseNameError
from storyguard.utils.validation import (
    MAX_DATABASE_NAME_LENGTH,
    validate_database_name,
    validate_in_range,
    validate_not_empty,
    validate_not_none,
    validate_path_inside,
    validate_string_in_choices,
)


class TestValidateNotNone:
    """Tests for validate_not_none."""

    def test_accepts_falsy_values(self):
        """Only None is rejected."""
        validate_not_none(0, "count")
        validate_not_none("", "text")

    def test_rejects_none(self):
        """None raises ValueError naming the parameter."""
        with pytest.raises(ValueError, match="'count'"):
            validate_not_none(None, "count")


class TestValidateNotEmpty:
    """Tests for validate_not_empty."""

    def test_accepts_text(self):
        """Non-blank strings pass."""
        validate_not_empty("Harry", "name")

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_rejects_blank(self, value):
        """None and blank strings raise ValueError."""
        with pytest.raises(ValueError):
            validate_not_empty(value, "name")

    def test_rejects_non_string(self):
        """Non-strings raise TypeError."""
        with pytest.raises(TypeError):
            validate_not_empty(42, "name")


class TestValidateInRange:
    """Tests for validate_in_range."""

    def test_inclusive_bounds(self):
        """Both bounds are inclusive."""
        validate_in_range(1, "n", min_val=1, max_val=5)
        validate_in_range(5, "n", min_val=1, max_val=5)

    def test_out_of_range(self):
        """Values outside the bounds raise ValueError."""
        with pytest.raises(ValueError, match=">="):
            validate_in_range(0, "n", min_val=1)
        with pytest.raises(ValueError, match="<="):
            validate_in_range(6.5, "n", max_val=5)

    def test_bool_is_not_numeric(self):
        """Booleans are rejected even though they subclass int."""
        with pytest.raises(TypeError):
            validate_in_range(True, "n")


class TestValidateStringInChoices:
    """Tests for validate_string_in_choices."""

    def test_known_choice(self):
        """A listed value passes."""
        validate_string_in_choices("friend", "type", ["friend", "enemy"])

    def test_unknown_choice(self):
        """An unlisted value raises ValueError."""
        with pytest.raises(ValueError, match="must be one of"):
            validate_string_in_choices("frenemy", "type", ["friend", "enemy"])


class TestValidateDatabaseName:
    """Tests for validate_database_name."""

    def test_strips_whitespace(self):
        """Valid names are returned stripped."""
        assert validate_database_name("  My Saga  ") == "My Saga"

    @pytest.mark.parametrize(
        "name",
        [None, "", "   ", "a/b", "a\\b", "what?", "<x>", ".hidden", "..", "CON", "lpt1", "a\tb"],
    )
    def test_rejects_unusable_names(self, name):
        """Empty, path-like, hidden and reserved names are rejected."""
        with pytest.raises(InvalidDatabaseNameError):
            validate_database_name(name)

    def test_rejects_overlong_name(self):
        """Names longer than the limit are rejected."""
        with pytest.raises(InvalidDatabaseNameError, match="at most"):
            validate_database_name("x" * (MAX_DATABASE_NAME_LENGTH + 1))

    def test_unicode_names_allowed(self):
        """Non-ASCII names are fine."""
        assert validate_database_name("Mittelerde Ünd Mehr") == "Mittelerde Ünd Mehr"


class TestValidatePathInside:
    """Tests for validate_path_inside."""

    def test_inside(self, tmp_path):
        """A child path resolves normally."""
        child = tmp_path / "a" / "b.json"
        assert validate_path_inside(child, tmp_path) == child.resolve()

    def test_escape_raises(self, tmp_path):
        """Traversal outside the base directory raises ValueError."""
        with pytest.raises(ValueError, match="outside"):
            validate_path_inside(tmp_path / ".." / "escape.json", tmp_path)
