"""Tests for the command line entry point."""

import json

import pytest

import storyguard.settings._settings as settings_module
from main import build_parser, main


def run(*args: str) -> int:
    """Run the CLI without a log file."""
    return main(["--log-file", "none", *args])


class TestParser:
    """Tests for argument parsing."""

    def test_command_required(self):
        """A command must be given."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_import_modes_exclusive(self):
        """--merge and --as cannot be combined."""
        with pytest.raises(SystemExit):
            build_parser().parse_args(["import", "x.json", "--merge", "--as", "Copy"])


class TestDatabaseCommands:
    """Tests for the db command."""

    def test_list_empty(self, capsys):
        """Listing before anything is saved reports no databases."""
        assert run("db", "list") == 0
        assert "No databases" in capsys.readouterr().out

    def test_create_open_and_list(self, capsys):
        """A created database shows up as current after --open."""
        assert run("db", "create", "Saga", "--open") == 0
        assert run("db", "list") == 0
        out = capsys.readouterr().out
        assert "Opened database Saga" in out
        assert "* " in out and "Saga" in out
        saved = json.loads(settings_module.SETTINGS_FILE.read_text(encoding="utf-8"))
        assert saved["current_database_name"] == "Saga"

    def test_delete_default_needs_force(self, capsys):
        """The Default database is protected without --force."""
        assert run("db", "delete", "Default") == 1
        assert "--force" in capsys.readouterr().out

    def test_unknown_database_is_an_error(self, capsys):
        """Opening a missing database fails with exit code 1."""
        assert run("--database", "Missing", "stats") == 1
        assert "Error:" in capsys.readouterr().err


class TestCharacterCommands:
    """Tests for the character command."""

    def test_add_list_delete(self, capsys):
        """Characters can be added, listed and deleted by name."""
        assert run("character", "add", "Harry", "Potter", "--series", "Hogwarts") == 0
        assert run("character", "list", "--series", "Hogwarts") == 0
        assert "Harry Potter" in capsys.readouterr().out
        assert run("character", "delete", "Harry Potter") == 0
        assert run("character", "list") == 0
        assert "No characters found" in capsys.readouterr().out

    def test_duplicate_is_an_error(self, capsys):
        """Adding the same character twice fails."""
        assert run("character", "add", "Harry", "Potter") == 0
        assert run("character", "add", "Harry", "Potter") == 1
        assert "already exists" in capsys.readouterr().err


class TestDataCommands:
    """Tests for backup, export, import, stats, timeline and analyze."""

    def test_backup_create_and_list(self, capsys):
        """A manual backup is created and listed."""
        run("character", "add", "Frodo", "Baggins")
        assert run("backup", "create") == 0
        assert run("backup", "list") == 0
        out = capsys.readouterr().out
        assert "Backup created" in out
        assert "manual" in out

    def test_export_then_import_as_new(self, tmp_path, capsys):
        """An export can be imported as a new database."""
        run("character", "add", "Frodo", "Baggins")
        target = tmp_path / "story.json"
        assert run("export", str(target)) == 0
        assert target.exists()
        assert run("import", str(target), "--as", "Copy") == 0
        assert "as database Copy" in capsys.readouterr().out

    def test_import_merge_reports_summary(self, tmp_path, capsys):
        """Merging prints the import summary."""
        run("character", "add", "Frodo", "Baggins")
        target = tmp_path / "story.json"
        run("export", str(target))
        assert run("import", str(target)) == 0
        assert "skipped 1 duplicates" in capsys.readouterr().out

    def test_stats(self, capsys):
        """Statistics print the entity counts."""
        run("character", "add", "Frodo", "Baggins")
        assert run("stats") == 0
        assert "Characters: 1" in capsys.readouterr().out

    def test_empty_timeline(self, capsys):
        """An empty timeline says so."""
        assert run("timeline") == 0
        assert "Nothing on the timeline" in capsys.readouterr().out

    def test_analyze_and_add(self, tmp_path, capsys):
        """Extracted names can be added as characters."""
        book = tmp_path / "book.txt"
        book.write_text(
            "Frodo Baggins left home. Frodo said goodbye. Frodo Baggins waved.\n",
            encoding="utf-8",
        )
        assert run("analyze", str(book), "--min-mentions", "1", "--add", "--book", "One") == 0
        out = capsys.readouterr().out
        assert "probable characters" in out
        assert "Added" in out
        assert run("character", "list", "--book", "One") == 0
        assert "Frodo Baggins" in capsys.readouterr().out

    def test_autobackup_interval_too_long(self, capsys):
        """An interval over one day is reported as an error, not a traceback."""
        assert run("autobackup", "--interval", "5000") == 1
        assert "backup_interval" in capsys.readouterr().err

    def test_missing_manuscript(self, tmp_path):
        """A missing manuscript is reported with exit code 1."""
        assert run("analyze", str(tmp_path / "missing.txt")) == 1


def test_invalid_settings_exit_code(capsys):
    """Settings that fail validation exit with code 2."""
    settings_module.SETTINGS_FILE.write_text(
        json.dumps({"log_level": "LOUD"}), encoding="utf-8"
    )
    assert run("db", "list") == 2
    assert "invalid settings" in capsys.readouterr().err
