"""Pytest fixtures for StoryGuard tests."""

import logging
from pathlib import Path

import pytest

from storyguard.services import ServiceContainer
from storyguard.services.database_service import DatabaseService
from storyguard.settings import Settings


@pytest.fixture(autouse=True, scope="function")
def restore_root_log_handlers():
    """Restore the root logger's handlers and level after each test.

    setup_logging() replaces the root handlers; without this, a file handler
    opened by one test would keep writing during later tests.
    """
    root_logger = logging.getLogger()
    saved_handlers = root_logger.handlers[:]
    saved_level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in saved_handlers:
            root_logger.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root_logger.handlers:
            root_logger.addHandler(handler)
    root_logger.setLevel(saved_level)


@pytest.fixture(autouse=True)
def clear_settings_cache_per_test():
    """Clear Settings cache before each test to ensure isolation.

    This is autouse because caching can cause test pollution when tests
    modify settings or patch SETTINGS_FILE to different paths.
    """
    Settings.clear_cache()
    yield
    Settings.clear_cache()


@pytest.fixture(autouse=True)
def isolate_output_directories(tmp_path, monkeypatch):
    """Redirect settings.json, the output directories and the log file to tmp_path.

    Services save settings when the current database changes, so without this
    fixture tests would rewrite the real storyguard/settings.json.
    """
    import storyguard.settings._settings as settings_module
    import storyguard.utils.logging_config as logging_config_module

    output_dir = tmp_path / "output"
    monkeypatch.setattr(settings_module, "SETTINGS_FILE", tmp_path / "settings.json")
    monkeypatch.setattr(settings_module, "DATABASES_DIR", output_dir / "databases")
    monkeypatch.setattr(settings_module, "EXPORTS_DIR", output_dir / "exports")
    monkeypatch.setattr(
        logging_config_module, "DEFAULT_LOG_FILE", output_dir / "logs" / "storyguard.log"
    )
    yield


@pytest.fixture
def tmp_settings(tmp_path: Path) -> Settings:
    """Create default settings with temporary directories.

    IMPORTANT: This fixture creates a default Settings() instance without loading
    from the settings.json file to ensure test isolation.
    """
    settings = Settings(
        database_directory=str(tmp_path / "databases"),
        exports_directory=str(tmp_path / "exports"),
    )
    settings.validate()
    return settings


@pytest.fixture
def database_service(tmp_settings: Settings) -> DatabaseService:
    """DatabaseService over an empty temporary database folder."""
    return DatabaseService(tmp_settings)


@pytest.fixture
def services(tmp_settings: Settings):
    """Fully wired ServiceContainer on temporary directories."""
    container = ServiceContainer(tmp_settings)
    yield container
    container.auto_backup.stop()


@pytest.fixture
def populated(services):
    """ServiceContainer whose current database holds a small story."""
    characters = services.characters
    characters.add_character(
        "Harry", "Potter", role="Protagonist", series="Hogwarts", book="Stone", sex="Male"
    )
    characters.add_character(
        "Hermione", "Granger", role="Supporting Character", series="Hogwarts", book="Stone"
    )
    characters.add_character("Ron", "Weasley", series="Hogwarts", book="Chamber")
    characters.add_character("Tom", "Riddle", role="Antagonist", series="Hogwarts")
    characters.add_character("Bilbo", "Baggins", series="Middle-earth", book="Hobbit")
    services.locations.add_location("Hogwarts Castle", series="Hogwarts")
    services.relationships.add_relationship("Harry Potter", "Hermione Granger", "friend")
    services.relationships.add_relationship("Harry Potter", "Ron Weasley", "friend")
    services.relationships.add_relationship("Harry Potter", "Tom Riddle", "enemy")
    return services
