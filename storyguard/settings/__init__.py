"""Settings package for StoryGuard.

All functionality is in focused modules:
- _paths.py: Path constants for settings and output directories
- _backup.py: settings.json.bak creation, recovery and change logging
- _validation.py: Settings validation functions
- _settings.py: Main Settings dataclass
"""

from storyguard.settings._paths import (
    DATABASES_DIR,
    EXPORTS_DIR,
    LOGS_DIR,
    SETTINGS_FILE,
)
from storyguard.settings._settings import Settings
from storyguard.settings._validation import (
    DEFAULT_BACKUP_INTERVAL,
    LOG_LEVELS,
    MAX_BACKUP_INTERVAL,
)

__all__ = [
    "DATABASES_DIR",
    "DEFAULT_BACKUP_INTERVAL",
    "EXPORTS_DIR",
    "LOGS_DIR",
    "LOG_LEVELS",
    "MAX_BACKUP_INTERVAL",
    "SETTINGS_FILE",
    "Settings",
]
