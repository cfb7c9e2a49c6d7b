"""Path constants for StoryGuard settings and output directories."""

from pathlib import Path

SETTINGS_FILE = Path(__file__).parent.parent / "settings.json"

# Go up from storyguard/settings to storyguard/, then up to project root, then into output/
_OUTPUT_DIR = Path(__file__).parent.parent.parent / "output"
DATABASES_DIR = _OUTPUT_DIR / "databases"
EXPORTS_DIR = _OUTPUT_DIR / "exports"
LOGS_DIR = _OUTPUT_DIR / "logs"

__all__ = [
    "DATABASES_DIR",
    "EXPORTS_DIR",
    "LOGS_DIR",
    "SETTINGS_FILE",
]
