"""Shared constants used across the application."""

APP_VERSION = "2.0.0"

DEFAULT_DATABASE_NAME = "Default"
UNKNOWN_SERIES = "Unknown Series"

DEFAULT_TAG_COLOR = "#3498db"

# ========== Text limits ==========
MAX_NAME_LENGTH = 200
MAX_TEXT_LENGTH = 5000  # notes and descriptions

# ========== Lookup list defaults ==========
DEFAULT_TITLES: list[str] = [
    "Mr.", "Mrs.", "Ms.", "Miss", "Dr.", "Prof.", "Sir", "Lady",
    "Rev.", "Captain", "Lieutenant", "Sergeant", "Master", "Lord",
    "Madam", "Father", "Mother", "Brother", "Sister", "King", "Queen",
    "Prince", "Princess", "Duke", "Duchess", "Baron", "Baroness",
]  # fmt: skip

DEFAULT_ROLES: list[str] = [
    "Protagonist", "Antagonist", "Deuteragonist", "Supporting Character",
    "Minor Character", "Villain", "Anti-Hero", "Love Interest",
    "Mentor", "Sidekick", "Comic Relief", "Foil", "Neutral",
    "Guardian", "Guide", "Ally", "Rival", "Henchman", "Confidant",
]  # fmt: skip

DEFAULT_RELATIONSHIP_TYPES: list[str] = [
    "friend", "family", "ally", "enemy", "mentor", "student", "lover", "rival", "other",
]  # fmt: skip

DEFAULT_PLOT_TYPES: list[str] = [
    "Main Plot", "Character Arc", "Quest", "Story Arc", "Chapter",
    "Scene", "Conflict", "Resolution", "Twist", "Subplot",
]  # fmt: skip

PLOT_STATUSES: list[str] = ["Planned", "In Progress", "Completed", "Revised", "Cut"]

DEFAULT_WORLD_CATEGORIES: list[str] = [
    "Culture", "Race/Species", "Magic System", "Technology", "Religion",
    "Government", "History", "Geography", "Flora/Fauna", "Language",
    "Economy", "Artifact", "Custom",
]  # fmt: skip

# ========== Database files ==========
# JSON files in the database folder that are never story databases
EXCLUDED_DATABASE_FILES = frozenset(
    {"package.json", "package-lock.json", "settings.json", "tsconfig.json"}
)
# A database file must contain at least one of these keys
DATABASE_MARKER_KEYS = (
    "characters",
    "books",
    "plots",
    "worldElements",
    "relationships",
    "databaseName",
)
MIN_DATABASE_FILE_SIZE = 50  # bytes
