"""Entity models for story databases.

Field names are snake_case in Python. The JSON file format uses camelCase
keys (``firstName``, ``worldElements``, ``createdAt``) so database files
written by earlier StoryGuard releases load unchanged. Keys this model does
not know about are kept and written back on save.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from storyguard.utils.constants import (
    APP_VERSION,
    DEFAULT_DATABASE_NAME,
    DEFAULT_ROLES,
    DEFAULT_TAG_COLOR,
    DEFAULT_TITLES,
    MAX_NAME_LENGTH,
    MAX_TEXT_LENGTH,
)

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Generate a unique entity id."""
    return str(uuid.uuid4())


def _required_text(value: str, label: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError(f"{label} is required")
    return value


class StoryModel(BaseModel):
    """Base for every record stored in a database file."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
        coerce_numbers_to_str=True,
    )

    @model_validator(mode="before")
    @classmethod
    def drop_null_values(cls, data: Any) -> Any:
        """Treat explicit nulls as missing so defaults apply."""
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    @field_validator("id", mode="before", check_fields=False)
    @classmethod
    def id_to_str(cls, value: Any) -> Any:
        """Older files use numeric millisecond ids."""
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(int(value))
        return value

    @field_validator("created_at", "updated_at", "timestamp", mode="before", check_fields=False)
    @classmethod
    def blank_timestamp_to_now(cls, value: Any) -> Any:
        """Replace empty timestamps with the current time."""
        if value == "":
            return datetime.now()
        return value

    def to_json_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase JSON file format."""
        return self.model_dump(mode="json", by_alias=True)


class Character(StoryModel):
    """A character in the story."""

    id: str = Field(default_factory=new_id)
    title: str = ""
    first_name: str = Field(max_length=MAX_NAME_LENGTH)
    last_name: str = Field(default="", max_length=MAX_NAME_LENGTH)
    sex: str = ""
    race: str = ""
    series: str = ""
    book: str = ""
    role: str = ""
    notes: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("first_name")
    @classmethod
    def first_name_required(cls, value: str) -> str:
        """First name must contain non-whitespace text."""
        return _required_text(value, "First name")

    @field_validator("last_name")
    @classmethod
    def strip_last_name(cls, value: str) -> str:
        """Remove surrounding whitespace."""
        return value.strip()

    @property
    def full_name(self) -> str:
        """First and last name joined by a space."""
        return f"{self.first_name} {self.last_name}".strip()


class Location(StoryModel):
    """A place in the story world."""

    id: str = Field(default_factory=new_id)
    name: str = Field(max_length=MAX_NAME_LENGTH)
    type: str = ""
    size: str = ""
    series: str = ""
    book: str = ""
    description: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    climate: str = ""
    population: str = ""
    notes: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    image: str = ""
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        """Location name must contain non-whitespace text."""
        return _required_text(value, "Location name")


class Plot(StoryModel):
    """A plot point, arc or scene."""

    id: str = Field(default_factory=new_id)
    title: str = Field(max_length=MAX_NAME_LENGTH)
    type: str = ""
    series: str = ""
    book: str = ""
    chapter: str = ""
    description: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    characters: list[str] = Field(default_factory=list)
    locations: list[str] = Field(default_factory=list)
    status: str = ""
    order: int = 0
    notes: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("title")
    @classmethod
    def title_required(cls, value: str) -> str:
        """Plot title must contain non-whitespace text."""
        return _required_text(value, "Plot title")


class WorldElement(StoryModel):
    """A world-building element (culture, magic system, artifact...)."""

    id: str = Field(default_factory=new_id)
    name: str = Field(max_length=MAX_NAME_LENGTH)
    category: str = ""
    series: str = ""
    description: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    related_elements: list[str] = Field(default_factory=list)
    notes: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    tags: list[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def name_required(cls, value: str) -> str:
        """Element name must contain non-whitespace text."""
        return _required_text(value, "Element name")


class Relationship(StoryModel):
    """A typed link between two characters, referenced by full name."""

    id: str = Field(default_factory=new_id)
    character1: str
    character2: str
    type: str = "other"
    notes: str = Field(default="", max_length=MAX_TEXT_LENGTH)
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("character1", "character2", "type")
    @classmethod
    def text_required(cls, value: str) -> str:
        """Both characters and the type are required."""
        return _required_text(value, "Relationship field")

    @model_validator(mode="after")
    def no_self_relationship(self) -> Relationship:
        """A character cannot be related to itself."""
        if self.character1.lower() == self.character2.lower():
            raise ValueError("A character cannot have a relationship with itself")
        return self

    def involves(self, name: str) -> bool:
        """Check whether *name* is either side of this relationship."""
        key = name.lower()
        return self.character1.lower() == key or self.character2.lower() == key

    def pair_key(self) -> frozenset[str]:
        """Unordered, case-insensitive key for the two characters."""
        return frozenset((self.character1.lower(), self.character2.lower()))


class Tag(StoryModel):
    """A colored label attachable to characters, locations, plots and world elements."""

    id: str = Field(default_factory=new_id)
    name: str = Field(max_length=MAX_NAME_LENGTH)
    color: str = Field(default=DEFAULT_TAG_COLOR, pattern=r"^#[0-9a-fA-F]{6}$")
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        """Capitalize the first letter and lowercase the rest."""
        return normalize_tag_name(value)


def normalize_tag_name(name: str) -> str:
    """Return *name* stripped, with a capital first letter and the rest lowercase.

    Raises:
        ValueError: If the name is empty.
    """
    name = _required_text(name, "Tag name")
    return name[0].upper() + name[1:].lower()


class Activity(StoryModel):
    """An entry in the recent activity feed."""

    id: str = Field(default_factory=new_id)
    type: str
    description: str
    entity_id: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)


# Lookup lists a user can extend by typing new values into entity fields
LOOKUP_FIELDS: dict[str, str] = {
    "title": "titles",
    "series": "series_list",
    "book": "books",
    "role": "roles",
}


class StoryDatabase(StoryModel):
    """Everything stored in one database file."""

    characters: list[Character] = Field(default_factory=list)
    locations: list[Location] = Field(default_factory=list)
    plots: list[Plot] = Field(default_factory=list)
    world_elements: list[WorldElement] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    tags: list[Tag] = Field(default_factory=list)
    titles: list[str] = Field(default_factory=lambda: list(DEFAULT_TITLES))
    series_list: list[str] = Field(default_factory=list)
    books: list[str] = Field(default_factory=list)
    roles: list[str] = Field(default_factory=lambda: list(DEFAULT_ROLES))
    custom_field_types: list[Any] = Field(default_factory=list)
    recent_activity: list[Activity] = Field(default_factory=list)
    version: str = APP_VERSION
    db_name: str = DEFAULT_DATABASE_NAME
    metadata: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def accept_legacy_series_key(cls, data: Any) -> Any:
        """Older files store the series lookup list under ``series``."""
        if isinstance(data, dict) and "series" in data:
            data = dict(data)
            legacy = data.pop("series")
            if "seriesList" not in data and "series_list" not in data:
                logger.debug("Reading legacy 'series' key as seriesList")
                data["seriesList"] = legacy
        return data

    @classmethod
    def from_json_dict(cls, data: dict[str, Any]) -> StoryDatabase:
        """Build a database from the camelCase JSON file format."""
        return cls.model_validate(data)

    def remember_lookup(self, field: str, value: str | None) -> bool:
        """Add *value* to the lookup list for an entity *field*.

        Args:
            field: Entity field name ("title", "series", "book" or "role").
            value: Value typed by the user. Empty values are ignored.

        Returns:
            True if the value was new and has been added.
        """
        attr = LOOKUP_FIELDS.get(field)
        if attr is None:
            raise ValueError(f"No lookup list for field '{field}'")
        value = (value or "").strip()
        if not value:
            return False
        values: list[str] = getattr(self, attr)
        if value.lower() in (v.lower() for v in values):
            return False
        values.append(value)
        logger.debug("Added %r to %s", value, attr)
        return True

    def entity_counts(self) -> dict[str, int]:
        """Number of records per entity list."""
        return {
            "characters": len(self.characters),
            "locations": len(self.locations),
            "plots": len(self.plots),
            "worldElements": len(self.world_elements),
            "relationships": len(self.relationships),
            "tags": len(self.tags),
        }
