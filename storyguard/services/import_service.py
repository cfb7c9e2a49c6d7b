"""Import service - load database files exported elsewhere.

An import either becomes a new database or is merged into the open one.
Merging skips records that already exist, so importing the same file twice
adds nothing the second time.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from storyguard.memory.entities import (
    Character,
    Location,
    Plot,
    Relationship,
    StoryDatabase,
    Tag,
    WorldElement,
    new_id,
)
from storyguard.services.database_service import DatabaseService
from storyguard.utils.constants import APP_VERSION
from storyguard.utils.exceptions import ImportValidationError
from storyguard.utils.file_io import read_json_file

logger = logging.getLogger(__name__)

REQUIRED_IMPORT_KEYS = ("characters", "titles", "version")

# Top-level keys that must hold lists when present
LIST_KEYS = (
    "characters",
    "locations",
    "plots",
    "worldElements",
    "relationships",
    "tags",
    "titles",
    "seriesList",
    "books",
    "roles",
    "customFieldTypes",
)

# Share of compared fields that must agree before two records count as the same
CONTENT_MATCH_THRESHOLD = 0.8

PLOT_MATCH_FIELDS = ("description", "series", "notes", "tags")
WORLD_ELEMENT_MATCH_FIELDS = ("description", "notes", "tags", "series")


def _major_version(version: str) -> int | None:
    try:
        return int(str(version).strip().split(".")[0])
    except ValueError:
        return None


def validate_import_data(data: Any) -> dict[str, Any]:
    """Check that *data* is a database export this release can read.

    Returns:
        The data, unchanged.

    Raises:
        ImportValidationError: If the data is not an object, misses required
            keys, holds non-list entity arrays or has another major version.
    """
    if not isinstance(data, dict):
        raise ImportValidationError(
            f"Import data must be a JSON object, got {type(data).__name__}"
        )
    missing = [key for key in REQUIRED_IMPORT_KEYS if key not in data]
    if missing:
        raise ImportValidationError(
            f"Missing required properties: {', '.join(missing)}", missing_keys=missing
        )
    not_lists = [key for key in LIST_KEYS if key in data and not isinstance(data[key], list)]
    if not_lists:
        raise ImportValidationError(f"Properties must be lists: {', '.join(not_lists)}")

    version = str(data["version"])
    expected = _major_version(APP_VERSION)
    if _major_version(version) != expected:
        raise ImportValidationError(
            f"The database was created with version {version}, which is not compatible "
            f"with the current version {APP_VERSION}",
            version=version,
        )
    return data


def _content_matches(existing: dict[str, Any], incoming: dict[str, Any], keys: tuple) -> bool:
    """True when more than 80% of the fields present on both sides are equal."""
    available = [key for key in keys if key in existing and key in incoming]
    if not available:
        return False
    matched = sum(1 for key in available if existing[key] == incoming[key])
    return matched / len(available) > CONTENT_MATCH_THRESHOLD


def _union(existing: list[Any], incoming: list[Any]) -> int:
    """Append values of *incoming* missing from *existing*. Returns how many were added."""
    seen = {str(v).lower() for v in existing}
    added = 0
    for value in incoming:
        key = str(value).lower()
        if key not in seen:
            existing.append(value)
            seen.add(key)
            added += 1
    return added


def _claim_id(record: Any, ids: set[str]) -> None:
    """Give *record* a new id when the open database already uses its id."""
    if record.id in ids:
        logger.debug("Import id %s already in use, assigning a new one", record.id)
        record.id = new_id()
    ids.add(record.id)


@dataclass
class ImportResult:
    """Records added and skipped per entity kind during a merge."""

    added: dict[str, int] = field(default_factory=dict)
    skipped: dict[str, int] = field(default_factory=dict)

    @property
    def total_added(self) -> int:
        """Records added across all kinds."""
        return sum(self.added.values())

    @property
    def total_skipped(self) -> int:
        """Records skipped across all kinds."""
        return sum(self.skipped.values())

    def count(self, kind: str, added: bool) -> None:
        """Count one record of *kind* as added or skipped."""
        bucket = self.added if added else self.skipped
        bucket[kind] = bucket.get(kind, 0) + 1

    def summary(self) -> str:
        """One-line human readable summary."""
        if not self.total_skipped:
            return f"Imported {self.total_added} records"
        skipped = ", ".join(f"{n} {kind}" for kind, n in sorted(self.skipped.items()))
        return (
            f"Imported {self.total_added} records, "
            f"skipped {self.total_skipped} duplicates ({skipped})"
        )


class ImportService:
    """Import database exports as new databases or into the open one."""

    def __init__(self, database: DatabaseService):
        """Initialize import service.

        Args:
            database: Service owning the open database.
        """
        self.database = database
        logger.debug("ImportService initialized")

    def load_file(self, path: Path | str) -> dict[str, Any]:
        """Read and validate an export file.

        Raises:
            ImportValidationError: If the file cannot be read, is not JSON or
                fails validation.
        """
        path = Path(path)
        logger.info("Reading import file %s", path)
        try:
            data = read_json_file(path)
        except json.JSONDecodeError as e:
            raise ImportValidationError(f"{path.name} is not valid JSON: {e}") from e
        except OSError as e:
            raise ImportValidationError(f"Cannot read {path}: {e}") from e
        return validate_import_data(data)

    def _to_database(self, data: dict[str, Any]) -> StoryDatabase:
        validate_import_data(data)
        payload = {k: v for k, v in data.items() if k not in ("metadata", "checksum")}
        try:
            return StoryDatabase.from_json_dict(payload)
        except PydanticValidationError as e:
            raise ImportValidationError(
                f"Import data has {e.error_count()} invalid records: {e}"
            ) from e

    def import_as_new(self, data: dict[str, Any], name: str) -> StoryDatabase:
        """Create database *name* from *data* and make it current.

        Raises:
            ImportValidationError: If the data is invalid.
            DatabaseExistsError: If the name is taken.
        """
        database = self._to_database(data)
        self.database.create_database(name, database)
        opened = self.database.open_database(name)
        logger.info("Imported data as new database %s (%s)", name, opened.entity_counts())
        return opened

    def merge_into_current(self, data: dict[str, Any]) -> ImportResult:
        """Merge *data* into the open database, skipping existing records.

        Raises:
            ImportValidationError: If the data is invalid.
        """
        incoming = self._to_database(data)
        result = ImportResult()
        with self.database.lock:
            db = self.database.current
            self._merge_characters(db, incoming.characters, result)
            self._merge_locations(db, incoming.locations, result)
            self._merge_plots(db, incoming.plots, result)
            self._merge_world_elements(db, incoming.world_elements, result)
            self._merge_relationships(db, incoming.relationships, result)
            self._merge_tags(db, incoming.tags, result)
            self._merge_lookups(db, incoming)
            self.database.record_activity("import_merged", result.summary())
            self.database.save()
        logger.info("Merged import into %s: %s", self.database.current_name, result.summary())
        return result

    def _merge_characters(
        self, db: StoryDatabase, characters: list[Character], result: ImportResult
    ) -> None:
        ids = {c.id for c in db.characters}
        names = {c.full_name.lower() for c in db.characters}
        for character in characters:
            duplicate = character.id in ids or character.full_name.lower() in names
            if not duplicate:
                db.characters.append(character)
                ids.add(character.id)
                names.add(character.full_name.lower())
            result.count("characters", not duplicate)

    def _merge_locations(
        self, db: StoryDatabase, locations: list[Location], result: ImportResult
    ) -> None:
        names = {loc.name.lower() for loc in db.locations}
        ids = {loc.id for loc in db.locations}
        for location in locations:
            duplicate = location.name.lower() in names
            if not duplicate:
                _claim_id(location, ids)
                db.locations.append(location)
                names.add(location.name.lower())
            result.count("locations", not duplicate)

    def _merge_plots(self, db: StoryDatabase, plots: list[Plot], result: ImportResult) -> None:
        ids = {p.id for p in db.plots}
        for plot in plots:
            data = plot.to_json_dict()
            duplicate = any(
                existing.title == plot.title
                and _content_matches(existing.to_json_dict(), data, PLOT_MATCH_FIELDS)
                for existing in db.plots
            )
            if not duplicate:
                _claim_id(plot, ids)
                db.plots.append(plot)
            result.count("plots", not duplicate)

    def _merge_world_elements(
        self, db: StoryDatabase, elements: list[WorldElement], result: ImportResult
    ) -> None:
        ids = {e.id for e in db.world_elements}
        for element in elements:
            data = element.to_json_dict()
            duplicate = any(
                existing.name == element.name
                and existing.category == element.category
                and _content_matches(existing.to_json_dict(), data, WORLD_ELEMENT_MATCH_FIELDS)
                for existing in db.world_elements
            )
            if not duplicate:
                _claim_id(element, ids)
                db.world_elements.append(element)
            result.count("worldElements", not duplicate)

    def _merge_relationships(
        self, db: StoryDatabase, relationships: list[Relationship], result: ImportResult
    ) -> None:
        names = {c.full_name.lower(): c.full_name for c in db.characters}
        seen = {(r.pair_key(), r.type.lower()) for r in db.relationships}
        ids = {r.id for r in db.relationships}
        for relationship in relationships:
            first = names.get(" ".join(relationship.character1.split()).lower())
            second = names.get(" ".join(relationship.character2.split()).lower())
            if first is None or second is None:
                logger.debug(
                    "Skipping relationship %s - %s: character missing",
                    relationship.character1,
                    relationship.character2,
                )
                result.count("relationships", False)
                continue
            # Stored names are matched exactly by the relationship network
            relationship = relationship.model_copy(
                update={"character1": first, "character2": second}
            )
            key = (relationship.pair_key(), relationship.type.lower())
            keep = key not in seen
            if keep:
                _claim_id(relationship, ids)
                db.relationships.append(relationship)
                seen.add(key)
            result.count("relationships", keep)

    def _merge_tags(self, db: StoryDatabase, tags: list[Tag], result: ImportResult) -> None:
        names = {t.name.lower() for t in db.tags}
        ids = {t.id for t in db.tags}
        for tag in tags:
            duplicate = tag.name.lower() in names
            if not duplicate:
                _claim_id(tag, ids)
                db.tags.append(tag)
                names.add(tag.name.lower())
            result.count("tags", not duplicate)

    def _merge_lookups(self, db: StoryDatabase, incoming: StoryDatabase) -> None:
        for attr in ("titles", "series_list", "books", "roles"):
            added = _union(getattr(db, attr), getattr(incoming, attr))
            if added:
                logger.debug("Added %d values to %s", added, attr)
        known_types = {
            str(t.get("name", "")).lower() if isinstance(t, dict) else str(t).lower()
            for t in db.custom_field_types
        }
        for field_type in incoming.custom_field_types:
            key = (
                str(field_type.get("name", "")).lower()
                if isinstance(field_type, dict)
                else str(field_type).lower()
            )
            if key not in known_types:
                db.custom_field_types.append(field_type)
                known_types.add(key)
