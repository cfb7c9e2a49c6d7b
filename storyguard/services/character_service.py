"""Character service - character management with duplicate detection."""

import logging
from typing import Any

from storyguard.memory.entities import Character
from storyguard.services._base import (
    EntityServiceBase,
    apply_changes,
    build_model,
    find_index,
    matches_query,
)
from storyguard.utils.exceptions import DuplicateEntityError
from storyguard.utils.name_matching import full_name_key, is_similar_name

logger = logging.getLogger(__name__)

_LOOKUP_FIELDS = ("title", "series", "book", "role")


class CharacterService(EntityServiceBase):
    """Create, edit and query characters.

    Relationships and plots refer to characters by full name, so renaming
    or deleting a character updates them as well.
    """

    kind = "character"

    def list_characters(self) -> list[Character]:
        """Return all characters sorted by last name, then first name."""
        return sorted(
            self.db.characters,
            key=lambda c: (c.last_name.lower(), c.first_name.lower()),
        )

    def get_character(self, character_id: str) -> Character:
        """Return the character with *character_id*.

        Raises:
            EntityNotFoundError: If no character has that id.
        """
        characters = self.db.characters
        return characters[find_index(characters, character_id, self.kind)]

    def find_by_name(self, full_name: str) -> Character | None:
        """Return the character whose full name matches, ignoring case and spacing."""
        key = full_name_key(full_name, "")
        for character in self.db.characters:
            if full_name_key(character.first_name, character.last_name) == key:
                return character
        return None

    def find_duplicate(
        self, first_name: str, last_name: str = "", exclude_id: str | None = None
    ) -> Character | None:
        """Return an existing character with the same full name, if any."""
        key = full_name_key(first_name, last_name)
        for character in self.db.characters:
            if character.id == exclude_id:
                continue
            if full_name_key(character.first_name, character.last_name) == key:
                return character
        return None

    def find_similar_names(
        self, first_name: str, last_name: str = "", exclude_id: str | None = None
    ) -> list[Character]:
        """Return characters whose name looks like a spelling variant.

        The first name must match exactly and the last name must be similar
        but not identical, e.g. "John Smith" and "John Smyth".
        """
        return [
            character
            for character in self.db.characters
            if character.id != exclude_id
            and is_similar_name(first_name, last_name, character.first_name, character.last_name)
        ]

    def add_character(self, first_name: str, last_name: str = "", **fields: Any) -> Character:
        """Add a new character.

        Args:
            first_name: Required first name.
            last_name: Optional last name.
            **fields: Any other Character field (title, role, series, notes...).

        Returns:
            The created character.

        Raises:
            ValidationError: If the data is invalid.
            DuplicateEntityError: If a character with the same full name exists.
        """
        character = build_model(
            Character, {"first_name": first_name, "last_name": last_name, **fields}
        )
        with self.database.lock:
            existing = self.find_duplicate(character.first_name, character.last_name)
            if existing is not None:
                raise DuplicateEntityError(
                    f"A character named '{existing.full_name}' already exists",
                    kind=self.kind,
                    name=character.full_name,
                    existing_id=existing.id,
                )
            similar = self.find_similar_names(character.first_name, character.last_name)
            if similar:
                logger.warning(
                    "Character %s looks similar to existing: %s",
                    character.full_name,
                    ", ".join(c.full_name for c in similar),
                )
            self.db.characters.append(character)
            self._remember_lookups(character, *_LOOKUP_FIELDS)
            self._commit("added", f"Added character {character.full_name}", character.id)
        logger.info("Added character %s (%s)", character.full_name, character.id)
        return character

    def update_character(self, character_id: str, **changes: Any) -> Character:
        """Update fields of an existing character.

        A changed name is propagated to relationships and plots.

        Raises:
            EntityNotFoundError: If no character has that id.
            DuplicateEntityError: If the new name belongs to another character.
            ValidationError: If the updated data is invalid.
        """
        with self.database.lock:
            characters = self.db.characters
            index = find_index(characters, character_id, self.kind)
            old = characters[index]
            updated = apply_changes(old, changes)
            existing = self.find_duplicate(
                updated.first_name, updated.last_name, exclude_id=character_id
            )
            if existing is not None:
                raise DuplicateEntityError(
                    f"A character named '{existing.full_name}' already exists",
                    kind=self.kind,
                    name=updated.full_name,
                    existing_id=existing.id,
                )
            characters[index] = updated
            if old.full_name != updated.full_name:
                self._rename_references(old.full_name, updated.full_name)
            self._remember_lookups(updated, *_LOOKUP_FIELDS)
            self._commit("updated", f"Updated character {updated.full_name}", character_id)
        logger.info("Updated character %s", character_id)
        return updated

    def _rename_references(self, old_name: str, new_name: str) -> None:
        old_key = old_name.lower()
        renamed = 0
        for index, relationship in enumerate(self.db.relationships):
            if not relationship.involves(old_name):
                continue
            data = relationship.model_dump()
            for side in ("character1", "character2"):
                if data[side].lower() == old_key:
                    data[side] = new_name
            self.db.relationships[index] = build_model(type(relationship), data)
            renamed += 1
        for plot in self.db.plots:
            for position, name in enumerate(plot.characters):
                if name.lower() == old_key:
                    plot.characters[position] = new_name
                    renamed += 1
        logger.debug("Renamed %d references from %s to %s", renamed, old_name, new_name)

    def delete_character(self, character_id: str) -> Character:
        """Delete a character with its relationships and plot references.

        Raises:
            EntityNotFoundError: If no character has that id.
        """
        with self.database.lock:
            characters = self.db.characters
            character = characters.pop(find_index(characters, character_id, self.kind))
            name_key = character.full_name.lower()
            before = len(self.db.relationships)
            self.db.relationships[:] = [
                r for r in self.db.relationships if not r.involves(character.full_name)
            ]
            for plot in self.db.plots:
                plot.characters[:] = [n for n in plot.characters if n.lower() != name_key]
            self._commit("deleted", f"Deleted character {character.full_name}", character_id)
        logger.info(
            "Deleted character %s and %d relationships",
            character.full_name,
            before - len(self.db.relationships),
        )
        return character

    def search_characters(self, query: str) -> list[Character]:
        """Find characters where any text field contains *query*."""
        return [
            c
            for c in self.list_characters()
            if matches_query(
                query,
                c.full_name,
                c.title,
                c.role,
                c.series,
                c.book,
                c.race,
                c.sex,
                c.notes,
                c.tags,
            )
        ]

    def filter_characters(
        self,
        series: str | None = None,
        book: str | None = None,
        role: str | None = None,
    ) -> list[Character]:
        """Return characters matching every given filter exactly (case-insensitive)."""
        wanted = {"series": series, "book": book, "role": role}
        return [
            c
            for c in self.list_characters()
            if all(
                value is None or getattr(c, attr).lower() == value.lower()
                for attr, value in wanted.items()
            )
        ]
