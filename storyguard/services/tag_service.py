"""Tag service - colored labels shared by characters, locations, plots and world elements."""

import logging
from typing import Any

from storyguard.memory.entities import Tag, normalize_tag_name
from storyguard.services._base import EntityServiceBase, apply_changes, build_model, find_index
from storyguard.utils.exceptions import DuplicateEntityError, EntityNotFoundError, ValidationError

logger = logging.getLogger(__name__)

# Entity kind -> StoryDatabase attribute holding that kind
TAGGABLE_KINDS: dict[str, str] = {
    "character": "characters",
    "location": "locations",
    "plot": "plots",
    "world_element": "world_elements",
}


class TagService(EntityServiceBase):
    """Manage the tag list and the tags attached to entities.

    Entities store tag names, so renaming or deleting a tag rewrites every
    entity that carries it.
    """

    kind = "tag"

    def list_tags(self) -> list[Tag]:
        """Return all tags sorted by name."""
        return sorted(self.db.tags, key=lambda t: t.name.lower())

    def find_by_name(self, name: str) -> Tag | None:
        """Return the tag called *name*, ignoring case."""
        key = name.strip().lower()
        return next((t for t in self.db.tags if t.name.lower() == key), None)

    def _check_unique(self, name: str, exclude_id: str | None = None) -> None:
        existing = self.find_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateEntityError(
                f"Tag '{existing.name}' already exists",
                kind=self.kind,
                name=name,
                existing_id=existing.id,
            )

    def add_tag(self, name: str, color: str | None = None) -> Tag:
        """Create a tag.

        Raises:
            ValidationError: If the name is empty or the color is not ``#RRGGBB``.
            DuplicateEntityError: If a tag with that name exists.
        """
        data: dict[str, Any] = {"name": name}
        if color:
            data["color"] = color
        tag = build_model(Tag, data)
        with self.database.lock:
            self._check_unique(tag.name)
            self.db.tags.append(tag)
            self._commit("added", f"Added tag {tag.name}", tag.id)
        logger.info("Added tag %s (%s)", tag.name, tag.color)
        return tag

    def update_tag(self, tag_id: str, **changes: Any) -> Tag:
        """Rename or recolor a tag. A new name is applied to tagged entities."""
        with self.database.lock:
            tags = self.db.tags
            index = find_index(tags, tag_id, self.kind)
            old = tags[index]
            updated = apply_changes(old, changes)
            self._check_unique(updated.name, exclude_id=tag_id)
            tags[index] = updated
            if old.name != updated.name:
                for entity in self._tagged_entities():
                    entity.tags[:] = [
                        updated.name if t.lower() == old.name.lower() else t for t in entity.tags
                    ]
            self._commit("updated", f"Updated tag {updated.name}", tag_id)
        logger.info("Updated tag %s", tag_id)
        return updated

    def delete_tag(self, tag_id: str) -> Tag:
        """Delete a tag and remove it from every entity."""
        with self.database.lock:
            tags = self.db.tags
            tag = tags.pop(find_index(tags, tag_id, self.kind))
            removed = 0
            for entity in self._tagged_entities():
                before = len(entity.tags)
                entity.tags[:] = [t for t in entity.tags if t.lower() != tag.name.lower()]
                removed += before - len(entity.tags)
            self._commit("deleted", f"Deleted tag {tag.name}", tag_id)
        logger.info("Deleted tag %s from %d entities", tag.name, removed)
        return tag

    def _tagged_entities(self) -> list[Any]:
        return [
            entity for attr in TAGGABLE_KINDS.values() for entity in getattr(self.db, attr)
        ]

    def _get_entity(self, kind: str, entity_id: str) -> Any:
        attr = TAGGABLE_KINDS.get(kind)
        if attr is None:
            raise ValidationError(
                f"Cannot tag '{kind}', expected one of {sorted(TAGGABLE_KINDS)}"
            )
        items = getattr(self.db, attr)
        return items[find_index(items, entity_id, kind)]

    def add_to_entity(self, kind: str, entity_id: str, tag_name: str) -> list[str]:
        """Attach a tag to an entity, creating the tag if it does not exist.

        Returns:
            The entity's tags after the change.
        """
        with self.database.lock:
            entity = self._get_entity(kind, entity_id)
            tag = self.find_by_name(tag_name) or self.add_tag(tag_name)
            if tag.name.lower() not in (t.lower() for t in entity.tags):
                entity.tags.append(tag.name)
                self._commit("attached", f"Tagged {kind} {entity_id} with {tag.name}", entity_id)
            return list(entity.tags)

    def remove_from_entity(self, kind: str, entity_id: str, tag_name: str) -> list[str]:
        """Detach a tag from an entity.

        Returns:
            The entity's tags after the change.
        """
        key = normalize_tag_name(tag_name).lower()
        with self.database.lock:
            entity = self._get_entity(kind, entity_id)
            remaining = [t for t in entity.tags if t.lower() != key]
            if len(remaining) != len(entity.tags):
                entity.tags[:] = remaining
                self._commit(
                    "detached", f"Removed tag {tag_name} from {kind} {entity_id}", entity_id
                )
            return list(entity.tags)

    def entity_tags(self, kind: str, entity_id: str) -> list[Tag]:
        """Return the Tag records attached to an entity.

        Tag names without a matching record get a default-colored Tag.
        """
        entity = self._get_entity(kind, entity_id)
        result = []
        for name in entity.tags:
            tag = self.find_by_name(name)
            result.append(tag if tag is not None else Tag(name=name))
        return result

    def find_entities_by_tag(self, tag_name: str) -> dict[str, list[Any]]:
        """Return the entities carrying *tag_name*, grouped by kind.

        Raises:
            EntityNotFoundError: If the tag does not exist.
        """
        tag = self.find_by_name(tag_name)
        if tag is None:
            raise EntityNotFoundError(f"Tag '{tag_name}' not found", kind=self.kind, key=tag_name)
        key = tag.name.lower()
        return {
            kind: [e for e in getattr(self.db, attr) if key in (t.lower() for t in e.tags)]
            for kind, attr in TAGGABLE_KINDS.items()
        }
