"""World service - world-building elements."""

import logging
from typing import Any

from storyguard.memory.entities import WorldElement
from storyguard.services._base import (
    EntityServiceBase,
    apply_changes,
    build_model,
    find_index,
    matches_query,
)
from storyguard.utils.constants import DEFAULT_WORLD_CATEGORIES
from storyguard.utils.exceptions import DuplicateEntityError

logger = logging.getLogger(__name__)


class WorldService(EntityServiceBase):
    """Create, edit and query world elements.

    The pair (name, category) is unique, so "Fire" can exist both as a
    magic system and as a culture.
    """

    kind = "world_element"

    def list_elements(self, category: str | None = None) -> list[WorldElement]:
        """Return elements sorted by category and name, optionally for one category."""
        elements = self.db.world_elements
        if category is not None:
            elements = [e for e in elements if e.category.lower() == category.lower()]
        return sorted(elements, key=lambda e: (e.category.lower(), e.name.lower()))

    def get_element(self, element_id: str) -> WorldElement:
        """Return the element with *element_id*.

        Raises:
            EntityNotFoundError: If no element has that id.
        """
        elements = self.db.world_elements
        return elements[find_index(elements, element_id, self.kind)]

    def categories(self) -> list[str]:
        """Default categories followed by any custom ones in use."""
        result = list(DEFAULT_WORLD_CATEGORIES)
        known = {c.lower() for c in result}
        for element in self.db.world_elements:
            if element.category and element.category.lower() not in known:
                known.add(element.category.lower())
                result.append(element.category)
        return result

    def _check_unique(self, element: WorldElement, exclude_id: str | None = None) -> None:
        for other in self.db.world_elements:
            if other.id == exclude_id:
                continue
            if (
                other.name.lower() == element.name.lower()
                and other.category.lower() == element.category.lower()
            ):
                raise DuplicateEntityError(
                    f"World element '{other.name}' already exists in category "
                    f"'{other.category or 'none'}'",
                    kind=self.kind,
                    name=element.name,
                    existing_id=other.id,
                )

    def add_element(self, name: str, **fields: Any) -> WorldElement:
        """Add a new world element.

        Raises:
            ValidationError: If the data is invalid.
            DuplicateEntityError: If the name is taken within the category.
        """
        element = build_model(WorldElement, {"name": name, **fields})
        with self.database.lock:
            self._check_unique(element)
            self.db.world_elements.append(element)
            self._remember_lookups(element, "series")
            self._commit("added", f"Added world element {element.name}", element.id)
        logger.info("Added world element %s (%s)", element.name, element.id)
        return element

    def update_element(self, element_id: str, **changes: Any) -> WorldElement:
        """Update fields of an existing world element."""
        with self.database.lock:
            elements = self.db.world_elements
            index = find_index(elements, element_id, self.kind)
            updated = apply_changes(elements[index], changes)
            self._check_unique(updated, exclude_id=element_id)
            elements[index] = updated
            self._remember_lookups(updated, "series")
            self._commit("updated", f"Updated world element {updated.name}", element_id)
        logger.info("Updated world element %s", element_id)
        return updated

    def delete_element(self, element_id: str) -> WorldElement:
        """Delete an element and unlink it from related elements."""
        with self.database.lock:
            elements = self.db.world_elements
            element = elements.pop(find_index(elements, element_id, self.kind))
            refs = (element.id, element.name)
            for other in elements:
                other.related_elements[:] = [r for r in other.related_elements if r not in refs]
            self._commit("deleted", f"Deleted world element {element.name}", element_id)
        logger.info("Deleted world element %s", element.name)
        return element

    def search_elements(self, query: str) -> list[WorldElement]:
        """Find elements where any text field contains *query*."""
        return [
            e
            for e in self.list_elements()
            if matches_query(query, e.name, e.category, e.series, e.description, e.notes, e.tags)
        ]
