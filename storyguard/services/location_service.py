"""Location service - places in the story world."""

import logging
from typing import Any

from storyguard.memory.entities import Location
from storyguard.services._base import (
    EntityServiceBase,
    apply_changes,
    build_model,
    find_index,
    matches_query,
)
from storyguard.utils.exceptions import DuplicateEntityError

logger = logging.getLogger(__name__)


class LocationService(EntityServiceBase):
    """Create, edit and query locations. Names are unique, ignoring case."""

    kind = "location"

    def list_locations(self) -> list[Location]:
        """Return all locations sorted by name."""
        return sorted(self.db.locations, key=lambda loc: loc.name.lower())

    def get_location(self, location_id: str) -> Location:
        """Return the location with *location_id*.

        Raises:
            EntityNotFoundError: If no location has that id.
        """
        locations = self.db.locations
        return locations[find_index(locations, location_id, self.kind)]

    def find_by_name(self, name: str) -> Location | None:
        """Return the location called *name*, ignoring case."""
        key = name.strip().lower()
        return next((loc for loc in self.db.locations if loc.name.lower() == key), None)

    def _check_unique(self, name: str, exclude_id: str | None = None) -> None:
        existing = self.find_by_name(name)
        if existing is not None and existing.id != exclude_id:
            raise DuplicateEntityError(
                f"A location named '{existing.name}' already exists",
                kind=self.kind,
                name=name,
                existing_id=existing.id,
            )

    def add_location(self, name: str, **fields: Any) -> Location:
        """Add a new location.

        Raises:
            ValidationError: If the data is invalid.
            DuplicateEntityError: If the name is taken.
        """
        location = build_model(Location, {"name": name, **fields})
        with self.database.lock:
            self._check_unique(location.name)
            self.db.locations.append(location)
            self._remember_lookups(location, "series", "book")
            self._commit("added", f"Added location {location.name}", location.id)
        logger.info("Added location %s (%s)", location.name, location.id)
        return location

    def update_location(self, location_id: str, **changes: Any) -> Location:
        """Update fields of an existing location. A new name is propagated to plots."""
        with self.database.lock:
            locations = self.db.locations
            index = find_index(locations, location_id, self.kind)
            old = locations[index]
            updated = apply_changes(old, changes)
            self._check_unique(updated.name, exclude_id=location_id)
            locations[index] = updated
            if old.name != updated.name:
                old_key = old.name.lower()
                for plot in self.db.plots:
                    plot.locations[:] = [
                        updated.name if n.lower() == old_key else n for n in plot.locations
                    ]
            self._remember_lookups(updated, "series", "book")
            self._commit("updated", f"Updated location {updated.name}", location_id)
        logger.info("Updated location %s", location_id)
        return updated

    def delete_location(self, location_id: str) -> Location:
        """Delete a location and remove it from plots that mention it."""
        with self.database.lock:
            locations = self.db.locations
            location = locations.pop(find_index(locations, location_id, self.kind))
            key = location.name.lower()
            for plot in self.db.plots:
                plot.locations[:] = [n for n in plot.locations if n.lower() != key]
            self._commit("deleted", f"Deleted location {location.name}", location_id)
        logger.info("Deleted location %s", location.name)
        return location

    def search_locations(self, query: str) -> list[Location]:
        """Find locations where any text field contains *query*."""
        return [
            loc
            for loc in self.list_locations()
            if matches_query(
                query,
                loc.name,
                loc.type,
                loc.series,
                loc.book,
                loc.climate,
                loc.description,
                loc.notes,
                loc.tags,
            )
        ]
