"""Tests for LocationService."""

import pytest

from storyguard.utils.exceptions import DuplicateEntityError, EntityNotFoundError


@pytest.fixture
def locations(services):
    """LocationService on an empty database."""
    return services.locations


class TestLocationService:
    """Tests for location management."""

    def test_add_and_list_sorted(self, locations):
        """Locations are listed by name."""
        locations.add_location("Shire", series="Middle-earth")
        locations.add_location("bree")
        assert [loc.name for loc in locations.list_locations()] == ["bree", "Shire"]

    def test_duplicate_name_rejected(self, locations):
        """Names are unique ignoring case."""
        locations.add_location("Shire")
        with pytest.raises(DuplicateEntityError):
            locations.add_location("SHIRE")

    def test_find_by_name(self, locations):
        """find_by_name ignores case and whitespace."""
        shire = locations.add_location("Shire")
        assert locations.find_by_name(" shire ") is shire
        assert locations.find_by_name("Mordor") is None

    def test_rename_updates_plots(self, services, locations):
        """Renaming a location renames its plot links."""
        shire = locations.add_location("Shire")
        plot = services.plots.add_plot("Departure", locations=["Shire"])
        locations.update_location(shire.id, name="The Shire")
        assert services.plots.get_plot(plot.id).locations == ["The Shire"]

    def test_rename_to_existing_rejected(self, locations):
        """A location cannot take another location's name."""
        locations.add_location("Shire")
        bree = locations.add_location("Bree")
        with pytest.raises(DuplicateEntityError):
            locations.update_location(bree.id, name="shire")

    def test_delete_unlinks_plots(self, services, locations):
        """Deleted locations are removed from plots."""
        shire = locations.add_location("Shire")
        locations.add_location("Bree")
        plot = services.plots.add_plot("Journey", locations=["Shire", "Bree"])
        locations.delete_location(shire.id)
        assert services.plots.get_plot(plot.id).locations == ["Bree"]
        with pytest.raises(EntityNotFoundError):
            locations.get_location(shire.id)

    def test_search(self, locations):
        """Search covers description and climate."""
        locations.add_location("Mordor", climate="Volcanic")
        locations.add_location("Rivendell", description="Elven refuge")
        assert [loc.name for loc in locations.search_locations("volc")] == ["Mordor"]
        assert [loc.name for loc in locations.search_locations("elven")] == ["Rivendell"]

    def test_lookups_remembered(self, services, locations):
        """Series and book values join the lookup lists."""
        locations.add_location("Shire", series="Middle-earth", book="Fellowship")
        assert "Middle-earth" in services.database.current.series_list
        assert "Fellowship" in services.database.current.books
