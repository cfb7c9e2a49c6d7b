"""Tests for TimelineService."""

from storyguard.utils.constants import UNKNOWN_SERIES


class TestTimelineEvents:
    """Tests for the flat event list."""

    def test_only_entries_with_a_book(self, populated):
        """Characters and plots without a book are left out."""
        events = populated.timeline.events()
        titles = [e.title for e in events]
        assert "Tom Riddle appears" not in titles
        assert "Harry Potter appears" in titles

    def test_order(self, populated):
        """Series, then book, plots before appearances, then order and title."""
        populated.plots.add_plot("Troll", series="Hogwarts", book="Stone")
        populated.plots.add_plot("Mirror", series="Hogwarts", book="Stone")
        populated.plots.add_plot("Riddles", book="Hobbit")
        events = populated.timeline.events()
        assert [(e.series, e.book, e.title) for e in events] == [
            ("Hogwarts", "Chamber", "Ron Weasley appears"),
            ("Hogwarts", "Stone", "Troll"),
            ("Hogwarts", "Stone", "Mirror"),
            ("Hogwarts", "Stone", "Harry Potter appears"),
            ("Hogwarts", "Stone", "Hermione Granger appears"),
            ("Middle-earth", "Hobbit", "Bilbo Baggins appears"),
            (UNKNOWN_SERIES, "Hobbit", "Riddles"),
        ]

    def test_filters(self, populated):
        """Series, book and character filters ignore case."""
        populated.plots.add_plot(
            "Troll", series="Hogwarts", book="Stone", characters=["Ron Weasley"]
        )
        assert {e.title for e in populated.timeline.events(book="stone")} == {
            "Troll",
            "Harry Potter appears",
            "Hermione Granger appears",
        }
        assert [e.title for e in populated.timeline.events(series="middle-earth")] == [
            "Bilbo Baggins appears"
        ]
        assert [e.title for e in populated.timeline.events(character="ron weasley")] == [
            "Ron Weasley appears",
            "Troll",
        ]

    def test_reflects_current_records(self, populated):
        """The timeline is rebuilt on every call."""
        bilbo = populated.characters.find_by_name("Bilbo Baggins")
        populated.characters.delete_character(bilbo.id)
        assert all(e.entity_id != bilbo.id for e in populated.timeline.events())


class TestTimelineGrouping:
    """Tests for the grouped timeline."""

    def test_grouped_by_series_and_book(self, populated):
        """build() groups consecutive events by series and book."""
        timeline = populated.timeline.build()
        assert [s.name for s in timeline] == ["Hogwarts", "Middle-earth"]
        hogwarts = timeline[0]
        assert [b.title for b in hogwarts.books] == ["Chamber", "Stone"]
        assert hogwarts.event_count == 3

    def test_empty_database(self, services):
        """An empty database has an empty timeline."""
        assert services.timeline.build() == []
