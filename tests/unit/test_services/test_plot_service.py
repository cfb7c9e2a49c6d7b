"""Tests for PlotService."""

import pytest

from storyguard.utils.exceptions import EntityNotFoundError, ValidationError


class TestPlotService:
    """Tests for plot management."""

    def test_orders_assigned_in_sequence(self, services):
        """New plots are appended at the end."""
        first = services.plots.add_plot("Beginning")
        second = services.plots.add_plot("Middle")
        assert (first.order, second.order) == (0, 1)
        assert [p.title for p in services.plots.list_plots()] == ["Beginning", "Middle"]

    def test_links_use_canonical_names(self, populated):
        """Linked names are stored with the record's spelling and de-duplicated."""
        plot = populated.plots.add_plot(
            "Sorting",
            characters=["harry potter", "Harry Potter", "RON WEASLEY"],
            locations=["hogwarts castle"],
        )
        assert plot.characters == ["Harry Potter", "Ron Weasley"]
        assert plot.locations == ["Hogwarts Castle"]

    def test_unknown_link_rejected(self, populated):
        """Plots cannot link characters that do not exist."""
        with pytest.raises(EntityNotFoundError, match="Draco"):
            populated.plots.add_plot("Duel", characters=["Draco Malfoy"])
        assert populated.plots.list_plots() == []

    def test_title_required(self, services):
        """Plots need a title."""
        with pytest.raises(ValidationError):
            services.plots.add_plot("  ")

    def test_update(self, populated):
        """Updates re-validate links."""
        plot = populated.plots.add_plot("Sorting")
        updated = populated.plots.update_plot(
            plot.id, status="Completed", characters=["tom riddle"]
        )
        assert updated.status == "Completed"
        assert updated.characters == ["Tom Riddle"]
        with pytest.raises(EntityNotFoundError):
            populated.plots.update_plot(plot.id, locations=["Nowhere"])

    def test_reorder(self, services):
        """Listed plots come first and the rest keep their order."""
        a = services.plots.add_plot("A")
        b = services.plots.add_plot("B")
        c = services.plots.add_plot("C")
        ordered = services.plots.reorder_plots([c.id, a.id])
        assert [p.title for p in ordered] == ["C", "A", "B"]
        assert [p.order for p in ordered] == [0, 1, 2]
        assert b.order == 2

    def test_reorder_unknown_id_rejected(self, services):
        """Unknown ids leave the order untouched."""
        a = services.plots.add_plot("A")
        with pytest.raises(EntityNotFoundError):
            services.plots.reorder_plots(["missing", a.id])
        assert a.order == 0

    def test_delete_and_search(self, services):
        """Deleted plots disappear from search results."""
        plot = services.plots.add_plot("Battle", description="The final battle")
        services.plots.add_plot("Feast")
        assert [p.title for p in services.plots.search_plots("final")] == ["Battle"]
        services.plots.delete_plot(plot.id)
        assert services.plots.search_plots("final") == []
