"""Plot service - plot points, arcs and scenes."""

import logging
from typing import Any

from storyguard.memory.entities import Plot
from storyguard.services._base import (
    EntityServiceBase,
    apply_changes,
    build_model,
    find_index,
    matches_query,
)
from storyguard.utils.exceptions import EntityNotFoundError

logger = logging.getLogger(__name__)


class PlotService(EntityServiceBase):
    """Create, edit, order and query plots.

    Plots link characters and locations by name. Linked names must exist
    and are stored with the spelling of the linked record.
    """

    kind = "plot"

    def list_plots(self) -> list[Plot]:
        """Return plots ordered by their ``order`` value, then title."""
        return sorted(self.db.plots, key=lambda p: (p.order, p.title.lower()))

    def get_plot(self, plot_id: str) -> Plot:
        """Return the plot with *plot_id*.

        Raises:
            EntityNotFoundError: If no plot has that id.
        """
        plots = self.db.plots
        return plots[find_index(plots, plot_id, self.kind)]

    def _resolve_links(self, plot: Plot) -> Plot:
        characters = {c.full_name.lower(): c.full_name for c in self.db.characters}
        locations = {loc.name.lower(): loc.name for loc in self.db.locations}
        resolved: dict[str, list[str]] = {}
        for attr, known, kind in (
            ("characters", characters, "character"),
            ("locations", locations, "location"),
        ):
            names: list[str] = []
            for name in getattr(plot, attr):
                canonical = known.get(name.strip().lower())
                if canonical is None:
                    raise EntityNotFoundError(
                        f"Plot '{plot.title}' links unknown {kind} '{name}'",
                        kind=kind,
                        key=name,
                    )
                if canonical not in names:
                    names.append(canonical)
            resolved[attr] = names
        return plot.model_copy(update=resolved)

    def add_plot(self, title: str, **fields: Any) -> Plot:
        """Add a new plot.

        New plots without an explicit ``order`` go to the end.

        Raises:
            ValidationError: If the data is invalid.
            EntityNotFoundError: If a linked character or location does not exist.
        """
        with self.database.lock:
            if "order" not in fields:
                fields["order"] = max((p.order for p in self.db.plots), default=-1) + 1
            plot = self._resolve_links(build_model(Plot, {"title": title, **fields}))
            self.db.plots.append(plot)
            self._remember_lookups(plot, "series", "book")
            self._commit("added", f"Added plot {plot.title}", plot.id)
        logger.info("Added plot %s (%s)", plot.title, plot.id)
        return plot

    def update_plot(self, plot_id: str, **changes: Any) -> Plot:
        """Update fields of an existing plot."""
        with self.database.lock:
            plots = self.db.plots
            index = find_index(plots, plot_id, self.kind)
            updated = self._resolve_links(apply_changes(plots[index], changes))
            plots[index] = updated
            self._remember_lookups(updated, "series", "book")
            self._commit("updated", f"Updated plot {updated.title}", plot_id)
        logger.info("Updated plot %s", plot_id)
        return updated

    def delete_plot(self, plot_id: str) -> Plot:
        """Delete a plot."""
        with self.database.lock:
            plots = self.db.plots
            plot = plots.pop(find_index(plots, plot_id, self.kind))
            self._commit("deleted", f"Deleted plot {plot.title}", plot_id)
        logger.info("Deleted plot %s", plot.title)
        return plot

    def reorder_plots(self, plot_ids: list[str]) -> list[Plot]:
        """Put the given plots first, in the given order.

        Plots not listed keep their relative order after the listed ones.

        Raises:
            EntityNotFoundError: If an id does not exist.
        """
        with self.database.lock:
            by_id = {p.id: p for p in self.db.plots}
            for plot_id in plot_ids:
                if plot_id not in by_id:
                    raise EntityNotFoundError(
                        f"No plot with id '{plot_id}'", kind=self.kind, key=plot_id
                    )
            listed = list(dict.fromkeys(plot_ids))
            rest = [p.id for p in self.list_plots() if p.id not in set(listed)]
            for position, plot_id in enumerate(listed + rest):
                by_id[plot_id].order = position
            self._commit("reordered", f"Reordered {len(listed)} plots")
        logger.info("Reordered %d plots", len(listed))
        return self.list_plots()

    def search_plots(self, query: str) -> list[Plot]:
        """Find plots where any text field contains *query*."""
        return [
            p
            for p in self.list_plots()
            if matches_query(
                query,
                p.title,
                p.type,
                p.series,
                p.book,
                p.chapter,
                p.status,
                p.description,
                p.notes,
                p.characters,
                p.locations,
                p.tags,
            )
        ]
