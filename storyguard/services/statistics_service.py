"""Statistics service - counts and distributions for the dashboard."""

import logging
from collections import Counter
from dataclasses import dataclass, field

from storyguard.services.database_service import DatabaseService
from storyguard.services.relationship_service import NetworkAnalysis, RelationshipService

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown"


@dataclass
class DatabaseStatistics:
    """Counts and distributions for one database."""

    database_name: str
    counts: dict[str, int] = field(default_factory=dict)
    series_distribution: dict[str, int] = field(default_factory=dict)
    role_distribution: dict[str, int] = field(default_factory=dict)
    sex_distribution: dict[str, int] = field(default_factory=dict)
    relationship_types: dict[str, int] = field(default_factory=dict)
    network: NetworkAnalysis = field(default_factory=NetworkAnalysis)


def _distribution(values: list[str]) -> dict[str, int]:
    """Count values, labelling blanks as Unknown, most common first."""
    counter = Counter((value or "").strip() or UNKNOWN_LABEL for value in values)
    return dict(sorted(counter.items(), key=lambda item: (-item[1], item[0].lower())))


def _distinct(values: list[str]) -> set[str]:
    return {value.strip().lower() for value in values if value and value.strip()}


class StatisticsService:
    """Summaries of the open database."""

    def __init__(self, database: DatabaseService, relationships: RelationshipService):
        """Initialize statistics service.

        Args:
            database: Service owning the open database.
            relationships: Service providing network analysis.
        """
        self.database = database
        self.relationships = relationships
        logger.debug("StatisticsService initialized")

    def summary(self, series: str | None = None) -> DatabaseStatistics:
        """Collect counts, distributions and network analysis.

        Args:
            series: Limit the network analysis to one series. Counts always
                cover the whole database.
        """
        with self.database.lock:
            db = self.database.current
            series_values = (
                list(db.series_list)
                + [c.series for c in db.characters]
                + [loc.series for loc in db.locations]
                + [p.series for p in db.plots]
                + [e.series for e in db.world_elements]
            )
            book_values = (
                list(db.books)
                + [c.book for c in db.characters]
                + [loc.book for loc in db.locations]
                + [p.book for p in db.plots]
            )
            stats = DatabaseStatistics(
                database_name=self.database.current_name,
                counts={
                    "characters": len(db.characters),
                    "locations": len(db.locations),
                    "plots": len(db.plots),
                    "world_elements": len(db.world_elements),
                    "relationships": len(db.relationships),
                    "tags": len(db.tags),
                    "series": len(_distinct(series_values)),
                    "books": len(_distinct(book_values)),
                },
                series_distribution=_distribution([c.series for c in db.characters]),
                role_distribution=_distribution([c.role for c in db.characters]),
                sex_distribution=_distribution([c.sex for c in db.characters]),
                relationship_types=_distribution([r.type for r in db.relationships]),
            )
            stats.network = self.relationships.analyze_network(series)
        logger.info("Statistics for %s: %s", stats.database_name, stats.counts)
        return stats
