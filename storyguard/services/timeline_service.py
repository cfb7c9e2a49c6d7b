"""Timeline service - a series/book view derived from characters and plots.

Nothing is stored: the timeline is rebuilt from the open database on every
call, so it always reflects the current records.
"""

import logging
from dataclasses import dataclass, field

from storyguard.memory.entities import Character, Plot
from storyguard.services.database_service import DatabaseService
from storyguard.utils.constants import UNKNOWN_SERIES

logger = logging.getLogger(__name__)


@dataclass
class TimelineEvent:
    """One entry on the timeline."""

    kind: str  # "character" or "plot"
    title: str
    series: str
    book: str
    entity_id: str
    description: str = ""
    chapter: str = ""
    order: int = 0
    characters: list[str] = field(default_factory=list)
    locations: list[str] = field(default_factory=list)


@dataclass
class TimelineBook:
    """Events of one book, in timeline order."""

    title: str
    events: list[TimelineEvent] = field(default_factory=list)


@dataclass
class TimelineSeries:
    """Books of one series, in timeline order."""

    name: str
    books: list[TimelineBook] = field(default_factory=list)

    @property
    def event_count(self) -> int:
        """Total events across all books."""
        return sum(len(book.events) for book in self.books)


def _character_event(character: Character) -> TimelineEvent:
    return TimelineEvent(
        kind="character",
        title=f"{character.full_name} appears",
        series=character.series or UNKNOWN_SERIES,
        book=character.book,
        entity_id=character.id,
        description=character.role,
        characters=[character.full_name],
    )


def _plot_event(plot: Plot) -> TimelineEvent:
    return TimelineEvent(
        kind="plot",
        title=plot.title,
        series=plot.series or UNKNOWN_SERIES,
        book=plot.book,
        entity_id=plot.id,
        description=plot.description,
        chapter=plot.chapter,
        order=plot.order,
        characters=list(plot.characters),
        locations=list(plot.locations),
    )


def _sort_key(event: TimelineEvent) -> tuple:
    # Unknown series sorts last; plots come before appearances at the same position
    return (
        event.series == UNKNOWN_SERIES,
        event.series.lower(),
        event.book.lower(),
        event.kind != "plot",
        event.order,
        event.title.lower(),
    )


class TimelineService:
    """Builds the timeline view of the open database."""

    def __init__(self, database: DatabaseService):
        """Initialize timeline service.

        Args:
            database: Service owning the open database.
        """
        self.database = database
        logger.debug("TimelineService initialized")

    def events(
        self,
        series: str | None = None,
        book: str | None = None,
        character: str | None = None,
    ) -> list[TimelineEvent]:
        """Return timeline events in order.

        Only characters and plots that have a book are placed on the timeline.

        Args:
            series: Keep events of this series (case-insensitive).
            book: Keep events of this book (case-insensitive).
            character: Keep events that mention this character's full name.
        """
        with self.database.lock:
            db = self.database.current
            events = [_character_event(c) for c in db.characters if c.book.strip()]
            events.extend(_plot_event(p) for p in db.plots if p.book.strip())

        if series:
            events = [e for e in events if e.series.lower() == series.lower()]
        if book:
            events = [e for e in events if e.book.lower() == book.lower()]
        if character:
            key = character.strip().lower()
            events = [e for e in events if key in (name.lower() for name in e.characters)]

        events.sort(key=_sort_key)
        logger.debug(
            "Timeline: %d events (series=%s, book=%s, character=%s)",
            len(events),
            series,
            book,
            character,
        )
        return events

    def build(
        self,
        series: str | None = None,
        book: str | None = None,
        character: str | None = None,
    ) -> list[TimelineSeries]:
        """Return events grouped by series, then book.

        Takes the same filters as :meth:`events`.
        """
        grouped: list[TimelineSeries] = []
        for event in self.events(series=series, book=book, character=character):
            if not grouped or grouped[-1].name.lower() != event.series.lower():
                grouped.append(TimelineSeries(name=event.series))
            books = grouped[-1].books
            if not books or books[-1].title.lower() != event.book.lower():
                books.append(TimelineBook(title=event.book))
            books[-1].events.append(event)
        return grouped
