"""Book analysis service - find character names in a manuscript."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from storyguard.services.character_service import CharacterService
from storyguard.utils.exceptions import DuplicateEntityError, ValidationError
from storyguard.utils.logging_config import log_performance
from storyguard.utils.name_extractor import ExtractedName, extract_names
from storyguard.utils.validation import validate_in_range

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".txt", ".md", ".docx")

_WORD_RE = re.compile(r"\b\w+(?:['’]\w+)?\b")


@dataclass
class BookAnalysisResult:
    """Names found in one manuscript."""

    names: list[ExtractedName] = field(default_factory=list)
    word_count: int = 0
    source: str = ""


def _read_docx(path: Path) -> str:
    from docx import Document

    document = Document(str(path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def read_manuscript(path: Path | str) -> str:
    """Return the text of a ``.txt``, ``.md`` or ``.docx`` manuscript.

    Raises:
        ValidationError: If the file type is unsupported or it cannot be read.
    """
    path = Path(path)
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValidationError(
            f"Unsupported manuscript type '{suffix or path.name}', "
            f"expected one of {', '.join(SUPPORTED_SUFFIXES)}"
        )
    if not path.is_file():
        raise ValidationError(f"Manuscript not found: {path}")
    try:
        if suffix == ".docx":
            text = _read_docx(path)
        else:
            text = path.read_text(encoding="utf-8-sig", errors="replace")
    except (OSError, ValueError) as e:
        raise ValidationError(f"Cannot read manuscript {path.name}: {e}") from e
    logger.debug("Read %d characters from %s", len(text), path.name)
    return text


def character_notes(name: ExtractedName) -> str:
    """Notes stored on a character created from an extracted name."""
    notes = f"Character extracted from book analysis.\nMentioned {name.mentions} times."
    if name.variants:
        notes += f"\nVariants: {', '.join(name.variants)}"
    return notes


class BookAnalysisService:
    """Extract character names from manuscripts and add them to the database."""

    def __init__(self, characters: CharacterService):
        """Initialize book analysis service.

        Args:
            characters: Service used to add extracted characters.
        """
        self.characters = characters
        self.settings = characters.settings
        logger.debug("BookAnalysisService initialized")

    def analyze_text(
        self, text: str, min_mentions: int | None = None, source: str = ""
    ) -> BookAnalysisResult:
        """Extract names from *text*.

        Args:
            text: Manuscript text.
            min_mentions: Minimum mentions per name. Defaults to the
                ``min_mentions`` setting.
            source: Label for the text, usually the file name.
        """
        if min_mentions is None:
            min_mentions = self.settings.min_mentions
        try:
            validate_in_range(min_mentions, "min_mentions", min_val=1)
        except (TypeError, ValueError) as e:
            raise ValidationError(str(e)) from e
        with log_performance(logger, f"name extraction ({source or 'text'})"):
            names = extract_names(text, min_mentions=min_mentions)
        return BookAnalysisResult(
            names=names, word_count=len(_WORD_RE.findall(text)), source=source
        )

    def analyze_file(self, path: Path | str, min_mentions: int | None = None) -> BookAnalysisResult:
        """Read a manuscript and extract names from it."""
        path = Path(path)
        logger.info("Analyzing manuscript %s", path)
        return self.analyze_text(read_manuscript(path), min_mentions=min_mentions, source=path.name)

    def add_to_database(
        self, names: list[ExtractedName], series: str = "", book: str = ""
    ) -> tuple[int, int]:
        """Add extracted names as characters.

        Names whose first and last name already belong to a character are
        skipped.

        Returns:
            (added, skipped) counts.
        """
        added = skipped = 0
        for name in names:
            first_name, last_name = name.first_name, name.last_name
            if not first_name:
                # "Captain Hook" is stored as title Captain, first name Hook
                first_name, last_name = last_name or name.name, ""
            try:
                self.characters.add_character(
                    first_name,
                    last_name,
                    title=name.title,
                    series=series,
                    book=book,
                    notes=character_notes(name),
                )
                added += 1
            except DuplicateEntityError:
                logger.debug("Skipping %s: already in the database", name.name)
                skipped += 1
            except ValidationError as e:
                logger.warning("Skipping %s: %s", name.name, e)
                skipped += 1
        logger.info("Added %d extracted characters, skipped %d", added, skipped)
        return added, skipped
