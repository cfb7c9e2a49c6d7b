"""Tests for BookAnalysisService."""

import pytest
from docx import Document

from storyguard.services.book_analysis_service import character_notes, read_manuscript
from storyguard.utils.exceptions import ValidationError
from storyguard.utils.name_extractor import ExtractedName

TEXT = """Harry Potter walked into the hall. Harry said nothing at first.
"Come here, Harry!" Hermione whispered. Harry Potter smiled at her.
Hermione asked about the letter. Harry shrugged.
"""


class TestReadManuscript:
    """Tests for reading manuscript files."""

    def test_reads_text_and_markdown(self, tmp_path):
        """Plain text and markdown are read as UTF-8."""
        for suffix in (".txt", ".md"):
            path = tmp_path / f"book{suffix}"
            path.write_text(TEXT, encoding="utf-8")
            assert read_manuscript(path) == TEXT

    def test_reads_docx(self, tmp_path):
        """Word documents are read paragraph by paragraph."""
        document = Document()
        document.add_paragraph("Frodo Baggins left the Shire.")
        document.add_paragraph("Sam followed Frodo.")
        path = tmp_path / "book.docx"
        document.save(str(path))
        assert read_manuscript(path) == "Frodo Baggins left the Shire.\nSam followed Frodo."

    def test_unsupported_type(self, tmp_path):
        """Only text, markdown and Word files are accepted."""
        path = tmp_path / "book.pdf"
        path.write_bytes(b"%PDF")
        with pytest.raises(ValidationError, match="Unsupported manuscript type"):
            read_manuscript(path)

    def test_missing_file(self, tmp_path):
        """A missing manuscript is reported."""
        with pytest.raises(ValidationError, match="not found"):
            read_manuscript(tmp_path / "missing.txt")


class TestAnalyze:
    """Tests for analyze_text and analyze_file."""

    def test_analyze_text(self, services):
        """Names and the word count are reported."""
        result = services.book_analysis.analyze_text(TEXT, min_mentions=1, source="ch1")
        assert result.source == "ch1"
        assert result.word_count == len(TEXT.split())
        assert result.names[0].name == "Harry Potter"
        assert "Hermione" in {n.name for n in result.names}

    def test_min_mentions_from_settings(self, services, tmp_settings):
        """Without an explicit value the setting is used."""
        tmp_settings.min_mentions = 1000
        assert services.book_analysis.analyze_text(TEXT).names == []

    @pytest.mark.parametrize("min_mentions", [0, -2, "3"])
    def test_min_mentions_must_be_positive_int(self, services, min_mentions):
        """Zero, negative or non-numeric thresholds are rejected."""
        with pytest.raises(ValidationError, match="min_mentions"):
            services.book_analysis.analyze_text(TEXT, min_mentions=min_mentions)

    def test_analyze_file(self, services, tmp_path):
        """The file name becomes the source label."""
        path = tmp_path / "chapter.txt"
        path.write_text(TEXT, encoding="utf-8")
        result = services.book_analysis.analyze_file(path, min_mentions=1)
        assert result.source == "chapter.txt"
        assert result.names


class TestAddToDatabase:
    """Tests for adding extracted names as characters."""

    @pytest.fixture
    def names(self):
        return [
            ExtractedName(
                "Harry Potter", 12, ["Harry"], first_name="Harry", last_name="Potter"
            ),
            ExtractedName("Gandalf", 4, first_name="Gandalf"),
            ExtractedName("Captain Hook", 3, title="Captain", last_name="Hook"),
        ]

    def test_adds_characters_with_notes(self, services, names):
        """Every new name becomes a character with analysis notes."""
        added, skipped = services.book_analysis.add_to_database(
            names, series="Mixed", book="One"
        )
        assert (added, skipped) == (3, 0)
        harry = services.characters.find_by_name("Harry Potter")
        assert harry.series == "Mixed"
        assert harry.book == "One"
        assert "Mentioned 12 times." in harry.notes
        assert "Variants: Harry" in harry.notes

    def test_name_without_first_name(self, services, names):
        """A title plus one name stores the name as first name."""
        services.book_analysis.add_to_database(names[2:])
        hook = services.characters.list_characters()[0]
        assert hook.first_name == "Hook"
        assert hook.last_name == ""
        assert hook.title == "Captain"

    def test_existing_characters_skipped(self, services, names):
        """Names already in the database are counted as skipped."""
        services.characters.add_character("Harry", "Potter")
        assert services.book_analysis.add_to_database(names) == (2, 1)
        assert services.book_analysis.add_to_database(names) == (0, 3)


def test_character_notes_without_variants():
    """Notes leave out the variants line when there are none."""
    notes = character_notes(ExtractedName("Gandalf", 2))
    assert notes == "Character extracted from book analysis.\nMentioned 2 times."
