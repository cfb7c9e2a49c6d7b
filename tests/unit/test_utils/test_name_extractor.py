"""Tests for character name extraction."""

from collections import Counter

import pytest

from storyguard.utils.name_extractor import (
    _strip_leading_common_words,
    combine_variants,
    count_mentions,
    extract_names,
    filter_common_words,
    is_likely_character_name,
    split_name,
)

MANUSCRIPT = """Chapter One

Harry Potter walked into the hall. Harry said nothing at first.
"Come here, Harry!" Hermione whispered. Harry Potter smiled at her.
On Monday, Harry's owl arrived. Hermione asked about the letter.
"Please, Hermione, read it," said Ron. Ron laughed. Harry shrugged.
"""


class TestIsLikelyCharacterName:
    """Tests for the candidate shape check."""

    @pytest.mark.parametrize("name", ["Harry", "Mary Anne", "O'Neil"])
    def test_accepts_names(self, name):
        """Capitalized words of a sensible shape pass."""
        assert is_likely_character_name(name)

    @pytest.mark.parametrize("name", ["Al", "NASA", "harry", "R2D2", "The", "Bob#"])
    def test_rejects_non_names(self, name):
        """Short, all-caps, lowercase, numeric and function words fail."""
        assert not is_likely_character_name(name)


class TestStripLeadingCommonWords:
    """Tests for removing sentence starters from candidates."""

    def test_strips_starters(self):
        """Common words in front of a name are dropped."""
        assert _strip_leading_common_words("Then John") == "John"
        assert _strip_leading_common_words("But Then Mary Smith") == "Mary Smith"

    def test_keeps_titles(self):
        """Titles stay even though they are common words."""
        assert _strip_leading_common_words("Captain Hook") == "Captain Hook"

    def test_single_word_untouched(self):
        """A lone common word is left for the common word filter."""
        assert _strip_leading_common_words("Monday") == "Monday"


class TestCounting:
    """Tests for the detection passes and common word filter."""

    def test_counts_dialogue_and_possessives(self):
        """Speech tags and possessives count as mentions."""
        counter = count_mentions('Marta said hello. "Hi," replied Marta. Marta\'s cat purred.')
        assert counter["Marta"] >= 3

    def test_filter_common_words(self):
        """Days, pronouns and similar words are dropped."""
        counter = filter_common_words(Counter({"Monday": 4, "Harry": 3, "Then": 2}))
        assert counter == Counter({"Harry": 3})


class TestCombineVariants:
    """Tests for merging name variants."""

    def test_first_name_merges_into_full_name(self):
        """A lone first name joins the full name."""
        merged = combine_variants(Counter({"John Smith": 5, "John": 3}))
        assert merged == {"John Smith": (8, ["John"])}

    def test_nickname_merges_into_formal_name(self):
        """Nicknames join the entry using the formal first name."""
        merged = combine_variants(Counter({"James Hawkins": 4, "Jim Hawkins": 2}))
        assert merged == {"James Hawkins": (6, ["Jim Hawkins"])}

    def test_titles_do_not_merge(self):
        """A bare title is not treated as a first name."""
        merged = combine_variants(Counter({"Captain Smith": 3, "Captain": 2}))
        assert merged["Captain Smith"] == (3, [])


class TestSplitName:
    """Tests for splitting names into title, first and last name."""

    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("Gandalf", ("", "Gandalf", "")),
            ("Harry Potter", ("", "Harry", "Potter")),
            ("Mary Anne Smith", ("", "Mary Anne", "Smith")),
            ("Captain Smith", ("Captain", "", "Smith")),
            ("Mr. Darcy", ("Mr.", "", "Darcy")),
            ("Sir Lancelot", ("Sir", "Lancelot", "")),
            ("Dr. John Watson", ("Dr.", "John", "Watson")),
            ("Professor Albus Percival Dumbledore", ("Professor", "Albus", "Percival Dumbledore")),
            ("", ("", "", "")),
        ],
    )
    def test_split(self, name, expected):
        """Title categories decide where a single word goes."""
        assert split_name(name) == expected


class TestExtractNames:
    """Tests for the full extraction pipeline."""

    def test_finds_main_character(self):
        """The most mentioned name comes first with its variants."""
        names = extract_names(MANUSCRIPT)
        assert names[0].name == "Harry Potter"
        assert "Harry" in names[0].variants
        assert names[0].first_name == "Harry"
        assert names[0].last_name == "Potter"

    def test_common_words_excluded(self):
        """Chapter headings and days never become characters."""
        found = {n.name for n in extract_names(MANUSCRIPT, min_mentions=1)}
        assert "Monday" not in found
        assert "Chapter" not in found
        assert "Chapter One" not in found
        assert "Hermione" in found
        assert "Ron" in found

    def test_min_mentions_filters(self):
        """Raising min_mentions drops rarely mentioned names."""
        all_names = extract_names(MANUSCRIPT, min_mentions=1)
        frequent = extract_names(MANUSCRIPT, min_mentions=100)
        assert len(all_names) > 0
        assert frequent == []

    def test_sorted_by_mentions(self):
        """Names are ordered by mention count."""
        names = extract_names(MANUSCRIPT, min_mentions=1)
        counts = [n.mentions for n in names]
        assert counts == sorted(counts, reverse=True)

    def test_empty_text(self):
        """Blank text yields nothing."""
        assert extract_names("") == []
        assert extract_names("   \n") == []
