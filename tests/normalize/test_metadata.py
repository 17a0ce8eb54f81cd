"""Tests for title/author cleanup and comparison keys."""

import pytest

from normalize.metadata import (
    clean_author,
    clean_title,
    normalize_author,
    normalize_title,
    split_authors,
)


class TestCleanTitle:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Dune (Z-Library).epub", "Dune"),
            ("Sapiens VSBTXDMVTWR6EBF5FI4L7R7WVWBOISPC", "Sapiens"),
            ("The Hobbit [libgen.rs]", "The Hobbit"),
            ("  Middlemarch   ", "Middlemarch"),
            ("Walden (Henry David Thoreau)", "Walden"),
        ],
    )
    def test_strips_noise(self, raw, expected):
        """Test stripping noise from a title."""
        assert clean_title(raw) == expected

    def test_falls_back_when_everything_is_noise(self):
        """Test falling back when the whole title is noise."""
        assert clean_title("(Z-Library)") == "(Z-Library)"


class TestCleanAuthor:
    def test_placeholder_is_none(self):
        """Test a placeholder author gives None."""
        assert clean_author("Unknown Author") is None
        assert clean_author("unknown") is None
        assert clean_author(None) is None

    def test_strips_library_tag(self):
        """Test stripping a library tag from the author."""
        assert clean_author("Orwell, George (Z-Library)") == "Orwell, George"


class TestSplitAuthors:
    def test_separators(self):
        """Test splitting authors on separators."""
        assert split_authors("Gilles Deleuze & Félix Guattari") == ["Gilles Deleuze", "Félix Guattari"]
        assert split_authors("Strunk; White") == ["Strunk", "White"]
        assert split_authors("Marx and Engels") == ["Marx", "Engels"]

    def test_placeholder_gives_empty_list(self):
        """Test a placeholder author gives an empty list."""
        assert split_authors("Unknown Author") == []
        assert split_authors(None) == []


class TestNormalizeTitle:
    def test_case_and_punctuation(self):
        """Test case and punctuation in keys."""
        assert normalize_title("Nineteen Eighty-Four!") == "nineteen eightyfour"

    def test_underscores_and_whitespace(self):
        """Test underscores and whitespace in keys."""
        assert normalize_title("the_great   gatsby") == "the great gatsby"

    def test_distinct_titles_stay_distinct(self):
        """Aliases, not normalization, unify different spellings."""
        assert normalize_title("1984") != normalize_title("Nineteen Eighty-Four")

    def test_author_key(self):
        """Test the author key."""
        assert normalize_author("Orwell, George") == "orwell george"
        assert normalize_author(None) == ""
