"""Tests for content hashing and entry validation."""

import logging

import pytest

from common.errors import EntryValidationError
from extract.item_id import content_hash
from extract.models import EntryType, Location, ParsedEntry
from extract.validation import split_valid_entries, validate_entry


def make_entry(content="Some text", entry_type=EntryType.HIGHLIGHT, title="Book", parse_index=0):
    return ParsedEntry(
        book_identifier=f"{title}|Author",
        title=title,
        author="Author",
        entry_type=entry_type,
        content=content,
        page=None,
        location=Location(10),
        timestamp=None,
        parse_index=parse_index,
    )


class TestContentHash:
    def test_format(self):
        """Test the content hash format."""
        digest = content_hash("hello")
        assert digest.startswith("sha256:")
        assert len(digest) == len("sha256:") + 64

    def test_deterministic(self):
        """Test the content hash is deterministic."""
        assert content_hash("The clocks were striking") == content_hash("The clocks were striking")

    def test_ignores_case_and_wrapping(self):
        """Re-wrapped or re-cased exports hash the same."""
        assert content_hash("It was a\nbright  cold day") == content_hash("it was a bright cold day ")

    def test_different_text_differs(self):
        """Test different text gives a different hash."""
        assert content_hash("one") != content_hash("two")

    def test_none_and_empty_match(self):
        """Test None and empty text hash the same."""
        assert content_hash(None) == content_hash("")

    def test_rejects_non_text(self):
        """Test non-text content is rejected."""
        with pytest.raises(TypeError):
            content_hash(42)


class TestValidateEntry:
    def test_valid_highlight(self):
        """Test a valid highlight."""
        validate_entry(make_entry())

    def test_empty_bookmark_is_valid(self):
        """Test an empty bookmark is valid."""
        validate_entry(make_entry(content="", entry_type=EntryType.BOOKMARK))

    @pytest.mark.parametrize("entry_type", [EntryType.HIGHLIGHT, EntryType.NOTE])
    def test_empty_text_rejected(self, entry_type):
        """Test empty text is rejected for highlights and notes."""
        with pytest.raises(EntryValidationError) as exc_info:
            validate_entry(make_entry(content="   \n", entry_type=entry_type, parse_index=4))
        assert exc_info.value.field == "content"
        assert exc_info.value.parse_index == 4

    def test_missing_title_rejected(self):
        """Test a missing title is rejected."""
        with pytest.raises(EntryValidationError) as exc_info:
            validate_entry(make_entry(title="  "))
        assert exc_info.value.field == "title"

    def test_non_text_content_rejected(self):
        """Test non-text content is rejected."""
        with pytest.raises(EntryValidationError, match="not text"):
            validate_entry(make_entry(content=None))


class TestSplitValidEntries:
    def test_partitions_and_logs(self, caplog):
        """Test splitting valid from invalid entries with a log line."""
        entries = [
            make_entry(parse_index=0),
            make_entry(content="", parse_index=1),
            make_entry(content="", entry_type=EntryType.BOOKMARK, parse_index=2),
        ]

        with caplog.at_level(logging.WARNING):
            valid, errors = split_valid_entries(entries)

        assert [entry.parse_index for entry in valid] == [0, 2]
        assert len(errors) == 1
        assert errors[0].parse_index == 1
        assert "Empty highlight" in caplog.text
