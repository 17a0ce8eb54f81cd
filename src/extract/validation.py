"""Structural checks on parsed entries before they reach deduplication."""

from common.errors import EntryValidationError
from common.logger import get_logger

from .models import EntryType, ParsedEntry

logger = get_logger(__name__)


def validate_entry(entry: ParsedEntry) -> None:
    """
    Reject entries that cannot be stored.

    Highlights and notes need text. Bookmarks may be empty.

    Raises:
        EntryValidationError: If the entry is invalid
    """
    if not isinstance(entry.content, str):
        raise EntryValidationError(
            f"Entry {entry.parse_index} content is not text", "content", entry.parse_index
        )
    if not entry.title.strip():
        raise EntryValidationError(f"Entry {entry.parse_index} has no title", "title", entry.parse_index)
    if entry.entry_type in (EntryType.HIGHLIGHT, EntryType.NOTE) and not entry.content.strip():
        raise EntryValidationError(
            f"Empty {entry.entry_type.value} in '{entry.title}' (entry {entry.parse_index})",
            "content",
            entry.parse_index,
        )


def split_valid_entries(
    entries: list[ParsedEntry],
) -> tuple[list[ParsedEntry], list[EntryValidationError]]:
    """Partition entries into valid ones and the validation errors of the rest."""
    valid: list[ParsedEntry] = []
    errors: list[EntryValidationError] = []
    for entry in entries:
        try:
            validate_entry(entry)
        except EntryValidationError as e:
            logger.warning(str(e))
            errors.append(e)
        else:
            valid.append(entry)
    return valid, errors
