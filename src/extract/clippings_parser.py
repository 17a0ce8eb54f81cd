"""
Parse an e-reader clippings export into structured entries grouped by book.

The export is a flat text file of blocks separated by a line of ten '='
characters. Each block looks like:

    Nineteen Eighty-Four (George Orwell)
    - Your Highlight on page 3 | location 15-16 | Added on Sunday, December 15, 2024 3:45:00 PM

    It was a bright cold day in April,
    and the clocks were striking thirteen.

Parsing is a single pass over the lines. Problems with one block are
recorded as ParseError rows so the remaining blocks still parse.
"""

import re
from datetime import datetime

from common.constants import ENTRY_SEPARATOR, UNKNOWN_AUTHOR
from common.logger import get_logger

from .models import (
    EntryType,
    FormatCheck,
    Location,
    ParsedBook,
    ParsedEntry,
    ParseError,
    ParseResult,
    ParseStatistics,
)

logger = get_logger(__name__)

BOM = "\ufeff"

METADATA_PATTERN = re.compile(r"^-\s*Your\s+(?P<kind>\w+)\b(?P<rest>.*)$", re.IGNORECASE)
PAGE_PATTERN = re.compile(r"\bpage\s+(\d+)\b", re.IGNORECASE)
LOCATION_PATTERN = re.compile(r"\blocation\s+(\d+(?:\s*-\s*\d+)?)", re.IGNORECASE)
ADDED_ON_PATTERN = re.compile(r"\bAdded\s+on\s+(.+?)\s*$", re.IGNORECASE)
TITLE_PREFIX_PATTERN = re.compile(r"^Book Title:\s*", re.IGNORECASE)

DATE_FORMATS = [
    # Kindle US: "Sunday, December 15, 2024 3:45:00 PM"
    "%A, %B %d, %Y %I:%M:%S %p",
    # Without weekday: "December 15, 2024 3:45:00 PM"
    "%B %d, %Y %I:%M:%S %p",
    # Kindle UK: "Sunday, 15 December 2024 15:45:00"
    "%A, %d %B %Y %H:%M:%S",
]

ENTRY_KINDS = {kind.value: kind for kind in EntryType}


class _BlockError(Exception):
    """Raised inside block parsing; converted to a ParseError row."""


def sanitize_text(raw_text: str) -> str:
    """Normalize line endings and drop a leading byte-order mark."""
    text = raw_text.replace("\r\n", "\n").replace("\r", "\n")
    return text.lstrip(BOM)


def split_title_author(title_line: str) -> tuple[str, str]:
    """
    Split a title line into (title, author).

    Only the outermost parenthetical at the very end of the line is treated
    as the author; parentheses earlier in the title are kept verbatim.
    e.g., 'Dune (Dune Chronicles, Book 1) (Frank Herbert)'
          -> ('Dune (Dune Chronicles, Book 1)', 'Frank Herbert')

    Returns:
        tuple[str, str]: (title, author); author is UNKNOWN_AUTHOR when absent
    """
    line = title_line.strip()
    if not line.endswith(")"):
        return line, UNKNOWN_AUTHOR

    # Walk back from the final ')' to its matching '('
    depth = 0
    for i in range(len(line) - 1, -1, -1):
        char = line[i]
        if char == ")":
            depth += 1
        elif char == "(":
            depth -= 1
            if depth == 0:
                title = line[:i].strip()
                author = line[i + 1 : -1].strip()
                if not title:
                    # The whole line is one parenthetical; keep it as the title
                    return line, UNKNOWN_AUTHOR
                return title, author or UNKNOWN_AUTHOR

    # Unbalanced parentheses
    return line, UNKNOWN_AUTHOR


def parse_date(value: str | None) -> datetime | None:
    """Parse an 'Added on' timestamp; returns None when no format matches."""
    if not value:
        return None
    value = " ".join(value.split())
    for date_format in DATE_FORMATS:
        try:
            return datetime.strptime(value, date_format)
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.warning(f"Could not parse date '{value}'")
        return None


def parse_metadata_line(line: str) -> tuple[EntryType, int | None, Location | None, datetime | None]:
    """
    Parse the '- Your <Kind> on page <p> | location <s>-<e> | Added on <date>' line.

    Page, location and date are each optional. The kind is not.

    Raises:
        _BlockError: If the line is not a metadata line or names an unknown kind
    """
    match = METADATA_PATTERN.match(line.strip())
    if not match:
        raise _BlockError(f"Unrecognized metadata line: {line.strip()!r}")

    kind = ENTRY_KINDS.get(match.group("kind").lower())
    if kind is None:
        raise _BlockError(f"Unknown entry kind: {match.group('kind')!r}")

    rest = match.group("rest")

    page_match = PAGE_PATTERN.search(rest)
    page = int(page_match.group(1)) if page_match else None

    location_match = LOCATION_PATTERN.search(rest)
    location = Location.parse(location_match.group(1).replace(" ", "")) if location_match else None

    date_match = ADDED_ON_PATTERN.search(rest)
    timestamp = parse_date(date_match.group(1)) if date_match else None

    return kind, page, location, timestamp


def _trim_blank_lines(lines: list[str]) -> list[str]:
    start, end = 0, len(lines)
    while start < end and not lines[start].strip():
        start += 1
    while end > start and not lines[end - 1].strip():
        end -= 1
    return lines[start:end]


def _parse_block(lines: list[str], parse_index: int) -> ParsedEntry:
    """Run one trimmed block through the title -> metadata -> body states."""
    title_line = TITLE_PREFIX_PATTERN.sub("", lines[0].strip().lstrip(BOM))
    if not title_line or METADATA_PATTERN.match(title_line):
        raise _BlockError("Missing title line")
    if len(lines) < 2:
        raise _BlockError("Missing metadata line")

    title, author = split_title_author(title_line)
    entry_type, page, location, timestamp = parse_metadata_line(lines[1])

    # Everything after the metadata line (minus the blank spacer) is the body
    body = "\n".join(_trim_blank_lines(lines[2:]))

    if location is None:
        logger.debug(f"Entry {parse_index} in '{title}' has no location")

    return ParsedEntry(
        book_identifier=f"{title}|{author}",
        title=title,
        author=author,
        entry_type=entry_type,
        content=body,
        page=page,
        location=location,
        timestamp=timestamp,
        parse_index=parse_index,
    )


def associate_notes(entries: list[ParsedEntry]) -> tuple[int, int]:
    """
    Link each note to the highlight it annotates.

    A note is attached to a highlight in the same book whose end location
    (or start, for single-location highlights) equals the note's location.

    Returns:
        tuple[int, int]: (associated_notes, standalone_notes)
    """
    highlight_ends: dict[tuple[str, int], int] = {}
    for entry in entries:
        if entry.entry_type == EntryType.HIGHLIGHT and entry.location is not None:
            end = entry.location.end if entry.location.end is not None else entry.location.start
            highlight_ends.setdefault((entry.book_identifier, end), entry.parse_index)

    associated = standalone = 0
    for entry in entries:
        if entry.entry_type != EntryType.NOTE:
            continue
        match = None
        if entry.location is not None:
            match = highlight_ends.get((entry.book_identifier, entry.location.start))
        if match is not None:
            entry.associated_highlight_index = match
            associated += 1
        else:
            standalone += 1
    return associated, standalone


def parse_clippings(raw_text: str) -> ParseResult:
    """
    Parse a raw clippings export.

    Never raises for malformed content: unparsable blocks become ParseError
    rows and parsing continues with the next block.

    Args:
        raw_text: Full export text

    Returns:
        ParseResult with books grouped by exact (title, author), entries in
        input order, per-block errors and statistics
    """
    books: dict[tuple[str, str], ParsedBook] = {}
    entries: list[ParsedEntry] = []
    errors: list[ParseError] = []
    stats = ParseStatistics()

    block_index = 0
    block_lines: list[str] = []

    def flush_block() -> None:
        """Parse the accumulated block, if it has any content."""
        nonlocal block_index, block_lines
        lines = _trim_blank_lines(block_lines)
        block_lines = []
        if not lines:
            return

        current_index = block_index
        block_index += 1
        stats.total_blocks += 1

        try:
            entry = _parse_block(lines, parse_index=len(entries))
        except _BlockError as e:
            logger.debug(f"Block {current_index}: {e}")
            errors.append(
                ParseError(block_index=current_index, message=str(e), context=lines[0][:120])
            )
            return

        book = books.get((entry.title, entry.author))
        if book is None:
            book = ParsedBook(title=entry.title, author=entry.author)
            books[(entry.title, entry.author)] = book
        book.entry_indexes.append(entry.parse_index)
        entries.append(entry)

        if entry.entry_type == EntryType.HIGHLIGHT:
            stats.highlights += 1
        elif entry.entry_type == EntryType.NOTE:
            stats.notes += 1
        elif entry.entry_type == EntryType.BOOKMARK:
            stats.bookmarks += 1
        else:
            raise ValueError(f"Unhandled entry type: {entry.entry_type}")

    for line in sanitize_text(raw_text).split("\n"):
        if line.strip() == ENTRY_SEPARATOR:
            flush_block()
        else:
            block_lines.append(line)
    flush_block()

    stats.unique_books = len(books)
    stats.associated_notes, stats.standalone_notes = associate_notes(entries)

    logger.debug(
        f"Parsed {len(entries)} entries from {stats.total_blocks} blocks "
        f"({len(errors)} errors, {stats.unique_books} books)"
    )

    return ParseResult(
        books=list(books.values()),
        entries=entries,
        errors=errors,
        statistics=stats,
    )


def validate_clippings_text(raw_text: str) -> FormatCheck:
    """
    Quick structural check before a full parse.

    Returns:
        FormatCheck; invalid when the text is empty or has no title/metadata
        lines at all. A missing separator is only a warning.
    """
    if not raw_text or not raw_text.strip():
        return FormatCheck(is_valid=False, errors=["File content is empty"])

    text = sanitize_text(raw_text)
    has_metadata = re.search(
        r"^-\s*Your\s+(Highlight|Note|Bookmark)\b", text, re.IGNORECASE | re.MULTILINE
    )
    check = FormatCheck(is_valid=True)

    if not has_metadata:
        check.is_valid = False
        check.errors.append(
            "Text does not look like a clippings export (no highlight, note or bookmark lines)"
        )

    separator_count = sum(1 for line in text.split("\n") if line.strip() == ENTRY_SEPARATOR)
    if separator_count == 0:
        check.warnings.append(
            f"No entry separators ({ENTRY_SEPARATOR}) found, parsing may be unreliable"
        )
    check.estimated_entries = max(separator_count, 1)
    return check
