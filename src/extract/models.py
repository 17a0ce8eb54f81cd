"""Data models produced by the clippings parser."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EntryType(str, Enum):
    """Kind of annotation recorded in a clipping block."""

    HIGHLIGHT = "highlight"
    NOTE = "note"
    BOOKMARK = "bookmark"


@dataclass(frozen=True)
class Location:
    """Reader location marker; ``end`` is set for ranged highlights."""

    start: int
    end: int | None = None

    def __str__(self) -> str:
        if self.end is None:
            return str(self.start)
        return f"{self.start}-{self.end}"

    @classmethod
    def parse(cls, value: str | None) -> "Location | None":
        """Parse '15' or '15-16'; anything else yields None."""
        if not value:
            return None
        start, _, end = value.strip().partition("-")
        if not start.isdigit() or (end and not end.isdigit()):
            return None
        return cls(int(start), int(end) if end else None)


@dataclass
class ParsedEntry:
    """One annotation recovered from a clipping block."""

    book_identifier: str
    title: str
    author: str
    entry_type: EntryType
    content: str
    page: int | None
    location: Location | None
    timestamp: datetime | None
    parse_index: int
    associated_highlight_index: int | None = None


@dataclass
class ParsedBook:
    """A title/author grouping exactly as it appears in the export."""

    title: str
    author: str
    entry_indexes: list[int] = field(default_factory=list)

    @property
    def book_identifier(self) -> str:
        return f"{self.title}|{self.author}"

    @property
    def entry_count(self) -> int:
        return len(self.entry_indexes)


@dataclass
class ParseError:
    """A block that could not be parsed; collected, never raised."""

    block_index: int
    message: str
    context: str


@dataclass
class ParseStatistics:
    """Counts gathered while parsing one export."""

    total_blocks: int = 0
    highlights: int = 0
    notes: int = 0
    bookmarks: int = 0
    unique_books: int = 0
    associated_notes: int = 0
    standalone_notes: int = 0


@dataclass
class ParseResult:
    """Complete output of a parse run."""

    books: list[ParsedBook]
    entries: list[ParsedEntry]
    errors: list[ParseError]
    statistics: ParseStatistics


@dataclass
class FormatCheck:
    """Outcome of a quick structural check on raw export text."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    estimated_entries: int = 0
