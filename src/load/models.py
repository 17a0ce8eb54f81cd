"""Stored records written by the import pipeline."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from extract.models import EntryType, Location, ParsedEntry


@dataclass
class Book:
    """A stored title/author grouping; note_count is maintained by the store."""

    id: str
    title: str
    author: str
    created_at: datetime
    last_modified_at: datetime
    note_count: int = 0
    canonical_book_id: str | None = None
    imported_from: str | None = None


@dataclass
class Note:
    """A persisted highlight, note or bookmark."""

    id: str
    book_id: str
    type: EntryType
    text: str
    content_hash: str
    created_at: datetime
    last_modified_at: datetime
    location: Location | None = None
    page: int | None = None
    date_added: datetime | None = None
    associated_note_id: str | None = None
    imported_from: str | None = None

    @property
    def location_start(self) -> int | None:
        return self.location.start if self.location is not None else None


class ImportStatus(str, Enum):
    """Lifecycle of an import session."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"


@dataclass
class ImportStats:
    """Counts reported for one import run, even when some entries failed."""

    total_entries: int = 0
    books_added: int = 0
    books_updated: int = 0
    notes_added: int = 0
    notes_updated: int = 0
    notes_skipped: int = 0
    review_needed: int = 0
    review_already_pending: int = 0
    parse_errors: int = 0
    validation_errors: int = 0
    dedup_errors: int = 0
    auto_linked: int = 0
    needs_confirmation: int = 0
    provisional: int = 0

    @property
    def errored(self) -> int:
        return self.parse_errors + self.validation_errors + self.dedup_errors

    def to_dict(self) -> dict[str, int]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "ImportStats":
        if not data:
            return cls()
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)


@dataclass
class ImportSession:
    """One raw-text ingestion run."""

    id: str
    file_name: str
    file_size: int
    status: ImportStatus
    started_at: datetime
    completed_at: datetime | None = None
    stats: ImportStats = field(default_factory=ImportStats)
    error_message: str | None = None


@dataclass
class RollbackResult:
    """Outcome of removing everything an import session wrote."""

    session_id: str
    books_removed: int = 0
    notes_removed: int = 0
    success: bool = False
    errors: list[str] = field(default_factory=list)


class ReviewStatus(str, Enum):
    """State of a deferred manual-review dedup decision."""

    PENDING = "pending"
    KEPT_EXISTING = "kept_existing"
    REPLACED = "replaced"
    ADDED = "added"


class ReviewAction(str, Enum):
    """How a user settles a review item."""

    KEEP_EXISTING = "keep_existing"
    REPLACE = "replace"
    ADD = "add"


@dataclass
class ReviewItem:
    """A parsed entry that looked like an existing note but not enough to merge.

    The entry is not written as a Note until the item is resolved with
    ``replace`` or ``add``. ``entry_key`` identifies the entry (book, location,
    type, content hash) so a re-import does not queue the same conflict again.
    """

    id: str
    session_id: str | None
    book_id: str
    existing_note_id: str | None
    entry: ParsedEntry
    similarity: float
    reason: str
    status: ReviewStatus
    created_at: datetime
    resolved_at: datetime | None = None
    entry_key: str = ""
