"""Record store over a DatabaseAdapter.

All reads and writes of books, notes, canonical identities, aliases,
pending confirmations, review items and import sessions go through
``ReadingStore``. Writes are grouped with ``batch()``: everything written
inside the outermost ``with store.batch():`` commits together or rolls back
together. A write made outside any batch commits on its own.

Example:
    >>> store = ReadingStore(get_adapter())
    >>> with store.batch():
    ...     store.add_book(book)
    ...     store.add_note(note)
    ...     store.recompute_note_counts([book.id])
"""

import json
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, TypeVar

from common.logger import get_logger
from enrich.clients.base import CatalogCandidate
from enrich.models import (
    AliasResolution,
    BookAlias,
    CanonicalBookIdentity,
    MatchSource,
    MatchStatus,
    PendingConfirmation,
    PendingStatus,
)
from extract.models import EntryType, Location, ParsedEntry

from .db import DatabaseAdapter, Row, get_adapter
from .models import (
    Book,
    ImportSession,
    ImportStats,
    ImportStatus,
    Note,
    ReviewItem,
    ReviewStatus,
)

logger = get_logger(__name__)

T = TypeVar("T")


def to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def entry_to_dict(entry: ParsedEntry) -> dict[str, Any]:
    """Serialize a parsed entry for storage in a review item."""
    return {
        "book_identifier": entry.book_identifier,
        "title": entry.title,
        "author": entry.author,
        "entry_type": entry.entry_type.value,
        "content": entry.content,
        "page": entry.page,
        "location": str(entry.location) if entry.location is not None else None,
        "timestamp": to_iso(entry.timestamp),
        "parse_index": entry.parse_index,
        "associated_highlight_index": entry.associated_highlight_index,
    }


def entry_from_dict(data: dict[str, Any]) -> ParsedEntry:
    return ParsedEntry(
        book_identifier=data["book_identifier"],
        title=data["title"],
        author=data["author"],
        entry_type=EntryType(data["entry_type"]),
        content=data["content"],
        page=data.get("page"),
        location=Location.parse(data.get("location")),
        timestamp=from_iso(data.get("timestamp")),
        parse_index=data["parse_index"],
        associated_highlight_index=data.get("associated_highlight_index"),
    )


class RecordCache:
    """Lazily loaded read cache, cleared on every write, commit and rollback."""

    def __init__(self):
        self._entries: dict[str, Any] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: str, loader: Callable[[], T]) -> T:
        if key in self._entries:
            self.hits += 1
            return self._entries[key]
        self.misses += 1
        value = loader()
        self._entries[key] = value
        return value

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class ReadingStore:
    """Storage collaborator for the import pipeline and the canonical resolver."""

    def __init__(self, adapter: DatabaseAdapter | None = None, initialize: bool = True):
        """Initialize the store.

        Args:
            adapter: Database adapter (if None, creates one from env)
            initialize: Connect and create the schema if needed
        """
        self.adapter = adapter or get_adapter()
        self.cache = RecordCache()
        self._depth = 0
        if initialize:
            if not self.adapter.is_connected:
                self.adapter.connect()
            self.adapter.create_schema()

    def close(self) -> None:
        self.cache.invalidate()
        self.adapter.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def batch(self) -> Iterator["ReadingStore"]:
        """Group writes into one transaction. Nested batches join the outer one.

        Raises:
            DatabaseError: Re-raised after rolling back the whole transaction
        """
        self._depth += 1
        # Every write goes through here, so cached reads never see a stale row
        self.cache.invalidate()
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self.adapter.rollback()
                self.cache.invalidate()
                logger.debug("Rolled back store transaction")
            raise
        else:
            self._depth -= 1
            if self._depth == 0:
                self.adapter.commit()
                self.cache.invalidate()

    @property
    def in_batch(self) -> bool:
        return self._depth > 0

    # ------------------------------------------------------------------
    # Books
    # ------------------------------------------------------------------

    def _book_from_row(self, row: Row) -> Book:
        return Book(
            id=row["id"],
            title=row["title"],
            author=row["author"],
            note_count=row["note_count"],
            canonical_book_id=row["canonical_book_id"],
            imported_from=row["imported_from"],
            created_at=from_iso(row["created_at"]),
            last_modified_at=from_iso(row["last_modified_at"]),
        )

    def all_books(self) -> list[Book]:
        return self.cache.get(
            "books",
            lambda: [
                self._book_from_row(row)
                for row in self.adapter.fetchall("SELECT * FROM books ORDER BY created_at, id")
            ],
        )

    def get_book(self, book_id: str) -> Book | None:
        row = self.adapter.fetchone("SELECT * FROM books WHERE id = ?", (book_id,))
        return self._book_from_row(row) if row else None

    def find_book(self, title: str, author: str) -> Book | None:
        row = self.adapter.fetchone(
            "SELECT * FROM books WHERE title = ? AND author = ? ORDER BY created_at LIMIT 1",
            (title, author),
        )
        return self._book_from_row(row) if row else None

    def find_book_by_canonical(self, canonical_book_id: str) -> Book | None:
        row = self.adapter.fetchone(
            "SELECT * FROM books WHERE canonical_book_id = ? ORDER BY created_at LIMIT 1",
            (canonical_book_id,),
        )
        return self._book_from_row(row) if row else None

    def add_book(self, book: Book) -> None:
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO books
                (id, title, author, note_count, canonical_book_id, imported_from,
                 created_at, last_modified_at)
                VALUES (?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (
                    book.id,
                    book.title,
                    book.author,
                    book.canonical_book_id,
                    book.imported_from,
                    to_iso(book.created_at),
                    to_iso(book.last_modified_at),
                ),
            )

    def update_book(self, book: Book) -> None:
        """Update a book's title, author, canonical link and modification time."""
        with self.batch():
            self.adapter.execute(
                """
                UPDATE books
                SET title = ?, author = ?, canonical_book_id = ?, last_modified_at = ?
                WHERE id = ?
                """,
                (
                    book.title,
                    book.author,
                    book.canonical_book_id,
                    to_iso(book.last_modified_at),
                    book.id,
                ),
            )

    def relink_books(self, from_canonical_id: str, to_canonical_id: str) -> int:
        """Point every book linked to one canonical identity at another."""
        with self.batch():
            cursor = self.adapter.execute(
                "UPDATE books SET canonical_book_id = ? WHERE canonical_book_id = ?",
                (to_canonical_id, from_canonical_id),
            )
            return cursor.rowcount

    def recompute_note_counts(self, book_ids: Iterable[str] | None = None) -> int:
        """Set note_count to the number of live notes for the given books (all if None).

        ``last_modified_at`` moves forward only for books whose count changed.

        Returns:
            Number of books whose count changed
        """
        if book_ids is None:
            ids = [row["id"] for row in self.adapter.fetchall("SELECT id FROM books")]
        else:
            ids = list(dict.fromkeys(book_ids))

        changed = 0
        now = to_iso(datetime.now())
        with self.batch():
            for book_id in ids:
                cursor = self.adapter.execute(
                    """
                    UPDATE books
                    SET note_count = (SELECT COUNT(*) FROM notes WHERE notes.book_id = books.id),
                        last_modified_at = MAX(last_modified_at, ?)
                    WHERE id = ?
                      AND note_count != (SELECT COUNT(*) FROM notes WHERE notes.book_id = books.id)
                    """,
                    (now, book_id),
                )
                changed += cursor.rowcount
        return changed

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def _note_from_row(self, row: Row) -> Note:
        location = None
        if row["location_start"] is not None:
            location = Location(row["location_start"], row["location_end"])
        return Note(
            id=row["id"],
            book_id=row["book_id"],
            type=EntryType(row["type"]),
            text=row["text"],
            content_hash=row["content_hash"],
            location=location,
            page=row["page"],
            date_added=from_iso(row["date_added"]),
            associated_note_id=row["associated_note_id"],
            imported_from=row["imported_from"],
            created_at=from_iso(row["created_at"]),
            last_modified_at=from_iso(row["last_modified_at"]),
        )

    def all_notes(self) -> list[Note]:
        return self.cache.get(
            "notes",
            lambda: [
                self._note_from_row(row)
                for row in self.adapter.fetchall("SELECT * FROM notes ORDER BY created_at, id")
            ],
        )

    def get_note(self, note_id: str) -> Note | None:
        row = self.adapter.fetchone("SELECT * FROM notes WHERE id = ?", (note_id,))
        return self._note_from_row(row) if row else None

    def notes_for_book(self, book_id: str) -> list[Note]:
        return [
            self._note_from_row(row)
            for row in self.adapter.fetchall(
                "SELECT * FROM notes WHERE book_id = ? ORDER BY location_start, created_at",
                (book_id,),
            )
        ]

    def find_conflicting_note(
        self,
        book_id: str,
        entry_type: EntryType,
        location_start: int | None,
        content_hash: str,
    ) -> Note | None:
        """Find the live note occupying the same uniqueness slot, if any."""
        if location_start is not None:
            row = self.adapter.fetchone(
                "SELECT * FROM notes WHERE book_id = ? AND type = ? AND location_start = ?",
                (book_id, entry_type.value, location_start),
            )
        else:
            row = self.adapter.fetchone(
                """
                SELECT * FROM notes
                WHERE book_id = ? AND type = ? AND location_start IS NULL AND content_hash = ?
                """,
                (book_id, entry_type.value, content_hash),
            )
        return self._note_from_row(row) if row else None

    def add_notes(self, notes: list[Note]) -> None:
        if not notes:
            return
        with self.batch():
            self.adapter.executemany(
                """
                INSERT INTO notes
                (id, book_id, type, text, content_hash, location_start, location_end, page,
                 date_added, associated_note_id, imported_from, created_at, last_modified_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        note.id,
                        note.book_id,
                        note.type.value,
                        note.text,
                        note.content_hash,
                        note.location.start if note.location else None,
                        note.location.end if note.location else None,
                        note.page,
                        to_iso(note.date_added),
                        note.associated_note_id,
                        note.imported_from,
                        to_iso(note.created_at),
                        to_iso(note.last_modified_at),
                    )
                    for note in notes
                ],
            )

    def add_note(self, note: Note) -> None:
        self.add_notes([note])

    def update_note_content(
        self, note_id: str, text: str, content_hash: str, modified_at: datetime
    ) -> None:
        with self.batch():
            self.adapter.execute(
                """
                UPDATE notes SET text = ?, content_hash = ?, last_modified_at = ?
                WHERE id = ?
                """,
                (text, content_hash, to_iso(modified_at), note_id),
            )

    def delete_session_records(self, session_id: str) -> tuple[int, int, list[str]]:
        """Delete notes, then now-empty books, written by an import session.

        Books created by the session that later received notes from another
        session are kept.

        Returns:
            Tuple of (notes_removed, books_removed, affected_book_ids)
        """
        with self.batch():
            affected = [
                row["book_id"]
                for row in self.adapter.fetchall(
                    "SELECT DISTINCT book_id FROM notes WHERE imported_from = ?", (session_id,)
                )
            ]
            notes_removed = self.adapter.execute(
                "DELETE FROM notes WHERE imported_from = ?", (session_id,)
            ).rowcount
            self.adapter.execute(
                "DELETE FROM review_items WHERE session_id = ? AND status = ?",
                (session_id, ReviewStatus.PENDING.value),
            )
            books_removed = self.adapter.execute(
                """
                DELETE FROM books
                WHERE imported_from = ?
                  AND NOT EXISTS (SELECT 1 FROM notes WHERE notes.book_id = books.id)
                """,
                (session_id,),
            ).rowcount
            remaining = [book_id for book_id in affected if self.get_book(book_id) is not None]
            self.recompute_note_counts(remaining)
        return notes_removed, books_removed, remaining

    # ------------------------------------------------------------------
    # Canonical identities
    # ------------------------------------------------------------------

    def _canonical_from_row(self, row: Row) -> CanonicalBookIdentity:
        return CanonicalBookIdentity(
            canonical_book_id=row["canonical_book_id"],
            title_canonical=row["title_canonical"],
            title_normalized=row["title_normalized"],
            authors_canonical=json.loads(row["authors_canonical"] or "[]"),
            external_catalog_id=row["external_catalog_id"],
            isbn13=row["isbn13"],
            cover_url=row["cover_url"],
            match_status=MatchStatus(row["match_status"]),
            match_source=MatchSource(row["match_source"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    def get_canonical(self, canonical_book_id: str) -> CanonicalBookIdentity | None:
        row = self.adapter.fetchone(
            "SELECT * FROM canonical_books WHERE canonical_book_id = ?", (canonical_book_id,)
        )
        return self._canonical_from_row(row) if row else None

    def find_canonical_by_external_id(self, external_id: str) -> CanonicalBookIdentity | None:
        row = self.adapter.fetchone(
            "SELECT * FROM canonical_books WHERE external_catalog_id = ?", (external_id,)
        )
        return self._canonical_from_row(row) if row else None

    def find_canonical_by_title(self, title_normalized: str) -> CanonicalBookIdentity | None:
        """Oldest identity with this normalized title."""
        row = self.adapter.fetchone(
            """
            SELECT * FROM canonical_books WHERE title_normalized = ?
            ORDER BY created_at, canonical_book_id LIMIT 1
            """,
            (title_normalized,),
        )
        return self._canonical_from_row(row) if row else None

    def all_canonical(self) -> list[CanonicalBookIdentity]:
        return self.cache.get(
            "canonical_books",
            lambda: [
                self._canonical_from_row(row)
                for row in self.adapter.fetchall(
                    "SELECT * FROM canonical_books ORDER BY created_at, canonical_book_id"
                )
            ],
        )

    def save_canonical(self, identity: CanonicalBookIdentity) -> None:
        """Insert or update a canonical identity."""
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO canonical_books
                (canonical_book_id, title_canonical, title_normalized, authors_canonical,
                 external_catalog_id, isbn13, cover_url, match_status, match_source,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(canonical_book_id) DO UPDATE SET
                    title_canonical = excluded.title_canonical,
                    title_normalized = excluded.title_normalized,
                    authors_canonical = excluded.authors_canonical,
                    external_catalog_id = excluded.external_catalog_id,
                    isbn13 = excluded.isbn13,
                    cover_url = excluded.cover_url,
                    match_status = excluded.match_status,
                    match_source = excluded.match_source,
                    updated_at = excluded.updated_at
                """,
                (
                    identity.canonical_book_id,
                    identity.title_canonical,
                    identity.title_normalized,
                    json.dumps(identity.authors_canonical),
                    identity.external_catalog_id,
                    identity.isbn13,
                    identity.cover_url,
                    identity.match_status.value,
                    identity.match_source.value,
                    to_iso(identity.created_at),
                    to_iso(identity.updated_at),
                ),
            )

    # ------------------------------------------------------------------
    # Aliases
    # ------------------------------------------------------------------

    def _alias_from_row(self, row: Row) -> BookAlias:
        return BookAlias(
            id=row["id"],
            normalized_key=row["normalized_key"],
            raw_title=row["raw_title"],
            raw_author=row["raw_author"],
            canonical_book_id=row["canonical_book_id"],
            confidence=row["confidence"],
            resolution=AliasResolution(row["resolution"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )

    def find_alias(self, normalized_key: str) -> BookAlias | None:
        row = self.adapter.fetchone(
            "SELECT * FROM book_aliases WHERE normalized_key = ?", (normalized_key,)
        )
        return self._alias_from_row(row) if row else None

    def aliases_for(self, canonical_book_id: str) -> list[BookAlias]:
        return [
            self._alias_from_row(row)
            for row in self.adapter.fetchall(
                "SELECT * FROM book_aliases WHERE canonical_book_id = ? ORDER BY created_at",
                (canonical_book_id,),
            )
        ]

    def save_alias(self, alias: BookAlias) -> None:
        """Insert an alias, or repoint the existing alias for the same key."""
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO book_aliases
                (id, normalized_key, raw_title, raw_author, canonical_book_id, confidence,
                 resolution, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(normalized_key) DO UPDATE SET
                    raw_title = excluded.raw_title,
                    raw_author = excluded.raw_author,
                    canonical_book_id = excluded.canonical_book_id,
                    confidence = excluded.confidence,
                    resolution = excluded.resolution,
                    updated_at = excluded.updated_at
                """,
                (
                    alias.id,
                    alias.normalized_key,
                    alias.raw_title,
                    alias.raw_author,
                    alias.canonical_book_id,
                    alias.confidence,
                    alias.resolution.value,
                    to_iso(alias.created_at),
                    to_iso(alias.updated_at),
                ),
            )

    # ------------------------------------------------------------------
    # Pending confirmations
    # ------------------------------------------------------------------

    def _pending_from_row(self, row: Row) -> PendingConfirmation:
        return PendingConfirmation(
            id=row["id"],
            canonical_book_id=row["canonical_book_id"],
            raw_title=row["raw_title"],
            raw_author=row["raw_author"],
            candidate=CatalogCandidate.from_dict(json.loads(row["candidate"])),
            confidence=row["confidence"],
            status=PendingStatus(row["status"]),
            created_at=from_iso(row["created_at"]),
            resolved_at=from_iso(row["resolved_at"]),
        )

    def get_pending(self, pending_id: str) -> PendingConfirmation | None:
        row = self.adapter.fetchone(
            "SELECT * FROM pending_confirmations WHERE id = ?", (pending_id,)
        )
        return self._pending_from_row(row) if row else None

    def find_open_pending(
        self, canonical_book_id: str, candidate_id: str
    ) -> PendingConfirmation | None:
        row = self.adapter.fetchone(
            """
            SELECT * FROM pending_confirmations
            WHERE canonical_book_id = ? AND status = ?
              AND json_extract(candidate, '$.candidate_id') = ?
            """,
            (canonical_book_id, PendingStatus.PENDING.value, candidate_id),
        )
        return self._pending_from_row(row) if row else None

    def list_pending(self, status: PendingStatus | None = PendingStatus.PENDING) -> list[PendingConfirmation]:
        if status is None:
            rows = self.adapter.fetchall(
                "SELECT * FROM pending_confirmations ORDER BY created_at"
            )
        else:
            rows = self.adapter.fetchall(
                "SELECT * FROM pending_confirmations WHERE status = ? ORDER BY created_at",
                (status.value,),
            )
        return [self._pending_from_row(row) for row in rows]

    def save_pending(self, pending: PendingConfirmation) -> None:
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO pending_confirmations
                (id, canonical_book_id, raw_title, raw_author, candidate, confidence,
                 status, created_at, resolved_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    canonical_book_id = excluded.canonical_book_id,
                    confidence = excluded.confidence,
                    status = excluded.status,
                    resolved_at = excluded.resolved_at
                """,
                (
                    pending.id,
                    pending.canonical_book_id,
                    pending.raw_title,
                    pending.raw_author,
                    json.dumps(pending.candidate.to_dict()),
                    pending.confidence,
                    pending.status.value,
                    to_iso(pending.created_at),
                    to_iso(pending.resolved_at),
                ),
            )

    # ------------------------------------------------------------------
    # Review items
    # ------------------------------------------------------------------

    def _review_from_row(self, row: Row) -> ReviewItem:
        return ReviewItem(
            id=row["id"],
            session_id=row["session_id"],
            book_id=row["book_id"],
            existing_note_id=row["existing_note_id"],
            entry=entry_from_dict(json.loads(row["entry"])),
            similarity=row["similarity"],
            reason=row["reason"],
            status=ReviewStatus(row["status"]),
            created_at=from_iso(row["created_at"]),
            resolved_at=from_iso(row["resolved_at"]),
            entry_key=row["entry_key"],
        )

    def get_review_item(self, review_id: str) -> ReviewItem | None:
        row = self.adapter.fetchone("SELECT * FROM review_items WHERE id = ?", (review_id,))
        return self._review_from_row(row) if row else None

    def list_review_items(self, status: ReviewStatus | None = ReviewStatus.PENDING) -> list[ReviewItem]:
        if status is None:
            rows = self.adapter.fetchall("SELECT * FROM review_items ORDER BY created_at")
        else:
            rows = self.adapter.fetchall(
                "SELECT * FROM review_items WHERE status = ? ORDER BY created_at",
                (status.value,),
            )
        return [self._review_from_row(row) for row in rows]

    def find_review_item(
        self,
        entry_key: str,
        existing_note_id: str | None,
        statuses: Iterable[ReviewStatus] = (ReviewStatus.PENDING,),
    ) -> ReviewItem | None:
        """Most recent review item for the same entry and note with one of ``statuses``."""
        statuses = [status.value for status in statuses]
        placeholders = ", ".join("?" for _ in statuses)
        row = self.adapter.fetchone(
            f"""
            SELECT * FROM review_items
            WHERE entry_key = ? AND existing_note_id IS ? AND status IN ({placeholders})
            ORDER BY created_at DESC
            LIMIT 1
            """,
            (entry_key, existing_note_id, *statuses),
        )
        return self._review_from_row(row) if row else None

    def save_review_item(self, item: ReviewItem) -> None:
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO review_items
                (id, session_id, book_id, existing_note_id, entry, similarity, reason,
                 status, created_at, resolved_at, entry_key)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    resolved_at = excluded.resolved_at
                """,
                (
                    item.id,
                    item.session_id,
                    item.book_id,
                    item.existing_note_id,
                    json.dumps(entry_to_dict(item.entry)),
                    item.similarity,
                    item.reason,
                    item.status.value,
                    to_iso(item.created_at),
                    to_iso(item.resolved_at),
                    item.entry_key,
                ),
            )

    # ------------------------------------------------------------------
    # Import sessions
    # ------------------------------------------------------------------

    def _session_from_row(self, row: Row) -> ImportSession:
        return ImportSession(
            id=row["id"],
            file_name=row["file_name"],
            file_size=row["file_size"],
            status=ImportStatus(row["status"]),
            started_at=from_iso(row["started_at"]),
            completed_at=from_iso(row["completed_at"]),
            stats=ImportStats.from_dict(json.loads(row["stats"] or "{}")),
            error_message=row["error_message"],
        )

    def get_session(self, session_id: str) -> ImportSession | None:
        row = self.adapter.fetchone("SELECT * FROM import_sessions WHERE id = ?", (session_id,))
        return self._session_from_row(row) if row else None

    def list_sessions(
        self, status: ImportStatus | None = None, limit: int | None = None
    ) -> list[ImportSession]:
        query = "SELECT * FROM import_sessions"
        params: tuple = ()
        if status is not None:
            query += " WHERE status = ?"
            params = (status.value,)
        query += " ORDER BY started_at DESC"
        if limit is not None:
            query += " LIMIT ?"
            params = params + (limit,)
        return [self._session_from_row(row) for row in self.adapter.fetchall(query, params)]

    def save_session(self, session: ImportSession) -> None:
        with self.batch():
            self.adapter.execute(
                """
                INSERT INTO import_sessions
                (id, file_name, file_size, status, started_at, completed_at, stats, error_message)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    status = excluded.status,
                    completed_at = excluded.completed_at,
                    stats = excluded.stats,
                    error_message = excluded.error_message
                """,
                (
                    session.id,
                    session.file_name,
                    session.file_size,
                    session.status.value,
                    to_iso(session.started_at),
                    to_iso(session.completed_at),
                    json.dumps(session.stats.to_dict()),
                    session.error_message,
                ),
            )
