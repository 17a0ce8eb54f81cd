"""
End-to-end import of a clippings export.

    validate -> parse -> validate entries -> resolve each distinct book
    -> dedup against a store snapshot -> write in one transaction
    -> complete session

Parse, validation and dedup problems are counted and reported; only a
storage failure aborts the import, in which case nothing from this run is
kept and the session is marked failed.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from common.errors import ClippingsError, EntryValidationError, NotFoundError, StorageFailure
from common.logger import get_logger
from dedup.engine import DecisionKind, DedupConfig, DedupDecision, DeduplicationEngine
from dedup.index import build_index, exact_key, location_key
from enrich.models import Resolution, ResolutionMode
from enrich.resolver import CanonicalResolver
from extract.clippings_parser import parse_clippings, validate_clippings_text
from extract.item_id import content_hash
from extract.models import EntryType, FormatCheck, ParsedBook, ParsedEntry, ParseError
from extract.validation import split_valid_entries

from .db import DatabaseError
from .import_session import ImportSessionTracker
from .models import (
    Book,
    ImportStats,
    ImportStatus,
    Note,
    ReviewAction,
    ReviewItem,
    ReviewStatus,
)
from .store import ReadingStore

logger = get_logger(__name__)


@dataclass
class ImportResult:
    """What one import run did."""

    session_id: str
    status: ImportStatus
    stats: ImportStats
    format_check: FormatCheck
    parse_errors: list[ParseError] = field(default_factory=list)
    validation_errors: list[EntryValidationError] = field(default_factory=list)
    dedup_errors: list[str] = field(default_factory=list)
    decisions: list[DedupDecision] = field(default_factory=list)
    review_item_ids: list[str] = field(default_factory=list)
    resolutions: dict[str, Resolution] = field(default_factory=dict)


def note_from_entry(
    entry: ParsedEntry, note_id: str, book_id: str, session_id: str | None, now: datetime
) -> Note:
    return Note(
        id=note_id,
        book_id=book_id,
        type=entry.entry_type,
        text=entry.content,
        content_hash=content_hash(entry.content),
        location=entry.location,
        page=entry.page,
        date_added=entry.timestamp,
        imported_from=session_id,
        created_at=now,
        last_modified_at=now,
    )


def review_key(book_id: str, entry: ParsedEntry) -> str:
    """Identity of a parsed entry across imports: book, location, type and content."""
    return exact_key(
        book_id, location_key(entry.location, entry.page), entry.entry_type, content_hash(entry.content)
    )


def uniqueness_slot(book_id: str, entry_type: EntryType, location_start: int | None, digest: str) -> tuple:
    """Key of the store's one-note-per-slot rule."""
    if location_start is not None:
        return (book_id, entry_type.value, "loc", location_start)
    return (book_id, entry_type.value, "hash", digest)


class ImportPipeline:
    """Runs imports and settles review items."""

    def __init__(
        self,
        store: ReadingStore,
        resolver: CanonicalResolver | None = None,
        engine: DeduplicationEngine | None = None,
    ):
        """Initialize pipeline.

        Args:
            store: Record store
            resolver: Canonical resolver (if None, one is built on the store)
            engine: Dedup engine (if None, thresholds come from env)
        """
        self.store = store
        self.resolver = resolver or CanonicalResolver(store)
        self.engine = engine or DeduplicationEngine(DedupConfig.from_env())
        self.sessions = ImportSessionTracker(store)

    def run(self, raw_text: str, file_name: str, file_size: int | None = None) -> ImportResult:
        """
        Import a clippings export.

        Args:
            raw_text: Full export text
            file_name: Name recorded on the session
            file_size: Size in bytes (default: UTF-8 length of the text)

        Returns:
            ImportResult. A text that fails the format check yields a failed
            session and no writes.

        Raises:
            StorageFailure: If writing fails; the session is marked failed and
                nothing from this run is kept

        Any other error also marks the session failed before propagating.
        """
        if file_size is None:
            file_size = len(raw_text.encode("utf-8"))
        session_id = self.sessions.start(file_name, file_size)
        stats = ImportStats()

        format_check = validate_clippings_text(raw_text)
        for warning in format_check.warnings:
            logger.warning(warning)
        if not format_check.is_valid:
            message = "; ".join(format_check.errors)
            self.sessions.fail(session_id, message, stats)
            return ImportResult(
                session_id=session_id,
                status=ImportStatus.FAILED,
                stats=stats,
                format_check=format_check,
            )

        parsed = parse_clippings(raw_text)
        stats.total_entries = len(parsed.entries)
        stats.parse_errors = len(parsed.errors)

        entries, validation_errors = split_valid_entries(parsed.entries)
        stats.validation_errors = len(validation_errors)

        result = ImportResult(
            session_id=session_id,
            status=ImportStatus.PROCESSING,
            stats=stats,
            format_check=format_check,
            parse_errors=parsed.errors,
            validation_errors=validation_errors,
        )

        try:
            result.resolutions = self._resolve_books(parsed.books, stats)
            with self.store.batch():
                self._write(parsed.books, entries, result, session_id)
        except DatabaseError as e:
            self.sessions.fail(session_id, str(e), stats)
            raise StorageFailure(f"Import of {file_name} failed: {e}", session_id) from e
        except Exception as e:
            self.sessions.fail(session_id, f"Unexpected error: {e}", stats)
            raise

        self.sessions.complete(session_id, stats)
        result.status = ImportStatus.COMPLETED
        logger.info(
            f"Imported {file_name}: {stats.notes_added} added, {stats.notes_updated} updated, "
            f"{stats.notes_skipped} skipped, {stats.review_needed} for review"
        )
        return result

    def _resolve_books(self, books: list[ParsedBook], stats: ImportStats) -> dict[str, Resolution]:
        """Resolve each distinct parsed book once."""
        resolutions: dict[str, Resolution] = {}
        for book in books:
            resolution = self.resolver.resolve(book.title, book.author)
            resolutions[book.book_identifier] = resolution

            if resolution.mode in (ResolutionMode.AUTO_LINK, ResolutionMode.ALIAS):
                stats.auto_linked += 1
            elif resolution.mode == ResolutionMode.NEEDS_CONFIRMATION:
                stats.needs_confirmation += 1
            elif resolution.mode in (ResolutionMode.PROVISIONAL, ResolutionMode.PROVIDER_UNAVAILABLE):
                stats.provisional += 1
            else:
                raise ValueError(f"Unexpected resolution mode during import: {resolution.mode}")
        return resolutions

    def _write(
        self,
        books: list[ParsedBook],
        entries: list[ParsedEntry],
        result: ImportResult,
        session_id: str,
    ) -> None:
        """Classify entries and write everything for this run. Runs inside one batch."""
        stats = result.stats
        now = datetime.now()
        book_ids, new_books = self._match_books(books, result.resolutions, session_id, now)

        index = build_index(self.store.all_notes())
        classification = self.engine.classify_batch(entries, index, book_ids)
        result.decisions = classification.decisions
        result.dedup_errors = classification.errors
        stats.dedup_errors = len(classification.errors)

        entry_by_index = {entry.parse_index: entry for entry in entries}
        new_notes: dict[str, Note] = {}
        entry_for_note: dict[str, ParsedEntry] = {}
        note_id_for_entry: dict[int, str] = {}
        diverted: set[str] = set()
        occupied: set[tuple] = set()
        slot_of: dict[str, tuple] = {}
        review_items: list[ReviewItem] = []
        touched_books: set[str] = set()

        for decision in classification.decisions:
            entry = entry_by_index[decision.parse_index]
            kind = decision.kind

            # An in-batch match against an entry that went to review has no note behind it
            if decision.existing_note_id in diverted:
                decision.existing_note_id = None
                if kind == DecisionKind.CONTENT_UPDATE:
                    decision.reason = "Similar to another entry of this import that needs review"
                    review_items.append(self._review_item(entry, decision, session_id, now))
                    continue

            if kind == DecisionKind.EXACT_MATCH:
                stats.notes_skipped += 1
                if decision.existing_note_id is not None:
                    note_id_for_entry[entry.parse_index] = decision.existing_note_id

            elif kind == DecisionKind.CONTENT_UPDATE:
                digest = content_hash(entry.content)
                note_id = decision.existing_note_id
                if entry.location is None:
                    # Without a location the content hash is the note's slot
                    slot = uniqueness_slot(decision.book_id, entry.entry_type, None, digest)
                    conflict = self.store.find_conflicting_note(
                        decision.book_id, entry.entry_type, None, digest
                    )
                    if conflict is not None and conflict.id != note_id:
                        decision.reason = f"Updated text would duplicate note {conflict.id}"
                        review_items.append(self._review_item(entry, decision, session_id, now))
                        continue
                    if slot in occupied and slot_of.get(note_id) != slot:
                        decision.reason = "Updated text would duplicate another entry of this import"
                        review_items.append(self._review_item(entry, decision, session_id, now))
                        continue
                    if note_id in slot_of:
                        occupied.discard(slot_of[note_id])
                        occupied.add(slot)
                        slot_of[note_id] = slot

                pending = new_notes.get(note_id)
                if pending is not None:
                    pending.text = entry.content
                    pending.content_hash = digest
                else:
                    self.store.update_note_content(note_id, entry.content, digest, now)
                    stats.notes_updated += 1
                touched_books.add(decision.book_id)
                note_id_for_entry[entry.parse_index] = note_id

            elif kind == DecisionKind.MANUAL_REVIEW:
                review_items.append(self._review_item(entry, decision, session_id, now))

            elif kind == DecisionKind.UNIQUE:
                digest = content_hash(entry.content)
                start = entry.location.start if entry.location else None
                slot = uniqueness_slot(decision.book_id, entry.entry_type, start, digest)
                conflict = self.store.find_conflicting_note(
                    decision.book_id, entry.entry_type, start, digest
                )
                if conflict is not None or slot in occupied:
                    diverted.add(decision.assigned_note_id)
                    decision.existing_note_id = conflict.id if conflict else None
                    decision.reason = f"Location {entry.location or '-'} already holds a different note"
                    review_items.append(self._review_item(entry, decision, session_id, now))
                    continue
                occupied.add(slot)
                note = note_from_entry(entry, decision.assigned_note_id, decision.book_id, session_id, now)
                new_notes[note.id] = note
                slot_of[note.id] = slot
                entry_for_note[note.id] = entry
                note_id_for_entry[entry.parse_index] = note.id
                touched_books.add(decision.book_id)
                stats.notes_added += 1

            else:
                raise ValueError(f"Unhandled dedup decision: {kind}")

        for note_id, note in new_notes.items():
            highlight_index = entry_for_note[note_id].associated_highlight_index
            if note.type == EntryType.NOTE and highlight_index is not None:
                note.associated_note_id = note_id_for_entry.get(highlight_index)

        queued = self._skip_known_reviews(review_items, stats)

        needed_books = touched_books | {item.book_id for item in queued}
        for book in new_books:
            if book.id in needed_books:
                self.store.add_book(book)
                stats.books_added += 1
        new_book_ids = {book.id for book in new_books}
        stats.books_updated = len(touched_books - new_book_ids)

        self.store.add_notes(list(new_notes.values()))
        for item in queued:
            self.store.save_review_item(item)
        result.review_item_ids = [item.id for item in queued]
        stats.review_needed = len(queued) + stats.review_already_pending
        self.store.recompute_note_counts(touched_books)

    def _skip_known_reviews(self, review_items: list[ReviewItem], stats: ImportStats) -> list[ReviewItem]:
        """
        Drop review items for conflicts that are already queued or settled.

        An entry still pending from an earlier import counts as already
        pending; one the user chose to keep out with ``keep_existing`` is
        skipped. Returns the items to save.
        """
        queued: list[ReviewItem] = []
        seen: set[tuple] = set()
        for item in review_items:
            key = (item.entry_key, item.existing_note_id)
            if key in seen:
                stats.review_already_pending += 1
                continue
            seen.add(key)
            known = self.store.find_review_item(
                item.entry_key,
                item.existing_note_id,
                statuses=(ReviewStatus.PENDING, ReviewStatus.KEPT_EXISTING),
            )
            if known is None:
                queued.append(item)
            elif known.status == ReviewStatus.PENDING:
                stats.review_already_pending += 1
            else:
                stats.notes_skipped += 1
        return queued

    def _match_books(
        self,
        books: list[ParsedBook],
        resolutions: dict[str, Resolution],
        session_id: str,
        now: datetime,
    ) -> tuple[dict[str, str], list[Book]]:
        """
        Map each parsed book to a stored book.

        Lookup order: a book already linked to the same canonical identity,
        then a book with the same title and author, else a new book. Parsed
        books that resolve to one canonical identity share one stored book.

        Returns:
            (raw book identifier -> stored book id, books not yet stored)
        """
        book_ids: dict[str, str] = {}
        by_canonical: dict[str, Book] = {}
        new_books: list[Book] = []

        for parsed in books:
            canonical_id = resolutions[parsed.book_identifier].canonical_book_id
            book = by_canonical.get(canonical_id)
            if book is None:
                book = self.store.find_book_by_canonical(canonical_id) or self.store.find_book(
                    parsed.title, parsed.author
                )
                if book is None:
                    book = Book(
                        id=str(uuid.uuid4()),
                        title=parsed.title,
                        author=parsed.author,
                        canonical_book_id=canonical_id,
                        imported_from=session_id,
                        created_at=now,
                        last_modified_at=now,
                    )
                    new_books.append(book)
                elif book.canonical_book_id != canonical_id:
                    book.canonical_book_id = canonical_id
                    book.last_modified_at = max(now, book.created_at)
                    self.store.update_book(book)
                by_canonical[canonical_id] = book
            book_ids[parsed.book_identifier] = book.id

        return book_ids, new_books

    def _review_item(
        self, entry: ParsedEntry, decision: DedupDecision, session_id: str | None, now: datetime
    ) -> ReviewItem:
        return ReviewItem(
            id=str(uuid.uuid4()),
            session_id=session_id,
            book_id=decision.book_id,
            existing_note_id=decision.existing_note_id,
            entry=entry,
            similarity=decision.similarity,
            reason=decision.reason,
            status=ReviewStatus.PENDING,
            created_at=now,
            entry_key=review_key(decision.book_id, entry),
        )

    def resolve_review(self, review_id: str, action: ReviewAction | str) -> ReviewItem:
        """
        Settle a pending review item.

        - keep_existing: drop the parsed entry
        - replace: overwrite the existing note's text with the entry's
        - add: store the entry as a new note (only possible when its slot is free)

        Raises:
            NotFoundError: If the review item (or the note it replaces) is gone
            ClippingsError: If the item is already resolved, or ``add`` would
                put two notes in one slot
        """
        action = ReviewAction(action)
        item = self.store.get_review_item(review_id)
        if item is None:
            raise NotFoundError("Review item", review_id)
        if item.status != ReviewStatus.PENDING:
            raise ClippingsError(f"Review item {review_id} is already {item.status.value}")

        now = datetime.now()
        entry = item.entry
        with self.store.batch():
            if action == ReviewAction.KEEP_EXISTING:
                item.status = ReviewStatus.KEPT_EXISTING

            elif action == ReviewAction.REPLACE:
                existing = self.store.get_note(item.existing_note_id) if item.existing_note_id else None
                if existing is None:
                    raise NotFoundError("Note", item.existing_note_id or "(none)")
                digest = content_hash(entry.content)
                if existing.location is None:
                    conflict = self.store.find_conflicting_note(existing.book_id, existing.type, None, digest)
                    if conflict is not None and conflict.id != existing.id:
                        raise ClippingsError(
                            f"Note {conflict.id} already has this text; use keep_existing"
                        )
                self.store.update_note_content(existing.id, entry.content, digest, now)
                item.status = ReviewStatus.REPLACED

            elif action == ReviewAction.ADD:
                if self.store.get_book(item.book_id) is None:
                    raise NotFoundError("Book", item.book_id)
                digest = content_hash(entry.content)
                start = entry.location.start if entry.location else None
                conflict = self.store.find_conflicting_note(item.book_id, entry.entry_type, start, digest)
                if conflict is not None:
                    raise ClippingsError(
                        f"Note {conflict.id} already occupies this location; use replace or keep_existing"
                    )
                self.store.add_note(note_from_entry(entry, str(uuid.uuid4()), item.book_id, item.session_id, now))
                self.store.recompute_note_counts([item.book_id])
                item.status = ReviewStatus.ADDED

            else:
                raise ValueError(f"Unhandled review action: {action}")

            item.resolved_at = now
            self.store.save_review_item(item)

        logger.info(f"Review item {review_id} resolved: {item.status.value}")
        return item
