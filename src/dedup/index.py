"""Lookup structures over stored notes for duplicate detection."""

from collections.abc import Iterable
from dataclasses import dataclass, field

from extract.item_id import content_hash
from extract.models import EntryType, Location, ParsedEntry
from load.models import Note

NO_LOCATION = "no-location"


@dataclass(frozen=True)
class IndexedNote:
    """The fields of a note that duplicate detection looks at."""

    note_id: str
    book_id: str
    entry_type: EntryType
    text: str
    location_key: str
    content_hash: str


def location_key(location: Location | None, page: int | None) -> str:
    """Location component of a dedup key: start, else 'p<page>', else 'no-location'."""
    if location is not None:
        return str(location.start)
    if page is not None:
        return f"p{page}"
    return NO_LOCATION


def bucket_key(book_id: str, location: str, entry_type: EntryType) -> str:
    return f"{book_id}|{location}|{entry_type.value}"


def exact_key(book_id: str, location: str, entry_type: EntryType, digest: str) -> str:
    return f"{bucket_key(book_id, location, entry_type)}|{digest}"


def index_note(note: Note) -> IndexedNote:
    return IndexedNote(
        note_id=note.id,
        book_id=note.book_id,
        entry_type=note.type,
        text=note.text,
        location_key=location_key(note.location, note.page),
        content_hash=note.content_hash or content_hash(note.text),
    )


def index_entry(entry: ParsedEntry, note_id: str, book_id: str) -> IndexedNote:
    return IndexedNote(
        note_id=note_id,
        book_id=book_id,
        entry_type=entry.entry_type,
        text=entry.content,
        location_key=location_key(entry.location, entry.page),
        content_hash=content_hash(entry.content),
    )


@dataclass
class DedupIndex:
    """
    Snapshot of existing notes keyed three ways.

    - exact_matches: 'book|location|type|hash' -> note
    - location_buckets: 'book|location|type' -> notes sharing that slot
    - content_hashes: every hash seen
    """

    exact_matches: dict[str, IndexedNote] = field(default_factory=dict)
    location_buckets: dict[str, list[IndexedNote]] = field(default_factory=dict)
    content_hashes: set[str] = field(default_factory=set)

    def add(self, note: IndexedNote) -> None:
        bucket = bucket_key(note.book_id, note.location_key, note.entry_type)
        self.exact_matches[f"{bucket}|{note.content_hash}"] = note
        self.location_buckets.setdefault(bucket, []).append(note)
        self.content_hashes.add(note.content_hash)

    def bucket(self, book_id: str, location: str, entry_type: EntryType) -> list[IndexedNote]:
        return self.location_buckets.get(bucket_key(book_id, location, entry_type), [])

    def copy(self) -> "DedupIndex":
        return DedupIndex(
            exact_matches=dict(self.exact_matches),
            location_buckets={key: list(notes) for key, notes in self.location_buckets.items()},
            content_hashes=set(self.content_hashes),
        )

    def __len__(self) -> int:
        return sum(len(notes) for notes in self.location_buckets.values())


def build_index(existing_notes: Iterable[Note]) -> DedupIndex:
    """
    Build a DedupIndex from stored notes.

    Args:
        existing_notes: Notes currently in the store

    Returns:
        Populated index; an empty iterable yields an empty index
    """
    index = DedupIndex()
    for note in existing_notes:
        index.add(index_note(note))
    return index
