"""
Classify parsed entries against existing notes.

Decisions, in order of precedence:
    exact_match     same book, location slot, type and content hash, or
                    bucket similarity of exactly 1.0
    content_update  similarity >= update threshold and auto-update enabled
    manual_review   similarity >= min threshold
    unique          nothing close enough in the slot

Only entries in the same (book, location, type) bucket are compared.
"""

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from common.env import env
from common.logger import get_logger
from extract.item_id import content_hash
from extract.models import ParsedEntry

from .index import DedupIndex, IndexedNote, exact_key, index_entry, location_key
from .similarity import text_similarity

logger = get_logger(__name__)


class DecisionKind(str, Enum):
    """Outcome of classifying one entry."""

    UNIQUE = "unique"
    EXACT_MATCH = "exact_match"
    CONTENT_UPDATE = "content_update"
    MANUAL_REVIEW = "manual_review"


@dataclass
class DedupConfig:
    """Similarity thresholds for content updates and manual review."""

    update_threshold: float = 0.9
    min_threshold: float = 0.8
    auto_update: bool = True

    def __post_init__(self):
        if not 0.0 <= self.min_threshold <= self.update_threshold <= 1.0:
            raise ValueError(
                "Thresholds must satisfy 0 <= min_threshold <= update_threshold <= 1, "
                f"got min={self.min_threshold}, update={self.update_threshold}"
            )

    @classmethod
    def from_env(cls) -> "DedupConfig":
        return cls(
            update_threshold=env.dedup_update_threshold(),
            min_threshold=env.dedup_min_threshold(),
            auto_update=env.dedup_auto_update(),
        )


@dataclass
class DedupDecision:
    """
    Classification of one parsed entry.

    ``existing_note_id`` points at the matched note for every kind except
    ``unique``. ``assigned_note_id`` is the id reserved for a unique entry so
    later entries in the same batch can refer to it.
    """

    parse_index: int
    kind: DecisionKind
    book_id: str
    similarity: float = 0.0
    existing_note_id: str | None = None
    assigned_note_id: str | None = None
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.kind in (DecisionKind.UNIQUE, DecisionKind.CONTENT_UPDATE)


@dataclass
class BatchClassification:
    """Decisions for a batch plus per-entry errors that did not abort it."""

    decisions: list[DedupDecision] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    def by_kind(self, kind: DecisionKind) -> list[DedupDecision]:
        return [decision for decision in self.decisions if decision.kind == kind]

    def summary(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in DecisionKind}
        for decision in self.decisions:
            counts[decision.kind.value] += 1
        counts["errors"] = len(self.errors)
        return counts


class DeduplicationEngine:
    """Classifies entries; performs no writes of its own."""

    def __init__(self, config: DedupConfig | None = None):
        self.config = config or DedupConfig()

    def classify(
        self, entry: ParsedEntry, index: DedupIndex, book_id: str | None = None
    ) -> DedupDecision:
        """
        Classify a single entry against an index.

        Args:
            entry: Parsed entry to check
            index: Index of existing notes
            book_id: Stored book id the entry belongs to. Defaults to the
                entry's raw book identifier.

        Returns:
            DedupDecision for the entry

        Raises:
            TypeError: If the entry content is not text
        """
        book_id = book_id or entry.book_identifier
        slot = location_key(entry.location, entry.page)
        digest = content_hash(entry.content)

        exact = index.exact_matches.get(exact_key(book_id, slot, entry.entry_type, digest))
        if exact is not None:
            return DedupDecision(
                parse_index=entry.parse_index,
                kind=DecisionKind.EXACT_MATCH,
                book_id=book_id,
                similarity=1.0,
                existing_note_id=exact.note_id,
                reason="Identical content at the same location",
            )

        best: IndexedNote | None = None
        best_similarity = 0.0
        for candidate in index.bucket(book_id, slot, entry.entry_type):
            similarity = text_similarity(entry.content, candidate.text)
            if best is None or similarity > best_similarity:
                best, best_similarity = candidate, similarity

        if best is not None:
            if best_similarity >= 1.0:
                return DedupDecision(
                    parse_index=entry.parse_index,
                    kind=DecisionKind.EXACT_MATCH,
                    book_id=book_id,
                    similarity=1.0,
                    existing_note_id=best.note_id,
                    reason="Same text apart from case, whitespace or punctuation",
                )
            if best_similarity >= self.config.update_threshold and self.config.auto_update:
                return DedupDecision(
                    parse_index=entry.parse_index,
                    kind=DecisionKind.CONTENT_UPDATE,
                    book_id=book_id,
                    similarity=best_similarity,
                    existing_note_id=best.note_id,
                    reason=f"Content changed slightly ({best_similarity:.0%} similar)",
                )
            if best_similarity >= self.config.min_threshold:
                return DedupDecision(
                    parse_index=entry.parse_index,
                    kind=DecisionKind.MANUAL_REVIEW,
                    book_id=book_id,
                    similarity=best_similarity,
                    existing_note_id=best.note_id,
                    reason=(
                        f"Similar to note {best.note_id} at location {slot} "
                        f"({best_similarity:.0%} similar)"
                    ),
                )

        return DedupDecision(
            parse_index=entry.parse_index,
            kind=DecisionKind.UNIQUE,
            book_id=book_id,
            similarity=best_similarity,
            assigned_note_id=str(uuid.uuid4()),
            reason="No matching note",
        )

    def classify_batch(
        self,
        entries: Iterable[ParsedEntry],
        index: DedupIndex,
        book_ids: Mapping[str, str] | None = None,
    ) -> BatchClassification:
        """
        Classify a batch, catching duplicates within the batch itself.

        The given index is copied; every accepted entry (unique or content
        update) is added to the copy so later entries are checked against it.
        A failing entry is recorded in ``errors`` and skipped.

        Args:
            entries: Parsed entries in input order
            index: Snapshot index of stored notes (not modified)
            book_ids: Raw book identifier -> stored book id

        Returns:
            BatchClassification
        """
        book_ids = book_ids or {}
        batch_index = index.copy()
        result = BatchClassification()

        for entry in entries:
            try:
                book_id = book_ids.get(entry.book_identifier, entry.book_identifier)
                decision = self.classify(entry, batch_index, book_id=book_id)
            except (TypeError, ValueError, AttributeError) as e:
                message = f"Entry {getattr(entry, 'parse_index', '?')}: {e}"
                logger.warning(f"Skipping entry during dedup: {message}")
                result.errors.append(message)
                continue

            if decision.kind == DecisionKind.UNIQUE:
                batch_index.add(index_entry(entry, decision.assigned_note_id, book_id))
            elif decision.kind == DecisionKind.CONTENT_UPDATE:
                batch_index.add(index_entry(entry, decision.existing_note_id, book_id))
            result.decisions.append(decision)

        logger.debug(f"Dedup summary: {result.summary()}")
        return result
