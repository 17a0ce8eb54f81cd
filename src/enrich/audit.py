"""Append-only audit trail of canonical resolution attempts."""

from datetime import datetime
from typing import Any

from load.db import DatabaseAdapter, Row

from .models import CanonicalLinkAudit, ConfidenceBand, ResolutionMode


class AuditTrail:
    """Record every canonical resolution attempt in canonical_link_audit.

    Rows are only ever inserted; the schema rejects updates and deletes.
    Writes join whatever transaction is open on the adapter, so an audit
    row commits together with the identity change it describes.
    """

    def __init__(self, adapter: DatabaseAdapter):
        """Initialize audit trail.

        Args:
            adapter: Database adapter instance (connected, schema created)
        """
        self.adapter = adapter

    def record(self, audit: CanonicalLinkAudit) -> CanonicalLinkAudit:
        """Append an audit row.

        Args:
            audit: Audit record (its ``id`` is filled in)

        Returns:
            The same record with ``id`` set

        Example:
            >>> trail.record(CanonicalLinkAudit(
            ...     input_title='1984',
            ...     input_author='George Orwell',
            ...     normalized_key='1984',
            ...     confidence=0.95,
            ...     band=ConfidenceBand.AUTO,
            ...     resolution_mode=ResolutionMode.AUTO_LINK,
            ...     canonical_book_id='c0ffee',
            ...     source_flow='clippings-import',
            ...     resolved_at=datetime.now(),
            ...     candidate_id='kotPYEqx7kMC',
            ...     provider='google-books',
            ...     provider_available=True,
            ... ))
        """
        cursor = self.adapter.execute(
            """
            INSERT INTO canonical_link_audit
            (input_title, input_author, normalized_key, candidate_id, confidence, band,
             resolution_mode, provider, provider_available, canonical_book_id,
             source_flow, resolved_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                audit.input_title,
                audit.input_author,
                audit.normalized_key,
                audit.candidate_id,
                audit.confidence,
                audit.band.value,
                audit.resolution_mode.value,
                audit.provider,
                None if audit.provider_available is None else int(audit.provider_available),
                audit.canonical_book_id,
                audit.source_flow,
                audit.resolved_at.isoformat(timespec="microseconds"),
            ),
        )
        audit.id = cursor.lastrowid
        return audit

    def _from_row(self, row: Row) -> CanonicalLinkAudit:
        available = row["provider_available"]
        return CanonicalLinkAudit(
            id=row["id"],
            input_title=row["input_title"],
            input_author=row["input_author"],
            normalized_key=row["normalized_key"],
            candidate_id=row["candidate_id"],
            confidence=row["confidence"],
            band=ConfidenceBand(row["band"]),
            resolution_mode=ResolutionMode(row["resolution_mode"]),
            provider=row["provider"],
            provider_available=None if available is None else bool(available),
            canonical_book_id=row["canonical_book_id"],
            source_flow=row["source_flow"],
            resolved_at=datetime.fromisoformat(row["resolved_at"]),
        )

    def history(self, canonical_book_id: str) -> list[CanonicalLinkAudit]:
        """All attempts that ended on one canonical identity, oldest first."""
        rows = self.adapter.fetchall(
            "SELECT * FROM canonical_link_audit WHERE canonical_book_id = ? ORDER BY id",
            (canonical_book_id,),
        )
        return [self._from_row(row) for row in rows]

    def recent(self, limit: int = 50, source_flow: str | None = None) -> list[CanonicalLinkAudit]:
        """Most recent attempts first.

        Args:
            limit: Maximum number of rows to return
            source_flow: Optional filter ('clippings-import', 'manual-resolve', ...)
        """
        if source_flow:
            rows = self.adapter.fetchall(
                "SELECT * FROM canonical_link_audit WHERE source_flow = ? ORDER BY id DESC LIMIT ?",
                (source_flow, limit),
            )
        else:
            rows = self.adapter.fetchall(
                "SELECT * FROM canonical_link_audit ORDER BY id DESC LIMIT ?", (limit,)
            )
        return [self._from_row(row) for row in rows]

    def count(self) -> int:
        return self.adapter.fetchscalar("SELECT COUNT(*) FROM canonical_link_audit") or 0

    def stats(self) -> dict[str, Any]:
        """Counts of attempts by band and by resolution mode.

        Example:
            >>> trail.stats()
            {'total': 3, 'by_band': {'auto': 2, 'provisional': 1}, 'by_mode': {...}}
        """
        by_band = {
            row["band"]: row["count"]
            for row in self.adapter.fetchall(
                "SELECT band, COUNT(*) AS count FROM canonical_link_audit GROUP BY band"
            )
        }
        by_mode = {
            row["resolution_mode"]: row["count"]
            for row in self.adapter.fetchall(
                """
                SELECT resolution_mode, COUNT(*) AS count
                FROM canonical_link_audit GROUP BY resolution_mode
                """
            )
        }
        return {"total": self.count(), "by_band": by_band, "by_mode": by_mode}
