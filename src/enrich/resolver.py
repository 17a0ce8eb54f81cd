"""Resolve raw titles to canonical book identities.

Resolution order for one title/author pair:

1. An alias for the cleaned title's normalized key links straight to its
   identity; the catalog is not consulted.
2. Otherwise the catalog is searched and candidates are scored:
   - confidence >= 0.90: link to the candidate (verified, auto)
   - 0.70 <= confidence < 0.90: link to a provisional identity for the raw
     title and store the candidate as a pending confirmation
   - below 0.70, no candidates, or catalog unavailable: provisional identity

Identities are found or created with this precedence: same external id
(refresh metadata, never downgrade), same normalized title (upgrade in place
when it has no external id yet), otherwise create. Every attempt, including
confirmations and dismissals, appends one audit row.
"""

import uuid
from datetime import datetime

from common.constants import SOURCE_FLOW_CONFIRMATION, SOURCE_FLOW_IMPORT
from common.errors import ClippingsError, NotFoundError, ProviderUnavailable
from common.logger import get_logger
from load.store import ReadingStore
from normalize.metadata import clean_author, clean_title, normalize_title, split_authors

from .audit import AuditTrail
from .clients.base import CatalogCandidate, CatalogClient, CatalogSearchResult
from .clients.factory import create_catalog_client
from .models import (
    AliasResolution,
    BookAlias,
    CanonicalBookIdentity,
    CanonicalLinkAudit,
    ConfidenceBand,
    MatchSource,
    MatchStatus,
    PendingConfirmation,
    PendingStatus,
    Resolution,
    ResolutionMode,
)
from .scoring import band_for, rank_candidates

logger = get_logger(__name__)


class CanonicalResolver:
    """Links raw titles to canonical identities and keeps the audit trail."""

    def __init__(
        self,
        store: ReadingStore,
        client: CatalogClient | None = None,
        audit: AuditTrail | None = None,
    ):
        """Initialize resolver.

        Args:
            store: Record store
            client: Catalog client (if None, uses CATALOG_PROVIDER)
            audit: Audit trail (if None, writes to the store's database)
        """
        self.store = store
        self.client = client or create_catalog_client()
        self.audit = audit or AuditTrail(store.adapter)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def resolve(
        self, title: str, author: str | None = None, source_flow: str = SOURCE_FLOW_IMPORT
    ) -> Resolution:
        """
        Resolve a raw title/author to a canonical identity.

        Never raises because the catalog is down; that case yields a
        provisional identity.

        Args:
            title: Raw title as imported
            author: Raw author, or None
            source_flow: Flow recorded in the audit row

        Returns:
            Resolution with the identity, confidence, band and mode
        """
        cleaned_title = clean_title(title)
        cleaned_author = clean_author(author)
        key = normalize_title(cleaned_title)

        with self.store.batch():
            alias = self.store.find_alias(key)
            if alias is not None:
                identity = self.store.get_canonical(alias.canonical_book_id)
                if identity is not None:
                    resolution = Resolution(
                        identity=identity,
                        confidence=alias.confidence,
                        band=band_for(alias.confidence),
                        mode=ResolutionMode.ALIAS,
                    )
                    self._record(resolution, title, author, key, source_flow, provider=None)
                    logger.debug(f"'{title}' resolved by alias to {identity.canonical_book_id}")
                    return resolution

            search = self._search(cleaned_title, cleaned_author)

            if not search.provider_available:
                logger.warning(
                    f"Catalog unavailable for '{cleaned_title}' ({search.error}); linking provisionally"
                )
                resolution = Resolution(
                    identity=self._link_provisional(cleaned_title, cleaned_author, key),
                    confidence=0.0,
                    band=ConfidenceBand.PROVISIONAL,
                    mode=ResolutionMode.PROVIDER_UNAVAILABLE,
                    provider_available=False,
                )
                self._record(
                    resolution, title, author, key, source_flow,
                    provider=search.provider or self.client.name,
                )
                return resolution

            known = self.store.find_canonical_by_title(key)
            known_ids = {known.external_catalog_id} if known and known.external_catalog_id else None
            known_isbns = {known.isbn13} if known and known.isbn13 else None
            ranked = rank_candidates(
                search.candidates, cleaned_title, cleaned_author, known_ids, known_isbns
            )
            best = ranked[0] if ranked else None
            confidence = best.confidence if best else 0.0
            band = band_for(confidence)

            if best is not None and band == ConfidenceBand.AUTO:
                identity = self._resolve_or_create(
                    best.candidate,
                    authors=best.candidate.authors or split_authors(cleaned_author),
                    raw_key=key,
                    status=MatchStatus.VERIFIED,
                    source=MatchSource.AUTO,
                )
                if identity.title_normalized != key:
                    self._save_alias(
                        key, title, author, identity, confidence, AliasResolution.AUTO
                    )
                resolution = Resolution(
                    identity=identity,
                    confidence=confidence,
                    band=band,
                    mode=ResolutionMode.AUTO_LINK,
                    candidate=best.candidate,
                    provider_available=True,
                )
            elif best is not None and band == ConfidenceBand.CONFIRM:
                identity = self._link_provisional(cleaned_title, cleaned_author, key)
                pending = self._queue_confirmation(identity, title, author, best.candidate, confidence)
                resolution = Resolution(
                    identity=identity,
                    confidence=confidence,
                    band=band,
                    mode=ResolutionMode.NEEDS_CONFIRMATION,
                    candidate=best.candidate,
                    provider_available=True,
                    pending_confirmation_id=pending.id,
                )
            elif band == ConfidenceBand.PROVISIONAL:
                resolution = Resolution(
                    identity=self._link_provisional(cleaned_title, cleaned_author, key),
                    confidence=confidence,
                    band=band,
                    mode=ResolutionMode.PROVISIONAL,
                    candidate=best.candidate if best else None,
                    provider_available=True,
                )
            else:
                raise ValueError(f"Unhandled confidence band: {band}")

            self._record(
                resolution, title, author, key, source_flow,
                provider=search.provider or self.client.name,
            )

        logger.debug(
            f"'{title}' -> {resolution.canonical_book_id} "
            f"({resolution.mode.value}, confidence {resolution.confidence:.2f})"
        )
        return resolution

    def _search(self, title: str, author: str | None) -> CatalogSearchResult:
        try:
            return self.client.search(title, author)
        except ProviderUnavailable as e:
            return CatalogSearchResult.unavailable(self.client.name, str(e))

    def _link_provisional(
        self, cleaned_title: str, cleaned_author: str | None, key: str
    ) -> CanonicalBookIdentity:
        """Existing identity for the normalized title, untouched, or a new provisional one."""
        existing = self.store.find_canonical_by_title(key)
        if existing is not None:
            return existing

        now = datetime.now()
        identity = CanonicalBookIdentity(
            canonical_book_id=str(uuid.uuid4()),
            title_canonical=cleaned_title,
            title_normalized=key,
            authors_canonical=split_authors(cleaned_author),
            match_status=MatchStatus.PROVISIONAL,
            match_source=MatchSource.PROVISIONAL,
            created_at=now,
            updated_at=now,
        )
        self.store.save_canonical(identity)
        logger.debug(f"Created provisional identity {identity.canonical_book_id} for '{cleaned_title}'")
        return identity

    def _resolve_or_create(
        self,
        candidate: CatalogCandidate,
        authors: list[str],
        raw_key: str,
        status: MatchStatus,
        source: MatchSource,
    ) -> CanonicalBookIdentity:
        """Find or create the identity for a catalog candidate."""
        existing = self.store.find_canonical_by_external_id(candidate.candidate_id)
        if existing is not None:
            return self._upgrade(existing, candidate, authors, status, source)

        candidate_key = normalize_title(candidate.title)
        by_title = self.store.find_canonical_by_title(candidate_key)
        if by_title is not None:
            if by_title.external_catalog_id is None:
                return self._upgrade(by_title, candidate, authors, status, source)
            return by_title

        # A provisional record for the raw title is the same book seen earlier
        # without a catalog match
        by_raw = self.store.find_canonical_by_title(raw_key)
        if by_raw is not None and by_raw.external_catalog_id is None:
            return self._upgrade(by_raw, candidate, authors, status, source)

        now = datetime.now()
        identity = CanonicalBookIdentity(
            canonical_book_id=str(uuid.uuid4()),
            title_canonical=candidate.title,
            title_normalized=candidate_key,
            authors_canonical=list(authors),
            external_catalog_id=candidate.candidate_id,
            isbn13=candidate.isbn13,
            cover_url=candidate.cover_url,
            match_status=status,
            match_source=source,
            created_at=now,
            updated_at=now,
        )
        self.store.save_canonical(identity)
        logger.debug(f"Created identity {identity.canonical_book_id} for '{candidate.title}'")
        return identity

    def _upgrade(
        self,
        identity: CanonicalBookIdentity,
        candidate: CatalogCandidate,
        authors: list[str],
        status: MatchStatus,
        source: MatchSource,
    ) -> CanonicalBookIdentity:
        """Attach catalog metadata to an identity. Status only ever moves up."""
        if identity.external_catalog_id is None:
            identity.external_catalog_id = candidate.candidate_id
        identity.cover_url = identity.cover_url or candidate.cover_url
        identity.isbn13 = identity.isbn13 or candidate.isbn13
        if not identity.authors_canonical and authors:
            identity.authors_canonical = list(authors)
        if status.rank > identity.match_status.rank:
            identity.match_status = status
            identity.match_source = source
        elif status == identity.match_status and source == MatchSource.USER_CONFIRMED:
            identity.match_source = source
        identity.updated_at = datetime.now()
        self.store.save_canonical(identity)
        return identity

    def _save_alias(
        self,
        key: str,
        raw_title: str,
        raw_author: str | None,
        identity: CanonicalBookIdentity,
        confidence: float,
        resolution: AliasResolution,
    ) -> BookAlias:
        now = datetime.now()
        existing = self.store.find_alias(key)
        alias = BookAlias(
            id=existing.id if existing else str(uuid.uuid4()),
            normalized_key=key,
            raw_title=raw_title,
            raw_author=raw_author,
            canonical_book_id=identity.canonical_book_id,
            confidence=confidence,
            resolution=resolution,
            created_at=existing.created_at if existing else now,
            updated_at=now,
        )
        self.store.save_alias(alias)
        return alias

    def _queue_confirmation(
        self,
        identity: CanonicalBookIdentity,
        raw_title: str,
        raw_author: str | None,
        candidate: CatalogCandidate,
        confidence: float,
    ) -> PendingConfirmation:
        """Store a pending confirmation, reusing an open one for the same candidate."""
        existing = self.store.find_open_pending(identity.canonical_book_id, candidate.candidate_id)
        if existing is not None:
            return existing
        pending = PendingConfirmation(
            id=str(uuid.uuid4()),
            canonical_book_id=identity.canonical_book_id,
            raw_title=raw_title,
            raw_author=raw_author,
            candidate=candidate,
            confidence=confidence,
            status=PendingStatus.PENDING,
            created_at=datetime.now(),
        )
        self.store.save_pending(pending)
        return pending

    def _record(
        self,
        resolution: Resolution,
        title: str,
        author: str | None,
        key: str,
        source_flow: str,
        provider: str | None,
    ) -> None:
        self.audit.record(
            CanonicalLinkAudit(
                input_title=title,
                input_author=author,
                normalized_key=key,
                candidate_id=resolution.candidate.candidate_id if resolution.candidate else None,
                confidence=resolution.confidence,
                band=resolution.band,
                resolution_mode=resolution.mode,
                provider=provider,
                provider_available=resolution.provider_available,
                canonical_book_id=resolution.canonical_book_id,
                source_flow=source_flow,
                resolved_at=datetime.now(),
            )
        )

    # ------------------------------------------------------------------
    # Confirmations
    # ------------------------------------------------------------------

    def _open_pending(self, pending_id: str) -> PendingConfirmation:
        pending = self.store.get_pending(pending_id)
        if pending is None:
            raise NotFoundError("Pending confirmation", pending_id)
        if pending.status != PendingStatus.PENDING:
            raise ClippingsError(f"Confirmation {pending_id} is already {pending.status.value}")
        return pending

    def confirm(self, pending_id: str) -> Resolution:
        """
        Accept a pending mid-confidence match.

        The identity becomes verified/user-confirmed and takes the candidate's
        external id. When another identity already holds that id, it becomes
        the target instead. An alias is written when the raw title's key
        differs from the target's.

        Raises:
            NotFoundError: If the pending confirmation does not exist
            ClippingsError: If it was already confirmed or dismissed
        """
        with self.store.batch():
            pending = self._open_pending(pending_id)
            candidate = pending.candidate
            identity = self.store.get_canonical(pending.canonical_book_id)
            if identity is None:
                raise NotFoundError("Canonical book", pending.canonical_book_id)

            owner = self.store.find_canonical_by_external_id(candidate.candidate_id)
            if owner is not None:
                target = owner
            elif identity.external_catalog_id in (None, candidate.candidate_id):
                target = identity
            else:
                target = self._resolve_or_create(
                    candidate,
                    authors=candidate.authors,
                    raw_key=normalize_title(candidate.title),
                    status=MatchStatus.VERIFIED,
                    source=MatchSource.USER_CONFIRMED,
                )
            target = self._upgrade(
                target,
                candidate,
                candidate.authors,
                MatchStatus.VERIFIED,
                MatchSource.USER_CONFIRMED,
            )

            if target.canonical_book_id != identity.canonical_book_id and (
                identity.match_status == MatchStatus.PROVISIONAL
            ):
                moved = self.store.relink_books(identity.canonical_book_id, target.canonical_book_id)
                logger.debug(f"Moved {moved} books to {target.canonical_book_id}")

            key = normalize_title(clean_title(pending.raw_title))
            if key != target.title_normalized:
                self._save_alias(
                    key,
                    pending.raw_title,
                    pending.raw_author,
                    target,
                    pending.confidence,
                    AliasResolution.USER_CONFIRMED,
                )

            pending.status = PendingStatus.CONFIRMED
            pending.resolved_at = datetime.now()
            self.store.save_pending(pending)

            resolution = Resolution(
                identity=target,
                confidence=pending.confidence,
                band=band_for(pending.confidence),
                mode=ResolutionMode.USER_CONFIRMED,
                candidate=candidate,
            )
            self._record(
                resolution,
                pending.raw_title,
                pending.raw_author,
                key,
                SOURCE_FLOW_CONFIRMATION,
                provider=candidate.source or None,
            )

        logger.info(f"Confirmed '{pending.raw_title}' as '{target.title_canonical}'")
        return resolution

    def dismiss(self, pending_id: str) -> PendingConfirmation:
        """
        Reject a pending match. The identity stays as it is.

        Raises:
            NotFoundError: If the pending confirmation does not exist
            ClippingsError: If it was already confirmed or dismissed
        """
        with self.store.batch():
            pending = self._open_pending(pending_id)
            identity = self.store.get_canonical(pending.canonical_book_id)
            if identity is None:
                raise NotFoundError("Canonical book", pending.canonical_book_id)

            pending.status = PendingStatus.DISMISSED
            pending.resolved_at = datetime.now()
            self.store.save_pending(pending)

            self._record(
                Resolution(
                    identity=identity,
                    confidence=pending.confidence,
                    band=band_for(pending.confidence),
                    mode=ResolutionMode.DISMISSED,
                    candidate=pending.candidate,
                ),
                pending.raw_title,
                pending.raw_author,
                normalize_title(clean_title(pending.raw_title)),
                SOURCE_FLOW_CONFIRMATION,
                provider=pending.candidate.source or None,
            )
        return pending
