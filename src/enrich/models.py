"""Canonical book identity records and resolution results."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from enrich.clients.base import CatalogCandidate


class MatchStatus(str, Enum):
    """How trustworthy a canonical identity is. Ordered weakest first."""

    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"
    VERIFIED = "verified"

    @property
    def rank(self) -> int:
        if self == MatchStatus.PROVISIONAL:
            return 0
        if self == MatchStatus.CONFIRMED:
            return 1
        if self == MatchStatus.VERIFIED:
            return 2
        raise ValueError(f"Unknown match status: {self}")


class MatchSource(str, Enum):
    """Who established the identity's current status."""

    AUTO = "auto"
    USER_CONFIRMED = "user-confirmed"
    PROVISIONAL = "provisional"


class ConfidenceBand(str, Enum):
    """Confidence band of a scored match."""

    AUTO = "auto"
    CONFIRM = "confirm"
    PROVISIONAL = "provisional"


class ResolutionMode(str, Enum):
    """How a resolution attempt reached its identity, as recorded in the audit."""

    ALIAS = "alias"
    AUTO_LINK = "auto-link"
    NEEDS_CONFIRMATION = "needs-confirmation"
    PROVISIONAL = "provisional"
    PROVIDER_UNAVAILABLE = "provider-unavailable"
    USER_CONFIRMED = "user-confirmed"
    DISMISSED = "dismissed"


class AliasResolution(str, Enum):
    AUTO = "auto"
    USER_CONFIRMED = "user-confirmed"


class PendingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


@dataclass
class CanonicalBookIdentity:
    """The single record all naming variants of a book converge on."""

    canonical_book_id: str
    title_canonical: str
    title_normalized: str
    match_status: MatchStatus
    match_source: MatchSource
    created_at: datetime
    updated_at: datetime
    authors_canonical: list[str] = field(default_factory=list)
    external_catalog_id: str | None = None
    isbn13: str | None = None
    cover_url: str | None = None


@dataclass
class BookAlias:
    """Maps a raw title's normalized key to a canonical identity."""

    id: str
    normalized_key: str
    raw_title: str
    raw_author: str | None
    canonical_book_id: str
    confidence: float
    resolution: AliasResolution
    created_at: datetime
    updated_at: datetime


@dataclass
class CanonicalLinkAudit:
    """One resolution attempt. Append-only."""

    input_title: str
    input_author: str | None
    normalized_key: str
    confidence: float
    band: ConfidenceBand
    resolution_mode: ResolutionMode
    canonical_book_id: str
    source_flow: str
    resolved_at: datetime
    candidate_id: str | None = None
    provider: str | None = None
    provider_available: bool | None = None
    id: int | None = None


@dataclass
class PendingConfirmation:
    """A mid-confidence match waiting for the user to confirm or dismiss it."""

    id: str
    canonical_book_id: str
    raw_title: str
    raw_author: str | None
    candidate: CatalogCandidate
    confidence: float
    status: PendingStatus
    created_at: datetime
    resolved_at: datetime | None = None


@dataclass
class Resolution:
    """Result of resolving one title/author pair."""

    identity: CanonicalBookIdentity
    confidence: float
    band: ConfidenceBand
    mode: ResolutionMode
    candidate: CatalogCandidate | None = None
    provider_available: bool | None = None
    pending_confirmation_id: str | None = None

    @property
    def canonical_book_id(self) -> str:
        return self.identity.canonical_book_id

    @property
    def needs_confirmation(self) -> bool:
        return self.pending_confirmation_id is not None
