"""Confidence scoring for catalog candidates.

A candidate's confidence is a weighted sum, clamped to [0, 1]:

    title   0.60  1.0 for an exact normalized-title match, else difflib ratio
    author  0.25  best pairwise author similarity; 0.5 when both sides have none
    isbn    0.10  candidate carries an ISBN-13
    cover   0.05  candidate carries a cover image

A candidate whose external id or ISBN agrees with an identifier already known
for the book scores 1.0 outright.
"""

from dataclasses import dataclass
from difflib import SequenceMatcher

from common.constants import AUTO_LINK_THRESHOLD, CONFIRM_THRESHOLD
from normalize.metadata import normalize_author, normalize_title, split_authors

from .clients.base import CatalogCandidate
from .models import ConfidenceBand

TITLE_WEIGHT = 0.60
AUTHOR_WEIGHT = 0.25
ISBN_WEIGHT = 0.10
COVER_WEIGHT = 0.05
NEUTRAL_AUTHOR_SCORE = 0.5


@dataclass
class ScoredCandidate:
    candidate: CatalogCandidate
    confidence: float


def string_similarity(a: str, b: str) -> float:
    """Similarity of two already-normalized strings in [0, 1]."""
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return SequenceMatcher(None, a, b).ratio()


def title_score(input_title: str, candidate_title: str) -> float:
    return string_similarity(normalize_title(input_title), normalize_title(candidate_title))


def author_score(input_author: str | None, candidate_authors: list[str]) -> float:
    input_names = [normalize_author(name) for name in split_authors(input_author)]
    candidate_names = [normalize_author(name) for name in candidate_authors if name]
    if not input_names and not candidate_names:
        return NEUTRAL_AUTHOR_SCORE
    if not input_names or not candidate_names:
        return 0.0
    return max(string_similarity(a, b) for a in input_names for b in candidate_names)


def score_candidate(
    candidate: CatalogCandidate,
    input_title: str,
    input_author: str | None = None,
    known_ids: set[str] | None = None,
    known_isbns: set[str] | None = None,
) -> float:
    """
    Score one candidate against the input title and author.

    Args:
        candidate: Catalog candidate
        input_title: Cleaned input title
        input_author: Cleaned input author, or None
        known_ids: External catalog ids already linked to this book
        known_isbns: ISBN-13s already linked to this book

    Returns:
        Confidence in [0, 1]
    """
    if known_ids and candidate.candidate_id in known_ids:
        return 1.0
    if known_isbns and candidate.isbn13 and candidate.isbn13 in known_isbns:
        return 1.0

    score = (
        TITLE_WEIGHT * title_score(input_title, candidate.title)
        + AUTHOR_WEIGHT * author_score(input_author, candidate.authors)
        + (ISBN_WEIGHT if candidate.isbn13 else 0.0)
        + (COVER_WEIGHT if candidate.cover_url else 0.0)
    )
    return min(max(round(score, 6), 0.0), 1.0)


def rank_candidates(
    candidates: list[CatalogCandidate],
    input_title: str,
    input_author: str | None = None,
    known_ids: set[str] | None = None,
    known_isbns: set[str] | None = None,
) -> list[ScoredCandidate]:
    """Score candidates and sort best first.

    Ties are broken by ISBN presence, then cover presence, then the
    provider's own order.
    """
    scored = [
        ScoredCandidate(
            candidate=candidate,
            confidence=score_candidate(candidate, input_title, input_author, known_ids, known_isbns),
        )
        for candidate in candidates
    ]
    return sorted(
        scored,
        key=lambda item: (
            -item.confidence,
            item.candidate.isbn13 is None,
            item.candidate.cover_url is None,
        ),
    )


def band_for(confidence: float) -> ConfidenceBand:
    """Map a confidence to its band.

    Example:
        >>> band_for(0.9)
        <ConfidenceBand.AUTO: 'auto'>
        >>> band_for(0.7)
        <ConfidenceBand.CONFIRM: 'confirm'>
    """
    if confidence >= AUTO_LINK_THRESHOLD:
        return ConfidenceBand.AUTO
    if confidence >= CONFIRM_THRESHOLD:
        return ConfidenceBand.CONFIRM
    return ConfidenceBand.PROVISIONAL
