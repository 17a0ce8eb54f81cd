"""Shared pieces for turning one catalog record into a CatalogCandidate."""

from abc import ABC, abstractmethod
from typing import Any

from common.logger import get_logger
from enrich.clients.base import CatalogCandidate

logger = get_logger(__name__)


def nested(data: Any, *keys: str, default: Any = None) -> Any:
    """Follow ``keys`` through nested dicts; ``default`` as soon as one is missing.

        >>> nested({"volumeInfo": {"title": "Dune"}}, "volumeInfo", "title")
        'Dune'
        >>> nested({"volumeInfo": {}}, "volumeInfo", "authors", default=[])
        []
    """
    for key in keys:
        if not isinstance(data, dict) or key not in data:
            return default
        data = data[key]
    return data


def as_list(value: Any) -> list:
    """``value`` if it is a list, else an empty list."""
    return value if isinstance(value, list) else []


def isbn13(value: Any) -> str | None:
    """Digits of an ISBN-13 with hyphens and spaces removed; None for anything else."""
    if not value:
        return None
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    return digits if len(digits) == 13 else None


class Normalizer(ABC):
    """One per catalog: knows where that catalog keeps id, title, authors, ISBN and cover."""

    source: str = ""

    @abstractmethod
    def normalize(self, record: dict[str, Any]) -> CatalogCandidate | None:
        """Candidate for one search hit, or None when it lacks an id or a title."""

    def normalize_all(self, records: list[Any], limit: int | None = None) -> list[CatalogCandidate]:
        """Candidates for the usable records, in catalog order, at most ``limit``.

        A record whose fields have an unexpected shape is logged and skipped.
        """
        candidates = []
        for record in records:
            if limit is not None and len(candidates) >= limit:
                break
            if not isinstance(record, dict):
                continue
            try:
                candidate = self.normalize(record)
            except (AttributeError, TypeError, ValueError) as e:
                record_id = record.get("id") or record.get("key")
                logger.warning(f"Skipping malformed {self.source} record {record_id}: {e}")
                continue
            if candidate is not None:
                candidates.append(candidate)
        return candidates
