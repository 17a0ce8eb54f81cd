"""Catalog client contract, its result types and the shared HTTP plumbing."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import requests

from common.env import env
from common.logger import get_logger

from .rate_limiter import RateLimiter

logger = get_logger(__name__)

USER_AGENT = "clippings-import/0.1"


@dataclass
class CatalogCandidate:
    """One book record proposed by a catalog search."""

    candidate_id: str
    title: str
    authors: list[str] = field(default_factory=list)
    cover_url: str | None = None
    isbn13: str | None = None
    source: str = ""

    def to_dict(self) -> dict:
        return {
            "candidate_id": self.candidate_id,
            "title": self.title,
            "authors": list(self.authors),
            "cover_url": self.cover_url,
            "isbn13": self.isbn13,
            "source": self.source,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CatalogCandidate":
        return cls(
            candidate_id=data["candidate_id"],
            title=data["title"],
            authors=list(data.get("authors") or []),
            cover_url=data.get("cover_url"),
            isbn13=data.get("isbn13"),
            source=data.get("source", ""),
        )


@dataclass
class CatalogSearchResult:
    """Outcome of a catalog search. ``provider_available`` is False on any failure."""

    candidates: list[CatalogCandidate] = field(default_factory=list)
    provider_available: bool = True
    error: str | None = None
    provider: str = ""

    @classmethod
    def unavailable(cls, provider: str, error: str) -> "CatalogSearchResult":
        return cls(candidates=[], provider_available=False, error=error, provider=provider)


class CatalogClient(ABC):
    """Base class for external bibliographic catalog clients.

    Implementations (Google Books, Open Library) turn transport errors,
    timeouts and non-2xx responses into an unavailable CatalogSearchResult.
    Raising ProviderUnavailable from ``search`` is treated the same way.
    """

    name: str = "catalog"

    @abstractmethod
    def search(self, title: str, author: str | None = None) -> CatalogSearchResult:
        """Search for a book by title and optional author.

        Args:
            title: Cleaned book title
            author: Cleaned author name, or None when unknown

        Returns:
            CatalogSearchResult with at most ``max_results`` candidates
        """
        pass

    @abstractmethod
    def get_rate_limit(self) -> tuple[int, int]:
        """(calls allowed, window in seconds), e.g. (60, 60)."""

    def close(self) -> None:
        """Release network resources."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


class HttpCatalogClient(CatalogClient):
    """
    A catalog reached over HTTP with ``requests``.

    Holds the session, timeout, candidate limit and rate limiter, and turns
    every failure of a GET (timeout, connection error, non-2xx status,
    unreadable JSON) into an unavailable result.
    """

    label: str = "Catalog"

    def __init__(
        self,
        timeout: float | None = None,
        max_results: int | None = None,
        requests_per_minute: int | None = None,
        session: requests.Session | None = None,
    ):
        """
        Args:
            timeout: Hard timeout per request in seconds (default: CATALOG_TIMEOUT)
            max_results: Candidates per search (default: CATALOG_MAX_RESULTS)
            requests_per_minute: Client-side limit (default: CATALOG_REQUESTS_PER_MINUTE)
            session: HTTP session, mainly for tests
        """
        self.timeout = timeout if timeout is not None else env.catalog_timeout()
        self.max_results = max_results if max_results is not None else env.catalog_max_results()
        self.rate_limiter = RateLimiter.per_minute(
            requests_per_minute or env.catalog_requests_per_minute()
        )
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT})

    def _get_json(self, url: str, params: dict[str, Any], title: str) -> tuple[Any, CatalogSearchResult | None]:
        """
        GET ``url`` and decode the body.

        Returns:
            (decoded body, None) on success, or (None, unavailable result)
        """
        self.rate_limiter.acquire()
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"{self.label} timed out after {self.timeout}s for '{title}'")
            return None, CatalogSearchResult.unavailable(self.name, f"Timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            logger.warning(f"{self.label} request failed: {e}")
            return None, CatalogSearchResult.unavailable(self.name, str(e))

        if not response.ok:
            message = f"HTTP {response.status_code}: {response.reason}"
            logger.warning(f"{self.label} unavailable: {message}")
            return None, CatalogSearchResult.unavailable(self.name, message)
        try:
            return response.json(), None
        except ValueError as e:
            logger.warning(f"{self.label} returned an unreadable body: {e}")
            return None, CatalogSearchResult.unavailable(self.name, f"Invalid JSON: {e}")

    def get_rate_limit(self) -> tuple[int, int]:
        return (self.rate_limiter.limit, int(self.rate_limiter.window))

    def close(self) -> None:
        self.session.close()
