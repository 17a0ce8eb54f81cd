"""Candidate normalizer for Open Library search results."""

from typing import Any

from enrich.clients.base import CatalogCandidate

from .base import Normalizer, as_list, isbn13

COVER_URL_TEMPLATE = "https://covers.openlibrary.org/b/id/{cover_id}-L.jpg"


class OpenLibraryNormalizer(Normalizer):
    """Normalize an Open Library ``search.json`` doc to a CatalogCandidate.

    The candidate id is the work id without its ``/works/`` prefix.
    """

    source = "openlibrary"

    def normalize(self, record: dict[str, Any]) -> CatalogCandidate | None:
        work_id = self._extract_openlibrary_id(record)
        title = record.get("title")
        if not work_id or not title:
            return None

        return CatalogCandidate(
            candidate_id=work_id,
            title=str(title),
            authors=[str(name) for name in as_list(record.get("author_name")) if name],
            cover_url=self._extract_cover_url(record),
            isbn13=self._extract_isbn_13(record),
            source=self.source,
        )

    def _extract_isbn_13(self, data: dict[str, Any]) -> str | None:
        """First 13-digit ISBN in the search doc."""
        for isbn in as_list(data.get("isbn")):
            cleaned = isbn13(isbn)
            if cleaned:
                return cleaned
        return None

    def _extract_cover_url(self, data: dict[str, Any]) -> str | None:
        cover_id = data.get("cover_i")
        if isinstance(cover_id, int) and cover_id > 0:
            return COVER_URL_TEMPLATE.format(cover_id=cover_id)
        return None

    def _extract_openlibrary_id(self, data: dict[str, Any]) -> str | None:
        key = data.get("key")
        if not isinstance(key, str) or not key:
            return None
        if key.startswith("/works/"):
            return key[len("/works/") :]
        return key
