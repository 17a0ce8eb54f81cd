"""Candidate normalizer for Google Books volume records."""

from typing import Any

from enrich.clients.base import CatalogCandidate

from .base import Normalizer, as_list, isbn13, nested


class GoogleBooksNormalizer(Normalizer):
    """Normalize a Google Books ``volumes`` item to a CatalogCandidate.

    Cover URLs are forced to https. The ISBN comes from the ``ISBN_13``
    industry identifier only.
    """

    source = "google-books"

    def normalize(self, record: dict[str, Any]) -> CatalogCandidate | None:
        volume_id = record.get("id")
        title = nested(record, "volumeInfo", "title")
        if not volume_id or not title:
            return None

        authors = as_list(nested(record, "volumeInfo", "authors"))

        return CatalogCandidate(
            candidate_id=str(volume_id),
            title=str(title),
            authors=[str(author) for author in authors if author],
            cover_url=self._extract_cover_url(record),
            isbn13=self._extract_isbn_13(record),
            source=self.source,
        )

    def _extract_cover_url(self, data: dict[str, Any]) -> str | None:
        links = nested(data, "volumeInfo", "imageLinks")
        if not isinstance(links, dict):
            return None
        url = links.get("thumbnail") or links.get("smallThumbnail")
        if not isinstance(url, str) or not url:
            return None
        if url.startswith("http://"):
            url = "https://" + url[len("http://") :]
        return url

    def _extract_isbn_13(self, data: dict[str, Any]) -> str | None:
        for identifier in as_list(nested(data, "volumeInfo", "industryIdentifiers")):
            if isinstance(identifier, dict) and identifier.get("type") == "ISBN_13":
                return isbn13(identifier.get("identifier"))
        return None
