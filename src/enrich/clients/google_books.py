"""Google Books ``volumes`` search, the default catalog."""

import requests

from common.env import env
from common.logger import get_logger
from enrich.normalizers.google_books_normalizer import GoogleBooksNormalizer

from .base import CatalogSearchResult, HttpCatalogClient

logger = get_logger(__name__)


class GoogleBooksClient(HttpCatalogClient):
    """Client for the Google Books ``volumes`` API.

    Works without a key at a low quota; set GOOGLE_BOOKS_API_KEY for more.
    Only the fields a candidate needs are requested.

    API Documentation: https://developers.google.com/books/docs/v1/using
    """

    name = "google-books"
    label = "Google Books"
    VOLUMES_URL = "https://www.googleapis.com/books/v1/volumes"
    FIELDS = "items(id,volumeInfo(title,authors,imageLinks,industryIdentifiers))"

    def __init__(
        self,
        timeout: float | None = None,
        max_results: int | None = None,
        requests_per_minute: int | None = None,
        api_key: str | None = None,
        session: requests.Session | None = None,
    ):
        super().__init__(timeout, max_results, requests_per_minute, session)
        self.api_key = api_key if api_key is not None else env.google_books_api_key()
        self.normalizer = GoogleBooksNormalizer()

    def build_query(self, title: str, author: str | None = None) -> str:
        """``intitle:Dune inauthor:Frank Herbert``"""
        query = f"intitle:{title}"
        if author:
            query += f" inauthor:{author}"
        return query

    def search(self, title: str, author: str | None = None) -> CatalogSearchResult:
        params = {
            "q": self.build_query(title, author),
            "maxResults": self.max_results,
            "fields": self.FIELDS,
        }
        if self.api_key:
            params["key"] = self.api_key

        logger.debug(f"Searching Google Books for '{title}' by {author or 'unknown author'}")
        data, failure = self._get_json(self.VOLUMES_URL, params, title)
        if failure is not None:
            return failure

        items = (data.get("items") or []) if isinstance(data, dict) else []
        candidates = self.normalizer.normalize_all(items, limit=self.max_results)
        logger.debug(f"Google Books returned {len(candidates)} candidates for '{title}'")
        return CatalogSearchResult(candidates=candidates, provider_available=True, provider=self.name)
