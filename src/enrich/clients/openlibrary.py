"""Open Library search, the keyless alternative catalog."""

from common.logger import get_logger
from enrich.normalizers.openlibrary_normalizer import OpenLibraryNormalizer

from .base import CatalogSearchResult, HttpCatalogClient

logger = get_logger(__name__)

SUBTITLE_SEPARATORS = (":", "—", " - ")


def title_variants(title: str) -> list[str]:
    """The title, then the title cut at each subtitle separator it contains.

        >>> title_variants("Money: A Suicide Note")
        ['Money: A Suicide Note', 'Money']
    """
    variants = [title]
    for separator in SUBTITLE_SEPARATORS:
        if separator in title:
            main = title.split(separator, 1)[0].strip()
            if main and main not in variants:
                variants.append(main)
    return variants


class OpenLibraryClient(HttpCatalogClient):
    """Client for the Open Library search API.

    Kindle titles often carry a subtitle Open Library files separately, so a
    search with no hits is retried with the bare main title.

    API Documentation: https://openlibrary.org/dev/docs/api/search
    """

    name = "openlibrary"
    label = "Open Library"
    SEARCH_URL = "https://openlibrary.org/search.json"
    SEARCH_FIELDS = "key,title,author_name,isbn,cover_i"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.normalizer = OpenLibraryNormalizer()

    def search(self, title: str, author: str | None = None) -> CatalogSearchResult:
        result = CatalogSearchResult(provider=self.name)
        for variant in title_variants(title):
            result = self._search_once(variant, author)
            if not result.provider_available or result.candidates:
                return result
            logger.debug(f"No Open Library hits for '{variant}'")
        return result

    def _search_once(self, title: str, author: str | None) -> CatalogSearchResult:
        params = {"title": title, "limit": self.max_results, "fields": self.SEARCH_FIELDS}
        if author:
            params["author"] = author

        logger.debug(f"Searching Open Library for '{title}' by {author or 'unknown author'}")
        data, failure = self._get_json(self.SEARCH_URL, params, title)
        if failure is not None:
            return failure

        docs = (data.get("docs") or []) if isinstance(data, dict) else []
        candidates = self.normalizer.normalize_all(docs, limit=self.max_results)
        return CatalogSearchResult(candidates=candidates, provider_available=True, provider=self.name)
