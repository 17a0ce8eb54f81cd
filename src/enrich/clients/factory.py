"""Pick the catalog client named by configuration."""

from common.env import env

from .base import CatalogClient
from .google_books import GoogleBooksClient
from .openlibrary import OpenLibraryClient

PROVIDERS = {
    GoogleBooksClient.name: GoogleBooksClient,
    OpenLibraryClient.name: OpenLibraryClient,
}


def create_catalog_client(provider: str | None = None) -> CatalogClient:
    """Create the catalog client for a provider name.

    Args:
        provider: 'google-books' or 'openlibrary' (default: CATALOG_PROVIDER)

    Raises:
        ValueError: If the provider is unknown
    """
    name = (provider or env.catalog_provider()).lower()
    client_class = PROVIDERS.get(name)
    if client_class is None:
        raise ValueError(
            f"Unknown catalog provider: {name}. Must be one of: {', '.join(PROVIDERS)}"
        )
    return client_class()
