"""Environment configuration interface for the clippings importer.

This module centralizes all environment variable access. Values are read on
every call so tests can override them with ``monkeypatch.setenv``.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file if it exists
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


class Environment:
    """Interface for accessing environment configuration."""

    @staticmethod
    def database_type() -> str:
        """Get the database type.

        Returns:
            Database type, defaults to 'sqlite' (the only supported backend)
        """
        return os.getenv("DATABASE_TYPE", "sqlite")

    @staticmethod
    def database_path() -> Path:
        """Get the SQLite database file path.

        Returns:
            Path to SQLite database file, defaults to ./data/clippings.db
        """
        return Path(os.getenv("DATABASE_PATH", "./data/clippings.db"))

    @staticmethod
    def database_busy_timeout() -> float:
        """Seconds a writer waits for another connection's lock (default 5)."""
        return float(os.getenv("DATABASE_BUSY_TIMEOUT", "5"))

    @staticmethod
    def catalog_provider() -> str:
        """Get the external catalog provider name.

        Returns:
            'google-books' (default) or 'openlibrary'
        """
        return os.getenv("CATALOG_PROVIDER", "google-books").lower()

    @staticmethod
    def catalog_timeout() -> float:
        """Get the hard timeout for a catalog search, in seconds.

        Returns:
            Timeout in seconds, defaults to 5.0
        """
        return float(os.getenv("CATALOG_TIMEOUT", "5"))

    @staticmethod
    def catalog_max_results() -> int:
        """Get the maximum number of candidates requested from the catalog.

        Returns:
            Candidate limit, defaults to 5
        """
        return int(os.getenv("CATALOG_MAX_RESULTS", "5"))

    @staticmethod
    def catalog_requests_per_minute() -> int:
        """Get the client-side rate limit for catalog requests.

        Returns:
            Requests per minute, defaults to 60
        """
        return int(os.getenv("CATALOG_REQUESTS_PER_MINUTE", "60"))

    @staticmethod
    def google_books_api_key() -> str | None:
        """Get the optional Google Books API key.

        Returns:
            API key, or None when unauthenticated access should be used
        """
        return os.getenv("GOOGLE_BOOKS_API_KEY") or None

    @staticmethod
    def dedup_update_threshold() -> float:
        """Similarity at or above which a bucket match is a content update."""
        return float(os.getenv("DEDUP_UPDATE_THRESHOLD", "0.9"))

    @staticmethod
    def dedup_min_threshold() -> float:
        """Similarity at or above which a bucket match needs manual review."""
        return float(os.getenv("DEDUP_MIN_THRESHOLD", "0.8"))

    @staticmethod
    def dedup_auto_update() -> bool:
        """Whether high-similarity matches are applied as content updates."""
        return os.getenv("DEDUP_AUTO_UPDATE", "true").strip().lower() in _TRUTHY


# Singleton instance for convenient access
env = Environment()
