"""Environment accessors: defaults and overrides for each setting."""

from pathlib import Path

from common.env import Environment, env


class TestDatabaseSettings:
    def test_sqlite_by_default(self, monkeypatch):
        """Test SQLite is the default database type."""
        monkeypatch.delenv("DATABASE_TYPE", raising=False)
        assert Environment.database_type() == "sqlite"

    def test_path_default_under_data(self, monkeypatch):
        """Test the default database path sits under data/."""
        monkeypatch.delenv("DATABASE_PATH", raising=False)
        assert Environment.database_path() == Path("data/clippings.db")

    def test_path_override(self, monkeypatch):
        """Test overriding the database path."""
        monkeypatch.setenv("DATABASE_PATH", "/tmp/reading.db")
        assert Environment.database_path() == Path("/tmp/reading.db")

    def test_busy_timeout(self, monkeypatch):
        """Test reading the SQLite busy timeout."""
        monkeypatch.delenv("DATABASE_BUSY_TIMEOUT", raising=False)
        assert Environment.database_busy_timeout() == 5.0
        monkeypatch.setenv("DATABASE_BUSY_TIMEOUT", "0.5")
        assert Environment.database_busy_timeout() == 0.5


class TestCatalogSettings:
    def test_google_books_by_default(self, monkeypatch):
        """Test Google Books is the default catalog provider."""
        monkeypatch.delenv("CATALOG_PROVIDER", raising=False)
        assert Environment.catalog_provider() == "google-books"

    def test_provider_name_lowercased(self, monkeypatch):
        """Test provider names are lowercased."""
        monkeypatch.setenv("CATALOG_PROVIDER", "OpenLibrary")
        assert Environment.catalog_provider() == "openlibrary"

    def test_timeout(self, monkeypatch):
        """Test reading the catalog request timeout."""
        monkeypatch.delenv("CATALOG_TIMEOUT", raising=False)
        assert Environment.catalog_timeout() == 5.0
        monkeypatch.setenv("CATALOG_TIMEOUT", "2.5")
        assert Environment.catalog_timeout() == 2.5

    def test_result_and_rate_limits(self, monkeypatch):
        """Test reading result and rate limits."""
        monkeypatch.setenv("CATALOG_MAX_RESULTS", "3")
        monkeypatch.setenv("CATALOG_REQUESTS_PER_MINUTE", "10")
        assert Environment.catalog_max_results() == 3
        assert Environment.catalog_requests_per_minute() == 10

    def test_blank_api_key_means_unauthenticated(self, monkeypatch):
        """Test a blank API key means unauthenticated requests."""
        monkeypatch.setenv("GOOGLE_BOOKS_API_KEY", "")
        assert Environment.google_books_api_key() is None
        monkeypatch.setenv("GOOGLE_BOOKS_API_KEY", "abc")
        assert Environment.google_books_api_key() == "abc"


class TestDedupSettings:
    def test_threshold_defaults(self, monkeypatch):
        """Test default dedup thresholds."""
        monkeypatch.delenv("DEDUP_UPDATE_THRESHOLD", raising=False)
        monkeypatch.delenv("DEDUP_MIN_THRESHOLD", raising=False)
        assert Environment.dedup_update_threshold() == 0.9
        assert Environment.dedup_min_threshold() == 0.8

    def test_auto_update_flag(self, monkeypatch):
        """Test parsing the auto-update flag."""
        monkeypatch.delenv("DEDUP_AUTO_UPDATE", raising=False)
        assert Environment.dedup_auto_update() is True
        monkeypatch.setenv("DEDUP_AUTO_UPDATE", "no")
        assert Environment.dedup_auto_update() is False
        monkeypatch.setenv("DEDUP_AUTO_UPDATE", " Yes ")
        assert Environment.dedup_auto_update() is True


def test_module_instance_reads_live_values(monkeypatch):
    """Test the module-level env reads values at call time."""
    assert isinstance(env, Environment)
    monkeypatch.setenv("CATALOG_PROVIDER", "openlibrary")
    assert env.catalog_provider() == "openlibrary"
