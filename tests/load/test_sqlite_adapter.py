"""Tests for the SQLite adapter and adapter factory."""

import sqlite3

import pytest

from load.db import (
    AppendOnlyViolation,
    DatabaseConfig,
    DatabaseError,
    DatabaseType,
    IntegrityError,
    SchemaError,
    SQLiteAdapter,
    create_database,
    get_adapter,
)
from load.db import sqlite_adapter
from load.db.types import translate_error

EXPECTED_TABLES = [
    "book_aliases",
    "books",
    "canonical_books",
    "canonical_link_audit",
    "import_sessions",
    "notes",
    "pending_confirmations",
    "review_items",
]

INSERT_BOOK = """
    INSERT INTO books (id, title, author, created_at, last_modified_at)
    VALUES (?, 'Nineteen Eighty-Four', 'George Orwell', '2024-01-01', '2024-01-01')
"""
INSERT_NOTE = """
    INSERT INTO notes (id, book_id, type, text, content_hash, location_start, created_at, last_modified_at)
    VALUES (?, ?, 'highlight', 't', ?, 15, '2024-01-01', '2024-01-01')
"""


@pytest.fixture
def adapter():
    with SQLiteAdapter(":memory:") as db:
        db.create_schema()
        yield db


class TestSQLiteAdapter:
    """Tests for SQLite adapter."""

    def test_create_adapter(self, tmp_path):
        """Test creating a SQLite adapter."""
        db_path = tmp_path / "test.db"
        db = SQLiteAdapter(db_path)
        assert db.db_path == db_path
        assert not db.is_connected
        assert not db.in_memory

    def test_connect_creates_parent_dir_and_uses_wal(self, tmp_path):
        """Test connecting creates the parent directory and uses WAL."""
        db = SQLiteAdapter(tmp_path / "nested" / "test.db")

        db.connect()
        assert db.is_connected
        assert (tmp_path / "nested" / "test.db").exists()
        assert db.fetchscalar("PRAGMA journal_mode") == "wal"

        db.close()
        assert not db.is_connected

    def test_create_schema(self, adapter):
        """Test creating the database schema."""
        assert adapter.get_tables() == EXPECTED_TABLES

    def test_create_schema_is_idempotent(self, adapter):
        """Test creating the schema twice."""
        adapter.create_schema()
        assert adapter.get_tables() == EXPECTED_TABLES

    def test_missing_schema_file(self, monkeypatch, tmp_path):
        """Test a missing schema file."""
        monkeypatch.setattr(sqlite_adapter, "SCHEMA_FILE", tmp_path / "missing.sql")
        with SQLiteAdapter(":memory:") as db:
            with pytest.raises(SchemaError, match="Cannot read schema file"):
                db.create_schema()

    def test_foreign_keys_enforced(self, adapter):
        """Test foreign keys are enforced."""
        with pytest.raises(IntegrityError):
            adapter.execute(INSERT_NOTE, ("n1", "missing-book", "h1"))

    def test_unique_slot_violation_names_columns(self, adapter):
        """Test a unique slot violation names its columns."""
        adapter.execute(INSERT_BOOK, ("b1",))
        adapter.execute(INSERT_NOTE, ("n1", "b1", "h1"))

        with pytest.raises(IntegrityError) as excinfo:
            adapter.execute(INSERT_NOTE, ("n2", "b1", "h2"))

        assert excinfo.value.table == "notes"
        assert excinfo.value.columns == ("book_id", "type", "location_start")

    def test_audit_table_is_append_only(self, adapter):
        """Test the audit table is append-only."""
        adapter.execute(
            """
            INSERT INTO canonical_link_audit
            (input_title, normalized_key, confidence, band, resolution_mode,
             canonical_book_id, source_flow, resolved_at)
            VALUES ('1984', '1984', 0.0, 'provisional', 'provisional', 'c1', 'import', '2024-01-01')
            """
        )
        with pytest.raises(AppendOnlyViolation) as excinfo:
            adapter.execute("DELETE FROM canonical_link_audit")
        assert excinfo.value.table == "canonical_link_audit"

    def test_fetch_helpers(self):
        """Test fetchone and fetchall."""
        with SQLiteAdapter(":memory:") as db:
            db.execute("CREATE TABLE t (id INTEGER, name TEXT)")
            db.executemany("INSERT INTO t VALUES (?, ?)", [(1, "a"), (2, "b")])

            assert db.fetchone("SELECT * FROM t WHERE id = ?", (1,)) == {"id": 1, "name": "a"}
            assert db.fetchone("SELECT * FROM t WHERE id = ?", (9,)) is None
            assert db.fetchall("SELECT name FROM t ORDER BY id") == [{"name": "a"}, {"name": "b"}]
            assert db.fetchscalar("SELECT COUNT(*) FROM t") == 2

    def test_rollback(self, tmp_path):
        """Test transaction rollback."""
        db = SQLiteAdapter(tmp_path / "test.db")
        db.connect()
        db.execute("CREATE TABLE t (id INTEGER)")
        db.commit()

        db.execute("INSERT INTO t VALUES (1)")
        db.rollback()

        assert db.fetchscalar("SELECT COUNT(*) FROM t") == 0
        db.close()

    def test_context_manager_rolls_back_on_error(self, tmp_path):
        """Test the context manager rolls back on error."""
        db_path = tmp_path / "test.db"
        with SQLiteAdapter(db_path) as db:
            db.execute("CREATE TABLE t (id INTEGER)")

        with pytest.raises(RuntimeError):
            with SQLiteAdapter(db_path) as db:
                db.execute("INSERT INTO t VALUES (1)")
                raise RuntimeError("boom")

        with SQLiteAdapter(db_path) as db:
            assert db.fetchscalar("SELECT COUNT(*) FROM t") == 0

    def test_bad_query_raises_database_error(self):
        """Test a bad query raises DatabaseError."""
        with SQLiteAdapter(":memory:") as db:
            with pytest.raises(DatabaseError, match="Query execution failed"):
                db.execute("SELECT * FROM no_such_table")

    def test_requires_connection(self):
        """Test queries require a connection."""
        db = SQLiteAdapter(":memory:")
        with pytest.raises(DatabaseError, match="No active connection"):
            db.execute("SELECT 1")


class TestTranslateError:
    def test_operational_error(self):
        """Test operational errors are wrapped."""
        error = translate_error(sqlite3.OperationalError("database is locked"), "Commit failed")
        assert type(error) is DatabaseError
        assert str(error) == "Commit failed: database is locked"

    def test_check_constraint_has_no_columns(self):
        """Test a check constraint violation has no columns."""
        error = translate_error(sqlite3.IntegrityError("CHECK constraint failed: type"), "Insert")
        assert isinstance(error, IntegrityError)
        assert error.table is None
        assert error.columns == ()


class TestDatabaseFactory:
    def test_config_from_string(self):
        """Test building a config from a string."""
        config = DatabaseConfig(db_type="SQLite", db_path="data/x.db")
        assert config.db_type == DatabaseType.SQLITE
        assert str(config.db_path) == "data/x.db"

    def test_memory_path_stays_string(self):
        """Test the :memory: path stays a string."""
        assert DatabaseConfig(db_type="sqlite", db_path=":memory:").db_path == ":memory:"

    def test_unsupported_type(self):
        """Test an unsupported database type."""
        with pytest.raises(ValueError, match="Unsupported database type"):
            DatabaseConfig(db_type="postgresql", db_path="x")

    def test_path_required(self):
        """Test a path is required."""
        with pytest.raises(ValueError):
            DatabaseConfig(db_type="sqlite")

    def test_create_database(self, tmp_path):
        """Test creating a database from a config."""
        config = DatabaseConfig(db_type="sqlite", db_path=tmp_path / "x.db", busy_timeout=1.5)
        adapter = create_database(config)
        assert isinstance(adapter, SQLiteAdapter)
        assert adapter.busy_timeout == 1.5

    def test_get_adapter_from_env(self, monkeypatch, tmp_path):
        """Test getting an adapter from the environment."""
        monkeypatch.setenv("DATABASE_TYPE", "sqlite")
        monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "env.db"))
        monkeypatch.setenv("DATABASE_BUSY_TIMEOUT", "2")
        adapter = get_adapter()
        assert adapter.db_path == tmp_path / "env.db"
        assert adapter.busy_timeout == 2.0
