"""SQLite adapter for the reading database."""

import sqlite3
from pathlib import Path
from typing import Any

from common.logger import get_logger

from .interface import DatabaseAdapter
from .types import ConnectionError as DBConnectionError
from .types import DatabaseError, Row, SchemaError, translate_error

logger = get_logger(__name__)

MEMORY_PATH = ":memory:"
SCHEMA_FILE = Path(__file__).parent / "schema_sqlite.sql"


class SQLiteAdapter(DatabaseAdapter):
    """
    SQLite-backed adapter.

    ``":memory:"`` gives a throwaway database (what the tests use). File
    databases run in WAL mode with a busy timeout, so a second import started
    while one is writing waits for the lock instead of failing at once.
    Foreign keys are enforced on every connection.
    """

    def __init__(self, db_path: str | Path, busy_timeout: float = 5.0):
        self.in_memory = str(db_path) == MEMORY_PATH
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self._conn: sqlite3.Connection | None = None

    def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            if self.in_memory:
                conn = sqlite3.connect(MEMORY_PATH)
            else:
                self.db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = sqlite3.connect(str(self.db_path), timeout=self.busy_timeout)
                conn.execute("PRAGMA journal_mode = WAL")
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
        except (sqlite3.Error, OSError) as e:
            raise DBConnectionError(f"Cannot open database {self.db_path}: {e}") from e
        self._conn = conn
        logger.debug(f"Opened {self!r}")

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise DatabaseError("No active connection; call connect() first")
        return self._conn

    def commit(self) -> None:
        try:
            self._connection().commit()
        except sqlite3.Error as e:
            raise translate_error(e, "Commit failed") from e

    def rollback(self) -> None:
        try:
            self._connection().rollback()
        except sqlite3.Error as e:
            raise translate_error(e, "Rollback failed") from e

    def create_schema(self) -> None:
        conn = self._connection()
        try:
            script = SCHEMA_FILE.read_text(encoding="utf-8")
        except OSError as e:
            raise SchemaError(f"Cannot read schema file {SCHEMA_FILE}: {e}") from e
        try:
            conn.executescript(script)
            conn.commit()
        except sqlite3.Error as e:
            raise SchemaError(f"Failed to apply schema: {e}") from e

    def get_tables(self) -> list[str]:
        rows = self.fetchall(
            "SELECT name FROM sqlite_master "
            "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row["name"] for row in rows]

    def execute(self, query: str, params: tuple | None = None) -> Any:
        conn = self._connection()
        try:
            return conn.execute(query, params or ())
        except sqlite3.Error as e:
            raise translate_error(e, "Query execution failed") from e

    def executemany(self, query: str, params_seq: list[tuple]) -> Any:
        conn = self._connection()
        try:
            return conn.executemany(query, params_seq)
        except sqlite3.Error as e:
            raise translate_error(e, "Batch execution failed") from e

    def fetchone(self, query: str, params: tuple | None = None) -> Row | None:
        row = self.execute(query, params).fetchone()
        return dict(row) if row is not None else None

    def fetchall(self, query: str, params: tuple | None = None) -> list[Row]:
        return [dict(row) for row in self.execute(query, params).fetchall()]

    def fetchscalar(self, query: str, params: tuple | None = None) -> Any:
        row = self.execute(query, params).fetchone()
        return row[0] if row is not None else None

    def __repr__(self) -> str:
        state = "open" if self._conn is not None else "closed"
        return f"SQLiteAdapter({MEMORY_PATH if self.in_memory else self.db_path}, {state})"
