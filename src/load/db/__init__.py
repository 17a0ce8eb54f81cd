"""Storage backend for the reading database.

ReadingStore is the only caller; everything else goes through the store.

Example:
    >>> adapter = create_database(DatabaseConfig(db_type="sqlite", db_path=":memory:"))
    >>> with adapter:
    ...     adapter.create_schema()
    ...     adapter.fetchscalar("SELECT COUNT(*) FROM notes")
    0
"""

from .factory import DatabaseConfig, create_database, get_adapter
from .interface import DatabaseAdapter
from .sqlite_adapter import SQLiteAdapter
from .types import (
    AppendOnlyViolation,
    ConnectionError,
    DatabaseError,
    DatabaseType,
    IntegrityError,
    Row,
    SchemaError,
)

__all__ = [
    "AppendOnlyViolation",
    "ConnectionError",
    "DatabaseAdapter",
    "DatabaseConfig",
    "DatabaseError",
    "DatabaseType",
    "IntegrityError",
    "Row",
    "SQLiteAdapter",
    "SchemaError",
    "create_database",
    "get_adapter",
]
