"""Storage errors and the row type shared by the record store and its adapter."""

import re
import sqlite3
from enum import Enum
from typing import Any

from common.errors import ClippingsError

# Rows come back as plain dicts keyed by column name
Row = dict[str, Any]


class DatabaseType(str, Enum):
    SQLITE = "sqlite"


class DatabaseError(ClippingsError):
    """A storage operation failed. Imports surface this as StorageFailure."""

    pass


class ConnectionError(DatabaseError):
    """The database file could not be opened."""

    pass


class SchemaError(DatabaseError):
    """The schema script could not be read or applied."""

    pass


class IntegrityError(DatabaseError):
    """A constraint or trigger rejected a write.

    ``table`` and ``columns`` are filled in when SQLite names the violated
    unique or not-null constraint, e.g. ``notes`` and
    ``("book_id", "type", "location_start")`` for a second note in one slot.
    """

    def __init__(self, message: str, table: str | None = None, columns: tuple[str, ...] = ()):
        super().__init__(message)
        self.table = table
        self.columns = columns


class AppendOnlyViolation(IntegrityError):
    """An update or delete was attempted on an append-only table."""

    pass


_NAMED_CONSTRAINT = re.compile(r"(?:UNIQUE|NOT NULL) constraint failed: (.+)$")
_APPEND_ONLY = re.compile(r"^(\w+) is append-only$")


def translate_error(error: sqlite3.Error, action: str) -> DatabaseError:
    """
    Map a sqlite3 exception onto the storage error hierarchy.

    Args:
        error: Exception raised by sqlite3
        action: What was being attempted, used as the message prefix

    Returns:
        The exception to raise (``raise translate_error(e, ...) from e``)
    """
    message = str(error)
    if not isinstance(error, sqlite3.IntegrityError):
        return DatabaseError(f"{action}: {message}")

    append_only = _APPEND_ONLY.match(message)
    if append_only:
        table = append_only.group(1)
        return AppendOnlyViolation(f"{table} rows cannot be changed or deleted", table=table)

    named = _NAMED_CONSTRAINT.search(message)
    if named:
        qualified = [part.strip() for part in named.group(1).split(",")]
        table = qualified[0].split(".", 1)[0]
        columns = tuple(part.split(".", 1)[-1] for part in qualified)
        return IntegrityError(f"{action}: {message}", table=table, columns=columns)
    return IntegrityError(f"{action}: {message}")
