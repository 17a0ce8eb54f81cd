"""The storage seam between ReadingStore and a concrete database."""

from abc import ABC, abstractmethod
from typing import Any

from .types import Row


class DatabaseAdapter(ABC):
    """
    Connection, transaction and query primitives used by ReadingStore.

    Writes are not committed until ``commit``; ReadingStore.batch decides
    when that happens. All methods raise ``DatabaseError`` subclasses, never
    driver exceptions.
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection; a no-op when already open."""

    @abstractmethod
    def close(self) -> None: ...

    @property
    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    @abstractmethod
    def create_schema(self) -> None:
        """Create tables, unique indexes and the audit triggers if missing."""

    @abstractmethod
    def get_tables(self) -> list[str]:
        """Names of the user tables, sorted."""

    @abstractmethod
    def execute(self, query: str, params: tuple | None = None) -> Any:
        """Run one statement and return the cursor (``rowcount`` is used for deletes)."""

    @abstractmethod
    def executemany(self, query: str, params_seq: list[tuple]) -> Any: ...

    @abstractmethod
    def fetchone(self, query: str, params: tuple | None = None) -> Row | None: ...

    @abstractmethod
    def fetchall(self, query: str, params: tuple | None = None) -> list[Row]: ...

    @abstractmethod
    def fetchscalar(self, query: str, params: tuple | None = None) -> Any:
        """First column of the first row, or None (for COUNT(*) and friends)."""

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        self.close()
        return False
