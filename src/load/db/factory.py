"""Building a database adapter from explicit settings or the environment."""

from dataclasses import dataclass
from pathlib import Path

from common.env import env

from .interface import DatabaseAdapter
from .sqlite_adapter import MEMORY_PATH, SQLiteAdapter
from .types import DatabaseType


@dataclass
class DatabaseConfig:
    """Where the reading database lives.

    Attributes:
        db_type: Backend name; only 'sqlite' is supported
        db_path: Database file, or ':memory:'
        busy_timeout: Seconds to wait for another writer's lock
    """

    db_type: DatabaseType | str
    db_path: Path | str | None = None
    busy_timeout: float = 5.0

    def __post_init__(self):
        if isinstance(self.db_type, str):
            try:
                self.db_type = DatabaseType(self.db_type.lower())
            except ValueError as e:
                supported = ", ".join(t.value for t in DatabaseType)
                raise ValueError(
                    f"Unsupported database type: {self.db_type}. Must be one of: {supported}"
                ) from e

        if self.db_path is None:
            raise ValueError("db_path is required")
        if isinstance(self.db_path, str) and self.db_path != MEMORY_PATH:
            self.db_path = Path(self.db_path)

    @classmethod
    def from_env(cls) -> "DatabaseConfig":
        """Read DATABASE_TYPE, DATABASE_PATH and DATABASE_BUSY_TIMEOUT."""
        return cls(
            db_type=env.database_type(),
            db_path=env.database_path(),
            busy_timeout=env.database_busy_timeout(),
        )


def create_database(config: DatabaseConfig) -> DatabaseAdapter:
    """Return an unconnected adapter for ``config``."""
    if config.db_type == DatabaseType.SQLITE:
        return SQLiteAdapter(config.db_path, busy_timeout=config.busy_timeout)
    raise ValueError(f"Unsupported database type: {config.db_type}")


def get_adapter() -> DatabaseAdapter:
    """Adapter for the database configured in the environment (or .env)."""
    return create_database(DatabaseConfig.from_env())
