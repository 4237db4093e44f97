"""Forward-only schema migrations for the local store.

Each migration carries a sequential version. Applied versions are recorded in
the schema_version table; opening a store applies whatever is missing.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from datetime import UTC, datetime

from plansync.utils.logger import get_logger

logger = get_logger("store.migrations")

_VERSION_TABLE = """
    CREATE TABLE IF NOT EXISTS schema_version (
        version INTEGER PRIMARY KEY,
        description TEXT NOT NULL,
        applied_at DATETIME NOT NULL
    )
"""


class Migration(ABC):
    """One schema step."""

    @property
    @abstractmethod
    def version(self) -> int:
        """Sequential version, starting at 1."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description stored alongside the version."""

    @abstractmethod
    def up(self, connection: sqlite3.Connection) -> None:
        """Apply the step; the runner commits or rolls back."""


class MigrationRunner:
    """Brings a connection's schema up to date."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection
        self.connection.execute(_VERSION_TABLE)
        self.connection.commit()

    def get_current_version(self) -> int:
        """Highest applied version, 0 for an empty database."""
        (version,) = self.connection.execute("SELECT MAX(version) FROM schema_version").fetchone()
        return version or 0

    def run_migration(self, migration: Migration) -> None:
        """Apply one migration and record it in the same transaction.

        Raises:
            ValueError: If the store is already at or past migration.version
            RuntimeError: If the migration fails; nothing of it is kept
        """
        current = self.get_current_version()
        if migration.version <= current:
            raise ValueError(
                f"Migration {migration.version} is not newer than schema version {current}"
            )

        try:
            migration.up(self.connection)
            self.connection.execute(
                "INSERT INTO schema_version (version, description, applied_at) VALUES (?, ?, ?)",
                (migration.version, migration.description, datetime.now(UTC).isoformat()),
            )
            self.connection.commit()
        except sqlite3.Error as e:
            self.connection.rollback()
            raise RuntimeError(f"Migration {migration.version} failed: {e}") from e

        logger.info("Applied migration %d: %s", migration.version, migration.description)

    def run_migrations(self, migrations: list[Migration]) -> int:
        """Apply the missing migrations in version order and return how many ran."""
        current = self.get_current_version()
        pending = sorted(
            (m for m in migrations if m.version > current), key=lambda m: m.version
        )
        for migration in pending:
            self.run_migration(migration)
        return len(pending)
