"""Database connection management for the local planner store.

Opens SQLite connections configured for plansync: dict-like rows, WAL mode,
foreign keys, owner-only file permissions and an up-to-date schema.
"""

from __future__ import annotations

import os
import sqlite3
from pathlib import Path

from plansync.adapters.sqlite.migrations import ALL_MIGRATIONS, MigrationRunner
from plansync.utils.logger import get_logger

logger = get_logger("store")

MEMORY = ":memory:"


def connect(db_path: str | Path = MEMORY) -> sqlite3.Connection:
    """Open a configured connection and apply pending migrations.

    Args:
        db_path: Path to the database file, or ":memory:"

    Returns:
        sqlite3.Connection with sqlite3.Row rows
    """
    in_memory = str(db_path) == MEMORY
    is_new_database = False

    if not in_memory:
        db_path = Path(db_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        is_new_database = not db_path.exists()

    connection = sqlite3.connect(
        str(db_path),
        timeout=30.0,  # Wait up to 30s for locks
    )
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    if not in_memory:
        connection.execute("PRAGMA journal_mode = WAL")

    if is_new_database:
        os.chmod(db_path, 0o600)
        logger.info("Created local store at %s", db_path)

    applied = MigrationRunner(connection).run_migrations(ALL_MIGRATIONS)
    if applied:
        logger.debug("Applied %d migration(s) to %s", applied, db_path)

    return connection
