"""Initial database schema migration.

Creates the users, tags, tasks, friends and friend_requests tables and their
indexes.
"""

import sqlite3

from plansync.adapters.sqlite import schema

from .runner import Migration


class InitialSchemaMigration(Migration):
    """Migration 001: Create initial database schema."""

    @property
    def version(self) -> int:
        return 1

    @property
    def description(self) -> str:
        return "Initial planner schema"

    def up(self, connection: sqlite3.Connection) -> None:
        for table_sql in schema.ALL_TABLES:
            connection.execute(table_sql)

        for index_sql in schema.ALL_INDEXES:
            connection.execute(index_sql)


# Export singleton instance
initial_migration = InitialSchemaMigration()
