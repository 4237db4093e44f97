"""LocalStore: the single owner of the local SQLite connection."""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

from plansync.adapters.sqlite.connection import MEMORY, connect
from plansync.adapters.sqlite.friend_repository import (
    SqliteFriendRepository,
    SqliteFriendRequestRepository,
)
from plansync.adapters.sqlite.tag_repository import SqliteTagRepository
from plansync.adapters.sqlite.task_repository import SqliteTaskRepository
from plansync.adapters.sqlite.user_repository import SqliteUserRepository


class LocalStore:
    """Local store exposing one repository per entity.

    All reads and writes go through transaction(), which serializes access
    with an asyncio.Lock and commits (or rolls back) the unit of work. Callers
    must not await remote calls while holding it.
    """

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection
        self._lock = asyncio.Lock()

        self.tasks = SqliteTaskRepository(connection)
        self.tags = SqliteTagRepository(connection)
        self.friends = SqliteFriendRepository(connection)
        self.friend_requests = SqliteFriendRequestRepository(connection)
        self.users = SqliteUserRepository(connection)

    @classmethod
    def open(cls, db_path: str | Path = MEMORY) -> LocalStore:
        """Open (and migrate) the store at db_path."""
        return cls(connect(db_path))

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[LocalStore]:
        """Run a unit of work under the store lock.

        Commits on normal exit; rolls back and re-raises on error.
        """
        async with self._lock:
            try:
                yield self
            except BaseException:
                self.connection.rollback()
                raise
            else:
                self.connection.commit()

    def close(self) -> None:
        self.connection.close()
