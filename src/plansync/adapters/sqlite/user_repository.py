"""SQLite implementation of UserRepository."""

from __future__ import annotations

import sqlite3

from plansync.adapters.sqlite.utils import row_to_dict, to_db_datetime
from plansync.models import User
from plansync.repositories import UserRepository


class SqliteUserRepository(UserRepository):
    """Local cache of signed-in identities, keyed by remote id."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    async def get_by_remote_id(self, remote_id: str) -> User | None:
        row = self.connection.execute(
            "SELECT * FROM users WHERE remote_id = ?", (remote_id,)
        ).fetchone()
        return User(**row_to_dict(row)) if row else None

    async def upsert(self, user: User) -> User:
        existing = await self.get_by_remote_id(user.remote_id)
        if existing is not None:
            user = user.model_copy(update={"id": existing.id})
        self.connection.execute(
            """INSERT OR REPLACE INTO users (id, remote_id, display_name, email, last_sync,
                                             auto_sync)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                user.id,
                user.remote_id,
                user.display_name,
                user.email,
                to_db_datetime(user.last_sync),
                int(user.auto_sync),
            ),
        )
        return user
