"""SQLite implementations of FriendRepository and FriendRequestRepository."""

from __future__ import annotations

import sqlite3

from plansync.adapters.sqlite.utils import row_to_dict, to_db_datetime
from plansync.models import Friend, FriendRequest
from plansync.repositories import FriendRepository, FriendRequestRepository


class SqliteFriendRepository(FriendRepository):
    """Local friend records, unique per (owner_uid, friend_uid)."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    async def get_by_uid(self, owner_uid: str, friend_uid: str) -> Friend | None:
        row = self.connection.execute(
            "SELECT * FROM friends WHERE owner_uid = ? AND friend_uid = ?",
            (owner_uid, friend_uid),
        ).fetchone()
        return Friend(**row_to_dict(row)) if row else None

    async def list_all(self, owner_uid: str) -> list[Friend]:
        cursor = self.connection.execute(
            "SELECT * FROM friends WHERE owner_uid = ? ORDER BY friend_name", (owner_uid,)
        )
        return [Friend(**row_to_dict(row)) for row in cursor.fetchall()]

    async def upsert(self, friend: Friend) -> Friend:
        existing = await self.get_by_uid(friend.owner_uid, friend.friend_uid)
        if existing is None:
            self.connection.execute(
                """INSERT INTO friends (id, owner_uid, friend_name, friend_uid, friend_email)
                   VALUES (?, ?, ?, ?, ?)""",
                (
                    friend.id,
                    friend.owner_uid,
                    friend.friend_name,
                    friend.friend_uid,
                    friend.friend_email,
                ),
            )
            return friend

        self.connection.execute(
            "UPDATE friends SET friend_name = ?, friend_email = ? WHERE id = ?",
            (friend.friend_name, friend.friend_email, existing.id),
        )
        return existing.model_copy(
            update={"friend_name": friend.friend_name, "friend_email": friend.friend_email}
        )

    async def delete(self, owner_uid: str, friend_uid: str) -> bool:
        cursor = self.connection.execute(
            "DELETE FROM friends WHERE owner_uid = ? AND friend_uid = ?",
            (owner_uid, friend_uid),
        )
        return cursor.rowcount > 0


_REQUEST_COLUMNS = (
    "id",
    "remote_id",
    "from_uid",
    "to_uid",
    "from_email",
    "to_email",
    "from_name",
    "to_name",
    "send_date",
    "resolved_date",
    "accepted",
    "resolved",
)


def _request_params(request: FriendRequest) -> list:
    return [
        request.id,
        request.remote_id,
        request.from_uid,
        request.to_uid,
        request.from_email,
        request.to_email,
        request.from_name,
        request.to_name,
        to_db_datetime(request.send_date),
        to_db_datetime(request.resolved_date),
        int(request.accepted),
        int(request.resolved),
    ]


class SqliteFriendRequestRepository(FriendRequestRepository):
    """Local mirror of friend requests."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    async def get_by_remote_id(self, remote_id: str) -> FriendRequest | None:
        row = self.connection.execute(
            "SELECT * FROM friend_requests WHERE remote_id = ?", (remote_id,)
        ).fetchone()
        return FriendRequest(**row_to_dict(row)) if row else None

    async def list_pending(self, to_uid: str) -> list[FriendRequest]:
        cursor = self.connection.execute(
            """SELECT * FROM friend_requests
               WHERE to_uid = ? AND resolved = 0 ORDER BY send_date""",
            (to_uid,),
        )
        return [FriendRequest(**row_to_dict(row)) for row in cursor.fetchall()]

    async def replace_pending(self, to_uid: str, requests: list[FriendRequest]) -> None:
        self.connection.execute(
            "DELETE FROM friend_requests WHERE to_uid = ? AND resolved = 0", (to_uid,)
        )
        for request in requests:
            await self.upsert(request)

    async def upsert(self, request: FriendRequest) -> FriendRequest:
        existing = None
        if request.remote_id:
            existing = await self.get_by_remote_id(request.remote_id)
        if existing is not None:
            request = request.model_copy(update={"id": existing.id})

        placeholders = ", ".join("?" for _ in _REQUEST_COLUMNS)
        self.connection.execute(
            f"INSERT OR REPLACE INTO friend_requests ({', '.join(_REQUEST_COLUMNS)}) "
            f"VALUES ({placeholders})",
            _request_params(request),
        )
        return request
