"""SQLite implementation of TaskRepository."""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Any

from plansync.adapters.sqlite.utils import row_to_dict, to_db_datetime
from plansync.models import Task, TaskDirection
from plansync.repositories import TaskRepository

_COLUMNS = (
    "id",
    "remote_id",
    "title",
    "description",
    "due_date",
    "tag_id",
    "tag_remote_id",
    "auto_reminder",
    "is_important",
    "is_urgent",
    "is_auto_complete",
    "is_auto_fail",
    "is_done",
    "is_shared",
    "owner_id",
    "from_user_id",
    "to_user_id",
    "from_user_name",
    "to_user_name",
    "is_synced",
    "received_date",
    "date_of_completion",
    "date_of_last_reminder",
    "version",
    "created_at",
    "updated_at",
)

_DATETIME_COLUMNS = {
    "due_date",
    "received_date",
    "date_of_completion",
    "date_of_last_reminder",
    "created_at",
    "updated_at",
}

# Tasks the user takes part in, private or shared
_USER_SCOPE = "(t.owner_id = ? OR t.from_user_id = ? OR t.to_user_id = ?)"


def _task_to_row(task: Task) -> dict[str, Any]:
    data = task.model_dump()
    row: dict[str, Any] = {}
    for column in _COLUMNS:
        value = data[column]
        if column in _DATETIME_COLUMNS:
            value = to_db_datetime(value)
        elif isinstance(value, bool):
            value = int(value)
        row[column] = value
    return row


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(**row_to_dict(row))


class SqliteTaskRepository(TaskRepository):
    """SQLite implementation of task repository.

    Works on a connection owned by LocalStore and never commits itself.
    """

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def _fetch_all(self, query: str, params: tuple | list) -> list[Task]:
        cursor = self.connection.execute(query, params)
        return [_row_to_task(row) for row in cursor.fetchall()]

    def _fetch_one(self, query: str, params: tuple | list) -> Task | None:
        row = self.connection.execute(query, params).fetchone()
        return _row_to_task(row) if row else None

    async def get(self, task_id: str) -> Task | None:
        return self._fetch_one("SELECT * FROM tasks WHERE id = ?", (task_id,))

    async def get_by_remote_id(self, remote_id: str) -> Task | None:
        return self._fetch_one("SELECT * FROM tasks WHERE remote_id = ?", (remote_id,))

    async def list_private(self, owner_id: str) -> list[Task]:
        return self._fetch_all(
            "SELECT * FROM tasks WHERE owner_id = ? AND is_shared = 0 ORDER BY due_date",
            (owner_id,),
        )

    async def list_shared(
        self, user_id: str, direction: TaskDirection | None = None
    ) -> list[Task]:
        query = "SELECT * FROM tasks t WHERE t.is_shared = 1"
        params: list[Any] = []

        if direction is TaskDirection.INCOMING:
            query += " AND t.to_user_id = ?"
            params.append(user_id)
        elif direction is TaskDirection.OUTGOING:
            query += " AND t.from_user_id = ?"
            params.append(user_id)
        else:
            query += " AND (t.from_user_id = ? OR t.to_user_id = ?)"
            params.extend([user_id, user_id])

        query += " ORDER BY t.due_date"
        return self._fetch_all(query, params)

    async def list_unsynced(self, owner_id: str) -> list[Task]:
        return self._fetch_all(
            """SELECT * FROM tasks
               WHERE owner_id = ? AND is_shared = 0 AND is_synced = 0
               ORDER BY created_at""",
            (owner_id,),
        )

    async def list_unlinked(self, owner_id: str) -> list[Task]:
        return self._fetch_all(
            """SELECT * FROM tasks
               WHERE owner_id = ? AND is_shared = 0
                 AND tag_remote_id IS NOT NULL AND tag_id IS NULL""",
            (owner_id,),
        )

    async def list_by_tag(self, tag_id: str, remote_id: str | None = None) -> list[Task]:
        if remote_id is None:
            return self._fetch_all("SELECT * FROM tasks WHERE tag_id = ?", (tag_id,))
        return self._fetch_all(
            "SELECT * FROM tasks WHERE tag_id = ? OR tag_remote_id = ?", (tag_id, remote_id)
        )

    async def list_auto_complete_pending(self, user_id: str, now: datetime) -> list[Task]:
        return self._fetch_all(
            f"""SELECT * FROM tasks t
                WHERE {_USER_SCOPE}
                  AND t.is_done = 0 AND t.is_auto_complete = 1 AND t.due_date < ?
                ORDER BY t.due_date""",
            (user_id, user_id, user_id, to_db_datetime(now)),
        )

    async def list_failed(self, user_id: str, now: datetime) -> list[Task]:
        return self._fetch_all(
            f"""SELECT * FROM tasks t
                WHERE {_USER_SCOPE}
                  AND t.is_done = 0 AND t.is_auto_fail = 1 AND t.due_date < ?
                ORDER BY t.due_date""",
            (user_id, user_id, user_id, to_db_datetime(now)),
        )

    async def add(self, task: Task) -> Task:
        row = _task_to_row(task)
        placeholders = ", ".join("?" for _ in _COLUMNS)
        self.connection.execute(
            f"INSERT INTO tasks ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
            [row[c] for c in _COLUMNS],
        )
        return task

    async def save(self, task: Task) -> Task:
        row = _task_to_row(task)
        columns = [c for c in _COLUMNS if c != "id"]
        set_clause = ", ".join(f"{c} = ?" for c in columns)
        cursor = self.connection.execute(
            f"UPDATE tasks SET {set_clause} WHERE id = ?",
            [row[c] for c in columns] + [task.id],
        )
        if cursor.rowcount == 0:
            raise ValueError(f"Task not found: {task.id}")
        return task

    async def mark_synced(self, task_id: str, version: int) -> bool:
        cursor = self.connection.execute(
            "UPDATE tasks SET is_synced = 1 WHERE id = ? AND version = ?",
            (task_id, version),
        )
        return cursor.rowcount > 0

    async def delete(self, task_id: str) -> bool:
        cursor = self.connection.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        return cursor.rowcount > 0
