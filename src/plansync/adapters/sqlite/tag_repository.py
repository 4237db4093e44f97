"""SQLite implementation of TagRepository."""

from __future__ import annotations

import sqlite3

from plansync.adapters.sqlite.utils import row_to_dict, to_db_datetime
from plansync.exceptions import DuplicateTagError
from plansync.models import Color, Tag
from plansync.repositories import TagRepository


def _row_to_tag(row: sqlite3.Row) -> Tag:
    data = row_to_dict(row)
    data["color"] = Color(
        r=data.pop("color_r"),
        g=data.pop("color_g"),
        b=data.pop("color_b"),
        a=data.pop("color_a"),
    )
    return Tag(**data)


def _tag_params(tag: Tag) -> tuple:
    return (
        tag.remote_id,
        tag.owner_id,
        tag.name,
        tag.color.r,
        tag.color.g,
        tag.color.b,
        tag.color.a,
        tag.icon,
        int(tag.is_synced),
        tag.version,
        to_db_datetime(tag.created_at),
        to_db_datetime(tag.updated_at),
    )


class SqliteTagRepository(TagRepository):
    """SQLite implementation of tag repository."""

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    def _fetch_one(self, query: str, params: tuple) -> Tag | None:
        row = self.connection.execute(query, params).fetchone()
        return _row_to_tag(row) if row else None

    async def get(self, tag_id: str) -> Tag | None:
        return self._fetch_one("SELECT * FROM tags WHERE id = ?", (tag_id,))

    async def get_by_remote_id(self, remote_id: str) -> Tag | None:
        return self._fetch_one("SELECT * FROM tags WHERE remote_id = ?", (remote_id,))

    async def get_by_name(self, owner_id: str, name: str) -> Tag | None:
        return self._fetch_one(
            "SELECT * FROM tags WHERE owner_id = ? AND name = ?", (owner_id, name)
        )

    async def list_all(self, owner_id: str) -> list[Tag]:
        cursor = self.connection.execute(
            "SELECT * FROM tags WHERE owner_id = ? ORDER BY name", (owner_id,)
        )
        return [_row_to_tag(row) for row in cursor.fetchall()]

    async def list_unsynced(self, owner_id: str) -> list[Tag]:
        cursor = self.connection.execute(
            "SELECT * FROM tags WHERE owner_id = ? AND is_synced = 0 ORDER BY created_at",
            (owner_id,),
        )
        return [_row_to_tag(row) for row in cursor.fetchall()]

    async def add(self, tag: Tag) -> Tag:
        try:
            self.connection.execute(
                """INSERT INTO tags (remote_id, owner_id, name, color_r, color_g, color_b,
                                     color_a, icon, is_synced, version, created_at,
                                     updated_at, id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                _tag_params(tag) + (tag.id,),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE constraint" in str(e):
                raise DuplicateTagError(f"Tag '{tag.name}' already exists") from e
            raise
        return tag

    async def save(self, tag: Tag) -> Tag:
        try:
            cursor = self.connection.execute(
                """UPDATE tags SET remote_id = ?, owner_id = ?, name = ?, color_r = ?,
                                   color_g = ?, color_b = ?, color_a = ?, icon = ?,
                                   is_synced = ?, version = ?, created_at = ?,
                                   updated_at = ?
                   WHERE id = ?""",
                _tag_params(tag) + (tag.id,),
            )
        except sqlite3.IntegrityError as e:
            if "UNIQUE constraint" in str(e):
                raise DuplicateTagError(f"Tag '{tag.name}' already exists") from e
            raise
        if cursor.rowcount == 0:
            raise ValueError(f"Tag not found: {tag.id}")
        return tag

    async def mark_synced(self, tag_id: str, version: int) -> bool:
        cursor = self.connection.execute(
            "UPDATE tags SET is_synced = 1 WHERE id = ? AND version = ?", (tag_id, version)
        )
        return cursor.rowcount > 0

    async def delete(self, tag_id: str) -> bool:
        cursor = self.connection.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
        return cursor.rowcount > 0
