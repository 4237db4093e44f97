"""Encoding and decoding of remote documents.

Each collection has an encode/decode pair. Field names follow the remote
schema, which predates this package; SCHEMA_VERSION is written with every
document so later readers can migrate.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from plansync.exceptions import DocumentDecodeError
from plansync.models.core import Color, FriendRequest, Tag, Task, TaskDirection, UserLookup
from plansync.repositories.documents import SERVER_TIMESTAMP

SCHEMA_VERSION = 1

USERS = "users"
FRIEND_REQUESTS = "friend_requests"
FRIEND_STATUS_ACTIVE = "active"


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def user_path(uid: str) -> str:
    return f"{USERS}/{uid}"


def personal_tasks_path(uid: str) -> str:
    return f"{USERS}/{uid}/personal_tasks"


def tags_path(uid: str) -> str:
    return f"{USERS}/{uid}/tags"


def shared_tasks_path(uid: str, direction: TaskDirection) -> str:
    return f"{USERS}/{uid}/{direction.collection}"


def friends_path(uid: str) -> str:
    return f"{USERS}/{uid}/friends"


def friend_requests_path() -> str:
    return FRIEND_REQUESTS


# ---------------------------------------------------------------------------
# Value helpers
# ---------------------------------------------------------------------------


def parse_timestamp(value: Any) -> datetime | None:
    """Accept a datetime or an ISO-8601 string; naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as e:
            raise DocumentDecodeError(f"Invalid timestamp: {value!r}") from e
    else:
        raise DocumentDecodeError(f"Invalid timestamp: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _require(data: dict[str, Any], *fields: str, kind: str) -> None:
    missing = [f for f in fields if data.get(f) is None]
    if missing:
        raise DocumentDecodeError(f"{kind} document is missing {', '.join(missing)}")


def _optional(doc: dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        doc[key] = value


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def encode_task(task: Task) -> dict[str, Any]:
    """Encode a private or shared task.

    lastModified is always the server timestamp sentinel.
    """
    doc: dict[str, Any] = {
        "schemaVersion": SCHEMA_VERSION,
        "title": task.title,
        "date": task.due_date,
        "AutoReminder": task.auto_reminder,
        "IsUrgent": task.is_urgent,
        "IsImportant": task.is_important,
        "IsAutoComplete": task.is_auto_complete,
        "IsAutoFail": task.is_auto_fail,
        "IsDone": task.is_done,
        "IsShared": task.is_shared,
        "lastModified": SERVER_TIMESTAMP,
    }
    _optional(doc, "desc", task.description)
    if task.is_shared:
        doc["from_user_fID"] = task.from_user_id
        doc["to_user_fID"] = task.to_user_id
        doc["FromUserName"] = task.from_user_name or ""
        doc["ToUserName"] = task.to_user_name or ""
    else:
        doc["owner_fID"] = task.owner_id
        _optional(doc, "tagID", task.tag_remote_id)
    _optional(doc, "DateOfCompletion", task.date_of_completion)
    _optional(doc, "DateOfLastReminder", task.date_of_last_reminder)
    _optional(doc, "ReceivedDate", task.received_date)
    return doc


def _task_fields(data: dict[str, Any]) -> dict[str, Any]:
    _require(data, "title", "date", kind="task")
    is_auto_fail = bool(data.get("IsAutoFail", False))
    return {
        "title": data["title"],
        "description": data.get("desc"),
        "due_date": parse_timestamp(data["date"]),
        "auto_reminder": bool(data.get("AutoReminder", False)),
        "is_urgent": bool(data.get("IsUrgent", False)),
        "is_important": bool(data.get("IsImportant", False)),
        # auto-fail wins when a malformed document sets both flags
        "is_auto_complete": bool(data.get("IsAutoComplete", True)) and not is_auto_fail,
        "is_auto_fail": is_auto_fail,
        "is_done": bool(data.get("IsDone", False)),
        "date_of_completion": parse_timestamp(data.get("DateOfCompletion")),
        "date_of_last_reminder": parse_timestamp(data.get("DateOfLastReminder")),
    }


def decode_private_task(remote_id: str, data: dict[str, Any], owner_id: str) -> Task:
    """Decode a personal_tasks document into an unsaved, synced Task.

    Args:
        remote_id: Document id
        data: Document fields
        owner_id: Owner used when the document carries no owner_fID

    Raises:
        DocumentDecodeError: If required fields are missing or invalid
    """
    fields = _task_fields(data)
    try:
        return Task(
            remote_id=remote_id,
            owner_id=data.get("owner_fID") or owner_id,
            tag_remote_id=data.get("tagID") or None,
            is_shared=False,
            is_synced=True,
            **fields,
        )
    except ValidationError as e:
        raise DocumentDecodeError(f"Invalid task document {remote_id}: {e}") from e


def decode_shared_task(remote_id: str, data: dict[str, Any]) -> Task:
    """Decode an incoming_tasks/outgoing_tasks document.

    Raises:
        DocumentDecodeError: If required fields are missing or invalid
    """
    _require(data, "from_user_fID", "to_user_fID", kind="shared task")
    fields = _task_fields(data)
    try:
        return Task(
            remote_id=remote_id,
            from_user_id=data["from_user_fID"],
            to_user_id=data["to_user_fID"],
            from_user_name=data.get("FromUserName") or None,
            to_user_name=data.get("ToUserName") or None,
            received_date=parse_timestamp(data.get("ReceivedDate")),
            is_shared=True,
            is_synced=True,
            **fields,
        )
    except ValidationError as e:
        raise DocumentDecodeError(f"Invalid shared task document {remote_id}: {e}") from e


def encode_task_status(task: Task) -> dict[str, Any]:
    """Fields written when a receiver reports completion or failure."""
    return {
        "IsDone": task.is_done,
        "DateOfCompletion": task.date_of_completion,
        "lastModified": SERVER_TIMESTAMP,
    }


def encode_task_content(task: Task) -> dict[str, Any]:
    """Fields written when a sender edits a shared task."""
    return {
        "title": task.title,
        "desc": task.description,
        "date": task.due_date,
        "lastModified": SERVER_TIMESTAMP,
    }


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def encode_tag(tag: Tag) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "name": tag.name,
        "col": {"r": tag.color.r, "g": tag.color.g, "b": tag.color.b, "a": tag.color.a},
        "symImage": tag.icon or "",
        "owner_fID": tag.owner_id,
        "createdAt": tag.created_at,
    }


def decode_tag(remote_id: str, data: dict[str, Any], owner_id: str) -> Tag:
    """Decode a tags document; missing colour channels default to 0, alpha to 1.

    Raises:
        DocumentDecodeError: If name or col is missing or invalid
    """
    _require(data, "name", "col", kind="tag")
    col = data["col"]
    if not isinstance(col, dict):
        raise DocumentDecodeError(f"Invalid colour in tag document {remote_id}")
    try:
        color = Color(
            r=float(col.get("r", 0)),
            g=float(col.get("g", 0)),
            b=float(col.get("b", 0)),
            a=float(col.get("a", 1)),
        )
        tag = Tag(
            remote_id=remote_id,
            owner_id=data.get("owner_fID") or owner_id,
            name=data["name"],
            color=color,
            icon=data.get("symImage") or None,
            is_synced=True,
        )
    except (TypeError, ValueError) as e:
        raise DocumentDecodeError(f"Invalid tag document {remote_id}: {e}") from e
    created_at = parse_timestamp(data.get("createdAt"))
    if created_at is not None:
        tag.created_at = created_at
        tag.updated_at = created_at
    return tag


# ---------------------------------------------------------------------------
# Friend graph
# ---------------------------------------------------------------------------


def encode_friend_request(request: FriendRequest) -> dict[str, Any]:
    return {
        "schemaVersion": SCHEMA_VERSION,
        "from_uid": request.from_uid,
        "to_uid": request.to_uid,
        "from_email": request.from_email,
        "to_email": request.to_email,
        "from_name": request.from_name or "",
        "to_name": request.to_name or "",
        "send_date": request.send_date,
        "accepted": request.accepted,
        "resolved": request.resolved,
        "resolved_date": request.resolved_date,
    }


def decode_friend_request(remote_id: str, data: dict[str, Any]) -> FriendRequest:
    """Decode a friend_requests document.

    Raises:
        DocumentDecodeError: If the uid or email fields are missing
    """
    _require(data, "from_uid", "to_uid", "from_email", "to_email", kind="friend request")
    try:
        return FriendRequest(
            remote_id=remote_id,
            from_uid=data["from_uid"],
            to_uid=data["to_uid"],
            from_email=data["from_email"],
            to_email=data["to_email"],
            from_name=data.get("from_name") or None,
            to_name=data.get("to_name") or None,
            send_date=parse_timestamp(data.get("send_date")) or datetime.now(UTC),
            resolved_date=parse_timestamp(data.get("resolved_date")),
            accepted=bool(data.get("accepted", False)),
            resolved=bool(data.get("resolved", False)),
        )
    except ValidationError as e:
        raise DocumentDecodeError(f"Invalid friend request {remote_id}: {e}") from e


def encode_friend(uid: str, email: str, added_date: Any = SERVER_TIMESTAMP) -> dict[str, Any]:
    """Entry stored in the other party's friends collection, keyed by uid."""
    return {
        "schemaVersion": SCHEMA_VERSION,
        "uid": uid,
        "email": email,
        "added_date": added_date,
        "status": FRIEND_STATUS_ACTIVE,
    }


def decode_friend(doc_id: str, data: dict[str, Any]) -> tuple[str, str]:
    """Return (uid, email) of a friends entry; the document id is the fallback uid."""
    uid = data.get("uid") or doc_id
    email = data.get("email")
    if not uid or not email:
        raise DocumentDecodeError(f"Friend document {doc_id} is missing uid or email")
    return uid, email


def decode_user(uid: str, data: dict[str, Any]) -> UserLookup:
    _require(data, "email", kind="user")
    return UserLookup(uid=uid, name=data.get("name") or data["email"], email=data["email"])
