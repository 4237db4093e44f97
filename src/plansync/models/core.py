"""Core domain models: tasks, tags, friends, friend requests and users."""

from __future__ import annotations

import random
import re
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


EMAIL_PATTERN = re.compile(r"^[A-Z0-9a-z._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,64}$")


def is_valid_email(email: str) -> bool:
    return EMAIL_PATTERN.match(email) is not None


def _new_id() -> str:
    return str(uuid.uuid4())


def local_user_id(uid: str) -> str:
    """Local id of the participant with remote UID uid, stable across devices."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"plansync:user:{uid}"))


def _utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class TaskOption(str, Enum):
    """Options a user can pick when creating a task."""

    USUAL = "usual"
    IMPORTANT = "important"
    URGENT = "urgent"
    AUTO_COMPLETE = "auto_complete"
    AUTO_FAIL = "auto_fail"
    REMINDER = "reminder"


class TaskStatus(str, Enum):
    """Status a receiver can report on a shared task."""

    COMPLETED = "completed"
    FAILED = "failed"


class TaskDirection(str, Enum):
    """Side of a shared task as seen from one user's namespace."""

    INCOMING = "incoming"
    OUTGOING = "outgoing"

    @property
    def collection(self) -> str:
        return f"{self.value}_tasks"


class Color(BaseModel):
    """RGBA colour with channels in [0, 1]."""

    r: float = Field(ge=0, le=1)
    g: float = Field(ge=0, le=1)
    b: float = Field(ge=0, le=1)
    a: float = Field(default=1.0, ge=0, le=1)

    @classmethod
    def random(cls) -> Color:
        """A random opaque colour, the default for new tags."""
        return cls(r=random.random(), g=random.random(), b=random.random(), a=1.0)


class Task(BaseModel):
    """Task model covering both private and shared tasks.

    Attributes:
        id: Local unique identifier
        remote_id: Remote document id, set once the task was first uploaded
        title: Task title (non-empty)
        description: Optional detailed description
        due_date: Due timestamp
        tag_id: Local tag reference (private tasks)
        tag_remote_id: Remote id of the tag, used to re-link after tag sync
        auto_reminder: Whether reminders are enabled
        is_important: Eisenhower importance flag
        is_urgent: Eisenhower urgency flag
        is_auto_complete: Task completes itself once due
        is_auto_fail: Task fails once due without completion
        is_done: Completion status
        is_shared: Shared between a sender and a receiver
        owner_id: Creator's remote UID (private tasks)
        from_user_id: Sender's remote UID (shared tasks)
        to_user_id: Receiver's remote UID (shared tasks)
        from_user_name: Sender display name
        to_user_name: Receiver display name
        is_synced: Local state matches the last uploaded state
        received_date: When a shared task was first materialized locally
        date_of_completion: When the task was completed or failed
        date_of_last_reminder: When the last reminder fired
        version: Counter bumped on every local update
        created_at: Creation timestamp
        updated_at: Last local update timestamp
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    remote_id: str | None = None
    title: str = Field(min_length=1)
    description: str | None = None
    due_date: datetime
    tag_id: str | None = None
    tag_remote_id: str | None = None

    auto_reminder: bool = False
    is_important: bool = False
    is_urgent: bool = False
    is_auto_complete: bool = True
    is_auto_fail: bool = False
    is_done: bool = False
    is_shared: bool = False

    owner_id: str | None = None
    from_user_id: str | None = None
    to_user_id: str | None = None
    from_user_name: str | None = None
    to_user_name: str | None = None

    is_synced: bool = False
    received_date: datetime | None = None
    date_of_completion: datetime | None = None
    date_of_last_reminder: datetime | None = None

    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("title cannot be empty")
        return v

    @field_validator(
        "due_date",
        "received_date",
        "date_of_completion",
        "date_of_last_reminder",
        "created_at",
        "updated_at",
    )
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @model_validator(mode="after")
    def check_invariants(self) -> Task:
        if self.is_auto_complete and self.is_auto_fail:
            raise ValueError("a task cannot be both auto-complete and auto-fail")
        if self.is_shared:
            if self.owner_id is not None:
                raise ValueError("shared tasks have no owner_id")
            if not self.from_user_id or not self.to_user_id:
                raise ValueError("shared tasks need from_user_id and to_user_id")
        else:
            if self.from_user_id is not None or self.to_user_id is not None:
                raise ValueError("private tasks have no sender or receiver")
            if not self.owner_id:
                raise ValueError("private tasks need an owner_id")
        return self

    def set_auto_complete(self, value: bool) -> None:
        """Set the auto-complete flag, clearing auto-fail when enabling it."""
        if value:
            self.is_auto_fail = False
        self.is_auto_complete = value

    def set_auto_fail(self, value: bool) -> None:
        """Set the auto-fail flag, clearing auto-complete when enabling it."""
        if value:
            self.is_auto_complete = False
        self.is_auto_fail = value

    def mark_dirty(self) -> None:
        """Record a local edit: bump the version and flag the task for upload."""
        self.version += 1
        self.is_synced = False
        self.updated_at = _utcnow()

    def is_failed_at(self, now: datetime) -> bool:
        """An auto-fail task that is still open after its due date has failed."""
        return self.is_auto_fail and not self.is_done and self.due_date < now

    def role_of(self, user_id: str) -> str | None:
        """Return "sender", "receiver" or None for a shared task."""
        if not self.is_shared:
            return None
        if self.from_user_id == user_id:
            return "sender"
        if self.to_user_id == user_id:
            return "receiver"
        return None


class Tag(BaseModel):
    """Tag model; names are unique per owner.

    Attributes:
        id: Local unique identifier
        remote_id: Remote document id
        owner_id: Owner's remote UID
        name: Tag name
        color: Display colour
        icon: Optional symbol name
        is_synced: Local state matches the last uploaded state
        version: Counter bumped on every local update
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_id)
    remote_id: str | None = None
    owner_id: str
    name: str = Field(min_length=1)
    color: Color = Field(default_factory=Color.random)
    icon: str | None = None
    is_synced: bool = False
    version: int = Field(default=1, ge=1)
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def mark_dirty(self) -> None:
        self.version += 1
        self.is_synced = False
        self.updated_at = _utcnow()


class Friend(BaseModel):
    """Local materialization of an accepted friendship.

    friend_uid is the natural key: one record per remote friend per owner.
    """

    id: str = Field(default_factory=_new_id)
    owner_uid: str
    friend_name: str
    friend_uid: str
    friend_email: str

    @property
    def user_id(self) -> str:
        return local_user_id(self.owner_uid)

    @property
    def friend_id(self) -> str:
        return local_user_id(self.friend_uid)


class FriendRequest(BaseModel):
    """Friend request; resolves exactly once."""

    id: str = Field(default_factory=_new_id)
    remote_id: str | None = None
    from_uid: str
    to_uid: str
    from_email: str
    to_email: str
    from_name: str | None = None
    to_name: str | None = None
    send_date: datetime = Field(default_factory=_utcnow)
    resolved_date: datetime | None = None
    accepted: bool = False
    resolved: bool = False

    @field_validator("send_date", "resolved_date")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)

    @property
    def is_pending(self) -> bool:
        return not self.resolved


class User(BaseModel):
    """Local cache of the signed-in user's identity.

    The local id is derived from remote_id unless given.
    """

    id: str = Field(default_factory=_new_id)
    remote_id: str
    display_name: str | None = None
    email: str
    last_sync: datetime | None = None
    auto_sync: bool = True

    @model_validator(mode="before")
    @classmethod
    def derive_id(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("id") and data.get("remote_id"):
            data = {**data, "id": local_user_id(data["remote_id"])}
        return data

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        if not is_valid_email(v):
            raise ValueError(f"Invalid email address: {v!r}")
        return v

    @field_validator("last_sync")
    @classmethod
    def validate_timezone(cls, v: datetime | None) -> datetime | None:
        return ensure_utc(v)


class UserLookup(BaseModel):
    """Result of a directory lookup by email."""

    uid: str
    name: str
    email: str
