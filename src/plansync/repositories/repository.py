"""Local repository abstraction layer for plansync.

This module defines the abstract base classes (interfaces) for local
persistence, following the hexagonal architecture (Ports & Adapters) pattern.

Repositories never commit: callers run them inside LocalStore.transaction(),
which commits or rolls back the whole unit of work.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from plansync.models.core import Friend, FriendRequest, Tag, Task, TaskDirection, User


class TaskRepository(ABC):
    """Abstract base class for task persistence operations."""

    @abstractmethod
    async def get(self, task_id: str) -> Task | None:
        """Get a task by local id, or None."""
        raise NotImplementedError("TaskRepository.get() must be implemented by adapter")

    @abstractmethod
    async def get_by_remote_id(self, remote_id: str) -> Task | None:
        """Get a task by remote document id, or None."""
        raise NotImplementedError(
            "TaskRepository.get_by_remote_id() must be implemented by adapter"
        )

    @abstractmethod
    async def list_private(self, owner_id: str) -> list[Task]:
        """List the private tasks of an owner, ordered by due date."""
        raise NotImplementedError("TaskRepository.list_private() must be implemented by adapter")

    @abstractmethod
    async def list_shared(
        self, user_id: str, direction: TaskDirection | None = None
    ) -> list[Task]:
        """List shared tasks where the user is receiver (INCOMING) or sender (OUTGOING).

        Args:
            user_id: The local user's remote UID
            direction: Restrict to one side; None returns both
        """
        raise NotImplementedError("TaskRepository.list_shared() must be implemented by adapter")

    @abstractmethod
    async def list_unsynced(self, owner_id: str) -> list[Task]:
        """List private tasks with local changes not yet uploaded."""
        raise NotImplementedError("TaskRepository.list_unsynced() must be implemented by adapter")

    @abstractmethod
    async def list_unlinked(self, owner_id: str) -> list[Task]:
        """List private tasks carrying a tag_remote_id but no local tag_id."""
        raise NotImplementedError("TaskRepository.list_unlinked() must be implemented by adapter")

    @abstractmethod
    async def list_by_tag(self, tag_id: str, remote_id: str | None = None) -> list[Task]:
        """List tasks linked to a local tag, or to its remote id when given."""
        raise NotImplementedError("TaskRepository.list_by_tag() must be implemented by adapter")

    @abstractmethod
    async def list_auto_complete_pending(self, user_id: str, now: datetime) -> list[Task]:
        """List open auto-complete tasks of the user whose due date has passed."""
        raise NotImplementedError(
            "TaskRepository.list_auto_complete_pending() must be implemented by adapter"
        )

    @abstractmethod
    async def list_failed(self, user_id: str, now: datetime) -> list[Task]:
        """List open auto-fail tasks of the user whose due date has passed."""
        raise NotImplementedError("TaskRepository.list_failed() must be implemented by adapter")

    @abstractmethod
    async def add(self, task: Task) -> Task:
        """Insert a new task."""
        raise NotImplementedError("TaskRepository.add() must be implemented by adapter")

    @abstractmethod
    async def save(self, task: Task) -> Task:
        """Overwrite every stored field of an existing task."""
        raise NotImplementedError("TaskRepository.save() must be implemented by adapter")

    @abstractmethod
    async def mark_synced(self, task_id: str, version: int) -> bool:
        """Clear the dirty flag only if the stored version still equals version.

        Returns:
            True if the task was marked synced
        """
        raise NotImplementedError("TaskRepository.mark_synced() must be implemented by adapter")

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        """Delete a task; returns False when it did not exist."""
        raise NotImplementedError("TaskRepository.delete() must be implemented by adapter")


class TagRepository(ABC):
    """Abstract base class for tag persistence operations."""

    @abstractmethod
    async def get(self, tag_id: str) -> Tag | None:
        raise NotImplementedError("TagRepository.get() must be implemented by adapter")

    @abstractmethod
    async def get_by_remote_id(self, remote_id: str) -> Tag | None:
        raise NotImplementedError("TagRepository.get_by_remote_id() must be implemented by adapter")

    @abstractmethod
    async def get_by_name(self, owner_id: str, name: str) -> Tag | None:
        raise NotImplementedError("TagRepository.get_by_name() must be implemented by adapter")

    @abstractmethod
    async def list_all(self, owner_id: str) -> list[Tag]:
        """List the owner's tags ordered by name."""
        raise NotImplementedError("TagRepository.list_all() must be implemented by adapter")

    @abstractmethod
    async def list_unsynced(self, owner_id: str) -> list[Tag]:
        raise NotImplementedError("TagRepository.list_unsynced() must be implemented by adapter")

    @abstractmethod
    async def add(self, tag: Tag) -> Tag:
        """Insert a new tag.

        Raises:
            DuplicateTagError: If the owner already has a tag with this name
        """
        raise NotImplementedError("TagRepository.add() must be implemented by adapter")

    @abstractmethod
    async def save(self, tag: Tag) -> Tag:
        raise NotImplementedError("TagRepository.save() must be implemented by adapter")

    @abstractmethod
    async def mark_synced(self, tag_id: str, version: int) -> bool:
        raise NotImplementedError("TagRepository.mark_synced() must be implemented by adapter")

    @abstractmethod
    async def delete(self, tag_id: str) -> bool:
        raise NotImplementedError("TagRepository.delete() must be implemented by adapter")


class FriendRepository(ABC):
    """Abstract base class for local friend records."""

    @abstractmethod
    async def get_by_uid(self, owner_uid: str, friend_uid: str) -> Friend | None:
        raise NotImplementedError("FriendRepository.get_by_uid() must be implemented by adapter")

    @abstractmethod
    async def list_all(self, owner_uid: str) -> list[Friend]:
        raise NotImplementedError("FriendRepository.list_all() must be implemented by adapter")

    @abstractmethod
    async def upsert(self, friend: Friend) -> Friend:
        """Insert or update by (owner_uid, friend_uid), keeping the stored local id."""
        raise NotImplementedError("FriendRepository.upsert() must be implemented by adapter")

    @abstractmethod
    async def delete(self, owner_uid: str, friend_uid: str) -> bool:
        raise NotImplementedError("FriendRepository.delete() must be implemented by adapter")


class FriendRequestRepository(ABC):
    """Abstract base class for local friend request mirrors."""

    @abstractmethod
    async def get_by_remote_id(self, remote_id: str) -> FriendRequest | None:
        raise NotImplementedError(
            "FriendRequestRepository.get_by_remote_id() must be implemented by adapter"
        )

    @abstractmethod
    async def list_pending(self, to_uid: str) -> list[FriendRequest]:
        """List unresolved requests addressed to the user."""
        raise NotImplementedError(
            "FriendRequestRepository.list_pending() must be implemented by adapter"
        )

    @abstractmethod
    async def replace_pending(self, to_uid: str, requests: list[FriendRequest]) -> None:
        """Replace the unresolved requests addressed to the user."""
        raise NotImplementedError(
            "FriendRequestRepository.replace_pending() must be implemented by adapter"
        )

    @abstractmethod
    async def upsert(self, request: FriendRequest) -> FriendRequest:
        """Insert or update by remote id."""
        raise NotImplementedError("FriendRequestRepository.upsert() must be implemented by adapter")


class UserRepository(ABC):
    """Abstract base class for the local identity cache."""

    @abstractmethod
    async def get_by_remote_id(self, remote_id: str) -> User | None:
        raise NotImplementedError("UserRepository.get_by_remote_id() must be implemented by adapter")

    @abstractmethod
    async def upsert(self, user: User) -> User:
        """Insert or update by remote id."""
        raise NotImplementedError("UserRepository.upsert() must be implemented by adapter")
