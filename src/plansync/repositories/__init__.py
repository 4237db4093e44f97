"""Repository interfaces for plansync.

Abstract base classes defining the contracts for local persistence and for
the remote document service. These are the "Ports"; implementations live in:
- plansync.adapters.sqlite (local store)
- plansync.adapters.rest_api and plansync.adapters.memory (remote documents)
"""

from .documents import SERVER_TIMESTAMP, Document, DocumentService, WriteBatch
from .repository import (
    FriendRepository,
    FriendRequestRepository,
    TagRepository,
    TaskRepository,
    UserRepository,
)

__all__ = [
    "TaskRepository",
    "TagRepository",
    "FriendRepository",
    "FriendRequestRepository",
    "UserRepository",
    "DocumentService",
    "Document",
    "WriteBatch",
    "SERVER_TIMESTAMP",
]
