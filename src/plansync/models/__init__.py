"""plansync domain models.

Pydantic models for the entities the planner keeps locally and reconciles
with the remote document service. Document encoding lives in
plansync.models.documents.
"""

from .core import (
    Color,
    Friend,
    FriendRequest,
    Tag,
    Task,
    TaskDirection,
    TaskOption,
    TaskStatus,
    User,
    UserLookup,
)

__all__ = [
    "Color",
    "Friend",
    "FriendRequest",
    "Tag",
    "Task",
    "TaskDirection",
    "TaskOption",
    "TaskStatus",
    "User",
    "UserLookup",
]
