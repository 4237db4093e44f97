"""Task builder: turns user-picked options into a consistent Task."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from plansync.models import Task, TaskOption


class TaskFlags(BaseModel):
    """Flag set derived from TaskOption values."""

    is_important: bool = False
    is_urgent: bool = False
    is_auto_complete: bool = True
    is_auto_fail: bool = False
    auto_reminder: bool = False


def build_flags(options: Iterable[TaskOption]) -> TaskFlags:
    """Derive task flags from options.

    AUTO_FAIL wins over AUTO_COMPLETE; without AUTO_FAIL a task auto-completes.
    USUAL sets nothing.
    """
    options = set(options)
    auto_fail = TaskOption.AUTO_FAIL in options
    return TaskFlags(
        is_important=TaskOption.IMPORTANT in options,
        is_urgent=TaskOption.URGENT in options,
        is_auto_complete=not auto_fail,
        is_auto_fail=auto_fail,
        auto_reminder=TaskOption.REMINDER in options,
    )


def build_private_task(
    title: str,
    due_date: datetime,
    owner_id: str,
    *,
    description: Optional[str] = None,
    options: Iterable[TaskOption] = (),
    tag_id: Optional[str] = None,
    tag_remote_id: Optional[str] = None,
) -> Task:
    """Build an unsaved private task owned by owner_id.

    Raises:
        pydantic.ValidationError: If the title is empty
    """
    return Task(
        title=title.strip(),
        description=description,
        due_date=due_date,
        owner_id=owner_id,
        tag_id=tag_id,
        tag_remote_id=tag_remote_id,
        **build_flags(options).model_dump(),
    )


def build_shared_task(
    title: str,
    due_date: datetime,
    *,
    from_user_id: str,
    to_user_id: str,
    from_user_name: Optional[str] = None,
    to_user_name: Optional[str] = None,
    description: Optional[str] = None,
    options: Iterable[TaskOption] = (),
    remote_id: Optional[str] = None,
) -> Task:
    """Build an unsaved shared task from sender to receiver.

    Raises:
        pydantic.ValidationError: If the title is empty
    """
    return Task(
        title=title.strip(),
        description=description,
        due_date=due_date,
        remote_id=remote_id,
        is_shared=True,
        from_user_id=from_user_id,
        to_user_id=to_user_id,
        from_user_name=from_user_name,
        to_user_name=to_user_name,
        **build_flags(options).model_dump(),
    )
