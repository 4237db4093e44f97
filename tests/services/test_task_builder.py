"""Tests for the task builder."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from plansync.models import TaskOption
from plansync.services.task_builder import build_flags, build_private_task, build_shared_task

DUE = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


@pytest.mark.parametrize(
    "options, expected",
    [
        ([], {"is_auto_complete": True, "is_auto_fail": False}),
        ([TaskOption.USUAL], {"is_auto_complete": True, "is_auto_fail": False}),
        ([TaskOption.AUTO_FAIL], {"is_auto_complete": False, "is_auto_fail": True}),
        (
            [TaskOption.AUTO_COMPLETE, TaskOption.AUTO_FAIL],
            {"is_auto_complete": False, "is_auto_fail": True},
        ),
        ([TaskOption.IMPORTANT, TaskOption.URGENT], {"is_important": True, "is_urgent": True}),
        ([TaskOption.REMINDER], {"auto_reminder": True}),
    ],
)
def test_build_flags(options, expected):
    flags = build_flags(options).model_dump()
    for key, value in expected.items():
        assert flags[key] is value
    assert not (flags["is_auto_complete"] and flags["is_auto_fail"])


def test_private_task():
    task = build_private_task(
        "  Write report  ",
        DUE,
        "alice",
        description="Q2",
        options=[TaskOption.IMPORTANT],
        tag_id="local-tag",
        tag_remote_id="t1",
    )
    assert task.title == "Write report"
    assert task.owner_id == "alice"
    assert task.is_shared is False
    assert task.is_important is True
    assert task.tag_remote_id == "t1"
    assert task.is_synced is False


def test_private_task_empty_title():
    with pytest.raises(ValidationError):
        build_private_task("   ", DUE, "alice")


def test_shared_task():
    task = build_shared_task(
        "Buy milk",
        DUE,
        from_user_id="alice",
        to_user_id="bob",
        from_user_name="Alice",
        to_user_name="Bob",
        options=[TaskOption.AUTO_FAIL],
        remote_id="s1",
    )
    assert task.is_shared is True
    assert task.owner_id is None
    assert task.role_of("bob") == "receiver"
    assert task.is_auto_fail is True
    assert task.remote_id == "s1"
