"""Unit tests for the core domain models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from plansync.models import Color, Friend, FriendRequest, Tag, Task, TaskDirection, User

DUE = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _private(**kwargs) -> Task:
    defaults = {"title": "Write report", "due_date": DUE, "owner_id": "alice"}
    defaults.update(kwargs)
    return Task(**defaults)


def _shared(**kwargs) -> Task:
    defaults = {
        "title": "Buy milk",
        "due_date": DUE,
        "is_shared": True,
        "from_user_id": "alice",
        "to_user_id": "bob",
    }
    defaults.update(kwargs)
    return Task(**defaults)


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------


class TestTask:
    def test_defaults(self):
        task = _private()
        assert task.is_auto_complete is True
        assert task.is_auto_fail is False
        assert task.is_done is False
        assert task.is_synced is False
        assert task.version == 1
        assert task.remote_id is None

    def test_empty_title_rejected(self):
        with pytest.raises(ValidationError):
            _private(title="")

    def test_whitespace_title_rejected(self):
        with pytest.raises(ValidationError):
            _private(title="   ")

    def test_both_auto_flags_rejected(self):
        with pytest.raises(ValidationError, match="auto-complete and auto-fail"):
            _private(is_auto_complete=True, is_auto_fail=True)

    def test_assignment_is_validated(self):
        task = _private()
        with pytest.raises(ValidationError):
            task.is_auto_fail = True

    def test_set_auto_fail_clears_auto_complete(self):
        task = _private()
        task.set_auto_fail(True)
        assert task.is_auto_fail is True
        assert task.is_auto_complete is False

    def test_set_auto_complete_clears_auto_fail(self):
        task = _private(is_auto_complete=False, is_auto_fail=True)
        task.set_auto_complete(True)
        assert task.is_auto_complete is True
        assert task.is_auto_fail is False

    def test_disabling_leaves_other_flag_alone(self):
        task = _private()
        task.set_auto_complete(False)
        assert task.is_auto_complete is False
        assert task.is_auto_fail is False

    def test_private_task_needs_owner(self):
        with pytest.raises(ValidationError):
            Task(title="x", due_date=DUE)

    def test_private_task_rejects_sender(self):
        with pytest.raises(ValidationError):
            _private(from_user_id="alice")

    def test_shared_task_needs_both_parties(self):
        with pytest.raises(ValidationError):
            _shared(to_user_id=None)

    def test_shared_task_rejects_owner(self):
        with pytest.raises(ValidationError):
            _shared(owner_id="alice")

    def test_naive_datetime_treated_as_utc(self):
        task = _private(due_date=datetime(2026, 5, 1, 12, 0))
        assert task.due_date == DUE
        assert task.due_date.tzinfo is not None

    def test_mark_dirty(self):
        task = _private(is_synced=True)
        before = task.updated_at
        task.mark_dirty()
        assert task.version == 2
        assert task.is_synced is False
        assert task.updated_at >= before

    def test_is_failed_at(self):
        task = _private(is_auto_complete=False, is_auto_fail=True)
        assert task.is_failed_at(DUE + timedelta(minutes=1)) is True
        assert task.is_failed_at(DUE - timedelta(minutes=1)) is False

    def test_done_task_is_not_failed(self):
        task = _private(is_auto_complete=False, is_auto_fail=True, is_done=True)
        assert task.is_failed_at(DUE + timedelta(days=1)) is False

    def test_role_of(self):
        task = _shared()
        assert task.role_of("alice") == "sender"
        assert task.role_of("bob") == "receiver"
        assert task.role_of("carol") is None

    def test_role_of_private_task(self):
        assert _private().role_of("alice") is None


# ---------------------------------------------------------------------------
# Tag, Color
# ---------------------------------------------------------------------------


def test_color_channels_bounded():
    with pytest.raises(ValidationError):
        Color(r=1.5, g=0, b=0)


def test_random_color_is_opaque():
    color = Color.random()
    assert color.a == 1.0
    assert 0 <= color.r <= 1


def test_tag_mark_dirty():
    tag = Tag(owner_id="alice", name="work", is_synced=True)
    tag.mark_dirty()
    assert tag.version == 2
    assert tag.is_synced is False


def test_tag_requires_name():
    with pytest.raises(ValidationError):
        Tag(owner_id="alice", name="")


# ---------------------------------------------------------------------------
# Friend graph, users
# ---------------------------------------------------------------------------


def test_friend_request_is_pending_until_resolved():
    request = FriendRequest(
        from_uid="alice", to_uid="bob", from_email="alice@example.com", to_email="bob@example.com"
    )
    assert request.is_pending
    resolved = request.model_copy(update={"resolved": True})
    assert not resolved.is_pending


def test_user_email_validated():
    with pytest.raises(ValidationError):
        User(remote_id="alice", email="not-an-email")


def test_user_accepts_any_login_address():
    assert User(remote_id="carol", email="carol@corp.local").email == "carol@corp.local"


def test_friend_participant_ids_match_user_ids():
    friend = Friend(
        owner_uid="alice", friend_name="Bob", friend_uid="bob", friend_email="bob@example.com"
    )
    alice = User(remote_id="alice", email="alice@example.com")
    assert friend.user_id == alice.id
    assert friend.friend_id == User(remote_id="bob", email="bob@example.com").id
    assert friend.user_id != friend.friend_id
    assert User(id="kept", remote_id="alice", email="alice@example.com").id == "kept"


def test_direction_collection():
    assert TaskDirection.INCOMING.collection == "incoming_tasks"
    assert TaskDirection.OUTGOING.collection == "outgoing_tasks"
