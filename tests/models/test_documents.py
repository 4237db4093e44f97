"""Tests for remote document encoding and decoding."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from plansync.exceptions import DocumentDecodeError
from plansync.models import Color, FriendRequest, Tag, Task, TaskDirection
from plansync.models.documents import (
    SCHEMA_VERSION,
    decode_friend,
    decode_friend_request,
    decode_private_task,
    decode_shared_task,
    decode_tag,
    decode_user,
    encode_friend,
    encode_friend_request,
    encode_tag,
    encode_task,
    encode_task_content,
    encode_task_status,
    parse_timestamp,
    personal_tasks_path,
    shared_tasks_path,
    tags_path,
)
from plansync.repositories import SERVER_TIMESTAMP

DUE = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Paths and timestamps
# ---------------------------------------------------------------------------


def test_paths():
    assert personal_tasks_path("u1") == "users/u1/personal_tasks"
    assert tags_path("u1") == "users/u1/tags"
    assert shared_tasks_path("u1", TaskDirection.INCOMING) == "users/u1/incoming_tasks"
    assert shared_tasks_path("u1", TaskDirection.OUTGOING) == "users/u1/outgoing_tasks"


def test_parse_timestamp_accepts_iso_with_z():
    assert parse_timestamp("2026-05-01T12:00:00Z") == DUE


def test_parse_timestamp_naive_is_utc():
    assert parse_timestamp(datetime(2026, 5, 1, 12, 0)) == DUE


def test_parse_timestamp_rejects_garbage():
    with pytest.raises(DocumentDecodeError):
        parse_timestamp("yesterday")
    with pytest.raises(DocumentDecodeError):
        parse_timestamp(42)


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


class TestTaskCodec:
    def test_private_task_document(self):
        task = Task(
            title="Report",
            description="Q2 numbers",
            due_date=DUE,
            owner_id="alice",
            tag_remote_id="tag-1",
            is_important=True,
        )
        doc = encode_task(task)
        assert doc["schemaVersion"] == SCHEMA_VERSION
        assert doc["title"] == "Report"
        assert doc["desc"] == "Q2 numbers"
        assert doc["date"] == DUE
        assert doc["owner_fID"] == "alice"
        assert doc["tagID"] == "tag-1"
        assert doc["IsImportant"] is True
        assert doc["IsShared"] is False
        assert doc["lastModified"] is SERVER_TIMESTAMP
        assert "from_user_fID" not in doc

    def test_shared_task_document(self):
        task = Task(
            title="Milk",
            due_date=DUE,
            is_shared=True,
            from_user_id="alice",
            to_user_id="bob",
            from_user_name="Alice",
        )
        doc = encode_task(task)
        assert doc["from_user_fID"] == "alice"
        assert doc["to_user_fID"] == "bob"
        assert doc["FromUserName"] == "Alice"
        assert doc["ToUserName"] == ""
        assert "owner_fID" not in doc

    def test_decode_private_task(self):
        task = Task(title="Report", due_date=DUE, owner_id="alice", is_done=True)
        decoded = decode_private_task("r1", encode_task(task), "alice")
        assert decoded.remote_id == "r1"
        assert decoded.title == "Report"
        assert decoded.due_date == DUE
        assert decoded.is_done is True
        assert decoded.is_synced is True
        assert decoded.is_shared is False

    def test_decode_private_task_falls_back_to_owner(self):
        decoded = decode_private_task("r1", {"title": "x", "date": "2026-05-01T12:00:00Z"}, "alice")
        assert decoded.owner_id == "alice"
        assert decoded.is_auto_complete is True

    def test_decode_missing_title(self):
        with pytest.raises(DocumentDecodeError):
            decode_private_task("r1", {"date": DUE}, "alice")

    def test_decode_empty_title(self):
        with pytest.raises(DocumentDecodeError):
            decode_private_task("r1", {"title": "", "date": DUE}, "alice")

    def test_auto_fail_wins_over_auto_complete(self):
        data = {"title": "x", "date": DUE, "IsAutoComplete": True, "IsAutoFail": True}
        decoded = decode_private_task("r1", data, "alice")
        assert decoded.is_auto_fail is True
        assert decoded.is_auto_complete is False

    def test_decode_shared_task(self):
        data = {
            "title": "Milk",
            "date": DUE,
            "from_user_fID": "alice",
            "to_user_fID": "bob",
            "FromUserName": "Alice",
            "ToUserName": "",
        }
        decoded = decode_shared_task("s1", data)
        assert decoded.is_shared is True
        assert decoded.from_user_name == "Alice"
        assert decoded.to_user_name is None
        assert decoded.owner_id is None

    def test_decode_shared_task_needs_parties(self):
        with pytest.raises(DocumentDecodeError):
            decode_shared_task("s1", {"title": "Milk", "date": DUE, "from_user_fID": "alice"})

    def test_status_and_content_fields(self):
        task = Task(title="Milk", due_date=DUE, owner_id="alice", is_done=True, date_of_completion=DUE)
        assert set(encode_task_status(task)) == {"IsDone", "DateOfCompletion", "lastModified"}
        assert set(encode_task_content(task)) == {"title", "desc", "date", "lastModified"}


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def test_tag_document_roundtrip():
    tag = Tag(owner_id="alice", name="work", color=Color(r=0.1, g=0.2, b=0.3, a=0.5), icon="briefcase")
    decoded = decode_tag("t1", encode_tag(tag), "alice")
    assert decoded.name == "work"
    assert decoded.color == tag.color
    assert decoded.icon == "briefcase"
    assert decoded.remote_id == "t1"
    assert decoded.is_synced is True


def test_tag_missing_channels_default():
    decoded = decode_tag("t1", {"name": "home", "col": {"r": 1}}, "alice")
    assert decoded.color == Color(r=1, g=0, b=0, a=1)
    assert decoded.icon is None


def test_tag_invalid_colour():
    with pytest.raises(DocumentDecodeError):
        decode_tag("t1", {"name": "home", "col": "red"}, "alice")
    with pytest.raises(DocumentDecodeError):
        decode_tag("t1", {"name": "home", "col": {"r": 7}}, "alice")


def test_tag_missing_name():
    with pytest.raises(DocumentDecodeError):
        decode_tag("t1", {"col": {}}, "alice")


# ---------------------------------------------------------------------------
# Friend graph
# ---------------------------------------------------------------------------


def test_friend_request_roundtrip():
    request = FriendRequest(
        from_uid="alice",
        to_uid="bob",
        from_email="alice@example.com",
        to_email="bob@example.com",
        from_name="Alice",
        send_date=DUE,
    )
    decoded = decode_friend_request("q1", encode_friend_request(request))
    assert decoded.remote_id == "q1"
    assert decoded.from_uid == "alice"
    assert decoded.to_name is None
    assert decoded.send_date == DUE
    assert decoded.resolved is False


def test_friend_request_missing_fields():
    with pytest.raises(DocumentDecodeError):
        decode_friend_request("q1", {"from_uid": "alice"})


def test_friend_entry():
    doc = encode_friend("bob", "bob@example.com")
    assert doc["status"] == "active"
    assert doc["added_date"] is SERVER_TIMESTAMP
    assert decode_friend("bob", doc) == ("bob", "bob@example.com")


def test_friend_entry_uses_document_id():
    assert decode_friend("bob", {"email": "bob@example.com"}) == ("bob", "bob@example.com")
    with pytest.raises(DocumentDecodeError):
        decode_friend("bob", {})


def test_decode_user_name_falls_back_to_email():
    user = decode_user("bob", {"email": "bob@example.com"})
    assert user.uid == "bob"
    assert user.name == "bob@example.com"
