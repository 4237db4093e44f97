"""Tests for the private sync engine.

Two PrivateSyncService instances over separate in-memory stores but the same
document service stand in for two devices of one user.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from plansync.adapters.sqlite import LocalStore
from plansync.exceptions import DocumentServiceError, DuplicateTagError, NotAuthenticatedError, SyncError
from plansync.models import Color, Tag, Task, TaskOption
from plansync.models.documents import encode_tag, encode_task, personal_tasks_path, tags_path
from plansync.services.identity import Session, StaticIdentityProvider
from plansync.services.sync_conflicts import SyncConflictTracker
from plansync.services.sync_service import PrivateSyncService

DUE = datetime(2026, 5, 2, 9, 0, tzinfo=UTC)


@pytest.fixture
def other_device(documents, identity, clock):
    """A second device signed in as the same user."""
    store = LocalStore.open()
    yield PrivateSyncService(store, documents, identity, clock=clock)
    store.close()


def _fail_writes_under(monkeypatch, documents, fragment: str) -> None:
    original = documents.set

    async def failing_set(path, data):
        if fragment in path:
            raise DocumentServiceError("remote unavailable")
        await original(path, data)

    monkeypatch.setattr(documents, "set", failing_set)


async def _get_task(service: PrivateSyncService, task_id: str) -> Task:
    async with service.store.transaction() as tx:
        return await tx.tasks.get(task_id)


# ---------------------------------------------------------------------------
# Creating
# ---------------------------------------------------------------------------


class TestCreate:
    @pytest.mark.asyncio
    async def test_private_task_is_uploaded(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE, options=[TaskOption.URGENT])

        assert task.is_synced is True
        assert task.remote_id is not None
        doc = documents.documents[f"{personal_tasks_path('alice')}/{task.remote_id}"]
        assert doc["title"] == "Report"
        assert doc["IsUrgent"] is True
        assert doc["owner_fID"] == "alice"

    @pytest.mark.asyncio
    async def test_offline_create_stays_dirty_and_keeps_remote_id(self, sync_service, documents):
        documents.offline = True
        task = await sync_service.create_private_task("Offline", DUE)

        assert task.is_synced is False
        assert task.remote_id is not None

        documents.offline = False
        result = await sync_service.quick_sync()
        assert result.tasks_uploaded == 1
        assert (await _get_task(sync_service, task.id)).is_synced is True
        assert f"{personal_tasks_path('alice')}/{task.remote_id}" in documents.documents

    @pytest.mark.asyncio
    async def test_empty_title_rejected_before_store(self, sync_service, store):
        with pytest.raises(ValueError):
            await sync_service.create_private_task("  ", DUE)
        async with store.transaction() as tx:
            assert await tx.tasks.list_private("alice") == []

    @pytest.mark.asyncio
    async def test_duplicate_tag_name(self, sync_service, documents):
        await sync_service.create_tag("work")
        with pytest.raises(DuplicateTagError):
            await sync_service.create_tag("work")
        assert len(documents.documents) == 1

    @pytest.mark.asyncio
    async def test_task_with_tag_carries_remote_tag_id(self, sync_service, documents):
        tag = await sync_service.create_tag("work")
        task = await sync_service.create_private_task("Report", DUE, tag=tag)
        assert documents.documents[f"{personal_tasks_path('alice')}/{task.remote_id}"]["tagID"] == tag.remote_id

    @pytest.mark.asyncio
    async def test_requires_session(self, store, documents):
        service = PrivateSyncService(store, documents, StaticIdentityProvider())
        with pytest.raises(NotAuthenticatedError):
            await service.create_private_task("Report", DUE)
        with pytest.raises(NotAuthenticatedError):
            await service.sync_all()


# ---------------------------------------------------------------------------
# Full pass
# ---------------------------------------------------------------------------


class TestSyncAll:
    @pytest.mark.asyncio
    async def test_second_pass_is_a_no_op(self, sync_service, documents):
        await sync_service.create_tag("work")
        await sync_service.create_private_task("Report", DUE)
        await sync_service.sync_all()
        snapshot = dict(documents.documents)

        result = await sync_service.sync_all()

        assert result.success is True
        assert result.uploaded == 0
        assert result.tasks_new == result.tasks_updated == 0
        assert result.tags_new == result.tags_updated == 0
        assert result.tasks_unchanged == 1
        assert result.tags_unchanged == 1
        assert documents.documents == snapshot

    @pytest.mark.asyncio
    async def test_records_last_sync(self, sync_service, store, clock):
        await sync_service.sync_all()
        async with store.transaction() as tx:
            user = await tx.users.get_by_remote_id("alice")
        assert user.last_sync == clock.now

    @pytest.mark.asyncio
    async def test_records_last_sync_for_intranet_address(self, store, documents, clock):
        session = Session(user_id="carol", email="carol@corp.local", display_name="Carol")
        service = PrivateSyncService(store, documents, StaticIdentityProvider(session), clock=clock)
        await service.create_private_task("Report", DUE)

        await service.sync_all()

        async with store.transaction() as tx:
            user = await tx.users.get_by_remote_id("carol")
        assert user.email == "carol@corp.local"
        assert user.last_sync == clock.now

    @pytest.mark.asyncio
    async def test_tag_reaches_other_device(self, sync_service, other_device):
        color = Color(r=0.2, g=0.4, b=0.6, a=1.0)
        tag = await sync_service.create_tag("work", color=color, icon="bag")

        result = await other_device.sync_all()

        assert result.tags_new == 1
        async with other_device.store.transaction() as tx:
            copy = await tx.tags.get_by_remote_id(tag.remote_id)
        assert copy.name == "work"
        assert copy.color == color
        assert copy.icon == "bag"
        assert copy.is_synced is True

    @pytest.mark.asyncio
    async def test_tasks_relinked_on_other_device(self, sync_service, other_device):
        tag = await sync_service.create_tag("work")
        task = await sync_service.create_private_task("Report", DUE, tag=tag)

        result = await other_device.sync_all()

        assert result.tasks_new == 1
        assert result.tasks_linked == 1
        async with other_device.store.transaction() as tx:
            copy = await tx.tasks.get_by_remote_id(task.remote_id)
            local_tag = await tx.tags.get_by_remote_id(tag.remote_id)
        assert copy.tag_id == local_tag.id

    @pytest.mark.asyncio
    async def test_remote_edit_is_pulled(self, sync_service, documents, other_device):
        task = await sync_service.create_private_task("Report", DUE)
        await other_device.sync_all()
        path = f"{personal_tasks_path('alice')}/{task.remote_id}"
        documents.documents[path]["title"] = "Edited elsewhere"

        result = await sync_service.sync_all()

        assert result.tasks_updated == 1
        assert (await _get_task(sync_service, task.id)).title == "Edited elsewhere"

    @pytest.mark.asyncio
    async def test_local_edit_wins(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE)
        path = f"{personal_tasks_path('alice')}/{task.remote_id}"
        documents.documents[path]["title"] = "Edited elsewhere"

        await sync_service.mark_task_for_sync(task.model_copy(update={"title": "Edited here"}))
        await sync_service.sync_all()

        assert documents.documents[path]["title"] == "Edited here"
        assert (await _get_task(sync_service, task.id)).title == "Edited here"

    @pytest.mark.asyncio
    async def test_dirty_task_survives_failed_upload(self, sync_service, documents, monkeypatch):
        task = await sync_service.create_private_task("Report", DUE)
        path = f"{personal_tasks_path('alice')}/{task.remote_id}"
        documents.documents[path]["title"] = "Edited elsewhere"
        await sync_service.mark_task_for_sync(task.model_copy(update={"title": "Edited here"}))
        _fail_writes_under(monkeypatch, documents, "/personal_tasks/")

        with pytest.raises(SyncError) as exc_info:
            await sync_service.sync_all()

        assert "task_upload" in exc_info.value.phase_errors
        assert exc_info.value.result.tasks_conflicts == 1
        stored = await _get_task(sync_service, task.id)
        assert stored.title == "Edited here"
        assert stored.is_synced is False

    @pytest.mark.asyncio
    async def test_conflicts_are_logged(self, store, documents, identity, clock, tmp_path, monkeypatch):
        tracker = SyncConflictTracker(tmp_path)
        service = PrivateSyncService(store, documents, identity, tracker, clock=clock)
        task = await service.create_private_task("Report", DUE)
        await service.mark_task_for_sync(task.model_copy(update={"title": "Edited here"}))
        _fail_writes_under(monkeypatch, documents, "/personal_tasks/")

        with pytest.raises(SyncError):
            await service.sync_all()

        assert tracker.conflicts_file.exists()
        assert tracker.count() == 0

    @pytest.mark.asyncio
    async def test_same_name_tag_from_other_device_is_a_conflict(self, sync_service, documents):
        documents.documents[f"{tags_path('alice')}/remote-work"] = encode_tag(
            Tag(owner_id="alice", name="work", color=Color(r=0, g=0, b=0))
        )
        local = await sync_service.create_tag("work")

        result = await sync_service.sync_all()

        assert result.tags_conflicts == 1
        async with sync_service.store.transaction() as tx:
            assert [t.id for t in await tx.tags.list_all("alice")] == [local.id]

    @pytest.mark.asyncio
    async def test_never_uploaded_tag_adopts_remote_id(self, sync_service, documents, store, monkeypatch):
        documents.documents[f"{tags_path('alice')}/remote-work"] = encode_tag(
            Tag(owner_id="alice", name="work", color=Color(r=0, g=0, b=0))
        )
        local = Tag(owner_id="alice", name="work")
        async with store.transaction() as tx:
            await tx.tags.add(local)
        monkeypatch.setattr(sync_service, "_upload_tags", AsyncMock())

        result = await sync_service.sync_all()

        assert result.tags_adopted == 1
        async with store.transaction() as tx:
            assert (await tx.tags.get(local.id)).remote_id == "remote-work"

    @pytest.mark.asyncio
    async def test_malformed_documents_are_skipped(self, sync_service, documents):
        documents.documents[f"{personal_tasks_path('alice')}/broken"] = {"title": "no date"}
        documents.documents[f"{tags_path('alice')}/broken"] = {"name": "no colour"}

        result = await sync_service.sync_all()

        assert result.tasks_skipped == 1
        assert result.tags_skipped == 1

    @pytest.mark.asyncio
    async def test_offline_pass_reports_every_phase(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE)
        documents.offline = True
        await sync_service.mark_task_for_sync(task.model_copy(update={"title": "Changed"}))

        with pytest.raises(SyncError) as exc_info:
            await sync_service.sync_all()

        assert set(exc_info.value.phase_errors) == {"tag_download", "task_upload", "task_download"}

    @pytest.mark.asyncio
    async def test_edit_during_upload_stays_dirty(self, sync_service, documents, store, monkeypatch):
        documents.offline = True
        task = await sync_service.create_private_task("Report", DUE)
        documents.offline = False
        original = documents.set

        async def edit_while_uploading(path, data):
            async with store.transaction() as tx:
                current = await tx.tasks.get(task.id)
                current.mark_dirty()
                await tx.tasks.save(current.model_copy(update={"title": "Edited mid-upload"}))
            await original(path, data)

        monkeypatch.setattr(documents, "set", edit_while_uploading)
        await sync_service.quick_sync()

        stored = await _get_task(sync_service, task.id)
        assert stored.title == "Edited mid-upload"
        assert stored.is_synced is False


# ---------------------------------------------------------------------------
# Quick sync
# ---------------------------------------------------------------------------


class TestQuickSync:
    @pytest.mark.asyncio
    async def test_skipped_when_signed_out(self, store, documents):
        service = PrivateSyncService(store, documents, StaticIdentityProvider())
        assert await service.quick_sync() is None

    @pytest.mark.asyncio
    async def test_skipped_while_sync_runs(self, sync_service):
        async with sync_service._sync_lock:
            assert sync_service.is_syncing
            assert await sync_service.quick_sync() is None

    @pytest.mark.asyncio
    async def test_never_raises(self, sync_service, documents):
        documents.offline = True
        await sync_service.create_private_task("Report", DUE)

        result = await sync_service.quick_sync()

        assert result.success is False
        assert result.tasks_upload_failed == 1

    @pytest.mark.asyncio
    async def test_sync_all_waits_for_running_pass(self, sync_service):
        await sync_service._sync_lock.acquire()
        pending = asyncio.create_task(sync_service.sync_all())
        await asyncio.sleep(0)
        assert not pending.done()

        sync_service._sync_lock.release()
        result = await pending
        assert result.success is True


# ---------------------------------------------------------------------------
# Completing and deleting
# ---------------------------------------------------------------------------


class TestEntityOperations:
    @pytest.mark.asyncio
    async def test_complete_marks_dirty(self, sync_service, clock):
        task = await sync_service.create_private_task("Report", DUE)
        done = await sync_service.complete_private_task(task)

        assert done.is_done is True
        assert done.date_of_completion == clock.now
        assert done.is_synced is False
        assert done.version == task.version + 1

    @pytest.mark.asyncio
    async def test_delete_removes_both_copies(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE)
        await sync_service.delete_private_task(task)

        assert documents.documents == {}
        assert await _get_task(sync_service, task.id) is None

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_local_row(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE)
        documents.offline = True

        with pytest.raises(SyncError):
            await sync_service.delete_private_task(task)
        assert await _get_task(sync_service, task.id) is not None

    @pytest.mark.asyncio
    async def test_delete_tag_unlinks_tasks(self, sync_service, documents):
        tag = await sync_service.create_tag("work")
        task = await sync_service.create_private_task("Report", DUE, tag=tag)

        await sync_service.delete_tag(tag)

        stored = await _get_task(sync_service, task.id)
        assert stored.tag_id is None
        assert stored.tag_remote_id is None
        assert stored.is_synced is False
        assert f"{tags_path('alice')}/{tag.remote_id}" not in documents.documents

    @pytest.mark.asyncio
    async def test_delete_tag_unlinks_tasks_waiting_for_relink(self, sync_service, store):
        tag = await sync_service.create_tag("work")
        waiting = Task(title="From web", due_date=DUE, owner_id="alice", tag_remote_id=tag.remote_id)
        async with store.transaction() as tx:
            await tx.tasks.add(waiting)

        await sync_service.delete_tag(tag)

        stored = await _get_task(sync_service, waiting.id)
        assert stored.tag_remote_id is None
        assert stored.is_synced is False

    @pytest.mark.asyncio
    async def test_remote_deletion_does_not_prune_private_tasks(self, sync_service, documents):
        task = await sync_service.create_private_task("Report", DUE)
        documents.documents.clear()

        await sync_service.sync_all()
        assert await _get_task(sync_service, task.id) is not None

    @pytest.mark.asyncio
    async def test_downloaded_task_matches_document(self, sync_service, documents):
        remote = Task(title="From web", due_date=DUE - timedelta(days=1), owner_id="alice")
        documents.documents[f"{personal_tasks_path('alice')}/web1"] = encode_task(remote)

        await sync_service.sync_all()

        async with sync_service.store.transaction() as tx:
            local = await tx.tasks.get_by_remote_id("web1")
        assert local.title == "From web"
        assert local.is_synced is True

    @pytest.mark.asyncio
    async def test_renamed_tag_is_uploaded(self, sync_service, documents):
        tag = await sync_service.create_tag("work")

        renamed = await sync_service.mark_tag_for_sync(tag.model_copy(update={"name": "office"}))
        assert renamed.is_synced is False
        assert renamed.version == tag.version + 1

        await sync_service.quick_sync()
        assert documents.documents[f"{tags_path('alice')}/{tag.remote_id}"]["name"] == "office"

    @pytest.mark.asyncio
    async def test_rename_onto_taken_name(self, sync_service):
        await sync_service.create_tag("work")
        home = await sync_service.create_tag("home")

        with pytest.raises(DuplicateTagError):
            await sync_service.mark_tag_for_sync(home.model_copy(update={"name": "work"}))
