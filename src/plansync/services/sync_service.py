"""Private sync engine: reconciles the user's own tasks and tags.

A full pass runs tag upload, tag download, task upload, task download and a
tag-link pass, in that order. Locally edited entities are "dirty"
(is_synced=False) and win over remote versions until they are uploaded.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Optional

from plansync.adapters.sqlite import LocalStore
from plansync.exceptions import (
    DocumentDecodeError,
    DocumentServiceError,
    DuplicateTagError,
    PlanSyncError,
    RemoteServiceError,
    SyncError,
)
from plansync.models import Color, Tag, Task, TaskOption, User
from plansync.models.documents import (
    decode_private_task,
    decode_tag,
    encode_tag,
    encode_task,
    personal_tasks_path,
    tags_path,
)
from plansync.repositories import DocumentService
from plansync.services.identity import IdentityProvider, Session
from plansync.services.sync_conflicts import SyncConflict, SyncConflictTracker
from plansync.services.task_builder import build_private_task
from plansync.utils.logger import get_logger

logger = get_logger("sync")

# Fields a personal_tasks document carries; local-only bookkeeping is excluded
_TASK_REMOTE_FIELDS = (
    "title",
    "description",
    "due_date",
    "tag_remote_id",
    "auto_reminder",
    "is_important",
    "is_urgent",
    "is_auto_complete",
    "is_auto_fail",
    "is_done",
    "date_of_completion",
    "date_of_last_reminder",
)
_TAG_REMOTE_FIELDS = ("name", "color", "icon")

PHASE_TAG_UPLOAD = "tag_upload"
PHASE_TAG_DOWNLOAD = "tag_download"
PHASE_TASK_UPLOAD = "task_upload"
PHASE_TASK_DOWNLOAD = "task_download"
PHASE_LINK = "link"


class SyncResult:
    """Counters of one sync pass."""

    def __init__(self):
        self.tags_uploaded = 0
        self.tags_upload_failed = 0
        self.tags_fetched = 0
        self.tags_new = 0
        self.tags_updated = 0
        self.tags_adopted = 0
        self.tags_unchanged = 0
        self.tags_conflicts = 0
        self.tags_skipped = 0

        self.tasks_uploaded = 0
        self.tasks_upload_failed = 0
        self.tasks_fetched = 0
        self.tasks_new = 0
        self.tasks_updated = 0
        self.tasks_unchanged = 0
        self.tasks_conflicts = 0
        self.tasks_skipped = 0
        self.tasks_linked = 0

        self.phase_errors: dict[str, Exception] = {}
        self.success = False
        self.duration: float = 0.0

    @property
    def uploaded(self) -> int:
        return self.tags_uploaded + self.tasks_uploaded

    @property
    def conflicts(self) -> int:
        return self.tags_conflicts + self.tasks_conflicts


def _differs(local: Any, remote: Any, fields: Iterable[str]) -> bool:
    return any(getattr(local, f) != getattr(remote, f) for f in fields)


class PrivateSyncService:
    """Sync engine for private tasks and tags.

    Args:
        store: Local store
        documents: Remote document service
        identity: Source of the signed-in session
        conflict_tracker: Where dropped remote versions are recorded
        clock: Returns the current time (UTC)
    """

    def __init__(
        self,
        store: LocalStore,
        documents: DocumentService,
        identity: IdentityProvider,
        conflict_tracker: Optional[SyncConflictTracker] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.documents = documents
        self.identity = identity
        self.conflict_tracker = conflict_tracker or SyncConflictTracker()
        self.clock = clock or (lambda: datetime.now(UTC))
        self._sync_lock = asyncio.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._sync_lock.locked()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def sync_all(self) -> SyncResult:
        """Run a full pass; waits for a pass already in flight.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            SyncError: If any phase failed (the partial result is attached)
        """
        session = self.identity.require_session()
        async with self._sync_lock:
            return await self._full_pass(session)

    async def quick_sync(self) -> SyncResult | None:
        """Upload dirty tags and tasks without pulling.

        Never raises: failures are logged. Returns None when skipped because
        nobody is signed in or a pass is already running.
        """
        session = self.identity.current_session()
        if session is None:
            logger.debug("Quick sync skipped: not signed in")
            return None
        if self._sync_lock.locked():
            logger.debug("Quick sync skipped: sync already in progress")
            return None

        async with self._sync_lock:
            result = SyncResult()
            start_time = time.monotonic()
            for phase, run in (
                (PHASE_TAG_UPLOAD, self._upload_tags),
                (PHASE_TASK_UPLOAD, self._upload_tasks),
            ):
                try:
                    await run(session, result)
                except Exception as e:
                    result.phase_errors[phase] = e
                    logger.exception("Quick sync phase %s failed", phase)
            result.success = not result.phase_errors
            result.duration = time.monotonic() - start_time
            logger.info(
                "Quick sync finished: %d uploaded, %d failed",
                result.uploaded,
                result.tags_upload_failed + result.tasks_upload_failed,
            )
            return result

    async def _full_pass(self, session: Session) -> SyncResult:
        result = SyncResult()
        start_time = time.monotonic()
        logger.info("Sync started for %s", session.user_id)

        phases = (
            (PHASE_TAG_UPLOAD, self._upload_tags),
            (PHASE_TAG_DOWNLOAD, self._download_tags),
            (PHASE_TASK_UPLOAD, self._upload_tasks),
            (PHASE_TASK_DOWNLOAD, self._download_tasks),
            (PHASE_LINK, self._link_tasks),
        )
        for phase, run in phases:
            try:
                await run(session, result)
            except PlanSyncError as e:
                result.phase_errors[phase] = e
                logger.error("Sync phase %s failed: %s", phase, e)

        self.conflict_tracker.save()
        self.conflict_tracker.clear()
        result.duration = time.monotonic() - start_time

        if result.phase_errors:
            raise SyncError(
                f"Sync failed in {', '.join(result.phase_errors)}",
                phase_errors=result.phase_errors,
                result=result,
                phase=next(iter(result.phase_errors)),
            )

        async with self.store.transaction() as tx:
            await tx.users.upsert(
                User(
                    remote_id=session.user_id,
                    display_name=session.display_name or None,
                    email=session.email,
                    last_sync=self.clock(),
                )
            )

        result.success = True
        logger.info(
            "Sync finished in %.2fs: %d uploaded, %d new, %d updated, %d conflicts",
            result.duration,
            result.uploaded,
            result.tags_new + result.tasks_new,
            result.tags_updated + result.tasks_updated,
            result.conflicts,
        )
        return result

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    async def _upload_tags(self, session: Session, result: SyncResult) -> None:
        async with self.store.transaction() as tx:
            dirty = await tx.tags.list_unsynced(session.user_id)

        last_error: Exception | None = None
        for tag in dirty:
            try:
                await self._upload_tag(session, tag)
                result.tags_uploaded += 1
            except DocumentServiceError as e:
                result.tags_upload_failed += 1
                last_error = e
                logger.warning("Upload of tag %s failed: %s", tag.id, e)

        if last_error is not None:
            raise RemoteServiceError(
                f"{result.tags_upload_failed} tag(s) failed to upload",
                entity="tag",
                phase=PHASE_TAG_UPLOAD,
            ) from last_error

    async def _upload_tag(self, session: Session, tag: Tag) -> None:
        if tag.remote_id is None:
            async with self.store.transaction() as tx:
                current = await tx.tags.get(tag.id)
                if current is None:
                    return
                if current.remote_id is None:
                    current.remote_id = self.documents.new_id()
                    await tx.tags.save(current)
                tag = current

        await self.documents.set(f"{tags_path(session.user_id)}/{tag.remote_id}", encode_tag(tag))

        async with self.store.transaction() as tx:
            if not await tx.tags.mark_synced(tag.id, tag.version):
                logger.info("Tag %s changed during upload, keeping it dirty", tag.id)
        logger.debug("Uploaded tag %s as %s", tag.id, tag.remote_id)

    async def _upload_tasks(self, session: Session, result: SyncResult) -> None:
        async with self.store.transaction() as tx:
            dirty = await tx.tasks.list_unsynced(session.user_id)

        last_error: Exception | None = None
        for task in dirty:
            try:
                await self._upload_task(session, task)
                result.tasks_uploaded += 1
            except DocumentServiceError as e:
                result.tasks_upload_failed += 1
                last_error = e
                logger.warning("Upload of task %s failed: %s", task.id, e)

        if last_error is not None:
            raise RemoteServiceError(
                f"{result.tasks_upload_failed} task(s) failed to upload",
                entity="task",
                phase=PHASE_TASK_UPLOAD,
            ) from last_error

    async def _upload_task(self, session: Session, task: Task) -> None:
        async with self.store.transaction() as tx:
            current = await tx.tasks.get(task.id)
            if current is None:
                return
            changed = False
            if current.tag_id and not current.tag_remote_id:
                tag = await tx.tags.get(current.tag_id)
                if tag is not None and tag.remote_id:
                    current.tag_remote_id = tag.remote_id
                    changed = True
            if current.remote_id is None:
                # persisted before the write so a retry reuses the same document
                current.remote_id = self.documents.new_id()
                changed = True
            if changed:
                await tx.tasks.save(current)
            task = current

        await self.documents.set(
            f"{personal_tasks_path(session.user_id)}/{task.remote_id}", encode_task(task)
        )

        async with self.store.transaction() as tx:
            if not await tx.tasks.mark_synced(task.id, task.version):
                logger.info("Task %s changed during upload, keeping it dirty", task.id)
        logger.debug("Uploaded task %s as %s", task.id, task.remote_id)

    # ------------------------------------------------------------------
    # Download
    # ------------------------------------------------------------------

    async def _download_tags(self, session: Session, result: SyncResult) -> None:
        docs = await self._list(tags_path(session.user_id), "tag", PHASE_TAG_DOWNLOAD)
        result.tags_fetched = len(docs)

        async with self.store.transaction() as tx:
            for doc in docs:
                try:
                    remote = decode_tag(doc.id, doc.data, session.user_id)
                except DocumentDecodeError as e:
                    result.tags_skipped += 1
                    logger.warning("Skipping tag document %s: %s", doc.id, e)
                    continue

                local = await tx.tags.get_by_remote_id(doc.id)
                if local is None:
                    await self._insert_remote_tag(tx, session, remote, doc.data, result)
                elif not local.is_synced:
                    self._record_conflict("tag", local, doc.data)
                    result.tags_conflicts += 1
                elif _differs(local, remote, _TAG_REMOTE_FIELDS):
                    updated = local.model_copy(
                        update={f: getattr(remote, f) for f in _TAG_REMOTE_FIELDS}
                    )
                    try:
                        await tx.tags.save(updated)
                    except DuplicateTagError:
                        self._record_conflict("tag", local, doc.data)
                        result.tags_conflicts += 1
                        continue
                    result.tags_updated += 1
                else:
                    result.tags_unchanged += 1

    async def _insert_remote_tag(
        self,
        tx: LocalStore,
        session: Session,
        remote: Tag,
        data: dict[str, Any],
        result: SyncResult,
    ) -> None:
        same_name = await tx.tags.get_by_name(session.user_id, remote.name)
        if same_name is None:
            await tx.tags.add(remote)
            result.tags_new += 1
            logger.debug("Downloaded new tag %s", remote.remote_id)
        elif same_name.remote_id is None:
            same_name.remote_id = remote.remote_id
            await tx.tags.save(same_name)
            result.tags_adopted += 1
            logger.info("Local tag %r adopted remote id %s", remote.name, remote.remote_id)
        else:
            self._record_conflict("tag", same_name, data)
            result.tags_conflicts += 1

    async def _download_tasks(self, session: Session, result: SyncResult) -> None:
        docs = await self._list(personal_tasks_path(session.user_id), "task", PHASE_TASK_DOWNLOAD)
        result.tasks_fetched = len(docs)

        async with self.store.transaction() as tx:
            for doc in docs:
                try:
                    remote = decode_private_task(doc.id, doc.data, session.user_id)
                except DocumentDecodeError as e:
                    result.tasks_skipped += 1
                    logger.warning("Skipping task document %s: %s", doc.id, e)
                    continue

                local = await tx.tasks.get_by_remote_id(doc.id)
                if local is None:
                    await tx.tasks.add(remote)
                    result.tasks_new += 1
                    logger.debug("Downloaded new task %s", doc.id)
                elif not local.is_synced:
                    self._record_conflict("task", local, doc.data)
                    result.tasks_conflicts += 1
                elif _differs(local, remote, _TASK_REMOTE_FIELDS):
                    update = {f: getattr(remote, f) for f in _TASK_REMOTE_FIELDS}
                    if remote.tag_remote_id != local.tag_remote_id:
                        # relinked by the link pass
                        update["tag_id"] = None
                    await tx.tasks.save(local.model_copy(update=update))
                    result.tasks_updated += 1
                else:
                    result.tasks_unchanged += 1

    async def _link_tasks(self, session: Session, result: SyncResult) -> None:
        async with self.store.transaction() as tx:
            for task in await tx.tasks.list_unlinked(session.user_id):
                tag = await tx.tags.get_by_remote_id(task.tag_remote_id)
                if tag is None:
                    continue
                await tx.tasks.save(task.model_copy(update={"tag_id": tag.id}))
                result.tasks_linked += 1

    async def _list(self, collection: str, entity: str, phase: str) -> list:
        try:
            return await self.documents.list(collection)
        except DocumentServiceError as e:
            raise RemoteServiceError(
                f"Could not fetch {entity}s: {e}", entity=entity, phase=phase
            ) from e

    def _record_conflict(self, resource_type: str, local: Task | Tag, remote_data: dict) -> None:
        self.conflict_tracker.add_conflict(
            SyncConflict(
                resource_type=resource_type,
                resource_id=local.remote_id or local.id,
                local_data=local.model_dump(mode="json"),
                remote_data=remote_data,
            )
        )

    # ------------------------------------------------------------------
    # Individual operations
    # ------------------------------------------------------------------

    async def create_private_task(
        self,
        title: str,
        due_date: datetime,
        *,
        description: Optional[str] = None,
        options: Iterable[TaskOption] = (),
        tag: Optional[Tag] = None,
    ) -> Task:
        """Create a private task locally, then upload it on a best-effort basis.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            pydantic.ValidationError: If the title is empty
        """
        session = self.identity.require_session()
        task = build_private_task(
            title,
            due_date,
            session.user_id,
            description=description,
            options=options,
            tag_id=tag.id if tag else None,
            tag_remote_id=tag.remote_id if tag else None,
        )
        async with self.store.transaction() as tx:
            await tx.tasks.add(task)
        logger.info("Created task %s", task.id)

        try:
            await self._upload_task(session, task)
        except DocumentServiceError as e:
            logger.warning("Task %s stays dirty, upload failed: %s", task.id, e)

        async with self.store.transaction() as tx:
            return await tx.tasks.get(task.id)

    async def create_tag(
        self,
        name: str,
        color: Optional[Color] = None,
        icon: Optional[str] = None,
    ) -> Tag:
        """Create a tag locally, then upload it on a best-effort basis.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            DuplicateTagError: If the user already has a tag with this name
        """
        session = self.identity.require_session()
        tag = Tag(owner_id=session.user_id, name=name.strip(), color=color or Color.random(), icon=icon)
        async with self.store.transaction() as tx:
            if await tx.tags.get_by_name(session.user_id, tag.name) is not None:
                raise DuplicateTagError(f"Tag '{tag.name}' already exists")
            await tx.tags.add(tag)
        logger.info("Created tag %s (%s)", tag.id, tag.name)

        try:
            await self._upload_tag(session, tag)
        except DocumentServiceError as e:
            logger.warning("Tag %s stays dirty, upload failed: %s", tag.id, e)

        async with self.store.transaction() as tx:
            return await tx.tags.get(tag.id)

    async def mark_task_for_sync(self, task: Task) -> Task:
        """Persist a locally edited private task and flag it for upload."""
        self.identity.require_session()
        async with self.store.transaction() as tx:
            current = await tx.tasks.get(task.id)
            if current is None:
                raise ValueError(f"Task not found: {task.id}")
            updated = task.model_copy(
                update={"version": current.version, "remote_id": current.remote_id}
            )
            updated.mark_dirty()
            await tx.tasks.save(updated)
        logger.debug("Task %s marked for sync (version %d)", updated.id, updated.version)
        return updated

    async def mark_tag_for_sync(self, tag: Tag) -> Tag:
        """Persist a locally edited tag and flag it for upload.

        Raises:
            DuplicateTagError: If the new name is taken
        """
        self.identity.require_session()
        async with self.store.transaction() as tx:
            current = await tx.tags.get(tag.id)
            if current is None:
                raise ValueError(f"Tag not found: {tag.id}")
            updated = tag.model_copy(
                update={"version": current.version, "remote_id": current.remote_id}
            )
            updated.mark_dirty()
            await tx.tags.save(updated)
        logger.debug("Tag %s marked for sync (version %d)", updated.id, updated.version)
        return updated

    async def complete_private_task(self, task: Task, at: Optional[datetime] = None) -> Task:
        """Mark a private task done and flag it for upload."""
        done = task.model_copy(update={"is_done": True, "date_of_completion": at or self.clock()})
        return await self.mark_task_for_sync(done)

    async def delete_private_task(self, task: Task) -> None:
        """Delete the remote document, then the local row.

        Raises:
            SyncError: If the remote delete failed (the local row is kept)
        """
        session = self.identity.require_session()
        if task.remote_id:
            try:
                await self.documents.delete(
                    f"{personal_tasks_path(session.user_id)}/{task.remote_id}"
                )
            except DocumentServiceError as e:
                raise SyncError(
                    f"Could not delete task {task.id}: {e}", entity="task", phase="delete"
                ) from e
        async with self.store.transaction() as tx:
            await tx.tasks.delete(task.id)
        logger.info("Deleted task %s", task.id)

    async def delete_tag(self, tag: Tag) -> None:
        """Delete a tag remotely and locally, unlinking its tasks.

        Raises:
            SyncError: If the remote delete failed (nothing changes locally)
        """
        session = self.identity.require_session()
        if tag.remote_id:
            try:
                await self.documents.delete(f"{tags_path(session.user_id)}/{tag.remote_id}")
            except DocumentServiceError as e:
                raise SyncError(
                    f"Could not delete tag {tag.id}: {e}", entity="tag", phase="delete"
                ) from e
        async with self.store.transaction() as tx:
            for task in await tx.tasks.list_by_tag(tag.id, tag.remote_id):
                unlinked = task.model_copy(update={"tag_id": None, "tag_remote_id": None})
                unlinked.mark_dirty()
                await tx.tasks.save(unlinked)
            await tx.tags.delete(tag.id)
        logger.info("Deleted tag %s", tag.id)
