"""Sharing engine: tasks sent from one user to a friend.

A shared task exists as two documents with the same id, one in the sender's
outgoing_tasks and one in the receiver's incoming_tasks. Both copies are
always written together in one batch. The sender may edit content or delete
the task; the receiver may only report completion or failure.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from datetime import UTC, datetime
from typing import Any, Optional

from plansync.adapters.sqlite import LocalStore
from plansync.exceptions import (
    AuthorizationError,
    DocumentDecodeError,
    DocumentServiceError,
    InvalidTaskError,
    MissingRemoteIdError,
    SharingError,
)
from plansync.models import Task, TaskDirection, TaskOption, TaskStatus
from plansync.models.documents import (
    decode_shared_task,
    encode_task,
    encode_task_content,
    encode_task_status,
    shared_tasks_path,
)
from plansync.repositories import DocumentService
from plansync.services.identity import IdentityProvider, Session
from plansync.services.task_builder import build_shared_task
from plansync.utils.logger import get_logger

logger = get_logger("sharing")

ROLE_SENDER = "sender"
ROLE_RECEIVER = "receiver"

# Fields carried by shared task documents
_SHARED_FIELDS = (
    "title",
    "description",
    "due_date",
    "auto_reminder",
    "is_important",
    "is_urgent",
    "is_auto_complete",
    "is_auto_fail",
    "is_done",
    "from_user_name",
    "to_user_name",
    "date_of_completion",
    "date_of_last_reminder",
)


class SharedSyncResult:
    """Counters of one shared-task pull."""

    def __init__(self):
        self.fetched = 0
        self.new = 0
        self.updated = 0
        self.unchanged = 0
        self.pruned = 0
        self.skipped = 0


def copy_paths(task: Task) -> tuple[str, str]:
    """Paths of the sender's and the receiver's copy of a shared task."""
    outgoing = f"{shared_tasks_path(task.from_user_id, TaskDirection.OUTGOING)}/{task.remote_id}"
    incoming = f"{shared_tasks_path(task.to_user_id, TaskDirection.INCOMING)}/{task.remote_id}"
    return outgoing, incoming


class SharingService:
    """Sharing engine.

    Attributes:
        incoming_tasks: Cached tasks received by the signed-in user
        outgoing_tasks: Cached tasks sent by the signed-in user
    """

    def __init__(
        self,
        store: LocalStore,
        documents: DocumentService,
        identity: IdentityProvider,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.documents = documents
        self.identity = identity
        self.clock = clock or (lambda: datetime.now(UTC))
        self.incoming_tasks: list[Task] = []
        self.outgoing_tasks: list[Task] = []
        self._sending: set[str] = set()

    def _role(self, session: Session, task: Task) -> str:
        if not task.is_shared:
            raise InvalidTaskError(f"Task {task.id} is not shared")
        role = task.role_of(session.user_id)
        if role is None:
            raise AuthorizationError(f"User {session.user_id} is not a party of task {task.id}")
        if not task.remote_id:
            raise MissingRemoteIdError(f"Shared task {task.id} has no remote id")
        return role

    async def send_task_to_friend(
        self,
        title: str,
        description: Optional[str],
        due_date: datetime,
        friend_uid: str,
        friend_name: str,
        options: Iterable[TaskOption] = (),
    ) -> Task:
        """Create a shared task and write both copies atomically.

        The local row is inserted first and deleted again if the remote
        write fails.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            pydantic.ValidationError: If the title is empty
            SharingError: If the remote write failed
        """
        session = self.identity.require_session()
        task = build_shared_task(
            title,
            due_date,
            from_user_id=session.user_id,
            to_user_id=friend_uid,
            from_user_name=session.name,
            to_user_name=friend_name,
            description=description,
            options=options,
            remote_id=self.documents.new_id(),
        )
        task.is_synced = True

        self._sending.add(task.remote_id)
        try:
            async with self.store.transaction() as tx:
                await tx.tasks.add(task)

            data = encode_task(task)
            outgoing, incoming = copy_paths(task)
            batch = self.documents.batch()
            batch.set(outgoing, data)
            batch.set(incoming, data)
            try:
                await batch.commit()
            except DocumentServiceError as e:
                async with self.store.transaction() as tx:
                    await tx.tasks.delete(task.id)
                logger.warning("Sending task %s failed, local copy rolled back: %s", task.id, e)
                raise SharingError(
                    f"Could not send task to {friend_name}: {e}", entity="task", phase="send"
                ) from e
        finally:
            self._sending.discard(task.remote_id)

        self.outgoing_tasks.append(task)
        logger.info("Sent task %s to %s", task.remote_id, friend_uid)
        return task

    async def sync_shared_tasks(self) -> SharedSyncResult:
        """Pull both shared collections and mirror them locally.

        Remote always wins for shared tasks. Local shared tasks whose
        documents are gone from both collections are removed.

        Raises:
            NotAuthenticatedError: If nobody is signed in
            SharingError: If a collection could not be fetched
        """
        session = self.identity.require_session()
        uid = session.user_id
        fetched: list[tuple[TaskDirection, Any]] = []
        for direction in (TaskDirection.INCOMING, TaskDirection.OUTGOING):
            try:
                docs = await self.documents.list(shared_tasks_path(uid, direction))
            except DocumentServiceError as e:
                raise SharingError(
                    f"Could not fetch {direction.collection}: {e}", entity="task", phase="pull"
                ) from e
            fetched.extend((direction, doc) for doc in docs)

        result = SharedSyncResult()
        result.fetched = len(fetched)
        now = self.clock()
        seen = {doc.id for _, doc in fetched}

        async with self.store.transaction() as tx:
            for direction, doc in fetched:
                try:
                    remote = decode_shared_task(doc.id, doc.data)
                except DocumentDecodeError as e:
                    result.skipped += 1
                    logger.warning("Skipping shared task document %s: %s", doc.id, e)
                    continue

                owner = remote.to_user_id if direction is TaskDirection.INCOMING else remote.from_user_id
                if owner != uid:
                    result.skipped += 1
                    logger.warning("Shared task %s does not belong to %s", doc.id, uid)
                    continue

                local = await tx.tasks.get_by_remote_id(doc.id)
                if local is None:
                    if remote.received_date is None and direction is TaskDirection.INCOMING:
                        remote.received_date = now
                    await tx.tasks.add(remote)
                    result.new += 1
                elif any(getattr(local, f) != getattr(remote, f) for f in _SHARED_FIELDS):
                    await tx.tasks.save(
                        local.model_copy(update={f: getattr(remote, f) for f in _SHARED_FIELDS})
                    )
                    result.updated += 1
                else:
                    result.unchanged += 1

            for local in await tx.tasks.list_shared(uid):
                if local.remote_id in seen or local.remote_id in self._sending:
                    continue
                await tx.tasks.delete(local.id)
                result.pruned += 1
                logger.info("Pruned shared task %s deleted by its sender", local.remote_id)

            self.incoming_tasks = await tx.tasks.list_shared(uid, TaskDirection.INCOMING)
            self.outgoing_tasks = await tx.tasks.list_shared(uid, TaskDirection.OUTGOING)

        logger.info(
            "Shared tasks synced: %d new, %d updated, %d pruned",
            result.new,
            result.updated,
            result.pruned,
        )
        return result

    async def update_shared_task(
        self,
        task: Task,
        new_status: Optional[TaskStatus] = None,
        new_title: Optional[str] = None,
        new_description: Optional[str] = None,
        new_due_date: Optional[datetime] = None,
        at: Optional[datetime] = None,
    ) -> Task:
        """Apply the changes the caller's role allows to both copies.

        The receiver may change the status, the sender title, description and
        due date. Changes the role does not allow are dropped; when nothing
        applicable remains the task is returned unchanged.

        Raises:
            InvalidTaskError: If the task is not shared
            AuthorizationError: If the caller is neither sender nor receiver
            MissingRemoteIdError: If the task was never written remotely
            SharingError: If the remote write failed (local store untouched)
        """
        session = self.identity.require_session()
        role = self._role(session, task)
        updates: dict[str, Any] = {}
        content_requested = any(v is not None for v in (new_title, new_description, new_due_date))

        if role == ROLE_RECEIVER:
            if content_requested:
                logger.debug("Receiver content change on %s dropped", task.remote_id)
            if new_status is not None:
                updates["is_done"] = new_status is TaskStatus.COMPLETED
                updates["date_of_completion"] = at or self.clock()
        else:
            if new_status is not None:
                logger.debug("Sender status change on %s dropped", task.remote_id)
            if new_title is not None:
                updates["title"] = new_title.strip()
            if new_description is not None:
                updates["description"] = new_description
            if new_due_date is not None:
                updates["due_date"] = new_due_date

        if not updates:
            return task

        updated = Task.model_validate({**task.model_dump(), **updates})
        data = encode_task_status(updated) if role == ROLE_RECEIVER else encode_task_content(updated)

        outgoing, incoming = copy_paths(updated)
        batch = self.documents.batch()
        batch.update(outgoing, data)
        batch.update(incoming, data)
        try:
            await batch.commit()
        except DocumentServiceError as e:
            raise SharingError(
                f"Could not update shared task {task.remote_id}: {e}", entity="task", phase="update"
            ) from e

        async with self.store.transaction() as tx:
            current = await tx.tasks.get(task.id)
            if current is not None:
                updated = current.model_copy(update=updates)
                await tx.tasks.save(updated)

        self._replace_cached(updated)
        logger.info("Updated shared task %s as %s", task.remote_id, role)
        return updated

    async def complete_shared_task(self, task: Task, at: Optional[datetime] = None) -> Task:
        return await self.update_shared_task(task, new_status=TaskStatus.COMPLETED, at=at)

    async def fail_shared_task(self, task: Task, at: Optional[datetime] = None) -> Task:
        return await self.update_shared_task(task, new_status=TaskStatus.FAILED, at=at)

    async def delete_shared_task(self, task: Task) -> None:
        """Delete both copies, then the local row. Sender only.

        Raises:
            InvalidTaskError: If the task is not shared
            AuthorizationError: If the caller is not the sender
            SharingError: If the remote delete failed (the local row is kept)
        """
        session = self.identity.require_session()
        if self._role(session, task) != ROLE_SENDER:
            raise AuthorizationError("Only the sender can delete a shared task")

        outgoing, incoming = copy_paths(task)
        batch = self.documents.batch()
        batch.delete(outgoing)
        batch.delete(incoming)
        try:
            await batch.commit()
        except DocumentServiceError as e:
            raise SharingError(
                f"Could not delete shared task {task.remote_id}: {e}", entity="task", phase="delete"
            ) from e

        async with self.store.transaction() as tx:
            await tx.tasks.delete(task.id)

        self.outgoing_tasks = [t for t in self.outgoing_tasks if t.id != task.id]
        self.incoming_tasks = [t for t in self.incoming_tasks if t.id != task.id]
        logger.info("Deleted shared task %s", task.remote_id)

    def _replace_cached(self, task: Task) -> None:
        self.incoming_tasks = [task if t.id == task.id else t for t in self.incoming_tasks]
        self.outgoing_tasks = [task if t.id == task.id else t for t in self.outgoing_tasks]
