"""Lifecycle scheduler: auto-completes overdue tasks on a timer."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Optional

from plansync.adapters.sqlite import LocalStore
from plansync.exceptions import PlanSyncError
from plansync.models import Task, TaskStatus
from plansync.services.identity import IdentityProvider
from plansync.services.sharing_service import ROLE_RECEIVER, SharingService
from plansync.services.sync_service import PrivateSyncService
from plansync.utils.logger import get_logger

logger = get_logger("lifecycle")

DEFAULT_INTERVAL = 60


class TickResult:
    """Ids of the tasks one tick touched."""

    def __init__(self):
        self.completed: list[str] = []
        self.shared_completed: list[str] = []
        self.skipped: list[str] = []
        self.failed: list[str] = []

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.shared_completed)


class LifecycleScheduler:
    """Completes open auto-complete tasks once their due date has passed.

    Private tasks are completed locally and marked dirty for the next sync.
    Shared tasks are completed through the sharing engine when the signed-in
    user is the receiver; the sender's copies are left alone.
    """

    def __init__(
        self,
        store: LocalStore,
        identity: IdentityProvider,
        sharing: SharingService,
        sync: Optional[PrivateSyncService] = None,
        *,
        interval: float = DEFAULT_INTERVAL,
        auto_sync: bool = True,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.identity = identity
        self.sharing = sharing
        self.sync = sync
        self.interval = interval
        self.auto_sync = auto_sync
        self.clock = clock or (lambda: datetime.now(UTC))

    async def tick(self, now: Optional[datetime] = None) -> TickResult:
        """Run one pass over overdue auto-complete tasks.

        Raises:
            NotAuthenticatedError: If nobody is signed in
        """
        session = self.identity.require_session()
        now = now or self.clock()
        result = TickResult()
        shared: list[Task] = []

        async with self.store.transaction() as tx:
            for task in await tx.tasks.list_auto_complete_pending(session.user_id, now):
                if task.is_shared:
                    shared.append(task)
                    continue
                completed = task.model_copy(update={"is_done": True, "date_of_completion": now})
                completed.mark_dirty()
                await tx.tasks.save(completed)
                result.completed.append(task.id)

        for task in shared:
            if task.role_of(session.user_id) != ROLE_RECEIVER:
                result.skipped.append(task.id)
                continue
            try:
                await self.sharing.update_shared_task(task, new_status=TaskStatus.COMPLETED, at=now)
                result.shared_completed.append(task.id)
            except PlanSyncError as e:
                # retried on the next tick
                result.failed.append(task.id)
                logger.warning("Auto-complete of shared task %s failed: %s", task.remote_id, e)

        if result.total or result.failed:
            logger.info(
                "Tick: %d completed, %d shared completed, %d failed",
                len(result.completed),
                len(result.shared_completed),
                len(result.failed),
            )
        return result

    async def failed_tasks(self, now: Optional[datetime] = None) -> list[Task]:
        """Open auto-fail tasks whose due date has passed."""
        session = self.identity.require_session()
        async with self.store.transaction() as tx:
            return await tx.tasks.list_failed(session.user_id, now or self.clock())

    async def run(self) -> None:
        """Poll forever: tick, then quick-sync when auto-sync is on.

        Errors of one iteration are logged; cancel the task to stop.
        """
        logger.info("Lifecycle scheduler started (every %ss)", self.interval)
        try:
            while True:
                try:
                    await self.tick()
                    if self.auto_sync and self.sync is not None:
                        await self.sync.quick_sync()
                except Exception:
                    logger.exception("Lifecycle iteration failed")
                await asyncio.sleep(self.interval)
        finally:
            logger.info("Lifecycle scheduler stopped")
