"""Sync and scheduler commands."""

from rich.table import Table

from plansync.commands.decorators import command_wrapper
from plansync.commands.utils import open_app_context
from plansync.exceptions import SyncError
from plansync.services.sync_service import SyncResult
from plansync.utils.ui import format_success, format_warning, get_console

console = get_console()


def _result_table(result: SyncResult) -> Table:
    table = Table(title="Sync summary")
    table.add_column("Entity")
    table.add_column("Uploaded", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Unchanged", justify="right")
    table.add_column("Conflicts", justify="right")
    table.add_row(
        "Tags",
        str(result.tags_uploaded),
        str(result.tags_new),
        str(result.tags_updated + result.tags_adopted),
        str(result.tags_unchanged),
        str(result.tags_conflicts),
    )
    table.add_row(
        "Tasks",
        str(result.tasks_uploaded),
        str(result.tasks_new),
        str(result.tasks_updated),
        str(result.tasks_unchanged),
        str(result.tasks_conflicts),
    )
    return table


@command_wrapper
async def sync() -> None:
    """Run a full sync of private data, then pull shared tasks."""
    async with open_app_context() as ctx:
        try:
            result = await ctx.sync.sync_all()
        except SyncError as e:
            if e.result is not None:
                console.print(_result_table(e.result))
            raise
        console.print(_result_table(result))
        shared = await ctx.sharing.sync_shared_tasks()
    format_success(
        f"Synced in {result.duration:.2f}s; shared tasks: {shared.new} new, "
        f"{shared.updated} updated, {shared.pruned} removed"
    )


@command_wrapper
async def quick_sync() -> None:
    """Upload local changes without pulling."""
    async with open_app_context() as ctx:
        result = await ctx.sync.quick_sync()
    if result is None:
        format_warning("Quick sync skipped")
    elif result.success:
        format_success(f"Uploaded {result.uploaded} change(s)")
    else:
        format_warning("Some changes could not be uploaded; they stay queued")


@command_wrapper
async def tick() -> None:
    """Auto-complete overdue tasks once."""
    async with open_app_context() as ctx:
        result = await ctx.lifecycle.tick()
    format_success(f"Auto-completed {result.total} task(s)")
    if result.failed:
        format_warning(f"{len(result.failed)} shared task(s) will be retried")


@command_wrapper
async def run() -> None:
    """Run the lifecycle scheduler until interrupted."""
    async with open_app_context() as ctx:
        console.print(f"Scheduler running every {ctx.lifecycle.interval}s, Ctrl+C to stop")
        await ctx.lifecycle.run()
