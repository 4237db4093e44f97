"""Task commands: list, add, complete, fail, delete and share."""

from typing import Optional

import typer
from rich.table import Table

from plansync.commands.decorators import AppError, command_wrapper
from plansync.commands.utils import find_by_prefix, open_app_context, parse_due
from plansync.models import Task, TaskDirection, TaskOption
from plansync.utils.ui import format_success, get_console

app = typer.Typer(help="Task management commands")
console = get_console()


def _tasks_table(title: str, tasks: list[Task], *, shared: bool = False) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Due")
    if shared:
        table.add_column("From")
        table.add_column("To")
    table.add_column("Done")
    table.add_column("Synced")

    for task in tasks:
        row = [task.id[:8], task.title, task.due_date.strftime("%Y-%m-%d %H:%M")]
        if shared:
            row += [task.from_user_name or task.from_user_id, task.to_user_name or task.to_user_id]
        row += ["[green]yes[/green]" if task.is_done else "no", "yes" if task.is_synced else "[yellow]no[/yellow]"]
        table.add_row(*row)
    return table


@app.command("list")
@command_wrapper
async def list_tasks(
    shared: bool = typer.Option(False, "--shared", help="Show shared tasks instead"),
) -> None:
    """List local tasks."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            if shared:
                incoming = await tx.tasks.list_shared(session.user_id, TaskDirection.INCOMING)
                outgoing = await tx.tasks.list_shared(session.user_id, TaskDirection.OUTGOING)
            else:
                private = await tx.tasks.list_private(session.user_id)

    if shared:
        console.print(_tasks_table("Incoming", incoming, shared=True))
        console.print(_tasks_table("Outgoing", outgoing, shared=True))
    else:
        console.print(_tasks_table("Tasks", private))


@app.command("add")
@command_wrapper
async def add_task(
    title: str = typer.Argument(..., help="Task title"),
    due: str = typer.Option(..., "--due", help="Due date (ISO format)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    option: list[TaskOption] = typer.Option([], "--option", "-o", help="Task option, repeatable"),
    tag: Optional[str] = typer.Option(None, "--tag", help="Tag name"),
) -> None:
    """Create a private task."""
    due_date = parse_due(due)
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        tag_model = None
        if tag:
            async with ctx.store.transaction() as tx:
                tag_model = await tx.tags.get_by_name(session.user_id, tag)
            if tag_model is None:
                tag_model = await ctx.sync.create_tag(tag)
        task = await ctx.sync.create_private_task(
            title, due_date, description=description, options=option, tag=tag_model
        )
    format_success(f"Created task {task.id[:8]}" + ("" if task.is_synced else " (not yet synced)"))


@app.command("done")
@command_wrapper
async def complete_task(id_prefix: str = typer.Argument(..., help="Task id prefix")) -> None:
    """Mark a private task done, or report completion of a received task."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            tasks = await tx.tasks.list_private(session.user_id)
            tasks += await tx.tasks.list_shared(session.user_id, TaskDirection.INCOMING)
        task = find_by_prefix(tasks, id_prefix)
        if task.is_shared:
            await ctx.sharing.complete_shared_task(task)
        else:
            await ctx.sync.complete_private_task(task)
            await ctx.sync.quick_sync()
    format_success(f"Completed {task.title}")


@app.command("fail")
@command_wrapper
async def fail_task(id_prefix: str = typer.Argument(..., help="Task id prefix")) -> None:
    """Report failure of a received shared task."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            tasks = await tx.tasks.list_shared(session.user_id, TaskDirection.INCOMING)
        task = find_by_prefix(tasks, id_prefix)
        await ctx.sharing.fail_shared_task(task)
    format_success(f"Marked {task.title} as failed")


@app.command("failed")
@command_wrapper
async def failed_tasks() -> None:
    """List overdue auto-fail tasks that were never completed."""
    async with open_app_context() as ctx:
        tasks = await ctx.lifecycle.failed_tasks()
    console.print(_tasks_table("Failed", tasks))


@app.command("delete")
@command_wrapper
async def delete_task(id_prefix: str = typer.Argument(..., help="Task id prefix")) -> None:
    """Delete a private task or a task you sent."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            tasks = await tx.tasks.list_private(session.user_id)
            tasks += await tx.tasks.list_shared(session.user_id, TaskDirection.OUTGOING)
        task = find_by_prefix(tasks, id_prefix)
        if task.is_shared:
            await ctx.sharing.delete_shared_task(task)
        else:
            await ctx.sync.delete_private_task(task)
    format_success(f"Deleted {task.title}")


@command_wrapper
async def share(
    title: str = typer.Argument(..., help="Task title"),
    friend_email: str = typer.Option(..., "--to", help="Friend's email"),
    due: str = typer.Option(..., "--due", help="Due date (ISO format)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    option: list[TaskOption] = typer.Option([], "--option", "-o", help="Task option, repeatable"),
) -> None:
    """Send a task to a friend."""
    due_date = parse_due(due)
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            friends = await tx.friends.list_all(session.user_id)
        friend = next((f for f in friends if f.friend_email.lower() == friend_email.lower()), None)
        if friend is None:
            raise AppError(f"{friend_email} is not in your friends list. Run 'plansync friends fetch'.")
        task = await ctx.sharing.send_task_to_friend(
            title, description, due_date, friend.friend_uid, friend.friend_name, option
        )
    format_success(f"Sent '{task.title}' to {friend.friend_name}")
