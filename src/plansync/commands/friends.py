"""Friend and friend request commands."""

import typer
from rich.table import Table

from plansync.commands.decorators import AppError, command_wrapper
from plansync.commands.utils import open_app_context
from plansync.models import FriendRequest
from plansync.utils.ui import format_success, get_console

app = typer.Typer(help="Manage friends")
requests_app = typer.Typer(help="Manage incoming friend requests")
console = get_console()


def _friends_table(friends) -> Table:
    table = Table(title="Friends")
    table.add_column("Name")
    table.add_column("Email")
    table.add_column("UID", style="dim")
    for friend in friends:
        table.add_row(friend.friend_name, friend.friend_email, friend.friend_uid)
    return table


@app.command("list")
@command_wrapper
async def list_friends() -> None:
    """List friends stored locally."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            friends = await tx.friends.list_all(session.user_id)
    console.print(_friends_table(friends))


@app.command("fetch")
@command_wrapper
async def fetch_friends() -> None:
    """Refresh the friends list from the remote service."""
    async with open_app_context() as ctx:
        friends = await ctx.friends.fetch_friends()
    console.print(_friends_table(friends))


@app.command("add")
@command_wrapper
async def add_friend(email: str = typer.Argument(..., help="Email of the user to befriend")) -> None:
    """Send a friend request."""
    async with open_app_context() as ctx:
        request = await ctx.friends.send_friend_request(email)
    format_success(f"Friend request sent to {request.to_email}")


@app.command("remove")
@command_wrapper
async def remove_friend(email: str = typer.Argument(..., help="Friend's email")) -> None:
    """Remove a friend on both sides."""
    async with open_app_context() as ctx:
        session = ctx.identity.require_session()
        async with ctx.store.transaction() as tx:
            friends = await tx.friends.list_all(session.user_id)
        friend = next((f for f in friends if f.friend_email.lower() == email.lower()), None)
        if friend is None:
            raise AppError(f"{email} is not in your friends list")
        await ctx.friends.delete_friend(friend)
    format_success(f"Removed {friend.friend_name}")


@requests_app.command("list")
@command_wrapper
async def list_requests() -> None:
    """Fetch and show pending friend requests."""
    async with open_app_context() as ctx:
        pending = await ctx.friends.fetch_pending_friend_requests()

    table = Table(title="Pending friend requests")
    table.add_column("From")
    table.add_column("Email")
    table.add_column("Sent")
    for request in pending:
        table.add_row(
            request.from_name or "",
            request.from_email,
            request.send_date.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


def _pick(pending: list[FriendRequest], email: str) -> FriendRequest:
    for request in pending:
        if request.from_email.lower() == email.lower():
            return request
    raise AppError(f"No pending request from {email}")


@requests_app.command("accept")
@command_wrapper
async def accept_request(email: str = typer.Argument(..., help="Sender's email")) -> None:
    """Accept a pending friend request."""
    async with open_app_context() as ctx:
        pending = await ctx.friends.fetch_pending_friend_requests()
        friend = await ctx.friends.accept_friend_request(_pick(pending, email))
    format_success(f"You are now friends with {friend.friend_name}")


@requests_app.command("decline")
@command_wrapper
async def decline_request(email: str = typer.Argument(..., help="Sender's email")) -> None:
    """Decline a pending friend request."""
    async with open_app_context() as ctx:
        pending = await ctx.friends.fetch_pending_friend_requests()
        await ctx.friends.decline_friend_request(_pick(pending, email))
    format_success(f"Declined request from {email}")
