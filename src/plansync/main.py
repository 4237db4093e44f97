"""Main entry point for the plansync CLI."""

from typing import Optional

import typer
from rich.table import Table

from plansync import __version__
from plansync.commands import friends, sync, tasks
from plansync.commands.decorators import AppError, command_wrapper
from plansync.config import get_config_manager
from plansync.models.core import is_valid_email
from plansync.utils.ui import format_success, get_console

app = typer.Typer(
    name="plansync",
    help="Offline-first task planner: private sync, task sharing and friends",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Configuration management")

console = get_console()

app.add_typer(tasks.app, name="tasks", help="Task management commands")
app.add_typer(friends.app, name="friends", help="Manage friends")
app.add_typer(friends.requests_app, name="requests", help="Manage friend requests")
app.add_typer(config_app, name="config", help="Configuration management")

app.command("share")(tasks.share)
app.command("sync")(sync.sync)
app.command("quick-sync")(sync.quick_sync)
app.command("tick")(sync.tick)
app.command("run")(sync.run)


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]plansync[/bold] version [cyan]{__version__}[/cyan]")


@app.command()
@command_wrapper(auth_required=False)
def login(
    user_id: str = typer.Option(..., "--user-id", help="Authenticated user id"),
    email: str = typer.Option(..., "--email", help="Email address"),
    name: Optional[str] = typer.Option(None, "--name", help="Display name"),
    token: Optional[str] = typer.Option(None, "--token", help="Bearer token for the remote service"),
) -> None:
    """Store the identity handed over by the identity provider."""
    if not is_valid_email(email):
        raise AppError(f"Invalid email address: {email}")
    get_config_manager().save_credentials(user_id, email, name=name, token=token)
    format_success(f"Logged in as {email}")


@app.command()
@command_wrapper(auth_required=False)
def logout() -> None:
    """Forget the stored identity."""
    get_config_manager().clear_credentials()
    format_success("Logged out")


@config_app.command("get")
@command_wrapper(auth_required=False)
def config_get(key: Optional[str] = typer.Argument(None, help="Dotted key, e.g. sync.interval")) -> None:
    """Show configuration values."""
    manager = get_config_manager()
    if key is not None:
        console.print(manager.get(key))
        return

    table = Table(title="Configuration")
    table.add_column("Key")
    table.add_column("Value")
    for section, values in manager.config.model_dump().items():
        for name, value in values.items():
            table.add_row(f"{section}.{name}", str(value))
    console.print(table)


@config_app.command("set")
@command_wrapper(auth_required=False)
def config_set(
    key: str = typer.Argument(..., help="Dotted key, e.g. remote.endpoint"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Set a configuration value."""
    manager = get_config_manager()
    manager.set(key, value)
    format_success(f"{key} = {manager.get(key)}")


@config_app.command("reset")
@command_wrapper(auth_required=False)
def config_reset(key: Optional[str] = typer.Argument(None, help="Dotted key; all when omitted")) -> None:
    """Reset configuration to defaults."""
    get_config_manager().reset(key)
    format_success("Configuration reset")


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
