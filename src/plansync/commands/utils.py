"""Shared helpers for command implementations."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from plansync.commands.decorators import AppError
from plansync.config import get_config_manager
from plansync.models import Task
from plansync.services.app_context import AppContext, build_app_context


@asynccontextmanager
async def open_app_context() -> AsyncIterator[AppContext]:
    """Build the application context for one command and close it afterwards."""
    ctx = build_app_context(get_config_manager())
    try:
        yield ctx
    finally:
        await ctx.close()


def parse_due(value: str) -> datetime:
    """Parse an ISO date or datetime given on the command line (UTC when naive)."""
    try:
        due = datetime.fromisoformat(value)
    except ValueError as e:
        raise AppError(f"Invalid date: {value!r} (expected ISO format, e.g. 2026-05-01T18:00)") from e
    if due.tzinfo is None:
        due = due.replace(tzinfo=UTC)
    return due


def find_by_prefix(tasks: list[Task], id_prefix: str) -> Task:
    """Pick the single task whose local or remote id starts with id_prefix."""
    matches = [
        t for t in tasks if t.id.startswith(id_prefix) or (t.remote_id or "").startswith(id_prefix)
    ]
    if not matches:
        raise AppError(f"No task matches '{id_prefix}'")
    if len(matches) > 1:
        raise AppError(f"'{id_prefix}' is ambiguous ({len(matches)} tasks match)")
    return matches[0]
