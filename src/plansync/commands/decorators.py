"""Decorators for command functions."""

import asyncio
import functools
import time
from collections.abc import Callable

import typer
from pydantic import ValidationError

from plansync.config import get_config_manager
from plansync.exceptions import PlanSyncError
from plansync.services.identity import CredentialsIdentityProvider
from plansync.utils.logger import get_logger
from plansync.utils.ui import format_error


class AppError(Exception):
    """Application error with exit code."""

    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def _require_auth() -> None:
    provider = CredentialsIdentityProvider(get_config_manager())
    if provider.current_session() is None:
        raise AppError("Not logged in. Use 'plansync login' first.")


def _validation_message(error: ValidationError) -> str:
    return "; ".join(e["msg"] for e in error.errors())


def command_wrapper(_func: Callable | None = None, *, auth_required: bool = True):
    """Wrap a command: auth check, async support, logging and error reporting."""

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = get_logger("cli")
            cmd = func.__name__
            start = time.monotonic()
            logger.info("command started: %s", cmd)
            try:
                if auth_required:
                    _require_auth()

                if asyncio.iscoroutinefunction(func):
                    result = asyncio.run(func(*args, **kwargs))
                else:
                    result = func(*args, **kwargs)

                logger.info("command completed: %s (%.3fs)", cmd, time.monotonic() - start)
                return result

            except typer.Exit:
                raise

            except AppError as e:
                logger.error("command failed: %s (%.3fs) - %s", cmd, time.monotonic() - start, e)
                format_error(str(e))
                raise typer.Exit(code=e.exit_code) from e

            except PlanSyncError as e:
                logger.error("command failed: %s (%.3fs) - %s", cmd, time.monotonic() - start, e)
                format_error(str(e))
                raise typer.Exit(code=1) from e

            except ValidationError as e:
                message = _validation_message(e)
                logger.error("command failed: %s - invalid input: %s", cmd, message)
                format_error(f"Invalid input: {message}")
                raise typer.Exit(code=1) from e

            except Exception as e:
                logger.exception("command failed: %s (%.3fs)", cmd, time.monotonic() - start)
                format_error(f"An unexpected error occurred: {str(e)}")
                raise typer.Exit(code=1) from e

        return wrapper

    if _func is None:
        return decorator
    return decorator(_func)
