"""SQLite adapters for the local planner store."""

from .store import LocalStore

__all__ = ["LocalStore"]
