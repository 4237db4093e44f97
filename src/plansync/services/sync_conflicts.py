"""Sync conflict tracker.

Records the remote versions a sync pass dropped because the local entity had
unsynced edits (last local edit wins), and appends them to a JSON log.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from plansync.utils.logger import get_logger

logger = get_logger("sync.conflicts")

LOCAL_WINS = "local_wins"


class SyncConflict:
    """A single dropped remote version."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        local_data: dict[str, Any],
        remote_data: dict[str, Any],
        resolution: str = LOCAL_WINS,
    ):
        """Initialize a sync conflict.

        Args:
            resource_type: "task" or "tag"
            resource_id: Remote id of the conflicting entity
            local_data: Local version data
            remote_data: Remote version data
            resolution: How the conflict was resolved
        """
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.local_data = local_data
        self.remote_data = remote_data
        self.resolution = resolution
        self.detected_at = datetime.now(UTC)

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "local_data": self.local_data,
            "remote_data": self.remote_data,
            "resolution": self.resolution,
            "detected_at": self.detected_at.isoformat(),
        }


class SyncConflictTracker:
    """Collects conflicts of a sync pass and persists them."""

    def __init__(self, config_dir: Path | None = None):
        """Initialize conflict tracker.

        Args:
            config_dir: Directory holding sync-conflicts.json; None keeps
                conflicts in memory only
        """
        self.config_dir = Path(config_dir) if config_dir is not None else None
        self._conflicts: list[SyncConflict] = []

    @property
    def conflicts_file(self) -> Path | None:
        if self.config_dir is None:
            return None
        return self.config_dir / "sync-conflicts.json"

    def add_conflict(self, conflict: SyncConflict) -> None:
        logger.info(
            "Conflict on %s %s resolved as %s",
            conflict.resource_type,
            conflict.resource_id,
            conflict.resolution,
        )
        self._conflicts.append(conflict)

    def save(self) -> None:
        """Append tracked conflicts to the log file."""
        if not self._conflicts or self.conflicts_file is None:
            return

        self.config_dir.mkdir(parents=True, exist_ok=True)

        existing_conflicts = []
        if self.conflicts_file.exists():
            try:
                with open(self.conflicts_file, "r") as f:
                    existing_data = json.load(f)
                if isinstance(existing_data, list):
                    existing_conflicts = existing_data
            except (OSError, ValueError):
                logger.warning("Conflict log %s unreadable, starting fresh", self.conflicts_file)

        all_conflicts = existing_conflicts + [c.to_dict() for c in self._conflicts]

        with open(self.conflicts_file, "w") as f:
            json.dump(all_conflicts, f, indent=2, default=str)

    def get_conflicts(self) -> list[SyncConflict]:
        return self._conflicts.copy()

    def clear(self) -> None:
        self._conflicts.clear()

    def count(self) -> int:
        return len(self._conflicts)

    def has_conflicts(self) -> bool:
        return len(self._conflicts) > 0
