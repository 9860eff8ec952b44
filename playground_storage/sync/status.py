"""
Observable sync status.

The coordinator publishes a fresh SyncStatus snapshot after every state
change so a UI can render saving/syncing indicators.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncStatus:
    """Snapshot of the coordinator's persistence state.

    Attributes:
        is_loading: A bootstrap or project switch is running
        is_saving: A save is writing to the local store
        is_syncing: An upload to the remote store is running
        last_synced_at: Completion time of the last successful remote write
        last_error: Message of the most recent failure (cleared on success)
        pending_changes: The current project has unsaved in-memory edits
    """

    is_loading: bool = False
    is_saving: bool = False
    is_syncing: bool = False
    last_synced_at: datetime | None = None
    last_error: str | None = None
    pending_changes: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "is_loading": self.is_loading,
            "is_saving": self.is_saving,
            "is_syncing": self.is_syncing,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
            "last_error": self.last_error,
            "pending_changes": self.pending_changes,
        }


StatusListener = Callable[[SyncStatus], None]


class SyncStatusTracker:
    """Holds the current SyncStatus and notifies listeners on change."""

    def __init__(self) -> None:
        self._status = SyncStatus()
        self._listeners: list[StatusListener] = []

    @property
    def status(self) -> SyncStatus:
        return self._status

    def update(self, **changes: Any) -> SyncStatus:
        """Apply field changes and notify listeners if anything changed."""
        updated = replace(self._status, **changes)
        if updated != self._status:
            self._status = updated
            self._notify()
        return self._status

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self._status)
            except Exception:
                logger.exception("Sync status listener failed")
