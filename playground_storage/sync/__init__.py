"""
Local/remote synchronization.

The coordinator is the only component that talks to both stores.
"""

from .coordinator import CoordinatorConfig, ProjectSyncCoordinator
from .debounce import DebouncedTask
from .merge import merge_listings
from .status import StatusListener, SyncStatus, SyncStatusTracker

__all__ = [
    "ProjectSyncCoordinator",
    "CoordinatorConfig",
    "SyncStatus",
    "SyncStatusTracker",
    "StatusListener",
    "DebouncedTask",
    "merge_listings",
]
