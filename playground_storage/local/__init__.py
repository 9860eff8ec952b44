"""
Local project storage.

Single-device, file-backed storage that needs no account and no network.
"""

from .project_store import ACTIVE_PROJECT_FILE, PROJECTS_FILE, LocalProjectStore

__all__ = [
    "LocalProjectStore",
    "PROJECTS_FILE",
    "ACTIVE_PROJECT_FILE",
]
