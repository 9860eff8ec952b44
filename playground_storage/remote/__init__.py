"""
Remote project storage.

Per-user authoritative storage that may be unreachable at any time.
Public methods return results and never raise.
"""

from .base import RemoteProjectStore
from .cosmos import CosmosProjectStore, document_to_project, project_to_document

__all__ = [
    "RemoteProjectStore",
    "CosmosProjectStore",
    "project_to_document",
    "document_to_project",
]
