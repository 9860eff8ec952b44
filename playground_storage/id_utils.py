"""ID generation utilities for project storage.

Centralizes the ID format knowledge so callers never need to
construct project or library IDs directly.

Project IDs are UUID4 strings. The same value is the key in the local
projects mapping and the document id in the remote container, so an id
allocated offline is accepted unchanged once the project reaches the cloud.
"""

from __future__ import annotations

import uuid


def generate_project_id() -> str:
    """Generate a new globally unique project ID."""
    return str(uuid.uuid4())


def generate_library_id() -> str:
    """Generate an ID for an external library descriptor."""
    return f"lib-{uuid.uuid4().hex[:12]}"


def is_valid_project_id(value: object) -> bool:
    """Check that a value can be used as a project key.

    IDs are opaque, so anything that is a non-blank string is accepted.
    """
    return isinstance(value, str) and bool(value.strip())
