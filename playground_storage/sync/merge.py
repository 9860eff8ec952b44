"""
Listing merge.

Combines the remote and local project directories into the single view
shown to a signed-in user.
"""

from __future__ import annotations

from ..models import ProjectMetadata


def merge_listings(
    remote: list[ProjectMetadata],
    local: list[ProjectMetadata],
) -> list[ProjectMetadata]:
    """Union of both listings, de-duplicated by id.

    When an id appears in both, the remote entry wins regardless of which
    side is newer. The result is sorted by ``updated_at``, newest first.

    Args:
        remote: Listing from the remote store
        local: Listing from the local store

    Returns:
        Merged listing with exactly one entry per id
    """
    merged: dict[str, ProjectMetadata] = {}

    for meta in local:
        merged[meta.id] = meta

    # Remote metadata overrides local on collision
    for meta in remote:
        merged[meta.id] = meta

    return sorted(merged.values(), key=lambda m: m.updated_at, reverse=True)
