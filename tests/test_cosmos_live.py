"""
Integration tests against a real Cosmos DB account.

Run with: pytest -m integration tests/test_cosmos_live.py

Environment variables required:
- PLAYGROUND_COSMOS_ENDPOINT: Cosmos DB endpoint URL

Authentication (one of):
- PLAYGROUND_COSMOS_KEY: Cosmos DB account key (for key-based auth)
- Azure identity: DefaultAzureCredential (for identity-based auth)

Optional:
- PLAYGROUND_COSMOS_DATABASE: Database name (default: playground-db)
- PLAYGROUND_COSMOS_CONTAINER: Container name (default: projects)
"""

import os
import uuid

import pytest

from playground_storage import (
    CosmosAuthMethod,
    CosmosProjectStore,
    Project,
    StaticIdentityProvider,
    StorageConfig,
)


def _cosmos_available() -> bool:
    """Check if Cosmos DB is available (either key or identity auth)."""
    if not os.environ.get("PLAYGROUND_COSMOS_ENDPOINT"):
        return False
    if os.environ.get("PLAYGROUND_COSMOS_KEY"):
        return True
    try:
        from azure.identity import DefaultAzureCredential

        DefaultAzureCredential()
        return True
    except Exception:
        return False


pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(
        not _cosmos_available(),
        reason="PLAYGROUND_COSMOS_ENDPOINT not set or no valid auth available",
    ),
]


@pytest.fixture
def test_user_id():
    """Generate unique user ID for test isolation."""
    return f"test-user-{uuid.uuid4().hex[:8]}"


@pytest.fixture
async def store(test_user_id):
    key = os.environ.get("PLAYGROUND_COSMOS_KEY")
    config = StorageConfig(
        cosmos_endpoint=os.environ["PLAYGROUND_COSMOS_ENDPOINT"],
        cosmos_key=key,
        cosmos_auth_method=CosmosAuthMethod.KEY if key else CosmosAuthMethod.DEFAULT_CREDENTIAL,
        cosmos_database=os.environ.get("PLAYGROUND_COSMOS_DATABASE", "playground-db"),
        cosmos_container=os.environ.get("PLAYGROUND_COSMOS_CONTAINER", "projects"),
    )
    store = CosmosProjectStore(config, StaticIdentityProvider(test_user_id))
    yield store
    await store.close()


class TestCosmosProjectLifecycle:
    """Create, save, list and delete against the real service."""

    @pytest.mark.asyncio
    async def test_full_lifecycle(self, store):
        project = Project.new("Integration", html="<p>live</p>")

        created = await store.create_project_with_id(project)
        assert created, created.error

        project.css = "p { color: red; }"
        saved = await store.save_project(project)
        assert saved, saved.error

        loaded = await store.load_project(project.id)
        assert loaded is not None
        assert loaded.css == "p { color: red; }"

        listing = await store.list_projects()
        assert [m.id for m in listing] == [project.id]

        deleted = await store.delete_project(project.id)
        assert deleted, deleted.error
        assert await store.load_project(project.id) is None
        assert await store.list_projects() == []

    @pytest.mark.asyncio
    async def test_stale_version_is_rejected(self, store):
        project = Project.new("Versioned")
        await store.create_project_with_id(project)
        original = project.updated_at

        await store.save_project(project)
        result = await store.save_project(project, expected_updated_at=original)

        assert not result
        assert result.error_kind.value == "conflict"

        await store.delete_project(project.id)
