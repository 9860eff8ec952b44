"""
Shared test configuration and fixtures.

Provides an in-memory stand-in for a Cosmos DB container that raises the
real azure.cosmos exceptions, so CosmosProjectStore can be exercised
without an account. Live tests against a real account live in
test_cosmos_live.py and are skipped unless PLAYGROUND_COSMOS_ENDPOINT is set.
"""

from __future__ import annotations

import copy
import tempfile
from collections.abc import AsyncIterator, Callable, Iterator
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
from azure.core import MatchConditions
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)

from playground_storage.config import StorageConfig
from playground_storage.identity import StaticIdentityProvider
from playground_storage.local import LocalProjectStore
from playground_storage.models import Project, ProjectMetadata
from playground_storage.remote import CosmosProjectStore, RemoteProjectStore

TEST_ENDPOINT = "https://test.documents.azure.com:443/"


class FakeCosmosContainer:
    """
    In-memory container partitioned by ``user_id``.

    Supports the subset of ContainerProxy used by CosmosProjectStore:
    point reads, create, replace (with etag preconditions), upsert and the
    listing query. Set ``fail_with`` to make every call raise.
    """

    def __init__(self) -> None:
        self.items: dict[tuple[str, str], dict[str, Any]] = {}
        self.fail_with: Exception | None = None
        # Runs inside replace_item before the etag check
        self.before_replace: Callable[[], None] | None = None
        self.calls: list[str] = []
        self._etag_counter = 0

    def _check(self, operation: str) -> None:
        self.calls.append(operation)
        if self.fail_with is not None:
            raise self.fail_with

    def _store(self, body: dict[str, Any]) -> dict[str, Any]:
        self._etag_counter += 1
        doc = copy.deepcopy(body)
        doc["_etag"] = f'"{self._etag_counter}"'
        self.items[(doc["user_id"], doc["id"])] = doc
        return copy.deepcopy(doc)

    async def create_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self._check("create_item")
        if (body["user_id"], body["id"]) in self.items:
            raise CosmosResourceExistsError(status_code=409, message="Entity already exists")
        return self._store(body)

    async def read_item(self, item: str, partition_key: str, **kwargs: Any) -> dict[str, Any]:
        self._check("read_item")
        doc = self.items.get((partition_key, item))
        if doc is None:
            raise CosmosResourceNotFoundError(status_code=404, message="Entity not found")
        return copy.deepcopy(doc)

    async def replace_item(
        self,
        item: str,
        body: dict[str, Any],
        etag: str | None = None,
        match_condition: MatchConditions | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        self._check("replace_item")
        if self.before_replace is not None:
            hook, self.before_replace = self.before_replace, None
            hook()
        key = (body["user_id"], item)
        existing = self.items.get(key)
        if existing is None:
            raise CosmosResourceNotFoundError(status_code=404, message="Entity not found")
        if match_condition == MatchConditions.IfNotModified and existing["_etag"] != etag:
            raise CosmosAccessConditionFailedError(status_code=412, message="Precondition failed")
        return self._store(body)

    async def upsert_item(self, body: dict[str, Any], **kwargs: Any) -> dict[str, Any]:
        self._check("upsert_item")
        return self._store(body)

    def query_items(
        self,
        query: str,
        parameters: list[dict[str, Any]] | None = None,
        partition_key: str | None = None,
        **kwargs: Any,
    ) -> AsyncIterator[dict[str, Any]]:
        return self._query(query, parameters or [], partition_key)

    async def _query(
        self,
        query: str,
        parameters: list[dict[str, Any]],
        partition_key: str | None,
    ) -> AsyncIterator[dict[str, Any]]:
        self._check("query_items")
        params = {p["name"]: p["value"] for p in parameters}
        user_id = params.get("@user_id", partition_key)

        rows = [doc for (owner, _), doc in self.items.items() if owner == user_id]
        if "deleted_at" in query:
            rows = [doc for doc in rows if not doc.get("deleted_at")]
        rows.sort(key=lambda doc: datetime.fromisoformat(doc["updated_at"]), reverse=True)

        for doc in rows:
            result = {
                "id": doc["id"],
                "name": doc.get("name"),
                "created_at": doc.get("created_at"),
                "updated_at": doc.get("updated_at"),
            }
            if "AS preview" in query:
                result["preview"] = (doc.get("html") or "")[:100]
            yield result

    def live_ids(self, user_id: str) -> set[str]:
        """Ids of rows that are not soft-deleted."""
        return {
            item_id
            for (owner, item_id), doc in self.items.items()
            if owner == user_id and not doc.get("deleted_at")
        }


class UnreachableRemoteStore(RemoteProjectStore):
    """Remote store whose backend is never reachable."""

    def __init__(self, identity: StaticIdentityProvider) -> None:
        super().__init__(identity)
        self.attempts = 0

    def _unreachable(self) -> OSError:
        self.attempts += 1
        return OSError("Connection refused")

    async def _fetch(self, user_id: str, project_id: str) -> Project | None:
        raise self._unreachable()

    async def _fetch_listing(self, user_id: str) -> list[ProjectMetadata]:
        raise self._unreachable()

    async def _insert(self, user_id: str, project: Project) -> None:
        raise self._unreachable()

    async def _update(
        self, user_id: str, project: Project, expected_updated_at: datetime | None
    ) -> None:
        raise self._unreachable()

    async def _soft_delete(self, user_id: str, project_id: str, deleted_at: datetime) -> None:
        raise self._unreachable()


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def storage_config(temp_dir: Path) -> StorageConfig:
    """Storage config pointing at the temp directory and a fake endpoint."""
    return StorageConfig(local_path=str(temp_dir / "projects"), cosmos_endpoint=TEST_ENDPOINT)


@pytest.fixture
def local_store(storage_config: StorageConfig) -> LocalProjectStore:
    """Local store in the temp directory."""
    return LocalProjectStore(storage_config)


@pytest.fixture
def identity() -> StaticIdentityProvider:
    """Signed-in identity."""
    return StaticIdentityProvider("user-1", display_name="Test User")


@pytest.fixture
def anonymous() -> StaticIdentityProvider:
    """Signed-out identity."""
    return StaticIdentityProvider()


@pytest.fixture
def container() -> FakeCosmosContainer:
    """Empty fake Cosmos container."""
    return FakeCosmosContainer()


@pytest.fixture
def remote_store(
    storage_config: StorageConfig,
    identity: StaticIdentityProvider,
    container: FakeCosmosContainer,
) -> CosmosProjectStore:
    """Cosmos store backed by the fake container."""
    return CosmosProjectStore(storage_config, identity, container=container)  # type: ignore[arg-type]
