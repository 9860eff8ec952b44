"""
Cosmos DB project storage.

Stores one document per project in a single container partitioned by
owner, so every query and point read stays inside the user's partition.

Supports two authentication methods:
- Key-based authentication (if org policy allows)
- Azure AD via DefaultAzureCredential (recommended)
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from azure.core import MatchConditions
from azure.cosmos import PartitionKey
from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import (
    CosmosAccessConditionFailedError,
    CosmosHttpResponseError,
    CosmosResourceExistsError,
    CosmosResourceNotFoundError,
)
from azure.identity.aio import DefaultAzureCredential

from ..config import CosmosAuthMethod, StorageConfig
from ..exceptions import (
    NetworkFailureError,
    ProjectConflictError,
    ProjectNotFoundError,
    ProjectStorageError,
    RemoteAuthenticationError,
    StorageFailureError,
)
from ..identity import IdentityProvider
from ..models import (
    PREVIEW_LENGTH,
    ExternalLibrary,
    Project,
    ProjectMetadata,
    ProjectSettings,
    parse_timestamp,
)
from .base import RemoteProjectStore

logger = logging.getLogger(__name__)

PARTITION_KEY_PATH = "/user_id"

LIVE_FILTER = "(NOT IS_DEFINED(c.deleted_at) OR IS_NULL(c.deleted_at))"


def project_to_document(
    project: Project,
    user_id: str,
    deleted_at: datetime | None = None,
) -> dict[str, Any]:
    """Convert a project to its Cosmos document."""
    return {
        "id": project.id,
        "user_id": user_id,
        "name": project.name,
        "html": project.html,
        "css": project.css,
        "javascript": project.javascript,
        "external_libraries": [lib.to_dict() for lib in project.external_libraries],
        "settings": project.settings.to_dict(),
        "created_at": project.created_at.isoformat(),
        "updated_at": project.updated_at.isoformat(),
        "deleted_at": deleted_at.isoformat() if deleted_at else None,
    }


def document_to_project(doc: dict[str, Any]) -> Project:
    """Convert a Cosmos document to a project."""
    return Project(
        id=doc["id"],
        name=doc.get("name") or "",
        html=doc.get("html") or "",
        css=doc.get("css") or "",
        javascript=doc.get("javascript") or "",
        external_libraries=[
            ExternalLibrary.from_dict(lib) for lib in doc.get("external_libraries") or []
        ],
        settings=ProjectSettings.from_dict(doc.get("settings")),
        created_at=parse_timestamp(doc.get("created_at")),
        updated_at=parse_timestamp(doc.get("updated_at") or doc.get("created_at")),
    )


def _is_live(doc: dict[str, Any]) -> bool:
    return not doc.get("deleted_at")


class CosmosProjectStore(RemoteProjectStore):
    """Cosmos DB project storage.

    Container schema (partition key: /user_id):
    {
        "id": "{project_id}",
        "user_id": "{owner_id}",
        "name": "...",
        "html": "...", "css": "...", "javascript": "...",
        "external_libraries": [{id, name, url, type, description?, addedAt}],
        "settings": {version, autoSaveEnabled, theme, editorFontSize},
        "created_at": "{iso}",
        "updated_at": "{iso}",
        "deleted_at": "{iso}" | null
    }

    "No matching row" is always detected from a 404 status, never from
    error message text. Writes that must not race use the document etag.
    """

    def __init__(
        self,
        config: StorageConfig,
        identity: IdentityProvider,
        container: ContainerProxy | None = None,
    ) -> None:
        """Initialize Cosmos DB storage.

        Args:
            config: Storage configuration with Cosmos connection info
            identity: Source of the signed-in user id
            container: Pre-built container proxy; skips client setup when given
        """
        super().__init__(identity)
        if container is None and not config.cosmos_endpoint:
            raise StorageFailureError("configure_remote", cause=ValueError("Cosmos endpoint is required"))

        self.config = config
        self._credential: Any = None
        self._client: CosmosClient | None = None
        self._database: DatabaseProxy | None = None
        self._container: ContainerProxy | None = container
        self._initialized = container is not None

    @property
    def endpoint(self) -> str:
        return self.config.cosmos_endpoint or "cosmos"

    async def _ensure_initialized(self) -> ContainerProxy:
        """Ensure client and container are initialized."""
        if self._initialized and self._container is not None:
            return self._container

        try:
            if self.config.cosmos_auth_method == CosmosAuthMethod.KEY:
                if not self.config.cosmos_key:
                    raise RemoteAuthenticationError(
                        self.endpoint, "cosmos_key required for KEY authentication"
                    )
                self._credential = self.config.cosmos_key
            else:
                self._credential = DefaultAzureCredential()

            self._client = CosmosClient(self.endpoint, credential=self._credential)
            self._database = await self._client.create_database_if_not_exists(
                id=self.config.cosmos_database
            )
            self._container = await self._database.create_container_if_not_exists(
                id=self.config.cosmos_container,
                partition_key=PartitionKey(path=PARTITION_KEY_PATH),
            )
            self._initialized = True
            logger.info(
                f"Connected to Cosmos DB: {self.endpoint} "
                f"(database={self.config.cosmos_database}, "
                f"container={self.config.cosmos_container}, "
                f"auth={self.config.cosmos_auth_method.value})"
            )
        except ProjectStorageError:
            await self._release_client()
            raise
        except Exception as e:
            await self._release_client()
            raise self._classify_error(e) from e

        return self._container

    async def close(self) -> None:
        """Close the Cosmos client."""
        await self._release_client()

    async def _release_client(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
            self._database = None
            self._container = None
            self._initialized = False

        # AAD credentials hold their own HTTP session
        if self._credential is not None and hasattr(self._credential, "close"):
            await self._credential.close()
        self._credential = None

    def _classify_error(self, error: Exception) -> ProjectStorageError:
        if isinstance(error, ProjectStorageError):
            return error
        if isinstance(error, CosmosHttpResponseError):
            if error.status_code in (401, 403):
                return RemoteAuthenticationError(self.endpoint, str(error), error.status_code)
            return NetworkFailureError(self.endpoint, error, error.status_code)
        return NetworkFailureError(self.endpoint, error)

    # Primitives

    async def _read_document(self, user_id: str, project_id: str) -> dict[str, Any] | None:
        container = await self._ensure_initialized()
        try:
            return await container.read_item(item=project_id, partition_key=user_id)
        except CosmosResourceNotFoundError:
            return None

    async def _fetch(self, user_id: str, project_id: str) -> Project | None:
        doc = await self._read_document(user_id, project_id)
        if doc is None or not _is_live(doc):
            return None
        return document_to_project(doc)

    async def _fetch_listing(self, user_id: str) -> list[ProjectMetadata]:
        container = await self._ensure_initialized()
        query = (
            "SELECT c.id, c.name, c.created_at, c.updated_at, "
            f"LEFT(c.html, {PREVIEW_LENGTH}) AS preview "
            f"FROM c WHERE c.user_id = @user_id AND {LIVE_FILTER} "
            "ORDER BY c.updated_at DESC"
        )
        params: list[dict[str, Any]] = [{"name": "@user_id", "value": user_id}]

        listing: list[ProjectMetadata] = []
        async for doc in container.query_items(
            query=query,
            parameters=params,
            partition_key=user_id,
        ):
            listing.append(
                ProjectMetadata(
                    id=doc["id"],
                    name=doc.get("name") or "",
                    created_at=parse_timestamp(doc.get("created_at")),
                    updated_at=parse_timestamp(doc.get("updated_at") or doc.get("created_at")),
                    preview=doc.get("preview"),
                )
            )
        return listing

    async def _insert(self, user_id: str, project: Project) -> None:
        container = await self._ensure_initialized()
        doc = project_to_document(project, user_id)
        try:
            await container.create_item(body=doc)
            return
        except CosmosResourceExistsError:
            existing = await self._read_document(user_id, project.id)
            if existing is not None and _is_live(existing):
                raise ProjectConflictError(project.id, "already_exists") from None

        # Same id was tombstoned earlier: bring the row back with the new content
        logger.debug(f"Reviving soft-deleted project {project.id}")
        await container.upsert_item(body=doc)

    async def _update(
        self,
        user_id: str,
        project: Project,
        expected_updated_at: datetime | None,
    ) -> None:
        container = await self._ensure_initialized()
        existing = await self._read_document(user_id, project.id)
        if existing is None or not _is_live(existing):
            raise ProjectNotFoundError(project.id, user_id)

        if expected_updated_at is not None:
            stored = parse_timestamp(existing.get("updated_at"))
            if stored != expected_updated_at:
                raise ProjectConflictError(
                    project.id,
                    "stale_write",
                    expected_version=expected_updated_at.isoformat(),
                    remote_version=stored.isoformat(),
                )

        doc = project_to_document(project, user_id)
        doc["created_at"] = existing.get("created_at", doc["created_at"])
        await self._replace(container, user_id, project.id, doc, existing)

    async def _soft_delete(self, user_id: str, project_id: str, deleted_at: datetime) -> None:
        container = await self._ensure_initialized()
        existing = await self._read_document(user_id, project_id)
        if existing is None or not _is_live(existing):
            raise ProjectNotFoundError(project_id, user_id)

        doc = {k: v for k, v in existing.items() if not k.startswith("_")}
        doc["deleted_at"] = deleted_at.isoformat()
        await self._replace(container, user_id, project_id, doc, existing)

    async def _replace(
        self,
        container: ContainerProxy,
        user_id: str,
        project_id: str,
        doc: dict[str, Any],
        existing: dict[str, Any],
    ) -> None:
        """Replace a document only if it is unchanged since we read it."""
        try:
            await container.replace_item(
                item=project_id,
                body=doc,
                etag=existing.get("_etag"),
                match_condition=MatchConditions.IfNotModified,
            )
        except CosmosResourceNotFoundError:
            raise ProjectNotFoundError(project_id, user_id) from None
        except CosmosAccessConditionFailedError:
            raise ProjectConflictError(project_id, "concurrent_modification") from None
