"""
Abstract remote project storage.

Defines the contract every cloud backend must implement. The public
methods own the result semantics: they resolve the signed-in user first,
and convert every failure into an OperationResult (or None / [] for
reads). Backends only implement the protected primitives, which raise
the exceptions from ``playground_storage.exceptions``.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime

from ..exceptions import (
    AuthenticationRequiredError,
    NetworkFailureError,
    ProjectNotFoundError,
    ProjectStorageError,
    ProjectValidationError,
)
from ..id_utils import generate_project_id, is_valid_project_id
from ..identity import IdentityProvider
from ..models import (
    ExternalLibrary,
    OperationResult,
    Project,
    ProjectMetadata,
    next_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)


class RemoteProjectStore(ABC):
    """Per-user authoritative project storage with soft delete.

    Rows are scoped by owner. ``delete_project`` only sets ``deleted_at``;
    tombstoned rows are invisible to ``list_projects`` and ``load_project``.
    ``save_project`` never inserts: a missing row is reported as a
    NOT_FOUND failure, and callers that need upsert semantics use
    ``create_project_with_id``.
    """

    def __init__(self, identity: IdentityProvider) -> None:
        self.identity = identity

    @property
    def endpoint(self) -> str:
        """Human-readable location of the backend, for errors and logs."""
        return type(self).__name__

    # Public API

    async def create_project(
        self,
        name: str | None,
        html: str = "",
        css: str = "",
        javascript: str = "",
        libraries: list[ExternalLibrary] | None = None,
    ) -> OperationResult:
        """Create a project under a freshly allocated id."""
        return await self.create_project_with_id(
            Project.new(name, html, css, javascript, libraries)
        )

    async def create_project_with_id(self, project: Project) -> OperationResult:
        """Insert ``project`` keeping its id and timestamps.

        A tombstoned row with the same id is revived; a live one is a
        CONFLICT failure.
        """
        if not is_valid_project_id(project.id):
            return OperationResult.fail(ProjectValidationError("id", "Project ID is required"))
        try:
            user_id = await self._require_user()
            await self._insert(user_id, project)
        except Exception as e:
            return self._failure("create project", project.id, e)

        logger.info(f"Created remote project: {project.name} ({project.id})")
        return OperationResult.ok(project.id)

    async def save_project(
        self,
        project: Project,
        expected_updated_at: datetime | None = None,
    ) -> OperationResult:
        """Update the live row matching ``(project.id, current user)``.

        Sets ``updated_at`` on the passed project to the stored value.

        Args:
            project: Record to store
            expected_updated_at: When given, the write only succeeds if the
                stored row still carries this ``updated_at``; otherwise a
                CONFLICT failure is returned and nothing is written
        """
        if not is_valid_project_id(project.id):
            return OperationResult.fail(ProjectValidationError("id", "Project ID is required"))
        try:
            user_id = await self._require_user()
            updated = replace(project, updated_at=next_timestamp(project.updated_at))
            await self._update(user_id, updated, expected_updated_at)
        except Exception as e:
            return self._failure("save project", project.id, e)

        project.updated_at = updated.updated_at
        return OperationResult.ok(project.id)

    async def load_project(self, project_id: str) -> Project | None:
        """Load a live project. Missing, tombstoned and failed reads all return None."""
        try:
            user_id = await self._require_user()
            return await self._fetch(user_id, project_id)
        except Exception as e:
            self._failure("load project", project_id, e)
            return None

    async def list_projects(self) -> list[ProjectMetadata]:
        """List live projects, most recently updated first. Empty on failure."""
        try:
            user_id = await self._require_user()
            listing = await self._fetch_listing(user_id)
        except Exception as e:
            self._failure("list projects", None, e)
            return []
        return sorted(listing, key=lambda m: m.updated_at, reverse=True)

    async def duplicate_project(
        self, project_id: str, new_name: str | None = None
    ) -> OperationResult:
        """Copy a live project under a new id."""
        try:
            user_id = await self._require_user()
            original = await self._fetch(user_id, project_id)
            if original is None:
                raise ProjectNotFoundError(project_id, user_id)
            now = utc_now()
            duplicate = replace(
                original,
                id=generate_project_id(),
                name=new_name or f"{original.name} (Copy)",
                created_at=now,
                updated_at=now,
            )
            await self._insert(user_id, duplicate)
        except Exception as e:
            return self._failure("duplicate project", project_id, e)

        return OperationResult.ok(duplicate.id)

    async def update_project_name(self, project_id: str, name: str) -> OperationResult:
        """Rename a live project."""
        if not name or not name.strip():
            return OperationResult.fail(ProjectValidationError("name", "Project name is required"))
        try:
            user_id = await self._require_user()
            project = await self._fetch(user_id, project_id)
            if project is None:
                raise ProjectNotFoundError(project_id, user_id)
            project.name = name
            project.updated_at = next_timestamp(project.updated_at)
            await self._update(user_id, project, None)
        except Exception as e:
            return self._failure("rename project", project_id, e)

        return OperationResult.ok(project_id)

    async def delete_project(self, project_id: str) -> OperationResult:
        """Soft-delete a project by stamping ``deleted_at``."""
        try:
            user_id = await self._require_user()
            await self._soft_delete(user_id, project_id, utc_now())
        except Exception as e:
            return self._failure("delete project", project_id, e)

        logger.info(f"Soft-deleted remote project {project_id}")
        return OperationResult.ok()

    async def close(self) -> None:
        """Release backend resources."""
        pass

    # Backend primitives

    @abstractmethod
    async def _fetch(self, user_id: str, project_id: str) -> Project | None:
        """Return the live row for ``project_id`` or None."""
        ...

    @abstractmethod
    async def _fetch_listing(self, user_id: str) -> list[ProjectMetadata]:
        """Return metadata for every live row owned by ``user_id``."""
        ...

    @abstractmethod
    async def _insert(self, user_id: str, project: Project) -> None:
        """Insert a row with the given id.

        Raises:
            ProjectConflictError: If a live row with this id exists
        """
        ...

    @abstractmethod
    async def _update(
        self,
        user_id: str,
        project: Project,
        expected_updated_at: datetime | None,
    ) -> None:
        """Replace the live row for ``project.id``.

        Raises:
            ProjectNotFoundError: If no live row matches
            ProjectConflictError: If the stored ``updated_at`` differs from
                ``expected_updated_at`` or the row changed mid-write
        """
        ...

    @abstractmethod
    async def _soft_delete(self, user_id: str, project_id: str, deleted_at: datetime) -> None:
        """Tombstone the live row for ``project_id``.

        Raises:
            ProjectNotFoundError: If no live row matches
        """
        ...

    # Helpers

    async def _require_user(self) -> str:
        user_id = await self.identity.get_current_user_id()
        if not user_id:
            raise AuthenticationRequiredError()
        return user_id

    def _classify_error(self, error: Exception) -> ProjectStorageError:
        """Map a backend exception onto the storage error taxonomy."""
        if isinstance(error, ProjectStorageError):
            return error
        return NetworkFailureError(self.endpoint, error)

    def _failure(
        self, operation: str, project_id: str | None, error: Exception
    ) -> OperationResult:
        classified = self._classify_error(error)
        target = f" {project_id}" if project_id else ""
        if isinstance(classified, AuthenticationRequiredError):
            logger.debug(f"Skipped remote {operation}{target}: not signed in")
        else:
            logger.warning(f"Remote {operation}{target} failed: {classified.message}")
        return OperationResult.fail(classified)
