"""
Local file-based project storage.

The guaranteed fallback: works with no account and no network. Every
other layer may fail; this one must not lose work.

Directory structure:
{base_path}/
  projects.json    # {project_id: project record}
  active_project   # plain id of the active project
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

from ..config import StorageConfig
from ..exceptions import (
    ProjectNotFoundError,
    ProjectStorageError,
    ProjectValidationError,
    StorageFailureError,
)
from ..id_utils import generate_project_id, is_valid_project_id
from ..models import (
    DEFAULT_PROJECT_NAME,
    ExternalLibrary,
    OperationResult,
    Project,
    ProjectMetadata,
    next_timestamp,
    utc_now,
)
from .file_ops import read_json, read_text, remove_file, write_json_atomic, write_text_atomic

logger = logging.getLogger(__name__)

PROJECTS_FILE = "projects.json"
ACTIVE_PROJECT_FILE = "active_project"


class LocalProjectStore:
    """Single-device project storage backed by two files.

    Writes are last-writer-wins: ``save_project`` overwrites whatever is
    stored under the id. All read-modify-write cycles in this process are
    serialized by a lock; the files themselves are replaced atomically.
    """

    def __init__(self, config: StorageConfig | None = None) -> None:
        """Initialize local storage.

        Args:
            config: Storage configuration (only ``local_path`` is used)
        """
        self.config = config or StorageConfig()
        self.base_path: Path = self.config.local_dir
        self._lock = asyncio.Lock()

    @property
    def projects_file(self) -> Path:
        return self.base_path / PROJECTS_FILE

    @property
    def active_file(self) -> Path:
        return self.base_path / ACTIVE_PROJECT_FILE

    async def create_project(
        self,
        name: str | None,
        html: str = "",
        css: str = "",
        javascript: str = "",
        libraries: list[ExternalLibrary] | None = None,
    ) -> OperationResult:
        """Create a project, persist it and make it active."""
        project = Project.new(name, html, css, javascript, libraries)

        try:
            async with self._lock:
                projects = await self._read_all()
                projects[project.id] = project.to_dict()
                await self._write_all(projects)
                await self._write_active(project.id)
        except ProjectStorageError as e:
            logger.error(f"Failed to create project: {e}")
            return OperationResult.fail(e)

        logger.info(f"Created project: {project.name} ({project.id})")
        return OperationResult.ok(project.id)

    async def save_project(self, project: Project) -> OperationResult:
        """Overwrite the stored record for ``project.id``.

        Bumps ``updated_at`` on the passed project, never moving it
        backwards relative to its current value.
        """
        if not is_valid_project_id(project.id):
            return OperationResult.fail(ProjectValidationError("id", "Project ID is required"))

        project.updated_at = next_timestamp(project.updated_at)
        return await self.put_project(project)

    async def put_project(self, project: Project) -> OperationResult:
        """Write a record exactly as given, without touching its timestamps.

        Used to mirror a record fetched from the remote store.
        """
        if not is_valid_project_id(project.id):
            return OperationResult.fail(ProjectValidationError("id", "Project ID is required"))

        try:
            async with self._lock:
                projects = await self._read_all()
                projects[project.id] = project.to_dict()
                await self._write_all(projects)
        except ProjectStorageError as e:
            logger.error(f"Failed to save project {project.id}: {e}")
            return OperationResult.fail(e)

        logger.debug(f"Saved project: {project.name} ({project.id})")
        return OperationResult.ok(project.id)

    async def load_project(self, project_id: str) -> Project | None:
        """Load a project by id. Absence is not an error."""
        try:
            projects = await self._read_all()
        except ProjectStorageError as e:
            logger.error(f"Failed to load project {project_id}: {e}")
            return None

        record = projects.get(project_id)
        if record is None:
            return None
        return self._parse_record(record)

    async def list_projects(self) -> list[ProjectMetadata]:
        """List project metadata, most recently updated first."""
        try:
            projects = await self._read_all()
        except ProjectStorageError as e:
            logger.error(f"Failed to list projects: {e}")
            return []

        listing = [
            project.to_metadata()
            for project in (self._parse_record(r) for r in projects.values())
            if project is not None
        ]
        listing.sort(key=lambda m: m.updated_at, reverse=True)
        return listing

    async def duplicate_project(
        self, project_id: str, new_name: str | None = None
    ) -> OperationResult:
        """Copy a project under a new id and make the copy active."""
        try:
            async with self._lock:
                projects = await self._read_all()
                original = self._parse_record(projects.get(project_id))
                if original is None:
                    raise ProjectNotFoundError(project_id)

                now = utc_now()
                duplicate = replace(
                    original,
                    id=generate_project_id(),
                    name=new_name or f"{original.name} (Copy)",
                    created_at=now,
                    updated_at=now,
                    external_libraries=list(original.external_libraries),
                    settings=replace(original.settings),
                )
                projects[duplicate.id] = duplicate.to_dict()
                await self._write_all(projects)
                await self._write_active(duplicate.id)
        except ProjectStorageError as e:
            logger.error(f"Failed to duplicate project {project_id}: {e}")
            return OperationResult.fail(e)

        logger.info(f"Duplicated project: {original.name} -> {duplicate.name}")
        return OperationResult.ok(duplicate.id)

    async def update_project_name(self, project_id: str, name: str) -> OperationResult:
        """Rename a stored project."""
        if not name or not name.strip():
            return OperationResult.fail(ProjectValidationError("name", "Project name is required"))

        try:
            async with self._lock:
                projects = await self._read_all()
                project = self._parse_record(projects.get(project_id))
                if project is None:
                    raise ProjectNotFoundError(project_id)
                project.name = name
                project.updated_at = next_timestamp(project.updated_at)
                projects[project_id] = project.to_dict()
                await self._write_all(projects)
        except ProjectStorageError as e:
            logger.error(f"Failed to rename project {project_id}: {e}")
            return OperationResult.fail(e)

        return OperationResult.ok(project_id)

    async def delete_project(self, project_id: str) -> OperationResult:
        """Hard-delete a project.

        If it was active the pointer is cleared; the caller picks the
        replacement.
        """
        try:
            async with self._lock:
                projects = await self._read_all()
                record = projects.pop(project_id, None)
                if record is None:
                    raise ProjectNotFoundError(project_id)
                await self._write_all(projects)
                if await read_text(self.active_file) == project_id:
                    await remove_file(self.active_file)
        except ProjectStorageError as e:
            logger.error(f"Failed to delete project {project_id}: {e}")
            return OperationResult.fail(e)

        logger.info(f"Deleted project: {record.get('name')} ({project_id})")
        return OperationResult.ok()

    async def get_active_id(self) -> str | None:
        """Id the active pointer holds, whether or not it still resolves."""
        try:
            return await read_text(self.active_file)
        except ProjectStorageError as e:
            logger.error(f"Failed to read active project pointer: {e}")
            return None

    async def set_active_id(self, project_id: str) -> OperationResult:
        """Repoint the active project."""
        if not is_valid_project_id(project_id):
            return OperationResult.fail(ProjectValidationError("id", "Project ID is required"))
        try:
            await self._write_active(project_id)
        except ProjectStorageError as e:
            logger.error(f"Failed to set active project {project_id}: {e}")
            return OperationResult.fail(e)
        return OperationResult.ok(project_id)

    async def get_active_project(self) -> Project | None:
        """The project the active pointer resolves to, if any."""
        active_id = await self.get_active_id()
        return await self.load_project(active_id) if active_id else None

    async def initialize_default_project(
        self,
        html: str = "",
        css: str = "",
        javascript: str = "",
        libraries: list[ExternalLibrary] | None = None,
    ) -> Project:
        """Make sure exactly one valid active project exists and return it.

        Order of preference:
        1. Whatever the active pointer resolves to
        2. The most recently updated stored project (becomes active)
        3. A new project seeded with the given code (becomes active)

        Raises:
            StorageFailureError: If the seeded project cannot be persisted
        """
        active = await self.get_active_project()
        if active is not None:
            return active

        listing = await self.list_projects()
        if listing:
            most_recent = await self.load_project(listing[0].id)
            if most_recent is not None:
                await self.set_active_id(most_recent.id)
                return most_recent

        result = await self.create_project(DEFAULT_PROJECT_NAME, html, css, javascript, libraries)
        if result.success and result.project_id:
            created = await self.load_project(result.project_id)
            if created is not None:
                return created

        raise StorageFailureError("initialize_default_project", str(self.projects_file))

    async def close(self) -> None:
        """Close storage (no-op for local storage)."""
        pass

    async def _read_all(self) -> dict[str, Any]:
        data = await read_json(self.projects_file)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise StorageFailureError(
                "parse_projects",
                str(self.projects_file),
                ValueError("projects file must contain an object"),
            )
        return data

    async def _write_all(self, projects: dict[str, Any]) -> None:
        await write_json_atomic(self.projects_file, projects)

    async def _write_active(self, project_id: str) -> None:
        await write_text_atomic(self.active_file, project_id)

    def _parse_record(self, record: Any) -> Project | None:
        if record is None:
            return None
        try:
            return Project.from_dict(record)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Skipping malformed project record: {e}")
            return None
