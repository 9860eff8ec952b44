"""
Project sync coordinator.

Decides which store serves each command, merges their listings, and
keeps the local store holding a usable copy of everything the user did.

Architecture:
- The local store is always written and is the fallback for every read
- The remote store is used opportunistically while a user is signed in
- Remote failures are logged and recorded in the status, never raised
- Code edits stay in memory until an explicit save

Sign-in flow:
1. Identity provider reports a user
2. Offline work in the current project is scheduled for upload
   (debounced, so auth flapping during session restore uploads once)
3. Bootstrap adopts the most recent cloud project, if there is one
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from ..config import DEFAULT_AUTO_SYNC_DELAY, ConflictPolicy, StorageConfig
from ..exceptions import (
    AuthenticationRequiredError,
    ProjectStorageError,
    ProjectValidationError,
)
from ..identity import IdentityProvider
from ..local import LocalProjectStore
from ..logging_utils import StorageLoggerAdapter, get_storage_logger
from ..models import (
    ExternalLibrary,
    OperationResult,
    Project,
    ProjectMetadata,
    update_external_libraries,
    update_project_code,
    utc_now,
)
from ..models import update_project_name as renamed_project
from ..remote import CosmosProjectStore, RemoteProjectStore
from .debounce import DebouncedTask
from .merge import merge_listings
from .status import StatusListener, SyncStatus, SyncStatusTracker

logger = logging.getLogger(__name__)


@dataclass
class CoordinatorConfig:
    """Coordinator behavior.

    Attributes:
        seed_html: HTML for a project created when nothing exists yet
        seed_css: CSS for the seeded project
        seed_javascript: JavaScript for the seeded project
        seed_libraries: Libraries for the seeded project
        auto_sync_delay: Seconds between sign-in and uploading offline work
        conflict_policy: Whether remote saves overwrite unconditionally
    """

    seed_html: str = ""
    seed_css: str = ""
    seed_javascript: str = ""
    seed_libraries: list[ExternalLibrary] = field(default_factory=list)
    auto_sync_delay: float = DEFAULT_AUTO_SYNC_DELAY
    conflict_policy: ConflictPolicy = ConflictPolicy.LAST_WRITER_WINS

    @classmethod
    def from_storage_config(cls, config: StorageConfig, **seed: Any) -> CoordinatorConfig:
        """Take the timing and conflict settings from a StorageConfig."""
        return cls(
            auto_sync_delay=config.auto_sync_delay,
            conflict_policy=config.conflict_policy,
            **seed,
        )


class ProjectSyncCoordinator:
    """Single entry point for reading and writing playground projects.

    Commands return ``bool`` (or an OperationResult) and never raise.
    Commands that write are serialized by one lock, so two writes to the
    same project are never in flight at once.

    Usage:
        coordinator = ProjectSyncCoordinator(local, remote, identity)
        async with coordinator:
            coordinator.update_project_code(html, css, js)
            await coordinator.save_current_project()
    """

    def __init__(
        self,
        local: LocalProjectStore,
        remote: RemoteProjectStore | None,
        identity: IdentityProvider,
        config: CoordinatorConfig | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            local: Device store, always used
            remote: Cloud store; None runs local-only even when signed in
            identity: Source of the signed-in user and its changes
            config: Seed code, auto-sync delay and conflict policy
        """
        self.local = local
        self.remote = remote
        self.identity = identity
        self.config = config or CoordinatorConfig()

        self.auto_sync = DebouncedTask("auto-sync")

        self._current: Project | None = None
        self._project_list: list[ProjectMetadata] = []
        self._user_id: str | None = None
        self._tracker = SyncStatusTracker()
        self._lock = asyncio.Lock()
        self._unsubscribe: Callable[[], None] | None = None
        self._auth_tasks: set[asyncio.Task[None]] = set()
        # Remote updated_at last read or written per project (DETECT policy)
        self._remote_versions: dict[str, datetime] = {}
        self._log = StorageLoggerAdapter(get_storage_logger("sync"), {})

    @classmethod
    def from_config(
        cls,
        config: StorageConfig,
        identity: IdentityProvider,
        coordinator_config: CoordinatorConfig | None = None,
    ) -> ProjectSyncCoordinator:
        """Build stores from a StorageConfig. No remote store without an endpoint."""
        local = LocalProjectStore(config)
        remote = CosmosProjectStore(config, identity) if config.has_remote else None
        return cls(
            local,
            remote,
            identity,
            coordinator_config or CoordinatorConfig.from_storage_config(config),
        )

    # State

    @property
    def current_project(self) -> Project | None:
        return self._current

    @property
    def project_list(self) -> list[ProjectMetadata]:
        return list(self._project_list)

    @property
    def status(self) -> SyncStatus:
        return self._tracker.status

    @property
    def is_authenticated(self) -> bool:
        return self._user_id is not None

    @property
    def _remote_enabled(self) -> bool:
        return self.remote is not None and self._user_id is not None

    def subscribe_status(self, listener: StatusListener) -> Callable[[], None]:
        """Register a status listener. Returns the unsubscribe function."""
        return self._tracker.subscribe(listener)

    # Lifecycle

    async def start(self) -> bool:
        """Resolve the signed-in user, bootstrap and load the listing.

        Returns False when no project could be loaded or created locally;
        ``status.last_error`` then holds the storage failure.
        """
        self._user_id = await self.identity.get_current_user_id()
        self._unsubscribe = self.identity.subscribe(self._on_auth_change)

        async with self._lock:
            ready = await self._bootstrap()
            await self._refresh_list()

        if not ready:
            logger.error("Coordinator started without a usable project")
            return False

        logger.info(
            f"Coordinator started ({'signed in' if self.is_authenticated else 'local only'}), "
            f"{len(self._project_list)} projects"
        )
        return True

    async def close(self) -> None:
        """Stop listening for auth changes, finish started work, close stores."""
        self.auto_sync.cancel()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        await self.drain()

        await self.local.close()
        if self.remote is not None:
            await self.remote.close()

    async def drain(self) -> None:
        """Wait for auth transitions and any scheduled upload to finish."""
        while pending := [t for t in self._auth_tasks if not t.done()]:
            await asyncio.gather(*pending, return_exceptions=True)
        await self.auto_sync.wait()

    async def __aenter__(self) -> ProjectSyncCoordinator:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # Commands

    async def save_current_project(self) -> bool:
        """Persist the current project locally, then upload it if signed in.

        The result reflects the local write only.
        """
        async with self._lock:
            saved = await self._save_current()
            if saved:
                await self._refresh_list()
            return saved

    async def sync_current_project(self) -> OperationResult:
        """Upload the current project to the remote store now."""
        async with self._lock:
            if self._current is None:
                return OperationResult.fail(ProjectValidationError("project", "No current project"))
            if not self._remote_enabled:
                return OperationResult.fail(AuthenticationRequiredError())
            result = await self._upload(self._current)
            if result:
                await self._refresh_list()
            return result

    async def switch_project(self, project_id: str) -> bool:
        """Make ``project_id`` current, preferring the remote copy when signed in."""
        async with self._lock:
            log = self._log.bind(project_id=project_id, user_id=self._user_id)
            self._tracker.update(is_loading=True)
            try:
                project = None
                if self._remote_enabled:
                    project = await self.remote.load_project(project_id)
                    if project is not None:
                        self._remote_versions[project.id] = project.updated_at
                        await self._mirror(project)

                if project is None:
                    project = await self.local.load_project(project_id)

                if project is None:
                    log.warning("Cannot switch: project not found in any store")
                    self._tracker.update(last_error=f"Project not found: {project_id}")
                    return False

                activated = await self.local.set_active_id(project.id)
                if not activated:
                    log.error(f"Failed to repoint active project: {activated.error}")

                self._adopt(project)
                log.debug("Switched project")
                return True
            finally:
                self._tracker.update(is_loading=False)

    async def create_new_project(self, name: str | None = None) -> bool:
        """Create a seeded project and make it current."""
        async with self._lock:
            seed = self.config
            if self._remote_enabled:
                project = Project.new(
                    name, seed.seed_html, seed.seed_css, seed.seed_javascript, seed.seed_libraries
                )
                result = await self.remote.create_project_with_id(project)
                if result:
                    self._remote_versions[project.id] = project.updated_at
                    mirrored = await self._mirror(project, activate=True)
                    self._adopt(project)
                    await self._refresh_list()
                    return mirrored
                self._remote_failed("create project", result)

            result = await self.local.create_project(
                name, seed.seed_html, seed.seed_css, seed.seed_javascript, seed.seed_libraries
            )
            created = await self.local.load_project(result.project_id) if result else None
            if created is None:
                self._local_failed("create project", result)
                return False

            self._adopt(created)
            await self._refresh_list()
            return True

    async def duplicate_current_project(self, new_name: str | None = None) -> bool:
        """Copy the current project (as last stored) and make the copy current."""
        async with self._lock:
            current = self._current
            if current is None:
                return False

            if self._remote_enabled:
                result = await self.remote.duplicate_project(current.id, new_name)
                duplicate = await self.remote.load_project(result.project_id) if result else None
                if duplicate is not None:
                    self._remote_versions[duplicate.id] = duplicate.updated_at
                    mirrored = await self._mirror(duplicate, activate=True)
                    self._adopt(duplicate)
                    await self._refresh_list()
                    return mirrored
                self._remote_failed("duplicate project", result)

            result = await self.local.duplicate_project(current.id, new_name)
            duplicate = await self.local.load_project(result.project_id) if result else None
            if duplicate is None:
                self._local_failed("duplicate project", result)
                return False

            self._adopt(duplicate)
            await self._refresh_list()
            return True

    async def update_project_name(self, name: str) -> bool:
        """Rename the current project in every store that holds it."""
        if not name or not name.strip():
            return False

        async with self._lock:
            current = self._current
            if current is None:
                return False

            if self._remote_enabled:
                result = await self.remote.update_project_name(current.id, name)
                if result:
                    await self._observe_remote_version(current.id)
                else:
                    self._remote_failed("rename project", result)

            renamed = renamed_project(current, name)
            local_result = await self.local.update_project_name(current.id, name)
            if local_result.is_not_found:
                # Never saved on this device yet
                local_result = await self.local.put_project(renamed)
            if not local_result:
                self._local_failed("rename project", local_result)
                return False

            self._current = renamed
            await self._refresh_list()
            return True

    async def delete_project(self, project_id: str) -> bool:
        """Delete a project everywhere; deleting the current one re-bootstraps."""
        async with self._lock:
            remote_deleted = False
            if self._remote_enabled:
                result = await self.remote.delete_project(project_id)
                remote_deleted = result.success
                if not result and not result.is_not_found:
                    self._remote_failed("delete project", result)

            local_result = await self.local.delete_project(project_id)
            if not local_result and not (remote_deleted and local_result.is_not_found):
                self._local_failed("delete project", local_result)
                return False

            self._remote_versions.pop(project_id, None)
            if self._current is not None and self._current.id == project_id:
                self._current = None
                await self._bootstrap(local_only=True)

            await self._refresh_list()
            return True

    def update_project_code(self, html: str, css: str, javascript: str) -> bool:
        """Replace the current project's code in memory. Nothing is persisted."""
        if self._current is None:
            return False
        self._current = update_project_code(self._current, html, css, javascript)
        self._tracker.update(pending_changes=True)
        return True

    def update_external_libraries(self, libraries: list[ExternalLibrary]) -> bool:
        """Replace the current project's libraries in memory. Nothing is persisted."""
        if self._current is None:
            return False
        self._current = update_external_libraries(self._current, libraries)
        self._tracker.update(pending_changes=True)
        return True

    async def refresh_project_list(self) -> list[ProjectMetadata]:
        """Reload the merged listing."""
        async with self._lock:
            return await self._refresh_list()

    # Auth transitions

    def _on_auth_change(self, user_id: str | None) -> None:
        previous = self._user_id
        if previous == user_id:
            return
        self._user_id = user_id

        # Pending upload belonged to the previous state
        self.auto_sync.cancel()

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Auth state changed outside the event loop; listing not refreshed")
            return

        if previous is None and self._current is not None and self.remote is not None:
            project_id = self._current.id
            self.auto_sync.schedule(
                self.config.auto_sync_delay,
                lambda: self._auto_sync(project_id),
            )

        task = loop.create_task(self._handle_auth_change(user_id))
        self._auth_tasks.add(task)
        task.add_done_callback(self._auth_tasks.discard)

    async def _handle_auth_change(self, user_id: str | None) -> None:
        async with self._lock:
            if user_id != self._user_id:
                # Superseded by a later transition
                return

            if user_id is None:
                logger.info("Signed out; continuing with local storage")
                await self._refresh_list()
                return

            logger.info(f"Signed in as {user_id}; loading cloud projects")
            if self._current is not None and self.status.pending_changes:
                # Keep unsaved edits on disk before bootstrap replaces them
                await self._save_local(self._current)
            await self._bootstrap()
            await self._refresh_list()

    async def _auto_sync(self, project_id: str) -> None:
        async with self._lock:
            if not self._remote_enabled:
                return
            if self._current is not None and self._current.id == project_id:
                await self._save_current()
            else:
                project = await self.local.load_project(project_id)
                if project is None:
                    return
                await self._upload(project)
            await self._refresh_list()

    # Internals (callers hold the lock)

    async def _bootstrap(self, local_only: bool = False) -> bool:
        self._tracker.update(is_loading=True)
        try:
            project = None
            if self._remote_enabled and not local_only:
                project = await self._load_most_recent_remote()

            if project is None:
                seed = self.config
                project = await self.local.initialize_default_project(
                    seed.seed_html, seed.seed_css, seed.seed_javascript, seed.seed_libraries
                )

            self._adopt(project)
            return True
        except ProjectStorageError as e:
            logger.error(f"Bootstrap failed: {e.message}")
            self._tracker.update(last_error=e.message)
            return False
        finally:
            self._tracker.update(is_loading=False)

    async def _load_most_recent_remote(self) -> Project | None:
        listing = await self.remote.list_projects()
        if not listing:
            return None

        project = await self.remote.load_project(listing[0].id)
        if project is None:
            return None

        self._remote_versions[project.id] = project.updated_at
        await self._mirror(project, activate=True)
        return project

    async def _observe_remote_version(self, project_id: str) -> None:
        """Record the stored version after a write that changed it remotely."""
        stored = await self.remote.load_project(project_id)
        if stored is not None:
            self._remote_versions[project_id] = stored.updated_at

    async def _refresh_list(self) -> list[ProjectMetadata]:
        local_listing = await self.local.list_projects()
        if self._remote_enabled:
            remote_listing = await self.remote.list_projects()
            self._project_list = merge_listings(remote_listing, local_listing)
        else:
            self._project_list = local_listing
        return self.project_list

    async def _save_current(self) -> bool:
        project = self._current
        if project is None:
            return False

        if not await self._save_local(project):
            return False

        if self._remote_enabled:
            await self._upload(project)
        return True

    async def _save_local(self, project: Project) -> bool:
        self._tracker.update(is_saving=True)
        result = await self.local.save_project(project)
        if not result:
            self._tracker.update(is_saving=False)
            self._local_failed("save project", result)
            return False
        self._tracker.update(is_saving=False, pending_changes=False, last_error=None)
        return True

    async def _upload(self, project: Project) -> OperationResult:
        """Update the remote row, inserting it under the same id if missing."""
        log = self._log.bind(project_id=project.id, user_id=self._user_id)
        self._tracker.update(is_syncing=True)

        expected = None
        if self.config.conflict_policy == ConflictPolicy.DETECT:
            expected = self._remote_versions.get(project.id)

        outgoing = replace(project)
        result = await self.remote.save_project(outgoing, expected_updated_at=expected)
        if result.is_not_found:
            log.debug("Project not in cloud yet; inserting with its local id")
            result = await self.remote.create_project_with_id(outgoing)

        if result:
            self._remote_versions[project.id] = outgoing.updated_at
            self._tracker.update(is_syncing=False, last_synced_at=utc_now(), last_error=None)
            log.debug("Project synced")
        else:
            self._tracker.update(is_syncing=False, last_error=result.error)
            log.warning(f"Remote sync failed ({result.error_kind}): {result.error}")
        return result

    async def _mirror(self, project: Project, activate: bool = False) -> bool:
        """Copy a remote record into the local store unchanged."""
        result = await self.local.put_project(project)
        if result and activate:
            result = await self.local.set_active_id(project.id)
        if not result:
            self._local_failed("mirror project", result)
        return result.success

    def _adopt(self, project: Project) -> None:
        self._current = project
        self._tracker.update(pending_changes=False)

    def _remote_failed(self, operation: str, result: OperationResult | None) -> None:
        error = result.error if result is not None and result.error else "remote copy unavailable"
        self._log.bind(user_id=self._user_id).warning(
            f"Remote {operation} failed, using local store: {error}"
        )
        self._tracker.update(last_error=error)

    def _local_failed(self, operation: str, result: OperationResult | None) -> None:
        error = result.error if result is not None and result.error else "unknown error"
        self._log.error(f"Local {operation} failed: {error}")
        self._tracker.update(last_error=error)
