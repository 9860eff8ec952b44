"""
Playground Storage

Persistence and sync layer for a browser code playground.

Provides:
- Local file storage that works with no account and no network
- Cosmos DB storage scoped per user, with soft delete
- A sync coordinator that merges both and uploads offline work on sign-in

Usage:

    >>> from playground_storage import (
    ...     CoordinatorConfig, LocalProjectStore, CosmosProjectStore,
    ...     ProjectSyncCoordinator, StaticIdentityProvider, StorageConfig,
    ... )
    >>> config = StorageConfig.from_environment()
    >>> identity = StaticIdentityProvider()
    >>> coordinator = ProjectSyncCoordinator(
    ...     LocalProjectStore(config),
    ...     CosmosProjectStore(config, identity),
    ...     identity,
    ...     CoordinatorConfig(seed_html="<h1>Hello</h1>"),
    ... )
    >>> async with coordinator:
    ...     coordinator.update_project_code(html, css, javascript)
    ...     await coordinator.save_current_project()   # local, then cloud
    ...     identity.sign_in("user-123")                # bootstrap from cloud

Local-only:

    # No Cosmos endpoint configured: the coordinator runs without a remote store
    coordinator = ProjectSyncCoordinator.from_config(StorageConfig(), identity)
"""

# Configuration
from .config import ConflictPolicy, CosmosAuthMethod, StorageConfig

# Exceptions
from .exceptions import (
    AuthenticationRequiredError,
    ErrorKind,
    NetworkFailureError,
    ProjectConflictError,
    ProjectNotFoundError,
    ProjectStorageError,
    ProjectValidationError,
    RemoteAuthenticationError,
    StorageFailureError,
)
from .id_utils import generate_library_id, generate_project_id

# Identity
from .identity import (
    ConfigFileIdentityProvider,
    IdentityProvider,
    StaticIdentityProvider,
    UserIdentity,
)

# Stores
from .local import LocalProjectStore
from .models import (
    ExternalLibrary,
    LibraryType,
    OperationResult,
    Project,
    ProjectMetadata,
    ProjectSettings,
    update_external_libraries,
    update_project_code,
    update_project_name,
)
from .remote import CosmosProjectStore, RemoteProjectStore

# Sync
from .sync import CoordinatorConfig, ProjectSyncCoordinator, SyncStatus, merge_listings

__all__ = [
    # Data types
    "Project",
    "ProjectMetadata",
    "ProjectSettings",
    "ExternalLibrary",
    "LibraryType",
    "OperationResult",
    "update_project_code",
    "update_project_name",
    "update_external_libraries",
    "generate_project_id",
    "generate_library_id",
    # Configuration
    "StorageConfig",
    "CosmosAuthMethod",
    "ConflictPolicy",
    # Stores
    "LocalProjectStore",
    "RemoteProjectStore",
    "CosmosProjectStore",
    # Sync
    "ProjectSyncCoordinator",
    "CoordinatorConfig",
    "SyncStatus",
    "merge_listings",
    # Identity
    "IdentityProvider",
    "UserIdentity",
    "ConfigFileIdentityProvider",
    "StaticIdentityProvider",
    # Exceptions
    "ErrorKind",
    "ProjectStorageError",
    "ProjectValidationError",
    "ProjectNotFoundError",
    "AuthenticationRequiredError",
    "StorageFailureError",
    "NetworkFailureError",
    "RemoteAuthenticationError",
    "ProjectConflictError",
]

__version__ = "0.1.0"
