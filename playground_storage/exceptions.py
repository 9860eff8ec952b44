"""
Custom exceptions for project storage.

Stores raise these internally; the public store and coordinator APIs turn
them into OperationResult failures so callers never see an exception.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Classification of a storage failure."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    AUTH_REQUIRED = "auth_required"
    STORAGE = "storage"
    NETWORK = "network"
    CONFLICT = "conflict"


class ProjectStorageError(Exception):
    """Base exception for all project storage errors."""

    error_kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ProjectValidationError(ProjectStorageError):
    """Raised when a write is missing a required field (id, name)."""

    error_kind = ErrorKind.VALIDATION

    def __init__(self, field: str, reason: str):
        super().__init__(f"Validation failed for {field}: {reason}", {"field": field})
        self.field = field
        self.reason = reason


class ProjectNotFoundError(ProjectStorageError):
    """Raised when a project does not exist (or is soft-deleted)."""

    error_kind = ErrorKind.NOT_FOUND

    def __init__(self, project_id: str, user_id: str | None = None):
        details = {"project_id": project_id}
        if user_id:
            details["user_id"] = user_id
        super().__init__(f"Project not found: {project_id}", details)
        self.project_id = project_id
        self.user_id = user_id


class AuthenticationRequiredError(ProjectStorageError):
    """Raised when a remote operation is attempted without a signed-in user."""

    error_kind = ErrorKind.AUTH_REQUIRED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class StorageFailureError(ProjectStorageError):
    """Raised when a local read or write fails (I/O, quota, corrupt data)."""

    error_kind = ErrorKind.STORAGE

    def __init__(self, operation: str, path: str | None = None, cause: Exception | None = None):
        details = {"operation": operation}
        if path:
            details["path"] = path
        if cause:
            details["cause"] = str(cause)
        message = f"Storage failure during {operation}"
        if path:
            message += f": {path}"
        super().__init__(message, details)
        self.operation = operation
        self.path = path
        self.cause = cause


class NetworkFailureError(ProjectStorageError):
    """Raised when the remote store cannot be reached or reports a server error.

    Note: Named NetworkFailureError to avoid shadowing the builtin ConnectionError.
    """

    error_kind = ErrorKind.NETWORK

    def __init__(
        self,
        endpoint: str,
        cause: Exception | None = None,
        status_code: int | None = None,
        message: str | None = None,
    ):
        details: dict = {"endpoint": endpoint}
        if cause:
            details["cause"] = str(cause)
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message or f"Remote request failed for {endpoint}", details)
        self.endpoint = endpoint
        self.cause = cause
        self.status_code = status_code


class RemoteAuthenticationError(NetworkFailureError):
    """Raised when the remote backend rejects our credentials (401/403)."""

    def __init__(self, endpoint: str, reason: str | None = None, status_code: int | None = None):
        super().__init__(
            endpoint,
            status_code=status_code,
            message=f"Authentication failed for {endpoint}",
        )
        if reason:
            self.details["reason"] = reason
        self.reason = reason


class ProjectConflictError(ProjectStorageError):
    """Raised when a remote write is rejected because the row changed or already exists."""

    error_kind = ErrorKind.CONFLICT

    def __init__(
        self,
        project_id: str,
        conflict_type: str,
        expected_version: str | None = None,
        remote_version: str | None = None,
    ):
        details = {"project_id": project_id, "conflict_type": conflict_type}
        if expected_version:
            details["expected_version"] = expected_version
        if remote_version:
            details["remote_version"] = remote_version
        super().__init__(f"Conflict on project {project_id}: {conflict_type}", details)
        self.project_id = project_id
        self.conflict_type = conflict_type
        self.expected_version = expected_version
        self.remote_version = remote_version
