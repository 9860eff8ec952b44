"""
Project data types.

Defines the Project record, its lightweight listing projection, the
external library descriptor, versioned per-project settings, and the
OperationResult returned by every store and coordinator command.

Records serialize to the camelCase layout used by the local projects
file (``externalLibraries``, ``createdAt``, ``updatedAt``). The remote
store maps the same fields onto its snake_case document schema.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from .exceptions import ErrorKind, ProjectStorageError
from .id_utils import generate_project_id

DEFAULT_PROJECT_NAME = "Untitled Project"
PREVIEW_LENGTH = 100

SETTINGS_VERSION = 1
DEFAULT_THEME: Literal["light", "dark"] = "dark"
DEFAULT_EDITOR_FONT_SIZE = 14
VALID_THEMES = ("light", "dark")


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


def parse_timestamp(value: str | datetime | None) -> datetime:
    """Parse an ISO-8601 timestamp, assuming UTC for naive values."""
    if value is None:
        return utc_now()
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def next_timestamp(previous: datetime | None) -> datetime:
    """Timestamp for a new write that never moves backwards from ``previous``."""
    now = utc_now()
    if previous is not None and previous > now:
        return previous
    return now


def normalize_name(name: str | None) -> str:
    """Fall back to the placeholder name for empty input."""
    if name is None or not name.strip():
        return DEFAULT_PROJECT_NAME
    return name


class LibraryType(Enum):
    """Kind of asset an external library injects into the preview."""

    CSS = "css"
    JS = "js"


@dataclass
class ExternalLibrary:
    """A CDN library attached to a project."""

    id: str
    name: str
    url: str
    type: LibraryType
    added_at: datetime
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the descriptor layout shared by both stores."""
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type.value,
            "addedAt": self.added_at.isoformat(),
        }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExternalLibrary:
        """Deserialize from dictionary."""
        return cls(
            id=data["id"],
            name=data["name"],
            url=data["url"],
            type=LibraryType(data["type"]),
            added_at=parse_timestamp(data.get("addedAt")),
            description=data.get("description"),
        )


# Settings migrations: each step upgrades a payload from version N to N + 1.
SettingsMigration = Callable[[dict[str, Any]], dict[str, Any]]


def _migrate_settings_v0(data: dict[str, Any]) -> dict[str, Any]:
    # v0 is the untyped map written before settings were versioned
    return {
        "version": 1,
        "autoSaveEnabled": data.get("autoSaveEnabled"),
        "theme": data.get("theme"),
        "editorFontSize": data.get("editorFontSize"),
    }


SETTINGS_MIGRATIONS: dict[int, SettingsMigration] = {
    0: _migrate_settings_v0,
}


@dataclass
class ProjectSettings:
    """Versioned per-project editor settings with explicit defaults.

    Older payloads are upgraded through SETTINGS_MIGRATIONS when loaded,
    so adding a field means bumping SETTINGS_VERSION and registering one
    migration step.
    """

    auto_save_enabled: bool = True
    theme: Literal["light", "dark"] = DEFAULT_THEME
    editor_font_size: int = DEFAULT_EDITOR_FONT_SIZE
    version: int = SETTINGS_VERSION

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "version": self.version,
            "autoSaveEnabled": self.auto_save_enabled,
            "theme": self.theme,
            "editorFontSize": self.editor_font_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ProjectSettings:
        """Deserialize, migrating older versions and repairing invalid values."""
        if not data:
            return cls()

        payload = dict(data)
        version = payload.get("version", 0)
        if not isinstance(version, int) or version < 0:
            version = 0
        while version < SETTINGS_VERSION:
            payload = SETTINGS_MIGRATIONS[version](payload)
            version = payload["version"]

        auto_save = payload.get("autoSaveEnabled")
        theme = payload.get("theme")
        font_size = payload.get("editorFontSize")

        return cls(
            auto_save_enabled=auto_save if isinstance(auto_save, bool) else True,
            theme=theme if theme in VALID_THEMES else DEFAULT_THEME,
            editor_font_size=(
                font_size
                if isinstance(font_size, int) and not isinstance(font_size, bool) and font_size > 0
                else DEFAULT_EDITOR_FONT_SIZE
            ),
            version=SETTINGS_VERSION,
        )


@dataclass
class ProjectMetadata:
    """Lightweight projection of a project used for listings.

    Never carries code bodies; ``preview`` is a short prefix of the HTML.
    """

    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    preview: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
            "preview": self.preview,
        }


@dataclass
class Project:
    """A complete playground project: code bodies plus metadata.

    Attributes:
        id: Opaque, immutable identifier shared by both stores
        name: Display name (placeholder when empty)
        html: HTML source
        css: CSS source
        javascript: JavaScript source
        external_libraries: Ordered CDN libraries injected into the preview
        settings: Per-project editor settings
        created_at: Creation time (UTC)
        updated_at: Last modification time (UTC), never decreasing
    """

    id: str
    name: str
    created_at: datetime
    updated_at: datetime
    html: str = ""
    css: str = ""
    javascript: str = ""
    external_libraries: list[ExternalLibrary] = field(default_factory=list)
    settings: ProjectSettings = field(default_factory=ProjectSettings)

    def __post_init__(self) -> None:
        """Apply the placeholder name."""
        self.name = normalize_name(self.name)

    @classmethod
    def new(
        cls,
        name: str | None,
        html: str = "",
        css: str = "",
        javascript: str = "",
        libraries: list[ExternalLibrary] | None = None,
    ) -> Project:
        """Build a never-persisted project under a freshly allocated id."""
        now = utc_now()
        return cls(
            id=generate_project_id(),
            name=normalize_name(name),
            created_at=now,
            updated_at=now,
            html=html,
            css=css,
            javascript=javascript,
            external_libraries=list(libraries or []),
            settings=ProjectSettings(),
        )

    def to_metadata(self) -> ProjectMetadata:
        """Project this record onto its listing metadata."""
        return ProjectMetadata(
            id=self.id,
            name=self.name,
            created_at=self.created_at,
            updated_at=self.updated_at,
            preview=self.html[:PREVIEW_LENGTH],
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the local record layout."""
        return {
            "id": self.id,
            "name": self.name,
            "html": self.html,
            "css": self.css,
            "javascript": self.javascript,
            "externalLibraries": [lib.to_dict() for lib in self.external_libraries],
            "settings": self.settings.to_dict(),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Project:
        """Deserialize from the local record layout."""
        created_at = parse_timestamp(data.get("createdAt"))
        return cls(
            id=data["id"],
            name=data.get("name") or DEFAULT_PROJECT_NAME,
            html=data.get("html") or "",
            css=data.get("css") or "",
            javascript=data.get("javascript") or "",
            external_libraries=[
                ExternalLibrary.from_dict(lib) for lib in data.get("externalLibraries") or []
            ],
            settings=ProjectSettings.from_dict(data.get("settings")),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt") or created_at),
        )


# In-memory mutators. These never touch a store; persistence is a separate step.


def update_project_code(project: Project, html: str, css: str, javascript: str) -> Project:
    """Return a copy of ``project`` with new code bodies and a bumped timestamp."""
    return replace(
        project,
        html=html,
        css=css,
        javascript=javascript,
        updated_at=next_timestamp(project.updated_at),
    )


def update_project_name(project: Project, name: str) -> Project:
    """Return a renamed copy of ``project``."""
    return replace(project, name=normalize_name(name), updated_at=next_timestamp(project.updated_at))


def update_external_libraries(project: Project, libraries: list[ExternalLibrary]) -> Project:
    """Return a copy of ``project`` with a new library list."""
    return replace(
        project,
        external_libraries=list(libraries),
        updated_at=next_timestamp(project.updated_at),
    )


@dataclass
class OperationResult:
    """Outcome of a store or coordinator command.

    Truthy when the command succeeded, so ``if await store.save_project(p):``
    reads naturally.
    """

    success: bool
    project_id: str | None = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    def __bool__(self) -> bool:
        return self.success

    @property
    def is_not_found(self) -> bool:
        """True when the failure means no matching row exists."""
        return self.error_kind == ErrorKind.NOT_FOUND

    @classmethod
    def ok(cls, project_id: str | None = None) -> OperationResult:
        """Successful result."""
        return cls(success=True, project_id=project_id)

    @classmethod
    def fail(cls, error: ProjectStorageError) -> OperationResult:
        """Failed result built from a storage exception."""
        return cls(success=False, error=error.message, error_kind=error.error_kind)
