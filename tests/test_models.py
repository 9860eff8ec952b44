"""Tests for project data types."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from playground_storage.exceptions import ErrorKind, ProjectNotFoundError
from playground_storage.models import (
    DEFAULT_EDITOR_FONT_SIZE,
    DEFAULT_PROJECT_NAME,
    PREVIEW_LENGTH,
    SETTINGS_VERSION,
    ExternalLibrary,
    LibraryType,
    OperationResult,
    Project,
    ProjectSettings,
    next_timestamp,
    parse_timestamp,
    update_external_libraries,
    update_project_code,
    update_project_name,
)


def make_library(name: str = "lodash") -> ExternalLibrary:
    return ExternalLibrary(
        id=f"lib-{name}",
        name=name,
        url=f"https://cdn.example.com/{name}.js",
        type=LibraryType.JS,
        added_at=datetime(2024, 1, 1, tzinfo=UTC),
    )


class TestTimestamps:
    """Tests for timestamp helpers."""

    def test_parse_z_suffix(self) -> None:
        """Trailing Z is read as UTC."""
        parsed = parse_timestamp("2024-03-01T12:00:00Z")
        assert parsed == datetime(2024, 3, 1, 12, tzinfo=UTC)

    def test_parse_naive_assumes_utc(self) -> None:
        """Naive timestamps are treated as UTC."""
        parsed = parse_timestamp("2024-03-01T12:00:00")
        assert parsed.tzinfo is not None
        assert parsed == datetime(2024, 3, 1, 12, tzinfo=UTC)

    def test_next_timestamp_never_moves_backwards(self) -> None:
        """A write after a future-dated one keeps the later value."""
        future = datetime.now(UTC) + timedelta(hours=1)
        assert next_timestamp(future) == future

    def test_next_timestamp_advances_from_past(self) -> None:
        """A write after an old one uses the current time."""
        past = datetime(2020, 1, 1, tzinfo=UTC)
        assert next_timestamp(past) > past


class TestProjectSettings:
    """Tests for versioned settings."""

    def test_defaults(self) -> None:
        settings = ProjectSettings()
        assert settings.auto_save_enabled is True
        assert settings.theme == "dark"
        assert settings.editor_font_size == DEFAULT_EDITOR_FONT_SIZE
        assert settings.version == SETTINGS_VERSION

    def test_empty_payload_gives_defaults(self) -> None:
        assert ProjectSettings.from_dict(None) == ProjectSettings()
        assert ProjectSettings.from_dict({}) == ProjectSettings()

    def test_unversioned_payload_is_migrated(self) -> None:
        """An untyped map from before versioning keeps its values."""
        settings = ProjectSettings.from_dict(
            {"autoSaveEnabled": False, "theme": "light", "editorFontSize": 18}
        )

        assert settings.version == SETTINGS_VERSION
        assert settings.auto_save_enabled is False
        assert settings.theme == "light"
        assert settings.editor_font_size == 18

    def test_invalid_values_are_repaired(self) -> None:
        """Unknown themes and bad font sizes fall back to defaults."""
        settings = ProjectSettings.from_dict(
            {"version": 1, "autoSaveEnabled": "yes", "theme": "neon", "editorFontSize": -3}
        )

        assert settings.auto_save_enabled is True
        assert settings.theme == "dark"
        assert settings.editor_font_size == DEFAULT_EDITOR_FONT_SIZE

    def test_round_trip(self) -> None:
        settings = ProjectSettings(auto_save_enabled=False, theme="light", editor_font_size=12)
        assert ProjectSettings.from_dict(settings.to_dict()) == settings


class TestProject:
    """Tests for the Project record."""

    def test_empty_name_gets_placeholder(self) -> None:
        project = Project.new("   ")
        assert project.name == DEFAULT_PROJECT_NAME

    def test_new_project_timestamps_match(self) -> None:
        project = Project.new("Demo", html="<p>hi</p>")
        assert project.created_at == project.updated_at
        assert project.id

    def test_metadata_preview_is_truncated(self) -> None:
        project = Project.new("Long", html="x" * 500)
        meta = project.to_metadata()

        assert meta.preview == "x" * PREVIEW_LENGTH
        assert meta.id == project.id
        assert meta.updated_at == project.updated_at

    def test_local_record_layout_is_camel_case(self) -> None:
        project = Project.new("Demo", libraries=[make_library()])
        data = project.to_dict()

        assert "externalLibraries" in data
        assert "createdAt" in data
        assert "updatedAt" in data
        assert data["externalLibraries"][0]["addedAt"] == "2024-01-01T00:00:00+00:00"

    def test_from_dict_restores_everything(self) -> None:
        project = Project.new("Demo", "<p>a</p>", "p {}", "console.log(1)", [make_library()])
        restored = Project.from_dict(project.to_dict())

        assert restored == project

    def test_from_dict_tolerates_missing_optional_fields(self) -> None:
        restored = Project.from_dict({"id": "abc", "createdAt": "2024-01-01T00:00:00Z"})

        assert restored.name == DEFAULT_PROJECT_NAME
        assert restored.html == ""
        assert restored.external_libraries == []
        assert restored.updated_at == restored.created_at


class TestInMemoryMutators:
    """Tests for pure update helpers."""

    def test_update_code_returns_new_copy(self) -> None:
        project = Project.new("Demo")
        project.updated_at = datetime(2020, 1, 1, tzinfo=UTC)

        updated = update_project_code(project, "<b>x</b>", "b {}", "let a")

        assert updated is not project
        assert project.html == ""
        assert (updated.html, updated.css, updated.javascript) == ("<b>x</b>", "b {}", "let a")
        assert updated.updated_at > project.updated_at
        assert updated.id == project.id

    def test_update_name_uses_placeholder(self) -> None:
        project = Project.new("Demo")
        assert update_project_name(project, "").name == DEFAULT_PROJECT_NAME
        assert update_project_name(project, "Renamed").name == "Renamed"

    def test_update_libraries_preserves_order(self) -> None:
        project = Project.new("Demo")
        libraries = [make_library("b"), make_library("a")]

        updated = update_external_libraries(project, libraries)

        assert [lib.name for lib in updated.external_libraries] == ["b", "a"]
        assert updated.external_libraries is not libraries


class TestOperationResult:
    """Tests for OperationResult."""

    def test_ok_is_truthy(self) -> None:
        result = OperationResult.ok("p1")
        assert result
        assert result.project_id == "p1"
        assert result.error is None

    def test_fail_carries_kind(self) -> None:
        result = OperationResult.fail(ProjectNotFoundError("p1"))

        assert not result
        assert result.error_kind == ErrorKind.NOT_FOUND
        assert result.is_not_found
        assert "p1" in (result.error or "")
