"""
Storage configuration.

Configuration can be provided directly, via environment variables, or via
the ``storage`` section of a YAML settings file.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".playground" / "settings.yaml"
DEFAULT_AUTO_SYNC_DELAY = 2.0


class CosmosAuthMethod(Enum):
    """Authentication method for Cosmos DB.

    KEY: Use account key (development, or where org policy allows)
    DEFAULT_CREDENTIAL: Use Azure DefaultAzureCredential (recommended)
    """

    KEY = "key"
    DEFAULT_CREDENTIAL = "default_credential"


class ConflictPolicy(Enum):
    """How remote saves treat a row that changed since we last saw it.

    LAST_WRITER_WINS: Overwrite unconditionally (default)
    DETECT: Send the last observed updated_at as a precondition and
        report a conflict instead of overwriting
    """

    LAST_WRITER_WINS = "last_writer_wins"
    DETECT = "detect"


@dataclass
class StorageConfig:
    """Configuration for project storage.

    Environment Variables:
        PLAYGROUND_LOCAL_STORAGE_PATH: Directory for the local projects file
        PLAYGROUND_COSMOS_ENDPOINT: Cosmos DB endpoint URL
        PLAYGROUND_COSMOS_KEY: Cosmos DB key (if using key auth)
        PLAYGROUND_COSMOS_AUTH_METHOD: key | default_credential
        PLAYGROUND_COSMOS_DATABASE: Database name (default: playground-db)
        PLAYGROUND_COSMOS_CONTAINER: Container name (default: projects)
        PLAYGROUND_AUTO_SYNC_DELAY: Seconds to wait after sign-in before uploading
        PLAYGROUND_CONFLICT_POLICY: last_writer_wins | detect

    Attributes:
        local_path: Directory for local storage (default: ~/.playground/projects)
        cosmos_endpoint: Cosmos DB endpoint URL; remote sync is off when unset
        cosmos_auth_method: Authentication method (default: DEFAULT_CREDENTIAL)
        cosmos_key: Cosmos DB key (only for KEY auth method)
        cosmos_database: Cosmos DB database name
        cosmos_container: Cosmos DB container name
        auto_sync_delay: Debounce before uploading offline work after sign-in
        conflict_policy: Remote save conflict handling
    """

    local_path: str | None = None

    cosmos_endpoint: str | None = None
    cosmos_auth_method: CosmosAuthMethod = CosmosAuthMethod.DEFAULT_CREDENTIAL
    cosmos_key: str | None = None
    cosmos_database: str = "playground-db"
    cosmos_container: str = "projects"

    auto_sync_delay: float = DEFAULT_AUTO_SYNC_DELAY
    conflict_policy: ConflictPolicy = ConflictPolicy.LAST_WRITER_WINS

    @property
    def has_remote(self) -> bool:
        """Whether a remote endpoint is configured."""
        return bool(self.cosmos_endpoint)

    @property
    def local_dir(self) -> Path:
        """Resolved directory for local storage."""
        if self.local_path:
            return Path(self.local_path)
        return Path.home() / ".playground" / "projects"

    @classmethod
    def from_environment(cls) -> StorageConfig:
        """Create configuration from environment variables."""
        return cls._from_mapping(
            {
                "local_path": os.environ.get("PLAYGROUND_LOCAL_STORAGE_PATH"),
                "cosmos_endpoint": os.environ.get("PLAYGROUND_COSMOS_ENDPOINT"),
                "cosmos_key": os.environ.get("PLAYGROUND_COSMOS_KEY"),
                "cosmos_auth_method": os.environ.get("PLAYGROUND_COSMOS_AUTH_METHOD"),
                "cosmos_database": os.environ.get("PLAYGROUND_COSMOS_DATABASE"),
                "cosmos_container": os.environ.get("PLAYGROUND_COSMOS_CONTAINER"),
                "auto_sync_delay": os.environ.get("PLAYGROUND_AUTO_SYNC_DELAY"),
                "conflict_policy": os.environ.get("PLAYGROUND_CONFLICT_POLICY"),
            }
        )

    @classmethod
    def from_settings_file(cls, path: Path | None = None) -> StorageConfig:
        """Create configuration from the ``storage`` section of settings.yaml.

        ```yaml
        storage:
          local_path: ~/.playground/projects
          cosmos_endpoint: https://example.documents.azure.com:443/
          cosmos_auth_method: default_credential
          auto_sync_delay: 2.0
          conflict_policy: last_writer_wins
        ```

        A missing or unreadable file yields the defaults.
        """
        settings_path = path or DEFAULT_SETTINGS_PATH
        if not settings_path.exists():
            return cls()

        try:
            content = yaml.safe_load(settings_path.read_text()) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read settings file {settings_path}: {e}")
            return cls()

        section = content.get("storage") if isinstance(content, dict) else None
        if not isinstance(section, dict):
            return cls()
        return cls._from_mapping(section)

    @classmethod
    def _from_mapping(cls, values: dict[str, Any]) -> StorageConfig:
        """Build a config from loosely-typed values, skipping unset ones."""
        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {
            key: value for key, value in values.items() if key in known and value not in (None, "")
        }

        if "local_path" in kwargs:
            kwargs["local_path"] = str(Path(str(kwargs["local_path"])).expanduser())

        if "cosmos_auth_method" in kwargs:
            try:
                kwargs["cosmos_auth_method"] = CosmosAuthMethod(
                    str(kwargs["cosmos_auth_method"]).lower()
                )
            except ValueError:
                kwargs["cosmos_auth_method"] = CosmosAuthMethod.DEFAULT_CREDENTIAL

        if "conflict_policy" in kwargs:
            try:
                kwargs["conflict_policy"] = ConflictPolicy(str(kwargs["conflict_policy"]).lower())
            except ValueError:
                kwargs["conflict_policy"] = ConflictPolicy.LAST_WRITER_WINS

        if "auto_sync_delay" in kwargs:
            try:
                kwargs["auto_sync_delay"] = max(0.0, float(kwargs["auto_sync_delay"]))
            except (TypeError, ValueError):
                kwargs["auto_sync_delay"] = DEFAULT_AUTO_SYNC_DELAY

        return cls(**kwargs)
