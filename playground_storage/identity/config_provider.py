"""
Config file identity provider.

Reads identity from a local YAML settings file. A file without an
``identity.user_id`` means the user is anonymous and storage stays
local-only.
"""

import logging
from pathlib import Path
from typing import Any

import yaml

from .provider import IdentityProvider
from .types import AuthProvider, UserIdentity

logger = logging.getLogger(__name__)


class ConfigFileIdentityProvider(IdentityProvider):
    """Identity provider that reads from local config.

    Configuration in ~/.playground/settings.yaml:

    ```yaml
    identity:
      user_id: "4f7c2a9e-..."
      display_name: "Alice Developer"
      email: "alice@example.com"
    ```

    ``sign_in`` and ``sign_out`` rewrite the identity section and notify
    subscribers. ``reload`` picks up edits made by another process.
    """

    def __init__(self, config_path: Path | None = None):
        """Initialize the config file provider.

        Args:
            config_path: Path to settings.yaml. Defaults to ~/.playground/settings.yaml
        """
        super().__init__()
        self.config_path = config_path or Path.home() / ".playground" / "settings.yaml"
        self._identity: UserIdentity | None = None
        self._loaded = False

    async def get_current_identity(self) -> UserIdentity | None:
        """Get the current identity from config (cached after first read)."""
        if not self._loaded:
            self._identity = self._read_identity()
            self._loaded = True
        return self._identity

    async def sign_in(
        self,
        user_id: str,
        display_name: str | None = None,
        email: str | None = None,
    ) -> UserIdentity:
        """Persist a signed-in identity and notify subscribers."""
        config = self._load_config()
        identity_config: dict[str, Any] = config.setdefault("identity", {})
        identity_config["user_id"] = user_id
        if display_name is not None:
            identity_config["display_name"] = display_name
        if email is not None:
            identity_config["email"] = email
        self._write_config(config)

        self._identity = self._read_identity()
        self._loaded = True
        self._notify(user_id)
        return self._identity  # type: ignore[return-value]

    async def sign_out(self) -> None:
        """Remove the identity from config and notify subscribers."""
        config = self._load_config()
        if "identity" in config:
            config["identity"].pop("user_id", None)
            self._write_config(config)

        had_identity = self._identity is not None
        self._identity = None
        self._loaded = True
        if had_identity:
            self._notify(None)

    async def reload(self) -> UserIdentity | None:
        """Re-read the settings file, notifying subscribers if the user changed."""
        previous = self._identity.user_id if self._identity else None
        self._identity = self._read_identity()
        self._loaded = True
        current = self._identity.user_id if self._identity else None
        if current != previous:
            self._notify(current)
        return self._identity

    @property
    def provider_type(self) -> AuthProvider:
        """Return CONFIG provider type."""
        return AuthProvider.CONFIG

    def _read_identity(self) -> UserIdentity | None:
        identity_config = self._load_config().get("identity") or {}
        user_id = identity_config.get("user_id")
        if not user_id:
            return None
        return UserIdentity(
            user_id=str(user_id),
            display_name=identity_config.get("display_name"),
            email=identity_config.get("email"),
            auth_provider=AuthProvider.CONFIG,
        )

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            content = yaml.safe_load(self.config_path.read_text())
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not read identity config {self.config_path}: {e}")
            return {}
        return content if isinstance(content, dict) else {}

    def _write_config(self, config: dict[str, Any]) -> None:
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        self.config_path.write_text(yaml.safe_dump(config, default_flow_style=False))
