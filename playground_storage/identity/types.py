"""
Identity types and data classes.

Defines the user identity handed to the storage layer by whatever
authentication system the host application uses.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class AuthProvider(Enum):
    """Where the identity comes from."""

    CONFIG = "config"  # Local settings file
    STATIC = "static"  # Set in-process by the host application


# Called with the new user id (or None after sign-out) whenever auth state changes.
AuthListener = Callable[[str | None], None]


@dataclass
class UserIdentity:
    """Identity of the signed-in user.

    Only ``user_id`` matters to storage: it scopes every remote
    operation. The other fields are informational.
    """

    user_id: str
    display_name: str | None = None
    email: str | None = None
    auth_provider: AuthProvider = AuthProvider.CONFIG
    token_expiry: datetime | None = None

    def is_authenticated(self) -> bool:
        """Check if the identity is still valid."""
        if not self.user_id:
            return False
        if self.token_expiry is None:
            return True
        return datetime.now(UTC) < self.token_expiry

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "user_id": self.user_id,
            "display_name": self.display_name,
            "email": self.email,
            "auth_provider": self.auth_provider.value,
            "token_expiry": self.token_expiry.isoformat() if self.token_expiry else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UserIdentity":
        """Deserialize from dictionary."""
        token_expiry = None
        if data.get("token_expiry"):
            token_expiry = datetime.fromisoformat(data["token_expiry"])

        return cls(
            user_id=data["user_id"],
            display_name=data.get("display_name"),
            email=data.get("email"),
            auth_provider=AuthProvider(data.get("auth_provider", "config")),
            token_expiry=token_expiry,
        )
