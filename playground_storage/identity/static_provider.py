"""
In-process identity provider.

For hosts that run their own authentication and only need to tell the
storage layer who is signed in.
"""

from datetime import datetime

from .provider import IdentityProvider
from .types import AuthProvider, UserIdentity


class StaticIdentityProvider(IdentityProvider):
    """Identity provider whose state is set directly by the host.

    Usage:
        identity = StaticIdentityProvider()
        coordinator = ProjectSyncCoordinator(local, remote, identity)
        ...
        identity.sign_in("user-123")   # coordinator bootstraps from the cloud
        identity.clear()               # back to local-only
    """

    def __init__(self, user_id: str | None = None, display_name: str | None = None):
        super().__init__()
        self._identity: UserIdentity | None = None
        if user_id:
            self._identity = UserIdentity(
                user_id=user_id,
                display_name=display_name,
                auth_provider=AuthProvider.STATIC,
            )

    async def get_current_identity(self) -> UserIdentity | None:
        return self._identity

    def sign_in(
        self,
        user_id: str,
        display_name: str | None = None,
        email: str | None = None,
        token_expiry: datetime | None = None,
    ) -> UserIdentity:
        """Set the signed-in user and notify subscribers."""
        previous = self._identity.user_id if self._identity else None
        self._identity = UserIdentity(
            user_id=user_id,
            display_name=display_name,
            email=email,
            auth_provider=AuthProvider.STATIC,
            token_expiry=token_expiry,
        )
        if previous != user_id:
            self._notify(user_id)
        return self._identity

    async def sign_out(self) -> None:
        self.clear()

    def clear(self) -> None:
        """Synchronous sign-out for callers outside the event loop."""
        if self._identity is None:
            return
        self._identity = None
        self._notify(None)

    @property
    def provider_type(self) -> AuthProvider:
        return AuthProvider.STATIC
