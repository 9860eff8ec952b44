"""
Identity provider abstract interface.

Defines the contract the storage layer consumes from authentication:
"who is signed in right now" plus a change notification.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable

from .types import AuthListener, AuthProvider, UserIdentity

logger = logging.getLogger(__name__)


class IdentityProvider(ABC):
    """Abstract identity provider.

    Implementations wrap a concrete auth system. The provider is
    responsible for:
    - Resolving the current identity (None when signed out)
    - Notifying subscribers when the signed-in user changes
    - Sign out
    """

    def __init__(self) -> None:
        self._listeners: list[AuthListener] = []

    @abstractmethod
    async def get_current_identity(self) -> UserIdentity | None:
        """Get the signed-in identity, or None when anonymous."""
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        """Sign out and notify subscribers."""
        ...

    @property
    @abstractmethod
    def provider_type(self) -> AuthProvider:
        """Get the provider type."""
        ...

    async def get_current_user_id(self) -> str | None:
        """Convenience: the signed-in user id, or None.

        Expired identities count as signed out.
        """
        identity = await self.get_current_identity()
        if identity is None or not identity.is_authenticated():
            return None
        return identity.user_id

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        """Register a callback for auth state changes.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, user_id: str | None) -> None:
        """Tell every subscriber about a new auth state."""
        for listener in list(self._listeners):
            try:
                listener(user_id)
            except Exception:
                logger.exception("Auth state listener failed")
