"""
Identity management for project storage.

Provides the authentication collaborator consumed by the remote store
and the sync coordinator: the current user id (or None) plus change
notifications.
"""

from .config_provider import ConfigFileIdentityProvider
from .provider import IdentityProvider
from .static_provider import StaticIdentityProvider
from .types import AuthListener, AuthProvider, UserIdentity

__all__ = [
    # Types
    "AuthListener",
    "AuthProvider",
    "UserIdentity",
    # Providers
    "IdentityProvider",
    "ConfigFileIdentityProvider",
    "StaticIdentityProvider",
]
