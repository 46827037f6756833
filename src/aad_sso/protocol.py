"""
Protocols for the host collaborators the auth core talks to.

The core never imports a concrete store: the host (or aad_sso.stores for the
demo app and tests) supplies objects that satisfy these protocols.
"""

from typing import Any, List, Optional, Protocol, Set, runtime_checkable

from .config import ClientConfiguration
from .models import Role


@runtime_checkable
class OAuthProvider(Protocol):
    """Protocol for an OAuth/OIDC provider (e.g. Azure AD)."""

    name: str

    async def login_redirect(self, request, redirect_uri: str):
        """Redirect the user to the identity provider login page."""
        ...

    async def handle_callback(self, request, redirect_uri: str) -> tuple:
        """Handle the OAuth callback: return (tokens, user_info, group_sources)."""
        ...


@runtime_checkable
class ConfigStore(Protocol):
    """Read-only source of client configuration."""

    def get_client_config(self, provider_key: str) -> ClientConfiguration:
        ...

    def is_client_enabled(self, provider_key: str) -> bool:
        ...


@runtime_checkable
class RoleStore(Protocol):
    """Local roles and user role assignments. list_all_roles excludes anonymous/authenticated."""

    def list_all_roles(self) -> List[Role]:
        ...

    def get_user_roles(self, user_id: str) -> Set[str]:
        ...

    def add_role_to_user(self, user_id: str, role_id: str) -> None:
        ...

    def remove_role_from_user(self, user_id: str, role_id: str) -> None:
        ...


@runtime_checkable
class UserStateStore(Protocol):
    """Per-user key/value storage scoped by (namespace, user_id, key)."""

    def get(self, namespace: str, user_id: str, key: str) -> Optional[Any]:
        ...

    def set(self, namespace: str, user_id: str, key: str, value: Any) -> None:
        ...


@runtime_checkable
class AccountStore(Protocol):
    """Account status, used to unblock accounts granted an administrative role."""

    def is_active(self, user_id: str) -> bool:
        ...

    def activate(self, user_id: str) -> None:
        ...


@runtime_checkable
class AccountService(Protocol):
    """The current request's session and the account behind it."""

    user_id: Optional[str]

    def is_authenticated(self) -> bool:
        ...

    def get_connected_provider_accounts(self) -> Set[str]:
        ...

    def terminate_session(self) -> None:
        ...
