"""
Azure AD OpenID Connect relying party for FastAPI apps.

Exposes the core operations (exchange_code, resolve_user, get_scopes,
reconcile_roles, handle_inbound_logout, handle_outbound_logout), the session
route guards, and the auth router factory (create_auth_router).
"""

from .authz_config import parse_mapping_rules, reconcile_roles, validate_mapping_rules
from .config import ClientConfiguration, EnvConfigStore
from .microsoft import WindowsAadClient, get_scopes, resolve_user
from .router import create_auth_router
from .session import get_roles, require_any_role, require_roles
from .signout import handle_inbound_logout, handle_outbound_logout, is_sso_logout_active
from .sync import RoleSynchronizer
from .tokens import exchange_code

__all__ = [
    "ClientConfiguration",
    "EnvConfigStore",
    "exchange_code",
    "resolve_user",
    "get_scopes",
    "reconcile_roles",
    "parse_mapping_rules",
    "validate_mapping_rules",
    "RoleSynchronizer",
    "handle_inbound_logout",
    "handle_outbound_logout",
    "is_sso_logout_active",
    "WindowsAadClient",
    "get_roles",
    "require_roles",
    "require_any_role",
    "create_auth_router",
]
