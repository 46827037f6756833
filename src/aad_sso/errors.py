"""
Error types raised by the Azure AD relying-party core.

Every failure inside the package is normalized to one of these before it
reaches the host; raw httpx or store exceptions never escape. The router
turns them into HTTP responses.
"""

from typing import Optional


class AadSsoError(Exception):
    """Base class for all errors raised by aad_sso."""


class ConfigurationUnavailable(AadSsoError):
    """The configuration store could not provide the client configuration."""


class GraphRequestFailed(AadSsoError):
    """An HTTP call to Azure AD or Microsoft Graph failed."""

    def __init__(self, endpoint: str, message: str):
        super().__init__(f"Request to {endpoint} failed: {message}")
        self.endpoint = endpoint
        self.message = message


class ResolveFailed(GraphRequestFailed):
    """The user profile could not be fetched from Microsoft Graph."""


class TokenExchangeFailed(AadSsoError):
    """The token endpoint returned an error or a malformed response."""

    def __init__(self, message: str, endpoint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.endpoint = endpoint


class UnresolvableMappingRule(AadSsoError):
    """A group mapping rule line that cannot be applied."""

    def __init__(self, line: str, reason: str):
        super().__init__(f"{reason}: {line!r}")
        self.line = line
        self.reason = reason


class RoleApplicationFailed(AadSsoError):
    """The host role store failed to add or remove a role."""

    def __init__(self, user_id: str, role_id: str, operation: str, message: str):
        super().__init__(f"Could not {operation} role {role_id} for user {user_id}: {message}")
        self.user_id = user_id
        self.role_id = role_id
        self.operation = operation
        self.message = message
