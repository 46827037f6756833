"""
Session-backed account service and FastAPI route guards.

The auth callback stores the signed-in user and their local role ids in
request.session; SessionAccountService exposes that session to the sign-out
coordinator, and require_roles / require_any_role protect routes.
"""

from typing import Optional, Set

from fastapi import HTTPException, Request

USER_KEY = "user"
ROLES_KEY = "roles"
MESSAGES_KEY = "messages"


class SessionAccountService:
    """AccountService over the current request's session and the host auth map."""

    def __init__(self, request: Request, authmap):
        self.request = request
        self.authmap = authmap

    @property
    def user_id(self) -> Optional[str]:
        user = self.request.session.get(USER_KEY)
        return user.get("id") if user else None

    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def get_connected_provider_accounts(self) -> Set[str]:
        return set(self.authmap.get_connected_accounts(self.user_id))

    def terminate_session(self) -> None:
        self.request.session.clear()


def get_roles(request: Request) -> Set[str]:
    """Return the set of role ids stored in the session (empty if not authenticated)."""
    raw = request.session.get(ROLES_KEY, [])
    return set(raw) if isinstance(raw, list) else set()


def _require_login(request: Request) -> None:
    if USER_KEY not in request.session:
        raise HTTPException(status_code=401, detail="Not authenticated")


def require_roles(*required_roles: str):
    """
    Dependency: user must have ALL of the given roles (AND semantics).
    Use as: Depends(require_roles("administrator", "editor")).
    """
    required = {role for role in required_roles if role}

    async def _dep(request: Request):
        _require_login(request)
        if required - get_roles(request):
            raise HTTPException(status_code=403, detail="Forbidden (missing required roles)")
        return True

    return _dep


def require_any_role(*roles: str):
    """Dependency: user must have at least one of the given roles (OR semantics)."""
    required = {r for r in roles if r}

    async def _dep(request: Request):
        _require_login(request)
        if not (required & get_roles(request)):
            raise HTTPException(status_code=403, detail="Forbidden (no acceptable role)")
        return True

    return _dep
