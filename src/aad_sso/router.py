"""
FastAPI auth router: login, callback, /me, logout, and the Azure AD sign-out URL.

Wires the aad_sso operations to HTTP. The host passes its configuration store
and the role/state/user/auth-map collaborators; nothing here keeps state
outside request.session and those stores.
"""

import logging
from typing import Optional

from authlib.integrations.starlette_client import OAuthError
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from .config import PROVIDER_KEY, graph_timeout_seconds, load_client_config
from .errors import ConfigurationUnavailable, ResolveFailed, TokenExchangeFailed
from .graph import GraphClient
from .microsoft import WindowsAadClient
from .protocol import ConfigStore, RoleStore, UserStateStore
from .session import MESSAGES_KEY, ROLES_KEY, USER_KEY, SessionAccountService, get_roles
from .signout import RedirectTarget, handle_inbound_logout, handle_outbound_logout, is_sso_logout_active
from .sync import RoleSynchronizer

logger = logging.getLogger(__name__)

LOGIN_FAILED = "Could not authenticate with Windows Azure AD."
NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate",
    "Pragma": "no-cache",
}


def create_auth_router(
    config_store: ConfigStore,
    role_store: RoleStore,
    state_store: UserStateStore,
    user_store,
    authmap,
    graph: Optional[GraphClient] = None,
    provider_key: str = PROVIDER_KEY,
):
    """Create an APIRouter with /login, the OIDC callback, /me, /logout and the SSO sign-out endpoint."""
    graph = graph or GraphClient(timeout=graph_timeout_seconds())
    synchronizer = RoleSynchronizer(role_store, state_store, user_store)
    router = APIRouter()

    def _unavailable(reason: str) -> JSONResponse:
        logger.error(f"Windows Azure AD sign-in unavailable: {reason}")
        return JSONResponse({"error": "Windows Azure AD sign-in is not available."}, status_code=503)

    @router.get("/login")
    async def login(request: Request):
        """Redirect the user to the Azure AD login page."""
        try:
            config, enabled = load_client_config(config_store, provider_key)
        except ConfigurationUnavailable as e:
            return _unavailable(str(e))
        if not enabled:
            return _unavailable("client is disabled")
        provider = WindowsAadClient(config, graph)
        return await provider.login_redirect(request, request.url_for("auth_callback"))

    @router.get(f"/openid-connect/{PROVIDER_KEY}", name="auth_callback")
    async def auth_callback(request: Request):
        """Handle the OAuth callback: tokens, profile, local account, role sync, then redirect home."""
        try:
            config, enabled = load_client_config(config_store, provider_key)
        except ConfigurationUnavailable as e:
            return _unavailable(str(e))
        if not enabled:
            return _unavailable("client is disabled")

        provider = WindowsAadClient(config, graph)
        try:
            _tokens, user_info, groups = await provider.handle_callback(
                request, request.url_for("auth_callback")
            )
        except (OAuthError, TokenExchangeFailed, ResolveFailed) as e:
            logger.error(f"Windows Azure AD authentication failed: {e}")
            return JSONResponse({"error": LOGIN_FAILED}, status_code=400)

        if not user_info.name:
            logger.error(f"Graph profile {user_info.id} has neither userPrincipalName nor displayName")
            return JSONResponse({"error": LOGIN_FAILED}, status_code=400)

        user_id = user_store.find_or_create(user_info.name, user_info.email)
        authmap.link(user_id, PROVIDER_KEY, user_info.id or user_info.name)
        result = synchronizer.sync(user_id, groups, config)

        if not user_store.is_active(user_id):
            logger.warning(f"Blocked account {user_info.name} tried to sign in with Windows Azure AD")
            return JSONResponse({"error": "Your account is blocked."}, status_code=403)

        request.session[USER_KEY] = {
            "id": user_id,
            "name": user_info.name,
            "email": user_info.email,
            "display_name": user_info.display_name,
            "oid": user_info.id,
        }
        request.session[ROLES_KEY] = sorted(role_store.get_user_roles(user_id))
        request.session[MESSAGES_KEY] = list(result.notices)
        logger.info(f"User {user_info.name} signed in with Windows Azure AD")
        return RedirectResponse(url="/")

    @router.get("/me")
    async def me(request: Request):
        """Return current user, roles and pending notices; redirect to /login if not authenticated."""
        if USER_KEY not in request.session:
            return RedirectResponse(url="/login")
        return {
            "user": request.session[USER_KEY],
            "roles": sorted(get_roles(request)),
            "messages": request.session.pop(MESSAGES_KEY, []),
        }

    @router.get("/logout")
    async def logout(request: Request):
        """Log out locally; also sign out of Azure AD when single sign-out is active."""
        account = SessionAccountService(request, authmap)
        home = str(request.base_url)
        target = None
        if is_sso_logout_active(config_store, provider_key):
            try:
                config, enabled = load_client_config(config_store, provider_key)
            except ConfigurationUnavailable as e:
                logger.error(f"Configuration changed during logout, using standard logout: {e}")
            else:
                target = handle_outbound_logout(config, account, home, client_enabled=enabled)
        if target is None:
            account.terminate_session()
            target = RedirectTarget(url=home)

        response = RedirectResponse(url=target.url)
        if not target.cacheable:
            response.headers.update(NO_CACHE_HEADERS)
        return response

    @router.api_route(f"/openid-connect/{PROVIDER_KEY}/signout", methods=["GET", "POST"])
    async def signout(request: Request):
        """Sign-out URL registered in Azure AD; called when the user signs out of Microsoft."""
        account = SessionAccountService(request, authmap)
        try:
            config, enabled = load_client_config(config_store, provider_key)
        except ConfigurationUnavailable as e:
            logger.warning(f"Windows AAD Single Sign Out attempt, but configuration is unavailable: {e}")
            return Response(status_code=403)
        status = handle_inbound_logout(config, account, client_enabled=enabled)
        return Response(status_code=int(status))

    return router
