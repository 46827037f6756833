"""
Single sign-out between the application and Azure AD.

Two triggers: Azure AD calling our sign-out URL after the user signed out
elsewhere (inbound), and the user logging out locally (outbound), which also
signs them out of Microsoft when single sign-out is on.
"""

import logging
import traceback
from dataclasses import dataclass
from http import HTTPStatus
from urllib.parse import quote, urlencode

from .config import PROVIDER_KEY, ClientConfiguration, load_client_config
from .errors import ConfigurationUnavailable

logger = logging.getLogger(__name__)

END_SESSION_ENDPOINT = "https://login.microsoftonline.com/common/oauth2/v2.0/logout"


@dataclass(frozen=True)
class RedirectTarget:
    """Where to send the browser after logout. cacheable=False must bypass page caches."""

    url: str
    cacheable: bool = True


def _sso_enabled(config: ClientConfiguration, client_enabled: bool) -> bool:
    return bool(client_enabled and config.enable_single_sign_out)


def _is_connected(account) -> bool:
    return PROVIDER_KEY in (account.get_connected_provider_accounts() or set())


def handle_inbound_logout(config: ClientConfiguration, account, client_enabled: bool = True) -> HTTPStatus:
    """Sign-out request from Azure AD. 403 when single sign-out is off, otherwise 200."""
    if not _sso_enabled(config, client_enabled):
        logger.warning(
            "Windows AAD Single Sign Out attempt, but SSOut has not been enabled "
            "in the OpenID Connect Windows AAD configuration."
        )
        return HTTPStatus.FORBIDDEN

    # No session or no linked account is fine, nothing to do
    if account.is_authenticated() and _is_connected(account):
        logger.info(f"Single sign-out from Azure AD for user {account.user_id}")
        account.terminate_session()
    return HTTPStatus.OK


def end_session_url(home_url: str) -> str:
    return f"{END_SESSION_ENDPOINT}?{urlencode({'post_logout_redirect_uri': home_url}, quote_via=quote)}"


def handle_outbound_logout(
    config: ClientConfiguration, account, home_url: str, client_enabled: bool = True
) -> RedirectTarget:
    """Log the user out locally and, if they came from Azure AD, out of Microsoft too."""
    # Connected state has to be read before the session is gone
    connected = _sso_enabled(config, client_enabled) and _is_connected(account)
    account.terminate_session()
    if connected:
        return RedirectTarget(url=end_session_url(home_url), cacheable=False)
    return RedirectTarget(url=home_url)


def is_sso_logout_active(config_store, provider_key: str = PROVIDER_KEY) -> bool:
    """
    Whether /logout should go through handle_outbound_logout.

    Any failure to load configuration leaves the standard logout in place.
    """
    try:
        config, enabled = load_client_config(config_store, provider_key)
    except ConfigurationUnavailable as e:
        cause = e.__cause__ or e
        frame = traceback.extract_tb(cause.__traceback__)[-1] if cause.__traceback__ else None
        origin = f"{frame.filename}:{frame.lineno} in {frame.name}" if frame else "unknown"
        logger.error(
            "Failed to check OpenID Connect Windows AAD configuration so Single Sign Off will remain disabled. "
            f"{type(cause).__name__}: {cause} in {origin}",
            extra={
                "exception_type": type(cause).__name__,
                "exception_message": str(cause),
                "origin": origin,
            },
        )
        return False
    return _sso_enabled(config, enabled)
