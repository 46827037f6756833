"""
Microsoft Entra (Azure AD) OAuth provider.

Builds the authorization redirect with Authlib, exchanges the code at the
configured token endpoint, and reads the user's profile and group membership
from Microsoft Graph.
"""

import logging
from typing import FrozenSet, Optional, Tuple

from authlib.common.security import generate_token
from authlib.integrations.base_client import MismatchingStateError
from authlib.integrations.starlette_client import OAuthError
from authlib.oauth2.rfc6749.parameters import prepare_grant_uri
from fastapi.responses import RedirectResponse

from .config import PROVIDER_KEY, ClientConfiguration
from .errors import GraphRequestFailed, ResolveFailed
from .graph import GRAPH_BASE, GraphClient
from .models import GroupSources, RawUserInfo, TokenSet
from .protocol import OAuthProvider
from .tokens import decode_id_token_claims, exchange_code

logger = logging.getLogger(__name__)

PROFILE_URL = (
    f"{GRAPH_BASE}/me?$select=id,displayName,givenName,surname,jobTitle,mail,"
    "userPrincipalName,officeLocation,onPremisesExtensionAttributes"
)
MEMBER_OF_URL = f"{GRAPH_BASE}/me/memberOf"

# Directory.Read.All is requested even with group mapping off so that turning
# mapping on later does not need a new consent.
SCOPES: FrozenSet[str] = frozenset({"openid", "profile", "email", "User.Read", "Directory.Read.All"})

STATE_SESSION_KEY = "_aad_sso_state"


def get_scopes() -> FrozenSet[str]:
    """OAuth2 scopes requested at authorization time."""
    return SCOPES


async def retrieve_groups(access_token: str, graph: GraphClient) -> dict:
    """Fetch /me/memberOf; any failure is logged and yields {}."""
    try:
        return await graph.get_paged(MEMBER_OF_URL, access_token)
    except GraphRequestFailed as e:
        logger.error(
            f"Failed to retrieve AD group information from graph api ({MEMBER_OF_URL}). "
            f"Details: {e.message}"
        )
        return {}


async def resolve_user(
    access_token: str, config: ClientConfiguration, graph: Optional[GraphClient] = None
) -> RawUserInfo:
    """
    Read the signed-in user's Graph profile and, if group mapping is on, their groups.

    Raises ResolveFailed when the profile call fails. A failed group call does
    not fail resolution.
    """
    graph = graph or GraphClient()
    try:
        profile = await graph.get(PROFILE_URL, access_token)
    except GraphRequestFailed as e:
        logger.error(f"Could not retrieve user profile information. Details: {e.message}")
        raise ResolveFailed(e.endpoint, e.message) from e

    upn = profile.get("userPrincipalName")
    mail = profile.get("mail")

    # Username is the UPN alias when there is one
    name = upn.split("@", 1)[0] if upn else profile.get("displayName")

    if mail:
        email = mail
    else:
        logger.warning(
            f"Email address of user {upn} not found in UserInfo. Used username instead, please check."
        )
        email = upn

    if "onPremisesExtensionAttributes" not in profile:
        logger.info(
            f"onPremisesExtensionAttributes missing from the Graph profile of {upn or profile.get('id')}; "
            "the app registration may lack the directory permissions to read them."
        )

    user = RawUserInfo(
        id=profile.get("id"),
        display_name=profile.get("displayName"),
        given_name=profile.get("givenName"),
        surname=profile.get("surname"),
        job_title=profile.get("jobTitle"),
        mail=mail,
        user_principal_name=upn,
        office_location=profile.get("officeLocation"),
        on_premises_extension_attributes=profile.get("onPremisesExtensionAttributes"),
        name=name,
        email=email,
        raw=profile,
    )
    if config.map_ad_groups_to_roles:
        user.groups = await retrieve_groups(access_token, graph)
    return user


def group_sources(tokens: TokenSet, user: RawUserInfo) -> GroupSources:
    """Collect the ID token groups claim and the memberOf objects for role mapping."""
    claims = decode_id_token_claims(tokens.id_token).get("groups") or []
    if isinstance(claims, str):
        claims = [claims]
    member_of = (user.groups or {}).get("value") or []
    return GroupSources(
        claims=[str(c) for c in claims],
        member_of=[entry for entry in member_of if isinstance(entry, dict)],
    )


class WindowsAadClient(OAuthProvider):
    """OAuth provider that uses Azure AD for sign-in and Graph for user + group data."""

    name: str = PROVIDER_KEY

    def __init__(self, config: ClientConfiguration, graph: Optional[GraphClient] = None):
        self.name = PROVIDER_KEY
        self.config = config
        self.graph = graph or GraphClient()

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        return prepare_grant_uri(
            self.config.authorization_endpoint,
            client_id=self.config.client_id,
            response_type="code",
            redirect_uri=redirect_uri,
            scope=sorted(get_scopes()),
            state=state,
        )

    async def login_redirect(self, request, redirect_uri: str):
        """Remember a fresh state in the session and return a RedirectResponse to Azure AD."""
        state = generate_token(32)
        request.session[STATE_SESSION_KEY] = state
        return RedirectResponse(url=self.authorization_url(str(redirect_uri), state))

    async def handle_callback(self, request, redirect_uri: str) -> Tuple[TokenSet, RawUserInfo, GroupSources]:
        """Validate state, exchange the code, and resolve the user. Return (tokens, user_info, groups)."""
        params = request.query_params
        if params.get("error"):
            raise OAuthError(error=params["error"], description=params.get("error_description"))

        expected = request.session.pop(STATE_SESSION_KEY, None)
        if not expected or params.get("state") != expected:
            raise MismatchingStateError()

        code = params.get("code")
        if not code:
            raise OAuthError(error="missing_code", description="No authorization code in callback")

        tokens = await exchange_code(code, self.config, str(redirect_uri), graph=self.graph)
        user = await resolve_user(tokens.access_token, self.config, graph=self.graph)
        return tokens, user, group_sources(tokens, user)
