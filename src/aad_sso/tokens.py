"""
Authorization-code token exchange against the Azure AD token endpoint.
"""

import logging
import time
from typing import Optional

import jwt

from .config import ClientConfiguration
from .errors import GraphRequestFailed, TokenExchangeFailed
from .graph import GraphClient
from .models import TokenSet

logger = logging.getLogger(__name__)


async def exchange_code(
    code: str,
    config: ClientConfiguration,
    redirect_uri: str,
    graph: Optional[GraphClient] = None,
    now: Optional[int] = None,
) -> TokenSet:
    """
    Exchange an authorization code for an ID token and an access token.

    Raises TokenExchangeFailed on any transport/HTTP error or when the response
    lacks id_token or access_token. expires_at is set only when the endpoint
    returns expires_in.
    """
    graph = graph or GraphClient()
    form = {
        "grant_type": "authorization_code",
        "code": code,
        "client_id": config.client_id,
        "client_secret": config.client_secret,
        "redirect_uri": redirect_uri,
    }
    try:
        data = await graph.post(config.token_endpoint, form)
    except GraphRequestFailed as e:
        logger.error(f"Could not retrieve tokens. Details: {e.message}")
        raise TokenExchangeFailed(e.message, endpoint=config.token_endpoint) from e

    missing = [key for key in ("id_token", "access_token") if not data.get(key)]
    if missing:
        message = f"Token response is missing {', '.join(missing)}"
        logger.error(f"Could not retrieve tokens. Details: {message}")
        raise TokenExchangeFailed(message, endpoint=config.token_endpoint)

    expires_at = None
    if data.get("expires_in") is not None:
        try:
            lifetime = int(data["expires_in"])
        except (TypeError, ValueError):
            raise TokenExchangeFailed(
                f"Invalid expires_in value: {data['expires_in']!r}", endpoint=config.token_endpoint
            )
        expires_at = int(now if now is not None else time.time()) + lifetime

    return TokenSet(id_token=data["id_token"], access_token=data["access_token"], expires_at=expires_at)


def decode_id_token_claims(id_token: str) -> dict:
    """
    Read ID token claims without verifying the signature.

    Only for tokens received directly from the token endpoint over TLS.
    Returns {} if the token cannot be decoded.
    """
    try:
        return jwt.decode(id_token, options={"verify_signature": False})
    except jwt.PyJWTError as e:
        logger.warning(f"Could not decode ID token claims: {e}")
        return {}
