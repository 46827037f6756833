import httpx
import jwt
import pytest

from aad_sso.config import ClientConfiguration
from aad_sso.graph import GraphClient
from aad_sso.models import Role

AUTHORIZE_ENDPOINT = "https://login.microsoftonline.com/tenant-id/oauth2/v2.0/authorize"
TOKEN_ENDPOINT = "https://login.microsoftonline.com/tenant-id/oauth2/v2.0/token"
SIGNING_KEY = "test-signing-key-0123456789abcdef0123456789"


@pytest.fixture
def config():
    return ClientConfiguration(
        client_id="client-id",
        client_secret="client-secret",
        authorization_endpoint=AUTHORIZE_ENDPOINT,
        token_endpoint=TOKEN_ENDPOINT,
    )


@pytest.fixture
def make_graph():
    """Build a GraphClient whose HTTP calls are answered by handler(request)."""

    def _make(handler):
        return GraphClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def make_id_token():
    def _make(**claims):
        payload = {"sub": "subject", "oid": "object-id", "tid": "tenant-id"}
        payload.update(claims)
        return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")

    return _make


@pytest.fixture
def roles():
    return [
        Role(id="administrator", label="Administrator", is_admin=True),
        Role(id="editor", label="Content Editor"),
        Role(id="support", label="Support"),
    ]
