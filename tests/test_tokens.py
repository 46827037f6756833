import logging
from urllib.parse import parse_qs

import httpx
import pytest

from aad_sso.errors import TokenExchangeFailed
from aad_sso.tokens import decode_id_token_claims, exchange_code

REDIRECT_URI = "https://app.example.edu/openid-connect/windows_aad"


async def test_exchange_posts_authorization_code_grant(config, make_graph):
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["form"] = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
        return httpx.Response(200, json={"id_token": "id.jwt", "access_token": "access", "expires_in": 3600})

    tokens = await exchange_code("auth-code", config, REDIRECT_URI, graph=make_graph(handler), now=1_000)

    assert seen["url"] == config.token_endpoint
    assert seen["form"] == {
        "grant_type": "authorization_code",
        "code": "auth-code",
        "client_id": "client-id",
        "client_secret": "client-secret",
        "redirect_uri": REDIRECT_URI,
    }
    assert tokens.id_token == "id.jwt"
    assert tokens.access_token == "access"
    assert tokens.expires_at == 4_600


async def test_expires_at_unset_without_expires_in(config, make_graph):
    def handler(request):
        return httpx.Response(200, json={"id_token": "id.jwt", "access_token": "access"})

    tokens = await exchange_code("code", config, REDIRECT_URI, graph=make_graph(handler))

    assert tokens.expires_at is None


@pytest.mark.parametrize(
    "body",
    [
        {"access_token": "access"},
        {"id_token": "id.jwt"},
        {"token_type": "Bearer"},
    ],
)
async def test_missing_token_fields_fail(config, make_graph, body):
    def handler(request):
        return httpx.Response(200, json=body)

    with pytest.raises(TokenExchangeFailed):
        await exchange_code("code", config, REDIRECT_URI, graph=make_graph(handler))


async def test_error_response_fails_with_underlying_message(config, make_graph, caplog):
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "AADSTS54005: code already redeemed"})

    caplog.set_level(logging.ERROR, logger="aad_sso")
    with pytest.raises(TokenExchangeFailed) as exc_info:
        await exchange_code("code", config, REDIRECT_URI, graph=make_graph(handler))

    assert "AADSTS54005" in exc_info.value.message
    assert exc_info.value.endpoint == config.token_endpoint
    assert any("Could not retrieve tokens" in r.getMessage() for r in caplog.records)


async def test_transport_failure_fails(config, make_graph):
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TokenExchangeFailed):
        await exchange_code("code", config, REDIRECT_URI, graph=make_graph(handler))


def test_decode_id_token_claims(make_id_token):
    claims = decode_id_token_claims(make_id_token(groups=["g-1", "g-2"]))

    assert claims["groups"] == ["g-1", "g-2"]
    assert claims["oid"] == "object-id"


def test_decode_id_token_claims_garbage(caplog):
    caplog.set_level(logging.WARNING, logger="aad_sso")

    assert decode_id_token_claims("not-a-jwt") == {}
    assert len(caplog.records) == 1
