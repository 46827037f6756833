from urllib.parse import parse_qs

import httpx
import pytest

from aad_sso.errors import GraphRequestFailed
from aad_sso.graph import GRAPH_BASE, GraphClient


async def test_get_sends_bearer_token_and_returns_json(make_graph):
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["content_type"] = request.headers["Content-Type"]
        return httpx.Response(200, json={"id": "123"})

    data = await make_graph(handler).get(f"{GRAPH_BASE}/me", "token-abc")

    assert data == {"id": "123"}
    assert seen == {"auth": "Bearer token-abc", "content_type": "application/json"}


async def test_post_sends_form_encoded_body(make_graph):
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"ok": True})

    await make_graph(handler).post("https://login.example/token", {"a": "1", "b": "two"})

    assert seen["method"] == "POST"
    assert seen["form"] == {"a": ["1"], "b": ["two"]}


async def test_error_status_keeps_graph_error_message(make_graph):
    def handler(request):
        return httpx.Response(403, json={"error": {"code": "Authorization_RequestDenied", "message": "Insufficient privileges"}})

    url = f"{GRAPH_BASE}/me/memberOf"
    with pytest.raises(GraphRequestFailed) as exc_info:
        await make_graph(handler).get(url, "token")

    assert exc_info.value.endpoint == url
    assert "403" in exc_info.value.message
    assert "Insufficient privileges" in exc_info.value.message


async def test_error_status_keeps_oauth_error_description(make_graph):
    def handler(request):
        return httpx.Response(400, json={"error": "invalid_grant", "error_description": "AADSTS70008: code expired"})

    with pytest.raises(GraphRequestFailed) as exc_info:
        await make_graph(handler).post("https://login.example/token", {})

    assert "AADSTS70008" in exc_info.value.message


async def test_transport_error_is_normalized(make_graph):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GraphRequestFailed) as exc_info:
        await make_graph(handler).get(f"{GRAPH_BASE}/me", "token")

    assert "connection refused" in exc_info.value.message


async def test_non_json_body_is_normalized(make_graph):
    def handler(request):
        return httpx.Response(200, text="<html>proxy error</html>")

    with pytest.raises(GraphRequestFailed):
        await make_graph(handler).get(f"{GRAPH_BASE}/me", "token")


async def test_get_paged_follows_next_link(make_graph):
    second_page = f"{GRAPH_BASE}/me/memberOf?$skiptoken=page2"

    def handler(request):
        if "skiptoken" in str(request.url):
            return httpx.Response(200, json={"value": [{"id": "g2"}]})
        return httpx.Response(200, json={"value": [{"id": "g1"}], "@odata.nextLink": second_page})

    data = await make_graph(handler).get_paged(f"{GRAPH_BASE}/me/memberOf", "token")

    assert data == {"value": [{"id": "g1"}, {"id": "g2"}]}


async def test_get_paged_stops_on_repeated_next_link(make_graph):
    url = f"{GRAPH_BASE}/me/memberOf"
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return httpx.Response(200, json={"value": [{"id": "g1"}], "@odata.nextLink": url})

    with pytest.raises(GraphRequestFailed) as exc_info:
        await make_graph(handler).get_paged(url, "token")

    assert len(calls) == 1
    assert "repeats" in exc_info.value.message


async def test_get_paged_stops_after_max_pages(make_graph):
    def handler(request):
        page = int(request.url.params.get("page", "0"))
        return httpx.Response(200, json={"value": [], "@odata.nextLink": f"{GRAPH_BASE}/me/memberOf?page={page + 1}"})

    with pytest.raises(GraphRequestFailed) as exc_info:
        await make_graph(handler).get_paged(f"{GRAPH_BASE}/me/memberOf", "token", max_pages=3)

    assert "More than 3 result pages" in exc_info.value.message


async def test_client_uses_bounded_timeout():
    graph = GraphClient(timeout=10.0)
    async with graph._client() as client:
        assert client.timeout.read == 10.0
        assert client.timeout.connect == 10.0
