"""
Thin async HTTP wrapper for the Azure AD token endpoint and Microsoft Graph.

Every call is bounded by a timeout and every failure (transport error, non-2xx,
non-JSON body) comes back as GraphRequestFailed. No retries here: the token
exchange must not be replayed with the same authorization code.
"""

from typing import Optional

import httpx

from .config import DEFAULT_TIMEOUT_SECONDS
from .errors import GraphRequestFailed

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
MAX_PAGES = 50


def _describe(response: httpx.Response) -> str:
    """Best-effort error text: OAuth error_description or Graph error.message, else the status line."""
    detail = None
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            detail = error.get("message") or error.get("code")
        else:
            detail = body.get("error_description") or error
    status = f"HTTP {response.status_code} {response.reason_phrase}".strip()
    return f"{status}: {detail}" if detail else status


class GraphClient:
    """Issues bearer-token GETs and form POSTs; raises GraphRequestFailed on any failure."""

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self.transport)

    async def _send(self, method: str, url: str, **kwargs) -> dict:
        try:
            async with self._client() as client:
                r = await client.request(method, url, **kwargs)
                if r.is_error:
                    raise GraphRequestFailed(url, _describe(r))
                data = r.json()
        except httpx.HTTPError as e:
            raise GraphRequestFailed(url, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise GraphRequestFailed(url, f"Invalid JSON response: {e}") from e
        if not isinstance(data, dict):
            raise GraphRequestFailed(url, "Unexpected response shape (expected a JSON object)")
        return data

    async def get(self, url: str, access_token: str) -> dict:
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        return await self._send("GET", url, headers=headers)

    async def get_paged(self, url: str, access_token: str, max_pages: int = MAX_PAGES) -> dict:
        """GET a Graph collection, following @odata.nextLink; returns {"value": [...]}.

        A repeated page link or more than max_pages pages raises GraphRequestFailed.
        """
        items = []
        seen = set()
        next_url: Optional[str] = url
        while next_url:
            if next_url in seen:
                raise GraphRequestFailed(next_url, "Paging link repeats a page already fetched")
            if len(seen) >= max_pages:
                raise GraphRequestFailed(url, f"More than {max_pages} result pages")
            seen.add(next_url)
            page = await self.get(next_url, access_token)
            items.extend(page.get("value", []))
            next_url = page.get("@odata.nextLink")
        return {"value": items}

    async def post(self, url: str, form: dict) -> dict:
        headers = {"Accept": "application/json"}
        return await self._send("POST", url, data=form, headers=headers)
