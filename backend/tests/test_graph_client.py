"""
Unit tests for the Graph client.

HTTP is served by httpx.MockTransport, so no request leaves the process.
"""
import json

import httpx
import pytest

from mailhook.integrations.graph_client import GraphClient
from mailhook.utils.errors import AuthError, GraphError, GraphNotFoundError, GraphTimeoutError


def make_client(handler):
    return GraphClient(
        "mock-access-token",
        base_url="https://graph.test/v1.0",
        transport=httpx.MockTransport(handler),
    )


class TestGraphClientRequests:
    """Test request building and success handling."""

    @pytest.mark.asyncio
    async def test_get_sends_bearer_token_and_params(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"displayName": "Test User"})

        client = make_client(handler)
        data = await client.get("/me", params={"$select": "displayName"})

        assert data == {"displayName": "Test User"}
        assert seen["auth"] == "Bearer mock-access-token"
        assert seen["url"].startswith("https://graph.test/v1.0/me")
        assert "select=displayName" in seen["url"]

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "sub-1"})

        client = make_client(handler)
        data = await client.post("/subscriptions", {"changeType": "created"})

        assert data == {"id": "sub-1"}
        assert seen["method"] == "POST"
        assert seen["body"] == {"changeType": "created"}

    @pytest.mark.asyncio
    async def test_no_content_returns_empty_dict(self):
        client = make_client(lambda request: httpx.Response(204))

        assert await client.delete("/subscriptions/sub-1") == {}


class TestGraphClientErrorHandling:
    """Test mapping of Graph failures to application errors."""

    @pytest.mark.asyncio
    async def test_404_raises_not_found(self):
        client = make_client(lambda request: httpx.Response(404, json={"error": {"code": "ErrorItemNotFound"}}))

        with pytest.raises(GraphNotFoundError):
            await client.get("/me/messages/missing")

    @pytest.mark.asyncio
    async def test_401_raises_auth_error(self):
        client = make_client(lambda request: httpx.Response(401))

        with pytest.raises(AuthError):
            await client.get("/me")

    @pytest.mark.asyncio
    async def test_other_status_raises_graph_error(self):
        body = {"error": {"code": "InvalidRequest", "message": "Subscription expiration is too far"}}
        client = make_client(lambda request: httpx.Response(400, json=body))

        with pytest.raises(GraphError) as exc_info:
            await client.post("/subscriptions", {})

        assert exc_info.value.details == {"graph_status": 400}
        assert "too far" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_timeout_raises_timeout_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        client = make_client(handler)

        with pytest.raises(GraphTimeoutError):
            await client.get("/me")

    @pytest.mark.asyncio
    async def test_connection_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)

        with pytest.raises(GraphError):
            await client.get("/me")
        assert len(calls) == 1
