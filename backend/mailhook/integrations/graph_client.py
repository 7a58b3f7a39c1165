"""
Microsoft Graph API client integration.

This module handles direct communication with Graph REST endpoints:
1. Profile (/me)
2. Messages (list + get by id)
3. Change subscriptions (list, create, update, delete)

Requests are not retried. Every call is bounded by a timeout and a timeout
surfaces as GraphTimeoutError.

Graph API Reference: https://learn.microsoft.com/graph/api/overview
"""
from typing import Optional

import httpx

from mailhook.utils.logger import get_logger
from mailhook.utils.errors import AuthError, GraphError, GraphNotFoundError, GraphTimeoutError

logger = get_logger(__name__)

GRAPH_API_BASE = "https://graph.microsoft.com/v1.0"


class GraphClient:
    """
    Graph API client bound to one access token.

    Usage:
        client = GraphClient(access_token)
        me = await client.get("/me", params={"$select": "displayName"})
        await client.delete("/subscriptions/abc")
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = GRAPH_API_BASE,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.access_token = access_token
        self.transport = transport
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        json_data: dict = None,
        params: dict = None,
    ) -> dict:
        """
        Make an authenticated request to Graph.

        Handles common error cases:
        - 401: Token expired/invalid
        - 404: Resource missing
        - other non-2xx: Graph error
        - timeouts and connection failures

        Returns:
            Response JSON dict ({} for empty bodies)

        Raises:
            AuthError, GraphNotFoundError, GraphError, GraphTimeoutError
        """
        url = f"{self.base_url}{endpoint}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method=method,
                    url=url,
                    headers=self.headers,
                    json=json_data,
                    params=params,
                )
            except httpx.TimeoutException as e:
                logger.error(f"Graph {method} {endpoint} timed out: {e}")
                raise GraphTimeoutError()
            except httpx.RequestError as e:
                logger.error(f"Graph {method} {endpoint} failed: {e}")
                raise GraphError("Microsoft Graph is unavailable. Please try again later.")

        if 200 <= response.status_code < 300:
            if response.status_code == 204 or not response.content:
                return {}
            return response.json()

        if response.status_code == 404:
            raise GraphNotFoundError(endpoint)

        if response.status_code == 401:
            logger.warning("Graph API: Token expired or invalid")
            raise AuthError("Graph access token expired or invalid")

        error_data = _error_body(response)
        logger.error(f"Graph API error: {response.status_code} - {error_data}")
        message = error_data.get("error", {}).get("message") if isinstance(error_data.get("error"), dict) else None
        raise GraphError(
            f"Graph API error: {response.status_code}" + (f" ({message})" if message else ""),
            status=response.status_code,
        )

    async def get(self, endpoint: str, params: Optional[dict] = None) -> dict:
        return await self._make_request("GET", endpoint, params=params)

    async def post(self, endpoint: str, json_data: dict) -> dict:
        return await self._make_request("POST", endpoint, json_data=json_data)

    async def patch(self, endpoint: str, json_data: dict) -> dict:
        return await self._make_request("PATCH", endpoint, json_data=json_data)

    async def delete(self, endpoint: str) -> dict:
        return await self._make_request("DELETE", endpoint)


def _error_body(response: httpx.Response) -> dict:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
