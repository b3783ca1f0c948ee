"""HTTP client for a running tetrisbridge endpoint.

Sends messages the way the game client does (``action.php?msg=...``)
and returns the collaborator's raw answer bytes.
"""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class BridgeClient:
    """Talks to the bridge endpoint over HTTP.

    Example usage::

        async with BridgeClient("http://localhost:8080") as client:
            answer = await client.send("rotate-left")
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        route: str = "/action.php",
        param: str = "msg",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._route = route
        self._param = param
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        logger.debug("Client ready for %s", self._base_url)

    async def disconnect(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, message: str) -> bytes:
        """Send ``message`` as the query parameter and return the raw body."""
        resp = await self._request("GET", params={self._param: message})
        logger.debug("Sent %d chars, got %d bytes", len(message), len(resp.content))
        return resp.content

    async def post(self, message: str | bytes) -> bytes:
        """Send ``message`` as the request body and return the raw body."""
        content = message.encode("utf-8") if isinstance(message, str) else message
        resp = await self._request("POST", content=content)
        return resp.content

    async def _request(self, method: str, **kwargs: object) -> httpx.Response:
        if self._client is None:
            raise BridgeClientError("Client is not connected")
        try:
            resp = await self._client.request(method, self._route, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            raise BridgeClientError(
                f"Bridge answered HTTP {e.response.status_code}",
                status_code=e.response.status_code,
                outcome=e.response.headers.get("X-Bridge-Outcome", ""),
            ) from e
        except httpx.HTTPError as e:
            raise BridgeClientError(f"HTTP request to {self._route} failed: {e}") from e

    async def __aenter__(self) -> BridgeClient:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        await self.disconnect()


class BridgeClientError(Exception):
    """Raised when a request to the bridge fails."""

    def __init__(self, message: str, status_code: int | None = None, outcome: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.outcome = outcome
