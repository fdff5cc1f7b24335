"""HTTP client implementation using httpx."""

import asyncio

import httpx

from ..errors import TransportError
from .protocols import RequestSpec, Response

DEFAULT_USER_AGENT = "fetchrun/0.1"


class HttpFetcher:
    """Async HTTP client using httpx with connection reuse."""

    def __init__(
        self,
        timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_connections: int = 100,
        max_keepalive_connections: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = httpx.Timeout(timeout)
        self.user_agent = user_agent
        self.limits = httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max_keepalive_connections,
        )
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client with double-checked locking."""
        if self._client is None:
            async with self._lock:
                if self._client is None:
                    self._client = httpx.AsyncClient(
                        timeout=self.timeout,
                        limits=self.limits,
                        headers={"User-Agent": self.user_agent},
                        follow_redirects=True,
                        transport=self._transport,
                    )
        return self._client

    async def send(self, spec: RequestSpec, timeout: float) -> Response:
        """Send a request; any httpx failure becomes a TransportError."""
        client = await self._get_client()
        try:
            resp = await client.request(
                spec.method,
                spec.url,
                headers=dict(spec.headers),
                content=spec.body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"timeout after {timeout}s", cause=e) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}", cause=e) from e

        return Response(
            url=str(resp.url),
            status=resp.status_code,
            content=resp.content,
            headers=dict(resp.headers),
        )

    async def close(self):
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
