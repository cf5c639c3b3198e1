"""Process-wide httpx client for outbound calls (Auth0 JWKS, document parser)."""

import httpx

DEFAULT_TIMEOUT = httpx.Timeout(10.0)

_client: httpx.AsyncClient | None = None


def get_async_http_client() -> httpx.AsyncClient:
    """Return the shared client, creating a new one if none is open."""
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
    return _client


async def close_async_http_client() -> None:
    global _client
    client, _client = _client, None
    if client is None or client.is_closed:
        return
    try:
        await client.aclose()
    except RuntimeError:
        # The event loop that owned the client has already shut down
        pass
