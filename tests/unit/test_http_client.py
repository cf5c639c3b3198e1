"""Unit tests for the shared outbound HTTP client."""

import pytest

from app.core.http_client import close_async_http_client, get_async_http_client


class TestAsyncHttpClient:
    """Client lifecycle."""

    @pytest.mark.asyncio
    async def test_client_is_reused_until_closed(self):
        await close_async_http_client()

        client = get_async_http_client()
        assert get_async_http_client() is client

        await close_async_http_client()
        assert client.is_closed
        assert get_async_http_client() is not client
        await close_async_http_client()

    @pytest.mark.asyncio
    async def test_close_without_client_is_noop(self):
        await close_async_http_client()
        await close_async_http_client()
