"""
Upstream leg of the proxy: one shared httpx client, manual redirects,
streamed bodies in both directions.
"""

import asyncio
import logging
from typing import AsyncIterator

import httpx
from starlette.requests import Request

from api_proxy.config import ProxyConfig
from api_proxy.errors import ClientDisconnected, UpstreamUnreachable

logger = logging.getLogger("uvicorn.error")

DISCONNECT_POLL_INTERVAL = 0.5


def create_client(config: ProxyConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.timeout),
        follow_redirects=False,  # Location has to be rewritten, not followed
    )


class UpstreamInvoker:
    def __init__(self, client: httpx.AsyncClient):
        self._client = client

    async def forward(
        self,
        method: str,
        url: str,
        headers: httpx.Headers,
        body=None,
    ) -> httpx.Response:
        """
        Send the request and return the response with its body still unread.
        The caller owns the response and must ``aclose()`` it.
        """
        request = self._client.build_request(method, url, headers=headers, content=body)
        try:
            return await self._client.send(request, stream=True, follow_redirects=False)
        except httpx.TransportError as e:
            # ConnectError, TimeoutException, NetworkError, ProxyError, ...
            raise UpstreamUnreachable(url, f"{type(e).__name__}: {e}") from e


def has_body(request: Request) -> bool:
    if "transfer-encoding" in request.headers:
        return True
    try:
        return int(request.headers.get("content-length", "0")) > 0
    except ValueError:
        return False


async def stream_request_body(
    request: Request, consumed: asyncio.Event
) -> AsyncIterator[bytes]:
    try:
        async for chunk in request.stream():
            if chunk:
                yield chunk
    finally:
        consumed.set()


async def relay_response_body(
    response: httpx.Response, target_url: str
) -> AsyncIterator[bytes]:
    """Stream raw upstream bytes so Content-Encoding/Content-Length stay valid."""
    try:
        if response.is_stream_consumed:
            # Body already read into memory, decoded
            yield response.content
        else:
            async for chunk in response.aiter_raw():
                yield chunk
    except httpx.TransportError as e:
        logger.error(f"[Proxy] Upstream stream from {target_url} broke off: {e}")
        raise
    finally:
        await response.aclose()


def drop_encoding_headers(headers):
    """Headers for a relayed body that has already been decoded."""
    return [
        (name, value)
        for name, value in headers
        if name.lower() not in ("content-encoding", "content-length")
    ]


async def _wait_for_disconnect(request: Request, body_consumed: asyncio.Event) -> None:
    # Polling receive() before the body is read would steal body chunks
    await body_consumed.wait()
    while not await request.is_disconnected():
        await asyncio.sleep(DISCONNECT_POLL_INTERVAL)


async def forward_unless_disconnected(
    invoker: UpstreamInvoker,
    request: Request,
    url: str,
    headers: httpx.Headers,
    body_consumed: asyncio.Event,
    body=None,
) -> httpx.Response:
    """Run ``invoker.forward`` and cancel it if the client disconnects first."""
    upstream = asyncio.ensure_future(
        invoker.forward(request.method, url, headers, body)
    )
    watcher = asyncio.ensure_future(_wait_for_disconnect(request, body_consumed))
    try:
        await asyncio.wait({upstream, watcher}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        upstream.cancel()
        raise
    finally:
        watcher.cancel()

    if upstream.done():
        return upstream.result()

    upstream.cancel()
    await asyncio.gather(upstream, return_exceptions=True)
    raise ClientDisconnected(url)

