import asyncio
import gzip

import httpx
import pytest

from api_proxy.app_proxy.upstream import (
    UpstreamInvoker,
    create_client,
    drop_encoding_headers,
    forward_unless_disconnected,
    relay_response_body,
)
from api_proxy.config import ProxyConfig
from api_proxy.errors import ClientDisconnected, UpstreamUnreachable

TARGET_URL = "https://api.openai.com/v1/models"


class FakeRequest:
    method = "GET"

    def __init__(self, disconnected=False):
        self.disconnected = disconnected

    async def is_disconnected(self):
        return self.disconnected


class Chunks(httpx.AsyncByteStream):
    def __init__(self, *chunks):
        self.chunks = chunks

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk


def invoker_for(handler):
    return UpstreamInvoker(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


def test_client_never_follows_redirects():
    client = create_client(ProxyConfig(domain="proxy.example.com", timeout=12))
    assert client.follow_redirects is False
    assert client.timeout.read == 12


@pytest.mark.asyncio
async def test_forward_returns_unread_response():
    invoker = invoker_for(
        lambda request: httpx.Response(200, stream=Chunks(b"hel", b"lo"))
    )
    response = await invoker.forward("GET", TARGET_URL, httpx.Headers())
    assert response.status_code == 200
    assert not response.is_stream_consumed
    chunks = [chunk async for chunk in relay_response_body(response, TARGET_URL)]
    assert chunks == [b"hel", b"lo"]
    assert response.is_closed


@pytest.mark.asyncio
async def test_already_read_body_relayed_decoded():
    invoker = invoker_for(
        lambda request: httpx.Response(
            200, content=gzip.compress(b"hello"), headers={"content-encoding": "gzip"}
        )
    )
    response = await invoker.forward("GET", TARGET_URL, httpx.Headers())
    assert response.is_stream_consumed
    chunks = [chunk async for chunk in relay_response_body(response, TARGET_URL)]
    assert b"".join(chunks) == b"hello"
    assert response.is_closed


def test_drop_encoding_headers():
    headers = [
        ("Content-Encoding", "gzip"),
        ("content-length", "25"),
        ("content-type", "application/json"),
    ]
    assert drop_encoding_headers(headers) == [("content-type", "application/json")]


@pytest.mark.asyncio
async def test_redirect_returned_as_is():
    invoker = invoker_for(
        lambda request: httpx.Response(301, headers={"location": "https://api.openai.com/v2"})
    )
    response = await invoker.forward("GET", TARGET_URL, httpx.Headers())
    assert response.status_code == 301
    await response.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [httpx.ConnectError, httpx.ConnectTimeout, httpx.ReadTimeout, httpx.RemoteProtocolError],
)
async def test_transport_errors_become_upstream_unreachable(error):
    def fail(request):
        raise error("boom", request=request)

    with pytest.raises(UpstreamUnreachable) as exc_info:
        await invoker_for(fail).forward("GET", TARGET_URL, httpx.Headers())
    assert exc_info.value.target_url == TARGET_URL
    assert error.__name__ in exc_info.value.detail


@pytest.mark.asyncio
async def test_other_errors_propagate():
    def fail(request):
        raise RuntimeError("bug")

    with pytest.raises(RuntimeError):
        await invoker_for(fail).forward("GET", TARGET_URL, httpx.Headers())


@pytest.mark.asyncio
async def test_forward_completes_while_client_connected():
    consumed = asyncio.Event()
    consumed.set()
    invoker = invoker_for(lambda request: httpx.Response(204))
    response = await forward_unless_disconnected(
        invoker, FakeRequest(), TARGET_URL, httpx.Headers(), consumed
    )
    assert response.status_code == 204


@pytest.mark.asyncio
async def test_disconnect_cancels_pending_upstream_call():
    cancelled = asyncio.Event()

    class HangingInvoker:
        async def forward(self, method, url, headers, body=None):
            try:
                await asyncio.sleep(60)
            except asyncio.CancelledError:
                cancelled.set()
                raise

    consumed = asyncio.Event()
    consumed.set()
    with pytest.raises(ClientDisconnected):
        await asyncio.wait_for(
            forward_unless_disconnected(
                HangingInvoker(),
                FakeRequest(disconnected=True),
                TARGET_URL,
                httpx.Headers(),
                consumed,
            ),
            timeout=5,
        )
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_disconnect_not_polled_before_body_consumed():
    polled = []

    class WatchedRequest(FakeRequest):
        async def is_disconnected(self):
            polled.append(True)
            return True

    consumed = asyncio.Event()
    invoker = invoker_for(lambda request: httpx.Response(200))
    response = await forward_unless_disconnected(
        invoker, WatchedRequest(), TARGET_URL, httpx.Headers(), consumed
    )
    assert response.status_code == 200
    assert polled == []
