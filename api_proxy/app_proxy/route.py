import asyncio
import logging

from fastapi import HTTPException, Request
from fastapi.responses import Response, StreamingResponse
from opentelemetry import trace

from api_proxy.app_proxy.headers import build_upstream_headers, resolve_language
from api_proxy.app_proxy.response_rewrite import (
    RewriteContext,
    rewrite_response_headers,
)
from api_proxy.app_proxy.upstream import (
    UpstreamInvoker,
    drop_encoding_headers,
    forward_unless_disconnected,
    has_body,
    relay_response_body,
    stream_request_body,
)
from api_proxy.config import ProxyConfig
from api_proxy.errors import ClientDisconnected, RouteNotFound, UpstreamUnreachable
from api_proxy.utils.exception_logging import log_exception_with_details

tracer = trace.get_tracer(__name__)
logger = logging.getLogger("uvicorn.error")

# nginx convention for "client closed request"; only ever seen in logs/metrics
CLIENT_CLOSED_REQUEST = 499


def raw_request_path(request: Request) -> str:
    """The path as the client sent it, percent-escapes intact."""
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]


async def forward_to_target(
    request: Request, config: ProxyConfig, invoker: UpstreamInvoker
) -> Response:
    """
    Forward a prefix-routed request to its upstream origin and relay the answer:
    - outbound headers per the configured header policy
    - manual redirects, Location made proxy-relative
    - Set-Cookie domain/attributes rewritten, session cookie collisions dropped
    - security headers added or stripped, Vary includes Cookie
    - both bodies streamed
    """
    try:
        route, remainder = config.routes.resolve(raw_request_path(request))
    except RouteNotFound:
        raise HTTPException(status_code=404, detail="Not Found: Invalid path.")

    target_url = route.target_url(remainder, request.url.query)

    with tracer.start_as_current_span("proxy_request") as span:
        span.set_attribute("proxy.target_url", target_url)
        span.set_attribute("proxy.method", request.method)
        span.set_attribute("proxy.route", route.prefix)

        logger.debug(f"[Proxy] {request.method} {request.url.path} -> {target_url}")

        language = None
        if config.override_accept_language:
            language = resolve_language(request.headers.get("cookie", ""), config)
        headers = build_upstream_headers(
            request.headers.items(), route, config, language
        )

        body_consumed = asyncio.Event()
        body = None
        if has_body(request):
            body = stream_request_body(request, body_consumed)
        else:
            body_consumed.set()

        try:
            upstream = await forward_unless_disconnected(
                invoker, request, target_url, headers, body_consumed, body
            )
        except UpstreamUnreachable as e:
            logger.error(f"[Proxy] Failed to reach upstream {target_url}: {e.detail}")
            span.set_attribute("proxy.error", "upstream_unreachable")
            raise HTTPException(
                status_code=502, detail="Bad gateway - cannot reach upstream"
            )
        except ClientDisconnected:
            logger.info(
                f"[Proxy] Client disconnected, cancelled upstream call to {target_url}"
            )
            span.set_attribute("proxy.error", "client_disconnected")
            return Response(status_code=CLIENT_CLOSED_REQUEST)
        except Exception as e:
            log_exception_with_details(
                logger, f"[Proxy] Unexpected failure forwarding to {target_url}:", e
            )
            span.set_attribute("proxy.error", "unexpected")
            raise HTTPException(
                status_code=500, detail="Internal Server Error: Proxy failed."
            )

        span.set_attribute("proxy.status_code", upstream.status_code)

        try:
            context = RewriteContext(
                config=config, route=route, target_url=target_url, language=language
            )
            client_headers = rewrite_response_headers(
                upstream.headers.multi_items(), context
            )
            if upstream.is_stream_consumed:
                client_headers = drop_encoding_headers(client_headers)
        except Exception:
            await upstream.aclose()
            raise

        for name, value in client_headers:
            if name.lower() == "location":
                span.set_attribute("proxy.rewritten_location", value)

        response = StreamingResponse(
            relay_response_body(upstream, target_url),
            status_code=upstream.status_code,
        )
        for name, value in client_headers:
            response.headers.append(name, value)
        return response
