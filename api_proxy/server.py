import logging
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from prometheus_client import Info
from prometheus_fastapi_instrumentator import Instrumentator

from api_proxy.app_proxy.upstream import UpstreamInvoker, create_client
from api_proxy.auth import SessionAuthenticator
from api_proxy.config import ProxyConfig, load_config, log_startup_summary
from api_proxy.dispatch import build_dispatch_rules
from api_proxy.errors import UpstreamUnreachable
from api_proxy.routes import router
from api_proxy.telemetry import configure_tracing
from api_proxy.utils.exception_logging import (
    find_exception,
    log_exception_with_details,
)
from api_proxy.vars import SERVICE_NAME

logger = logging.getLogger("uvicorn.error")

app_info = Info("api_proxy_app_info", "Application Info")
app_info.info({"app_name": SERVICE_NAME})


async def handle_unexpected_error(request: Request, exc: Exception):
    """Last line of defence: one failing request never takes the server down."""
    unreachable = find_exception(exc, UpstreamUnreachable)
    if unreachable is not None:
        logger.error(
            f"[Proxy] Failed to reach upstream {unreachable.target_url}: {unreachable.detail}"
        )
        return PlainTextResponse("Bad gateway - cannot reach upstream", status_code=502)
    log_exception_with_details(
        logger, f"[Server] Unhandled error for {request.method} {request.url.path}:", exc
    )
    return PlainTextResponse("Internal Server Error", status_code=500)


def create_app(
    config: Optional[ProxyConfig] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """
    Build the proxy app. ``config`` defaults to the environment; tests pass
    synthetic configurations and an ``httpx.AsyncClient`` on a mock transport.
    """
    config = config or load_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        client = http_client or create_client(config)
        app.state.invoker = UpstreamInvoker(client)
        log_startup_summary(config)
        try:
            yield
        finally:
            if http_client is None:
                await client.aclose()

    app = FastAPI(lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)
    app.state.config = config
    app.state.authenticator = SessionAuthenticator(config)
    app.state.dispatch_rules = build_dispatch_rules(config)

    Instrumentator().instrument(app).expose(app)
    configure_tracing(app)

    app.add_exception_handler(Exception, handle_unexpected_error)
    app.include_router(router)
    return app


app = create_app()
