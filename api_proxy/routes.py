import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import (
    FileResponse,
    HTMLResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from starlette.exceptions import HTTPException as StarletteHTTPException

from api_proxy.app_proxy.response_rewrite import CORS_ALLOW_HEADERS, CORS_ALLOW_METHODS
from api_proxy.app_proxy.route import forward_to_target, raw_request_path
from api_proxy.auth import safe_redirect_target
from api_proxy.dispatch import STATIC_PREFIX, select_rule
from api_proxy.errors import (
    InvalidCredentials,
    StaticFileForbidden,
    StaticFileNotFound,
)
from api_proxy.pages import render_dashboard, render_login_page
from api_proxy.static_files import resolve_static_path

router = APIRouter()
logger = logging.getLogger("uvicorn.error")

ROBOTS_TXT = "User-agent: *\nDisallow: /"
PROXY_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


def _requested_path(request: Request) -> str:
    path = raw_request_path(request)
    query = request.url.query
    return f"{path}?{query}" if query else path


def _form_text(form, key: str):
    value = form.get(key)
    return value if isinstance(value, str) else None


def login_required(request: Request) -> HTMLResponse:
    config = request.app.state.config
    redirect_to = safe_redirect_target(_requested_path(request))
    return HTMLResponse(
        render_login_page(config, redirect_to=redirect_to),
        status_code=401,
    )


async def handle_preflight(request: Request) -> Response:
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": CORS_ALLOW_METHODS,
            "Access-Control-Allow-Headers": CORS_ALLOW_HEADERS,
            "Access-Control-Max-Age": "86400",
        },
    )


async def handle_status(request: Request) -> Response:
    return PlainTextResponse("OK")


async def handle_robots(request: Request) -> Response:
    return PlainTextResponse(ROBOTS_TXT)


async def handle_login(request: Request) -> Response:
    config = request.app.state.config
    authenticator = request.app.state.authenticator

    try:
        form = await request.form()
    except StarletteHTTPException:
        # Unparseable body counts as a submission without password
        form = {}
    password = _form_text(form, "password")
    redirect_to = safe_redirect_target(_form_text(form, "redirect_to"))

    if not authenticator.enabled:
        return RedirectResponse(redirect_to, status_code=302)

    try:
        authenticator.check_password(password)
    except InvalidCredentials:
        logger.info("[Auth] Login failed: invalid password")
        return HTMLResponse(
            render_login_page(config, redirect_to=redirect_to, error="Invalid password."),
            status_code=401,
        )

    logger.info(f"[Auth] Login succeeded, redirecting to {redirect_to}")
    response = RedirectResponse(redirect_to, status_code=302)
    authenticator.set_session_cookie(response)
    return response


async def handle_static(request: Request) -> Response:
    config = request.app.state.config
    relative_path = request.url.path[len(STATIC_PREFIX):]
    try:
        path = resolve_static_path(config.static_root, relative_path)
    except StaticFileForbidden:
        raise HTTPException(status_code=403, detail="Forbidden")
    except StaticFileNotFound:
        raise HTTPException(status_code=404, detail="Not Found")
    return FileResponse(path)


async def handle_dashboard(request: Request) -> Response:
    return HTMLResponse(render_dashboard(request.app.state.config))


async def handle_proxy(request: Request) -> Response:
    state = request.app.state
    return await forward_to_target(request, state.config, state.invoker)


async def handle_not_found(request: Request) -> Response:
    raise HTTPException(status_code=404, detail="Not Found: Invalid path.")


HANDLERS = {
    "preflight": handle_preflight,
    "status": handle_status,
    "robots": handle_robots,
    "login": handle_login,
    "static": handle_static,
    "dashboard": handle_dashboard,
    "proxy": handle_proxy,
    "not_found": handle_not_found,
}


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def dispatch_request(request: Request, path: str):
    """Single entry point: pick the dispatch rule, apply the session gate, run it."""
    state = request.app.state
    rule = select_rule(state.dispatch_rules, request.method, request.url.path)
    if rule.requires_auth and not state.authenticator.is_authenticated(request.cookies):
        logger.info(f"[Auth] Authentication required for {request.url.path}")
        return login_required(request)
    return await HANDLERS[rule.name](request)
