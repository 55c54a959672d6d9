"""
Inbound header policy: what the client gets to see of the upstream response.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from urllib.parse import urljoin, urlsplit, urlunsplit

from api_proxy.app_proxy.cookies import rewrite_set_cookie
from api_proxy.app_proxy.headers import HOP_BY_HOP_HEADERS
from api_proxy.config import ProxyConfig
from api_proxy.routing import RouteEntry

logger = logging.getLogger("uvicorn.error")

# Origin policies of the upstream that are wrong once served from the proxy origin
STRIPPED_SECURITY_HEADERS = {
    "content-security-policy",
    "content-security-policy-report-only",
    "x-frame-options",
    "strict-transport-security",
}

HARDENING_HEADERS = [
    ("X-Content-Type-Options", "nosniff"),
    ("X-Frame-Options", "DENY"),
    ("Referrer-Policy", "no-referrer"),
]

CORS_ALLOW_METHODS = "GET,POST,PUT,DELETE,PATCH,HEAD,OPTIONS"
CORS_ALLOW_HEADERS = "Content-Type,Authorization,X-Requested-With"
CORS_HEADERS = [
    ("Access-Control-Allow-Origin", "*"),
    ("Access-Control-Allow-Methods", CORS_ALLOW_METHODS),
    ("Access-Control-Allow-Headers", CORS_ALLOW_HEADERS),
]

LANGUAGE_COOKIE_MAX_AGE = 365 * 24 * 60 * 60

Header = Tuple[str, str]


@dataclass(frozen=True)
class RewriteContext:
    config: ProxyConfig
    route: RouteEntry
    target_url: str
    language: Optional[str] = None


def _is_upstream_host(hostname: Optional[str], route: RouteEntry) -> bool:
    if not hostname:
        return False
    hostname = hostname.lower()
    base = route.upstream_hostname
    return hostname == base or hostname.endswith("." + base)


def rewrite_location(location: str, context: RewriteContext) -> str:
    """
    Make redirects into the upstream same-origin relative so the client keeps
    talking to the proxy. Foreign redirects are left alone.
    """
    if not location:
        return location
    try:
        resolved = urlsplit(urljoin(context.target_url, location))
    except ValueError:
        logger.debug(f"[Proxy] Unparseable Location header left unchanged: {location}")
        return location
    if not _is_upstream_host(resolved.hostname, context.route):
        return location
    return urlunsplit(("", "", resolved.path or "/", resolved.query, resolved.fragment))


def merge_vary(values: Iterable[str], token: str = "Cookie") -> str:
    """Merge comma-separated Vary values and add ``token`` once, case-insensitively."""
    tokens: List[str] = []
    seen = set()
    for value in values:
        for item in value.split(","):
            item = item.strip()
            if item and item.lower() not in seen:
                seen.add(item.lower())
                tokens.append(item)
    if token.lower() not in seen:
        tokens.append(token)
    return ", ".join(tokens)


def language_cookie(context: RewriteContext) -> str:
    config = context.config
    language = context.language or config.default_language
    return (
        f"{config.language_cookie_name}={language}; Path=/; Domain={config.domain}; "
        f"Max-Age={LANGUAGE_COOKIE_MAX_AGE}; Secure; SameSite=Lax"
    )


def rewrite_response_headers(
    upstream_headers: Iterable[Header], context: RewriteContext
) -> List[Header]:
    """
    Transform upstream response headers into the client header list.

    Returns a list rather than a mapping because ``Set-Cookie`` may repeat.
    """
    config = context.config
    result: List[Header] = []
    vary_values: List[str] = []
    dropped_cookies = 0

    for name, value in upstream_headers:
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS:
            continue
        if name_lower == "vary":
            vary_values.append(value)
            continue
        if name_lower == "location":
            value = rewrite_location(value, context)
        elif name_lower == "set-cookie":
            rewritten = rewrite_set_cookie(
                value,
                proxy_domain=config.domain,
                session_cookie_name=config.session_cookie_name,
                samesite=config.cookie_samesite,
            )
            if rewritten is None:
                dropped_cookies += 1
                continue
            value = rewritten
        elif config.security_header_mode == "strip" and (
            name_lower in STRIPPED_SECURITY_HEADERS
        ):
            continue
        result.append((name, value))

    if dropped_cookies:
        logger.debug(
            f"[Proxy] Dropped {dropped_cookies} upstream Set-Cookie header(s) for {context.target_url}"
        )

    overrides: List[Header] = []
    if config.security_header_mode == "harden":
        overrides.extend(HARDENING_HEADERS)
    if config.cors_allow_all:
        overrides.extend(CORS_HEADERS)
    _set_headers(result, overrides)

    result.append(("Vary", merge_vary(vary_values)))
    if config.override_accept_language:
        result.append(("Set-Cookie", language_cookie(context)))
    return result


def _set_headers(headers: List[Header], overrides: List[Header]) -> None:
    """Replace every existing occurrence of the override names, in place."""
    names = {name.lower() for name, _ in overrides}
    headers[:] = [(k, v) for k, v in headers if k.lower() not in names]
    headers.extend(overrides)
