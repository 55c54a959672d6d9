"""
Outbound header policy: what the upstream gets to see of the client request.
"""

import re
from typing import Iterable, List, Optional, Tuple

import httpx

from api_proxy.app_proxy.cookies import read_cookie, strip_cookie
from api_proxy.config import ProxyConfig
from api_proxy.routing import RouteEntry

# Hop-by-hop headers that should NOT be forwarded (RFC 7230 section 6.1)
HOP_BY_HOP_HEADERS = {
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "trailers",
    "transfer-encoding",
    "upgrade",
}

# Headers revealing the proxy hop or the client address
PROXY_CHAIN_HEADERS = {
    "via",
    "forwarded",
    "x-real-ip",
    "cf-connecting-ip",
    "true-client-ip",
    "x-client-ip",
}

ALLOWED_UPSTREAM_HEADERS = {
    "accept",
    "accept-encoding",
    "content-type",
    "content-length",
    "authorization",
    "x-api-key",
    "x-goog-api-key",
    "openai-organization",
    "openai-beta",
    "user-agent",
}

# Set explicitly below, never copied
_REWRITTEN_HEADERS = {"host", "origin", "referer"}

_LANGUAGE_TAG = re.compile(r"^[A-Za-z]{1,8}(-[A-Za-z0-9]{1,8})*$")


def is_proxy_chain_header(name: str) -> bool:
    return name in PROXY_CHAIN_HEADERS or name.startswith("x-forwarded-")


def resolve_language(cookie_header: str, config: ProxyConfig) -> str:
    """Language preference from the language cookie, else the configured default."""
    value = read_cookie(cookie_header or "", config.language_cookie_name)
    if value and _LANGUAGE_TAG.match(value):
        return value
    return config.default_language


def build_upstream_headers(
    original_headers: Iterable[Tuple[str, str]],
    route: RouteEntry,
    config: ProxyConfig,
    language: Optional[str] = None,
) -> httpx.Headers:
    """
    Build the header set for the upstream leg.

    Passthrough copies everything except hop-by-hop and proxy-chain headers;
    allowlist starts empty and copies only ``ALLOWED_UPSTREAM_HEADERS``. In both
    modes the proxy's own session cookie never leaves the proxy.
    """
    original: List[Tuple[str, str]] = list(original_headers)
    allowed = set(ALLOWED_UPSTREAM_HEADERS)
    if config.forward_cookies:
        allowed.add("cookie")

    headers: List[Tuple[str, str]] = []
    for name, value in original:
        name_lower = name.lower()
        if name_lower in HOP_BY_HOP_HEADERS or name_lower in _REWRITTEN_HEADERS:
            continue
        if is_proxy_chain_header(name_lower):
            continue
        if config.header_policy == "allowlist" and name_lower not in allowed:
            continue
        if name_lower == "cookie":
            value = strip_cookie(value, config.session_cookie_name)
            if not value:
                continue
        if name_lower == "accept-language" and config.override_accept_language:
            continue
        headers.append((name, value))

    headers.insert(0, ("host", route.upstream_host))
    if config.rewrite_origin_headers:
        upstream_origin = f"https://{route.upstream_host}/"
        headers.append(("origin", upstream_origin))
        headers.append(("referer", upstream_origin))
    elif config.header_policy == "passthrough":
        headers.extend(
            (name, value)
            for name, value in original
            if name.lower() in ("origin", "referer")
        )
    if config.override_accept_language:
        headers.append(("accept-language", language or config.default_language))
    return httpx.Headers(headers)
