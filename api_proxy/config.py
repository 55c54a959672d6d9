"""
Process-wide configuration, built once at startup and injected everywhere.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from api_proxy import vars as env
from api_proxy.errors import AuthDisabledWarning, ConfigMissing
from api_proxy.routing import RouteTable

logger = logging.getLogger("uvicorn.error")

MIN_SESSION_MAX_AGE = 60 * 60
MAX_SESSION_MAX_AGE = 30 * 24 * 60 * 60

TOKEN_SCHEMES = ("signed", "digest")
HEADER_POLICIES = ("passthrough", "allowlist")
SECURITY_HEADER_MODES = ("harden", "strip")
SAMESITE_VALUES = ("Strict", "Lax", "None")


@dataclass(frozen=True)
class ProxyConfig:
    domain: str
    routes: RouteTable = field(default_factory=RouteTable.default)
    password: Optional[str] = None
    timeout: float = 300.0

    session_cookie_name: str = "api_proxy_auth_token"
    session_max_age: int = 86400
    token_scheme: str = "signed"
    login_path: str = "/auth-login"
    exempt_api_routes: bool = False

    header_policy: str = "passthrough"
    forward_cookies: bool = False
    rewrite_origin_headers: bool = True
    override_accept_language: bool = False
    language_cookie_name: str = "proxy_lang"
    default_language: str = "en-US"

    security_header_mode: str = "harden"
    cookie_samesite: str = "None"
    cors_allow_all: bool = True
    static_root: str = "./public"

    def __post_init__(self):
        if not self.domain:
            raise ConfigMissing(
                "PROXY_DOMAIN is not set. Set it (e.g. 'export PROXY_DOMAIN=myproxy.example.com') and retry."
            )
        _check_choice("AUTH_TOKEN_SCHEME", self.token_scheme, TOKEN_SCHEMES)
        _check_choice("HEADER_POLICY", self.header_policy, HEADER_POLICIES)
        _check_choice(
            "SECURITY_HEADER_MODE", self.security_header_mode, SECURITY_HEADER_MODES
        )
        _check_choice("COOKIE_SAMESITE", self.cookie_samesite, SAMESITE_VALUES)
        if not MIN_SESSION_MAX_AGE <= self.session_max_age <= MAX_SESSION_MAX_AGE:
            raise ValueError(
                f"AUTH_COOKIE_MAX_AGE must be between {MIN_SESSION_MAX_AGE} and {MAX_SESSION_MAX_AGE} seconds"
            )
        if not self.login_path.startswith("/"):
            raise ValueError(f"LOGIN_PATH must start with '/': {self.login_path!r}")

    @property
    def auth_enabled(self) -> bool:
        return bool(self.password)


def _check_choice(name: str, value: str, allowed) -> None:
    if value not in allowed:
        raise ValueError(f"{name} must be one of {', '.join(allowed)}, got {value!r}")


def load_config() -> ProxyConfig:
    """Build the configuration from the environment values in ``api_proxy.vars``."""
    samesite = env.COOKIE_SAMESITE.strip().capitalize()
    return ProxyConfig(
        domain=env.PROXY_DOMAIN,
        routes=RouteTable.default(),
        password=env.PROXY_PASSWORD or None,
        timeout=float(env.PROXY_TIMEOUT),
        session_cookie_name=env.AUTH_COOKIE_NAME,
        session_max_age=env.AUTH_COOKIE_MAX_AGE,
        token_scheme=env.AUTH_TOKEN_SCHEME,
        login_path=env.LOGIN_PATH,
        exempt_api_routes=env.AUTH_EXEMPT_API_ROUTES,
        header_policy=env.HEADER_POLICY,
        forward_cookies=env.FORWARD_COOKIES,
        rewrite_origin_headers=env.REWRITE_ORIGIN_HEADERS,
        override_accept_language=env.OVERRIDE_ACCEPT_LANGUAGE,
        language_cookie_name=env.LANGUAGE_COOKIE_NAME,
        default_language=env.DEFAULT_LANGUAGE,
        security_header_mode=env.SECURITY_HEADER_MODE,
        cookie_samesite=samesite,
        cors_allow_all=env.CORS_ALLOW_ALL,
        static_root=env.STATIC_ROOT,
    )


def log_startup_summary(config: ProxyConfig) -> None:
    logger.info(f"[Startup] Proxy domain: {config.domain}")
    logger.info(f"[Startup] Listening on {env.PROXY_HOST}:{env.PROXY_PORT}")
    logger.warning(f"[Startup] Access the proxy over HTTPS: https://{config.domain}/")
    logger.info("[Startup] Available proxy routes:")
    for entry in config.routes:
        logger.info(f"[Startup]   - https://{config.domain}{entry.prefix} -> {entry.origin}")
    if not config.auth_enabled:
        logger.warning(
            "[Startup] PROXY_PASSWORD is not set. Authentication is disabled, "
            f"every request is treated as authenticated ({AuthDisabledWarning.__name__})."
        )
