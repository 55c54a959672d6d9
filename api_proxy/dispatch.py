"""
Ordered dispatch table: exact static paths first, then prefix-routed proxy
paths, then the 404 fallback. Kept free of any HTTP framework types so the
routing decision can be tested on its own.
"""

from dataclasses import dataclass
from typing import Callable, List

from api_proxy.config import ProxyConfig

STATUS_PATH = "/status"
ROBOTS_PATH = "/robots.txt"
STATIC_PREFIX = "/public/"
DASHBOARD_PATHS = ("/", "/index.html")


@dataclass(frozen=True)
class DispatchRule:
    name: str
    matches: Callable[[str, str], bool]
    requires_auth: bool


def build_dispatch_rules(config: ProxyConfig) -> List[DispatchRule]:
    routes = config.routes

    def is_proxied(method: str, path: str) -> bool:
        entry, _ = routes.match(path)
        return entry is not None

    rules = []
    if config.cors_allow_all:
        rules.append(
            DispatchRule("preflight", lambda method, path: method == "OPTIONS", False)
        )
    rules.extend(
        [
            DispatchRule(
                "status",
                lambda method, path: method in ("GET", "HEAD") and path == STATUS_PATH,
                False,
            ),
            DispatchRule(
                "robots",
                lambda method, path: method in ("GET", "HEAD") and path == ROBOTS_PATH,
                False,
            ),
            DispatchRule(
                "login",
                lambda method, path: method == "POST" and path == config.login_path,
                False,
            ),
            DispatchRule(
                "static",
                lambda method, path: method in ("GET", "HEAD")
                and path.startswith(STATIC_PREFIX),
                False,
            ),
            DispatchRule(
                "dashboard",
                lambda method, path: method in ("GET", "HEAD")
                and path in DASHBOARD_PATHS,
                True,
            ),
            DispatchRule("proxy", is_proxied, not config.exempt_api_routes),
            DispatchRule("not_found", lambda method, path: True, False),
        ]
    )
    return rules


def select_rule(rules: List[DispatchRule], method: str, path: str) -> DispatchRule:
    for rule in rules:
        if rule.matches(method.upper(), path):
            return rule
    raise LookupError(f"No dispatch rule for {method} {path}")
