"""
Failure taxonomy of the proxy.

Route handlers translate these into HTTP status codes; everything that is not
listed here ends up in the catch-all 500 handler of the app.
"""


class ConfigMissing(RuntimeError):
    """Required startup configuration is absent; the app must not serve."""


class AuthDisabledWarning(UserWarning):
    """No shared secret configured, every request is treated as authenticated."""


class InvalidCredentials(Exception):
    """Login submission did not carry the configured password."""


class RouteNotFound(LookupError):
    def __init__(self, path: str):
        super().__init__(f"No route configured for {path}")
        self.path = path


class UpstreamUnreachable(ConnectionError):
    """DNS, TLS, refused connection or timeout while talking to the upstream."""

    def __init__(self, target_url: str, detail: str):
        super().__init__(f"Cannot reach {target_url}: {detail}")
        self.target_url = target_url
        self.detail = detail


class StaticFileNotFound(FileNotFoundError):
    pass


class StaticFileForbidden(PermissionError):
    pass


class ClientDisconnected(Exception):
    """Client went away before the upstream answered."""
