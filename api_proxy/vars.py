import os

SERVICE_NAME = os.getenv("SERVICE_NAME", "api-proxy")

PROXY_DOMAIN = os.environ.get("PROXY_DOMAIN", "").strip()
PROXY_PASSWORD = os.environ.get("PROXY_PASSWORD", "")
PROXY_HOST = os.environ.get("PROXY_HOST", "0.0.0.0")
PROXY_PORT = int(os.environ.get("PROXY_PORT", "8000"))
PROXY_TIMEOUT = int(os.environ.get("PROXY_TIMEOUT", "300"))  # seconds

AUTH_COOKIE_NAME = os.environ.get("AUTH_COOKIE_NAME", "api_proxy_auth_token")
AUTH_COOKIE_MAX_AGE = int(os.environ.get("AUTH_COOKIE_MAX_AGE", "86400"))
AUTH_TOKEN_SCHEME = os.environ.get("AUTH_TOKEN_SCHEME", "signed").lower()
LOGIN_PATH = os.environ.get("LOGIN_PATH", "/auth-login")
AUTH_EXEMPT_API_ROUTES = (
    os.environ.get("AUTH_EXEMPT_API_ROUTES", "false").lower() == "true"
)

HEADER_POLICY = os.environ.get("HEADER_POLICY", "passthrough").lower()
FORWARD_COOKIES = os.environ.get("FORWARD_COOKIES", "false").lower() == "true"
REWRITE_ORIGIN_HEADERS = (
    os.environ.get("REWRITE_ORIGIN_HEADERS", "true").lower() == "true"
)
OVERRIDE_ACCEPT_LANGUAGE = (
    os.environ.get("OVERRIDE_ACCEPT_LANGUAGE", "false").lower() == "true"
)
LANGUAGE_COOKIE_NAME = os.environ.get("LANGUAGE_COOKIE_NAME", "proxy_lang")
DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "en-US")

SECURITY_HEADER_MODE = os.environ.get("SECURITY_HEADER_MODE", "harden").lower()
COOKIE_SAMESITE = os.environ.get("COOKIE_SAMESITE", "None")
CORS_ALLOW_ALL = os.environ.get("CORS_ALLOW_ALL", "true").lower() == "true"

STATIC_ROOT = os.environ.get("STATIC_ROOT", "./public")

OTLP_ENDPOINT = os.getenv("OTLP_ENDPOINT")
OTLP_HEADERS = os.getenv("OTLP_HEADERS", "")
