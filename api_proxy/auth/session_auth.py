"""
Shared-secret session authentication.

Two token schemes are supported:

- ``signed`` (default): an HS256 JWT with ``iat``/``exp`` claims, keyed with a
  value derived from the password. Expiry is enforced server side.
- ``digest``: the SHA-256 hex digest of the password, a static bearer value.
  Expiry relies on the cookie Max-Age only.

Forging either token requires knowing the password.
"""

import hashlib
import hmac
import logging
import time
from typing import Callable, Mapping, Optional

import jwt
from starlette.responses import Response

from api_proxy.config import ProxyConfig
from api_proxy.errors import InvalidCredentials
from api_proxy.utils import token_fingerprint

logger = logging.getLogger("uvicorn.error")

SESSION_SUBJECT = "api-proxy-session"
_SIGNING_KEY_CONTEXT = b"api-proxy session signing key\x00"
_ALGORITHM = "HS256"


def password_digest(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def safe_redirect_target(value: Optional[str]) -> str:
    """Only same-site absolute paths are valid post-login targets."""
    if not value or not value.startswith("/") or value.startswith(("//", "/\\")):
        return "/"
    return value


class SessionAuthenticator:
    def __init__(self, config: ProxyConfig, clock: Callable[[], float] = time.time):
        self.config = config
        self._clock = clock
        password = config.password or ""
        self._signing_key = hashlib.sha256(
            _SIGNING_KEY_CONTEXT + password.encode("utf-8")
        ).digest()
        self._digest = password_digest(password) if password else ""

    @property
    def enabled(self) -> bool:
        return self.config.auth_enabled

    @property
    def cookie_name(self) -> str:
        return self.config.session_cookie_name

    def check_password(self, submitted: Optional[str]) -> None:
        """Raise ``InvalidCredentials`` unless ``submitted`` equals the secret."""
        if not self.enabled:
            return
        if not isinstance(submitted, str) or not hmac.compare_digest(
            submitted.encode("utf-8"), self.config.password.encode("utf-8")
        ):
            raise InvalidCredentials("Invalid password")

    def issue_token(self) -> str:
        if self.config.token_scheme == "digest":
            return self._digest
        now = int(self._clock())
        payload = {
            "sub": SESSION_SUBJECT,
            "iat": now,
            "exp": now + self.config.session_max_age,
        }
        return jwt.encode(payload, self._signing_key, algorithm=_ALGORITHM)

    def validate_token(self, token: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if not token:
            return False
        if self.config.token_scheme == "digest":
            return hmac.compare_digest(token.encode("utf-8"), self._digest.encode("utf-8"))
        try:
            payload = jwt.decode(
                token,
                self._signing_key,
                algorithms=[_ALGORITHM],
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            logger.info(f"[Auth] Session token expired ({token_fingerprint(token)})")
            return False
        except jwt.InvalidTokenError as e:
            logger.info(
                f"[Auth] Rejected session token ({token_fingerprint(token)}): {e}"
            )
            return False
        return payload.get("sub") == SESSION_SUBJECT

    def is_authenticated(self, cookies: Mapping[str, str]) -> bool:
        if not self.enabled:
            return True
        return self.validate_token(cookies.get(self.cookie_name))

    def set_session_cookie(self, response: Response) -> None:
        response.set_cookie(
            key=self.cookie_name,
            value=self.issue_token(),
            max_age=self.config.session_max_age,
            path="/",
            domain=self.config.domain,
            secure=True,
            httponly=True,
            samesite="lax",
        )
