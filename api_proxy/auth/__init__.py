from .session_auth import SessionAuthenticator, safe_redirect_target

__all__ = ["SessionAuthenticator", "safe_redirect_target"]
