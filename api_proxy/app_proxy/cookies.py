"""
Set-Cookie parsing and the proxy's cookie rewrite policy.

``http.cookies.SimpleCookie`` drops unknown attributes and rejects many
real-world cookie values, so upstream lines are split by hand into a
``SetCookie`` with an ordered attribute list.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

Attribute = Tuple[str, Optional[str]]

# Attributes the proxy always decides itself
_FORCED_ATTRIBUTES = {"domain", "secure", "samesite"}


@dataclass
class SetCookie:
    name: str
    value: str
    attributes: List[Attribute] = field(default_factory=list)

    def get(self, key: str) -> Optional[str]:
        for attr_key, attr_value in self.attributes:
            if attr_key.lower() == key.lower():
                return attr_value if attr_value is not None else ""
        return None

    def has(self, key: str) -> bool:
        return any(attr_key.lower() == key.lower() for attr_key, _ in self.attributes)

    def serialize(self) -> str:
        parts = [f"{self.name}={self.value}"]
        for key, value in self.attributes:
            parts.append(key if value is None else f"{key}={value}")
        return "; ".join(parts)


def parse_set_cookie(line: str) -> Optional[SetCookie]:
    """Parse one Set-Cookie header value; ``None`` when there is no cookie name."""
    segments = line.split(";")
    name, sep, value = segments[0].partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    cookie = SetCookie(name=name, value=value.strip())
    for segment in segments[1:]:
        segment = segment.strip()
        if not segment:
            continue
        key, sep, attr_value = segment.partition("=")
        cookie.attributes.append(
            (key.strip(), attr_value.strip() if sep else None)
        )
    return cookie


def dedupe_attributes(attributes: List[Attribute]) -> List[Attribute]:
    """Keep the first occurrence of every attribute key (case-insensitive)."""
    seen = set()
    result = []
    for key, value in attributes:
        if key.lower() in seen:
            continue
        seen.add(key.lower())
        result.append((key, value))
    return result


def rewrite_set_cookie(
    line: str,
    *,
    proxy_domain: str,
    session_cookie_name: str,
    samesite: str,
) -> Optional[str]:
    """
    Rewrite an upstream Set-Cookie for the proxy origin.

    Returns ``None`` when the cookie must not reach the client: unparseable
    lines and cookies named like the proxy's own session cookie.
    """
    cookie = parse_set_cookie(line)
    if cookie is None or cookie.name == session_cookie_name:
        return None
    kept = [
        (key, value)
        for key, value in cookie.attributes
        if key.lower() not in _FORCED_ATTRIBUTES
    ]
    kept.extend([("Domain", proxy_domain), ("Secure", None), ("SameSite", samesite)])
    cookie.attributes = dedupe_attributes(kept)
    return cookie.serialize()


def strip_cookie(cookie_header: str, name: str) -> str:
    """Remove ``name`` from a request Cookie header, keeping the other pairs."""
    parts = [p.strip() for p in cookie_header.split(";")]
    return "; ".join(
        p for p in parts if p and p.partition("=")[0].strip() != name
    )


def read_cookie(cookie_header: str, name: str) -> Optional[str]:
    for part in cookie_header.split(";"):
        key, sep, value = part.strip().partition("=")
        if sep and key.strip() == name:
            return value.strip()
    return None
