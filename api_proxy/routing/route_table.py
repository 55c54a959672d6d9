"""
Static prefix-to-origin mapping and longest-prefix resolution.

Matching is plain string ``startswith`` on the request path, not per path
segment: with both ``/openai`` and ``/openai-internal`` configured the longer
one wins, but with only ``/openai`` configured a request for
``/openai-internal/x`` is routed to ``/openai`` with remainder ``-internal/x``.
"""

from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from api_proxy.errors import RouteNotFound

ROUTE_MAPPING: Dict[str, str] = {
    "/xai": "https://api.x.ai",
    "/openai": "https://api.openai.com",
    "/gemini": "https://generativelanguage.googleapis.com",
    "/perplexity": "https://api.perplexity.ai",
}


@dataclass(frozen=True)
class RouteEntry:
    prefix: str
    origin: str

    @property
    def upstream_host(self) -> str:
        """Host (with port when given) of the upstream origin."""
        return urlsplit(self.origin).netloc

    @property
    def upstream_hostname(self) -> str:
        return (urlsplit(self.origin).hostname or "").lower()

    def target_url(self, remainder: str, query: str = "") -> str:
        path = remainder if remainder.startswith("/") else "/" + remainder
        url = f"{self.origin}{path}"
        if query:
            url = f"{url}?{query}"
        return url


class RouteTable:
    """Immutable route table, pre-sorted by descending prefix length."""

    def __init__(self, mapping: Mapping[str, str]):
        entries = []
        for prefix, origin in mapping.items():
            if not prefix or not prefix.startswith("/"):
                raise ValueError(f"Route prefix must start with '/': {prefix!r}")
            parsed = urlsplit(origin)
            if not parsed.scheme or not parsed.netloc:
                raise ValueError(f"Route origin must be an absolute URL: {origin!r}")
            entries.append(RouteEntry(prefix=prefix, origin=origin.rstrip("/")))
        # Sorted once here so resolve() never re-sorts per request
        self._entries: Tuple[RouteEntry, ...] = tuple(
            sorted(entries, key=lambda e: len(e.prefix), reverse=True)
        )

    @classmethod
    def default(cls) -> "RouteTable":
        return cls(ROUTE_MAPPING)

    def __iter__(self):
        return iter(sorted(self._entries, key=lambda e: e.prefix))

    def __len__(self) -> int:
        return len(self._entries)

    def match(self, path: str) -> Tuple[Optional[RouteEntry], str]:
        """Return ``(entry, remainder)`` or ``(None, path)`` when nothing matches."""
        for entry in self._entries:
            if path.startswith(entry.prefix):
                return entry, path[len(entry.prefix):]
        return None, path

    def resolve(self, path: str) -> Tuple[RouteEntry, str]:
        """Like ``match`` but raises ``RouteNotFound``; an empty remainder becomes ``/``."""
        entry, remainder = self.match(path)
        if entry is None:
            raise RouteNotFound(path)
        return entry, remainder or "/"
