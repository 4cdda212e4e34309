"""Signaling endpoint resolution.

The endpoint is derived from the application origin plus a fixed path; a
secure origin selects the secure websocket scheme. Resolution is pluggable so
tests and embedders can point the manager anywhere.
"""

from collections.abc import Callable
from urllib.parse import urlsplit, urlunsplit

EndpointResolver = Callable[[], str]

_SCHEME_MAP = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


def resolve_endpoint(origin: str, path: str = "/ws") -> str:
    """Build a websocket URL from an origin and path.

    Args:
        origin: Application origin (e.g., https://example.com)
        path: Well-known signaling path

    Returns:
        Websocket URL (e.g., wss://example.com/ws)

    Raises:
        ValueError: If the origin is missing a host or has an unsupported scheme
    """
    parts = urlsplit(origin)
    scheme = _SCHEME_MAP.get(parts.scheme.lower())
    if scheme is None:
        raise ValueError(f"Unsupported origin scheme: '{parts.scheme}'")
    if not parts.netloc:
        raise ValueError(f"Origin has no host: '{origin}'")

    if not path.startswith("/"):
        path = f"/{path}"
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class StaticEndpoint:
    """Resolver that always returns the same URL."""

    def __init__(self, url: str) -> None:
        self.url = url

    def __call__(self) -> str:
        return self.url

    def __repr__(self) -> str:
        return f"StaticEndpoint({self.url!r})"


class OriginEndpoint:
    """Resolver that derives the URL from an origin on every call."""

    def __init__(self, origin: str, path: str = "/ws") -> None:
        self.origin = origin
        self.path = path

    def __call__(self) -> str:
        return resolve_endpoint(self.origin, self.path)

    def __repr__(self) -> str:
        return f"OriginEndpoint({self.origin!r}, {self.path!r})"
