"""Unit tests for signaling endpoint resolution."""

import pytest

from src.signaling.endpoint import OriginEndpoint, StaticEndpoint, resolve_endpoint


@pytest.mark.parametrize(
    ("origin", "expected"),
    [
        ("http://localhost:3000", "ws://localhost:3000/ws"),
        ("https://example.com", "wss://example.com/ws"),
        ("HTTPS://example.com/app/", "wss://example.com/ws"),
        ("wss://relay.example.com:8443", "wss://relay.example.com:8443/ws"),
    ],
)
def test_resolve_endpoint(origin: str, expected: str) -> None:
    """Test secure origins select the secure scheme."""
    assert resolve_endpoint(origin) == expected


def test_resolve_endpoint_custom_path() -> None:
    """Test path without leading slash is normalized."""
    assert resolve_endpoint("http://host", "signal") == "ws://host/signal"


@pytest.mark.parametrize("origin", ["ftp://host", "localhost:3000", "http://"])
def test_resolve_endpoint_invalid(origin: str) -> None:
    """Test unsupported origins are rejected."""
    with pytest.raises(ValueError):
        resolve_endpoint(origin)


def test_static_endpoint() -> None:
    """Test static resolver returns its URL."""
    assert StaticEndpoint("ws://a/ws")() == "ws://a/ws"


def test_origin_endpoint() -> None:
    """Test origin resolver derives the URL on call."""
    resolver = OriginEndpoint("https://example.com", "/ws")
    assert resolver() == "wss://example.com/ws"

    resolver.origin = "http://other"
    assert resolver() == "ws://other/ws"
