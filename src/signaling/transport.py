"""Transport abstraction for the signaling channel.

The connection manager talks to anything that looks like a websockets
client connection: async send, async close, and async iteration over
inbound frames. The default connector opens a real websocket.
"""

from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Protocol

from websockets.asyncio.client import ClientConnection, connect


class SignalingTransport(Protocol):
    """Structural type for an open signaling transport.

    websockets' ``ClientConnection`` satisfies this protocol. Implementations
    may also expose ``state`` (a ``websockets.protocol.State``) plus
    ``close_code``/``close_reason`` so the manager can detect a transport that
    went away without delivering a close event.
    """

    async def send(self, message: str) -> None:
        """Transmit one text frame.

        Raises:
            websockets.exceptions.ConnectionClosed: If the transport is closed
        """
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        """Close the transport with a close code and reason."""
        ...

    def __aiter__(self) -> AsyncIterator[str | bytes]:
        """Iterate inbound frames until the transport closes."""
        ...


Connector = Callable[[str], Awaitable[SignalingTransport]]


async def websocket_connector(url: str) -> ClientConnection:
    """Open a websocket client connection.

    The manager enforces its own connection timeout, so websockets'
    opening-handshake timeout is disabled here.

    Args:
        url: ws:// or wss:// endpoint

    Returns:
        Open websocket client connection
    """
    return await connect(url, open_timeout=None)
