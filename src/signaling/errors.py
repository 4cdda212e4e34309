"""Error taxonomy for the signaling channel.

Every error that does not force a state transition is delivered to the error
sink supplied to the connection manager. None of these are raised out of the
public manager operations.
"""


class SignalingError(Exception):
    """Base class for all signaling channel errors."""


class TransportSetupError(SignalingError):
    """Transport failed to construct, connect, or open within the timeout."""


class UnexpectedCloseError(SignalingError):
    """Peer or infrastructure closed the channel."""

    def __init__(self, message: str, code: int | None = None, reason: str = "") -> None:
        super().__init__(message)
        self.code = code
        self.reason = reason


class FrameDecodeError(SignalingError):
    """Inbound frame was not well-formed JSON."""

    def __init__(self, message: str, raw: str | bytes | None = None) -> None:
        super().__init__(message)
        self.raw = raw


class ServerReportedError(SignalingError):
    """Inbound frame carried an explicit error field."""

    def __init__(self, message: str, payload: dict | None = None) -> None:
        super().__init__(message)
        self.payload = payload or {}


class ReconnectExhaustedError(SignalingError):
    """Retry budget consumed; the manager will not recover on its own."""

    def __init__(self, attempts: int) -> None:
        super().__init__(
            f"Failed to establish signaling connection after {attempts} attempts"
        )
        self.attempts = attempts


class SendError(SignalingError):
    """Serializing or transmitting an outbound frame failed."""


class HeartbeatError(SendError):
    """A keepalive frame could not be sent."""


class HandlerError(SignalingError):
    """A registered message handler raised."""

    def __init__(self, message_type: str, cause: BaseException) -> None:
        super().__init__(f"Handler for '{message_type}' failed: {cause}")
        self.message_type = message_type
        self.__cause__ = cause
