"""Inbound message routing by type tag."""

import logging
from collections.abc import Callable
from typing import Any

from src.signaling.protocol import TypedFrame

logger = logging.getLogger(__name__)

MessageHandler = Callable[[dict[str, Any]], None]


class HandlerRegistry:
    """Maps a message type tag to exactly one handler.

    Registering a tag that already has a handler replaces it. There is no
    fan-out and no unregistration; handlers live until replaced or cleared.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, MessageHandler] = {}

    def register(self, message_type: str, handler: MessageHandler) -> None:
        """Register or replace the handler for a type tag.

        Args:
            message_type: Type tag to route
            handler: Callback receiving the full payload
        """
        if message_type in self._handlers:
            logger.debug("Replacing handler", extra={"message_type": message_type})
        else:
            logger.debug("Registering handler", extra={"message_type": message_type})
        self._handlers[message_type] = handler

    def get(self, message_type: str) -> MessageHandler | None:
        return self._handlers.get(message_type)

    def dispatch(self, frame: TypedFrame) -> bool:
        """Invoke the handler for a frame, if one is registered.

        Handler exceptions propagate to the caller.

        Args:
            frame: Decoded inbound frame

        Returns:
            True if a handler was invoked, False if the frame was discarded
        """
        handler = self._handlers.get(frame.type)
        if handler is None:
            logger.debug("No handler for message type, discarding", extra={"message_type": frame.type})
            return False

        handler(frame.payload)
        return True

    def clear(self) -> None:
        self._handlers.clear()

    def __contains__(self, message_type: object) -> bool:
        return message_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
