"""Signaling CLI client.

Joins a room over the resilient signaling channel, prints inbound chat
frames and errors, and sends typed lines as chat messages.
"""

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from src.signaling.config import SignalingConfig
from src.signaling.endpoint import OriginEndpoint
from src.signaling.errors import ReconnectExhaustedError
from src.signaling.manager import ConnectionManager, ConnectionState
from src.signaling.protocol import ChatMessage
from src.signaling.utils.logging import log_event, setup_logging

logger = logging.getLogger(__name__)

HELP_TEXT = """
Commands:
  /state - Show connection state
  /quit  - Exit client
  /help  - Show this help
"""


class CLIClient:
    """Interactive client for one signaling room."""

    def __init__(self, room_id: str, config: SignalingConfig, verbose: bool = False) -> None:
        """Initialize CLI client.

        Args:
            room_id: Room/session identifier to join
            config: Signaling configuration
            verbose: Enable verbose logging
        """
        self.room_id = room_id
        self.config = config
        self.verbose = verbose
        self.running = True
        self.manager: ConnectionManager | None = None

    def handle_chat(self, payload: dict[str, Any]) -> None:
        """Print an inbound chat frame.

        Args:
            payload: Full chat payload
        """
        try:
            msg = ChatMessage.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"Malformed chat frame: {e}")
            return
        print(f"\nPeer: {msg.text}")

    def handle_error(self, error: Exception) -> None:
        """Print errors surfaced by the connection manager.

        Args:
            error: Error delivered to the sink
        """
        print(f"\nError: {error}")
        if isinstance(error, ReconnectExhaustedError):
            self.running = False

    def handle_state_change(self, old: ConnectionState, new: ConnectionState) -> None:
        log_event(
            "connection_state",
            {"room_id": self.room_id, "from": old.value, "to": new.value},
        )

    def handle_command(self, command: str) -> None:
        """Execute a slash command.

        Args:
            command: Command name without the leading slash
        """
        if command == "quit":
            self.running = False
            print("\nGoodbye!")
        elif command == "help":
            print(HELP_TEXT)
        elif command == "state":
            state = self.manager.state.value if self.manager else "not started"
            print(f"Connection state: {state}")
        else:
            print(f"Unknown command: {command}")
            print("Type /help for available commands")

    def handle_line(self, text: str) -> None:
        """Handle one line of user input.

        Args:
            text: Raw input line
        """
        text = text.strip()
        if not text:
            return

        if text.startswith("/"):
            self.handle_command(text[1:].lower())
        elif self.manager is not None:
            self.manager.send(ChatMessage(text=text))

    async def input_loop(self) -> None:
        """Read user input from stdin until quit."""
        print("\n" + "=" * 60)
        print(f"Signaling CLI Client - room {self.room_id}")
        print("=" * 60)
        print(HELP_TEXT)

        loop = asyncio.get_running_loop()

        while self.running:
            try:
                text = await loop.run_in_executor(None, input, "You: ")
            except EOFError:
                self.running = False
                break
            self.handle_line(text)

    async def run(self) -> None:
        """Run the CLI client."""
        endpoint = OriginEndpoint(self.config.endpoint.origin, self.config.endpoint.path)
        self.manager = ConnectionManager(
            self.room_id,
            on_error=self.handle_error,
            endpoint=endpoint,
            config=self.config.connection,
            on_state_change=self.handle_state_change,
        )
        self.manager.on_message("chat", self.handle_chat)

        def signal_handler() -> None:
            self.running = False

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, signal_handler)

        input_task = asyncio.create_task(self.input_loop())
        try:
            while self.running and not input_task.done():
                await asyncio.sleep(0.1)
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
            self.manager.close()
            await self.manager.wait_closed()
            # Input thread blocks on stdin; don't wait for it
            input_task.cancel()


def main() -> None:
    """Main entry point for CLI client."""
    parser = argparse.ArgumentParser(description="Signaling channel CLI client")
    parser.add_argument("--room", type=str, required=True, help="Room identifier to join")
    parser.add_argument(
        "--origin",
        type=str,
        default=None,
        help="Application origin (default: from config, http://localhost:3000)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    config = SignalingConfig.from_yaml_with_defaults(args.config)
    if args.origin:
        config.endpoint.origin = args.origin

    setup_logging("DEBUG" if args.verbose else config.log_level)

    client = CLIClient(args.room, config, verbose=args.verbose)
    try:
        asyncio.run(client.run())
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)


if __name__ == "__main__":
    main()
