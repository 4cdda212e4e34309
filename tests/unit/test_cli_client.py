"""Unit tests for the signaling CLI client."""

from unittest.mock import MagicMock, patch

from src.client.cli_client import CLIClient
from src.signaling.config import SignalingConfig
from src.signaling.errors import ReconnectExhaustedError, ServerReportedError
from src.signaling.manager import ConnectionState


def make_client() -> CLIClient:
    return CLIClient("room-1", SignalingConfig())


class TestCLIClient:
    """Test suite for CLIClient class."""

    def test_init(self) -> None:
        """Test CLIClient initialization."""
        client = make_client()

        assert client.room_id == "room-1"
        assert client.running is True
        assert client.manager is None

    def test_handle_chat(self, capsys) -> None:
        """Test inbound chat is printed."""
        client = make_client()

        client.handle_chat({"type": "chat", "text": "hello there"})

        assert "Peer: hello there" in capsys.readouterr().out

    def test_handle_malformed_chat(self, capsys) -> None:
        """Test malformed chat frames are ignored."""
        client = make_client()

        client.handle_chat({"type": "chat"})

        assert "Peer" not in capsys.readouterr().out

    def test_handle_error(self, capsys) -> None:
        """Test non-fatal errors keep the client running."""
        client = make_client()

        client.handle_error(ServerReportedError("room full"))

        assert "room full" in capsys.readouterr().out
        assert client.running is True

    def test_handle_exhaustion_stops(self) -> None:
        """Test reconnect exhaustion stops the client."""
        client = make_client()

        client.handle_error(ReconnectExhaustedError(3))

        assert client.running is False

    def test_handle_line_sends_chat(self) -> None:
        """Test plain lines are sent as chat messages."""
        client = make_client()
        client.manager = MagicMock()

        client.handle_line("  hi there  ")

        client.manager.send.assert_called_once()
        message = client.manager.send.call_args[0][0]
        assert message.type == "chat"
        assert message.text == "hi there"

    def test_handle_blank_line(self) -> None:
        """Test blank lines are ignored."""
        client = make_client()
        client.manager = MagicMock()

        client.handle_line("   ")

        client.manager.send.assert_not_called()

    def test_quit_command(self) -> None:
        """Test /quit stops the client."""
        client = make_client()
        client.manager = MagicMock()

        client.handle_line("/quit")

        assert client.running is False
        client.manager.send.assert_not_called()

    def test_state_command(self, capsys) -> None:
        """Test /state prints the connection state."""
        client = make_client()
        client.manager = MagicMock()
        client.manager.state = ConnectionState.RECONNECTING

        client.handle_line("/STATE")

        assert "reconnecting" in capsys.readouterr().out

    def test_unknown_command(self, capsys) -> None:
        """Test unknown commands print help hint."""
        client = make_client()

        client.handle_line("/dance")

        assert "Unknown command: dance" in capsys.readouterr().out

    def test_state_change_logged(self) -> None:
        """Test state transitions are logged as structured events."""
        client = make_client()

        with patch("src.client.cli_client.log_event") as mock_log:
            client.handle_state_change(ConnectionState.CONNECTING, ConnectionState.OPEN)

        mock_log.assert_called_once_with(
            "connection_state",
            {"room_id": "room-1", "from": "connecting", "to": "open"},
        )
