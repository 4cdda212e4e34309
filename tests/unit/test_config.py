"""Unit tests for signaling configuration.

Tests configuration loading, validation, and defaults.
"""

from pathlib import Path
from unittest.mock import Mock, patch

import pytest
from pydantic import ValidationError

from src.signaling.config import ConnectionConfig, EndpointConfig, SignalingConfig


def test_connection_config_defaults() -> None:
    """Test connection tunable defaults."""
    config = ConnectionConfig()
    assert config.base_delay_ms == 1000
    assert config.max_delay_ms == 10000
    assert config.max_attempts == 3
    assert config.connect_timeout_ms == 5000
    assert config.heartbeat_interval_ms == 30000
    assert config.close_code == 1000
    assert config.close_reason == "Client closing connection"


def test_connection_config_validation() -> None:
    """Test connection tunable bounds."""
    with pytest.raises(ValidationError):
        ConnectionConfig(base_delay_ms=0)

    with pytest.raises(ValidationError):
        ConnectionConfig(max_attempts=-1)

    with pytest.raises(ValidationError):
        ConnectionConfig(close_code=999)


def test_connection_config_delay_bounds() -> None:
    """Test delay cap must not be below the base delay."""
    with pytest.raises(ValidationError, match="max_delay_ms"):
        ConnectionConfig(base_delay_ms=5000, max_delay_ms=1000)

    config = ConnectionConfig(base_delay_ms=5000, max_delay_ms=5000)
    assert config.max_delay_ms == 5000


def test_endpoint_config_defaults() -> None:
    """Test endpoint defaults."""
    config = EndpointConfig()
    assert config.origin == "http://localhost:3000"
    assert config.path == "/ws"


def test_endpoint_config_path_normalized() -> None:
    """Test path gains a leading slash."""
    assert EndpointConfig(path="signal").path == "/signal"


def test_log_level_validation() -> None:
    """Test log level is validated and upper-cased."""
    assert SignalingConfig(log_level="debug").log_level == "DEBUG"

    with pytest.raises(ValidationError, match="log_level"):
        SignalingConfig(log_level="LOUD")


def test_signaling_config_from_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test loading configuration from YAML file."""
    for var in ("SIGNALING_ORIGIN", "SIGNALING_PATH", "SIGNALING_LOG_LEVEL", "SIGNALING_MAX_ATTEMPTS"):
        monkeypatch.delenv(var, raising=False)

    config_file = tmp_path / "signaling.yaml"
    config_file.write_text(
        """endpoint:
  origin: "https://meet.example.com"

connection:
  max_attempts: 5
  heartbeat_interval_ms: 15000

log_level: "DEBUG"
"""
    )

    config = SignalingConfig.from_yaml(config_file)

    assert config.endpoint.origin == "https://meet.example.com"
    assert config.endpoint.path == "/ws"
    assert config.connection.max_attempts == 5
    assert config.connection.heartbeat_interval_ms == 15000
    assert config.connection.base_delay_ms == 1000
    assert config.log_level == "DEBUG"


@patch("os.getenv")
def test_signaling_config_from_yaml_with_env_overrides(mock_getenv: Mock, tmp_path: Path) -> None:
    """Test environment variables override YAML values."""
    overrides = {
        "SIGNALING_ORIGIN": "https://override.example.com",
        "SIGNALING_MAX_ATTEMPTS": "7",
    }
    mock_getenv.side_effect = lambda key, default=None: overrides.get(key, default)

    config_file = tmp_path / "signaling.yaml"
    config_file.write_text(
        """endpoint:
  origin: "http://localhost:3000"
"""
    )

    config = SignalingConfig.from_yaml(config_file)

    assert config.endpoint.origin == "https://override.example.com"
    assert config.connection.max_attempts == 7


def test_signaling_config_from_empty_yaml(tmp_path: Path) -> None:
    """Test an empty file yields defaults."""
    config_file = tmp_path / "empty.yaml"
    config_file.write_text("")

    with patch("os.getenv", return_value=None):
        config = SignalingConfig.from_yaml(config_file)

    assert config.connection.max_attempts == 3


def test_signaling_config_from_yaml_not_mapping(tmp_path: Path) -> None:
    """Test a non-mapping root is rejected."""
    config_file = tmp_path / "list.yaml"
    config_file.write_text("- a\n- b\n")

    with pytest.raises(ValueError, match="mapping"):
        SignalingConfig.from_yaml(config_file)


def test_signaling_config_from_yaml_missing_file() -> None:
    """Test loading configuration from non-existent file raises error."""
    with pytest.raises(FileNotFoundError):
        SignalingConfig.from_yaml(Path("/nonexistent/signaling.yaml"))


def test_signaling_config_from_yaml_with_defaults_missing() -> None:
    """Test loading config with defaults when file doesn't exist."""
    config = SignalingConfig.from_yaml_with_defaults(Path("/nonexistent/signaling.yaml"))

    assert config.endpoint.origin == "http://localhost:3000"
    assert config.log_level == "INFO"


def test_shipped_config_loads() -> None:
    """Test the sample configuration file is valid."""
    path = Path(__file__).parents[2] / "configs" / "signaling.yaml"

    with patch("os.getenv", return_value=None):
        config = SignalingConfig.from_yaml(path)

    assert config.connection == ConnectionConfig()
    assert config.endpoint == EndpointConfig()
