"""Configuration schema for the signaling client.

Defines Pydantic models for loading and validating connection tunables
from YAML files and environment variables.
"""

from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator


class ConnectionConfig(BaseModel):
    """Connection lifecycle tunables (retry, timeout, heartbeat)."""

    base_delay_ms: int = Field(
        default=1000, ge=1, description="First reconnect delay in milliseconds"
    )
    max_delay_ms: int = Field(
        default=10000, ge=1, description="Upper bound for the reconnect delay"
    )
    max_attempts: int = Field(
        default=3, ge=0, le=100, description="Reconnect attempts before giving up"
    )
    connect_timeout_ms: int = Field(
        default=5000, ge=1, description="Budget for a single connection attempt"
    )
    heartbeat_interval_ms: int = Field(
        default=30000, ge=1, description="Interval between keepalive pings"
    )
    close_code: int = Field(
        default=1000, ge=1000, le=4999, description="Close code used by close()"
    )
    close_reason: str = Field(
        default="Client closing connection", description="Close reason used by close()"
    )

    @model_validator(mode="after")
    def validate_delay_bounds(self) -> "ConnectionConfig":
        """Validate that the delay cap is not below the base delay."""
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= "
                f"base_delay_ms ({self.base_delay_ms})"
            )
        return self


class EndpointConfig(BaseModel):
    """Where the signaling endpoint lives."""

    origin: str = Field(
        default="http://localhost:3000",
        description="Application origin the endpoint is derived from",
    )
    path: str = Field(default="/ws", description="Well-known signaling path")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Normalize path to start with a slash."""
        if not v.startswith("/"):
            return f"/{v}"
        return v


class SignalingConfig(BaseModel):
    """Root signaling client configuration."""

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    endpoint: EndpointConfig = Field(default_factory=EndpointConfig)

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate logging level name."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}, got '{v}'")
        return v.upper()

    @classmethod
    def from_yaml(cls, path: Path) -> "SignalingConfig":
        """Load configuration from YAML file with environment variable overrides.

        Args:
            path: Path to YAML configuration file

        Returns:
            Loaded configuration

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import os

        import yaml  # type: ignore[import-untyped]

        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Configuration root must be a mapping: {path}")

        if origin := os.getenv("SIGNALING_ORIGIN"):
            data.setdefault("endpoint", {})["origin"] = origin

        if ws_path := os.getenv("SIGNALING_PATH"):
            data.setdefault("endpoint", {})["path"] = ws_path

        if log_level := os.getenv("SIGNALING_LOG_LEVEL"):
            data["log_level"] = log_level

        if max_attempts := os.getenv("SIGNALING_MAX_ATTEMPTS"):
            data.setdefault("connection", {})["max_attempts"] = int(max_attempts)

        return cls.model_validate(data)

    @classmethod
    def from_yaml_with_defaults(cls, path: Path | None = None) -> "SignalingConfig":
        """Load configuration from YAML or use defaults if file doesn't exist.

        Args:
            path: Optional path to YAML configuration file

        Returns:
            Loaded configuration or defaults
        """
        if path is not None and path.exists():
            return cls.from_yaml(path)

        return cls()
