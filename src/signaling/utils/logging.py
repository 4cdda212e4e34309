"""Structured logging utilities."""

import json
import logging
from typing import Any


class JsonFormatter(logging.Formatter):
    """Render records as one JSON object per line, including ``extra`` fields."""

    _RESERVED = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, "%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in self._RESERVED:
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Setup logging.

    Args:
        level: Logging level
        json_format: Whether to use JSON format
    """
    handler = logging.StreamHandler()
    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S")
        )
    logging.basicConfig(level=getattr(logging, level.upper()), handlers=[handler], force=True)


def log_event(event_type: str, data: dict[str, Any]) -> None:
    """Log structured event.

    Args:
        event_type: Event type identifier
        data: Event data dictionary
    """
    logging.info(json.dumps({"event": event_type, **data}, default=str))
