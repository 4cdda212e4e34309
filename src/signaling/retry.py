"""Reconnect backoff state.

Exponential backoff with a hard cap on both the delay and the number of
attempts. The connection manager owns the timer; this module only tracks
the numbers.
"""

from dataclasses import dataclass, field

from src.signaling.config import ConnectionConfig


@dataclass
class RetryState:
    """Backoff counters for one connection manager.

    Invariants:
    - next_delay_ms never decreases between consecutive failures until it
      reaches max_delay_ms
    - reset() restores base_delay_ms and attempt_count = 0
    """

    base_delay_ms: int = 1000
    max_delay_ms: int = 10000
    max_attempts: int = 3
    attempt_count: int = 0
    next_delay_ms: int = field(default=0)

    def __post_init__(self) -> None:
        if self.next_delay_ms <= 0:
            self.next_delay_ms = self.base_delay_ms

    @classmethod
    def from_config(cls, config: ConnectionConfig) -> "RetryState":
        """Create retry state from connection tunables."""
        return cls(
            base_delay_ms=config.base_delay_ms,
            max_delay_ms=config.max_delay_ms,
            max_attempts=config.max_attempts,
        )

    @property
    def can_retry(self) -> bool:
        """Check whether another reconnect attempt is allowed."""
        return self.attempt_count < self.max_attempts

    @property
    def exhausted(self) -> bool:
        return not self.can_retry

    def advance(self) -> int:
        """Consume one attempt.

        Returns:
            Delay in milliseconds for the attempt being scheduled

        Raises:
            RuntimeError: If no attempts remain
        """
        if not self.can_retry:
            raise RuntimeError(
                f"Retry budget exhausted ({self.attempt_count}/{self.max_attempts})"
            )

        self.attempt_count += 1
        delay_ms = self.next_delay_ms
        self.next_delay_ms = min(self.next_delay_ms * 2, self.max_delay_ms)
        return delay_ms

    def reset(self) -> None:
        """Restore initial backoff after a successful open."""
        self.attempt_count = 0
        self.next_delay_ms = self.base_delay_ms

    def exhaust(self) -> None:
        """Force the budget to empty so no automatic reconnect can happen."""
        self.attempt_count = self.max_attempts
