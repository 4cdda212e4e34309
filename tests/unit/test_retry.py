"""Unit tests for reconnect backoff state."""

import pytest

from src.signaling.config import ConnectionConfig
from src.signaling.retry import RetryState


def test_defaults() -> None:
    """Test default backoff constants."""
    state = RetryState()
    assert state.attempt_count == 0
    assert state.next_delay_ms == 1000
    assert state.max_delay_ms == 10000
    assert state.max_attempts == 3


def test_backoff_sequence() -> None:
    """Test three failures yield 1000, 2000, 4000 then exhaustion."""
    state = RetryState.from_config(ConnectionConfig())

    delays = [state.advance() for _ in range(3)]

    assert delays == [1000, 2000, 4000]
    assert state.exhausted
    with pytest.raises(RuntimeError, match="exhausted"):
        state.advance()


def test_delay_capped() -> None:
    """Test delay never exceeds the cap."""
    state = RetryState(base_delay_ms=3000, max_delay_ms=10000, max_attempts=5)

    delays = [state.advance() for _ in range(5)]

    assert delays == [3000, 6000, 10000, 10000, 10000]


def test_reset() -> None:
    """Test reset restores base delay and attempt count."""
    state = RetryState()
    state.advance()
    state.advance()

    state.reset()

    assert state.attempt_count == 0
    assert state.next_delay_ms == 1000
    assert state.can_retry


def test_exhaust() -> None:
    """Test exhaust blocks further attempts."""
    state = RetryState()
    state.exhaust()

    assert state.attempt_count == state.max_attempts
    assert not state.can_retry


def test_zero_attempts() -> None:
    """Test a zero budget is exhausted from the start."""
    state = RetryState.from_config(ConnectionConfig(max_attempts=0))
    assert state.exhausted
