# tests/engine/test_retry.py
"""Tests for RetryManager."""

import pytest

from riemann_docker_agent.engine.clock import MockClock
from riemann_docker_agent.engine.retry import ConnectRetryConfig, MaxRetriesExceeded, RetryManager


class TestConnectRetryConfig:
    def test_defaults(self) -> None:
        config = ConnectRetryConfig()

        assert config.max_attempts == 10
        assert [config.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_rejects_zero_attempts(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            ConnectRetryConfig(max_attempts=0)


class TestRetryManager:
    """Retry logic with tenacity."""

    def test_retry_on_retryable_error(self) -> None:
        clock = MockClock()
        manager = RetryManager(ConnectRetryConfig(max_attempts=5), sleep=clock.sleep)
        call_count = 0

        def flaky_operation() -> str:
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ConnectionRefusedError("Transient error")
            return "connected"

        result = manager.execute_with_retry(flaky_operation, is_retryable=lambda e: isinstance(e, OSError))

        assert result == "connected"
        assert call_count == 3
        assert clock.sleeps == [1.0, 2.0]

    def test_no_retry_on_non_retryable(self) -> None:
        clock = MockClock()
        manager = RetryManager(ConnectRetryConfig(), sleep=clock.sleep)
        call_count = 0

        def failing_operation() -> None:
            nonlocal call_count
            call_count += 1
            raise TypeError("Not retryable")

        with pytest.raises(TypeError):
            manager.execute_with_retry(failing_operation, is_retryable=lambda e: isinstance(e, OSError))

        assert call_count == 1
        assert clock.sleeps == []

    def test_max_attempts_exceeded(self) -> None:
        clock = MockClock()
        manager = RetryManager(ConnectRetryConfig(), sleep=clock.sleep)

        def always_fails() -> None:
            raise ConnectionRefusedError("down")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            manager.execute_with_retry(always_fails, is_retryable=lambda e: isinstance(e, OSError))

        assert exc_info.value.attempts == 10
        assert isinstance(exc_info.value.last_error, ConnectionRefusedError)
        # Exponential schedule between the ten attempts, none after the last
        assert clock.sleeps == [2.0**n for n in range(9)]

    def test_on_retry_receives_zero_based_attempt_and_delay(self) -> None:
        clock = MockClock()
        manager = RetryManager(ConnectRetryConfig(max_attempts=3), sleep=clock.sleep)
        calls: list[tuple[int, str, float]] = []

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(
                lambda: (_ for _ in ()).throw(ConnectionRefusedError("down")),
                is_retryable=lambda e: isinstance(e, OSError),
                on_retry=lambda attempt, error, delay: calls.append((attempt, str(error), delay)),
            )

        assert calls == [(0, "down", 1.0), (1, "down", 2.0)]

    def test_custom_base_delay(self) -> None:
        clock = MockClock()
        manager = RetryManager(ConnectRetryConfig(max_attempts=3, base_delay=0.5, exponential_base=3.0), sleep=clock.sleep)

        with pytest.raises(MaxRetriesExceeded):
            manager.execute_with_retry(
                lambda: (_ for _ in ()).throw(OSError("down")),
                is_retryable=lambda e: isinstance(e, OSError),
            )

        assert clock.sleeps == [0.5, 1.5]
