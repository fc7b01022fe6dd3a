# src/riemann_docker_agent/engine/retry.py
"""RetryManager: bounded retry with exponential backoff, built on tenacity.

Used by the sink sender to (re)connect to the collector. The wait before
retry number n (n starting at 0) is base_delay * exponential_base ** n,
so the defaults give 1, 2, 4, 8, ... seconds across at most 10 attempts.

The sleep function is injectable so tests can run the whole schedule
instantly and assert on the delays requested.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

T = TypeVar("T")


class MaxRetriesExceeded(Exception):
    """Raised when max retry attempts are exceeded."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Max retries ({attempts}) exceeded: {last_error}")


@dataclass(frozen=True)
class ConnectRetryConfig:
    """Reconnect policy.

    max_attempts is the TOTAL number of tries, not the number of retries.
    """

    max_attempts: int = 10
    base_delay: float = 1.0  # seconds
    exponential_base: float = 2.0  # backoff multiplier

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the 0-based attempt number failed."""
        return self.base_delay * self.exponential_base**attempt


class RetryManager:
    """Runs an operation until it succeeds or the attempt budget is spent.

    Example:
        manager = RetryManager(ConnectRetryConfig(), sleep=clock.sleep)

        conn = manager.execute_with_retry(
            lambda: sink.connect(address),
            is_retryable=lambda e: isinstance(e, (SinkError, OSError)),
            on_retry=lambda attempt, error, delay: log(attempt, error, delay),
        )
    """

    def __init__(self, config: ConnectRetryConfig, *, sleep: Callable[[float], None]) -> None:
        self._config = config
        self._sleep = sleep

    @property
    def config(self) -> ConnectRetryConfig:
        return self._config

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        *,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException, float], None] | None = None,
    ) -> T:
        """Execute operation with retry logic.

        Args:
            operation: Operation to execute
            is_retryable: Function to check if error is retryable
            on_retry: Optional callback before each backoff sleep, receiving
                the 0-based attempt that failed, its error and the delay

        Returns:
            Result of operation

        Raises:
            MaxRetriesExceeded: If max attempts exceeded
            Exception: If non-retryable error occurs
        """

        def _before_sleep(retry_state: RetryCallState) -> None:
            if on_retry is None:
                return
            outcome = retry_state.outcome
            next_action = retry_state.next_action
            # tenacity guarantees both are set when before_sleep fires
            assert outcome is not None and next_action is not None
            error = outcome.exception()
            assert error is not None
            on_retry(retry_state.attempt_number - 1, error, next_action.sleep)

        retrying = Retrying(
            sleep=self._sleep,
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential(
                multiplier=self._config.base_delay,
                exp_base=self._config.exponential_base,
                min=0,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep,
            reraise=False,  # We catch RetryError and convert to MaxRetriesExceeded
        )

        try:
            return retrying(operation)
        except RetryError as e:
            final_error = e.last_attempt.exception()
            assert final_error is not None, "RetryError without exception is impossible"
            raise MaxRetriesExceeded(e.last_attempt.attempt_number, final_error) from final_error
