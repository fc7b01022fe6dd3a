# src/riemann_docker_agent/engine/sender.py
"""SinkSender: the only stage that talks to the collector.

State machine per dequeued record:

    disconnected -> connecting -> connected -> (send-ok | send-fail)

- Connecting retries with exponential backoff (1, 2, 4, ... seconds) up to
  ConnectRetryConfig.max_attempts. Exhausting the budget raises
  SinkUnavailableError, which is fatal to the agent.
- A failed send drops the connection (the next record reconnects) and puts
  the same record back at the tail of the queue. Records are never
  discarded on a transient failure and have no retry ceiling of their own;
  the price is that a requeued record may be delivered after records that
  were queued behind it.

Thread Safety:
    The connection handle is private to the sender thread. The queue is
    shared with the transformer and heartbeat producers.
"""

from __future__ import annotations

import queue
import threading
from typing import Any

import structlog

from riemann_docker_agent.contracts.errors import SinkError, SinkUnavailableError
from riemann_docker_agent.contracts.events import Record
from riemann_docker_agent.contracts.protocols import Sink
from riemann_docker_agent.engine.clock import DEFAULT_CLOCK, Clock
from riemann_docker_agent.engine.retry import ConnectRetryConfig, MaxRetriesExceeded, RetryManager

logger = structlog.get_logger(__name__)

_POLL_INTERVAL = 0.1
_TRANSIENT_ERRORS = (SinkError, OSError)


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, _TRANSIENT_ERRORS)


class SinkSender:
    """Drains the sender queue into the sink, reconnecting as needed."""

    def __init__(
        self,
        sink: Sink,
        address: str,
        in_queue: queue.Queue[Record],
        *,
        retry_config: ConnectRetryConfig | None = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        self._sink = sink
        self._address = address
        self._queue = in_queue
        self._retry = RetryManager(retry_config or ConnectRetryConfig(), sleep=clock.sleep)
        self._connection: Any | None = None

        # Health metrics (sender thread is the only writer)
        self.records_sent = 0
        self.send_failures = 0
        self.records_requeued = 0
        self.connections_opened = 0

    @property
    def connected(self) -> bool:
        return self._connection is not None

    def _log_connect_retry(self, attempt: int, error: BaseException, delay: float) -> None:
        logger.error(
            "Can't connect to riemann",
            address=self._address,
            attempt=attempt,
            error=str(error),
            retry_in_seconds=delay,
        )

    def connect(self) -> Any:
        """Open a connection, backing off between failed attempts.

        Raises:
            SinkUnavailableError: If every attempt in the budget failed
        """
        try:
            connection = self._retry.execute_with_retry(
                lambda: self._sink.connect(self._address),
                is_retryable=_is_transient,
                on_retry=self._log_connect_retry,
            )
        except MaxRetriesExceeded as e:
            raise SinkUnavailableError(self._address, e.attempts, e.last_error) from e

        self._connection = connection
        self.connections_opened += 1
        logger.info("Connected to riemann", address=self._address)
        return connection

    def disconnect(self) -> None:
        """Drop the current connection, if any."""
        connection, self._connection = self._connection, None
        if connection is not None:
            self._sink.close(connection)

    def deliver(self, record: Record) -> bool:
        """Try to send one record, connecting first if needed.

        Returns:
            True if the sink accepted the record, False on a send failure
            (the connection has been dropped).

        Raises:
            SinkUnavailableError: If the sink could not be reached at all
        """
        connection = self._connection if self._connection is not None else self.connect()

        logger.debug("Sending event", **record.to_dict())
        try:
            self._sink.send(connection, record)
        except _TRANSIENT_ERRORS as e:
            self.send_failures += 1
            logger.warning("Can't send event to riemann", address=self._address, error=str(e))
            self.disconnect()
            return False

        self.records_sent += 1
        return True

    def handle(self, record: Record, stop: threading.Event | None = None) -> None:
        """Deliver a record, or put it back at the tail of the queue."""
        if self.deliver(record):
            return

        try:
            self._queue.put_nowait(record)
            self.records_requeued += 1
        except queue.Full:
            # Producers refilled the slot we freed. Blocking on our own queue
            # would deadlock the only consumer, so keep the record here.
            logger.warning("Sender queue full, retrying record in place", queue_size=self._queue.maxsize)
            while not self.deliver(record):
                if stop is not None and stop.is_set():
                    return

    def run(self, stop: threading.Event) -> None:
        """Deliver records until stop is set.

        Raises:
            SinkUnavailableError: If the reconnect budget is exhausted
        """
        try:
            while not stop.is_set():
                try:
                    record = self._queue.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                try:
                    self.handle(record, stop)
                finally:
                    self._queue.task_done()
        finally:
            self.disconnect()
