# src/riemann_docker_agent/engine/pipeline.py
"""Pipeline: constructs the stages and queues and runs one thread per stage.

    EventSource --callback--> EventEnricher
        -> event queue (bounded) -> EventTransformer
        -> record queue (bounded) <- HeartbeatGenerator
        -> SinkSender -> Sink

Stages share nothing but the two queues. Each stage runs on its own thread:

- event-source: EventSource.subscribe() with the enricher as callback
- event-transformer
- heartbeat (only when a heartbeat record is configured)
- sink-sender

A stage that dies stops the whole pipeline; the error is re-raised from
wait()/run(). There is no graceful drain: records still queued when the
pipeline stops are lost. Worker threads are daemons so process exit is
never held up by a blocked stage.
"""

from __future__ import annotations

import queue
import threading
from collections.abc import Callable
from typing import Any

import structlog

from riemann_docker_agent.contracts.errors import EventSourceError
from riemann_docker_agent.contracts.events import RawEvent, Record
from riemann_docker_agent.contracts.protocols import EventSource, Sink
from riemann_docker_agent.core.event_config import EventConfig
from riemann_docker_agent.engine.clock import DEFAULT_CLOCK, Clock
from riemann_docker_agent.engine.enricher import EventEnricher
from riemann_docker_agent.engine.heartbeat import HeartbeatGenerator
from riemann_docker_agent.engine.retry import ConnectRetryConfig
from riemann_docker_agent.engine.sender import SinkSender
from riemann_docker_agent.engine.transformer import EventTransformer

logger = structlog.get_logger(__name__)

DEFAULT_QUEUE_SIZE = 10_000


class Pipeline:
    """The event forwarding pipeline.

    Example:
        >>> pipeline = Pipeline(source, sink, "tcp://riemann:5555", event_config, heartbeat)
        >>> pipeline.run()  # blocks; raises on a fatal stage error
    """

    def __init__(
        self,
        source: EventSource,
        sink: Sink,
        address: str,
        event_config: EventConfig,
        heartbeat: Record | None = None,
        *,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        retry_config: ConnectRetryConfig | None = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        """Initialize the pipeline.

        Args:
            source: Event source, owned by the event-source thread
            sink: Collector transport, owned by the sender
            address: Collector address passed to Sink.connect()
            event_config: Compiled templates for event records
            heartbeat: Heartbeat record, or None to disable the heartbeat
            queue_size: Capacity of each of the two stage queues
            retry_config: Reconnect policy for the sender
            clock: Time source for heartbeats and backoff sleeps
        """
        self._source = source
        self.event_queue: queue.Queue[RawEvent] = queue.Queue(maxsize=queue_size)
        self.record_queue: queue.Queue[Record] = queue.Queue(maxsize=queue_size)

        self.enricher = EventEnricher(source, self.event_queue)
        self.transformer = EventTransformer(event_config, self.event_queue, self.record_queue)
        self.sender = SinkSender(sink, address, self.record_queue, retry_config=retry_config, clock=clock)
        self.heartbeat: HeartbeatGenerator | None = None
        if heartbeat is not None and heartbeat.service:
            self.heartbeat = HeartbeatGenerator(heartbeat, self.record_queue, clock=clock)

        self._stop = threading.Event()
        self._error: BaseException | None = None
        self._error_lock = threading.Lock()
        self._threads: list[threading.Thread] = []

    def _subscribe(self, stop: threading.Event) -> None:
        self._source.subscribe(self.enricher)
        if not stop.is_set():
            raise EventSourceError("event stream ended unexpectedly")

    def _stage(self, name: str, target: Callable[[threading.Event], None]) -> threading.Thread:
        def _run() -> None:
            try:
                target(self._stop)
            except Exception as e:
                logger.critical("Pipeline stage failed", stage=name, error=str(e))
                with self._error_lock:
                    if self._error is None:
                        self._error = e
                self._stop.set()

        return threading.Thread(target=_run, name=name, daemon=True)

    def start(self) -> None:
        """Start every stage thread."""
        if self._threads:
            raise RuntimeError("Pipeline already started")

        self._threads = [
            self._stage("sink-sender", self.sender.run),
            self._stage("event-transformer", self.transformer.run),
        ]
        if self.heartbeat is not None:
            self._threads.append(self._stage("heartbeat", self.heartbeat.run))
        else:
            logger.info("Heartbeat disabled")
        self._threads.append(self._stage("event-source", self._subscribe))

        for thread in self._threads:
            thread.start()

    def stop(self) -> None:
        """Ask every stage to stop. Queued records are discarded."""
        self._stop.set()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the pipeline stops.

        Returns:
            True if the pipeline stopped, False on timeout

        Raises:
            Exception: The error of the first stage that failed
        """
        if not self._stop.wait(timeout):
            return False
        if self._error is not None:
            raise self._error
        return True

    def run(self) -> None:
        """Start the pipeline and block until it stops."""
        self.start()
        self.wait()

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Snapshot of pipeline counters.

        Counters are written by their own stage thread only; reads are
        approximately consistent.
        """
        return {
            "events_received": self.enricher.events_received,
            "enrichment_failures": self.enricher.enrichment_failures,
            "records_built": self.transformer.records_built,
            "heartbeats_emitted": self.heartbeat.heartbeats_emitted if self.heartbeat is not None else 0,
            "records_sent": self.sender.records_sent,
            "send_failures": self.sender.send_failures,
            "records_requeued": self.sender.records_requeued,
            "connections_opened": self.sender.connections_opened,
            "event_queue_depth": self.event_queue.qsize(),
            "record_queue_depth": self.record_queue.qsize(),
            "queue_maxsize": self.record_queue.maxsize,
        }
