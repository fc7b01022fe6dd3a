# src/riemann_docker_agent/engine/heartbeat.py
"""HeartbeatGenerator: periodic liveness record.

The heartbeat fires every ttl/2 seconds so that a collector expiring
entries after ttl always receives the next heartbeat before the previous
one expires. Only the timestamp changes between ticks.
"""

from __future__ import annotations

import dataclasses
import queue
import threading

import structlog

from riemann_docker_agent.contracts.events import Record
from riemann_docker_agent.engine.clock import DEFAULT_CLOCK, Clock

logger = structlog.get_logger(__name__)


class HeartbeatGenerator:
    """Stamps the fixed heartbeat record and enqueues it for the sender.

    Args:
        record: Heartbeat template record; must carry a ttl > 0
        out_queue: The sender queue, shared with the transformer
        clock: Source of the timestamps
    """

    def __init__(self, record: Record, out_queue: queue.Queue[Record], *, clock: Clock = DEFAULT_CLOCK) -> None:
        if record.ttl is None or record.ttl <= 0:
            raise ValueError(f"heartbeat ttl must be > 0, got {record.ttl}")
        self._record = record
        self._out_queue = out_queue
        self._clock = clock
        self.heartbeats_emitted = 0

    @property
    def period(self) -> float:
        assert self._record.ttl is not None
        return self._record.ttl / 2

    def tick(self) -> Record:
        """Enqueue one heartbeat stamped with the current time."""
        heartbeat = dataclasses.replace(self._record, time=int(self._clock.time()))
        self._out_queue.put(heartbeat)
        self.heartbeats_emitted += 1
        return heartbeat

    def run(self, stop: threading.Event) -> None:
        """Emit a heartbeat every period until stop is set."""
        logger.info("Sending heartbeat", service=self._record.service, interval_seconds=self.period)
        while not stop.wait(self.period):
            self.tick()
