# src/riemann_docker_agent/engine/transformer.py
"""EventTransformer: renders RawEvents into Records.

A pure conversion stage. Rendering failures degrade to empty strings inside
the renderers, so every dequeued event produces exactly one Record.
"""

from __future__ import annotations

import queue
import threading

import structlog

from riemann_docker_agent.contracts.events import RawEvent, Record
from riemann_docker_agent.core.event_config import EventConfig

logger = structlog.get_logger(__name__)

_POLL_INTERVAL = 0.1


def build_record(event: RawEvent, config: EventConfig) -> Record:
    """Render every configured template against an event.

    Tags keep configuration order; attribute keys map one-to-one onto their
    renderers.
    """
    host = config.host
    return Record(
        host=host,
        time=event.time,
        service=config.service.render(event, host=host),
        description=config.description.render(event, host=host),
        state=config.state.render(event, host=host),
        metric=config.metric,
        tags=tuple(tag.render(event, host=host) for tag in config.tags),
        attributes={key: renderer.render(event, host=host) for key, renderer in config.attributes.items()},
        ttl=config.ttl,
    )


class EventTransformer:
    """Worker draining the enricher queue into the sender queue."""

    def __init__(
        self,
        config: EventConfig,
        in_queue: queue.Queue[RawEvent],
        out_queue: queue.Queue[Record],
    ) -> None:
        self._config = config
        self._in_queue = in_queue
        self._out_queue = out_queue
        self.records_built = 0

    def process(self, event: RawEvent) -> Record:
        record = build_record(event, self._config)
        self._out_queue.put(record)
        self.records_built += 1
        return record

    def run(self, stop: threading.Event) -> None:
        """Transform events until stop is set."""
        while not stop.is_set():
            try:
                event = self._in_queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self.process(event)
            finally:
                self._in_queue.task_done()
