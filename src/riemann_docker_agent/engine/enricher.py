# src/riemann_docker_agent/engine/enricher.py
"""EventEnricher: turns source events into normalized RawEvents.

Runs on the event source's own thread as its subscribe() callback:

    received -> (enrich | skip-enrich) -> normalized -> emitted

Metadata lookup is skipped for destroyed containers (the runtime keeps no
inspectable state for them) and is best-effort otherwise: a failed lookup
is logged and the event continues without metadata.

Emission uses a blocking put on the bounded transformer queue. A full
queue therefore stalls the event source; telemetry is never dropped here.
"""

from __future__ import annotations

import queue
from collections.abc import Mapping
from typing import Any

import structlog

from riemann_docker_agent.contracts.errors import InspectError
from riemann_docker_agent.contracts.events import RawEvent, SourceEvent
from riemann_docker_agent.contracts.protocols import EventSource

logger = structlog.get_logger(__name__)

# Status for which the runtime no longer holds container state
REMOVED_STATUS = "destroy"


def display_name(container_id: str, metadata: Mapping[str, Any] | None) -> str:
    """Best-effort human-readable container name.

    Docker reports names as rooted paths ("/web1"); the leading "/" is
    stripped. Falls back to the container id when no name is known.
    """
    if metadata is not None:
        name = metadata.get("Name")
        if isinstance(name, str):
            name = name.removeprefix("/")
            if name:
                return name
    return container_id


class EventEnricher:
    """Enriches source events and feeds the transformer queue.

    Instances are callable so they can be handed straight to
    EventSource.subscribe().
    """

    def __init__(self, source: EventSource, out_queue: queue.Queue[RawEvent]) -> None:
        self._source = source
        self._out_queue = out_queue
        self.events_received = 0
        self.enrichment_failures = 0

    def enrich(self, event: SourceEvent) -> RawEvent:
        """Build the normalized RawEvent for a source event."""
        metadata: Mapping[str, Any] | None = None
        if event.status != REMOVED_STATUS:
            try:
                metadata = self._source.inspect(event.container_id)
            except InspectError as e:
                self.enrichment_failures += 1
                logger.warning(
                    "Container inspection failed, continuing without metadata",
                    container_id=event.container_id,
                    status=event.status,
                    error=e.reason,
                )

        return RawEvent(
            time=event.time,
            container_id=event.container_id,
            status=event.status,
            image=event.image,
            name=display_name(event.container_id, metadata),
            metadata=metadata,
        )

    def __call__(self, event: SourceEvent) -> None:
        self.events_received += 1
        logger.debug(
            "Received event",
            container_id=event.container_id,
            status=event.status,
            image=event.image,
            time=event.time,
        )
        self._out_queue.put(self.enrich(event))
