# src/riemann_docker_agent/contracts/protocols.py
"""Protocol definitions for the pipeline's external collaborators.

The pipeline consumes exactly one EventSource and delivers to exactly one
Sink. Concrete implementations live under plugins/; tests supply fakes.
"""

from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from riemann_docker_agent.contracts.events import Record, SourceEvent


@runtime_checkable
class EventSource(Protocol):
    """Push-only source of container lifecycle events.

    Error handling:
        - subscribe() raises EventSourceError if the stream cannot be opened
          or dies; it returns normally only when the stream ends cleanly
        - inspect() raises InspectError; callers treat it as non-fatal
    """

    def subscribe(self, callback: Callable[[SourceEvent], None]) -> None:
        """Block, invoking callback once per lifecycle event.

        The callback runs on the subscribing thread. A callback that blocks
        stalls the stream; the source cannot be throttled any other way.
        """
        ...

    def inspect(self, container_id: str) -> Mapping[str, Any]:
        """Return runtime metadata for a container."""
        ...


@runtime_checkable
class Sink(Protocol):
    """Transport to the telemetry collector.

    Error handling:
        - connect() and send() raise SinkError (or OSError) on failure
        - close() must not raise and must be safe on a broken connection
    """

    def connect(self, address: str) -> Any:
        """Open a connection to the collector at address."""
        ...

    def send(self, connection: Any, record: Record) -> None:
        """Deliver one record over an open connection."""
        ...

    def close(self, connection: Any) -> None:
        """Release a connection."""
        ...
