# src/riemann_docker_agent/contracts/events.py
"""Data carried between pipeline stages.

SourceEvent -> RawEvent -> Record. All three are frozen so they can cross
thread boundaries through the stage queues and be retried unmodified.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True, slots=True)
class SourceEvent:
    """A lifecycle event as delivered by the event source, before enrichment.

    Attributes:
        time: Event timestamp in epoch seconds
        container_id: Runtime identifier of the container
        status: Lifecycle status (create, start, die, destroy, ...)
        image: Image the container was created from
    """

    time: int
    container_id: str
    status: str
    image: str


@dataclass(frozen=True, slots=True)
class RawEvent:
    """Normalized lifecycle event, ready for template rendering.

    Attributes:
        time: Event timestamp in epoch seconds
        container_id: Runtime identifier, always present
        status: Lifecycle status string, opaque to the pipeline
        image: Source image name
        name: Human-readable container name, falls back to container_id
        metadata: Container inspection result, None when enrichment was
            skipped or failed
    """

    time: int
    container_id: str
    status: str
    image: str
    name: str
    metadata: Mapping[str, Any] | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("RawEvent.name must not be empty")


@dataclass(frozen=True, slots=True)
class Record:
    """A fully rendered telemetry unit for the sink (one Riemann event)."""

    host: str
    time: int
    service: str
    description: str
    state: str
    metric: float
    tags: tuple[str, ...] = ()
    attributes: Mapping[str, str] = field(default_factory=dict)
    ttl: float | None = None

    def __post_init__(self) -> None:
        # Freeze collections so the record is safe to share and requeue
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "attributes", _freeze(self.attributes))

    def to_dict(self) -> dict[str, Any]:
        """Plain-dict view for logging."""
        return {
            "host": self.host,
            "time": self.time,
            "service": self.service,
            "description": self.description,
            "state": self.state,
            "metric": self.metric,
            "tags": list(self.tags),
            "attributes": dict(self.attributes),
            "ttl": self.ttl,
        }
