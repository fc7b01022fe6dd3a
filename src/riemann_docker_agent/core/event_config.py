# src/riemann_docker_agent/core/event_config.py
"""Compiled, immutable event configuration built once at startup."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from riemann_docker_agent.contracts.events import Record
from riemann_docker_agent.core.config import AgentSettings, HeartbeatSettings
from riemann_docker_agent.core.templates import Renderer, compile_template


@dataclass(frozen=True, slots=True)
class EventConfig:
    """How RawEvents are turned into Records.

    Attributes:
        host: Host label attached to every record (also a template field)
        service: Renderer for the service string
        description: Renderer for the description string
        state: Renderer for the state string
        metric: Fixed metric value, not templated
        tags: Tag renderers in configuration order
        attributes: Attribute key -> renderer
        ttl: Time-to-live attached to every record, None to omit
    """

    host: str
    service: Renderer
    description: Renderer
    state: Renderer
    metric: float = 0.0
    tags: tuple[Renderer, ...] = ()
    attributes: Mapping[str, Renderer] = field(default_factory=dict)
    ttl: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "tags", tuple(self.tags))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))


def build_event_config(settings: AgentSettings) -> EventConfig:
    """Compile every event template in settings.

    Raises:
        TemplateCompileError: On the first template that fails to compile
    """
    return EventConfig(
        host=settings.host,
        service=compile_template("service", settings.service),
        description=compile_template("description", settings.description),
        state=compile_template("state", settings.state),
        metric=settings.metric,
        tags=tuple(compile_template(f"tag {i}", text) for i, text in enumerate(settings.tags, start=1)),
        attributes={key: compile_template(f"attribute '{key}'", text) for key, text in settings.attributes.items()},
        ttl=settings.ttl,
    )


def build_heartbeat_record(host: str, heartbeat: HeartbeatSettings) -> Record:
    """Build the fixed heartbeat record; only its time changes per tick."""
    return Record(
        host=host,
        time=0,
        service=heartbeat.service,
        description=heartbeat.description,
        state=heartbeat.state,
        metric=heartbeat.metric,
        tags=tuple(heartbeat.tags),
        attributes=dict(heartbeat.attributes),
        ttl=heartbeat.ttl,
    )
