# src/riemann_docker_agent/contracts/__init__.py
"""Shared types crossing stage and plugin boundaries."""

from riemann_docker_agent.contracts.errors import (
    AgentError,
    ConfigurationError,
    EventSourceError,
    InspectError,
    SinkError,
    SinkUnavailableError,
    TemplateCompileError,
)
from riemann_docker_agent.contracts.events import RawEvent, Record, SourceEvent
from riemann_docker_agent.contracts.protocols import EventSource, Sink

__all__ = [
    "AgentError",
    "ConfigurationError",
    "EventSource",
    "EventSourceError",
    "InspectError",
    "RawEvent",
    "Record",
    "Sink",
    "SinkError",
    "SinkUnavailableError",
    "SourceEvent",
    "TemplateCompileError",
]
