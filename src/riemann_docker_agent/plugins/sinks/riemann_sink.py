# src/riemann_docker_agent/plugins/sinks/riemann_sink.py
"""Riemann sink over the riemann-client protobuf transport.

Addresses are URLs: tcp://host:port or udp://host:port (port defaults to
5555). Transport failures surface as SinkError so the sender can treat
them as transient.
"""

from __future__ import annotations

import struct
from collections.abc import Callable
from typing import Any, Protocol

import structlog

from riemann_docker_agent.contracts.errors import SinkError
from riemann_docker_agent.contracts.events import Record
from riemann_docker_agent.core.config import parse_riemann_url

logger = structlog.get_logger(__name__)


class RiemannConnection(Protocol):
    """An open connection able to submit Riemann events."""

    def send_event(self, fields: dict[str, Any]) -> None: ...

    def close(self) -> None: ...


def event_fields(record: Record) -> dict[str, Any]:
    """Map a Record onto riemann_pb2.Event fields.

    The metric is sent as a double; ttl is omitted when unset.
    """
    fields: dict[str, Any] = {
        "host": record.host,
        "time": record.time,
        "service": record.service,
        "description": record.description,
        "state": record.state,
        "metric_d": float(record.metric),
        "tags": list(record.tags),
        "attributes": dict(record.attributes),
    }
    if record.ttl is not None:
        fields["ttl"] = float(record.ttl)
    return fields


class _ClientConnection:
    """Adapts riemann_client.client.Client to RiemannConnection."""

    def __init__(self, client: Any, errors: tuple[type[BaseException], ...]) -> None:
        self._client = client
        self._errors = errors

    def send_event(self, fields: dict[str, Any]) -> None:
        try:
            self._client.event(**fields)
        except self._errors as e:
            raise SinkError(f"send failed: {e}") from e

    def close(self) -> None:
        try:
            self._client.transport.disconnect()
        except self._errors as e:
            logger.debug("Riemann disconnect failed", error=str(e))


def open_riemann_connection(scheme: str, host: str, port: int) -> RiemannConnection:
    """Connect a riemann-client transport for scheme ("tcp" or "udp").

    Raises:
        SinkError: If the transport cannot connect
    """
    from google.protobuf.message import DecodeError
    from riemann_client.client import Client
    from riemann_client.transport import RiemannError, TCPTransport, UDPTransport

    # A collector that closes the socket leaves a short or empty reply:
    # struct.error from the length prefix, DecodeError from a truncated body
    errors: tuple[type[BaseException], ...] = (RiemannError, OSError, struct.error, DecodeError)
    transport = TCPTransport(host, port) if scheme == "tcp" else UDPTransport(host, port)
    try:
        transport.connect()
    except errors as e:
        raise SinkError(f"can't connect to {scheme}://{host}:{port}: {e}") from e
    return _ClientConnection(Client(transport=transport), errors)


class RiemannSink:
    """Sink delivering Records as Riemann events.

    Args:
        opener: Connection factory taking (scheme, host, port); defaults to
            the riemann-client transport
    """

    def __init__(self, opener: Callable[[str, str, int], RiemannConnection] | None = None) -> None:
        self._opener = opener or open_riemann_connection

    def connect(self, address: str) -> RiemannConnection:
        try:
            scheme, host, port = parse_riemann_url(address)
        except ValueError as e:
            raise SinkError(str(e)) from e
        return self._opener(scheme, host, port)

    def send(self, connection: RiemannConnection, record: Record) -> None:
        connection.send_event(event_fields(record))

    def close(self, connection: RiemannConnection) -> None:
        connection.close()
