# src/riemann_docker_agent/plugins/sources/docker_source.py
"""Docker daemon event source.

Streams container events from the Docker Engine API and resolves container
metadata through `inspect`. Handles both event shapes the API has used:

- legacy: {"status": ..., "id": ..., "from": ..., "time": ...}
- current: {"Type": "container", "Action": ..., "Actor": {"ID": ...,
  "Attributes": {"image": ...}}, "time": ...}
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import docker
import structlog
from docker.errors import DockerException, NotFound

from riemann_docker_agent.contracts.errors import EventSourceError, InspectError
from riemann_docker_agent.contracts.events import SourceEvent

if TYPE_CHECKING:
    from docker import DockerClient

logger = structlog.get_logger(__name__)

_CONTAINER_EVENTS = {"type": "container"}


def parse_event(raw: Mapping[str, Any]) -> SourceEvent | None:
    """Convert a decoded Engine API event into a SourceEvent.

    Returns None for events that are not about a container.
    """
    event_type = raw.get("Type", "container")
    if event_type != "container":
        return None

    actor = raw.get("Actor") or {}
    attributes = actor.get("Attributes") or {}
    container_id = raw.get("id") or actor.get("ID")
    if not container_id:
        return None

    return SourceEvent(
        time=int(raw.get("time") or 0),
        container_id=container_id,
        status=raw.get("status") or raw.get("Action") or "",
        image=raw.get("from") or attributes.get("image") or "",
    )


class DockerEventSource:
    """EventSource backed by a docker SDK client.

    Example:
        >>> source = DockerEventSource.connect("unix:///var/run/docker.sock")
        >>> source.subscribe(print)  # blocks
    """

    def __init__(self, client: DockerClient) -> None:
        self._client = client
        self._stream: Any | None = None

    @classmethod
    def connect(cls, docker_host: str) -> DockerEventSource:
        """Create a client for docker_host and verify the daemon answers.

        Raises:
            EventSourceError: If the daemon cannot be reached
        """
        try:
            client = docker.DockerClient(base_url=docker_host)
        except DockerException as e:
            raise EventSourceError(f"Failed to connect to Docker host {docker_host}: {e}") from e

        try:
            version = client.version()
        except (DockerException, OSError) as e:
            raise EventSourceError(f"Failed to fetch docker daemon version: {e}") from e

        logger.info("Connected to docker", docker_host=docker_host, version=version.get("Version"))
        return cls(client)

    def subscribe(self, callback: Callable[[SourceEvent], None]) -> None:
        """Stream container events, invoking callback for each one.

        Raises:
            EventSourceError: If the stream cannot be opened or breaks
        """
        try:
            self._stream = self._client.events(decode=True, filters=_CONTAINER_EVENTS)
            for raw in self._stream:
                event = parse_event(raw)
                if event is None:
                    logger.debug("Ignoring non-container event", event=raw)
                    continue
                callback(event)
        except (DockerException, OSError) as e:
            raise EventSourceError(f"Docker event stream failed: {e}") from e
        finally:
            self._stream = None

    def inspect(self, container_id: str) -> Mapping[str, Any]:
        """Return `docker inspect` output for a container.

        Raises:
            InspectError: If the container is gone or the daemon errors
        """
        try:
            return self._client.api.inspect_container(container_id)
        except NotFound as e:
            raise InspectError(container_id, "no such container") from e
        except (DockerException, OSError) as e:
            raise InspectError(container_id, str(e)) from e

    def close(self) -> None:
        """Stop an active event stream and release the client."""
        stream = self._stream
        if stream is not None:
            stream.close()
        self._client.close()
