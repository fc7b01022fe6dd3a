"""Event sources."""

from riemann_docker_agent.plugins.sources.docker_source import DockerEventSource

__all__ = ["DockerEventSource"]
