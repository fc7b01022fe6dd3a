"""Collector sinks."""

from riemann_docker_agent.plugins.sinks.riemann_sink import RiemannSink

__all__ = ["RiemannSink"]
