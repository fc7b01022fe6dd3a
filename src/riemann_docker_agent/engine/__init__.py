# src/riemann_docker_agent/engine/__init__.py
"""Pipeline engine: stages, queues, retry and timing."""

from riemann_docker_agent.engine.pipeline import Pipeline
from riemann_docker_agent.engine.retry import ConnectRetryConfig

__all__ = ["ConnectRetryConfig", "Pipeline"]
