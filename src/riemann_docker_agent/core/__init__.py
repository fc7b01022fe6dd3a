# src/riemann_docker_agent/core/__init__.py
"""Core infrastructure: configuration, logging and templates."""
