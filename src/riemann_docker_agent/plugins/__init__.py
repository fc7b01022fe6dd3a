# src/riemann_docker_agent/plugins/__init__.py
"""Concrete event source and sink implementations."""
