# tests/fixtures/__init__.py
"""Shared test doubles."""
