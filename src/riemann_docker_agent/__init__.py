"""
riemann-docker-agent: forward Docker container lifecycle events to Riemann.

Listens to the Docker daemon event stream, renders each event into a Riemann
event through user-supplied templates and ships it to a Riemann server,
together with a periodic heartbeat proving the agent is alive.
"""

__version__ = "1.0.0"
