# src/riemann_docker_agent/contracts/errors.py
"""Exception taxonomy for the agent.

Two families matter to callers:
- Startup errors (ConfigurationError, TemplateCompileError, EventSourceError
  raised while connecting) stop the agent before the pipeline runs.
- Runtime errors are either recovered inside a stage (InspectError, SinkError)
  or fatal (SinkUnavailableError, EventSourceError from a dead stream).
"""


class AgentError(Exception):
    """Base class for all agent errors."""


class ConfigurationError(AgentError):
    """Raised when user configuration is invalid."""


class TemplateCompileError(ConfigurationError):
    """Raised when a template cannot be compiled.

    Attributes:
        name: Human-readable template slot name (e.g. "tag 2")
        text: The offending template source
    """

    def __init__(self, name: str, text: str, reason: str) -> None:
        self.name = name
        self.text = text
        self.reason = reason
        super().__init__(f"bad value for {name} ({text}): {reason}")


class InspectError(AgentError):
    """Raised by an EventSource when container metadata cannot be resolved."""

    def __init__(self, container_id: str, reason: str) -> None:
        self.container_id = container_id
        self.reason = reason
        super().__init__(f"error inspecting container {container_id}: {reason}")


class EventSourceError(AgentError):
    """Raised when the event source cannot be reached or its stream dies."""


class SinkError(AgentError):
    """Raised by a Sink on a connect or send failure (transient)."""


class SinkUnavailableError(AgentError):
    """Raised when the sink stays unreachable for the whole reconnect budget.

    Attributes:
        address: Sink address that could not be reached
        attempts: Number of connect attempts made
        last_error: The error from the final attempt
    """

    def __init__(self, address: str, attempts: int, last_error: BaseException) -> None:
        self.address = address
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"can't connect to riemann at {address} after {attempts} attempts: {last_error}")
