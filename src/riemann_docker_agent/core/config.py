# src/riemann_docker_agent/core/config.py
"""
Configuration schema and loading for the agent.

Uses Pydantic for validation and Dynaconf for loading an optional YAML
settings file plus RDA_* environment variables. Command-line flags are
applied on top by the CLI. Settings are frozen (immutable) after
construction.
"""

import os
import re
import socket
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator

_DEFAULT_DOCKER_SOCKET = "unix:///var/run/docker.sock"
_SUPPORTED_SCHEMES = frozenset({"tcp", "udp"})
DEFAULT_RIEMANN_PORT = 5555


def default_docker_host() -> str:
    """DOCKER_HOST from the environment, or the local daemon socket."""
    return os.environ.get("DOCKER_HOST") or _DEFAULT_DOCKER_SOCKET


def parse_riemann_url(url: str) -> tuple[str, str, int]:
    """Split a Riemann URL into (scheme, host, port).

    Raises:
        ValueError: If the scheme is unsupported or the host is missing
    """
    parts = urlsplit(url)
    if parts.scheme not in _SUPPORTED_SCHEMES:
        raise ValueError(
            f"Failed to parse Riemann URL {url}: scheme must be one of {', '.join(sorted(_SUPPORTED_SCHEMES))}"
        )
    if not parts.hostname:
        raise ValueError(f"Failed to parse Riemann URL {url}: missing host")
    try:
        port = parts.port or DEFAULT_RIEMANN_PORT
    except ValueError as e:
        raise ValueError(f"Failed to parse Riemann URL {url}: {e}") from e
    return parts.scheme, parts.hostname, port


class HeartbeatSettings(BaseModel):
    """Heartbeat event configuration.

    An empty service disables the heartbeat entirely. Heartbeat fields are
    literal strings, not templates.
    """

    model_config = {"frozen": True}

    service: str = Field(default="riemann-docker-agent", description="Heartbeat service (empty disables)")
    ttl: float = Field(default=60.0, gt=0, description="Heartbeat TTL; sent every ttl/2 seconds")
    description: str = Field(default="docker-agent is alive", description="Heartbeat description")
    state: str = Field(default="ok", description="Heartbeat state")
    metric: float = Field(default=0.0, description="Heartbeat metric")
    tags: list[str] = Field(default_factory=list, description="Heartbeat tags")
    attributes: dict[str, str] = Field(default_factory=dict, description="Heartbeat attributes")

    @property
    def enabled(self) -> bool:
        return self.service != ""


class AgentSettings(BaseModel):
    """Top-level agent configuration.

    Template-valued fields (service, description, state, tags, attributes)
    are compiled at startup by build_event_config(); compilation errors are
    fatal.
    """

    model_config = {"frozen": True}

    riemann_url: str = Field(default="tcp://localhost:5555", description="Riemann URL")
    docker_host: str = Field(default_factory=default_docker_host, description="Docker host")
    verbose: bool = Field(default=False, description="Echo every received event and sent record")

    host: str = Field(default_factory=lambda: socket.gethostname(), description="Event host")
    service: str = Field(default="docker {{.Name}} {{.Status}}", description="Event service template")
    ttl: float | None = Field(default=60.0, gt=0, description="Event TTL")
    description: str = Field(default="container {{.Name}} {{.Status}}", description="Event description template")
    tags: list[str] = Field(default_factory=list, description="Event tag templates")
    state: str = Field(default="{{.Status}}", description="Event state template")
    metric: float = Field(default=0.0, description="Event metric")
    attributes: dict[str, str] = Field(default_factory=dict, description="Event attribute templates")

    heartbeat: HeartbeatSettings = Field(default_factory=HeartbeatSettings)

    queue_size: int = Field(default=10_000, gt=0, description="Capacity of each stage queue")

    @field_validator("riemann_url")
    @classmethod
    def validate_riemann_url(cls, v: str) -> str:
        parse_riemann_url(v)
        return v


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values."""

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            if match.group(2) is not None:
                return match.group(2)
            # No env var and no default - keep original
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): v for k, v in value.items()}
    return value


def load_raw_settings(config_path: Path | None = None) -> dict[str, Any]:
    """Load settings from an optional YAML file and RDA_* environment variables.

    Returns an unvalidated dict so callers can layer command-line overrides
    on top before constructing AgentSettings.

    Raises:
        FileNotFoundError: If config_path is given but doesn't exist
    """
    from dynaconf import Dynaconf

    # Explicit check for file existence (Dynaconf silently accepts missing files)
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="RDA",
        settings_files=[str(config_path)] if config_path is not None else [],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES", "ENVVAR_PREFIX", "MERGE_ENABLED"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    if "heartbeat" in raw_config:
        # Attribute and tag values stay as written; only section keys are folded
        raw_config["heartbeat"] = _lower_keys(raw_config["heartbeat"])

    return _expand_env_vars(raw_config)


def load_settings(config_path: Path | None = None, overrides: dict[str, Any] | None = None) -> AgentSettings:
    """Load and validate agent settings.

    Args:
        config_path: Optional YAML settings file
        overrides: Values taking precedence over the file and environment
            (typically command-line flags). A "heartbeat" entry is merged
            key by key into the heartbeat section.

    Returns:
        Validated AgentSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config_path doesn't exist
    """
    raw_config = load_raw_settings(config_path)
    overrides = dict(overrides or {})
    heartbeat_overrides = overrides.pop("heartbeat", None) or {}
    raw_config.update(overrides)
    if heartbeat_overrides:
        raw_config["heartbeat"] = {**(raw_config.get("heartbeat") or {}), **heartbeat_overrides}
    return AgentSettings(**raw_config)
