# src/riemann_docker_agent/cli.py
"""riemann-docker-agent Command Line Interface.

Entry point for the riemann-docker-agent console script.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from riemann_docker_agent import __version__
from riemann_docker_agent.contracts.errors import EventSourceError, SinkUnavailableError, TemplateCompileError
from riemann_docker_agent.core.config import AgentSettings, load_settings
from riemann_docker_agent.core.event_config import EventConfig, build_event_config, build_heartbeat_record
from riemann_docker_agent.core.logging import configure_logging

__all__ = ["app"]

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="riemann-docker-agent",
    help="Forward Docker container events to Riemann.",
    no_args_is_help=True,
)

# Exit status when the sink stays unreachable past the reconnect budget
EXIT_SINK_UNAVAILABLE = 2


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"riemann-docker-agent version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Forward Docker container events to Riemann."""


def parse_key_values(values: list[str] | None, option: str) -> dict[str, str] | None:
    """Parse repeated KEY=VALUE options into a dict (later keys win)."""
    if values is None:
        return None
    result: dict[str, str] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected KEY=VALUE, got '{item}'", param_hint=option)
        result[key] = value
    return result


def _drop_unset(values: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in values.items() if v is not None}


def _describe(settings: AgentSettings, event_config: EventConfig) -> None:
    typer.echo("Configuration is valid:")
    typer.echo(f"  Riemann: {settings.riemann_url}")
    typer.echo(f"  Docker: {settings.docker_host}")
    typer.echo(f"  Host: {event_config.host}")
    typer.echo(f"  Service: {event_config.service.text}")
    typer.echo(f"  Description: {event_config.description.text}")
    typer.echo(f"  State: {event_config.state.text}")
    typer.echo(f"  Tags: {len(event_config.tags)}")
    typer.echo(f"  Attributes: {', '.join(event_config.attributes) or '-'}")
    if settings.heartbeat.enabled:
        typer.echo(f"  Heartbeat: {settings.heartbeat.service} every {settings.heartbeat.ttl / 2:g}s")
    else:
        typer.echo("  Heartbeat: disabled")


@app.command()
def run(
    settings_file: Path | None = typer.Option(
        None,
        "--settings",
        help="Path to settings YAML file (flags override it).",
    ),
    riemann_url: str | None = typer.Option(None, "--riemann-url", help="Riemann URL [default: tcp://localhost:5555]."),
    docker_host: str | None = typer.Option(None, "--docker-host", help="Docker host [default: $DOCKER_HOST]."),
    verbose: bool | None = typer.Option(None, "--verbose", "-v", help="Log every event received and sent."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Output structured JSON logs."),
    dry_run: bool = typer.Option(False, "--dry-run", "-n", help="Validate configuration and exit."),
    host: str | None = typer.Option(None, "--host", "-h", help="Event host [default: hostname]."),
    service: str | None = typer.Option(None, "--service", "-s", help="Event service template."),
    ttl: float | None = typer.Option(None, "--ttl", help="Event TTL."),
    description: str | None = typer.Option(None, "--description", "-d", help="Event description template."),
    tags: list[str] | None = typer.Option(None, "--tag", "-t", help="Event tag template (repeatable)."),
    state: str | None = typer.Option(None, "--state", help="Event state template."),
    metric: float | None = typer.Option(None, "--metric", "-m", help="Event metric."),
    attributes: list[str] | None = typer.Option(None, "--attribute", "-a", help="Event attribute KEY=TEMPLATE (repeatable)."),
    hb_service: str | None = typer.Option(None, "--hb-service", help="Heartbeat service (empty disables)."),
    hb_ttl: float | None = typer.Option(None, "--hb-ttl", help="Heartbeat TTL."),
    hb_description: str | None = typer.Option(None, "--hb-description", help="Heartbeat description."),
    hb_tags: list[str] | None = typer.Option(None, "--hb-tag", help="Heartbeat tag (repeatable)."),
    hb_state: str | None = typer.Option(None, "--hb-state", help="Heartbeat state."),
    hb_metric: float | None = typer.Option(None, "--hb-metric", help="Heartbeat metric."),
    hb_attributes: list[str] | None = typer.Option(None, "--hb-attribute", help="Heartbeat attribute KEY=VALUE (repeatable)."),
) -> None:
    """Listen to Docker events and forward them to Riemann."""
    overrides = _drop_unset(
        {
            "riemann_url": riemann_url,
            "docker_host": docker_host,
            "verbose": verbose,
            "host": host,
            "service": service,
            "ttl": ttl,
            "description": description,
            "tags": tags or None,
            "state": state,
            "metric": metric,
            "attributes": parse_key_values(attributes or None, "--attribute"),
        }
    )
    heartbeat = _drop_unset(
        {
            "service": hb_service,
            "ttl": hb_ttl,
            "description": hb_description,
            "tags": hb_tags or None,
            "state": hb_state,
            "metric": hb_metric,
            "attributes": parse_key_values(hb_attributes or None, "--hb-attribute"),
        }
    )
    if heartbeat:
        overrides["heartbeat"] = heartbeat

    try:
        settings = load_settings(settings_file.expanduser() if settings_file else None, overrides)
    except (YamlParserError, YamlScannerError) as e:
        typer.echo(f"YAML syntax error in {settings_file}: {e.problem}", err=True)
        raise typer.Exit(1) from None
    except FileNotFoundError:
        typer.echo(f"Error: Settings file not found: {settings_file}", err=True)
        raise typer.Exit(1) from None
    except ValidationError as e:
        typer.echo("Configuration errors:", err=True)
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            typer.echo(f"  - {loc}: {error['msg']}", err=True)
        raise typer.Exit(1) from None

    configure_logging(json_output=json_logs, level="DEBUG" if settings.verbose else "INFO")

    try:
        event_config = build_event_config(settings)
    except TemplateCompileError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    heartbeat_record = None
    if settings.heartbeat.enabled:
        heartbeat_record = build_heartbeat_record(settings.host, settings.heartbeat)

    if dry_run:
        _describe(settings, event_config)
        return

    from riemann_docker_agent.engine.pipeline import Pipeline
    from riemann_docker_agent.plugins.sinks import RiemannSink
    from riemann_docker_agent.plugins.sources import DockerEventSource

    try:
        source = DockerEventSource.connect(settings.docker_host)
    except EventSourceError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    pipeline = Pipeline(
        source,
        RiemannSink(),
        settings.riemann_url,
        event_config,
        heartbeat_record,
        queue_size=settings.queue_size,
    )
    try:
        pipeline.run()
    except SinkUnavailableError as e:
        logger.critical("Giving up on riemann", address=e.address, attempts=e.attempts, error=str(e.last_error))
        raise typer.Exit(EXIT_SINK_UNAVAILABLE) from None
    except EventSourceError as e:
        logger.critical("Docker event stream lost", error=str(e))
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        pipeline.stop()
        logger.info("Interrupted, exiting", **pipeline.health_metrics)
        raise typer.Exit(130) from None
    finally:
        source.close()


if __name__ == "__main__":
    app()
