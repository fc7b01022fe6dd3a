# tests/cli/test_cli.py
"""Tests for the riemann-docker-agent CLI."""

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from typer.testing import CliRunner

from riemann_docker_agent import __version__
from riemann_docker_agent.cli import EXIT_SINK_UNAVAILABLE, app, parse_key_values
from riemann_docker_agent.contracts.errors import EventSourceError, SinkUnavailableError
from riemann_docker_agent.engine.pipeline import Pipeline
from riemann_docker_agent.plugins.sources import DockerEventSource
from tests.fixtures.pipeline import FakeEventSource

# Stderr output is combined with stdout when using CliRunner.invoke()
runner = CliRunner()


@pytest.fixture(autouse=True)
def logging_calls(monkeypatch: pytest.MonkeyPatch) -> Iterator[list[dict[str, Any]]]:
    """Keep the CLI from rebinding root logging to the runner's streams."""
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr("riemann_docker_agent.cli.configure_logging", lambda **kwargs: calls.append(kwargs))
    for name in ("RDA_RIEMANN_URL", "RDA_HOST", "RDA_SERVICE"):
        monkeypatch.delenv(name, raising=False)
    yield calls


class TestCLIBasics:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_help_lists_run(self) -> None:
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "run" in result.output


class TestParseKeyValues:
    def test_later_keys_win(self) -> None:
        assert parse_key_values(["a=1", "b=x=y", "a=2"], "--attribute") == {"a": "2", "b": "x=y"}

    def test_empty_value_allowed(self) -> None:
        assert parse_key_values(["a="], "--attribute") == {"a": ""}

    def test_none_passes_through(self) -> None:
        assert parse_key_values(None, "--attribute") is None


class TestDryRun:
    def test_reports_effective_configuration(self) -> None:
        result = runner.invoke(
            app,
            ["run", "--dry-run", "--riemann-url", "udp://riemann.test:5556", "-h", "node-1", "-a", "image={{.Image}}"],
        )

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output
        assert "udp://riemann.test:5556" in result.output
        assert "Host: node-1" in result.output
        assert "Service: docker {{.Name}} {{.Status}}" in result.output
        assert "Attributes: image" in result.output
        assert "Heartbeat: riemann-docker-agent every 30s" in result.output

    def test_empty_heartbeat_service_disables_heartbeat(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--hb-service", ""])

        assert result.exit_code == 0, result.output
        assert "Heartbeat: disabled" in result.output

    def test_settings_file_with_flag_override(self, tmp_path: Path) -> None:
        settings_file = tmp_path / "agent.yaml"
        settings_file.write_text(
            "riemann_url: tcp://from-file:5555\nhost: file-host\nheartbeat:\n  ttl: 20\n",
        )

        result = runner.invoke(app, ["run", "--dry-run", "--settings", str(settings_file), "--host", "flag-host"])

        assert result.exit_code == 0, result.output
        assert "tcp://from-file:5555" in result.output
        assert "Host: flag-host" in result.output
        assert "every 10s" in result.output

    def test_verbose_selects_debug_logging(self, logging_calls: list[dict[str, Any]]) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--verbose", "--json-logs"])

        assert result.exit_code == 0, result.output
        assert logging_calls == [{"json_output": True, "level": "DEBUG"}]


class TestConfigurationErrors:
    def test_unknown_template_field(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--service", "docker {{.Nope}}"])

        assert result.exit_code == 1
        assert "bad value for service" in result.output

    def test_unparsable_template(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "-t", "{{.Name"])

        assert result.exit_code == 1
        assert "bad value for tag 1" in result.output

    def test_malformed_attribute(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--attribute", "no-separator"])

        assert result.exit_code != 0
        assert "KEY=VALUE" in result.output

    def test_bad_riemann_url(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--riemann-url", "http://riemann.test"])

        assert result.exit_code == 1
        assert "riemann_url" in result.output

    def test_non_positive_ttl(self) -> None:
        result = runner.invoke(app, ["run", "--dry-run", "--hb-ttl", "0"])

        assert result.exit_code == 1
        assert "heartbeat.ttl" in result.output

    def test_missing_settings_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["run", "--settings", str(tmp_path / "missing.yaml")])

        assert result.exit_code == 1
        assert "Settings file not found" in result.output


class TestRunExitCodes:
    @pytest.fixture
    def fake_source(self, monkeypatch: pytest.MonkeyPatch) -> FakeEventSource:
        source = FakeEventSource()
        monkeypatch.setattr(DockerEventSource, "connect", classmethod(lambda cls, docker_host: source))
        return source

    def test_unreachable_docker_exits_one(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def refuse(cls: type, docker_host: str) -> None:
            raise EventSourceError(f"Failed to fetch docker daemon version: {docker_host} refused")

        monkeypatch.setattr(DockerEventSource, "connect", classmethod(refuse))

        result = runner.invoke(app, ["run", "--docker-host", "tcp://10.0.0.1:2375"])

        assert result.exit_code == 1
        assert "daemon version" in result.output

    def test_unavailable_sink_exits_two(self, monkeypatch: pytest.MonkeyPatch, fake_source: FakeEventSource) -> None:
        def give_up(self: Pipeline) -> None:
            raise SinkUnavailableError("tcp://localhost:5555", 10, ConnectionRefusedError("refused"))

        monkeypatch.setattr(Pipeline, "run", give_up)

        result = runner.invoke(app, ["run"])

        assert result.exit_code == EXIT_SINK_UNAVAILABLE

    def test_lost_event_stream_exits_one(self, monkeypatch: pytest.MonkeyPatch, fake_source: FakeEventSource) -> None:
        def lose_stream(self: Pipeline) -> None:
            raise EventSourceError("event stream ended unexpectedly")

        monkeypatch.setattr(Pipeline, "run", lose_stream)

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 1

    def test_interrupt_exits_130(self, monkeypatch: pytest.MonkeyPatch, fake_source: FakeEventSource) -> None:
        def interrupt(self: Pipeline) -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr(Pipeline, "run", interrupt)

        result = runner.invoke(app, ["run"])

        assert result.exit_code == 130
