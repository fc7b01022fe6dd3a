# tests/core/test_config.py
"""Tests for settings validation and loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from riemann_docker_agent.contracts.errors import TemplateCompileError
from riemann_docker_agent.core.config import (
    AgentSettings,
    HeartbeatSettings,
    default_docker_host,
    load_settings,
    parse_riemann_url,
)
from riemann_docker_agent.core.event_config import build_event_config, build_heartbeat_record


class TestParseRiemannUrl:
    def test_tcp_with_port(self) -> None:
        assert parse_riemann_url("tcp://riemann.local:5556") == ("tcp", "riemann.local", 5556)

    def test_default_port(self) -> None:
        assert parse_riemann_url("udp://riemann.local") == ("udp", "riemann.local", 5555)

    @pytest.mark.parametrize("url", ["http://riemann:5555", "riemann:5555", "tcp://", "tcp://host:notaport"])
    def test_rejects_bad_urls(self, url: str) -> None:
        with pytest.raises(ValueError, match="Failed to parse Riemann URL"):
            parse_riemann_url(url)


class TestAgentSettings:
    def test_defaults(self) -> None:
        settings = AgentSettings(docker_host="unix:///var/run/docker.sock", host="node-1")

        assert settings.riemann_url == "tcp://localhost:5555"
        assert settings.service == "docker {{.Name}} {{.Status}}"
        assert settings.description == "container {{.Name}} {{.Status}}"
        assert settings.state == "{{.Status}}"
        assert settings.metric == 0.0
        assert settings.ttl == 60.0
        assert settings.heartbeat.service == "riemann-docker-agent"
        assert settings.heartbeat.ttl == 60.0
        assert settings.heartbeat.state == "ok"
        assert settings.queue_size == 10_000

    def test_host_defaults_to_hostname(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("socket.gethostname", lambda: "box-7")

        assert AgentSettings().host == "box-7"

    def test_docker_host_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DOCKER_HOST", "tcp://10.0.0.2:2375")

        assert default_docker_host() == "tcp://10.0.0.2:2375"
        assert AgentSettings().docker_host == "tcp://10.0.0.2:2375"

    def test_docker_host_falls_back_to_socket(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DOCKER_HOST", raising=False)

        assert default_docker_host() == "unix:///var/run/docker.sock"

    def test_invalid_riemann_url_rejected(self) -> None:
        with pytest.raises(ValidationError, match="riemann_url"):
            AgentSettings(riemann_url="ftp://riemann")

    def test_heartbeat_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            HeartbeatSettings(ttl=0)

    def test_empty_heartbeat_service_disables(self) -> None:
        assert HeartbeatSettings(service="").enabled is False
        assert HeartbeatSettings().enabled is True

    def test_settings_are_frozen(self) -> None:
        settings = AgentSettings(host="node-1")

        with pytest.raises(ValidationError):
            settings.host = "other"  # type: ignore[misc]


class TestLoadSettings:
    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml")

    def test_loads_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "agent.yaml"
        path.write_text(
            "riemann_url: udp://collector:5555\n"
            "host: node-9\n"
            "tags:\n"
            "  - docker\n"
            "attributes:\n"
            "  image: '{{.Image}}'\n"
            "heartbeat:\n"
            "  service: ''\n"
        )

        settings = load_settings(path)

        assert settings.riemann_url == "udp://collector:5555"
        assert settings.host == "node-9"
        assert settings.tags == ["docker"]
        assert settings.attributes == {"image": "{{.Image}}"}
        assert settings.heartbeat.enabled is False

    def test_overrides_win_over_file(self, tmp_path: Path) -> None:
        path = tmp_path / "agent.yaml"
        path.write_text("host: from-file\nheartbeat:\n  state: warning\n  ttl: 20\n")

        settings = load_settings(path, {"host": "from-flag", "heartbeat": {"ttl": 30.0}})

        assert settings.host == "from-flag"
        assert settings.heartbeat.ttl == 30.0
        assert settings.heartbeat.state == "warning"

    def test_expands_environment_variables(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RIEMANN_HOST", "riemann.prod")
        path = tmp_path / "agent.yaml"
        path.write_text("riemann_url: tcp://${RIEMANN_HOST}:5555\nhost: ${NODE_NAME:-fallback}\n")

        settings = load_settings(path)

        assert settings.riemann_url == "tcp://riemann.prod:5555"
        assert settings.host == "fallback"


class TestBuildEventConfig:
    def test_compiles_every_slot(self, agent_settings: AgentSettings) -> None:
        config = build_event_config(agent_settings)

        assert config.host == "node-1"
        assert config.service.name == "service"
        assert [tag.name for tag in config.tags] == ["tag 1", "tag 2"]
        assert list(config.attributes) == ["container", "image"]
        assert config.ttl == 60.0

    def test_bad_tag_template_is_fatal(self) -> None:
        settings = AgentSettings(host="node-1", tags=["ok", "{{ .Name "])

        with pytest.raises(TemplateCompileError) as exc_info:
            build_event_config(settings)

        assert exc_info.value.name == "tag 2"

    def test_bad_attribute_template_is_fatal(self) -> None:
        settings = AgentSettings(host="node-1", attributes={"owner": "{% if %}"})

        with pytest.raises(TemplateCompileError, match="attribute 'owner'"):
            build_event_config(settings)


class TestHeartbeatRecord:
    def test_fields_copied_from_settings(self) -> None:
        record = build_heartbeat_record(
            "node-1",
            HeartbeatSettings(service="agent", ttl=30, description="alive", state="ok", metric=1.5, tags=["a"], attributes={"k": "v"}),
        )

        assert record.host == "node-1"
        assert record.service == "agent"
        assert record.description == "alive"
        assert record.metric == 1.5
        assert record.tags == ("a",)
        assert dict(record.attributes) == {"k": "v"}
        assert record.ttl == 30
