# tests/conftest.py
"""Shared fixtures: compiled configs, fakes and a controllable clock."""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from hypothesis import settings

from riemann_docker_agent.contracts.events import RawEvent, Record
from riemann_docker_agent.core.config import AgentSettings, HeartbeatSettings
from riemann_docker_agent.core.event_config import EventConfig, build_event_config, build_heartbeat_record
from riemann_docker_agent.engine.clock import MockClock
from tests.fixtures.pipeline import FakeEventSource, FakeSink

settings.register_profile("ci", max_examples=100, deadline=None)
settings.register_profile("debug", max_examples=10, deadline=None)
settings.load_profile("ci")


@pytest.fixture
def agent_settings() -> AgentSettings:
    return AgentSettings(
        riemann_url="tcp://riemann.test:5555",
        docker_host="unix:///var/run/docker.sock",
        host="node-1",
        tags=["docker", "{{.Image}}"],
        attributes={"container": "{{.ContainerId}}", "image": "{{.Image}}"},
    )


@pytest.fixture
def event_config(agent_settings: AgentSettings) -> EventConfig:
    return build_event_config(agent_settings)


@pytest.fixture
def heartbeat_record() -> Record:
    return build_heartbeat_record("node-1", HeartbeatSettings(ttl=10.0, tags=["agent"], attributes={"role": "hb"}))


@pytest.fixture
def raw_event() -> RawEvent:
    return RawEvent(
        time=1_700_000_000,
        container_id="4f2a9c",
        status="create",
        image="nginx:latest",
        name="web1",
        metadata={"Name": "/web1", "Config": {"Image": "nginx:latest", "Hostname": "4f2a9c"}},
    )


@pytest.fixture
def clock() -> MockClock:
    return MockClock(start=1_700_000_000.0)


@pytest.fixture
def sink() -> FakeSink:
    return FakeSink()


@pytest.fixture
def source() -> Iterator[FakeEventSource]:
    fake = FakeEventSource()
    yield fake
    fake.close()
