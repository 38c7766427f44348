"""Pytest fixtures for cf-watcher tests."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from cfwatcher.containers.inspector import ContainerDetails
from cfwatcher.core.exceptions import ContainerNotFoundError
from cfwatcher.ingress.rules import IngressRule, TunnelConfiguration


class FakeResolver:
    """Network resolver returning a fixed answer and recording calls."""

    def __init__(self, network: str | None = "tunnel") -> None:
        self.network = network
        self.calls: list[dict[str, Any]] = []

    def find_tunnel_network(self, networks):
        self.calls.append(dict(networks))
        return self.network


class FakeInspector:
    def __init__(self, containers: dict[str, ContainerDetails] | None = None) -> None:
        self.containers = containers or {}
        self.calls: list[str] = []

    def inspect(self, container_id: str) -> ContainerDetails:
        self.calls.append(container_id)
        if container_id not in self.containers:
            raise ContainerNotFoundError(container_id)
        return self.containers[container_id]


class FakeTunnelAPI:
    """In-memory tunnel configuration that applies published lists."""

    def __init__(self, ingress: list[IngressRule] | None = None, warp: bool = False) -> None:
        self.config = TunnelConfiguration(
            ingress=list(ingress or []),
            warp_routing_enabled=warp,
            version=1,
            tunnel_id="tunnel-123",
        )
        self.fetches = 0
        self.published: list[TunnelConfiguration] = []
        self.dns_records: list[tuple[str, str]] = []
        self.fetch_error: Exception | None = None
        self.publish_error: Exception | None = None
        self.dns_error: Exception | None = None

    def fetch_tunnel_config(self) -> TunnelConfiguration:
        self.fetches += 1
        if self.fetch_error:
            raise self.fetch_error
        return copy.deepcopy(self.config)

    def publish_tunnel_config(self, config: TunnelConfiguration) -> None:
        if self.publish_error:
            raise self.publish_error
        self.published.append(copy.deepcopy(config))
        self.config = TunnelConfiguration(
            ingress=list(config.ingress),
            warp_routing_enabled=config.warp_routing_enabled,
            version=(self.config.version or 0) + 1,
            tunnel_id=self.config.tunnel_id,
        )

    def create_dns_record(self, subdomain: str, domain: str) -> None:
        if self.dns_error:
            raise self.dns_error
        self.dns_records.append((subdomain, domain))


@pytest.fixture
def app_labels() -> dict[str, str]:
    """Labels of a container asking for app.example.com."""
    return {
        "cf_watcher.enabled": "true",
        "cf_watcher.cf_network": "netA",
        "cf_watcher.rules.subdomain": "app",
        "cf_watcher.rules.domain": "example.com",
        "cf_watcher.rules.type": "http",
        "cf_watcher.rules.host": "10.0.0.5",
        "cf_watcher.rules.port": "8080",
    }


@pytest.fixture
def resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def app_container(app_labels) -> ContainerDetails:
    return ContainerDetails(
        id="abc123def456789",
        name="app",
        image="my/app:latest",
        labels=app_labels,
        networks={"netA": {}},
    )


@pytest.fixture
def start_event() -> dict[str, Any]:
    return {
        "Type": "container",
        "Action": "start",
        "id": "abc123def456789",
        "Actor": {"ID": "abc123def456789", "Attributes": {"name": "app"}},
    }
