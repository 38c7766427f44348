"""Container inspection and tunnel network discovery via the Docker SDK."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import docker
import requests
import structlog

from cfwatcher.core.exceptions import ContainerNotFoundError

logger = structlog.get_logger()


@dataclass
class ContainerDetails:
    """The parts of ``docker inspect`` output the watcher needs."""

    id: str
    name: str
    image: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    networks: dict[str, Any] = field(default_factory=dict)
    ip_address: str = ""

    @classmethod
    def from_attrs(cls, attrs: dict[str, Any]) -> ContainerDetails:
        config = attrs.get("Config") or {}
        settings = attrs.get("NetworkSettings") or {}
        return cls(
            id=attrs.get("Id", ""),
            name=attrs.get("Name", "").lstrip("/"),
            image=config.get("Image") or attrs.get("Image", ""),
            labels=dict(config.get("Labels") or {}),
            networks=dict(settings.get("Networks") or {}),
            ip_address=settings.get("IPAddress") or "",
        )


def _image_name(container: Any) -> str:
    attrs = container.attrs or {}
    return (attrs.get("Config") or {}).get("Image") or attrs.get("Image") or ""


class ContainerInspector:
    """Reads labels and network attachments of a container."""

    def __init__(self, client: docker.DockerClient) -> None:
        self._client = client

    def inspect(self, container_id: str) -> ContainerDetails:
        """Inspect a container.

        Raises:
            ContainerNotFoundError: If the container no longer exists.
            docker.errors.APIError: On other daemon errors.
            requests.RequestException: If the daemon cannot be reached.
        """
        try:
            container = self._client.containers.get(container_id)
        except docker.errors.NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        return ContainerDetails.from_attrs(container.attrs)


class NetworkResolver:
    """Finds the network a container shares with the tunnel connector.

    A network qualifies when one of the containers attached to it runs an
    image whose name contains ``image_token`` (``cloudflared`` by default).
    """

    def __init__(self, client: docker.DockerClient, image_token: str = "cloudflared") -> None:
        self._client = client
        self.image_token = image_token

    def find_tunnel_network(self, networks: Mapping[str, Any]) -> str | None:
        for network_name in sorted(networks):
            try:
                containers = self._client.containers.list(
                    all=True,
                    filters={"network": network_name},
                )
            except (docker.errors.APIError, requests.RequestException) as e:
                logger.warning(
                    "Error listing containers for network",
                    network=network_name,
                    error=str(e),
                )
                continue

            for container in containers:
                if self.image_token in _image_name(container):
                    logger.info(
                        "Found tunnel connector container",
                        network=network_name,
                        container=container.name,
                    )
                    return network_name

        return None
