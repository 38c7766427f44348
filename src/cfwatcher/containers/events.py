"""Docker event stream."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import docker
import requests
import structlog

from cfwatcher.core.exceptions import EventStreamError

logger = structlog.get_logger()

START_FILTERS = {"type": "container", "event": "start"}


def container_events(
    client: docker.DockerClient,
    filters: dict[str, Any] | None = None,
) -> Iterator[dict[str, Any]]:
    """Yield decoded Docker events until the stream ends.

    Raises:
        EventStreamError: If the daemon connection fails.
    """
    try:
        stream = client.events(decode=True, filters=filters or START_FILTERS)
        for event in stream:
            yield event
    except (docker.errors.DockerException, requests.RequestException) as e:
        raise EventStreamError(f"error receiving events: {e}") from e


def watch_events(
    client: docker.DockerClient,
    handler: Callable[[dict[str, Any]], object],
    filters: dict[str, Any] | None = None,
) -> None:
    """Hand every event to ``handler``, one at a time, until the stream ends."""
    logger.info("Watching Docker events", filters=filters or START_FILTERS)
    for event in container_events(client, filters):
        handler(event)
