"""Docker collaborators: container inspection, network discovery and events."""

from cfwatcher.containers.events import container_events, watch_events
from cfwatcher.containers.inspector import ContainerDetails, ContainerInspector, NetworkResolver

__all__ = [
    "ContainerDetails",
    "ContainerInspector",
    "NetworkResolver",
    "container_events",
    "watch_events",
]
