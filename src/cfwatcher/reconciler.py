"""Reconciliation driver.

Handles one container lifecycle event at a time: inspect the container,
parse its labels, fetch the tunnel configuration, and publish a replacement
ingress list only when the container's hostname is not routed yet.

Usage:
    reconciler = Reconciler(inspector, resolver, cloudflare_client)
    outcome = reconciler.reconcile({"Type": "container", "Action": "start", "id": cid})

    # Or drive it from an event source
    reconciler.run(container_events(docker_client))
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

import docker
import requests
import structlog

from cfwatcher.containers.inspector import ContainerDetails
from cfwatcher.core.exceptions import ErrorKind, LabelParseError, WatcherError
from cfwatcher.ingress.engine import AlreadyRouted, compose_rules, match_intent
from cfwatcher.ingress.labels import RoutingIntent, parse_labels
from cfwatcher.ingress.rules import TunnelConfiguration
from cfwatcher.observability.metrics import RECONCILE_DURATION, RECONCILIATIONS

logger = structlog.get_logger()


class Inspector(Protocol):
    def inspect(self, container_id: str) -> ContainerDetails: ...


class Resolver(Protocol):
    def find_tunnel_network(self, networks: Mapping[str, Any]) -> str | None: ...


class TunnelAPI(Protocol):
    def fetch_tunnel_config(self) -> TunnelConfiguration: ...

    def publish_tunnel_config(self, config: TunnelConfiguration) -> None: ...

    def create_dns_record(self, subdomain: str, domain: str) -> None: ...


class OutcomeStatus(Enum):
    """Terminal state of one reconciliation."""

    SKIPPED = "skipped"
    ROUTED = "routed"
    ALREADY_ROUTED = "already_routed"
    FAILED = "failed"


@dataclass
class Outcome:
    """Result of reconciling a single event."""

    status: OutcomeStatus
    container_id: str = ""
    container_name: str = ""
    hostname: str | None = None
    reason: str = ""
    kind: ErrorKind | None = None
    operation: str | None = None
    error: Exception | None = None
    dns_error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "container_id": self.container_id,
            "container_name": self.container_name,
            "hostname": self.hostname,
            "reason": self.reason,
            "kind": self.kind.value if self.kind else None,
            "operation": self.operation,
            "error": str(self.error) if self.error else None,
            "dns_error": self.dns_error,
        }


def event_container_id(event: Mapping[str, Any]) -> str:
    """Extract the container id from a Docker event."""
    actor = event.get("Actor") or {}
    return event.get("id") or actor.get("ID") or ""


def is_container_start(event: Mapping[str, Any]) -> bool:
    event_type = event.get("Type") or event.get("type")
    action = event.get("Action") or event.get("status")
    return event_type == "container" and action == "start"


class Reconciler:
    """Reconciles container routing intents with a tunnel's ingress rules.

    Collaborators are injected so the driver can run against fakes: nothing
    here reads the environment or talks to Docker/Cloudflare directly.
    """

    def __init__(
        self,
        inspector: Inspector,
        resolver: Resolver,
        tunnel_api: TunnelAPI,
        manage_dns: bool = False,
    ) -> None:
        self.inspector = inspector
        self.resolver = resolver
        self.tunnel_api = tunnel_api
        self.manage_dns = manage_dns

    def reconcile(self, event: Mapping[str, Any]) -> Outcome:
        """Reconcile a single lifecycle event and report the outcome."""
        started = time.monotonic()
        outcome = self._reconcile(event)
        RECONCILE_DURATION.observe(time.monotonic() - started)
        RECONCILIATIONS.labels(outcome=outcome.status.value).inc()
        self._report(outcome)
        return outcome

    def reconcile_container(self, container_id: str) -> Outcome:
        """Reconcile a container as if it had just started."""
        return self.reconcile({"Type": "container", "Action": "start", "id": container_id})

    def run(self, events: Iterable[Mapping[str, Any]]) -> int:
        """Reconcile events sequentially until the source is exhausted.

        A failing event is reported and the loop moves on; only errors raised
        by the event source itself propagate.

        Returns:
            Number of events handled.
        """
        handled = 0
        for event in events:
            try:
                self.reconcile(event)
            except Exception:
                logger.exception(
                    "Unexpected error while reconciling event",
                    container_id=event_container_id(event),
                )
            handled += 1
        return handled

    def _reconcile(self, event: Mapping[str, Any]) -> Outcome:
        container_id = event_container_id(event)
        if not is_container_start(event):
            return Outcome(OutcomeStatus.SKIPPED, container_id, reason="ignored event")

        try:
            details = self.inspector.inspect(container_id)
        except (WatcherError, docker.errors.DockerException, requests.RequestException) as e:
            return self._failed(container_id, "", "inspect", e)

        name = details.name
        try:
            intent = parse_labels(details.labels, details.networks, self.resolver)
        except LabelParseError as e:
            return Outcome(
                OutcomeStatus.SKIPPED,
                container_id,
                name,
                reason=e.message,
                kind=e.kind,
                error=e,
            )
        except (docker.errors.DockerException, requests.RequestException) as e:
            return self._failed(container_id, name, "resolve", e)

        try:
            current = self.tunnel_api.fetch_tunnel_config()
        except WatcherError as e:
            return self._failed(container_id, name, "fetch", e, intent.hostname)

        result = match_intent(current.ingress, intent)
        if isinstance(result, AlreadyRouted):
            return Outcome(
                OutcomeStatus.ALREADY_ROUTED,
                container_id,
                name,
                hostname=result.hostname,
                reason="route already exists",
            )

        if result.dropped_catch_alls:
            logger.warning(
                "Dropping extra catch-all rules",
                dropped=result.dropped_catch_alls,
                kept=result.catch_all.service,
            )

        try:
            ingress = compose_rules(
                result.remaining,
                result.hostname,
                result.service_url,
                intent.proxy_mode,
                result.catch_all,
            )
        except LabelParseError as e:
            return Outcome(
                OutcomeStatus.SKIPPED,
                container_id,
                name,
                hostname=result.hostname,
                reason=e.message,
                kind=e.kind,
                error=e,
            )

        try:
            self.tunnel_api.publish_tunnel_config(current.with_ingress(ingress))
        except WatcherError as e:
            return self._failed(container_id, name, "publish", e, result.hostname)

        outcome = Outcome(
            OutcomeStatus.ROUTED,
            container_id,
            name,
            hostname=result.hostname,
            reason=f"routed to {result.service_url}",
        )
        if self.manage_dns:
            outcome.dns_error = self._create_dns_record(intent)
        return outcome

    def _create_dns_record(self, intent: RoutingIntent) -> str | None:
        try:
            self.tunnel_api.create_dns_record(intent.subdomain, intent.domain)
        except WatcherError as e:
            logger.warning("Could not create DNS record", hostname=intent.hostname, error=e.message)
            return e.message
        return None

    def _failed(
        self,
        container_id: str,
        name: str,
        operation: str,
        error: Exception,
        hostname: str | None = None,
    ) -> Outcome:
        kind = error.kind if isinstance(error, WatcherError) else None
        return Outcome(
            OutcomeStatus.FAILED,
            container_id,
            name,
            hostname=hostname,
            reason=f"{operation}: {error}",
            kind=kind,
            operation=operation,
            error=error,
        )

    def _report(self, outcome: Outcome) -> None:
        fields = {
            "container_id": outcome.container_id[:12],
            "container": outcome.container_name,
            "hostname": outcome.hostname,
        }
        if outcome.status is OutcomeStatus.ROUTED:
            logger.info("Route created", detail=outcome.reason, **fields)
        elif outcome.status is OutcomeStatus.ALREADY_ROUTED:
            logger.info("Route already exists", **fields)
        elif outcome.status is OutcomeStatus.FAILED:
            logger.error(
                "Reconciliation failed",
                operation=outcome.operation,
                error=str(outcome.error),
                **fields,
            )
        elif outcome.kind is ErrorKind.DISABLED or outcome.kind is None:
            logger.debug("Skipped", reason=outcome.reason, **fields)
        else:
            logger.warning("Skipped", reason=outcome.reason, kind=outcome.kind.value, **fields)
