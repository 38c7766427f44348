"""Container label parsing.

Turns the flat ``cf_watcher.*`` label bag of a container into a typed
RoutingIntent.

Labels:
    cf_watcher.enabled=true              opt in (anything else opts out)
    cf_watcher.cf_network=<network>      network shared with cloudflared
    cf_watcher.rules.subdomain=app       public hostname = subdomain.domain
    cf_watcher.rules.domain=example.com
    cf_watcher.rules.type=http
    cf_watcher.rules.host=10.0.0.5       internal service address
    cf_watcher.rules.port=8080
    cf_watcher.rules.path=/api           optional
    cf_watcher.rules.socks5=true         optional, marks a SOCKS proxy origin
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from cfwatcher.core.exceptions import ErrorKind, LabelParseError

LABEL_PREFIX = "cf_watcher"
ENABLED_LABEL = f"{LABEL_PREFIX}.enabled"
NETWORK_LABEL = f"{LABEL_PREFIX}.cf_network"
RULES_PREFIX = f"{LABEL_PREFIX}.rules"

REQUIRED_PROPERTIES = ("subdomain", "domain", "type", "host", "port")
OPTIONAL_PROPERTIES = ("path", "socks5")

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off"}


class ProxyMode(Enum):
    """Origin proxy mode for a rule."""

    NONE = "none"
    SOCKS5 = "socks5"


class NetworkResolver(Protocol):
    def find_tunnel_network(self, networks: Mapping[str, Any]) -> str | None: ...


@dataclass(frozen=True)
class RoutingIntent:
    """Validated description of the public route a container wants."""

    enabled: bool
    tunnel_network: str
    subdomain: str
    domain: str
    rule_type: str
    host: str
    port: str
    path: str | None = None
    proxy_mode: ProxyMode = ProxyMode.NONE

    @property
    def hostname(self) -> str | None:
        """Public hostname, or None when subdomain/domain addressing is not used."""
        if self.subdomain and self.domain:
            return f"{self.subdomain}.{self.domain}"
        return None

    @property
    def service_url(self) -> str | None:
        """Internal service URL built from host, port and path."""
        if not (self.host and self.port):
            return None
        url = f"http://{self.host}:{self.port}"
        if self.path:
            url = f"{url}/{self.path.lstrip('/')}"
        return url


def collect_rule_properties(labels: Mapping[str, str]) -> dict[str, Any]:
    """Gather ``cf_watcher.rules.<property>`` labels into a property bag."""
    properties: dict[str, Any] = {}
    for key, value in labels.items():
        if not key.startswith(RULES_PREFIX + "."):
            continue
        parts = key.split(".")
        if len(parts) > 2 and parts[2]:
            properties[parts[2]] = value
    return properties


def parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise LabelParseError(
        f"Rule property '{name}' must be a boolean, got {value!r}",
        ErrorKind.INVALID_RULE,
        [name],
    )


def parse_labels(
    labels: Mapping[str, str],
    networks: Mapping[str, Any],
    resolver: NetworkResolver,
) -> RoutingIntent:
    """Parse container labels into a routing intent.

    Args:
        labels: Container labels.
        networks: Networks the container is attached to, keyed by name.
        resolver: Used to locate the tunnel network when no network label is set.

    Returns:
        The validated RoutingIntent.

    Raises:
        LabelParseError: With kind DISABLED when the container has not opted in,
            NETWORK_UNRESOLVED when no tunnel network can be determined, or
            INVALID_RULE when rule properties are missing or malformed.
    """
    if labels.get(ENABLED_LABEL) != "true":
        raise LabelParseError(f"{ENABLED_LABEL} is not 'true'", ErrorKind.DISABLED)

    tunnel_network = labels.get(NETWORK_LABEL) or resolver.find_tunnel_network(networks)
    if not tunnel_network:
        raise LabelParseError(
            f"{NETWORK_LABEL} is required but could not be determined automatically",
            ErrorKind.NETWORK_UNRESOLVED,
        )

    properties = collect_rule_properties(labels)

    missing = sorted(
        name for name in REQUIRED_PROPERTIES if not isinstance(properties.get(name), str)
    )
    if missing:
        raise LabelParseError(
            f"Missing rule properties: {', '.join(f'{RULES_PREFIX}.{m}' for m in missing)}",
            ErrorKind.INVALID_RULE,
            missing,
        )

    path = properties.get("path")
    if path is not None and not isinstance(path, str):
        raise LabelParseError(
            f"Rule property 'path' must be a string, got {path!r}",
            ErrorKind.INVALID_RULE,
            ["path"],
        )

    proxy_mode = ProxyMode.NONE
    if "socks5" in properties and parse_bool("socks5", properties["socks5"]):
        proxy_mode = ProxyMode.SOCKS5

    intent = RoutingIntent(
        enabled=True,
        tunnel_network=tunnel_network,
        subdomain=properties["subdomain"].strip(),
        domain=properties["domain"].strip(),
        rule_type=properties["type"].strip(),
        host=properties["host"].strip(),
        port=properties["port"].strip(),
        path=path or None,
        proxy_mode=proxy_mode,
    )

    if intent.hostname is None and intent.service_url is None:
        raise LabelParseError(
            "Neither subdomain+domain nor host+port is fully populated",
            ErrorKind.INVALID_RULE,
            [name for name in ("subdomain", "domain", "host", "port") if not getattr(intent, name)],
        )

    return intent
