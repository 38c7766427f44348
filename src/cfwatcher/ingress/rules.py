"""Tunnel ingress rules and configuration.

A tunnel's ingress is an ordered list of rules. Every rule but one maps a
public hostname to an internal service; the remaining rule has no hostname
and catches everything else. Invariants on a well-formed list:

- at most one rule has no hostname (the catch-all)
- the catch-all, if present, is the last rule
- no two rules share a hostname and path

Example:
    rules = [
        IngressRule(service="http://10.0.0.5:8080", hostname="app.example.com"),
        IngressRule(service=CATCH_ALL_SERVICE),
    ]
    assert validate_ingress(rules) == []
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

CATCH_ALL_SERVICE = "http_status:404"
_KNOWN_KEYS = frozenset({"service", "hostname", "originRequest"})


@dataclass
class IngressRule:
    """A single entry of a tunnel's ingress list."""

    service: str
    """Internal URL (scheme://host:port[/path]) or a status sentinel."""

    hostname: str | None = None
    """Public hostname; None only for the catch-all rule."""

    origin_request: dict[str, Any] = field(default_factory=dict)
    """Per-rule origin options, e.g. {"proxyType": "socks"}."""

    extra: dict[str, Any] = field(default_factory=dict)
    """Other wire keys (e.g. ``path``), sent back exactly as fetched."""

    @property
    def is_catch_all(self) -> bool:
        return not self.hostname

    def to_dict(self) -> dict[str, Any]:
        """Convert to the Cloudflare wire form (empty fields omitted)."""
        data: dict[str, Any] = dict(self.extra)
        data["service"] = self.service
        if self.hostname:
            data["hostname"] = self.hostname
        if self.origin_request:
            data["originRequest"] = dict(self.origin_request)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> IngressRule:
        return cls(
            service=data.get("service", ""),
            hostname=data.get("hostname") or None,
            origin_request=dict(data.get("originRequest") or {}),
            extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
        )


def default_catch_all() -> IngressRule:
    """The catch-all used when a tunnel has none."""
    return IngressRule(service=CATCH_ALL_SERVICE)


@dataclass
class TunnelConfiguration:
    """Remote tunnel configuration as fetched from the Cloudflare API.

    ``warp_routing_enabled`` is never computed locally; it is copied through
    unchanged on every update.
    """

    ingress: list[IngressRule] = field(default_factory=list)
    warp_routing_enabled: bool = False
    version: int | None = None
    tunnel_id: str | None = None

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> TunnelConfiguration:
        """Create from the ``result`` object of a configurations response."""
        config = result.get("config") or {}
        warp = config.get("warp-routing") or {}
        return cls(
            ingress=[IngressRule.from_dict(r) for r in config.get("ingress") or []],
            warp_routing_enabled=bool(warp.get("enabled", False)),
            version=result.get("version"),
            tunnel_id=result.get("tunnel_id"),
        )

    def with_ingress(self, ingress: list[IngressRule]) -> TunnelConfiguration:
        """Return a copy with the ingress list replaced."""
        return TunnelConfiguration(
            ingress=list(ingress),
            warp_routing_enabled=self.warp_routing_enabled,
            version=self.version,
            tunnel_id=self.tunnel_id,
        )

    def to_payload(self) -> dict[str, Any]:
        """Render the full-replace PUT body."""
        return {
            "config": {
                "ingress": [rule.to_dict() for rule in self.ingress],
                "warp-routing": {"enabled": self.warp_routing_enabled},
            }
        }

    def hostnames(self) -> list[str]:
        return [rule.hostname for rule in self.ingress if rule.hostname]


def validate_ingress(rules: list[IngressRule]) -> list[str]:
    """Check an ingress list against the structural invariants.

    Args:
        rules: Ingress list in remote order.

    Returns:
        Human-readable violations; empty when the list is well-formed.
    """
    problems = []

    catch_all_positions = [i for i, rule in enumerate(rules) if rule.is_catch_all]
    if len(catch_all_positions) > 1:
        problems.append(f"{len(catch_all_positions)} catch-all rules (expected at most one)")
    if catch_all_positions and catch_all_positions[0] != len(rules) - 1:
        problems.append(f"catch-all rule at position {catch_all_positions[0]} is not last")

    seen: set[tuple[str | None, Any]] = set()
    for rule in rules:
        if rule.is_catch_all:
            continue
        key = (rule.hostname, rule.extra.get("path"))
        if key in seen:
            problems.append(f"duplicate hostname: {rule.hostname}")
        seen.add(key)

    return problems
