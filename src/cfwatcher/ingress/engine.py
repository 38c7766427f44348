"""Ingress reconciliation engine.

Compares a container's routing intent against the tunnel's current ingress
list and computes the replacement list to publish.

Example:
    result = match_intent(config.ingress, intent)
    if isinstance(result, NeedsRoute):
        ingress = compose_rules(
            result.remaining,
            result.hostname,
            result.service_url,
            intent.proxy_mode,
            result.catch_all,
        )
"""

from __future__ import annotations

from dataclasses import dataclass, field

from cfwatcher.core.exceptions import ErrorKind, LabelParseError
from cfwatcher.ingress.labels import ProxyMode, RoutingIntent
from cfwatcher.ingress.rules import IngressRule, default_catch_all


@dataclass(frozen=True)
class AlreadyRouted:
    """A rule for the intent's hostname already exists; nothing to publish."""

    hostname: str


@dataclass(frozen=True)
class NeedsRoute:
    """No rule exists for the intent; a new one must be inserted."""

    hostname: str | None
    service_url: str | None
    catch_all: IngressRule
    remaining: list[IngressRule] = field(default_factory=list)
    dropped_catch_alls: int = 0


MatchResult = AlreadyRouted | NeedsRoute


def partition_rules(
    rules: list[IngressRule],
) -> tuple[IngressRule, list[IngressRule], int]:
    """Split an ingress list into its catch-all and hostname-bearing rules.

    The first hostname-less rule is kept as the catch-all; any later ones
    are dropped. A default catch-all is synthesised when none exists.

    Returns:
        Tuple of (catch_all, remaining rules in original order, dropped count).
    """
    catch_all: IngressRule | None = None
    remaining: list[IngressRule] = []
    dropped = 0

    for rule in rules:
        if rule.is_catch_all:
            if catch_all is None:
                catch_all = rule
            else:
                dropped += 1
        else:
            remaining.append(rule)

    return catch_all or default_catch_all(), remaining, dropped


def match_intent(rules: list[IngressRule], intent: RoutingIntent) -> MatchResult:
    """Decide whether the intent is already routed by the ingress list.

    Only subdomain/domain intents are matched, keyed on the public hostname.
    Intents without a hostname always need a route.

    Args:
        rules: Current ingress list, in remote order.
        intent: Parsed routing intent.

    Returns:
        AlreadyRouted if a rule with the same hostname exists, else NeedsRoute.
    """
    hostname = intent.hostname
    catch_all, remaining, dropped = partition_rules(rules)

    if hostname is not None and any(rule.hostname == hostname for rule in remaining):
        return AlreadyRouted(hostname=hostname)

    return NeedsRoute(
        hostname=hostname,
        service_url=intent.service_url,
        catch_all=catch_all,
        remaining=remaining,
        dropped_catch_alls=dropped,
    )


def compose_rules(
    remaining: list[IngressRule],
    hostname: str | None,
    service_url: str | None,
    proxy_mode: ProxyMode,
    catch_all: IngressRule,
) -> list[IngressRule]:
    """Build the full replacement ingress list.

    Produces ``remaining + [new rule] + [catch_all]``.

    Raises:
        LabelParseError: If the new rule would lack a hostname (it would become
            a second catch-all) or a service URL.
    """
    if not hostname:
        raise LabelParseError(
            "A public hostname (subdomain and domain) is required to create a route",
            ErrorKind.INVALID_RULE,
            ["subdomain", "domain"],
        )
    if not service_url:
        raise LabelParseError(
            "An internal address (host and port) is required to create a route",
            ErrorKind.INVALID_RULE,
            ["host", "port"],
        )

    origin_request = {"proxyType": "socks"} if proxy_mode is ProxyMode.SOCKS5 else {}
    new_rule = IngressRule(
        service=service_url,
        hostname=hostname,
        origin_request=origin_request,
    )
    return [*remaining, new_rule, catch_all]
