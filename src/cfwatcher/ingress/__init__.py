"""cf-watcher Ingress Reconciliation.

Turns container labels into routing intents and reconciles them against a
tunnel's ordered ingress list.

Features:
- Label parsing into a typed RoutingIntent
- Hostname matching against the current ingress list
- Replacement list composition that keeps a single trailing catch-all

Usage:
    from cfwatcher.ingress import compose_rules, match_intent, parse_labels

    intent = parse_labels(labels, networks, resolver)
    result = match_intent(config.ingress, intent)
    if isinstance(result, NeedsRoute):
        ingress = compose_rules(
            result.remaining, result.hostname, result.service_url,
            intent.proxy_mode, result.catch_all,
        )
"""

from cfwatcher.ingress.engine import (
    AlreadyRouted,
    MatchResult,
    NeedsRoute,
    compose_rules,
    match_intent,
    partition_rules,
)
from cfwatcher.ingress.labels import (
    ENABLED_LABEL,
    NETWORK_LABEL,
    RULES_PREFIX,
    ProxyMode,
    RoutingIntent,
    parse_labels,
)
from cfwatcher.ingress.rules import (
    CATCH_ALL_SERVICE,
    IngressRule,
    TunnelConfiguration,
    default_catch_all,
    validate_ingress,
)

__all__ = [
    # Engine
    "AlreadyRouted",
    "NeedsRoute",
    "MatchResult",
    "match_intent",
    "compose_rules",
    "partition_rules",
    # Labels
    "ENABLED_LABEL",
    "NETWORK_LABEL",
    "RULES_PREFIX",
    "ProxyMode",
    "RoutingIntent",
    "parse_labels",
    # Rules
    "CATCH_ALL_SERVICE",
    "IngressRule",
    "TunnelConfiguration",
    "default_catch_all",
    "validate_ingress",
]
