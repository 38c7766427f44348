"""Tests for container label parsing."""

from __future__ import annotations

import pytest

from cfwatcher.core.exceptions import ErrorKind, LabelParseError
from cfwatcher.ingress.labels import (
    ProxyMode,
    RoutingIntent,
    collect_rule_properties,
    parse_bool,
    parse_labels,
)

from .conftest import FakeResolver


class TestEnabledLabel:
    """Tests for the opt-in short-circuit."""

    def test_absent_enabled_is_disabled(self, app_labels, resolver):
        del app_labels["cf_watcher.enabled"]
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.DISABLED

    @pytest.mark.parametrize("value", ["false", "True", "yes", "1", ""])
    def test_anything_but_literal_true_is_disabled(self, app_labels, resolver, value):
        app_labels["cf_watcher.enabled"] = value
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.DISABLED

    def test_disabled_does_not_consult_resolver(self, resolver):
        labels = {"cf_watcher.enabled": "false"}
        with pytest.raises(LabelParseError):
            parse_labels(labels, {"netA": {}}, resolver)
        assert resolver.calls == []

    def test_disabled_wins_over_broken_rules(self, resolver):
        """Rule properties are never looked at when disabled."""
        labels = {"cf_watcher.rules.port": "not-even-checked"}
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.DISABLED


class TestNetworkLabel:
    """Tests for tunnel network resolution."""

    def test_explicit_network_skips_resolver(self, app_labels, resolver):
        intent = parse_labels(app_labels, {"other": {}}, resolver)
        assert intent.tunnel_network == "netA"
        assert resolver.calls == []

    def test_missing_network_uses_resolver(self, app_labels):
        del app_labels["cf_watcher.cf_network"]
        resolver = FakeResolver("cf-net")
        intent = parse_labels(app_labels, {"cf-net": {}, "bridge": {}}, resolver)
        assert intent.tunnel_network == "cf-net"
        assert resolver.calls == [{"cf-net": {}, "bridge": {}}]

    def test_empty_network_label_uses_resolver(self, app_labels):
        app_labels["cf_watcher.cf_network"] = ""
        intent = parse_labels(app_labels, {}, FakeResolver("found"))
        assert intent.tunnel_network == "found"

    def test_unresolved_network(self, app_labels):
        del app_labels["cf_watcher.cf_network"]
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {"bridge": {}}, FakeResolver(None))
        assert exc_info.value.kind is ErrorKind.NETWORK_UNRESOLVED


class TestRuleProperties:
    """Tests for cf_watcher.rules.* parsing."""

    def test_full_intent(self, app_labels, resolver):
        intent = parse_labels(app_labels, {}, resolver)
        assert intent == RoutingIntent(
            enabled=True,
            tunnel_network="netA",
            subdomain="app",
            domain="example.com",
            rule_type="http",
            host="10.0.0.5",
            port="8080",
        )
        assert intent.hostname == "app.example.com"
        assert intent.service_url == "http://10.0.0.5:8080"
        assert intent.proxy_mode is ProxyMode.NONE

    @pytest.mark.parametrize("missing", ["subdomain", "domain", "type", "host", "port"])
    def test_missing_required_property(self, app_labels, resolver, missing):
        del app_labels[f"cf_watcher.rules.{missing}"]
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.INVALID_RULE
        assert exc_info.value.properties == [missing]
        assert f"cf_watcher.rules.{missing}" in exc_info.value.message

    def test_all_missing_properties_named(self, resolver):
        labels = {"cf_watcher.enabled": "true", "cf_watcher.cf_network": "n"}
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(labels, {}, resolver)
        assert exc_info.value.properties == ["domain", "host", "port", "subdomain", "type"]

    def test_path_is_optional(self, app_labels, resolver):
        app_labels["cf_watcher.rules.path"] = "/api"
        intent = parse_labels(app_labels, {}, resolver)
        assert intent.path == "/api"
        assert intent.service_url == "http://10.0.0.5:8080/api"

    def test_empty_path_is_absent(self, app_labels, resolver):
        app_labels["cf_watcher.rules.path"] = ""
        intent = parse_labels(app_labels, {}, resolver)
        assert intent.path is None
        assert intent.service_url == "http://10.0.0.5:8080"

    @pytest.mark.parametrize("path", ["foo", "/foo"])
    def test_leading_slash_normalized(self, app_labels, resolver, path):
        app_labels["cf_watcher.rules.path"] = path
        intent = parse_labels(app_labels, {}, resolver)
        assert intent.service_url == "http://10.0.0.5:8080/foo"

    def test_socks5_true(self, app_labels, resolver):
        app_labels["cf_watcher.rules.socks5"] = "true"
        assert parse_labels(app_labels, {}, resolver).proxy_mode is ProxyMode.SOCKS5

    def test_socks5_false(self, app_labels, resolver):
        app_labels["cf_watcher.rules.socks5"] = "false"
        assert parse_labels(app_labels, {}, resolver).proxy_mode is ProxyMode.NONE

    def test_socks5_malformed(self, app_labels, resolver):
        app_labels["cf_watcher.rules.socks5"] = "maybe"
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.INVALID_RULE
        assert exc_info.value.properties == ["socks5"]

    def test_unknown_properties_ignored(self, app_labels, resolver):
        app_labels["cf_watcher.rules.colour"] = "blue"
        assert parse_labels(app_labels, {}, resolver).hostname == "app.example.com"

    def test_no_addressing_mode_is_invalid(self, app_labels, resolver):
        for name in ("subdomain", "domain", "host", "port"):
            app_labels[f"cf_watcher.rules.{name}"] = ""
        with pytest.raises(LabelParseError) as exc_info:
            parse_labels(app_labels, {}, resolver)
        assert exc_info.value.kind is ErrorKind.INVALID_RULE

    def test_host_port_only(self, app_labels, resolver):
        app_labels["cf_watcher.rules.subdomain"] = ""
        intent = parse_labels(app_labels, {}, resolver)
        assert intent.hostname is None
        assert intent.service_url == "http://10.0.0.5:8080"

    def test_hostname_only(self, app_labels, resolver):
        app_labels["cf_watcher.rules.host"] = ""
        intent = parse_labels(app_labels, {}, resolver)
        assert intent.hostname == "app.example.com"
        assert intent.service_url is None


class TestHelpers:
    def test_collect_rule_properties(self):
        labels = {
            "cf_watcher.rules.host": "web",
            "cf_watcher.rules.port": "80",
            "cf_watcher.rulesx.host": "nope",
            "cf_watcher.rules": "nope",
            "other.rules.host": "nope",
        }
        assert collect_rule_properties(labels) == {"host": "web", "port": "80"}

    @pytest.mark.parametrize("value,expected", [("ON", True), ("no", False), (True, True)])
    def test_parse_bool(self, value, expected):
        assert parse_bool("x", value) is expected
