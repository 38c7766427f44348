"""Tests for configuration module."""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from cfwatcher.core.config import (
    WatcherSettings,
    clear_settings,
    flatten_config,
    get_settings,
    load_config_from_file,
    validate_settings,
)


def valid_settings(**overrides) -> WatcherSettings:
    values = {
        "account_id": "acc-1",
        "tunnel_id": "tun-1",
        "api_token": "tok",
    }
    values.update(overrides)
    return WatcherSettings(**values)


class TestWatcherSettings:
    """Test WatcherSettings."""

    def test_default_values(self) -> None:
        """Test default settings values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = WatcherSettings(_env_file=None)
            assert settings.account_id == ""
            assert settings.tunnel_id == ""
            assert settings.api_token is None
            assert settings.api_base_url == "https://api.cloudflare.com/client/v4"
            assert settings.request_timeout == 10.0
            assert settings.manage_dns is False
            assert settings.check_version is True
            assert settings.network_image_token == "cloudflared"

    def test_env_override(self) -> None:
        """Test environment variable overrides."""
        env = {
            "CF_ACCOUNT_ID": "acc-env",
            "CF_TUNNEL_ID": "tun-env",
            "CF_MANAGE_DNS": "true",
            "CF_REQUEST_TIMEOUT": "2.5",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = WatcherSettings(_env_file=None)
            assert settings.account_id == "acc-env"
            assert settings.tunnel_id == "tun-env"
            assert settings.manage_dns is True
            assert settings.request_timeout == 2.5

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            WatcherSettings(request_timeout=0)

    def test_endpoints(self) -> None:
        settings = valid_settings(zone_id="zone-1", api_base_url="https://cf.test/v4/")
        assert settings.config_endpoint == (
            "https://cf.test/v4/accounts/acc-1/cfd_tunnel/tun-1/configurations"
        )
        assert settings.dns_endpoint == "https://cf.test/v4/zones/zone-1/dns_records"
        assert settings.tunnel_cname == "tun-1.cfargotunnel.com"

    def test_auth_headers_token(self) -> None:
        settings = valid_settings(auth_key="key", auth_email="a@b.c")
        assert settings.auth_headers() == {"Authorization": "Bearer tok"}

    def test_auth_headers_key_email(self) -> None:
        settings = valid_settings(api_token=None, auth_key="key", auth_email="a@b.c")
        assert settings.auth_headers() == {"X-Auth-Key": "key", "X-Auth-Email": "a@b.c"}

    def test_display_dict_masks_secrets(self) -> None:
        display = valid_settings(auth_key="key").to_display_dict()
        assert display["api_token"] == "********"
        assert display["auth_key"] == "********"
        assert display["account_id"] == "acc-1"

    def test_repr_hides_secrets(self) -> None:
        assert "tok-secret" not in repr(valid_settings(api_token="tok-secret"))


class TestValidateSettings:
    """Test validate_settings."""

    def test_valid(self) -> None:
        assert validate_settings(valid_settings()) == ([], [])

    def test_missing_identity(self) -> None:
        errors, _ = validate_settings(valid_settings(account_id="", tunnel_id=""))
        assert any("account_id" in e for e in errors)
        assert any("tunnel_id" in e for e in errors)

    def test_missing_credentials(self) -> None:
        errors, _ = validate_settings(valid_settings(api_token=None, auth_key="key"))
        assert any("no credentials" in e for e in errors)

    def test_manage_dns_requires_zone(self) -> None:
        errors, _ = validate_settings(valid_settings(manage_dns=True))
        assert any("zone_id" in e for e in errors)

    def test_warnings(self) -> None:
        settings = valid_settings(auth_key="key", request_timeout=0.5, check_version=False)
        errors, warnings = validate_settings(settings)
        assert errors == []
        assert len(warnings) == 3


class TestConfigFile:
    """Test config file loading."""

    def test_load_yaml(self, tmp_path) -> None:
        path = tmp_path / "watcher.yaml"
        path.write_text("tunnel_id: tun-yaml\nmanage_dns: true\n")
        assert load_config_from_file(path) == {"tunnel_id": "tun-yaml", "manage_dns": True}

    def test_load_toml(self, tmp_path) -> None:
        path = tmp_path / "watcher.toml"
        path.write_text('account_id = "acc-toml"\n')
        assert load_config_from_file(path) == {"account_id": "acc-toml"}

    def test_empty_yaml(self, tmp_path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("")
        assert load_config_from_file(path) == {}

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config_from_file(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path) -> None:
        path = tmp_path / "watcher.ini"
        path.write_text("[x]")
        with pytest.raises(ValueError, match="Unsupported"):
            load_config_from_file(path)

    def test_invalid_yaml(self, tmp_path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("a: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_config_from_file(path)

    def test_flatten_config(self) -> None:
        nested = {"tunnel_id": "t", "api": {"base_url": "https://x", "token": "tok"}}
        assert flatten_config(nested) == {
            "tunnel_id": "t",
            "api_base_url": "https://x",
            "api_token": "tok",
        }


class TestGetSettings:
    """Test get_settings global function."""

    def test_caches_instance(self) -> None:
        clear_settings()
        assert get_settings() is get_settings()
        clear_settings()

    def test_clear_resets_cache(self) -> None:
        clear_settings()
        first = get_settings()
        clear_settings()
        assert get_settings() is not first
        clear_settings()

    def test_env_override(self) -> None:
        with patch.dict(os.environ, {"CF_TUNNEL_ID": "tun-cached"}):
            clear_settings()
            assert get_settings().tunnel_id == "tun-cached"
        clear_settings()
