"""Configuration types with environment variable support.

All settings can be configured via environment variables with the CF_ prefix.
Example: CF_TUNNEL_ID=... sets the tunnel whose ingress rules are managed.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_config_from_file(path: str | Path) -> dict[str, Any]:
    """Load configuration from a YAML or TOML file.

    Args:
        path: Path to the configuration file (.yaml, .yml, or .toml)

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the config file has encoding errors, invalid syntax, or unsupported format
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        content = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise ValueError(f"Config file encoding error in {path}: {e}") from e

    try:
        if path.suffix in (".yaml", ".yml"):
            return yaml.safe_load(content) or {}
        elif path.suffix == ".toml":
            return tomllib.loads(content)
        else:
            raise ValueError(f"Unsupported config format: {path.suffix}")
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e


def flatten_config(config: dict[str, Any], prefix: str = "") -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in config.items():
        full_key = f"{prefix}_{key}" if prefix else key
        if isinstance(value, dict):
            result.update(flatten_config(value, full_key))
        else:
            result[full_key] = value
    return result


class WatcherSettings(BaseSettings):
    """Cloudflare credentials, tunnel identity and watcher behaviour.

    Every field maps to a CF_-prefixed environment variable:
    - CF_ACCOUNT_ID / CF_TUNNEL_ID: the tunnel whose ingress rules are managed
    - CF_ZONE_ID: zone used when creating DNS records
    - CF_AUTH_KEY / CF_AUTH_EMAIL: global API key authentication
    - CF_API_TOKEN: scoped API token (takes precedence over the key/email pair)
    """

    model_config = SettingsConfigDict(
        env_prefix="CF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    account_id: str = Field(
        default="",
        description="Cloudflare account that owns the tunnel.",
    )
    tunnel_id: str = Field(
        default="",
        description="Tunnel whose ingress rules are reconciled.",
    )
    zone_id: str = Field(
        default="",
        description="DNS zone for CNAME records (only needed with manage_dns).",
    )
    auth_key: str | None = Field(
        default=None,
        repr=False,
        description="Global API key, sent as X-Auth-Key.",
    )
    auth_email: str | None = Field(
        default=None,
        description="Account email, sent as X-Auth-Email.",
    )
    api_token: str | None = Field(
        default=None,
        repr=False,
        description="Scoped API token, sent as a bearer token.",
    )
    api_base_url: str = Field(
        default="https://api.cloudflare.com/client/v4",
        description="Cloudflare API base URL.",
    )
    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for Cloudflare API requests (seconds).",
    )
    manage_dns: bool = Field(
        default=False,
        description="Create a proxied CNAME record for every route created.",
    )
    check_version: bool = Field(
        default=True,
        description="Refuse to publish if the tunnel config version changed since it was fetched.",
    )
    network_image_token: str = Field(
        default="cloudflared",
        description="Image name fragment identifying the tunnel connector container.",
    )
    docker_base_url: str | None = Field(
        default=None,
        description="Docker daemon URL. Defaults to the DOCKER_HOST environment.",
    )

    @property
    def config_endpoint(self) -> str:
        """Tunnel configuration endpoint (GET to fetch, PUT to replace)."""
        return (
            f"{self.api_base_url.rstrip('/')}/accounts/{self.account_id}"
            f"/cfd_tunnel/{self.tunnel_id}/configurations"
        )

    @property
    def dns_endpoint(self) -> str:
        """DNS records endpoint for the configured zone."""
        return f"{self.api_base_url.rstrip('/')}/zones/{self.zone_id}/dns_records"

    @property
    def tunnel_cname(self) -> str:
        """CNAME target that routes a hostname through the tunnel."""
        return f"{self.tunnel_id}.cfargotunnel.com"

    def auth_headers(self) -> dict[str, str]:
        """Authentication headers for the Cloudflare API."""
        if self.api_token:
            return {"Authorization": f"Bearer {self.api_token}"}
        headers = {}
        if self.auth_key:
            headers["X-Auth-Key"] = self.auth_key
        if self.auth_email:
            headers["X-Auth-Email"] = self.auth_email
        return headers

    def to_display_dict(self) -> dict[str, Any]:
        """Export settings for display, with secrets masked."""
        return {
            "account_id": self.account_id,
            "tunnel_id": self.tunnel_id,
            "zone_id": self.zone_id,
            "auth_key": "********" if self.auth_key else None,
            "auth_email": self.auth_email,
            "api_token": "********" if self.api_token else None,
            "api_base_url": self.api_base_url,
            "request_timeout": self.request_timeout,
            "manage_dns": self.manage_dns,
            "check_version": self.check_version,
            "network_image_token": self.network_image_token,
            "docker_base_url": self.docker_base_url,
        }


def validate_settings(settings: WatcherSettings) -> tuple[list[str], list[str]]:
    """Check settings for values that would make every reconciliation fail.

    Returns:
        Tuple of (errors, warnings).
    """
    errors = []
    warnings = []

    if not settings.account_id:
        errors.append("account_id is not set (CF_ACCOUNT_ID)")
    if not settings.tunnel_id:
        errors.append("tunnel_id is not set (CF_TUNNEL_ID)")
    if not settings.api_token and not (settings.auth_key and settings.auth_email):
        errors.append("no credentials: set CF_API_TOKEN or both CF_AUTH_KEY and CF_AUTH_EMAIL")
    if settings.manage_dns and not settings.zone_id:
        errors.append("manage_dns is enabled but zone_id is not set (CF_ZONE_ID)")
    if settings.api_token and settings.auth_key:
        warnings.append("both CF_API_TOKEN and CF_AUTH_KEY are set; the API token is used")
    if settings.request_timeout < 1:
        warnings.append(f"request_timeout ({settings.request_timeout}s) is very short")
    if not settings.check_version:
        warnings.append("check_version is disabled; concurrent remote edits may be overwritten")

    return errors, warnings


_settings: WatcherSettings | None = None


def get_settings() -> WatcherSettings:
    """Get the global settings instance.

    The instance is created once from the environment and cached for the
    lifetime of the process. Call clear_settings() to force a reload.
    """
    global _settings
    if _settings is None:
        _settings = WatcherSettings()
    return _settings


def clear_settings() -> None:
    """Clear the cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
