"""Cloudflare API client for tunnel configuration and DNS records."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from cfwatcher.core.config import WatcherSettings
from cfwatcher.core.exceptions import (
    ConfigConflictError,
    DnsRecordError,
    RemoteAPIError,
    RemoteFetchFailed,
    RemotePublishFailed,
)
from cfwatcher.ingress.rules import TunnelConfiguration
from cfwatcher.observability.metrics import REMOTE_REQUESTS

logger = structlog.get_logger()


class CloudflareClient:
    """Fetches and replaces a tunnel's configuration, and creates DNS records.

    Credentials and endpoints come from the WatcherSettings passed in; the
    client never reads the environment itself.
    """

    def __init__(
        self,
        settings: WatcherSettings,
        http_client: httpx.Client | None = None,
    ) -> None:
        self.settings = settings
        self._owns_client = http_client is None
        self._http = http_client or httpx.Client(timeout=settings.request_timeout)

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> CloudflareClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(
        self,
        method: str,
        url: str,
        error_cls: type[RemoteAPIError],
        payload: dict[str, Any] | None = None,
    ) -> httpx.Response:
        headers = self.settings.auth_headers()
        if payload is not None:
            headers["Content-Type"] = "application/json"

        try:
            response = self._http.request(method, url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            REMOTE_REQUESTS.labels(operation=error_cls.operation, status="error").inc()
            raise error_cls(f"{error_cls.operation} failed: {e}") from e

        REMOTE_REQUESTS.labels(
            operation=error_cls.operation, status=str(response.status_code)
        ).inc()
        if not response.is_success:
            raise error_cls.from_response(response.status_code, response.text)
        return response

    def fetch_tunnel_config(self) -> TunnelConfiguration:
        """Fetch the current tunnel configuration.

        Raises:
            RemoteFetchFailed: On transport errors, non-2xx responses or
                undecodable bodies.
        """
        response = self._request("GET", self.settings.config_endpoint, RemoteFetchFailed)
        try:
            data = response.json()
        except ValueError as e:
            raise RemoteFetchFailed(
                f"fetch tunnel config failed: invalid JSON response: {e}",
                status=response.status_code,
                body=response.text,
            ) from e

        result = data.get("result") if isinstance(data, dict) else None
        if not isinstance(result, dict):
            raise RemoteFetchFailed(
                "fetch tunnel config failed: response has no result object",
                status=response.status_code,
                body=response.text,
            )

        config = TunnelConfiguration.from_result(result)
        logger.debug(
            "Fetched tunnel config",
            tunnel_id=config.tunnel_id,
            version=config.version,
            rules=len(config.ingress),
        )
        return config

    def publish_tunnel_config(self, config: TunnelConfiguration) -> None:
        """Replace the tunnel configuration wholesale.

        When version checking is enabled and ``config`` carries the version it
        was fetched at, the current remote version is re-read first and the
        publish is refused if it has moved on.

        Raises:
            ConfigConflictError: If the remote version changed since the fetch.
            RemoteFetchFailed: If the version re-check cannot be performed.
            RemotePublishFailed: On transport errors or non-2xx responses.
        """
        if self.settings.check_version and config.version is not None:
            current = self.fetch_tunnel_config()
            if current.version != config.version:
                raise ConfigConflictError(config.version, current.version)

        self._request(
            "PUT",
            self.settings.config_endpoint,
            RemotePublishFailed,
            payload=config.to_payload(),
        )
        logger.debug("Published tunnel config", rules=len(config.ingress))

    def create_dns_record(self, subdomain: str, domain: str) -> None:
        """Create a proxied CNAME pointing ``subdomain.domain`` at the tunnel.

        Raises:
            DnsRecordError: On transport errors or non-2xx responses.
        """
        payload = {
            "content": self.settings.tunnel_cname,
            "name": f"{subdomain}.{domain}",
            "proxied": True,
            "type": "CNAME",
        }
        self._request("POST", self.settings.dns_endpoint, DnsRecordError, payload=payload)
        logger.info("DNS record created", name=payload["name"], target=payload["content"])
