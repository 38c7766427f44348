"""Cloudflare API access: tunnel configuration and DNS records."""

from cfwatcher.cloudflare.client import CloudflareClient

__all__ = ["CloudflareClient"]
