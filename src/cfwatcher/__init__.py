"""cf-watcher: publish Docker containers through a Cloudflare tunnel from their labels."""

__version__ = "0.2.0"
