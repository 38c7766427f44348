"""cf-watcher CLI - Command line interface."""

from __future__ import annotations

import json
import logging
import sys

import click
import structlog
from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()

BANNER = """
  ┌─┐┌─┐   ┬ ┬┌─┐┌┬┐┌─┐┬ ┬┌─┐┬─┐
  │  ├┤ ───│││├─┤ │ │  ├─┤├┤ ├┬┘
  └─┘└     └┴┘┴ ┴ ┴ └─┘┴ ┴└─┘┴└─
  Container labels in, tunnel routes out
"""

_OUTCOME_STYLES = {
    "routed": "green",
    "already_routed": "cyan",
    "skipped": "yellow",
    "failed": "red",
}


def configure_logging(log_level: str, verbose: bool = False) -> None:
    effective_log_level = "debug" if verbose else log_level
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, effective_log_level.upper())
        ),
        # stdout is reserved for command output such as --json.
        logger_factory=structlog.PrintLoggerFactory(sys.stderr),
    )


def _load_settings(ctx: click.Context):
    from cfwatcher.core.config import WatcherSettings, get_settings

    overrides = ctx.obj.get("file_config", {}) if ctx.obj else {}
    if overrides:
        # Explicit environment variables still win over the file.
        base = get_settings()
        explicit = base.model_dump(exclude_unset=True)
        merged = {k: v for k, v in overrides.items() if k in WatcherSettings.model_fields}
        merged.update(explicit)
        return WatcherSettings(**merged)
    return get_settings()


def _docker_client(settings):
    import docker

    if settings.docker_base_url:
        return docker.DockerClient(base_url=settings.docker_base_url)
    return docker.from_env()


def _build_reconciler(settings, docker_client, cloudflare):
    from cfwatcher.containers import ContainerInspector, NetworkResolver
    from cfwatcher.reconciler import Reconciler

    return Reconciler(
        inspector=ContainerInspector(docker_client),
        resolver=NetworkResolver(docker_client, settings.network_image_token),
        tunnel_api=cloudflare,
        manage_dns=settings.manage_dns,
    )


def _print_outcome(outcome) -> None:
    style = _OUTCOME_STYLES.get(outcome.status.value, "white")
    name = outcome.container_name or outcome.container_id[:12]
    line = f"[{style}]{outcome.status.value}[/{style}] {name}"
    if outcome.hostname:
        line += f" [bold]{outcome.hostname}[/bold]"
    if outcome.reason:
        line += f" [dim]({escape(outcome.reason)})[/dim]"
    console.print(line)
    if outcome.dns_error:
        console.print(f"  [yellow]DNS record not created:[/yellow] {escape(outcome.dns_error)}")


@click.group()
@click.option(
    "--config", "-c",
    "config_file",
    type=click.Path(exists=True),
    help="Path to YAML or TOML config file",
)
@click.option(
    "--log-level",
    "-l",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="info",
    help="Log level (default: info, use --verbose for debug)",
)
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def main(ctx: click.Context, config_file: str | None, log_level: str, verbose: bool):
    """cf-watcher - route Docker containers through a Cloudflare tunnel.

    Containers opt in with labels; on start, the watcher adds an ingress
    rule for their hostname to the tunnel unless one already exists.

    Examples:

        cf-watcher watch

        cf-watcher reconcile my-container

        cf-watcher rules

    Credentials are read from CF_-prefixed environment variables
    (CF_ACCOUNT_ID, CF_TUNNEL_ID, CF_API_TOKEN or CF_AUTH_KEY/CF_AUTH_EMAIL).
    """
    configure_logging(log_level, verbose)

    file_config: dict = {}
    if config_file:
        from cfwatcher.core.config import flatten_config, load_config_from_file

        try:
            file_config = flatten_config(load_config_from_file(config_file))
        except Exception as e:
            console.print(f"[red]Failed to load config: {e}[/red]")
            sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config_file"] = config_file
    ctx.obj["file_config"] = file_config


@main.command()
@click.option("--metrics-port", type=int, default=None, help="Expose Prometheus metrics on this port")
@click.pass_context
def watch(ctx: click.Context, metrics_port: int | None):
    """Watch container start events and publish their routes.

    Runs until the Docker event stream fails or Ctrl+C is pressed.
    """
    from cfwatcher.cloudflare import CloudflareClient
    from cfwatcher.containers import container_events
    from cfwatcher.core.config import validate_settings
    from cfwatcher.core.exceptions import EventStreamError

    settings = _load_settings(ctx)
    errors, _ = validate_settings(settings)
    if errors:
        for error in errors:
            console.print(f"  [red]x[/red] {error}")
        sys.exit(1)

    if metrics_port:
        from cfwatcher.observability import serve_metrics

        serve_metrics(metrics_port)
        console.print(f"Metrics on http://0.0.0.0:{metrics_port}/metrics", style="dim")

    try:
        docker_client = _docker_client(settings)
    except Exception as e:
        console.print(f"[red]Error creating Docker client:[/red] {e}")
        sys.exit(1)

    console.print(BANNER, style="cyan")
    console.print(f"Watching containers for tunnel {settings.tunnel_id}...", style="yellow")

    try:
        with CloudflareClient(settings) as cloudflare:
            reconciler = _build_reconciler(settings, docker_client, cloudflare)
            reconciler.run(container_events(docker_client))
    except KeyboardInterrupt:
        console.print("\n[green]Stopped.[/green]")
    except EventStreamError as e:
        console.print(f"[red]Error monitoring Docker events:[/red] {escape(e.message)}")
        sys.exit(1)
    finally:
        docker_client.close()


@main.command()
@click.argument("container_id")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def reconcile(ctx: click.Context, container_id: str, json_output: bool):
    """Reconcile one container as if it had just started."""
    from cfwatcher.cloudflare import CloudflareClient

    settings = _load_settings(ctx)
    try:
        docker_client = _docker_client(settings)
    except Exception as e:
        console.print(f"[red]Error creating Docker client:[/red] {e}")
        sys.exit(1)

    try:
        with CloudflareClient(settings) as cloudflare:
            outcome = _build_reconciler(settings, docker_client, cloudflare).reconcile_container(
                container_id
            )
    finally:
        docker_client.close()

    if json_output:
        click.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        _print_outcome(outcome)

    if not outcome.ok:
        sys.exit(1)


@main.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def rules(ctx: click.Context, json_output: bool):
    """Show the tunnel's current ingress rules."""
    from cfwatcher.cloudflare import CloudflareClient
    from cfwatcher.core.exceptions import WatcherError, format_error_for_user
    from cfwatcher.ingress import validate_ingress

    settings = _load_settings(ctx)
    try:
        with CloudflareClient(settings) as cloudflare:
            config = cloudflare.fetch_tunnel_config()
    except WatcherError as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_user(e))}")
        sys.exit(1)

    problems = validate_ingress(config.ingress)

    if json_output:
        data = config.to_payload()
        data["version"] = config.version
        data["problems"] = problems
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title=f"Tunnel {config.tunnel_id or settings.tunnel_id} (version {config.version})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Hostname", style="cyan")
    table.add_column("Service", style="green")
    table.add_column("Origin Options", style="dim")

    for i, rule in enumerate(config.ingress):
        table.add_row(
            str(i),
            rule.hostname or "[dim]*[/dim]",
            rule.service,
            json.dumps(rule.origin_request) if rule.origin_request else "",
        )
    console.print(table)
    console.print(f"[bold]WARP routing:[/bold] {config.warp_routing_enabled}")

    for problem in problems:
        console.print(f"  [yellow]![/yellow] {problem}")


@main.group()
def dns():
    """Manage DNS records that point at the tunnel."""
    pass


@dns.command("create")
@click.argument("subdomain")
@click.argument("domain")
@click.pass_context
def dns_create(ctx: click.Context, subdomain: str, domain: str):
    """Create a proxied CNAME for SUBDOMAIN.DOMAIN pointing at the tunnel."""
    from cfwatcher.cloudflare import CloudflareClient
    from cfwatcher.core.exceptions import WatcherError, format_error_for_user

    settings = _load_settings(ctx)
    if not settings.zone_id:
        console.print("[red]Error:[/red] CF_ZONE_ID is not set")
        sys.exit(1)

    try:
        with CloudflareClient(settings) as cloudflare:
            cloudflare.create_dns_record(subdomain, domain)
    except WatcherError as e:
        console.print(f"[red]Error:[/red] {escape(format_error_for_user(e))}")
        sys.exit(1)

    console.print(
        f"[green]Created[/green] {subdomain}.{domain} CNAME {settings.tunnel_cname}"
    )


@main.group()
def config():
    """View and validate configuration settings.

    All settings can be configured via environment variables with the
    CF_ prefix.

    Examples:

        cf-watcher config show            # Show all config settings

        cf-watcher config validate        # Validate current config
    """
    pass


@config.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool):
    """Show current configuration settings.

    Values come from environment variables, the config file, or defaults.
    Secrets are masked.
    """
    display = _load_settings(ctx).to_display_dict()

    if json_output:
        click.echo(json.dumps(display, indent=2))
        return

    table = Table(title="Current Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Env Variable", style="dim")

    for key, value in display.items():
        value_str = str(value) if value is not None else "[dim]None[/dim]"
        table.add_row(key, value_str, f"CF_{key.upper()}")

    console.print(table)


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context):
    """Validate current configuration.

    Checks that the tunnel identity and credentials are present.
    """
    from cfwatcher.core.config import clear_settings, validate_settings

    clear_settings()

    try:
        errors, warnings = validate_settings(_load_settings(ctx))
    except Exception as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    if errors:
        console.print("[red bold]Configuration Errors:[/red bold]")
        for error in errors:
            console.print(f"  [red]x[/red] {error}")
        console.print()

    if warnings:
        console.print("[yellow bold]Configuration Warnings:[/yellow bold]")
        for warning in warnings:
            console.print(f"  [yellow]![/yellow] {warning}")
        console.print()

    if not errors and not warnings:
        console.print("[green]OK - Configuration is valid[/green]")
    elif not errors:
        console.print("[green]OK - Configuration is valid (with warnings)[/green]")
    else:
        console.print("[red]ERROR - Configuration has errors[/red]")
        sys.exit(1)


@main.command()
def version():
    """Show version information."""
    from cfwatcher import __version__

    console.print(BANNER, style="cyan")
    console.print(f"[bold]Version:[/bold] {__version__}")
    console.print(f"[bold]Python:[/bold] {sys.version}")
