#!/usr/bin/env python3
"""Command-line interface for talkman-relay."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .utils.config import ConfigManager, ConfigurationError, RelayConfig
from .webhooks.signature import sign as sign_payload

console = Console()


def _load_settings(
    config_path: Optional[str],
    host: Optional[str],
    port: Optional[int],
    require_signature: Optional[bool],
    log_level: Optional[str]
) -> tuple[ConfigManager, RelayConfig]:
    """Load config file and environment, then apply CLI overrides."""
    manager = ConfigManager(config_path)
    if host:
        manager.set("server.host", host)
    if port:
        manager.set("server.port", port)
    if require_signature is not None:
        manager.set("webhook.require_signature", require_signature)
    if log_level:
        manager.set("logging.level", log_level)
    return manager, RelayConfig.from_manager(manager)


async def _run(settings: RelayConfig) -> None:
    from .webhooks.server import create_server

    server = create_server(settings)
    await server.start()


@click.group()
@click.version_option(__version__, prog_name="talkman-relay")
def main() -> None:
    """Relay GitHub webhook events to MD TalkMan devices via APNs."""


@main.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
              help="Path to config file")
@click.option("--host", help="Interface to bind (default: 0.0.0.0)")
@click.option("--port", type=click.IntRange(1, 65535), help="Port to listen on (env: PORT)")
@click.option("--strict/--lenient", "require_signature", default=None,
              help="Reject or accept webhooks without a signature (default: strict)")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"],
              case_sensitive=False), help="Log level")
def serve(
    config_path: Optional[str],
    host: Optional[str],
    port: Optional[int],
    require_signature: Optional[bool],
    log_level: Optional[str]
) -> None:
    """Run the webhook relay server."""
    try:
        manager, settings = _load_settings(config_path, host, port, require_signature, log_level)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)

    manager.setup_logging(secrets=(settings.secret,))

    mode = "token" if settings.apns.uses_token_auth else "certificate"
    env = "sandbox" if settings.apns.use_sandbox else "production"
    signature = "strict" if settings.require_signature else "[bold red]LENIENT (unsigned accepted)[/bold red]"
    console.print(Panel(
        f"Listening on [cyan]{settings.host}:{settings.port}[/cyan]\n"
        f"APNs: {mode} auth, {env}, topic [cyan]{settings.apns.bundle_id}[/cyan]\n"
        f"Signatures: {signature}\n"
        f"Tracked extensions: {', '.join(settings.tracked_extensions)}",
        title=f"talkman-relay {__version__}",
    ))

    try:
        asyncio.run(_run(settings))
    except OSError as e:
        console.print(f"[red]Failed to start server:[/red] {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("[yellow]Shutting down[/yellow]")


@main.command("init-config")
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--force", is_flag=True, help="Overwrite an existing file")
def init_config(path: str, force: bool) -> None:
    """Write the default configuration to PATH as TOML."""
    if Path(path).exists() and not force:
        console.print(f"[red]{path} already exists[/red] (use --force to overwrite)")
        sys.exit(1)

    manager = ConfigManager(use_env=False, load_file=False)
    written = manager.save(path)
    console.print(f"[green]Wrote default configuration to {written}[/green]")


@main.command()
@click.option("--secret", envvar="GITHUB_WEBHOOK_SECRET", required=True,
              help="Webhook secret (env: GITHUB_WEBHOOK_SECRET)")
@click.argument("payload", type=click.File("rb"))
def sign(secret: str, payload) -> None:
    """Print the X-Hub-Signature-256 header value for a payload file."""
    click.echo(sign_payload(payload.read(), secret))


if __name__ == "__main__":
    main()
