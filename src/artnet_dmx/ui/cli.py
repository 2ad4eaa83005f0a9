"""
Command-Line Interface for artnet-dmx.

Provides commands for discovering nodes, setting channels and sending
trigger packets.
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import Optional

import click
import structlog

from artnet_dmx import __version__

logger = structlog.get_logger()

_SEND_WAIT_S = 1.0


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    type=click.Path(exists=True),
    help="Path to configuration file",
)
@click.option("--host", help="Destination host (default: global broadcast)")
@click.option("--port", type=int, help="Destination UDP port")
@click.pass_context
def cli(
    ctx: click.Context,
    debug: bool,
    config: Optional[str],
    host: Optional[str],
    port: Optional[int],
) -> None:
    """
    artnet-dmx - Art-Net 4 DMX-over-IP output and node discovery.
    """
    from artnet_dmx.core.config import Settings

    ctx.ensure_object(dict)

    # Load config
    settings = Settings.from_yaml(Path(config)) if config else Settings()
    if host:
        settings.artnet.host = host
    if port is not None:
        settings.artnet.port = port
    settings.debug = settings.debug or debug

    # Configure logging
    log_level = "DEBUG" if settings.debug else settings.log_level.upper()
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level, logging.INFO)
        ),
    )

    ctx.obj["settings"] = settings


def _controller(ctx: click.Context):
    from artnet_dmx.controller import ArtNetController

    settings = ctx.obj["settings"]
    return ArtNetController(
        settings.artnet,
        discovery=settings.discovery,
        on_error=lambda e: click.echo(f"Transport error: {e}", err=True),
    )


class _Completion:
    """Blocks until a send callback fires."""

    def __init__(self) -> None:
        self.done = threading.Event()
        self.error: Optional[BaseException] = None
        self.sent: Optional[int] = None

    def __call__(self, error: Optional[BaseException], sent: Optional[int]) -> None:
        self.error = error
        self.sent = sent
        self.done.set()

    def wait(self) -> bool:
        return self.done.wait(_SEND_WAIT_S)


@cli.command()
@click.option("--timeout", "-t", type=int, help="Collection window in milliseconds")
@click.pass_context
def discover(ctx: click.Context, timeout: Optional[int]) -> None:
    """Broadcast an ArtPoll and list the nodes that reply."""
    with _controller(ctx) as controller:
        click.echo("Discovering Art-Net nodes...")
        nodes = controller.discover_nodes(timeout)

    if not nodes:
        click.echo("No Art-Net nodes discovered.")
        return

    click.echo(f"Discovered {len(nodes)} node(s):")
    click.echo("-" * 60)
    for node in nodes:
        info = node.info
        click.echo(f"  {info.short_name} ({info.long_name}) @ {node.ip}")
        click.echo(f"      Ports: {info.port_count}")
        click.echo(f"      Universes in:  {', '.join(map(str, info.universes_in))}")
        click.echo(f"      Universes out: {', '.join(map(str, info.universes_out))}")


@cli.command("set")
@click.argument("universe", type=int)
@click.argument("channel", type=int)
@click.argument("values", type=int, nargs=-1, required=True)
@click.pass_context
def set_channels(ctx: click.Context, universe: int, channel: int, values: tuple[int, ...]) -> None:
    """Set VALUES starting at CHANNEL (1-512) of UNIVERSE."""
    completion = _Completion()
    with _controller(ctx) as controller:
        controller.set(universe, channel, list(values), completion)
        if not completion.wait():
            click.echo("Error: send did not complete", err=True)
            sys.exit(1)

    if completion.error is not None:
        click.echo(f"Error: {completion.error}", err=True)
        sys.exit(1)
    if completion.sent is None:
        click.echo("No change; nothing sent.")
    else:
        click.echo(f"Universe {universe}: sent {completion.sent} bytes")


@cli.command()
@click.argument("key", type=int, required=False)
@click.option("--sub-key", "-s", type=int, help="SubKey (default 0)")
@click.option("--oem", "-o", type=int, help="OEM code (default 0xFFFF)")
@click.pass_context
def trigger(ctx: click.Context, key: Optional[int], sub_key: Optional[int], oem: Optional[int]) -> None:
    """Send an ArtTrigger packet."""
    from artnet_dmx.controller import resolve_trigger_args

    args: list[Optional[int]] = [key]
    if oem is not None:
        args = [oem, sub_key, key]
    elif sub_key is not None:
        args = [sub_key, key]
    resolved_oem, resolved_key, resolved_sub_key, _ = resolve_trigger_args(*args)

    completion = _Completion()
    with _controller(ctx) as controller:
        controller.send_trigger(resolved_oem, resolved_key, resolved_sub_key, completion)
        if not completion.wait():
            click.echo("Error: send did not complete", err=True)
            sys.exit(1)

    if completion.error is not None:
        click.echo(f"Error: {completion.error}", err=True)
        sys.exit(1)
    click.echo(
        f"Trigger oem=0x{resolved_oem:04X} key={resolved_key} sub_key={resolved_sub_key}: "
        f"sent {completion.sent} bytes"
    )


def main() -> None:
    """Entry point for the CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
