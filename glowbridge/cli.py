"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer

from glowbridge.api import encode_command
from glowbridge.core.config import load_config
from glowbridge.core.errors import GlowbridgeError
from glowbridge.core.profile_loader import load_profiles
from glowbridge.core.service import BridgeService

app = typer.Typer(help="Bridge BLE light bulbs to MQTT via YAML product profiles")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("run")
def run_bridge(
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
    adapter: str | None = typer.Option(None, "--adapter", help="Bluetooth adapter, e.g. hci0"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Connect configured bulbs and serve MQTT commands until interrupted."""
    _configure_logging(verbose)
    try:
        service = BridgeService(load_config(config), adapter=adapter)
        for warning in service.load_warnings:
            typer.echo(f"Warning: {warning}", err=True)
        asyncio.run(service.run())
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except GlowbridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("profiles")
def list_profiles() -> None:
    """List available product profiles and their commands."""
    try:
        loaded = load_profiles()
        for warning in loaded.warnings:
            typer.echo(f"Warning: {warning}", err=True)
        if not loaded.profiles:
            typer.echo("No profiles loaded")
            raise typer.Exit(code=1)

        for profile_id, profile in sorted(loaded.profiles.items()):
            typer.echo(f"{profile_id}: {profile.name}")
            kinds = ", ".join(sorted(kind.value for kind in profile.commands))
            typer.echo(f"  commands: {kinds}")
            typer.echo(f"  matches: {', '.join(profile.match.name_contains)}")
    except GlowbridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices(
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
) -> None:
    """List configured devices."""
    try:
        bridge_config = load_config(config)
        if not bridge_config.devices:
            typer.echo("No devices configured")
            return
        for device in bridge_config.devices:
            typer.echo(f"{device.address} {device.name} -> {device.unique_id}")
    except GlowbridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("encode")
def encode_frame(
    profile: str,
    kind: str,
    value: str = typer.Argument("", help="Payload as sent on MQTT, e.g. ON, 50, 255,0,0, 200"),
) -> None:
    """Print the frame a command would write, as hex."""
    try:
        frame = encode_command(profile, kind, value)
        typer.echo(frame.hex())
    except GlowbridgeError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
