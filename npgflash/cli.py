"""Typer CLI entrypoint."""

from __future__ import annotations

import enum
import logging
import threading
from pathlib import Path

import typer

from npgflash.core.errors import NpgflashError
from npgflash.core.service import FlasherService

app = typer.Typer(help="Flash NPG-Lite firmware (BLE, Serial, WiFi or custom images) over USB serial")


class OnConflict(str, enum.Enum):
    suffix = "suffix"
    fail = "fail"
    overwrite = "overwrite"


class _State:
    config_path: Path | None = None


_state = _State()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr"),
    config: Path | None = typer.Option(None, "--config", help="Path to a config.yaml"),
) -> None:
    _state.config_path = config
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


def _build_service() -> FlasherService:
    service = FlasherService(config_path=_state.config_path)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.command("ports")
def list_ports() -> None:
    """List USB serial ports that a board could be flashed through."""
    try:
        ports = _build_service().list_ports()
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if not ports:
        typer.echo("No serial ports found")
        return
    for port in ports:
        typer.echo(port)


@app.command("watch")
def watch_ports(
    duration: float = typer.Option(0.0, "--duration", help="Stop after N seconds (0 = until Ctrl-C)"),
) -> None:
    """Print the port list whenever a board is plugged in or removed."""
    try:
        service = _build_service()
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    def _print(ports: frozenset[str]) -> None:
        typer.echo(f"Ports: {', '.join(sorted(ports)) if ports else '<none>'}")

    stopped = threading.Event()
    service.monitor.subscribe(_print)
    service.monitor.start()
    try:
        stopped.wait(duration if duration > 0 else None)
    except KeyboardInterrupt:
        pass
    finally:
        service.monitor.stop()


@app.command("firmware")
def list_firmware() -> None:
    """List built-in firmware kinds and stored custom images."""
    try:
        service = _build_service()
        builtins = service.builtin_firmware()
        custom = service.list_custom()
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo("Built-in:")
    for firmware in builtins:
        missing = "" if firmware.path.is_file() else " (missing)"
        typer.echo(f"  {firmware.identifier}: {firmware.path}{missing}")
    typer.echo("Custom:")
    if not custom:
        typer.echo("  <none>")
    for filename in custom:
        typer.echo(f"  {filename}")


@app.command("delete")
def delete_firmware(filename: str) -> None:
    """Delete a stored custom firmware image."""
    try:
        service = _build_service()
        service.delete_custom(filename)
        remaining = service.list_custom()
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Deleted {filename} ({len(remaining)} custom firmware remaining)")


@app.command("releases")
def list_releases(
    repository: str | None = typer.Argument(None, help="GitHub repository as owner/name"),
) -> None:
    """List firmware assets attached to the latest release of a repository."""
    try:
        assets = _build_service().fetch_release_assets(repository)
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    if not assets:
        typer.echo("No firmware files found")
        return
    for asset in assets:
        typer.echo(f"{asset.display_name} {asset.download_url}")


@app.command("download")
def download_firmware(
    url: str,
    name: str | None = typer.Option(None, "--name", help="Filename to store the image under"),
    on_conflict: OnConflict = typer.Option(OnConflict.suffix, "--on-conflict", help="Policy when the name is taken"),
) -> None:
    """Download a firmware image and store it as a custom firmware."""
    try:
        stored = _build_service().download_and_store(url, name, on_conflict=on_conflict.value)
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Stored {stored}")


@app.command("import")
def import_firmware(
    path: Path,
    name: str | None = typer.Option(None, "--name", help="Filename to store the image under"),
    on_conflict: OnConflict = typer.Option(OnConflict.suffix, "--on-conflict", help="Policy when the name is taken"),
) -> None:
    """Store a local firmware binary as a custom firmware."""
    try:
        stored = _build_service().import_custom(path, name, on_conflict=on_conflict.value)
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Stored {stored}")


@app.command("flash")
def flash_firmware(
    firmware: str = typer.Argument(..., help="BLE, Serial, WiFi or a custom firmware filename"),
    port: str = typer.Option("", "--port", "-p", help="Serial port, e.g. /dev/ttyACM0 or COM3"),
) -> None:
    """Flash a built-in or custom firmware to the board on PORT."""
    try:
        service = _build_service()
        typer.echo("Flashing firmware, please wait...")
        message = service.flash(port, firmware)
    except NpgflashError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"Success: {message}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
