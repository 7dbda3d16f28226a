"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from enum import Enum

import typer

from blescan.core.errors import BlescanError
from blescan.core.model import CharacteristicNode, DiscoveredDevice
from blescan.core.service import ScanService

app = typer.Typer(help="Scan, connect to, and browse Bluetooth LE peripherals")

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _build_service(ctx: typer.Context) -> ScanService:
    service = ScanService()
    level = (ctx.obj or {}).get("log_level") or service.config.log_level
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


def _device_line(device: DiscoveredDevice) -> str:
    name = device.name if device.name else "(no name)"
    return f"{device.rssi:>4} dBm  {name}  {device.identity}"


def _characteristic_lines(node: CharacteristicNode) -> list[str]:
    lines = [f"  Char {node.uuid}  [{node.properties.describe()}]"]
    if node.description:
        lines[0] += f"  {node.description}"
    if node.preview is not None:
        lines.append(f"    Value: {node.preview}")
    return lines


def _echo_log(line: str) -> None:
    typer.echo(f"* {line}", err=True)


@app.callback()
def main(
    ctx: typer.Context,
    log_level: LogLevel | None = typer.Option(None, "--log-level", case_sensitive=False, help="Logging verbosity"),
) -> None:
    ctx.obj = {"log_level": log_level.value if log_level else None}


@app.command("scan")
def scan(
    ctx: typer.Context,
    timeout: float | None = typer.Option(None, "--timeout", help="Scan duration in seconds"),
    service: list[str] | None = typer.Option(None, "--service", help="Only report peripherals advertising this service UUID"),
    show_log: bool = typer.Option(False, "--show-log", help="Print the event log while scanning"),
) -> None:
    """Scan for advertising peripherals, strongest signal first."""
    try:
        scan_service = _build_service(ctx)
        devices = scan_service.list_devices(
            timeout_s=timeout,
            service_uuids=service or None,
            on_log=_echo_log if show_log else None,
        )
        if not devices:
            typer.echo("No BLE devices found")
            return

        for device in devices:
            typer.echo(_device_line(device))
    except BlescanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("explore")
def explore(
    ctx: typer.Context,
    device: str = typer.Argument(..., help="Address or partial name of the peripheral"),
    timeout: float | None = typer.Option(None, "--timeout", help="Scan duration in seconds"),
    notify: list[str] | None = typer.Option(None, "--notify", help="Characteristic UUID to subscribe to"),
    listen: float = typer.Option(5.0, "--listen", help="Seconds to listen for notifications"),
    show_log: bool = typer.Option(False, "--show-log", help="Print the event log while exploring"),
) -> None:
    """Connect to a peripheral and print its services, characteristics, and values."""
    try:
        scan_service = _build_service(ctx)
        result = scan_service.explore(
            device,
            scan_timeout_s=timeout,
            notify_uuids=notify or (),
            listen_s=listen,
            on_log=_echo_log if show_log else None,
            on_value=lambda uuid, value: typer.echo(f"Notify {uuid}: {value}"),
        )
        typer.echo(f"Target: {result.device.identity} ({result.device.name})")
        if not result.services:
            typer.echo("No services discovered")
            return

        for svc in result.services:
            header = f"Service {svc.uuid}"
            if svc.description:
                header += f"  {svc.description}"
            typer.echo(header)
            for node in result.characteristics.get(svc.uuid, ()):
                for line in _characteristic_lines(node):
                    typer.echo(line)
    except BlescanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("config")
def show_config(ctx: typer.Context) -> None:
    """Show the effective configuration and where it was loaded from."""
    try:
        scan_service = _build_service(ctx)
        for source in scan_service.config_sources:
            typer.echo(f"Source: {source}")
        config = scan_service.config
        typer.echo(f"scan.timeout_s: {config.scan_timeout_s}")
        typer.echo(f"scan.service_uuids: {', '.join(config.service_uuids) or '<any>'}")
        typer.echo(f"connect.timeout_s: {config.connect_timeout_s}")
        typer.echo(f"connect.settle_s: {config.settle_s}")
        typer.echo(f"adapter: {config.adapter or '<default>'}")
        typer.echo(f"log_level: {config.log_level}")
    except BlescanError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
