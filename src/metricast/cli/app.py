"""Typer CLI for metricast."""

from __future__ import annotations

import logging
import time
from typing import Annotated, Optional

import typer
from rich.console import Console

from metricast.config import MetricastConfig
from metricast.errors import MetricsUnavailable
from metricast.logging_setup import setup_logging
from metricast.models.runtime import Snapshot

app = typer.Typer(
    name="metricast",
    help="Live system telemetry over WebSocket: CPU, memory, disk, network, pm2.",
    no_args_is_help=True,
)
console = Console(stderr=True)

CPU_WARMUP_SECONDS = 0.5


def _config() -> MetricastConfig:
    return MetricastConfig.load()


def _format_bytes(size: float) -> str:
    for unit in ["B", "K", "M", "G", "T"]:
        if size < 1024:
            return f"{size:.0f}{unit}" if unit == "B" else f"{size:.1f}{unit}"
        size = size / 1024
    return f"{size:.1f}P"


def _print_snapshot(snap: Snapshot) -> None:
    from rich.table import Table

    console.print(f"\n[bold]Snapshot[/bold] — {snap.taken_at.isoformat()}")
    console.print("  CPU: " + "  ".join(f"{i}:{v:.2f}%" for i, v in enumerate(snap.cpu)))
    m, d = snap.memory, snap.disk
    console.print(
        f"  Memory: {_format_bytes(m.used)} used / {_format_bytes(m.free)} free "
        f"/ {_format_bytes(m.total)} total"
    )
    console.print(
        f"  Disk: {_format_bytes(d.used)} used / {_format_bytes(d.free)} free "
        f"/ {_format_bytes(d.total)} total"
    )

    if snap.network:
        table = Table(title="Network (since last sample)")
        table.add_column("Interface", style="bold")
        table.add_column("Sent", justify="right")
        table.add_column("Received", justify="right")
        for n in snap.network:
            table.add_row(n.name, _format_bytes(n.bytes_sent), _format_bytes(n.bytes_recv))
        console.print(table)

    if snap.processes is None:
        console.print("[dim]pm2 unavailable[/dim]")
    elif not snap.processes:
        console.print("[dim]No pm2 processes.[/dim]")
    else:
        table = Table(title="pm2 Processes")
        table.add_column("ID", justify="right")
        table.add_column("Name", style="bold")
        table.add_column("PID", justify="right")
        table.add_column("Status")
        table.add_column("CPU", justify="right")
        table.add_column("Memory", justify="right")
        for p in snap.processes:
            style = "green" if p.status == "online" else "red"
            table.add_row(
                str(p.pm_id),
                p.name,
                str(p.pid) if p.pid else "—",
                f"[{style}]{p.status}[/{style}]",
                f"{p.cpu}%",
                _format_bytes(p.memory),
            )
        console.print(table)


@app.command()
def serve(
    host: Annotated[Optional[str], typer.Option("--host", help="Bind address")] = None,
    port: Annotated[Optional[int], typer.Option("--port", "-p", help="Listen port")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Serve live metrics on ws://HOST:PORT/metrics."""
    import uvicorn

    from metricast.server.app import create_app

    setup_logging(logging.DEBUG if verbose else logging.INFO)
    config = _config()
    bind_host = host or config.server.host
    bind_port = port or config.server.port

    console.print(f"[green]Server running on port {bind_port}[/green]")
    uvicorn.run(
        create_app(config),
        host=bind_host,
        port=bind_port,
        log_config=None,
        access_log=False,
    )


@app.command()
def snapshot(
    as_json: Annotated[bool, typer.Option("--json", help="Print the wire JSON payload")] = False,
) -> None:
    """Take one metrics snapshot and print it."""
    from metricast.core.broadcaster import encode_snapshot
    from metricast.server.app import build_snapshot_builder

    config = _config()
    builder = build_snapshot_builder(config)
    # Per-core CPU percentages need some time since the priming call.
    time.sleep(CPU_WARMUP_SECONDS)

    try:
        snap = builder.build()
    except MetricsUnavailable as exc:
        console.print(f"[red]Failed to get metrics:[/red] {exc}")
        raise typer.Exit(1)

    if as_json:
        typer.echo(encode_snapshot(snap))
    else:
        _print_snapshot(snap)


def main() -> None:
    """Entry point for the metricast CLI."""
    app()


if __name__ == "__main__":
    main()
