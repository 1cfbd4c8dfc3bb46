"""Typer CLI for the MySQL change stream."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from mysql_stream.config.loader import load_stream_config
from mysql_stream.config.models import MysqlStreamConfig, StreamConfig
from mysql_stream.observability.logging import configure_logging
from mysql_stream.service.input import Input
from mysql_stream.service.registry import default_registry

logger = structlog.get_logger()
console = Console()
app = typer.Typer(name="mysql-stream", help="MySQL binlog change-event stream")


def _load(config_path: str) -> StreamConfig:
    path = Path(config_path)
    if not path.exists():
        console.print(f"[red]Config file not found: {path}[/red]")
        raise typer.Exit(1)
    return load_stream_config(path)


def _mysql_config(config: StreamConfig) -> MysqlStreamConfig:
    if config.input_type != "mysql_stream":
        console.print(f"[red]Input '{config.input_type}' is not mysql_stream[/red]")
        raise typer.Exit(1)
    try:
        parsed = default_registry().parse_config(
            config.input_type, config.input_config
        )
    except ValueError as exc:
        console.print(f"[red]Validation error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    assert isinstance(parsed, MysqlStreamConfig)
    return parsed


@app.command()
def validate(
    config_path: str = typer.Argument(..., help="Path to stream YAML"),
) -> None:
    """Validate a stream configuration file."""
    try:
        config = _load(config_path)
        parsed = default_registry().parse_config(
            config.input_type, config.input_config
        )
    except (ValueError, TypeError) as exc:
        console.print(f"[red]Validation error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    console.print(f"[green]Valid[/green] — input={config.input_type}")
    if isinstance(parsed, MysqlStreamConfig):
        console.print(f"  source:   {parsed.flavor} → {parsed.addr}/{parsed.database}")
        console.print(f"  tables:   {list(parsed.tables) or '(all)'}")
        console.print(f"  snapshot: {parsed.stream_snapshot}")
        tls = "off"
        if parsed.enable_ssl:
            tls = "on (verification disabled)" if parsed.ssl_skip_verify else "on"
        console.print(f"  tls:      {tls}")
    console.print(f"  logging:  {config.logging.level} ({config.logging.renderer})")


async def _drain(stream_input: Input, limit: int) -> int:
    count = 0
    await stream_input.connect()
    try:
        while limit <= 0 or count < limit:
            message, ack = await stream_input.read()
            console.print(
                f"[cyan]{message.meta_get('table')}[/cyan] "
                f"[yellow]{message.meta_get('event')}[/yellow] "
                f"{message.payload.decode('utf-8')}"
            )
            await ack(None)
            count += 1
    finally:
        await stream_input.close()
    return count


@app.command()
def run(
    config_path: str = typer.Argument(..., help="Path to stream YAML"),
    limit: int = typer.Option(0, "--limit", help="Stop after N events (0 = no limit)"),
) -> None:
    """Stream change events to the console."""
    config = _load(config_path)
    configure_logging(config.logging)
    try:
        stream_input = default_registry().build(
            config.input_type, config.input_config
        )
    except ValueError as exc:
        console.print(f"[red]Validation error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    console.print(f"[yellow]Streaming from input:[/yellow] {config.input_type}")
    try:
        count = asyncio.run(_drain(stream_input, limit))
    except KeyboardInterrupt:
        console.print("[dim]Interrupted[/dim]")
        return
    except Exception as exc:
        logger.error("cli.run_failed", exc_info=True)
        console.print(f"[red]Stream failed:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    console.print(f"[green]Done[/green] — {count} event(s)")


@app.command()
def position(
    config_path: str = typer.Argument(..., help="Path to stream YAML"),
) -> None:
    """Print the source's current binlog coordinate."""
    config = _load(config_path)
    configure_logging(config.logging)
    mysql_config = _mysql_config(config)

    from mysql_stream.sources.binlog.client import AsyncmyReplicationClient

    async def _position() -> str:
        client = AsyncmyReplicationClient(mysql_config)
        await client.open()
        try:
            return str(await client.get_current_position())
        finally:
            await client.close()

    try:
        coordinate = asyncio.run(_position())
    except Exception as exc:
        console.print(f"[red]Cannot read position:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    console.print(coordinate)
