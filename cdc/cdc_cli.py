#!/usr/bin/env python3

from __future__ import annotations
import json
from enum import Enum
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from shared.crypto.crypto import generate_auth_string
from shared.log import configure_root_logging, get_logger
from .config import ConfigError, ConnectorConfig, load_config
from .connection import Connection
from .row import Row

app = typer.Typer(help="CDC streaming client")
console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)


class OutputStyle(str, Enum):
    JSON = "json"
    TABLE = "table"


def _resolve_config(
    config: Optional[Path],
    host: Optional[str],
    port: Optional[int],
    user: Optional[str],
    password: Optional[str],
    timeout: Optional[float],
) -> ConnectorConfig:
    try:
        cfg = load_config(config, host=host, port=port, user=user, password=password, timeout=timeout)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error[/]: {e}")
        raise typer.Exit(code=2)
    logger.debug("Using %r", cfg)
    return cfg


def _open_stream(cfg: ConnectorConfig, table: str, gtid: str) -> Connection:
    conn = cfg.build_connection()
    if not conn.connect() or not conn.request_data(table, gtid):
        err_console.print(f"[red]Error[/]: {conn.error}")
        conn.close()
        raise typer.Exit(code=1)
    return conn


def _row_table(rows: list[Row]) -> Table:
    table = Table(title="Rows")
    if rows:
        for name, sql_type in zip(rows[-1].names, rows[-1].types):
            table.add_column(f"{name}\n[dim]{sql_type}[/]")
    for row in rows:
        table.add_row(*(Text(value) for value in row.values))
    return table


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
):
    """Stream change data capture events from a CDC service."""
    configure_root_logging(log_level)


@app.command()
def token(
    user: str = typer.Argument(..., help="User name"),
    password: str = typer.Argument(..., help="Password"),
):
    """Print the authentication token sent during the handshake."""
    console.print(generate_auth_string(user, password), soft_wrap=True)


@app.command()
def stream(
    table: str = typer.Argument(..., help="Table to stream, e.g. test.t1"),
    gtid: str = typer.Option("", help="Start position in domain-server_id-sequence form"),
    limit: Optional[int] = typer.Option(None, min=1, help="Stop after this many rows"),
    output: OutputStyle = typer.Option(OutputStyle.JSON, "--format", help="json (one object per line) or table"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML file with connection settings"),
    host: Optional[str] = typer.Option(None, help="IPv4 address of the CDC service [env: CDC_HOST]"),
    port: Optional[int] = typer.Option(None, help="Port of the CDC service [env: CDC_PORT]"),
    user: Optional[str] = typer.Option(None, help="User name [env: CDC_USER]"),
    password: Optional[str] = typer.Option(None, help="Password [env: CDC_PASSWORD]"),
    timeout: Optional[float] = typer.Option(None, help="Network timeout in seconds [env: CDC_TIMEOUT]"),
):
    """Connect, request TABLE and print rows as they arrive."""
    cfg = _resolve_config(config, host, port, user, password, timeout)
    collected: list[Row] = []
    count = 0

    with _open_stream(cfg, table, gtid) as conn:
        for row in conn.rows():
            count += 1
            if output is OutputStyle.JSON:
                typer.echo(json.dumps(row.as_dict(), separators=(",", ":")))
            else:
                collected.append(row)
            if limit is not None and count >= limit:
                break
        else:
            # rows() only stops on its own when read() failed
            if collected:
                console.print(_row_table(collected))
            err_console.print(f"[red]Stream ended[/]: {conn.error}")
            raise typer.Exit(code=1)

    if output is OutputStyle.TABLE:
        console.print(_row_table(collected))


@app.command()
def schema(
    table: str = typer.Argument(..., help="Table whose schema to show"),
    gtid: str = typer.Option("", help="Start position in domain-server_id-sequence form"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML file with connection settings"),
    host: Optional[str] = typer.Option(None, help="IPv4 address of the CDC service [env: CDC_HOST]"),
    port: Optional[int] = typer.Option(None, help="Port of the CDC service [env: CDC_PORT]"),
    user: Optional[str] = typer.Option(None, help="User name [env: CDC_USER]"),
    password: Optional[str] = typer.Option(None, help="Password [env: CDC_PASSWORD]"),
    timeout: Optional[float] = typer.Option(None, help="Network timeout in seconds [env: CDC_TIMEOUT]"),
):
    """Read the first row of TABLE and print the active field types."""
    cfg = _resolve_config(config, host, port, user, password, timeout)

    with _open_stream(cfg, table, gtid) as conn:
        if conn.read() is None:
            err_console.print(f"[red]Error[/]: {conn.error}")
            raise typer.Exit(code=1)
        fields = conn.fields

    out = Table(title=f"Schema of {table}")
    out.add_column("Field")
    out.add_column("Type")
    for name, sql_type in fields.items():
        out.add_row(name, sql_type)
    console.print(out)


if __name__ == "__main__":
    app()
