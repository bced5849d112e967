"""Shared helpers for commands that talk to a saved connection."""

from __future__ import annotations

import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn, TypeVar

import click

from datafrost.adapters._base import AdapterError, ConnectionNotFound, DatabaseAdapter, error_status
from datafrost.cache import AdapterCache
from datafrost.config import CONNECTION_ENV
from datafrost.connections import (
    ConnectionRecord,
    get_connection,
    get_last_connected,
    set_last_connected,
)

T = TypeVar("T")

conn_option = click.option(
    "--conn",
    "conn_id",
    type=int,
    default=None,
    envvar=CONNECTION_ENV,
    help="Saved connection id (default: the last one used).",
)
format_option = click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "text"]),
    default="json",
    help="Output format.",
)


def resolve_sql_stdin(sql: str | None, from_stdin: bool) -> str:
    """Resolve SQL from positional argument or stdin. Exactly one source required."""
    if sql and from_stdin:
        raise click.UsageError("Provide SQL as an argument or --from-stdin, not both.")
    if from_stdin:
        if sys.stdin.isatty():
            raise click.UsageError("--from-stdin requires piped input (stdin is a terminal).")
        text = sys.stdin.read().strip()
        if not text:
            raise click.UsageError("--from-stdin: stdin was empty.")
        return text
    if not sql:
        raise click.UsageError("Missing argument 'SQL'. Provide SQL or use --from-stdin.")
    return sql


def resolve_connection(conn_id: int | None) -> ConnectionRecord:
    """Load the saved connection, falling back to the last one used."""
    if conn_id is None:
        conn_id = get_last_connected()
        if conn_id is None:
            raise click.UsageError(
                "No connection given. Pass --conn ID or set DATAFROST_CONNECTION.\n"
                "  Add one: datafrost connect add <name> <type> <key>=<val>"
            )
    record = get_connection(conn_id)
    if record is None:
        raise ConnectionNotFound(conn_id)
    return record


def run_on_connection(
    record: ConnectionRecord, op: Callable[[DatabaseAdapter], Awaitable[T]]
) -> T:
    """Connect through a fresh AdapterCache, run op, and close everything."""

    async def _run() -> T:
        cache = AdapterCache()
        try:
            adapter = await cache.get(record.id, record.type, record.credentials)
            return await op(adapter)
        finally:
            await cache.close()

    result = asyncio.run(_run())
    set_last_connected(record.id)
    return result


def fail(error: AdapterError, output_format: str) -> NoReturn:
    """Report an adapter error and exit: 1 for request errors, 2 for backend failures."""
    status = error_status(error)
    if output_format == "json":
        click.echo(json.dumps({"error": str(error), "status": status}, indent=2))
    else:
        click.echo(f"error: {error}", err=True)
    raise SystemExit(1 if status < 500 else 2)
