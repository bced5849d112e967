"""Catalog and data browsing: `adapters`, `tables`, `tree`, `browse`, `schema`."""

from __future__ import annotations

import json
import time

import click

from datafrost.adapters._base import AdapterError, Filter, list_tree
from datafrost.adapters._registry import default_registry
from datafrost.cli._output import emit, format_query_result, format_schema, format_tree
from datafrost.cli._shared import conn_option, fail, format_option, resolve_connection, run_on_connection
from datafrost.querylog import log_query


@click.command("adapters")
@format_option
def adapters(output_format: str) -> None:
    """List the supported database types and their connection fields."""
    infos = sorted(default_registry().list_adapters(), key=lambda i: i.type)

    def _text() -> str:
        return "\n".join(f"{i.type:<10} {i.name}: {i.description}" for i in infos)

    emit({"adapters": [i.to_dict() for i in infos]}, output_format, _text)


@click.command("tables")
@conn_option
@format_option
def tables(conn_id: int | None, output_format: str) -> None:
    """List tables and views."""
    try:
        record = resolve_connection(conn_id)
        items = run_on_connection(record, lambda adapter: adapter.list_tables())
    except AdapterError as e:
        fail(e, output_format)

    emit(
        {"tables": [t.to_dict() for t in items]},
        output_format,
        lambda: "\n".join(f"{t.full_name or t.name} ({t.type})" for t in items)
        or "No tables found.",
    )


@click.command("tree")
@conn_option
@format_option
def tree(conn_id: int | None, output_format: str) -> None:
    """Show the database > schema > table hierarchy."""
    try:
        record = resolve_connection(conn_id)
        nodes = run_on_connection(record, list_tree)
    except AdapterError as e:
        fail(e, output_format)

    emit({"tree": [n.to_dict() for n in nodes]}, output_format, lambda: format_tree(nodes))


def _parse_filters(raw: str | None) -> list[Filter]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.BadParameter(f"invalid JSON: {e}", param_hint="'--filters'") from e
    if not isinstance(data, list) or not all(isinstance(d, dict) for d in data):
        raise click.BadParameter(
            'expected a list like [{"column": "id", "operator": "eq", "value": "1"}]',
            param_hint="'--filters'",
        )
    return [Filter.from_dict(d) for d in data]


@click.command("browse")
@click.argument("table")
@conn_option
@click.option("--limit", type=click.IntRange(min=1), default=25, show_default=True)
@click.option("--page", type=click.IntRange(min=1), default=1, show_default=True)
@click.option("--filters", "filters_json", default=None, help="JSON list of filters.")
@format_option
def browse(
    table: str,
    conn_id: int | None,
    limit: int,
    page: int,
    filters_json: str | None,
    output_format: str,
) -> None:
    """Show one page of TABLE's rows, optionally filtered."""
    filters = _parse_filters(filters_json)
    offset = (page - 1) * limit

    record = None
    start = time.monotonic()
    try:
        record = resolve_connection(conn_id)
        result = run_on_connection(
            record, lambda adapter: adapter.get_table_data(table, limit, offset, filters)
        )
    except AdapterError as e:
        if record is not None:
            log_query(
                table=table,
                connection_id=record.id,
                db_type=record.type,
                error=str(e),
                duration_ms=(time.monotonic() - start) * 1000,
            )
        fail(e, output_format)

    log_query(
        table=table,
        connection_id=record.id,
        db_type=record.type,
        row_count=result.count,
        duration_ms=(time.monotonic() - start) * 1000,
    )
    emit(result.to_dict(), output_format, lambda: format_query_result(result))


@click.command("schema")
@click.argument("table")
@conn_option
@format_option
def schema(table: str, conn_id: int | None, output_format: str) -> None:
    """Show columns, indexes and constraints of TABLE."""
    try:
        record = resolve_connection(conn_id)
        info = run_on_connection(record, lambda adapter: adapter.get_table_schema(table))
    except AdapterError as e:
        fail(e, output_format)

    emit(info.to_dict(), output_format, lambda: format_schema(info))
