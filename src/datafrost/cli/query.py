"""The `query` command: run one read-only statement against a saved connection.

Statements other than SELECT/WITH (plus PRAGMA on SQLite-family backends) are
rejected by the adapter before reaching the database. Unbounded single SELECTs
get an automatic LIMIT.
"""

from __future__ import annotations

import time

import click

from datafrost.adapters._base import AdapterError, RejectedStatement
from datafrost.cli._output import emit, format_query_result
from datafrost.cli._shared import (
    conn_option,
    fail,
    format_option,
    resolve_connection,
    resolve_sql_stdin,
    run_on_connection,
)
from datafrost.querylog import cleanup_old_logs, log_query


@click.command()
@click.argument("sql", required=False, default=None)
@click.option("--from-stdin", is_flag=True, help="Read SQL from stdin instead of argument.")
@conn_option
@format_option
def query(sql: str | None, from_stdin: bool, conn_id: int | None, output_format: str) -> None:
    """Execute a read-only SQL query."""
    cleanup_old_logs()
    sql = resolve_sql_stdin(sql, from_stdin)

    record = None
    start = time.monotonic()
    try:
        record = resolve_connection(conn_id)
        result = run_on_connection(record, lambda adapter: adapter.execute_query(sql))
    except AdapterError as e:
        if record is not None:
            log_query(
                sql=sql,
                connection_id=record.id,
                db_type=record.type,
                rejected=isinstance(e, RejectedStatement),
                error=str(e),
                duration_ms=(time.monotonic() - start) * 1000,
            )
        fail(e, output_format)

    log_query(
        sql=sql,
        connection_id=record.id,
        db_type=record.type,
        row_count=result.count,
        duration_ms=(time.monotonic() - start) * 1000,
    )
    emit(result.to_dict(), output_format, lambda: format_query_result(result))
