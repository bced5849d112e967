"""PostgreSQL adapter — psycopg (async), tables of the public schema."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import psycopg
from psycopg.conninfo import make_conninfo

from datafrost.adapters._base import (
    ColumnInfo,
    ConnectionFailed,
    ConstraintInfo,
    DatabaseType,
    Filter,
    IndexInfo,
    NotConnected,
    QueryExecutionFailed,
    QueryResult,
    TableInfo,
    TableSchema,
    TreeLister,
    Unreachable,
    page_number,
)
from datafrost.adapters._convert import convert_rows
from datafrost.adapters._credentials import PostgresCredentials, parse_credentials
from datafrost.adapters._sql import (
    READ_ONLY_KEYWORDS,
    apply_row_limit,
    build_where_clause,
    ensure_read_only,
    escape_pyformat,
    pyformat,
    quote_identifier,
)

logger = logging.getLogger(__name__)

_CONSTRAINT_TYPES = {"f": "FOREIGN KEY", "u": "UNIQUE", "c": "CHECK"}

_COLUMNS_SQL = """
    SELECT column_name, data_type, is_nullable = 'YES', COALESCE(column_default, '')
    FROM information_schema.columns
    WHERE table_schema = 'public' AND table_name = %s
    ORDER BY ordinal_position
"""

_PRIMARY_KEY_SQL = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
        ON tc.constraint_name = kcu.constraint_name
        AND tc.table_schema = kcu.table_schema
    WHERE tc.table_schema = 'public'
        AND tc.table_name = %s
        AND tc.constraint_type = 'PRIMARY KEY'
"""

_INDEXES_SQL = """
    SELECT i.relname, ix.indisunique,
        ARRAY(
            SELECT a.attname
            FROM unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            ORDER BY k.ord
        )
    FROM pg_index ix
    JOIN pg_class i ON i.oid = ix.indexrelid
    JOIN pg_class t ON t.oid = ix.indrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    WHERE n.nspname = 'public' AND t.relname = %s
    ORDER BY i.relname
"""

_CONSTRAINTS_SQL = """
    SELECT con.conname, con.contype::text, pg_get_constraintdef(con.oid)
    FROM pg_constraint con
    JOIN pg_class t ON t.oid = con.conrelid
    JOIN pg_namespace n ON n.oid = t.relnamespace
    WHERE n.nspname = 'public' AND t.relname = %s AND con.contype IN ('f', 'u', 'c')
    ORDER BY con.conname
"""


def build_postgres_where_clause(filters: list[Filter] | None) -> tuple[str, list[str]]:
    return build_where_clause(filters, dialect="postgres", placeholder=pyformat)


def postgres_conninfo(creds: PostgresCredentials) -> str:
    """Connection string for either credential mode: the raw URL, or libpq key/values."""
    if creds.url:
        return creds.url
    params: dict[str, Any] = {
        "host": creds.host,
        "port": creds.port,
        "dbname": creds.database,
        "user": creds.username,
        "sslmode": creds.ssl_mode,
    }
    if creds.password:
        params["password"] = creds.password
    return make_conninfo(**params)


class PostgresAdapter:
    """PostgreSQL adapter using psycopg (async)."""

    def __init__(self) -> None:
        self._conn: psycopg.AsyncConnection | None = None

    async def connect(self, credentials: Mapping[str, Any]) -> None:
        creds = parse_credentials(DatabaseType.POSTGRES, credentials)
        assert isinstance(creds, PostgresCredentials)
        try:
            self._conn = await psycopg.AsyncConnection.connect(
                postgres_conninfo(creds), autocommit=True, application_name="datafrost"
            )
        except Exception as e:
            raise ConnectionFailed(f"PostgreSQL connection failed: {e}") from e

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            await self._conn.close()
        except Exception as e:
            logger.warning("error closing PostgreSQL connection: %s", e)
        finally:
            self._conn = None

    def _ensure_conn(self) -> psycopg.AsyncConnection:
        if self._conn is None:
            raise NotConnected()
        return self._conn

    async def _query(
        self,
        sql: str,
        args: list[Any] | tuple[Any, ...] | None = None,
        *,
        convert: bool = True,
    ) -> tuple[list[str], list[Any]]:
        conn = self._ensure_conn()
        async with conn.cursor() as cur:
            await cur.execute(sql, args)
            columns = [desc.name for desc in cur.description] if cur.description else []
            rows = await cur.fetchall() if cur.description else []
        return columns, convert_rows(rows) if convert else rows

    async def ping(self) -> None:
        self._ensure_conn()
        try:
            await self._query("SELECT 1")
        except Exception as e:
            raise Unreachable(f"PostgreSQL ping failed: {e}") from e

    async def list_tables(self) -> list[TableInfo]:
        self._ensure_conn()
        try:
            _, rows = await self._query(
                "SELECT table_name, table_type FROM information_schema.tables "
                "WHERE table_schema = 'public' ORDER BY table_name"
            )
        except Exception as e:
            raise QueryExecutionFailed(f"failed to list tables: {e}") from e
        return [
            TableInfo(name=str(name), type="view" if kind == "VIEW" else "table")
            for name, kind in rows
        ]

    async def get_table_data(
        self, table: str, limit: int, offset: int, filters: list[Filter] | None = None
    ) -> QueryResult:
        self._ensure_conn()
        where, args = build_postgres_where_clause(filters)
        source = quote_identifier(table, "postgres")
        params = None
        if where:
            # bound params make psycopg parse % in the quoted table name
            source = f"{escape_pyformat(source)} WHERE {where}"
            params = args

        try:
            _, count_rows = await self._query(f"SELECT COUNT(*) FROM {source}", params)
            columns, rows = await self._query(
                f"SELECT * FROM {source} LIMIT {int(limit)} OFFSET {int(offset)}", params
            )
        except Exception as e:
            raise QueryExecutionFailed(f"failed to read table {table}: {e}") from e

        return QueryResult(
            columns=columns,
            rows=rows,
            count=len(rows),
            total=int(count_rows[0][0]) if count_rows else 0,
            page=page_number(limit, offset),
            limit=limit,
        )

    async def execute_query(self, sql: str) -> QueryResult:
        self._ensure_conn()
        ensure_read_only(sql, READ_ONLY_KEYWORDS)
        effective_sql = apply_row_limit(sql, "postgres")
        try:
            columns, rows = await self._query(effective_sql)
        except Exception as e:
            raise QueryExecutionFailed(f"query failed: {e}") from e
        return QueryResult.single_page(columns, rows)

    async def get_table_schema(self, table: str) -> TableSchema:
        self._ensure_conn()
        try:
            _, col_rows = await self._query(_COLUMNS_SQL, (table,))
            _, pk_rows = await self._query(_PRIMARY_KEY_SQL, (table,))
            _, index_rows = await self._query(_INDEXES_SQL, (table,), convert=False)
            _, constraint_rows = await self._query(_CONSTRAINTS_SQL, (table,))
        except Exception as e:
            raise QueryExecutionFailed(f"failed to read schema of {table}: {e}") from e

        pk_columns = {str(r[0]) for r in pk_rows}
        columns = [
            ColumnInfo(
                name=str(name),
                type=str(data_type),
                nullable=bool(nullable),
                default_value=str(default),
                is_primary_key=str(name) in pk_columns,
            )
            for name, data_type, nullable, default in col_rows
        ]
        indexes = [
            IndexInfo(name=str(name), unique=bool(unique), columns=[str(c) for c in cols])
            for name, unique, cols in index_rows
        ]
        constraints = [
            ConstraintInfo(
                name=str(name),
                type=_CONSTRAINT_TYPES.get(str(kind), str(kind)),
                definition=str(definition),
            )
            for name, kind, definition in constraint_rows
        ]
        return TableSchema(
            table_name=table, columns=columns, indexes=indexes, constraints=constraints
        )

    def as_tree_lister(self) -> TreeLister | None:
        return None

    def db_type(self) -> DatabaseType:
        return DatabaseType.POSTGRES

