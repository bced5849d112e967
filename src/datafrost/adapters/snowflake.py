"""Snowflake adapter — snowflake-connector-python, browser SSO or key-pair auth."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import snowflake.connector

from datafrost.adapters._base import (
    ColumnInfo,
    ConnectionFailed,
    DatabaseType,
    Filter,
    NotConnected,
    QueryExecutionFailed,
    QueryResult,
    TableInfo,
    TableSchema,
    TreeLister,
    TreeNode,
    Unreachable,
    page_number,
)
from datafrost.adapters._convert import convert_rows
from datafrost.adapters._credentials import SnowflakeCredentials, parse_credentials
from datafrost.adapters._sql import (
    READ_ONLY_KEYWORDS,
    apply_row_limit,
    build_where_clause,
    ensure_read_only,
    escape_pyformat,
    pyformat,
    quote_identifier,
    quote_table_path,
)
from datafrost.auth import load_snowflake_private_key

logger = logging.getLogger(__name__)

_TABLE_TYPES = "TABLE_TYPE IN ('BASE TABLE', 'VIEW')"


def build_snowflake_where_clause(filters: list[Filter] | None) -> tuple[str, list[str]]:
    return build_where_clause(filters, dialect="snowflake", placeholder=pyformat)


def snowflake_connect_kwargs(creds: SnowflakeCredentials) -> dict[str, Any]:
    """Keyword arguments for snowflake.connector.connect()."""
    kwargs: dict[str, Any] = {
        "account": creds.account,
        "user": creds.user,
        "application": "datafrost",
    }
    if creds.mode == "private_key":
        kwargs["authenticator"] = "SNOWFLAKE_JWT"
        kwargs["private_key"] = load_snowflake_private_key(
            creds.private_key_pem or "", creds.private_key_passphrase
        )
    else:
        kwargs["authenticator"] = "externalbrowser"

    for key in ("warehouse", "database", "schema", "role"):
        value = getattr(creds, key)
        if value:
            kwargs[key] = value
    return kwargs


def _table_kind(table_type: object) -> str:
    return "view" if table_type == "VIEW" else "table"


def _unquote(part: str) -> str:
    part = part.strip()
    if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
        return part[1:-1].replace('""', '"')
    return part


class SnowflakeAdapter:
    """Snowflake adapter. Tables may be addressed as NAME, SCHEMA.NAME or DB.SCHEMA.NAME."""

    def __init__(self) -> None:
        self._conn: Any = None

    async def connect(self, credentials: Mapping[str, Any]) -> None:
        creds = parse_credentials(DatabaseType.SNOWFLAKE, credentials)
        assert isinstance(creds, SnowflakeCredentials)
        kwargs = snowflake_connect_kwargs(creds)
        try:
            self._conn = snowflake.connector.connect(**kwargs)
        except Exception as e:
            raise ConnectionFailed(f"failed to open snowflake connection: {e}") from e

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except Exception as e:
            logger.warning("error closing Snowflake connection: %s", e)
        finally:
            self._conn = None

    def _ensure_conn(self) -> Any:
        if self._conn is None:
            raise NotConnected()
        return self._conn

    def _query(
        self, sql: str, params: list[Any] | tuple[Any, ...] | None = None
    ) -> tuple[list[str], list[list[object]]]:
        cur = self._ensure_conn().cursor()
        try:
            cur.execute(sql, params)
            columns = [desc[0] for desc in cur.description] if cur.description else []
            rows = cur.fetchall() if cur.description else []
        finally:
            cur.close()
        return columns, convert_rows(rows)

    async def ping(self) -> None:
        self._ensure_conn()
        try:
            self._query("SELECT 1")
        except Exception as e:
            raise Unreachable(f"Snowflake ping failed: {e}") from e

    async def list_tables(self) -> list[TableInfo]:
        self._ensure_conn()
        try:
            _, rows = self._query(
                "SELECT TABLE_NAME, TABLE_TYPE FROM INFORMATION_SCHEMA.TABLES "
                f"WHERE TABLE_SCHEMA = CURRENT_SCHEMA() AND {_TABLE_TYPES} "
                "ORDER BY TABLE_NAME"
            )
        except Exception as e:
            raise QueryExecutionFailed(f"failed to list tables: {e}") from e
        return [
            TableInfo(name=str(name), type=_table_kind(kind), full_name=str(name))
            for name, kind in rows
        ]

    async def list_tree(self) -> list[TreeNode]:
        """Database > schema > table hierarchy.

        Only the session's current branch is listed when a database (and
        schema) is selected; otherwise every accessible database is walked.
        """
        self._ensure_conn()
        try:
            database, schema = self._current_context()
            if database and schema:
                schema_node = TreeNode(
                    name=schema,
                    type="schema",
                    full_name=f"{database}.{schema}",
                    children=self._tables_for_schema(database, schema),
                )
                return [TreeNode(database, "database", database, [schema_node])]
            if database:
                return [TreeNode(database, "database", database, self._schemas(database))]
            return self._databases()
        except Exception as e:
            raise QueryExecutionFailed(f"failed to list snowflake objects: {e}") from e

    def _current_context(self) -> tuple[str, str]:
        _, rows = self._query("SELECT CURRENT_DATABASE(), CURRENT_SCHEMA()")
        if not rows:
            return "", ""
        database, schema = rows[0]
        return (database or "").strip(), (schema or "").strip()

    def _databases(self) -> list[TreeNode]:
        _, rows = self._query(
            "SELECT DATABASE_NAME FROM SNOWFLAKE.INFORMATION_SCHEMA.DATABASES "
            "ORDER BY DATABASE_NAME"
        )
        return [
            TreeNode(str(name), "database", str(name), self._schemas(str(name)))
            for (name,) in rows
        ]

    def _schemas(self, database: str) -> list[TreeNode]:
        db = quote_identifier(database, "snowflake")
        _, rows = self._query(
            f"SELECT SCHEMA_NAME FROM {db}.INFORMATION_SCHEMA.SCHEMATA ORDER BY SCHEMA_NAME"
        )
        return [
            TreeNode(
                name=str(name),
                type="schema",
                full_name=f"{database}.{name}",
                children=self._tables_for_schema(database, str(name)),
            )
            for (name,) in rows
        ]

    def _tables_for_schema(self, database: str, schema: str) -> list[TreeNode]:
        db = escape_pyformat(quote_identifier(database, "snowflake"))
        _, rows = self._query(
            f"SELECT TABLE_NAME, TABLE_TYPE FROM {db}.INFORMATION_SCHEMA.TABLES "
            f"WHERE TABLE_SCHEMA = %s AND {_TABLE_TYPES} ORDER BY TABLE_NAME",
            (schema,),
        )
        return [
            TreeNode(
                name=str(name),
                type=_table_kind(kind),
                full_name=f"{database}.{schema}.{name}",
            )
            for name, kind in rows
        ]

    async def get_table_data(
        self, table: str, limit: int, offset: int, filters: list[Filter] | None = None
    ) -> QueryResult:
        self._ensure_conn()
        where, args = build_snowflake_where_clause(filters)
        source = quote_table_path(table, "snowflake")
        params = None
        if where:
            source = f"{escape_pyformat(source)} WHERE {where}"
            params = args

        try:
            _, count_rows = self._query(f"SELECT COUNT(*) FROM {source}", params)
            columns, rows = self._query(
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
        effective_sql = apply_row_limit(sql, "snowflake")
        try:
            columns, rows = self._query(effective_sql)
        except Exception as e:
            raise QueryExecutionFailed(f"query failed: {e}") from e
        return QueryResult.single_page(columns, rows)

    async def get_table_schema(self, table: str) -> TableSchema:
        """Columns from INFORMATION_SCHEMA; Snowflake reports no indexes."""
        self._ensure_conn()
        parts = [_unquote(p) for p in table.split(".") if p.strip()]
        name = parts[-1] if parts else table
        catalog = "INFORMATION_SCHEMA.COLUMNS"
        if len(parts) == 3:
            catalog = f"{escape_pyformat(quote_identifier(parts[0], 'snowflake'))}.{catalog}"
        schema_expr = "%s" if len(parts) >= 2 else "CURRENT_SCHEMA()"
        params: list[str] = [parts[-2]] if len(parts) >= 2 else []
        params.append(name)

        try:
            _, rows = self._query(
                "SELECT COLUMN_NAME, DATA_TYPE, IS_NULLABLE, COALESCE(COLUMN_DEFAULT, '') "
                f"FROM {catalog} WHERE TABLE_SCHEMA = {schema_expr} AND TABLE_NAME = %s "
                "ORDER BY ORDINAL_POSITION",
                params,
            )
        except Exception as e:
            raise QueryExecutionFailed(f"failed to read schema of {table}: {e}") from e

        columns = [
            ColumnInfo(
                name=str(col),
                type=str(data_type),
                nullable=nullable == "YES",
                default_value=str(default),
            )
            for col, data_type, nullable, default in rows
        ]
        return TableSchema(table_name=table, columns=columns)

    def as_tree_lister(self) -> TreeLister | None:
        return self

    def db_type(self) -> DatabaseType:
        return DatabaseType.SNOWFLAKE
