"""SQLite adapter — local database files via the stdlib sqlite3 driver.

The SQL here is shared with the Turso adapter, which speaks the same dialect
over a libSQL connection.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping
from typing import Any

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
from datafrost.adapters._credentials import SQLiteCredentials, parse_credentials
from datafrost.adapters._sql import (
    SQLITE_READ_ONLY_KEYWORDS,
    apply_row_limit,
    build_where_clause,
    ensure_read_only,
    qmark,
    quote_identifier,
)

logger = logging.getLogger(__name__)

_LIST_TABLES_SQL = (
    "SELECT name, type FROM sqlite_master "
    "WHERE type IN ('table', 'view') AND name NOT LIKE 'sqlite_%' "
    "ORDER BY name"
)


def build_sqlite_where_clause(filters: list[Filter] | None) -> tuple[str, list[str]]:
    return build_where_clause(filters, dialect="sqlite", placeholder=qmark)


class SQLiteFamilyAdapter:
    """Operations common to every backend that speaks SQLite SQL over a DB-API connection."""

    def __init__(self) -> None:
        self._conn: Any = None

    async def close(self) -> None:
        if self._conn is None:
            return
        try:
            self._conn.close()
        except Exception as e:
            logger.warning("error closing %s connection: %s", self.db_type().value, e)
        finally:
            self._conn = None

    def _ensure_conn(self) -> Any:
        if self._conn is None:
            raise NotConnected()
        return self._conn

    def _query(
        self, sql: str, args: list[Any] | tuple[Any, ...] = ()
    ) -> tuple[list[str], list[list[object]]]:
        cur = self._conn.execute(sql, tuple(args))
        columns = [desc[0] for desc in cur.description] if cur.description else []
        rows = cur.fetchall() if cur.description else []
        return columns, convert_rows(rows)

    async def ping(self) -> None:
        self._ensure_conn()
        try:
            self._query("SELECT 1")
        except Exception as e:
            raise Unreachable(f"{self.db_type().value} ping failed: {e}") from e

    async def list_tables(self) -> list[TableInfo]:
        self._ensure_conn()
        try:
            _, rows = self._query(_LIST_TABLES_SQL)
        except Exception as e:
            raise QueryExecutionFailed(f"failed to list tables: {e}") from e
        return [TableInfo(name=str(name), type=str(kind)) for name, kind in rows]

    async def get_table_data(
        self, table: str, limit: int, offset: int, filters: list[Filter] | None = None
    ) -> QueryResult:
        self._ensure_conn()
        where, args = build_sqlite_where_clause(filters)
        source = quote_identifier(table, "sqlite")
        if where:
            source += f" WHERE {where}"

        try:
            _, count_rows = self._query(f"SELECT COUNT(*) FROM {source}", args)
            columns, rows = self._query(
                f"SELECT * FROM {source} LIMIT {int(limit)} OFFSET {int(offset)}", args
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
        ensure_read_only(sql, SQLITE_READ_ONLY_KEYWORDS)
        effective_sql = apply_row_limit(sql, "sqlite")
        try:
            columns, rows = self._query(effective_sql)
        except Exception as e:
            raise QueryExecutionFailed(f"query failed: {e}") from e
        return QueryResult.single_page(columns, rows)

    async def get_table_schema(self, table: str) -> TableSchema:
        self._ensure_conn()
        try:
            _, col_rows = self._query(
                "SELECT name, type, \"notnull\", dflt_value, pk FROM pragma_table_info(?)",
                (table,),
            )
            _, index_rows = self._query(
                "SELECT name, \"unique\" FROM pragma_index_list(?) ORDER BY seq", (table,)
            )
            indexes: list[IndexInfo] = []
            for index_name, unique in index_rows:
                _, cols = self._query(
                    "SELECT name FROM pragma_index_info(?) ORDER BY seqno", (index_name,)
                )
                indexes.append(
                    IndexInfo(
                        name=str(index_name),
                        unique=bool(unique),
                        columns=[str(c[0]) for c in cols if c[0]],
                    )
                )
            _, fk_rows = self._query(
                "SELECT id, \"table\", \"from\", \"to\" FROM pragma_foreign_key_list(?) "
                "ORDER BY id, seq",
                (table,),
            )
        except Exception as e:
            raise QueryExecutionFailed(f"failed to read schema of {table}: {e}") from e

        columns = [
            ColumnInfo(
                name=str(name),
                type=str(col_type or ""),
                nullable=not notnull,
                default_value="" if default is None else str(default),
                is_primary_key=bool(pk),
            )
            for name, col_type, notnull, default, pk in col_rows
        ]
        return TableSchema(
            table_name=table,
            columns=columns,
            indexes=indexes,
            constraints=_foreign_keys(table, fk_rows),
        )

    def as_tree_lister(self) -> TreeLister | None:
        return None

    def db_type(self) -> DatabaseType:
        raise NotImplementedError


def _foreign_keys(table: str, fk_rows: list[list[object]]) -> list[ConstraintInfo]:
    """Group pragma_foreign_key_list rows (one per column) into constraints."""
    grouped: dict[object, tuple[str, list[str], list[str]]] = {}
    for fk_id, target, source_col, target_col in fk_rows:
        entry = grouped.setdefault(fk_id, (str(target), [], []))
        entry[1].append(str(source_col))
        if target_col is not None:
            entry[2].append(str(target_col))

    constraints = []
    for fk_id, (target, source_cols, target_cols) in grouped.items():
        ref = f"{target}({', '.join(target_cols)})" if target_cols else target
        constraints.append(
            ConstraintInfo(
                name=f"{table}_fk_{fk_id}",
                type="FOREIGN KEY",
                definition=f"FOREIGN KEY ({', '.join(source_cols)}) REFERENCES {ref}",
            )
        )
    return constraints


class SQLiteAdapter(SQLiteFamilyAdapter):
    """Local SQLite file. Cached adapters are shared, so the connection is not thread-bound."""

    async def connect(self, credentials: Mapping[str, Any]) -> None:
        creds = parse_credentials(DatabaseType.SQLITE, credentials)
        assert isinstance(creds, SQLiteCredentials)
        try:
            self._conn = sqlite3.connect(creds.path, check_same_thread=False)
        except sqlite3.Error as e:
            raise ConnectionFailed(f"failed to open sqlite database {creds.path}: {e}") from e

    def db_type(self) -> DatabaseType:
        return DatabaseType.SQLITE
