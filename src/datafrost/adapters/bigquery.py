"""BigQuery adapter — one dataset per connection, via google-cloud-bigquery."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from google.cloud import bigquery

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
    Unreachable,
    page_number,
)
from datafrost.adapters._convert import to_canonical
from datafrost.adapters._credentials import BigQueryCredentials, parse_credentials
from datafrost.adapters._sql import (
    READ_ONLY_KEYWORDS,
    apply_row_limit,
    build_where_clause,
    ensure_read_only,
    named,
    quote_identifier,
)
from datafrost.auth import bigquery_credentials

logger = logging.getLogger(__name__)


def build_bigquery_where_clause(filters: list[Filter] | None) -> tuple[str, list[str]]:
    """Compile filters with @p0, @p1, ... named parameters.

    Values are bound as STRING query parameters, never spliced into the SQL text.
    """
    return build_where_clause(filters, dialect="bigquery", placeholder=named)


def query_parameters(args: list[str]) -> list[bigquery.ScalarQueryParameter]:
    return [bigquery.ScalarQueryParameter(named(i)[1:], "STRING", v) for i, v in enumerate(args)]


class BigQueryAdapter:
    """BigQuery adapter using the google-cloud-bigquery SDK."""

    def __init__(self) -> None:
        self._client: bigquery.Client | None = None
        self._project_id: str = ""
        self._dataset: str = ""

    async def connect(self, credentials: Mapping[str, Any]) -> None:
        creds = parse_credentials(DatabaseType.BIGQUERY, credentials)
        assert isinstance(creds, BigQueryCredentials)
        sa_credentials = bigquery_credentials(creds.service_account_info)
        try:
            self._client = bigquery.Client(project=creds.project_id, credentials=sa_credentials)
        except Exception as e:
            raise ConnectionFailed(f"failed to create bigquery client: {e}") from e
        self._project_id = creds.project_id
        self._dataset = creds.dataset

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            self._client.close()
        except Exception as e:
            logger.warning("error closing BigQuery client: %s", e)
        finally:
            self._client = None

    def _ensure_client(self) -> bigquery.Client:
        if self._client is None:
            raise NotConnected()
        return self._client

    @property
    def _dataset_ref(self) -> str:
        return f"{self._project_id}.{self._dataset}"

    def _table_ref(self, table: str) -> str:
        return quote_identifier(f"{self._dataset_ref}.{table}", "bigquery")

    def _run(self, sql: str, args: list[str] | None = None) -> tuple[list[str], list[list[object]]]:
        client = self._ensure_client()
        job_config = bigquery.QueryJobConfig(use_legacy_sql=False)
        if args:
            job_config.query_parameters = query_parameters(args)
        result_iter = client.query(sql, job_config=job_config).result()
        rows = [[to_canonical(v) for v in row.values()] for row in result_iter]
        columns = [field.name for field in result_iter.schema] if result_iter.schema else []
        return columns, rows

    async def ping(self) -> None:
        client = self._ensure_client()
        try:
            client.get_dataset(self._dataset_ref)
        except Exception as e:
            raise Unreachable(f"dataset not found or no access: {e}") from e

    async def list_tables(self) -> list[TableInfo]:
        client = self._ensure_client()
        try:
            items = list(client.list_tables(self._dataset_ref))
        except Exception as e:
            raise QueryExecutionFailed(f"BigQuery list tables failed: {e}") from e
        return [
            TableInfo(
                name=t.table_id,
                type="view" if t.table_type in ("VIEW", "MATERIALIZED_VIEW") else "table",
            )
            for t in items
        ]

    async def get_table_data(
        self, table: str, limit: int, offset: int, filters: list[Filter] | None = None
    ) -> QueryResult:
        self._ensure_client()
        where, args = build_bigquery_where_clause(filters)
        source = self._table_ref(table)
        if where:
            source += f" WHERE {where}"

        page_sql = f"SELECT * FROM {source} LIMIT {int(limit)}"
        if offset > 0:
            page_sql += f" OFFSET {int(offset)}"

        try:
            _, count_rows = self._run(f"SELECT COUNT(*) AS count FROM {source}", args)
            columns, rows = self._run(page_sql, args)
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
        self._ensure_client()
        ensure_read_only(sql, READ_ONLY_KEYWORDS)
        effective_sql = apply_row_limit(sql, "bigquery")
        try:
            columns, rows = self._run(effective_sql)
        except Exception as e:
            raise QueryExecutionFailed(f"BigQuery query failed: {e}") from e
        return QueryResult.single_page(columns, rows)

    async def get_table_schema(self, table: str) -> TableSchema:
        """Columns only: BigQuery has no indexes and no enforced constraints."""
        client = self._ensure_client()
        try:
            t = client.get_table(f"{self._dataset_ref}.{table}")
        except Exception as e:
            raise QueryExecutionFailed(f"BigQuery describe table {table} failed: {e}") from e

        columns = [
            ColumnInfo(
                name=field.name,
                type=field.field_type,
                nullable=field.mode != "REQUIRED",
                default_value=getattr(field, "default_value_expression", None) or "",
            )
            for field in t.schema
        ]
        return TableSchema(table_name=table, columns=columns)

    def as_tree_lister(self) -> TreeLister | None:
        return None

    def db_type(self) -> DatabaseType:
        return DatabaseType.BIGQUERY
