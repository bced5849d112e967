"""Test filter compilation, identifier quoting, the read-only guard and row limiting."""

from __future__ import annotations

import pytest

from datafrost.adapters._base import Filter, RejectedStatement
from datafrost.adapters._sql import (
    SQLITE_READ_ONLY_KEYWORDS,
    apply_row_limit,
    build_where_clause,
    ensure_read_only,
    escape_pyformat,
    is_read_only,
    named,
    pyformat,
    qmark,
    quote_identifier,
    quote_table_path,
)


class TestBuildWhereClause:
    def test_no_filters(self):
        assert build_where_clause(None, dialect="sqlite", placeholder=qmark) == ("", [])
        assert build_where_clause([], dialect="sqlite", placeholder=qmark) == ("", [])

    def test_comparisons_keep_order(self):
        where, args = build_where_clause(
            [Filter("name", "eq", "alice"), Filter("age", "gt", "30")],
            dialect="sqlite",
            placeholder=qmark,
        )
        assert where == '"name" = ? AND "age" > ?'
        assert args == ["alice", "30"]

    @pytest.mark.parametrize(
        ("operator", "sql_op"),
        [
            ("neq", "!="),
            ("lt", "<"),
            ("gte", ">="),
            ("lte", "<="),
            ("like", "LIKE"),
            ("not_like", "NOT LIKE"),
        ],
    )
    def test_operator_mapping(self, operator, sql_op):
        where, args = build_where_clause(
            [Filter("c", operator, "v")], dialect="postgres", placeholder=pyformat
        )
        assert where == f'"c" {sql_op} %s'
        assert args == ["v"]

    def test_null_checks_bind_nothing(self):
        where, args = build_where_clause(
            [Filter("email", "is_null"), Filter("name", "is_not_null", "ignored")],
            dialect="sqlite",
            placeholder=qmark,
        )
        assert where == '"email" IS NULL AND "name" IS NOT NULL'
        assert args == []

    def test_unknown_operator_and_blank_column_are_dropped(self):
        where, args = build_where_clause(
            [
                Filter("name", "between", "a"),
                Filter("  ", "eq", "x"),
                Filter("id", "eq", "1"),
            ],
            dialect="sqlite",
            placeholder=qmark,
        )
        assert where == '"id" = ?'
        assert args == ["1"]

    def test_only_dropped_filters_gives_empty_clause(self):
        assert build_where_clause(
            [Filter("", "eq", "x"), Filter("a", "nope", "y")], dialect="sqlite", placeholder=qmark
        ) == ("", [])

    def test_bigquery_named_placeholders(self):
        where, args = build_where_clause(
            [Filter("a", "eq", "1"), Filter("b", "is_null"), Filter("c", "like", "%x%")],
            dialect="bigquery",
            placeholder=named,
        )
        assert where == "`a` = @p0 AND `b` IS NULL AND `c` LIKE @p1"
        assert args == ["1", "%x%"]

    def test_column_names_are_quoted_not_injected(self):
        where, _ = build_where_clause(
            [Filter('x" OR 1=1 --', "eq", "v")], dialect="sqlite", placeholder=qmark
        )
        assert where == '"x"" OR 1=1 --" = ?'

    def test_percent_in_column_escaped_for_pyformat(self):
        where, _ = build_where_clause(
            [Filter("growth%", "eq", "1")], dialect="postgres", placeholder=pyformat
        )
        assert where == '"growth%%" = %s'

    def test_escaped_table_and_column_render_with_bound_args(self):
        where, args = build_where_clause(
            [Filter("pct%", "gte", "5")], dialect="postgres", placeholder=pyformat
        )
        source = escape_pyformat(quote_identifier("growth%rate", "postgres"))
        sql = f"SELECT * FROM {source} WHERE {where}"
        assert sql % tuple(args) == 'SELECT * FROM "growth%rate" WHERE "pct%" >= 5'


class TestQuoting:
    def test_quote_identifier_escapes_quotes(self):
        assert quote_identifier('we"ird', "postgres") == '"we""ird"'

    def test_quote_identifier_bigquery_backticks(self):
        assert quote_identifier("proj.ds.events", "bigquery") == "`proj.ds.events`"

    def test_quote_table_path_splits_parts(self):
        assert quote_table_path("DB.PUBLIC.ORDERS", "snowflake") == '"DB"."PUBLIC"."ORDERS"'

    def test_quote_table_path_keeps_quoted_parts(self):
        assert quote_table_path('"My DB".sales', "snowflake") == '"My DB"."sales"'


class TestReadOnlyGuard:
    @pytest.mark.parametrize("sql", ["SELECT 1", "  select * from t", "WITH x AS (SELECT 1) SELECT * FROM x"])
    def test_allowed(self, sql):
        assert is_read_only(sql)
        ensure_read_only(sql)

    @pytest.mark.parametrize("sql", ["DELETE FROM t", "drop table t", "INSERT INTO t VALUES (1)", ""])
    def test_rejected(self, sql):
        with pytest.raises(RejectedStatement, match="only SELECT and WITH queries are allowed"):
            ensure_read_only(sql)

    def test_pragma_only_for_sqlite_family(self):
        ensure_read_only("PRAGMA table_info(users)", SQLITE_READ_ONLY_KEYWORDS)
        with pytest.raises(RejectedStatement):
            ensure_read_only("PRAGMA table_info(users)")

    def test_sqlite_message_names_pragma(self):
        with pytest.raises(
            RejectedStatement, match="only SELECT, WITH, and PRAGMA queries are allowed"
        ):
            ensure_read_only("UPDATE t SET a = 1", SQLITE_READ_ONLY_KEYWORDS)


class TestApplyRowLimit:
    def test_adds_limit_to_bare_select(self):
        assert apply_row_limit("SELECT * FROM users", "sqlite") == "SELECT * FROM users LIMIT 1000"

    def test_custom_limit(self):
        assert apply_row_limit("SELECT id FROM t", "postgres", limit=5).endswith("LIMIT 5")

    def test_with_clause_gets_limit(self):
        out = apply_row_limit("WITH x AS (SELECT 1 AS a) SELECT a FROM x", "postgres")
        assert out.startswith("WITH")
        assert out.endswith("LIMIT 1000")

    def test_existing_limit_unchanged(self):
        sql = "SELECT * FROM users LIMIT 5"
        assert apply_row_limit(sql, "sqlite") == sql

    def test_group_by_unchanged(self):
        sql = "SELECT status, COUNT(*) FROM users GROUP BY status"
        assert apply_row_limit(sql, "postgres") == sql

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT 1 UNION SELECT 2",
            "SELECT 1; SELECT 2",
            "SELECT * FROM (",
        ],
    )
    def test_other_statements_unchanged(self, sql):
        assert apply_row_limit(sql, "sqlite") == sql
