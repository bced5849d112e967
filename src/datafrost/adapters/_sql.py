"""SQL helpers shared by the adapters: quoting, filter compilation, read-only guard."""

from __future__ import annotations

import os
from collections.abc import Callable, Iterable

import sqlglot
from sqlglot import exp
from sqlglot.errors import SqlglotError

from datafrost.adapters._base import Filter, FilterOperator, RejectedStatement

READ_ONLY_KEYWORDS = ("SELECT", "WITH")
SQLITE_READ_ONLY_KEYWORDS = ("SELECT", "WITH", "PRAGMA")

DEFAULT_ROW_LIMIT = int(os.environ.get("DATAFROST_ROW_LIMIT", "1000"))

_COMPARISONS: dict[str, str] = {
    FilterOperator.EQ.value: "=",
    FilterOperator.NEQ.value: "!=",
    FilterOperator.GT.value: ">",
    FilterOperator.LT.value: "<",
    FilterOperator.GTE.value: ">=",
    FilterOperator.LTE.value: "<=",
    FilterOperator.LIKE.value: "LIKE",
    FilterOperator.NOT_LIKE.value: "NOT LIKE",
}

_NULL_CHECKS: dict[str, str] = {
    FilterOperator.IS_NULL.value: "IS NULL",
    FilterOperator.IS_NOT_NULL.value: "IS NOT NULL",
}

Placeholder = Callable[[int], str]


def qmark(_: int) -> str:
    return "?"


def pyformat(_: int) -> str:
    return "%s"


def named(index: int) -> str:
    return f"@p{index}"


def escape_pyformat(sql: str) -> str:
    """Double % so pyformat drivers (psycopg, snowflake) read it as a literal."""
    return sql.replace("%", "%%")


def quote_identifier(name: str, dialect: str) -> str:
    """Quote a single identifier for dialect, escaping embedded quote characters."""
    return exp.to_identifier(name, quoted=True).sql(dialect=dialect)


def quote_table_path(name: str, dialect: str) -> str:
    """Quote each dot-separated part of a table reference.

    Parts that are already double-quoted are kept as they are.
    """
    parts: list[str] = []
    for part in name.split("."):
        part = part.strip()
        if not part:
            continue
        if len(part) >= 2 and part.startswith('"') and part.endswith('"'):
            parts.append(part)
        else:
            parts.append(quote_identifier(part, dialect))
    return ".".join(parts)


def build_where_clause(
    filters: Iterable[Filter] | None,
    *,
    dialect: str,
    placeholder: Placeholder,
) -> tuple[str, list[str]]:
    """Compile filters into a WHERE body (no keyword) and its bound arguments.

    Filters with a blank column or an unknown operator produce no condition.
    Arguments are ordered as their placeholders appear.
    """
    conditions: list[str] = []
    args: list[str] = []

    for f in filters or ():
        if not f.column.strip():
            continue

        column = quote_identifier(f.column, dialect)
        if placeholder is pyformat:
            column = escape_pyformat(column)

        if f.operator in _COMPARISONS:
            conditions.append(f"{column} {_COMPARISONS[f.operator]} {placeholder(len(args))}")
            args.append(f.value)
        elif f.operator in _NULL_CHECKS:
            conditions.append(f"{column} {_NULL_CHECKS[f.operator]}")

    if not conditions:
        return "", []
    return " AND ".join(conditions), args


def is_read_only(sql: str, allowed: Iterable[str] = READ_ONLY_KEYWORDS) -> bool:
    upper = sql.strip().upper()
    return any(upper.startswith(keyword) for keyword in allowed)


def ensure_read_only(sql: str, allowed: tuple[str, ...] = READ_ONLY_KEYWORDS) -> None:
    """Reject statements that do not start with an allow-listed keyword.

    This is a prefix check, not a parser: "SELECT 1; DROP TABLE t" passes it and
    relies on the driver refusing multiple statements.
    """
    if not is_read_only(sql, allowed):
        raise RejectedStatement(f"only {_join_keywords(allowed)} queries are allowed")


def _join_keywords(keywords: tuple[str, ...]) -> str:
    if len(keywords) <= 2:
        return " and ".join(keywords)
    return ", ".join(keywords[:-1]) + f", and {keywords[-1]}"


def apply_row_limit(sql: str, dialect: str, *, limit: int = DEFAULT_ROW_LIMIT) -> str:
    """Add LIMIT to an unbounded single SELECT; return anything else unchanged.

    No LIMIT is added when one is already present, when the query aggregates
    with GROUP BY, or when sqlglot cannot parse the statement.
    """
    try:
        statements = [s for s in sqlglot.parse(sql, read=dialect) if s is not None]
    except SqlglotError:
        return sql
    if len(statements) != 1:
        return sql

    statement = statements[0]
    if not isinstance(statement, exp.Select):
        return sql
    if statement.args.get("limit") is not None or statement.args.get("group") is not None:
        return sql

    return statement.limit(limit).sql(dialect=dialect)
