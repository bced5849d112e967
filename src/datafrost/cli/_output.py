"""Shared output formatting for CLI commands."""

from __future__ import annotations

import json
from collections.abc import Callable

import click

from datafrost.adapters._base import QueryResult, TableSchema, TreeNode


def emit(data: object, output_format: str, render_text: Callable[[], str]) -> None:
    """Print data as indented JSON, or the text rendering."""
    if output_format == "json":
        click.echo(json.dumps(data, indent=2, default=str))
    else:
        click.echo(render_text())


def format_query_result(result: QueryResult) -> str:
    lines: list[str] = []
    if result.columns:
        lines.append(" | ".join(result.columns))
        lines.append("-+-".join("-" * max(len(c), 5) for c in result.columns))
        for row in result.rows:
            lines.append(" | ".join("NULL" if v is None else str(v) for v in row))

    if result.total != result.count:
        lines.append(f"\n({result.count} of {result.total} rows, page {result.page})")
    else:
        lines.append(f"\n({result.count} rows)")
    return "\n".join(lines)


def format_tree(nodes: list[TreeNode], depth: int = 0) -> str:
    lines: list[str] = []
    for node in nodes:
        lines.append(f"{'  ' * depth}{node.name} ({node.type})")
        if node.children:
            lines.append(format_tree(node.children, depth + 1))
    return "\n".join(lines)


def format_schema(schema: TableSchema) -> str:
    lines = [schema.table_name]
    for c in schema.columns:
        nullable = "NULL" if c.nullable else "NOT NULL"
        line = f"  {c.name}  {c.type}  {nullable}"
        if c.is_primary_key:
            line += "  PRIMARY KEY"
        if c.default_value:
            line += f"  DEFAULT {c.default_value}"
        lines.append(line)
    if schema.indexes:
        lines.append("indexes:")
        for i in schema.indexes:
            unique = "UNIQUE " if i.unique else ""
            lines.append(f"  {unique}{i.name} ({', '.join(i.columns)})")
    if schema.constraints:
        lines.append("constraints:")
        for con in schema.constraints:
            lines.append(f"  {con.name}: {con.definition}")
    return "\n".join(lines)
