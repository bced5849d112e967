"""CLI entry point for `datafrost`."""

from __future__ import annotations

import logging

import click

from datafrost.cli.browse import adapters, browse, schema, tables, tree
from datafrost.cli.connect import connect
from datafrost.cli.query import query


@click.group()
@click.version_option(package_name="datafrost")
@click.option("-v", "--verbose", is_flag=True, help="Log adapter and cache activity to stderr.")
def main(verbose: bool) -> None:
    """datafrost: browse SQLite, Turso, PostgreSQL, BigQuery and Snowflake databases."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


main.add_command(adapters)
main.add_command(connect)
main.add_command(tables)
main.add_command(tree)
main.add_command(browse)
main.add_command(schema)
main.add_command(query)
