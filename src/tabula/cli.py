"""
CLI: ``tabula``, render and apply table DDL for record classes.

Targets are ``module:Class`` import paths::

    tabula ddl app.models:User --dialect postgresql
    tabula migrate app.models:User app.models:Post --url sqlite:///app.db
"""

from __future__ import annotations

import importlib

try:
    import typer
    from rich.console import Console
    from rich.table import Table
except ImportError as e:  # pragma: no cover
    raise SystemExit("Missing CLI deps.  Install with:  pip install typer rich") from e

from tabula.adapters import DatabaseConfig
from tabula.database import Database
from tabula.dialect import get_dialect
from tabula.errors import TabulaError
from tabula.model import extract, new_record

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(no_args_is_help=True, help="Record-to-table mapping tools.")


def load_target(target: str) -> type:
    """Import ``module:Class``."""
    module_name, sep, attr = target.partition(":")
    if not sep or not attr:
        raise typer.BadParameter(f"expected module:Class, got {target!r}")
    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"cannot import {module_name!r}: {exc}") from exc
    try:
        return getattr(module, attr)
    except AttributeError:
        raise typer.BadParameter(f"{module_name!r} has no attribute {attr!r}") from None


def _print_statement(sql: str) -> None:
    console.print(sql if sql.endswith(";") else sql + ";", markup=False, highlight=False, soft_wrap=True)


def _fail(exc: TabulaError) -> None:
    err_console.print(f"[bold red]Error[/bold red] ({exc.category.value}): {exc.message}")
    raise typer.Exit(code=1)


@app.command()
def ddl(
    targets: list[str] = typer.Argument(..., help="Record classes as module:Class"),
    dialect: str = typer.Option("sqlite", "--dialect", "-d", help="sqlite, postgresql, mysql or oracle"),
) -> None:
    """Print CREATE TABLE and CREATE INDEX statements."""
    try:
        d = get_dialect(dialect)
        for target in targets:
            model = extract(new_record(load_target(target)))
            for sql in d.create_table_statements(model):
                _print_statement(sql)
            for index in model.indexes:
                name = f"{model.table}_{index.name}"
                sql = d.create_index_sql(name, model.table, index.unique, *index.columns)
                _print_statement(sql)
    except TabulaError as exc:
        _fail(exc)


@app.command()
def migrate(
    targets: list[str] = typer.Argument(..., help="Record classes as module:Class"),
    url: str = typer.Option(..., "--url", "-u", envvar="TABULA_DATABASE_URL", help="Database URL"),
    log_sql: bool = typer.Option(False, "--log-sql", help="Log every statement"),
) -> None:
    """Create missing tables, columns and indexes."""
    try:
        with Database.from_url(url, log_sql=log_sql) as db, db.migration() as m:
            table = Table()
            table.add_column("Table")
            table.add_column("Statement")
            for target in targets:
                cls = load_target(target)
                issued = m.create_table_if_not_exists(cls)
                name = extract(new_record(cls)).table
                if not issued:
                    table.add_row(name, "[dim]up to date[/dim]")
                for sql in issued:
                    table.add_row(name, sql)
            console.print(table)
    except TabulaError as exc:
        _fail(exc)


@app.command()
def dsn(url: str = typer.Argument(..., help="Database URL")) -> None:
    """Show the driver data source name for a URL."""
    try:
        console.print(DatabaseConfig.from_url(url).to_dsn(), markup=False, highlight=False, soft_wrap=True)
    except TabulaError as exc:
        _fail(exc)


if __name__ == "__main__":
    app()
