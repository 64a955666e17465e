"""
Migration differ: create tables and add what is missing.

:class:`Migration` compares a record's :class:`~tabula.model.Model` with the
live catalog and issues only additive DDL: ``CREATE TABLE``, ``ALTER TABLE
... ADD COLUMN`` and ``CREATE INDEX``.  It never drops or renames.  A column
that exists in the table but no longer matches any field (a rename) stops
the migration with :class:`~tabula.errors.ColumnRenameError`.

Running the same migration twice issues nothing on the second pass.

Examples:
    >>> with db.migration() as m:
    ...     m.create_table_if_not_exists(User)
    ...     m.create_table_if_not_exists(Post)

Tags:
    migration, ddl, schema, catalog, tabula
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from tabula.dialect.base import Dialect
from tabula.errors import ColumnRenameError, ConfigError, ErrorContext, MigrationError
from tabula.logging import LogContext, get_logger
from tabula.model import Model, extract, new_record, table_name

logger = get_logger(__name__)


class Migration:
    """Schema operations over one connection.

    Args:
        connection: DB-API connection; closed by :meth:`close` only when
            ``owns_connection`` is set.
        dialect: Dialect used for rendering and catalog queries.
        db_name: Database/schema name used by catalog queries.  Destructive
            helpers refuse to run unless it ends with ``test``.
    """

    def __init__(
        self,
        connection: Any,
        dialect: Dialect,
        db_name: str = "",
        *,
        log_sql: bool = False,
        owns_connection: bool = False,
    ):
        self.connection = connection
        self.dialect = dialect
        self.db_name = db_name
        self.log_sql = log_sql
        self._owns_connection = owns_connection

    def __repr__(self) -> str:
        return f"Migration(dialect={self.dialect.name!r}, db_name={self.db_name!r})"

    # -- execution helpers -------------------------------------------------

    def query_rows(self, sql: str, args: Sequence[Any] = ()) -> list[tuple]:
        """Run a catalog query written with ``?`` markers."""
        stmt = self.dialect.prepare(self.dialect.substitute_markers(sql))
        cursor = self.dialect.cursor(self.connection)
        try:
            stmt.execute(cursor, self.dialect.driver_args(args))
            return [tuple(r) for r in cursor.fetchall()]
        finally:
            cursor.close()

    def _exec(self, sql: str) -> None:
        if self.log_sql:
            logger.debug("sql.exec", sql=sql)
        cursor = self.dialect.cursor(self.connection)
        try:
            cursor.execute(sql)
            self.connection.commit()
        except Exception:
            self.connection.rollback()
            raise
        finally:
            cursor.close()

    # -- tables ------------------------------------------------------------

    def _model(self, record_or_cls: Any) -> Model:
        record = new_record(record_or_cls) if isinstance(record_or_cls, type) else record_or_cls
        return extract(record)

    def create_table_if_not_exists(self, record_or_cls: Any) -> list[str]:
        """Create the table if needed, then add missing columns and indexes.

        Returns the ``ALTER``/``CREATE INDEX`` statements that were issued.
        """
        model = self._model(record_or_cls)
        with LogContext(table=model.table, dialect=self.dialect.name):
            for sql in self.dialect.create_table_statements(model, if_not_exists=True):
                try:
                    self._exec(sql)
                except Exception as exc:
                    if self.dialect.catch_migration_error(exc):
                        continue
                    raise MigrationError(
                        f"create table {model.table!r} failed: {exc}",
                        cause=exc,
                        context=ErrorContext(table=model.table, sql=sql, dialect=self.dialect.name),
                    ) from exc
            return self.reconcile(model)

    def reconcile(self, model: Model) -> list[str]:
        """Bring an existing table up to ``model``; returns the issued DDL.

        Raises:
            ColumnRenameError: Existing columns no longer line up with fields.
            MigrationError: The first index that failed to build (later
                indexes are still attempted).
        """
        issued: list[str] = []
        columns = self.dialect.columns_in_table(self, model.table)
        if len(model.fields) > len(columns):
            present = [f for f in model.fields if f.column in columns]
            missing = [f for f in model.fields if f.column not in columns]
            if len(present) != len(columns):
                unmatched = sorted(columns - {f.column for f in present})
                raise ColumnRenameError(model.table, unmatched)
            for f in missing:
                sql = self.dialect.add_column_sql(model.table, f)
                self._exec(sql)
                issued.append(sql)
                logger.info("migration.column_added", table=model.table, column=f.column)

        first_error: MigrationError | None = None
        for index in model.indexes:
            try:
                sql = self.create_index_if_not_exists(
                    model.table, index.name, index.unique, *index.columns
                )
            except Exception as exc:
                logger.warning(
                    "migration.index_failed", table=model.table, index=index.name, error=str(exc)
                )
                if first_error is None:
                    first_error = MigrationError(
                        f"create index {index.name!r} on {model.table!r} failed: {exc}",
                        cause=exc,
                        context=ErrorContext(table=model.table, dialect=self.dialect.name),
                    )
                continue
            if sql is not None:
                issued.append(sql)
        if first_error is not None:
            raise first_error
        return issued

    def create_index_if_not_exists(
        self, table: Any, name: str, unique: bool, *columns: str
    ) -> str | None:
        """Create ``<table>_<name>`` unless present; returns the SQL run, if any."""
        table = table_name(table)
        full_name = f"{table}_{name}"
        if self.dialect.index_exists(self, table, full_name):
            return None
        sql = self.dialect.create_index_sql(full_name, table, unique, *columns)
        self._exec(sql)
        logger.info("migration.index_created", table=table, index=full_name)
        return sql

    def drop_table(self, record_or_cls: Any) -> None:
        """Drop a table. Only allowed against a database whose name ends with ``test``."""
        if not self.db_name.endswith("test"):
            raise ConfigError(
                f"drop table is only allowed on test databases, not {self.db_name!r}"
            )
        self.drop_table_if_exists(record_or_cls)

    def drop_table_if_exists(self, record_or_cls: Any) -> None:
        table = table_name(record_or_cls)
        try:
            self._exec(self.dialect.drop_table_sql(table))
        except Exception as exc:
            if not self.dialect.catch_migration_error(exc):
                raise

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        if self._owns_connection:
            self.connection.close()

    def __enter__(self) -> Migration:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["Migration"]
