"""
Shared SQL renderer.

:class:`Dialect` renders a :class:`~tabula.model.Model` plus
:class:`~tabula.criteria.Criteria` into SQL text and a positional argument
list.  Rendering always starts from ``?`` markers; :meth:`substitute_markers`
rewrites them into the dialect's placeholder syntax as the last step, and
:meth:`driver_sql` adapts that text to the Python driver's paramstyle when
the two differ.

Manifesto:
    Four engines, one renderer.  Each concrete dialect overrides only the
    points where engines really diverge:

    - **Quoting:** backtick vs double quote
    - **Placeholders:** ``?`` vs ``$1`` vs ``:1``
    - **Keys:** auto-increment / serial / sequence+trigger, and whether the
      generated key comes back from ``RETURNING`` or ``lastrowid``
    - **Types:** one exhaustive ``match`` on :class:`ScalarKind` per dialect
    - **Catalog:** where existing columns and indexes are listed

Architecture:
    ::

        Dialect (base.py)
        ├── quote / substitute_markers / driver_sql
        ├── column_type → kind_type (abstract) | column_type_overrides
        ├── create_table_statements / drop / add column / create index
        ├── insert_sql / update_sql / delete_sql / query_sql / count_sql
        ├── insert / update / delete   (run through a Session)
        ├── to_python / to_driver      (value coercion)
        └── columns_in_table / index_exists / catch_migration_error
               │
        ┌──────┴───────┬───────────────┬───────────────┐
        MySQLDialect   PostgreSQLDialect SQLiteDialect  OracleDialect

Guardrails:
    ❌ DON'T: Interpolate values into SQL text
    ✅ DO: Append ``?`` and the value to ``args``; markers are substituted last

Tags:
    dialect, sql, rendering, ddl, dml, tabula
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

from tabula.errors import MissingConditionError, UnsupportedColumnTypeError
from tabula.model import Model, ModelField
from tabula.statements import PreparedStatement
from tabula.types import FieldType, ScalarKind

if TYPE_CHECKING:
    from tabula.criteria import Criteria
    from tabula.migration import Migration
    from tabula.session import Session

JOIN_SEPARATOR = "___"
TIME_LAYOUT = "%Y-%m-%d %H:%M:%S"
UINT64_MASK = 0xFFFF_FFFF_FFFF_FFFF


class Dialect(ABC):
    """Base renderer. Defaults follow MySQL-style backtick quoting and ``?``."""

    name: str = "base"
    quote_char: str = "`"
    varchar_limit: int = 65532
    supports_if_not_exists: bool = True
    column_type_overrides: dict[str, str] = {}

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"

    # -- identifiers and markers -------------------------------------------

    def quote(self, identifier: str) -> str:
        """Quote each dot-separated segment: ``a.b`` -> ``\\`a\\`.\\`b\\```."""
        q = self.quote_char
        return ".".join(f"{q}{part}{q}" for part in identifier.split("."))

    def substitute_markers(self, sql: str) -> str:
        return sql

    def driver_sql(self, sql: str) -> str:
        """Translate rendered SQL to the driver's paramstyle."""
        return sql

    def prepare(self, sql: str) -> PreparedStatement:
        return PreparedStatement(sql, self.driver_sql(sql))

    def cursor(self, connection: Any) -> Any:
        return connection.cursor()

    # -- type mapping ------------------------------------------------------

    def column_type(self, f: ModelField) -> str:
        """SQL type for a field; a ``coltype:`` override wins over the kind."""
        if f.col_type:
            try:
                return self.column_type_overrides[f.col_type]
            except KeyError:
                raise UnsupportedColumnTypeError(f.col_type, self.name, f.column) from None
        if f.kind is None:
            raise UnsupportedColumnTypeError(repr(f.field_type.python_type), self.name, f.column)
        return self.kind_type(f.kind, f.size)

    @abstractmethod
    def kind_type(self, kind: ScalarKind, size: int) -> str:
        ...

    @abstractmethod
    def primary_key_sql(self, is_string: bool, size: int) -> str:
        ...

    # -- DDL ---------------------------------------------------------------

    def _column_def(self, f: ModelField) -> str:
        parts = [self.quote(f.column)]
        if f.pk:
            parts.append(self.primary_key_sql(f.is_string, f.size))
        else:
            parts.append(self.column_type(f))
            if f.notnull:
                parts.append("NOT NULL")
            if f.default:
                parts.append("DEFAULT " + f.default)
        return " ".join(parts)

    def create_table_sql(self, model: Model, if_not_exists: bool = True) -> str:
        """Single CREATE TABLE statement; FK constraints follow the columns."""
        head = "CREATE TABLE "
        if if_not_exists and self.supports_if_not_exists:
            head += "IF NOT EXISTS "
        defs = ", ".join(self._column_def(f) for f in model.fields)
        constraints = ""
        for ref in model.references.values():
            if ref.foreign_key:
                constraints += (
                    f", FOREIGN KEY ({self.quote(ref.local_column)}) REFERENCES "
                    f"{self.quote(ref.model.table)} ({self.quote(ref.model.pk.column)}) ON DELETE CASCADE"
                )
        return f"{head}{self.quote(model.table)} ( {defs}{constraints} )"

    def create_table_statements(self, model: Model, if_not_exists: bool = True) -> list[str]:
        """All statements needed to create the table, in execution order."""
        return [self.create_table_sql(model, if_not_exists)]

    def drop_table_sql(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote(table)}"

    def add_column_sql(self, table: str, f: ModelField) -> str:
        return f"ALTER TABLE {self.quote(table)} ADD COLUMN {self.quote(f.column)} {self.column_type(f)}"

    def create_index_sql(self, name: str, table: str, unique: bool, *columns: str) -> str:
        head = "CREATE UNIQUE INDEX" if unique else "CREATE INDEX"
        cols = ", ".join(self.quote(c) for c in columns)
        return f"{head} {self.quote(name)} ON {self.quote(table)} ({cols})"

    # -- DML ---------------------------------------------------------------

    def insert_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        model = criteria.model
        columns, values = model.columns_and_values(for_update=False)
        quoted = ", ".join(self.quote(c) for c in columns)
        markers = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {self.quote(model.table)} ({quoted}) VALUES ({markers})"
        return self.substitute_markers(sql), values

    def update_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        model = criteria.model
        if criteria.condition is None:
            raise MissingConditionError("update requires a condition or a primary key value")
        columns, values = model.columns_and_values(for_update=True)
        pairs = ", ".join(f"{self.quote(c)} = ?" for c in columns)
        expr, args = criteria.condition.merge()
        sql = f"UPDATE {self.quote(model.table)} SET {pairs} WHERE {expr}"
        return self.substitute_markers(sql), values + args

    def delete_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        if criteria.condition is None:
            raise MissingConditionError("delete requires a condition or a primary key value")
        expr, args = criteria.condition.merge()
        sql = f"DELETE FROM {self.quote(criteria.model.table)} WHERE {expr}"
        return self.substitute_markers(sql), args

    def table_alias_sql(self, quoted_table: str, quoted_alias: str) -> str:
        return f"{quoted_table} AS {quoted_alias}"

    def paging_sql(self, limit: int, offset: int) -> tuple[str, list[Any]]:
        sql, args = "", []
        if limit > 0:
            sql += " LIMIT ?"
            args.append(limit)
        if offset > 0:
            sql += " OFFSET ?"
            args.append(offset)
        return sql, args

    def query_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        """SELECT with one LEFT JOIN per reference.

        Root columns are table-qualified when there is at least one join;
        joined columns are projected as ``<alias>___<column>``.
        """
        model = criteria.model
        table = self.quote(model.table)
        has_join = bool(model.references)
        columns = [
            f"{table}.{self.quote(f.column)}" if has_join else self.quote(f.column)
            for f in model.fields
        ]
        tables = [table]
        for ref in model.references.values():
            alias = self.quote(ref.alias)
            left_key = f"{table}.{self.quote(ref.local_column)}"
            parent_pk = f"{alias}.{self.quote(ref.model.pk.column)}"
            target = self.table_alias_sql(self.quote(ref.model.table), alias)
            tables.append(f"LEFT JOIN {target} ON {left_key} = {parent_pk}")
            for f in ref.model.fields:
                columns.append(
                    f"{self.quote(ref.alias + '.' + f.column)} AS "
                    f"{self.quote(ref.alias + JOIN_SEPARATOR + f.column)}"
                )

        sql = f"SELECT {', '.join(columns)} FROM {' '.join(tables)}"
        args: list[Any] = []
        if criteria.condition is not None:
            expr, cargs = criteria.condition.merge()
            sql += " WHERE " + expr
            args.extend(cargs)
        if criteria.order_bys:
            sql += " ORDER BY " + ", ".join(
                o.path + (" DESC" if o.desc else "") for o in criteria.order_bys
            )
        paging, paging_args = self.paging_sql(criteria.limit, criteria.offset)
        sql += paging
        args.extend(paging_args)
        return self.substitute_markers(sql), args

    def count_sql(self, table: str, condition: Any = None) -> tuple[str, list[Any]]:
        sql = f"SELECT COUNT(*) FROM {self.quote(table)}"
        args: list[Any] = []
        if condition is not None:
            expr, args = condition.merge()
            sql += " WHERE " + expr
        return self.substitute_markers(sql), args

    # -- execution ---------------------------------------------------------

    def insert(self, session: Session) -> Any:
        """Run the INSERT and return the generated key (``lastrowid``)."""
        sql, args = self.insert_sql(session.criteria)
        cursor = session.execute_rendered(sql, args)
        try:
            return cursor.lastrowid
        finally:
            cursor.close()

    def update(self, session: Session) -> int:
        sql, args = self.update_sql(session.criteria)
        cursor = session.execute_rendered(sql, args)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def delete(self, session: Session) -> int:
        sql, args = self.delete_sql(session.criteria)
        cursor = session.execute_rendered(sql, args)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    # -- value coercion ----------------------------------------------------

    def to_driver(self, value: Any) -> Any:
        """Adapt one argument before it is bound."""
        return value

    def driver_args(self, args: Sequence[Any]) -> list[Any]:
        return [self.to_driver(a) for a in args]

    def parse_bool(self, raw: Any) -> bool:
        return bool(raw)

    def parse_time(self, raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, date):
            return datetime(raw.year, raw.month, raw.day)
        if isinstance(raw, (bytes, bytearray, memoryview)):
            raw = bytes(raw).decode()
        if isinstance(raw, str):
            try:
                return datetime.strptime(raw, TIME_LAYOUT)
            except ValueError:
                return datetime.fromisoformat(raw)
        if isinstance(raw, (int, float)):
            return datetime.fromtimestamp(raw, tz=timezone.utc)
        raise TypeError(f"cannot convert {type(raw).__name__} to datetime")

    def to_python(self, field_type: FieldType, raw: Any) -> Any:
        """Coerce a driver value to the field's Python representation."""
        if raw is None:
            return None
        if hasattr(raw, "read"):
            raw = raw.read()
        match field_type.kind:
            case ScalarKind.BOOL:
                return self.parse_bool(raw)
            case ScalarKind.INT | ScalarKind.BIGINT:
                return int(raw)
            case ScalarKind.UINT:
                return int(raw) & UINT64_MASK
            case ScalarKind.FLOAT:
                return float(raw)
            case ScalarKind.STRING:
                if isinstance(raw, (bytes, bytearray, memoryview)):
                    return bytes(raw).decode()
                return raw if isinstance(raw, str) else str(raw)
            case ScalarKind.BYTES:
                if isinstance(raw, str):
                    return raw.encode()
                return bytes(raw)
            case ScalarKind.TIME:
                return self.parse_time(raw)
            case _:
                return raw

    # -- catalog -----------------------------------------------------------

    def columns_in_table(self, migration: Migration, table: str) -> set[str]:
        rows = migration.query_rows(
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ?",
            [migration.db_name, table],
        )
        return {row[0] for row in rows}

    @abstractmethod
    def index_exists(self, migration: Migration, table: str, name: str) -> bool:
        ...

    def catch_migration_error(self, exc: BaseException) -> bool:
        """True when ``exc`` only says the object already exists."""
        return False


__all__ = ["Dialect", "JOIN_SEPARATOR", "TIME_LAYOUT"]
