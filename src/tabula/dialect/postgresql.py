"""PostgreSQL dialect: double-quote quoting, ``$n`` markers, ``RETURNING`` keys."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any

from tabula.dialect.base import Dialect
from tabula.types import ColType, ScalarKind

if TYPE_CHECKING:
    from tabula.criteria import Criteria
    from tabula.migration import Migration
    from tabula.session import Session

_NUMBERED = re.compile(r"\$\d+")


def number_markers(sql: str, prefix: str) -> str:
    """Replace each ``?`` with ``<prefix>1``, ``<prefix>2``, ... in order."""
    out = []
    position = 1
    for c in sql:
        if c == "?":
            out.append(f"{prefix}{position}")
            position += 1
        else:
            out.append(c)
    return "".join(out)


class PostgreSQLDialect(Dialect):
    name = "postgresql"
    quote_char = '"'
    varchar_limit = 65532
    column_type_overrides = {
        ColType.INT: "integer",
        ColType.BIGINT: "bigint",
        ColType.BOOLEAN: "boolean",
        ColType.DOUBLE: "double precision",
        ColType.TIMESTAMP: "timestamp with time zone",
        ColType.TEXT: "text",
    }

    def substitute_markers(self, sql: str) -> str:
        return number_markers(sql, "$")

    def driver_sql(self, sql: str) -> str:
        # psycopg2 takes ``%s``; numbered markers are always in order.
        return _NUMBERED.sub("%s", sql.replace("%", "%%"))

    def kind_type(self, kind: ScalarKind, size: int) -> str:
        match kind:
            case ScalarKind.BOOL:
                return "boolean"
            case ScalarKind.INT:
                return "integer"
            case ScalarKind.BIGINT | ScalarKind.UINT:
                return "bigint"
            case ScalarKind.FLOAT:
                return "double precision"
            case ScalarKind.STRING:
                if 0 < size < self.varchar_limit:
                    return f"varchar({size})"
                return "text"
            case ScalarKind.BYTES:
                return "bytea"
            case ScalarKind.TIME:
                return "timestamp with time zone"
        raise ValueError(f"unhandled scalar kind {kind!r}")

    def primary_key_sql(self, is_string: bool, size: int) -> str:
        if is_string:
            return "text PRIMARY KEY"
        return "bigserial PRIMARY KEY"

    def insert_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        sql, values = super().insert_sql(criteria)
        return f"{sql} RETURNING {self.quote(criteria.model.pk.column)}", values

    def insert(self, session: Session) -> Any:
        sql, args = self.insert_sql(session.criteria)
        cursor = session.execute_rendered(sql, args)
        try:
            row = cursor.fetchone()
        finally:
            cursor.close()
        return row[0] if row else None

    def columns_in_table(self, migration: Migration, table: str) -> set[str]:
        rows = migration.query_rows(
            "SELECT COLUMN_NAME FROM INFORMATION_SCHEMA.COLUMNS WHERE TABLE_NAME = ?",
            [table],
        )
        return {row[0] for row in rows}

    def index_exists(self, migration: Migration, table: str, name: str) -> bool:
        rows = migration.query_rows(
            "SELECT indexname FROM pg_indexes WHERE tablename = ? AND indexname = ?",
            [table, name],
        )
        return bool(rows)
