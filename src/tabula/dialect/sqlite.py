"""SQLite dialect.

Booleans and every integer kind are stored as ``integer``; timestamps are
stored as text (``YYYY-MM-DD HH:MM:SS[.ffffff][+HH:MM]``) and parsed back
with :data:`~tabula.dialect.base.TIME_LAYOUT`, ISO-8601 and epoch fallbacks.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from tabula.dialect.base import Dialect
from tabula.types import ColType, ScalarKind

if TYPE_CHECKING:
    from tabula.migration import Migration


class SQLiteDialect(Dialect):
    name = "sqlite"
    quote_char = "`"
    column_type_overrides = {
        ColType.INT: "integer",
        ColType.BIGINT: "integer",
        ColType.BOOLEAN: "integer",
        ColType.DOUBLE: "real",
        ColType.TIMESTAMP: "text",
        ColType.TEXT: "text",
    }

    def kind_type(self, kind: ScalarKind, size: int) -> str:
        match kind:
            case ScalarKind.BOOL | ScalarKind.INT | ScalarKind.BIGINT | ScalarKind.UINT:
                return "integer"
            case ScalarKind.FLOAT:
                return "real"
            case ScalarKind.STRING:
                return "text"
            case ScalarKind.BYTES:
                return "blob"
            case ScalarKind.TIME:
                return "text"
        raise ValueError(f"unhandled scalar kind {kind!r}")

    def primary_key_sql(self, is_string: bool, size: int) -> str:
        if is_string:
            return "text PRIMARY KEY NOT NULL"
        return "integer PRIMARY KEY AUTOINCREMENT NOT NULL"

    def to_driver(self, value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat(" ")
        if isinstance(value, date):
            return value.isoformat()
        return value

    def parse_bool(self, raw: Any) -> bool:
        return int(raw) != 0

    def columns_in_table(self, migration: Migration, table: str) -> set[str]:
        # table_info rows: (cid, name, type, notnull, dflt_value, pk)
        rows = migration.query_rows(f"PRAGMA table_info('{table}')", [])
        return {row[1].decode() if isinstance(row[1], bytes) else row[1] for row in rows}

    def index_exists(self, migration: Migration, table: str, name: str) -> bool:
        rows = migration.query_rows(f"PRAGMA index_list('{table}')", [])
        return any(row[1] == name for row in rows)
