"""MySQL dialect: backtick quoting, ``?`` markers, ``AUTO_INCREMENT`` keys.

``mysql.connector`` uses the ``format`` paramstyle, so rendered ``?`` markers
are sent to the driver as ``%s``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from tabula.dialect.base import Dialect
from tabula.types import ColType, ScalarKind

if TYPE_CHECKING:
    from tabula.migration import Migration


def qmark_to_format(sql: str) -> str:
    return sql.replace("%", "%%").replace("?", "%s")


class MySQLDialect(Dialect):
    name = "mysql"
    quote_char = "`"
    varchar_limit = 65532
    column_type_overrides = {
        ColType.INT: "int",
        ColType.BIGINT: "bigint",
        ColType.BOOLEAN: "boolean",
        ColType.DOUBLE: "double",
        ColType.TIMESTAMP: "timestamp",
        ColType.TEXT: "longtext",
    }

    def driver_sql(self, sql: str) -> str:
        return qmark_to_format(sql)

    def kind_type(self, kind: ScalarKind, size: int) -> str:
        inline = 0 < size < self.varchar_limit
        match kind:
            case ScalarKind.BOOL:
                return "boolean"
            case ScalarKind.INT:
                return "int"
            case ScalarKind.BIGINT | ScalarKind.UINT:
                return "bigint"
            case ScalarKind.FLOAT:
                return "double"
            case ScalarKind.STRING:
                return f"varchar({size})" if inline else "longtext"
            case ScalarKind.BYTES:
                return f"varbinary({size})" if inline else "longblob"
            case ScalarKind.TIME:
                return "timestamp"
        raise ValueError(f"unhandled scalar kind {kind!r}")

    def primary_key_sql(self, is_string: bool, size: int) -> str:
        if is_string:
            return f"varchar({size or 255}) PRIMARY KEY"
        return "bigint PRIMARY KEY AUTO_INCREMENT"

    def parse_bool(self, raw: Any) -> bool:
        return int(raw) != 0

    def index_exists(self, migration: Migration, table: str, name: str) -> bool:
        rows = migration.query_rows(
            "SELECT INDEX_NAME FROM INFORMATION_SCHEMA.STATISTICS "
            "WHERE TABLE_SCHEMA = ? AND TABLE_NAME = ? AND INDEX_NAME = ?",
            [migration.db_name, table, name],
        )
        return bool(rows)
