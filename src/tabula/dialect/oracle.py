"""Oracle dialect.

Integer primary keys are fed by a sequence and a BEFORE INSERT trigger, so
CREATE TABLE expands to three statements.  Oracle has no ``IF NOT EXISTS``;
ORA-00955 (name already used) and ORA-00942 (table does not exist) are
treated as benign during migration.  Paging uses ``OFFSET .. ROWS FETCH
NEXT .. ROWS ONLY`` (12c+), and table aliases are written without ``AS``.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from tabula.dialect.base import Dialect
from tabula.dialect.postgresql import number_markers
from tabula.model import Model
from tabula.types import ColType, ScalarKind

if TYPE_CHECKING:
    from tabula.criteria import Criteria
    from tabula.migration import Migration
    from tabula.session import Session

_BENIGN_CODES = ("ORA-00955", "ORA-00942")


class OracleDialect(Dialect):
    name = "oracle"
    quote_char = '"'
    varchar_limit = 4000
    supports_if_not_exists = False
    column_type_overrides = {
        ColType.INT: "NUMBER(10)",
        ColType.BIGINT: "NUMBER(19)",
        ColType.BOOLEAN: "NUMBER(1)",
        ColType.DOUBLE: "NUMBER(16,2)",
        ColType.TIMESTAMP: "DATE",
        ColType.TEXT: "CLOB",
    }

    def substitute_markers(self, sql: str) -> str:
        return number_markers(sql, ":")

    def kind_type(self, kind: ScalarKind, size: int) -> str:
        match kind:
            case ScalarKind.BOOL:
                return "NUMBER(1)"
            case ScalarKind.INT | ScalarKind.BIGINT | ScalarKind.UINT:
                return f"NUMBER({size})" if size > 0 else "NUMBER"
            case ScalarKind.FLOAT:
                return f"NUMBER({size // 10},{size % 10})" if size > 0 else "NUMBER(16,2)"
            case ScalarKind.STRING | ScalarKind.BYTES:
                if 0 < size < self.varchar_limit:
                    return f"VARCHAR2({size})"
                return "CLOB"
            case ScalarKind.TIME:
                return "DATE"
        raise ValueError(f"unhandled scalar kind {kind!r}")

    def primary_key_sql(self, is_string: bool, size: int) -> str:
        if is_string:
            return f"VARCHAR2({size or 255}) PRIMARY KEY NOT NULL"
        return f"NUMBER({size or 16}) PRIMARY KEY NOT NULL"

    # -- DDL ---------------------------------------------------------------

    def create_table_statements(self, model: Model, if_not_exists: bool = True) -> list[str]:
        statements = [self.create_table_sql(model, False)]
        if model.pk is None or model.pk.is_string:
            return statements
        pk = model.pk.column
        table_pk = f"{model.table}_{pk}"
        sequence = f"{table_pk}_seq"
        statements.append(
            f"CREATE SEQUENCE {self.quote(sequence)} "
            "MINVALUE 1 NOMAXVALUE START WITH 1 INCREMENT BY 1 NOCACHE NOCYCLE"
        )
        statements.append(
            f"CREATE TRIGGER {self.quote(table_pk + '_trigger')} "
            f"BEFORE INSERT ON {self.quote(model.table)} FOR EACH ROW "
            f"WHEN (new.{self.quote(pk)} IS NULL) "
            f"BEGIN SELECT {self.quote(sequence)}.nextval INTO :new.{self.quote(pk)} FROM dual; END;"
        )
        return statements

    def drop_table_sql(self, table: str) -> str:
        return f"DROP TABLE {self.quote(table)}"

    def add_column_sql(self, table: str, f: Any) -> str:
        return f"ALTER TABLE {self.quote(table)} ADD ({self.quote(f.column)} {self.column_type(f)})"

    # -- DML ---------------------------------------------------------------

    def table_alias_sql(self, quoted_table: str, quoted_alias: str) -> str:
        return f"{quoted_table} {quoted_alias}"

    def paging_sql(self, limit: int, offset: int) -> tuple[str, list[Any]]:
        sql, args = "", []
        if offset > 0:
            sql += " OFFSET ? ROWS"
            args.append(offset)
        if limit > 0:
            sql += " FETCH NEXT ? ROWS ONLY"
            args.append(limit)
        return sql, args

    def insert_sql(self, criteria: Criteria) -> tuple[str, list[Any]]:
        """INSERT ... RETURNING pk INTO :n; the caller binds the out variable."""
        sql, values = super().insert_sql(criteria)
        out = len(values) + 1
        return f"{sql} RETURNING {self.quote(criteria.model.pk.column)} INTO :{out}", values

    def insert(self, session: Session) -> Any:
        sql, args = self.insert_sql(session.criteria)
        cursor = session.new_cursor()
        out = cursor.var(str if session.criteria.model.pk.is_string else int)
        try:
            session.execute_rendered(sql, [*args, out], cursor=cursor)
            value = out.getvalue()
        finally:
            cursor.close()
        # DML returning yields one value per affected row
        if isinstance(value, list):
            value = value[0] if value else None
        return value

    def to_driver(self, value: Any) -> Any:
        if isinstance(value, bool):
            return int(value)
        if isinstance(value, datetime) and value.tzinfo is not None:
            return value.replace(tzinfo=None)
        return value

    def parse_bool(self, raw: Any) -> bool:
        return int(raw) != 0

    # -- catalog -----------------------------------------------------------

    def columns_in_table(self, migration: Migration, table: str) -> set[str]:
        rows = migration.query_rows(
            "SELECT COLUMN_NAME FROM USER_TAB_COLUMNS WHERE TABLE_NAME = ?", [table]
        )
        return {row[0] for row in rows}

    def index_exists(self, migration: Migration, table: str, name: str) -> bool:
        rows = migration.query_rows(
            "SELECT INDEX_NAME FROM USER_INDEXES WHERE TABLE_NAME = ? AND INDEX_NAME = ?",
            [table, name],
        )
        return bool(rows)

    def catch_migration_error(self, exc: BaseException) -> bool:
        text = str(exc)
        return any(code in text for code in _BENIGN_CODES)
