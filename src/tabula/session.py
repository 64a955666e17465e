"""
Query session: the per-caller handle for reads, writes and transactions.

A :class:`Session` is obtained from :meth:`Database.session` and holds one
connection plus the mutable :class:`~tabula.criteria.Criteria` that the
fluent builders (``where``, ``limit``, ``order_by``, ...) fill in.  Every
operation consumes the criteria and resets it, so builders never leak from
one call into the next.

Manifesto:
    - **One handle, one caller:** sessions are not shared across threads
    - **Autocommit outside transactions:** each operation commits (or rolls
      back) on its own unless ``begin()`` was called
    - **First error wins:** inside a transaction the first execution error
      is remembered and raised again by ``commit()``

Architecture:
    ::

        Session
        ├── builders      where / where_equal / where_in / condition
        │                 limit / offset / order_by[_desc] / omit_*
        ├── records       find / find_all / iterate / save / bulk_insert
        │                 update / delete / count / contains_value
        ├── raw SQL       exec / query / query_row / query_map[_slice]
        │                 query_struct
        └── transactions  begin / commit / rollback / transaction()

Examples:
    >>> with db.session() as s:
    ...     user = User(name="ann")
    ...     s.save(user)
    ...     found = s.find(User(id=user.id))
    ...     s.where("name = ?", "ann").order_by("id").find_all(User)

Guardrails:
    ❌ DON'T: Call ``begin()`` twice on one session
    ✅ DO: Use ``with session.transaction():`` for scoped work

    ❌ DON'T: Update or delete with neither a primary key nor a condition
    ✅ DO: ``session.where("state = ?", 0).delete(Basic())``

Tags:
    session, query, transaction, crud, tabula
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, NamedTuple

from tabula.condition import Condition
from tabula.criteria import Criteria, Order
from tabula.errors import (
    ErrorContext,
    MissingConditionError,
    MissingPrimaryKeyError,
    NoRowsError,
    QueryError,
    TabulaError,
    TransactionError,
    ValidationError,
)
from tabula.logging import get_logger
from tabula.mapper import row_to_dict, scan_into
from tabula.model import Model, extract, new_record, table_name
from tabula.protocols import Validator
from tabula.statements import PreparedStatement, StatementCache

if TYPE_CHECKING:
    from tabula.database import Database

logger = get_logger(__name__)


class ExecResult(NamedTuple):
    rows_affected: int
    last_insert_id: Any = None


class Session:
    def __init__(self, database: Database, connection: Any):
        self.database = database
        self.dialect = database.dialect
        self.connection = connection
        self.log_sql = database.log_sql
        self.criteria = Criteria()
        self.first_tx_error: BaseException | None = None
        self._in_tx = False
        self._tx_statements: StatementCache | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"Session(dialect={self.dialect.name!r}, in_transaction={self._in_tx})"

    # ------------------------------------------------------------------
    # Criteria builders
    # ------------------------------------------------------------------

    def reset(self) -> Session:
        """Start a fresh criteria for the next operation."""
        self.criteria = Criteria()
        return self

    def where(self, expr: str, *args: Any) -> Session:
        self.criteria.condition = Condition(expr, *args)
        return self

    def where_equal(self, column: str, value: Any) -> Session:
        self.criteria.condition = Condition.equal(column, value)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> Session:
        self.criteria.condition = Condition.in_(column, values)
        return self

    def condition(self, condition: Condition | None) -> Session:
        self.criteria.condition = condition
        return self

    def limit(self, limit: int) -> Session:
        self.criteria.limit = limit
        return self

    def offset(self, offset: int) -> Session:
        self.criteria.offset = offset
        return self

    def order_by(self, path: str) -> Session:
        self.criteria.order_bys.append(Order(self.dialect.quote(path), False))
        return self

    def order_by_desc(self, path: str) -> Session:
        self.criteria.order_bys.append(Order(self.dialect.quote(path), True))
        return self

    def omit_fields(self, *names: str) -> Session:
        """Leave attributes (or references) out of the next operation."""
        self.criteria.omit_fields = list(names)
        return self

    def omit_join(self) -> Session:
        self.criteria.omit_join = True
        return self

    # ------------------------------------------------------------------
    # Execution primitives
    # ------------------------------------------------------------------

    def new_cursor(self) -> Any:
        return self.dialect.cursor(self.connection)

    def _prepare(self, sql: str) -> PreparedStatement:
        cache = self._tx_statements if self._in_tx else self.database.statements
        return cache.get_or_prepare(sql, self.dialect.prepare)

    def _record(self, err: BaseException) -> BaseException:
        """Remember the first error raised inside a transaction."""
        if self._in_tx:
            logger.error("sql.error", error=str(err), dialect=self.dialect.name)
            if self.first_tx_error is None:
                self.first_tx_error = err
        return err

    def execute_rendered(
        self, sql: str, args: Sequence[Any] = (), cursor: Any = None
    ) -> Any:
        """Run SQL already in the dialect's marker syntax; returns the cursor."""
        if self.log_sql:
            logger.debug("sql.exec", sql=sql, args=list(args))
        stmt = self._prepare(sql)
        owned = cursor is None
        if owned:
            cursor = self.new_cursor()
        try:
            stmt.execute(cursor, self.dialect.driver_args(args))
        except Exception as exc:
            # a caller-supplied cursor is closed by the caller
            if owned:
                cursor.close()
            err = QueryError(
                str(exc),
                cause=exc,
                context=ErrorContext(sql=sql, dialect=self.dialect.name),
            )
            raise self._record(err) from exc
        return cursor

    def _fetch(self, sql: str, args: Sequence[Any]) -> tuple[list[str], list[tuple]]:
        cursor = self.execute_rendered(sql, args)
        try:
            columns = [d[0] for d in cursor.description or ()]
            rows = [tuple(r) for r in cursor.fetchall()]
        finally:
            cursor.close()
        return columns, rows

    def _rollback_quietly(self) -> None:
        try:
            self.connection.rollback()
        except Exception as exc:
            logger.warning("session.rollback_failed", error=str(exc))

    @contextmanager
    def _autocommit(self) -> Iterator[None]:
        """Commit after the block unless a transaction is open."""
        if not self._in_tx:
            self.database.transactions.check(self)
        try:
            yield
        except BaseException:
            if not self._in_tx:
                self._rollback_quietly()
            raise
        if not self._in_tx:
            self.connection.commit()

    def _validate(self, record: Any) -> None:
        if not isinstance(record, Validator) or not callable(record.validate):
            return
        try:
            result = record.validate(self)
        except TabulaError:
            raise
        except Exception as exc:
            raise ValidationError(str(exc), cause=exc) from exc
        if isinstance(result, ValidationError):
            raise result
        if isinstance(result, Exception):
            raise ValidationError(str(result), cause=result)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _select_model(self, record: Any) -> Model:
        c = self.criteria
        return extract(record, root=not c.omit_join, omit=c.omit_fields)

    def find(self, record: Any) -> Any:
        """Load one row into ``record``.

        A non-zero primary key on ``record`` becomes ``table.pk = ?`` AND-ed
        around any condition set with ``where``.  Joined references are
        populated in the same round trip.

        Raises:
            NoRowsError: Nothing matched.
        """
        try:
            c = self.criteria
            c.model = self._select_model(record)
            c.limit = 1
            if not c.model.pk_zero():
                pk = c.model.pk
                path = f"{self.dialect.quote(c.model.table)}.{self.dialect.quote(pk.column)}"
                id_condition = Condition(f"{path} = ?", pk.value)
                c.condition = id_condition.and_condition(c.condition)
            sql, args = self.dialect.query_sql(c)
            with self._autocommit():
                columns, rows = self._fetch(sql, args)
            if not rows:
                raise NoRowsError(context=ErrorContext(table=c.model.table, sql=sql))
            scan_into(record, c.model, columns, rows[0], self.dialect)
            return record
        finally:
            self.reset()

    def find_all(self, record_cls: type) -> list[Any]:
        """All rows matching the current criteria as new ``record_cls`` instances."""
        try:
            model = self._select_model(new_record(record_cls))
            self.criteria.model = model
            sql, args = self.dialect.query_sql(self.criteria)
            with self._autocommit():
                columns, rows = self._fetch(sql, args)
            return [
                scan_into(new_record(record_cls), model, columns, row, self.dialect)
                for row in rows
            ]
        finally:
            self.reset()

    def iterate(self, record: Any, callback: Callable[[Any], Any]) -> int:
        """Load each matching row into ``record`` in turn and call ``callback(record)``.

        Exceptions raised by ``callback`` stop the iteration and propagate.
        Returns the number of rows visited.
        """
        try:
            model = self._select_model(record)
            self.criteria.model = model
            sql, args = self.dialect.query_sql(self.criteria)
            visited = 0
            with self._autocommit():
                cursor = self.execute_rendered(sql, args)
                try:
                    columns = [d[0] for d in cursor.description or ()]
                    while (row := cursor.fetchone()) is not None:
                        scan_into(record, model, columns, row, self.dialect)
                        visited += 1
                        callback(record)
                finally:
                    cursor.close()
            return visited
        finally:
            self.reset()

    def _count(self, table: Any, condition: Condition | None) -> int:
        sql, args = self.dialect.count_sql(table_name(table), condition)
        _, rows = self._fetch(sql, args)
        return int(rows[0][0]) if rows else 0

    def count(self, table: Any) -> int:
        """Row count of ``table`` (name, record or class) under the current condition."""
        try:
            with self._autocommit():
                return self._count(table, self.criteria.condition)
        finally:
            self.reset()

    def contains_value(self, table: Any, column: str, value: Any) -> bool:
        """True when some row has ``column = value``; useful before a unique save."""
        quoted = self.dialect.quote(column)
        sql = self.dialect.substitute_markers(
            f"SELECT {quoted} FROM {self.dialect.quote(table_name(table))} WHERE {quoted} = ?"
        )
        with self._autocommit():
            _, rows = self._fetch(sql, [value])
        return bool(rows)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def _write_back_id(self, record: Any, model: Model, new_id: Any) -> None:
        pk = model.pk
        if new_id and pk.kind is not None and pk.kind.is_integer:
            setattr(record, pk.attr, int(new_id))

    def save(self, record: Any) -> int:
        """Insert or update ``record``; returns rows affected.

        With a non-zero primary key that already exists the row is updated,
        otherwise it is inserted and a generated integer key is written back.
        ``updated`` timestamps are set on every save, ``created`` on insert.

        Raises:
            ValidationError: The record's ``validate`` hook rejected it.
            MissingPrimaryKeyError: The record has no primary key field.
        """
        try:
            self._validate(record)
            model = extract(record, root=True, omit=self.criteria.omit_fields)
            if model.pk is None:
                raise MissingPrimaryKeyError(type(record).__name__)
            now = datetime.now(timezone.utc)
            updated = model.time_field("updated")
            if updated is not None:
                updated.value = now
            created = model.time_field("created")

            with self._autocommit():
                exists = False
                pk_condition = None
                if not model.pk_zero():
                    pk_condition = Condition.equal(self.dialect.quote(model.pk.column), model.pk.value)
                    exists = self._count(model.table, pk_condition) > 0
                self.criteria.model = model
                if exists:
                    self.criteria.condition = pk_condition
                    affected = self.dialect.update(self)
                else:
                    if created is not None:
                        created.value = now
                    self.criteria.condition = None
                    new_id = self.dialect.insert(self)
                    affected = 1

            if not exists:
                self._write_back_id(record, model, new_id)
                if created is not None:
                    setattr(record, created.attr, now)
            if updated is not None:
                setattr(record, updated.attr, now)
            return affected
        finally:
            self.reset()

    def bulk_insert(self, records: Iterable[Any]) -> int:
        """Insert every record inside one transaction (opened here if needed)."""
        own_tx = not self._in_tx
        if own_tx:
            self.begin()
        inserted = 0
        try:
            for record in records:
                self._validate(record)
                model = extract(record, root=False)
                if model.pk is None:
                    raise MissingPrimaryKeyError(type(record).__name__)
                self.criteria.model = model
                self._write_back_id(record, model, self.dialect.insert(self))
                inserted += 1
        except Exception as exc:
            self._record(exc)
            if own_tx:
                self.rollback()
            raise
        else:
            if own_tx:
                self.commit()
        finally:
            self.reset()
        return inserted

    def update(self, record: Any) -> int:
        """UPDATE the non-NULL fields of ``record`` by primary key and/or condition.

        Raises:
            MissingConditionError: Zero primary key and no condition.
        """
        try:
            self._validate(record)
            self.criteria.model = extract(record, root=True, omit=self.criteria.omit_fields)
            self.criteria.merge_pk_condition(self.dialect)
            if self.criteria.condition is None:
                raise MissingConditionError("cannot update without a condition")
            with self._autocommit():
                return self.dialect.update(self)
        finally:
            self.reset()

    def delete(self, record: Any) -> int:
        """DELETE by primary key and/or condition; returns rows affected."""
        try:
            self.criteria.model = extract(record, root=True, omit=self.criteria.omit_fields)
            self.criteria.merge_pk_condition(self.dialect)
            if self.criteria.condition is None:
                raise MissingConditionError("cannot delete without a condition")
            with self._autocommit():
                return self.dialect.delete(self)
        finally:
            self.reset()

    # ------------------------------------------------------------------
    # Raw SQL (``?`` markers are substituted for the dialect)
    # ------------------------------------------------------------------

    def exec(self, sql: str, *args: Any) -> ExecResult:
        try:
            sql = self.dialect.substitute_markers(sql)
            with self._autocommit():
                cursor = self.execute_rendered(sql, args)
                try:
                    return ExecResult(cursor.rowcount, getattr(cursor, "lastrowid", None))
                finally:
                    cursor.close()
        finally:
            self.reset()

    def query(self, sql: str, *args: Any) -> list[tuple]:
        with self._autocommit():
            _, rows = self._fetch(self.dialect.substitute_markers(sql), args)
        return rows

    def query_row(self, sql: str, *args: Any) -> tuple:
        rows = self.query(sql, *args)
        if not rows:
            raise NoRowsError(context=ErrorContext(sql=sql))
        return rows[0]

    def query_map_slice(self, sql: str, *args: Any) -> list[dict[str, Any]]:
        with self._autocommit():
            columns, rows = self._fetch(self.dialect.substitute_markers(sql), args)
        return [row_to_dict(columns, row) for row in rows]

    def query_map(self, sql: str, *args: Any) -> dict[str, Any]:
        rows = self.query_map_slice(sql, *args)
        if not rows:
            raise NoRowsError(context=ErrorContext(sql=sql))
        return rows[0]

    def query_struct(self, dest: Any, sql: str, *args: Any) -> Any:
        """Map raw query rows onto records by column name.

        ``dest`` is either a record instance (filled from the first row) or a
        record class (a list of new instances is returned).
        """
        with self._autocommit():
            columns, rows = self._fetch(self.dialect.substitute_markers(sql), args)
        if isinstance(dest, type):
            return [scan_into(new_record(dest), None, columns, row, self.dialect) for row in rows]
        if not rows:
            raise NoRowsError(context=ErrorContext(sql=sql))
        return scan_into(dest, None, columns, rows[0], self.dialect)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @property
    def in_transaction(self) -> bool:
        return self._in_tx

    def begin(self) -> None:
        if self._in_tx:
            raise TransactionError("cannot start nested transaction")
        self.database.transactions.claim(self)
        self._in_tx = True
        self._tx_statements = StatementCache()
        self.first_tx_error = None

    def _end_transaction(self) -> None:
        self._in_tx = False
        self._tx_statements = None
        self.database.transactions.release(self)

    def commit(self) -> None:
        """Commit, then raise the first error seen inside the transaction, if any."""
        if not self._in_tx:
            raise TransactionError("commit without begin")
        try:
            self.connection.commit()
        except Exception as exc:
            self._record(QueryError(f"commit failed: {exc}", cause=exc))
        finally:
            self._end_transaction()
        if self.first_tx_error is not None:
            raise self.first_tx_error

    def rollback(self) -> None:
        if not self._in_tx:
            raise TransactionError("rollback without begin")
        try:
            self.connection.rollback()
        except Exception as exc:
            raise self._record(QueryError(f"rollback failed: {exc}", cause=exc)) from exc
        finally:
            self._end_transaction()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """``begin`` on entry; ``commit`` on success, ``rollback`` on error."""
        self.begin()
        try:
            yield self
        except BaseException:
            if self._in_tx:
                self.rollback()
            raise
        self.commit()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Roll back an open transaction and give the connection slot back."""
        if self._closed:
            return
        self._closed = True
        try:
            if self._in_tx:
                self.rollback()
        finally:
            self.database.release(self)

    def __enter__(self) -> Session:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


__all__ = ["ExecResult", "Session"]
