"""
Prepared-statement cache.

Statements are keyed by their rendered SQL text.  Lookups are far more common
than inserts, so the cache sits behind a :class:`ReadWriteLock`: readers
proceed concurrently, and a writer double-checks under the write lock before
preparing so two racing callers never prepare the same SQL twice.

Architecture:
    ::

        get_or_prepare(sql, factory)
        ├── read lock    → hit?  return
        └── write lock   → hit?  return  (another writer won)
                         → factory(sql) → store → return

Examples:
    >>> cache = StatementCache()
    >>> stmt = cache.get_or_prepare("SELECT 1", PreparedStatement)
    >>> cache.get_or_prepare("SELECT 1", PreparedStatement) is stmt
    True

Tags:
    statements, cache, locking, concurrency, tabula
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any


class ReadWriteLock:
    """Many readers or one writer. Writers wait for active readers to drain."""

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            while self._writer or self._readers:
                self._cond.wait()
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class PreparedStatement:
    """A rendered statement ready for the driver.

    ``driver_sql`` is ``sql`` translated to the driver's paramstyle.  Without
    arguments the untranslated text is sent, so format-style drivers do not
    see escaped ``%%``.
    """

    def __init__(self, sql: str, driver_sql: str | None = None):
        self.sql = sql
        self.driver_sql = driver_sql if driver_sql is not None else sql

    def execute(self, cursor: Any, args: Sequence[Any] = ()) -> Any:
        if args:
            cursor.execute(self.driver_sql, tuple(args))
        else:
            cursor.execute(self.sql)
        return cursor

    def __repr__(self) -> str:
        return f"PreparedStatement({self.sql!r})"


class StatementCache:
    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._statements: dict[str, PreparedStatement] = {}

    def get_or_prepare(
        self, sql: str, factory: Callable[[str], PreparedStatement]
    ) -> PreparedStatement:
        with self._lock.read_locked():
            stmt = self._statements.get(sql)
        if stmt is not None:
            return stmt
        with self._lock.write_locked():
            stmt = self._statements.get(sql)
            if stmt is None:
                stmt = factory(sql)
                self._statements[sql] = stmt
        return stmt

    def clear(self) -> None:
        with self._lock.write_locked():
            self._statements.clear()

    def __contains__(self, sql: object) -> bool:
        with self._lock.read_locked():
            return sql in self._statements

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._statements)


__all__ = ["PreparedStatement", "ReadWriteLock", "StatementCache"]
