"""SQLite adapter: a connection per session, shared only for in-memory databases."""

from __future__ import annotations

import threading
from collections.abc import Callable
from types import ModuleType
from typing import Any

from tabula.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseConfig, DatabaseType


class _SQLitePool:
    """Idle connections to one database file.

    An in-memory database lives and dies with its connection, so there the
    pool holds exactly one connection and hands it to every caller.
    """

    def __init__(self, factory: Callable[[], Any], shared: bool):
        self._factory = factory
        self._lock = threading.Lock()
        self._idle: list[Any] = [factory()]
        self._busy: set[Any] = set()
        self.shared = shared

    def acquire(self) -> Any:
        if self.shared:
            return self._idle[0]
        with self._lock:
            conn = self._idle.pop() if self._idle else None
        if conn is None:
            conn = self._factory()
        with self._lock:
            self._busy.add(conn)
        return conn

    def release(self, conn: Any) -> None:
        if self.shared:
            return
        with self._lock:
            self._busy.discard(conn)
            self._idle.append(conn)

    def close(self) -> None:
        with self._lock:
            conns = [*self._idle, *self._busy]
            self._idle.clear()
            self._busy.clear()
        for conn in conns:
            conn.close()


class SQLiteAdapter(DatabaseAdapter):
    """
    File databases give each session its own connection, so one session's
    transaction is invisible to (and blocks writers in) the others.  An
    in-memory database has a single connection shared by every session.
    Foreign keys are switched on, and ``readonly`` sets ``query_only``.
    ``timeout`` (seconds) is how long a writer waits for a lock held by
    another connection.
    """

    kind = DatabaseType.SQLITE
    requirement = "sqlite3"

    def __init__(self, path: str | DatabaseConfig = ":memory:", /, **settings: Any):
        if isinstance(path, DatabaseConfig):
            super().__init__(path, **settings)
        else:
            super().__init__(None, path=path, **settings)

    @property
    def database_name(self) -> str:
        # sqlite_master is not schema-qualified
        return ""

    @property
    def in_memory(self) -> bool:
        path = self._config.path
        return path == ":memory:" or "mode=memory" in path

    def _load_driver(self) -> ModuleType:
        import sqlite3

        return sqlite3

    def _connect(self, driver: ModuleType) -> Any:
        path = self._config.path
        conn = driver.connect(
            path,
            timeout=self._config.options.get("timeout", 5.0),
            check_same_thread=False,
            uri=path.startswith("file:"),
        )
        conn.execute("PRAGMA foreign_keys = ON")
        if self._config.readonly:
            conn.execute("PRAGMA query_only = ON")
        return conn

    def _open(self, driver: ModuleType) -> Any:
        return _SQLitePool(lambda: self._connect(driver), shared=self.in_memory)

    def _acquire(self, handle: Any) -> Connection:
        return handle.acquire()

    def _release(self, handle: Any, conn: Any) -> None:
        if handle is not None:
            handle.release(conn)
        else:
            conn.close()


__all__ = ["SQLiteAdapter"]
