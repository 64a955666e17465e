"""PostgreSQL adapter over a ``psycopg2`` threaded pool.

The pool is opened from :meth:`DatabaseConfig.to_dsn`, so URL query
variables such as ``sslmode=disable`` reach libpq as written.
"""

from __future__ import annotations

from types import ModuleType
from typing import Any

from tabula.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseType


class PostgreSQLAdapter(DatabaseAdapter):
    kind = DatabaseType.POSTGRESQL
    requirement = "psycopg2-binary"

    def _load_driver(self) -> ModuleType:
        import psycopg2.pool

        return psycopg2.pool

    def _open(self, driver: ModuleType) -> Any:
        return driver.ThreadedConnectionPool(
            1,
            self._config.pool_size,
            dsn=self._config.to_dsn(),
            connect_timeout=self._config.connect_timeout,
            **self._config.options,
        )

    def _acquire(self, handle: Any) -> Connection:
        return handle.getconn()

    def _release(self, handle: Any, conn: Any) -> None:
        if handle is not None:
            handle.putconn(conn)

    def _close(self, handle: Any) -> None:
        handle.closeall()


__all__ = ["PostgreSQLAdapter"]
