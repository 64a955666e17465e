"""Oracle adapter over an ``oracledb`` (python-oracledb) pool.

The pool connects with the Easy Connect string from
:meth:`DatabaseConfig.to_dsn`: ``host:port/service``, where ``database`` is
the service name.
"""

from __future__ import annotations

from types import ModuleType
from typing import Any

from tabula.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseType


class OracleAdapter(DatabaseAdapter):
    kind = DatabaseType.ORACLE
    requirement = "oracledb"

    def _load_driver(self) -> ModuleType:
        import oracledb

        return oracledb

    def _open(self, driver: ModuleType) -> Any:
        return driver.create_pool(
            user=self._config.username,
            password=self._config.password,
            dsn=self._config.to_dsn(),
            min=1,
            max=self._config.pool_size,
            increment=1,
            **self._config.options,
        )

    def _acquire(self, handle: Any) -> Connection:
        return handle.acquire()

    def _release(self, handle: Any, conn: Any) -> None:
        if handle is not None:
            handle.release(conn)


__all__ = ["OracleAdapter"]
