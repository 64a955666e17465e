"""MySQL / MariaDB adapter over ``mysql.connector`` pooling.

SQL reaches the driver in ``%s`` format style; see
:class:`~tabula.dialect.mysql.MySQLDialect`.  Closing a pooled connection
puts it back in the pool, so :meth:`MySQLAdapter.release_connection` just
closes it.
"""

from __future__ import annotations

from itertools import count
from types import ModuleType
from typing import Any

from tabula.logging import get_logger
from tabula.protocols import Connection

from .base import DatabaseAdapter
from .types import DatabaseType

logger = get_logger(__name__)

_pool_ids = count(1)


class MySQLAdapter(DatabaseAdapter):
    kind = DatabaseType.MYSQL
    requirement = "mysql-connector-python"

    def _connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for ``mysql.connector``; options win over defaults."""
        cfg = self._config
        kwargs: dict[str, Any] = {
            "database": cfg.database,
            "user": cfg.username,
            "password": cfg.password,
            "connect_timeout": cfg.connect_timeout,
            "autocommit": False,
            "charset": "utf8mb4",
        }
        if cfg.unix_socket:
            kwargs["unix_socket"] = cfg.host
        else:
            kwargs.update(host=cfg.host, port=cfg.port)
        kwargs.update(cfg.options)
        return kwargs

    def _load_driver(self) -> ModuleType:
        from mysql.connector import pooling

        return pooling

    def _open(self, driver: ModuleType) -> Any:
        # pool names are global inside mysql.connector
        return driver.MySQLConnectionPool(
            pool_name=f"tabula_{next(_pool_ids)}",
            pool_size=self._config.pool_size,
            **self._connect_kwargs(),
        )

    def _acquire(self, handle: Any) -> Connection:
        return handle.get_connection()

    def _release(self, handle: Any, conn: Any) -> None:
        try:
            conn.close()
        except Exception as exc:
            logger.warning("adapter.release_failed", db_type=self.kind.value, error=str(exc))

    def _close(self, handle: Any) -> None:
        # pools have no close; idle connections go with the pool object
        pass


__all__ = ["MySQLAdapter"]
