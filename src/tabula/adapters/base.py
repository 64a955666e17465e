"""Adapter base: one driver, the connections it hands out, and nothing else.

Manifesto:
    Sessions and migrations work on plain DB-API connections.  The adapter
    is the only place a driver module is imported, and it imports it lazily
    so ``import tabula`` never needs psycopg2, mysql-connector or oracledb.

    A subclass supplies four small hooks; the base class turns a missing
    driver into :class:`~tabula.errors.ConfigError` and a failed open into
    :class:`~tabula.errors.DatabaseConnectionError`::

        _load_driver()          import and return the driver module
        _open(driver)           build the pool (or the single connection)
        _acquire(handle)        take a connection from it
        _release(handle, conn)  give it back (default: nothing)
        _close(handle)          tear the pool down

Tags:
    tabula, database, adapter, lazy-import
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import fields, replace
from types import ModuleType
from typing import Any, ClassVar

from tabula.dialect import Dialect, get_dialect
from tabula.errors import ConfigError, DatabaseConnectionError
from tabula.logging import get_logger
from tabula.protocols import Connection

from .types import DatabaseConfig, DatabaseType

logger = get_logger(__name__)

_CONFIG_FIELDS = frozenset(f.name for f in fields(DatabaseConfig)) - {"db_type", "options"}


class DatabaseAdapter(ABC):
    """Opens connections for one :class:`DatabaseConfig`.

    Adapters are built from a config or from its fields as keywords;
    keywords that are not config fields land in ``config.options`` and are
    passed to the driver::

        PostgreSQLAdapter(host="db", database="app", pool_size=3)
        PostgreSQLAdapter(DatabaseConfig.from_url(url))
    """

    kind: ClassVar[DatabaseType]
    #: pip requirement named when the driver cannot be imported
    requirement: ClassVar[str] = ""

    def __init__(self, config: DatabaseConfig | None = None, /, **settings: Any):
        known = {k: settings.pop(k) for k in list(settings) if k in _CONFIG_FIELDS}
        if config is None:
            config = DatabaseConfig(db_type=self.kind, **known)
        elif known:
            config = replace(config, **known)
        if settings:
            config = replace(config, options={**config.options, **settings})
        self._config = config.with_defaults()
        self._dialect: Dialect = get_dialect(self._config.db_type.value)
        self._handle: Any = None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._config.to_target()!r}, connected={self.is_connected})"

    @property
    def config(self) -> DatabaseConfig:
        return self._config

    @property
    def dialect(self) -> Dialect:
        return self._dialect

    @property
    def db_type(self) -> DatabaseType:
        return self._config.db_type

    @property
    def database_name(self) -> str:
        """Schema name handed to catalog queries."""
        return self._config.database

    @property
    def is_connected(self) -> bool:
        return self._handle is not None

    # -- driver hooks --------------------------------------------------------

    @abstractmethod
    def _load_driver(self) -> ModuleType: ...

    @abstractmethod
    def _open(self, driver: ModuleType) -> Any: ...

    @abstractmethod
    def _acquire(self, handle: Any) -> Connection: ...

    def _release(self, handle: Any, conn: Any) -> None:
        pass

    def _close(self, handle: Any) -> None:
        handle.close()

    # -- lifecycle -----------------------------------------------------------

    def connect(self) -> None:
        """Import the driver and open the pool; a no-op when already open.

        Raises:
            ConfigError: The driver package is not installed.
            DatabaseConnectionError: The driver refused to connect.
        """
        if self._handle is not None:
            return
        try:
            driver = self._load_driver()
        except ImportError:
            raise ConfigError(
                f"{self.db_type.value} needs the {self.requirement} driver; "
                f"install it with: pip install {self.requirement}"
            ) from None
        try:
            self._handle = self._open(driver)
        except Exception as exc:
            raise DatabaseConnectionError(
                f"cannot connect to {self.db_type.value} at {self._config.to_target()!r}: {exc}",
                cause=exc,
            ) from exc
        logger.debug("adapter.connected", db_type=self.db_type.value, target=self._config.to_target())

    def disconnect(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            self._close(handle)
            logger.debug("adapter.disconnected", db_type=self.db_type.value)

    def get_connection(self) -> Connection:
        """A connection for one session or migration; connects on first use."""
        self.connect()
        return self._acquire(self._handle)

    def release_connection(self, conn: Any) -> None:
        """Give back a connection obtained from :meth:`get_connection`."""
        self._release(self._handle, conn)

    def __enter__(self) -> DatabaseAdapter:
        self.connect()
        return self

    def __exit__(self, *args: Any) -> None:
        self.disconnect()


__all__ = ["DatabaseAdapter"]
