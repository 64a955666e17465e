"""
Database client: the object every session and migration hangs off.

A :class:`Database` is built once per process (or per test) and passed to
whoever needs it.  It owns the dialect, the adapter (or a bare DB-API
connection), the shared prepared-statement cache and the connection limiter.
Nothing about it is global: two ``Database`` objects never share state.

Examples:
    >>> db = Database.from_url("sqlite:///:memory:")
    >>> with db.migration() as m:
    ...     m.create_table_if_not_exists(User)
    >>> with db.session() as s:
    ...     s.save(User(name="ann"))
    >>> db.close()

Tags:
    database, client, connection-limit, statement-cache, tabula
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any

from tabula.adapters import DatabaseAdapter, DatabaseConfig, adapter_from_config
from tabula.dialect import Dialect, get_dialect
from tabula.errors import ConfigError, ConnectionLimitError, TransactionError
from tabula.logging import configure_logging, get_logger
from tabula.migration import Migration
from tabula.naming import get_naming, set_naming
from tabula.session import Session
from tabula.settings import TabulaSettings, get_settings
from tabula.statements import StatementCache

logger = get_logger(__name__)


class ConnectionLimiter:
    """Bounded count of open sessions.

    ``limit`` of 0 disables the bound.  When full, :meth:`acquire` waits if
    ``blocking`` is set and raises :class:`ConnectionLimitError` otherwise.
    """

    def __init__(self, limit: int = 0, blocking: bool = False):
        self.limit = limit
        self.blocking = blocking
        self._slots = threading.BoundedSemaphore(limit) if limit > 0 else None

    def acquire(self) -> None:
        if self._slots is None:
            return
        if not self._slots.acquire(blocking=self.blocking):
            raise ConnectionLimitError(f"connection limit of {self.limit} reached")

    def release(self) -> None:
        if self._slots is not None:
            self._slots.release()


class TransactionOwners:
    """Which session holds the open transaction on each connection.

    Sessions can share a connection (an in-memory SQLite database, a raw
    DB-API connection).  A commit from one of them would end the other's
    transaction, so while one session has a transaction open the others are
    refused any statement on that connection.
    """

    def __init__(self):
        self._owners: dict[int, Session] = {}
        self._lock = threading.Lock()

    def _other_owner(self, session: Session) -> Session | None:
        owner = self._owners.get(id(session.connection))
        return owner if owner is not session else None

    def claim(self, session: Session) -> None:
        with self._lock:
            self.check(session)
            self._owners[id(session.connection)] = session

    def check(self, session: Session) -> None:
        if self._other_owner(session) is not None:
            raise TransactionError("another session has an open transaction on this connection")

    def release(self, session: Session) -> None:
        with self._lock:
            if self._owners.get(id(session.connection)) is session:
                del self._owners[id(session.connection)]


class Database:
    """Dialect + connections + statement cache + connection limiter.

    Args:
        adapter_or_connection: A :class:`DatabaseAdapter` (connections come
            from it, pooled where the driver pools) or an already open DB-API
            connection shared by every session.
        dialect: Dialect name or instance.  Defaults to the adapter's.
        db_name: Catalog schema name for migrations; defaults to the adapter's
            configured database.
        connection_limit: Max sessions open at once; 0 for no limit.
        blocking_on_limit: Wait for a slot instead of raising.
        log_sql: Log each statement at debug level.
    """

    def __init__(
        self,
        adapter_or_connection: Any,
        dialect: Dialect | str | None = None,
        *,
        db_name: str | None = None,
        connection_limit: int = 0,
        blocking_on_limit: bool = False,
        log_sql: bool = False,
    ):
        if isinstance(adapter_or_connection, DatabaseAdapter):
            self.adapter: DatabaseAdapter | None = adapter_or_connection
            self._connection = None
            dialect = dialect or self.adapter.dialect
            default_db_name = self.adapter.database_name
        else:
            self.adapter = None
            self._connection = adapter_or_connection
            default_db_name = ""
        if dialect is None:
            raise ConfigError("a dialect is required when passing a raw connection")
        self.dialect = get_dialect(dialect) if isinstance(dialect, str) else dialect
        self.db_name = default_db_name if db_name is None else db_name
        self.log_sql = log_sql
        self.statements = StatementCache()
        self.limiter = ConnectionLimiter(connection_limit, blocking_on_limit)
        self.transactions = TransactionOwners()
        self._closed = False

    def __repr__(self) -> str:
        return f"Database(dialect={self.dialect.name!r}, db_name={self.db_name!r})"

    # -- constructors ------------------------------------------------------

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> Database:
        return cls(adapter_from_config(DatabaseConfig.from_url(url)), **kwargs)

    @classmethod
    def from_settings(cls, settings: TabulaSettings | None = None) -> Database:
        """Build a database (and configure logging and naming) from settings."""
        settings = settings or get_settings()
        configure_logging(level=settings.log_level, json_format=settings.json_logs)
        naming = get_naming()
        if naming.id_field != settings.id_field:
            set_naming(replace(naming, id_field=settings.id_field))
        return cls.from_url(
            settings.database_url,
            db_name=settings.db_name or None,
            connection_limit=settings.connection_limit,
            blocking_on_limit=settings.blocking_on_limit,
            log_sql=settings.log_sql,
        )

    # -- connections -------------------------------------------------------

    def _acquire_connection(self) -> Any:
        if self._closed:
            raise ConfigError("database is closed")
        if self.adapter is not None:
            return self.adapter.get_connection()
        return self._connection

    def _release_connection(self, connection: Any) -> None:
        if self.adapter is not None:
            self.adapter.release_connection(connection)

    def session(self) -> Session:
        """Open a session, taking one slot of the connection limit.

        Raises:
            ConnectionLimitError: The limit is reached and blocking is off.
        """
        self.limiter.acquire()
        try:
            connection = self._acquire_connection()
        except BaseException:
            self.limiter.release()
            raise
        return Session(self, connection)

    def release(self, session: Session) -> None:
        """Called by :meth:`Session.close`; always gives the slot back."""
        try:
            self._release_connection(session.connection)
        finally:
            self.limiter.release()

    def migration(self) -> Migration:
        """A :class:`Migration` on its own connection; close it when done."""
        connection = self._acquire_connection()
        return _PooledMigration(self, connection)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.statements.clear()
        if self.adapter is not None:
            self.adapter.disconnect()
        logger.debug("database.closed", dialect=self.dialect.name)

    def __enter__(self) -> Database:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class _PooledMigration(Migration):
    """Migration whose connection goes back to the database's adapter on close."""

    def __init__(self, database: Database, connection: Any):
        super().__init__(connection, database.dialect, database.db_name, log_sql=database.log_sql)
        self._database = database

    def close(self) -> None:
        self._database._release_connection(self.connection)


__all__ = ["ConnectionLimiter", "Database", "TransactionOwners"]
