"""Adapter lookup by database type name.

Application code asks for an adapter by URL or by name instead of naming
the adapter class::

    adapter = adapter_from_url("postgres://app:secret@db/app?sslmode=disable")
    adapter = get_adapter("sqlite", path="data.db")

Tags:
    tabula, database, registry, factory
"""

from __future__ import annotations

from typing import Any

from tabula.errors import ConfigError

from .base import DatabaseAdapter
from .mysql import MySQLAdapter
from .oracle import OracleAdapter
from .postgresql import PostgreSQLAdapter
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType


class AdapterRegistry:
    """Name (or alias) to adapter class.

    Built-ins: ``sqlite``/``sqlite3``, ``postgresql``/``postgres``,
    ``mysql`` and ``oracle``.
    """

    def __init__(self):
        self._classes: dict[str, type[DatabaseAdapter]] = {}
        for cls in (SQLiteAdapter, PostgreSQLAdapter, MySQLAdapter, OracleAdapter):
            self.register(cls.kind.value, cls)
        self.register("sqlite3", SQLiteAdapter)
        self.register("postgres", PostgreSQLAdapter)

    def register(self, name: str, adapter_class: type[DatabaseAdapter]) -> None:
        self._classes[name.lower()] = adapter_class

    def lookup(self, name: DatabaseType | str) -> type[DatabaseAdapter]:
        key = name.value if isinstance(name, DatabaseType) else name.lower()
        try:
            return self._classes[key]
        except KeyError:
            raise ConfigError(f"Unknown database adapter: {key}") from None

    def create(self, name: DatabaseType | str, **kwargs: Any) -> DatabaseAdapter:
        return self.lookup(name)(**kwargs)

    def list_adapters(self) -> list[str]:
        return sorted(self._classes)


adapter_registry = AdapterRegistry()


def get_adapter(db_type: DatabaseType | str, **kwargs: Any) -> DatabaseAdapter:
    """Build an adapter from config fields given as keywords."""
    return adapter_registry.create(db_type, **kwargs)


def adapter_from_config(config: DatabaseConfig) -> DatabaseAdapter:
    return adapter_registry.lookup(config.db_type)(config)


def adapter_from_url(url: str) -> DatabaseAdapter:
    return adapter_from_config(DatabaseConfig.from_url(url))


__all__ = [
    "AdapterRegistry",
    "adapter_from_config",
    "adapter_from_url",
    "adapter_registry",
    "get_adapter",
]
