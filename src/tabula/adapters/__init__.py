"""Database adapters: one interface over four drivers.

Manifesto:
    The mapper renders SQL; adapters only open connections.  Each adapter is
    **import-guarded**: the database driver is only required at ``connect()``
    time, not at import time.  Install the corresponding extra::

        pip install tabula[postgresql]   # psycopg2-binary
        pip install tabula[mysql]        # mysql-connector-python
        pip install tabula[oracle]       # oracledb

Architecture::

    DatabaseAdapter (base.py)        lazy driver import, connect / get_connection / release
        |-- SQLiteAdapter            stdlib sqlite3 (always available)
        |-- PostgreSQLAdapter        psycopg2 (optional)
        |-- MySQLAdapter             mysql.connector (optional)
        |-- OracleAdapter            oracledb (optional)

    AdapterRegistry (registry.py)    DatabaseType -> adapter class
    DatabaseConfig (types.py)        connection parameters, to_dsn / from_url
    DatabaseType (types.py)          Enum of supported backends

Guardrails:
    ❌ Importing optional drivers at module scope
    ✅ Import-guarded at ``connect()`` time with clear ``ConfigError``
    ❌ ``adapter = PostgreSQLAdapter(...)`` scattered through application code
    ✅ ``adapter = adapter_from_url(settings.database_url)``

Tags:
    tabula, database, adapters, multi-backend, import-guarded,
    registry-pattern, postgresql, sqlite, mysql, oracle
"""

from .base import DatabaseAdapter
from .mysql import MySQLAdapter
from .oracle import OracleAdapter
from .postgresql import PostgreSQLAdapter
from .registry import (
    AdapterRegistry,
    adapter_from_config,
    adapter_from_url,
    adapter_registry,
    get_adapter,
)
from .sqlite import SQLiteAdapter
from .types import DatabaseConfig, DatabaseType

__all__ = [
    # Types
    "DatabaseType",
    "DatabaseConfig",
    # Base class
    "DatabaseAdapter",
    # Implementations
    "SQLiteAdapter",
    "PostgreSQLAdapter",
    "MySQLAdapter",
    "OracleAdapter",
    # Registry
    "AdapterRegistry",
    "adapter_registry",
    "adapter_from_config",
    "adapter_from_url",
    "get_adapter",
]
