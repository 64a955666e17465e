"""tabula -- map dataclass records to relational tables.

Manifesto:
    A record is a plain ``@dataclass``.  Its attributes are the columns, a
    small tag language (``tabula.column("pk,size:64")``) carries what the
    type cannot say, and attributes typed as another record become LEFT
    JOINs.  The same record renders correct SQL for SQLite, PostgreSQL,
    MySQL and Oracle.

    - **No base class:** records opt into capabilities by shape
    - **No globals:** a :class:`Database` owns connections and caches
    - **Additive migrations only:** tables, columns and indexes are created,
      never dropped or renamed behind your back

Architecture::

    Layer 1 -- Declarations
        naming.py          attribute/class <-> column/table conventions
        types.py           ScalarKind, annotation classification
        tags.py            column tag language
        model.py           record -> Model (memoized schema + bound values)

    Layer 2 -- SQL
        condition.py       composable WHERE conditions
        criteria.py        model + condition + order + paging
        dialect/           SQLite, PostgreSQL, MySQL, Oracle renderers
        mapper.py          result rows -> records and joined references

    Layer 3 -- Execution
        statements.py      prepared-statement cache (read/write locked)
        session.py         find / save / update / delete / transactions
        migration.py       create table, add columns, create indexes
        database.py        client object + connection limiter
        adapters/          driver adapters (sqlite3, psycopg2, mysql, oracledb)

    Ambient
        errors.py          TabulaError hierarchy
        logging.py         structlog setup
        settings.py        TABULA_* settings (pydantic-settings)
        cli.py             ``tabula ddl`` / ``migrate`` / ``dsn``

Examples:
    >>> from dataclasses import dataclass
    >>> import tabula
    >>> @dataclass
    ... class User:
    ...     id: int = 0
    ...     name: str = tabula.column("size:64,unique", default="")
    >>> db = tabula.Database.from_url("sqlite:///:memory:")
    >>> with db.migration() as m:
    ...     _ = m.create_table_if_not_exists(User)
    >>> with db.session() as s:
    ...     _ = s.save(User(name="ann"))

Tags:
    tabula, orm, sql, dataclass, migration
"""

from tabula.condition import Condition
from tabula.criteria import Criteria, Order
from tabula.database import ConnectionLimiter, Database
from tabula.dialect import Dialect, get_dialect, register_dialect
from tabula.errors import (
    ColumnRenameError,
    ConfigError,
    ConnectionLimitError,
    DatabaseError,
    MigrationError,
    MissingConditionError,
    MissingPrimaryKeyError,
    NoRowsError,
    QueryError,
    TabulaError,
    TagSyntaxError,
    TransactionError,
    ValidationError,
)
from tabula.migration import Migration
from tabula.model import Indexes, Model, extract, table_name
from tabula.naming import NamingConvention, get_naming, set_naming
from tabula.session import ExecResult, Session
from tabula.tags import column
from tabula.types import Int32, UInt64

__version__ = "0.1.0"

__all__ = [
    # Declarations
    "Indexes",
    "Int32",
    "Model",
    "NamingConvention",
    "UInt64",
    "column",
    "extract",
    "get_naming",
    "set_naming",
    "table_name",
    # SQL
    "Condition",
    "Criteria",
    "Dialect",
    "Order",
    "get_dialect",
    "register_dialect",
    # Execution
    "ConnectionLimiter",
    "Database",
    "ExecResult",
    "Migration",
    "Session",
    # Errors
    "ColumnRenameError",
    "ConfigError",
    "ConnectionLimitError",
    "DatabaseError",
    "MigrationError",
    "MissingConditionError",
    "MissingPrimaryKeyError",
    "NoRowsError",
    "QueryError",
    "TabulaError",
    "TagSyntaxError",
    "TransactionError",
    "ValidationError",
]
