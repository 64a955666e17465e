"""
Structural protocols used across tabula.

The core never imports a database driver.  It talks to a DB-API 2.0
connection through :class:`Connection`/:class:`Cursor`, and it discovers
optional record capabilities (custom table name, extra indexes, pre-save
validation) by shape rather than by inheritance.

Architecture:
    ::

        protocols.py
        ├── Connection       DB-API 2.0 connection (sqlite3, psycopg2, ...)
        ├── Cursor           DB-API 2.0 cursor
        ├── TableNamed       record overrides its table name
        ├── Indexed          record appends multi-column indexes
        └── Validator        record checks itself before save

Guardrails:
    ❌ DON'T: Require records to subclass a base model
    ✅ DO: Implement the capability method on the dataclass when needed

Tags:
    protocol, connection, cursor, capability, tabula
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tabula.model import Indexes
    from tabula.session import Session

# ---------------------------------------------------------------------------
# Database protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Cursor(Protocol):
    """Minimal DB-API 2.0 cursor."""

    description: Any
    rowcount: int

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        ...

    def fetchone(self) -> Any:
        ...

    def fetchall(self) -> list:
        ...

    def close(self) -> None:
        ...


@runtime_checkable
class Connection(Protocol):
    """Minimal DB-API 2.0 connection.

    Examples:
        >>> import sqlite3
        >>> isinstance(sqlite3.connect(":memory:"), Connection)
        True
    """

    def cursor(self) -> Any:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Record capabilities
# ---------------------------------------------------------------------------


@runtime_checkable
class TableNamed(Protocol):
    """Record supplies its own table name."""

    @classmethod
    def table_name(cls) -> str:
        ...


@runtime_checkable
class Indexed(Protocol):
    """Record appends indexes after field-level ones are collected."""

    @classmethod
    def indexes(cls, indexes: Indexes) -> None:
        ...


@runtime_checkable
class Validator(Protocol):
    """Record rejects a save by raising (or returning) an error."""

    def validate(self, session: Session) -> Exception | None:
        ...


__all__ = ["Connection", "Cursor", "Indexed", "TableNamed", "Validator"]
