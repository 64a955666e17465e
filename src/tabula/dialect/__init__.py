"""SQL dialects and the dialect registry.

Examples:
    >>> from tabula.dialect import get_dialect
    >>> d = get_dialect("postgres")
    >>> d.quote("post.author_id")
    '"post"."author_id"'
    >>> d.substitute_markers("a = ? AND b = ?")
    'a = $1 AND b = $2'
"""

from __future__ import annotations

from tabula.errors import ConfigError

from .base import JOIN_SEPARATOR, TIME_LAYOUT, Dialect
from .mysql import MySQLDialect
from .oracle import OracleDialect
from .postgresql import PostgreSQLDialect
from .sqlite import SQLiteDialect

# Dialects are stateless; one instance per name is shared.
_DIALECTS: dict[str, Dialect] = {
    "sqlite": SQLiteDialect(),
    "sqlite3": SQLiteDialect(),  # alias
    "postgresql": PostgreSQLDialect(),
    "postgres": PostgreSQLDialect(),  # alias
    "mysql": MySQLDialect(),
    "oracle": OracleDialect(),
}

_ALIASES = {"sqlite3", "postgres"}


def get_dialect(name: str) -> Dialect:
    """Look up a dialect by name (case-insensitive).

    Raises:
        ConfigError: If ``name`` is not registered.
    """
    key = name.lower() if isinstance(name, str) else name.value
    if key not in _DIALECTS:
        raise ConfigError(
            f"Unknown dialect '{name}'. Supported: {sorted(set(_DIALECTS) - _ALIASES)}"
        )
    return _DIALECTS[key]


def register_dialect(name: str, dialect: Dialect) -> None:
    """Register a custom dialect (third-party engine or test double)."""
    _DIALECTS[name.lower()] = dialect


__all__ = [
    "Dialect",
    "JOIN_SEPARATOR",
    "TIME_LAYOUT",
    "MySQLDialect",
    "OracleDialect",
    "PostgreSQLDialect",
    "SQLiteDialect",
    "get_dialect",
    "register_dialect",
]
