"""
Structured error types for tabula.

Every failure the mapper can raise is a :class:`TabulaError`.  Errors carry
a category so callers can tell a development-time mistake (a bad tag, an
unresolvable reference) from a per-request condition (no matching row) or a
driver failure that should be surfaced unchanged.

Manifesto:
    - **Fail fast on configuration:** Tag and reference mistakes surface at
      descriptor construction, not when the first query runs
    - **Not-found is not an error of execution:** ``NoRowsError`` is its own
      category so callers can branch on it cheaply
    - **Driver errors are propagated:** ``QueryError`` keeps the original
      exception as ``cause``

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                         TabulaError                              │
        │                (category, context, cause)                        │
        ├─────────────────────────────────────────────────────────────────┤
        │  ConfigError           NoRowsError        DatabaseError          │
        │  (CONFIG)              (NOT_FOUND)        (DATABASE)             │
        │     │                                        │                   │
        │  TagSyntaxError                           QueryError             │
        │  ReferenceResolutionError                 DatabaseConnectionError│
        │  DuplicatePrimaryKeyError                 ConnectionLimitError   │
        │  MissingPrimaryKeyError                                          │
        │  MissingConditionError  ValidationError   MigrationError         │
        │  UnsupportedColumnTypeError (VALIDATION)  (MIGRATION)            │
        │  UnsupportedFieldTypeError                   │                   │
        │                         TransactionError  ColumnRenameError      │
        │                         (INTERNAL)                               │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> err = TagSyntaxError("colour", has_value=True)
    >>> err.category
    <ErrorCategory.CONFIG: 'CONFIG'>
    >>> err.has_value
    True

Guardrails:
    ❌ DON'T: Catch ``ConfigError`` per request and carry on
    ✅ DO: Let it surface at startup, fix the record declaration

    ❌ DON'T: Swallow the driver exception
    ✅ DO: Wrap it as ``QueryError(..., cause=exc)``

Tags:
    error-handling, exception-hierarchy, error-context, tabula

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification."""

    CONFIG = "CONFIG"             # Tags, references, type overrides
    NOT_FOUND = "NOT_FOUND"       # Single-row query matched nothing
    DATABASE = "DATABASE"         # Anything the driver reports
    VALIDATION = "VALIDATION"     # Pre-save hooks
    MIGRATION = "MIGRATION"       # Schema reconciliation
    INTERNAL = "INTERNAL"         # Programming errors (nested begin, ...)


@dataclass
class ErrorContext:
    """Structured metadata attached to an error for logging."""

    table: str | None = None
    column: str | None = None
    record: str | None = None
    sql: str | None = None
    dialect: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["table", "column", "record", "sql", "dialect"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class TabulaError(Exception):
    """
    Base exception for all tabula errors.

    Subclasses set ``default_category``; instances may override it.

    Examples:
        >>> err = TabulaError("boom")
        >>> err.with_context(table="user").context.table
        'user'
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> TabulaError:
        """Add context fields; unknown keys go to ``metadata``."""
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }
        if ctx := self.context.to_dict():
            result["context"] = ctx
        if self.cause is not None:
            result["cause"] = f"{type(self.cause).__name__}: {self.cause}"
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(TabulaError):
    """Invalid record declaration or settings. Never recoverable per request."""

    default_category = ErrorCategory.CONFIG


class TagSyntaxError(ConfigError):
    """Unrecognized or malformed column tag.

    ``has_value`` records whether the offending token was written as
    ``key:value`` or as a bare ``key``.
    """

    def __init__(self, key: str, *, has_value: bool, message: str | None = None):
        self.key = key
        self.has_value = has_value
        if message is None:
            form = f"{key}:<value>" if has_value else key
            message = f"{form!r} tag syntax error: unknown tag key {key!r}"
        super().__init__(message)


class ReferenceResolutionError(ConfigError):
    """A ``fk:``/``join:`` tag names a field that is missing or not a record."""

    def __init__(self, record: str, field_name: str, reason: str):
        self.field_name = field_name
        super().__init__(
            f"{record}.{field_name}: {reason}",
            context=ErrorContext(record=record, column=field_name),
        )


class DuplicatePrimaryKeyError(ConfigError):
    """More than one field is explicitly tagged ``pk``."""

    def __init__(self, record: str, fields: list[str]):
        self.fields = fields
        super().__init__(
            f"{record} declares more than one primary key: {', '.join(fields)}",
            context=ErrorContext(record=record),
        )


class MissingPrimaryKeyError(ConfigError):
    """A write operation needs a primary key and the record has none."""

    def __init__(self, record: str):
        super().__init__(f"no primary key field on {record}", context=ErrorContext(record=record))


class MissingConditionError(ConfigError):
    """Update or delete without a primary key value or an explicit condition."""


class UnsupportedColumnTypeError(ConfigError):
    """A ``coltype:`` override names a type the dialect cannot render."""

    def __init__(self, col_type: str, dialect: str, column: str | None = None):
        self.col_type = col_type
        super().__init__(
            f"column type {col_type!r} is not supported for {dialect}",
            context=ErrorContext(dialect=dialect, column=column),
        )


class UnsupportedFieldTypeError(ConfigError):
    """A field annotation cannot be mapped to any scalar category."""


# =============================================================================
# NOT FOUND
# =============================================================================


class NoRowsError(TabulaError):
    """A single-row query matched zero rows."""

    default_category = ErrorCategory.NOT_FOUND

    def __init__(self, message: str = "no rows in result set", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# DATABASE ERRORS
# =============================================================================


class DatabaseError(TabulaError):
    """Errors reported by, or about, the underlying database."""

    default_category = ErrorCategory.DATABASE


class QueryError(DatabaseError):
    """The driver rejected a statement; ``cause`` holds the driver exception."""


class DatabaseConnectionError(DatabaseError):
    """Could not open a connection."""


class ConnectionLimitError(DatabaseError):
    """The configured connection limit is reached and blocking is disabled."""

    def __init__(self, message: str = "connection limit reached", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# VALIDATION / TRANSACTION / MIGRATION
# =============================================================================


class ValidationError(TabulaError):
    """A record's ``validate`` hook rejected the write."""

    default_category = ErrorCategory.VALIDATION


class TransactionError(TabulaError):
    """Misuse of the transaction API (nested begin, commit without begin)."""

    default_category = ErrorCategory.INTERNAL


class MigrationError(TabulaError):
    """Schema reconciliation failed."""

    default_category = ErrorCategory.MIGRATION


class ColumnRenameError(MigrationError, ConfigError):
    """Existing columns no longer match the record: rename/removal is unsupported."""

    default_category = ErrorCategory.MIGRATION

    def __init__(self, table: str, missing: list[str]):
        self.missing = missing
        super().__init__(
            f"column name has changed on {table!r}, rename column migration is not supported"
            f" (unmatched: {', '.join(sorted(missing))})",
            context=ErrorContext(table=table),
        )


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "TabulaError",
    "ConfigError",
    "TagSyntaxError",
    "ReferenceResolutionError",
    "DuplicatePrimaryKeyError",
    "MissingPrimaryKeyError",
    "MissingConditionError",
    "UnsupportedColumnTypeError",
    "UnsupportedFieldTypeError",
    "NoRowsError",
    "DatabaseError",
    "QueryError",
    "DatabaseConnectionError",
    "ConnectionLimitError",
    "ValidationError",
    "TransactionError",
    "MigrationError",
    "ColumnRenameError",
]
