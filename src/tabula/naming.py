"""Naming conventions between record attributes and SQL identifiers.

Attribute names and column names live in two namespaces connected only by a
:class:`NamingConvention`.  The process-wide default can be swapped with
:func:`set_naming`; doing so invalidates the cached record schemas.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


def to_snake(name: str) -> str:
    """``AuthorId`` -> ``author_id``. Idempotent on snake_case input."""
    out = []
    for i, c in enumerate(name):
        if "A" <= c <= "Z":
            if i > 0:
                out.append("_")
            out.append(c.lower())
        else:
            out.append(c)
    return "".join(out)


def snake_to_upper_camel(name: str) -> str:
    """``author_id`` -> ``AuthorId``."""
    out = []
    first = True
    for c in name:
        if c == "_":
            first = True
            continue
        if first and "a" <= c <= "z":
            out.append(c.upper())
        else:
            out.append(c)
        first = False
    return "".join(out)


def _identity(name: str) -> str:
    return name


@dataclass(frozen=True)
class NamingConvention:
    """Pure functions mapping attribute/class names to column/table names.

    ``id_field`` is the attribute name that becomes the primary key by
    convention when it holds an integer; ``id_suffix`` marks an integer
    attribute as the local key of an implicit join (``author_id`` joins
    ``author``).
    """

    field_to_column: Callable[[str], str] = to_snake
    column_to_field: Callable[[str], str] = _identity
    class_to_table: Callable[[str], str] = to_snake
    table_to_class: Callable[[str], str] = snake_to_upper_camel
    id_field: str = "id"
    id_suffix: str = "_id"

    @classmethod
    def snake_case(cls) -> NamingConvention:
        """Default: snake_case attributes, snake_case columns."""
        return cls()

    @classmethod
    def upper_camel(cls) -> NamingConvention:
        """UpperCamel attributes (``AuthorId``) over snake_case columns."""
        return cls(
            field_to_column=to_snake,
            column_to_field=snake_to_upper_camel,
            id_field="Id",
            id_suffix="Id",
        )


_naming = NamingConvention.snake_case()
_listeners: list[Callable[[], None]] = []


def get_naming() -> NamingConvention:
    return _naming


def set_naming(naming: NamingConvention) -> None:
    """Replace the process-wide naming convention."""
    global _naming
    _naming = naming
    for listener in _listeners:
        listener()


def on_naming_change(listener: Callable[[], None]) -> None:
    _listeners.append(listener)


__all__ = [
    "NamingConvention",
    "get_naming",
    "set_naming",
    "on_naming_change",
    "snake_to_upper_camel",
    "to_snake",
]
