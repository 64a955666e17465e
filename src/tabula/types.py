"""Scalar categories and annotation classification.

A record attribute's annotation is classified exactly once, when the record's
schema is built, into one of three outcomes:

- a :class:`FieldType` (a column with a closed :class:`ScalarKind`),
- a :class:`RecordRef` (an edge to another record, never a column),
- ``None`` (not mapped: containers such as ``dict``/``list``/``set``).

Dialects match exhaustively on :class:`ScalarKind` for type mapping and value
coercion, so adding a kind is a visible gap in every dialect rather than a
silent fallthrough.

Examples:
    >>> resolve_annotation(int)
    FieldType(kind=<ScalarKind.BIGINT: 'bigint'>, nullable=False, python_type=<class 'int'>)
    >>> resolve_annotation(str | None).nullable
    True
    >>> resolve_annotation(dict[str, int]) is None
    True

Tags:
    types, annotations, scalar, tabula
"""

from __future__ import annotations

import dataclasses
import types
import typing
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, NewType, Union

# 32-bit signed and 64-bit unsigned integers; plain ``int`` is 64-bit signed.
Int32 = NewType("Int32", int)
UInt64 = NewType("UInt64", int)


class ScalarKind(str, Enum):
    """Closed set of column value categories."""

    BOOL = "bool"
    INT = "int"          # 32-bit
    BIGINT = "bigint"    # 64-bit signed
    UINT = "uint"        # 64-bit unsigned
    FLOAT = "float"
    STRING = "string"
    BYTES = "bytes"
    TIME = "time"

    @property
    def is_integer(self) -> bool:
        return self in (ScalarKind.INT, ScalarKind.BIGINT, ScalarKind.UINT)


class ColType:
    """Logical names accepted by the ``coltype:`` tag."""

    INT = "int"
    BIGINT = "bigint"
    BOOLEAN = "boolean"
    DOUBLE = "double"
    TIMESTAMP = "timestamp"
    TEXT = "text"

    ALL = (INT, BIGINT, BOOLEAN, DOUBLE, TIMESTAMP, TEXT)


# Kind used for value coercion when a field's type comes from ``coltype:``.
COLTYPE_KINDS: dict[str, ScalarKind] = {
    ColType.INT: ScalarKind.INT,
    ColType.BIGINT: ScalarKind.BIGINT,
    ColType.BOOLEAN: ScalarKind.BOOL,
    ColType.DOUBLE: ScalarKind.FLOAT,
    ColType.TIMESTAMP: ScalarKind.TIME,
    ColType.TEXT: ScalarKind.STRING,
}


@dataclass(frozen=True)
class FieldType:
    """A mapped column's scalar kind and NULL-ability.

    ``kind`` is ``None`` only for attributes whose Python type is not a known
    scalar but which carry a ``coltype:`` override the dialect may or may
    not understand; such fields are rejected when the table is created.
    """

    kind: ScalarKind | None
    nullable: bool = False
    python_type: Any = None


@dataclass(frozen=True)
class RecordRef:
    """An attribute annotated with another record class."""

    target: type
    nullable: bool = True


_SCALARS: dict[Any, ScalarKind] = {
    bool: ScalarKind.BOOL,
    Int32: ScalarKind.INT,
    UInt64: ScalarKind.UINT,
    int: ScalarKind.BIGINT,
    float: ScalarKind.FLOAT,
    str: ScalarKind.STRING,
    bytes: ScalarKind.BYTES,
    bytearray: ScalarKind.BYTES,
    datetime: ScalarKind.TIME,
}

_SKIPPED_ORIGINS = (dict, list, set, frozenset, tuple)


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        nullable = len(args) < len(typing.get_args(annotation))
        if len(args) == 1:
            return args[0], nullable
        return annotation, nullable
    return annotation, False


def resolve_annotation(annotation: Any) -> FieldType | RecordRef | None:
    """Classify one resolved (non-string) annotation.

    Raises ``LookupError`` for annotations with no scalar mapping; the model
    extractor turns that into a configuration error naming the field.
    """
    if typing.get_origin(annotation) is typing.Annotated:
        annotation = typing.get_args(annotation)[0]

    inner, nullable = _unwrap_optional(annotation)

    if isinstance(inner, type) and dataclasses.is_dataclass(inner):
        return RecordRef(target=inner, nullable=nullable)

    origin = typing.get_origin(inner)
    if origin in _SKIPPED_ORIGINS or inner in _SKIPPED_ORIGINS:
        return None

    kind = _SCALARS.get(inner)
    if kind is None:
        raise LookupError(inner)
    return FieldType(kind=kind, nullable=nullable, python_type=inner)


def custom_field_type(annotation: Any, col_type: str) -> FieldType:
    """FieldType for an attribute of a non-scalar type with a ``coltype:`` tag."""
    inner, nullable = _unwrap_optional(annotation)
    return FieldType(kind=COLTYPE_KINDS.get(col_type), nullable=nullable, python_type=inner)


def zero_value(kind: ScalarKind | None) -> Any:
    """Zero value used when a referenced record has to be allocated."""
    match kind:
        case ScalarKind.BOOL:
            return False
        case ScalarKind.INT | ScalarKind.BIGINT | ScalarKind.UINT:
            return 0
        case ScalarKind.FLOAT:
            return 0.0
        case ScalarKind.STRING:
            return ""
        case ScalarKind.BYTES:
            return b""
        case ScalarKind.TIME:
            return datetime.min
        case _:
            return None


__all__ = [
    "ColType",
    "FieldType",
    "Int32",
    "RecordRef",
    "ScalarKind",
    "UInt64",
    "custom_field_type",
    "resolve_annotation",
    "zero_value",
]
