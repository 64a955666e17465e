"""
Row mapper: result row -> record (and its joined references).

Column names from a SELECT rendered by :meth:`Dialect.query_sql` come in two
shapes::

    name              -> attribute of the root record
    alias___name      -> attribute of the record referenced under ``alias``

Plain names are resolved through the record's schema (column -> attribute),
falling back to the naming convention's ``column_to_field`` for columns the
schema does not know (raw ``query_struct`` results).  Every value passes
through :meth:`Dialect.to_python`, so booleans stored as integers, unsigned
integers read back as signed, and timestamps stored as text all land as the
declared Python type.

An alias group whose values are all NULL is an outer-join miss: the reference
is set to ``None`` instead of a record full of zero values.

Tags:
    mapper, rows, joins, coercion, tabula
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from tabula.dialect.base import JOIN_SEPARATOR
from tabula.logging import get_logger
from tabula.model import FieldSpec, Model, TableSchema, new_record, schema_for
from tabula.naming import get_naming
from tabula.types import FieldType

if TYPE_CHECKING:
    from tabula.dialect.base import Dialect

logger = get_logger(__name__)


def _get_folded(mapping: dict[str, Any], key: str) -> Any:
    value = mapping.get(key)
    if value is None:
        # Oracle reports unquoted identifiers upper-cased
        folded = key.lower()
        value = next((v for k, v in mapping.items() if k.lower() == folded), None)
    return value


def _lookup(schema: TableSchema, column: str) -> FieldSpec | None:
    spec = _get_folded(schema.by_column, column)
    if spec is None:
        spec = schema.by_attr.get(get_naming().column_to_field(column))
    return spec


def coerce(dialect: Dialect, field_type: FieldType, raw: Any) -> Any:
    value = dialect.to_python(field_type, raw)
    target = field_type.python_type
    if value is not None and isinstance(target, type) and not isinstance(value, target):
        value = target(value)
    return value


def _assign(obj: Any, schema: TableSchema, column: str, raw: Any, dialect: Dialect) -> bool:
    spec = _lookup(schema, column)
    if spec is None:
        return False
    setattr(obj, spec.attr, coerce(dialect, spec.field_type, raw))
    return True


def scan_into(
    record: Any,
    model: Model | None,
    columns: Sequence[str],
    values: Sequence[Any],
    dialect: Dialect,
) -> Any:
    """Populate ``record`` in place from one row; returns ``record``."""
    schema = schema_for(record)
    groups: dict[str, list[tuple[str, Any]]] = {}
    for name, raw in zip(columns, values):
        alias, sep, column = name.partition(JOIN_SEPARATOR)
        if sep:
            groups.setdefault(alias, []).append((column, raw))
        elif not _assign(record, schema, name, raw, dialect):
            logger.debug("mapper.unmapped_column", column=name, record=type(record).__name__)

    if not groups:
        return record

    bound = {ref.alias: ref.attr for ref in model.references.values()} if model else {}
    for alias, pairs in groups.items():
        ref_spec = _get_folded(schema.by_alias, alias)
        if ref_spec is None:
            logger.debug("mapper.unknown_alias", alias=alias, record=type(record).__name__)
            continue
        attr = bound.get(ref_spec.alias, ref_spec.attr)
        if all(raw is None for _, raw in pairs):
            setattr(record, attr, None)
            continue
        target = getattr(record, attr, None)
        if target is None:
            target = new_record(ref_spec.target)
        target_schema = schema_for(target)
        for column, raw in pairs:
            _assign(target, target_schema, column, raw, dialect)
        setattr(record, attr, target)
    return record


def row_to_dict(columns: Sequence[str], values: Sequence[Any]) -> dict[str, Any]:
    return dict(zip(columns, values))


__all__ = ["coerce", "row_to_dict", "scan_into"]
