"""
Model extraction: record declaration -> table descriptor.

A record is a ``@dataclass``.  Its declared attributes become the columns of a
:class:`Model`; attributes annotated with another record class become
:class:`Reference` edges that the SELECT renderer turns into LEFT JOINs.

Manifesto:
    Everything about a record that does not depend on its current values is
    derived once per class and memoized (:class:`SchemaCache`), keyed by the
    class and the active :class:`~tabula.naming.NamingConvention`.  Each call
    to :func:`extract` only binds values onto the cached schema.

    - **Fail fast:** tag and reference mistakes raise ``ConfigError`` the
      first time a class is seen
    - **Declaration order:** fields, references and indexes keep the order
      they were declared in, which fixes column order in INSERT and CREATE
    - **One level of joins:** references are resolved for the root record
      only; a referenced record's own references are not expanded

Architecture:
    ::

        record instance
              │
              ▼
        SchemaCache.get(cls, naming)      (memoized, per class)
        ├── FieldSpec …                   tags + FieldType + column name
        ├── ReferenceSpec …               fk / join / implicit <x>_id
        └── primary key                   explicit pk, else ``id`` convention
              │
              ▼
        extract(record, root, omit)       (per call)
        ├── ModelField …                  spec + current value
        ├── Reference …                   sub-Model (root=False)
        └── Indexes                       field flags, FK columns, hook

Examples:
    >>> from dataclasses import dataclass
    >>> from tabula import column, extract
    >>> @dataclass
    ... class Basic:
    ...     id: int = 0
    ...     name: str = column("size:64", default="")
    >>> m = extract(Basic(id=1, name="a"))
    >>> m.table, m.pk.column, [f.column for f in m.fields]
    ('basic', 'id', ['id', 'name'])

Guardrails:
    ❌ DON'T: Put two ``pk`` tags on one record
    ✅ DO: Use ``Indexes.add_unique`` for composite uniqueness

Tags:
    model, reflection, dataclass, references, indexes, tabula
"""

from __future__ import annotations

import dataclasses
import threading
import typing
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import cached_property
from typing import Any

from tabula.errors import (
    ConfigError,
    DuplicatePrimaryKeyError,
    ReferenceResolutionError,
    TagSyntaxError,
    UnsupportedFieldTypeError,
)
from tabula.naming import NamingConvention, get_naming, on_naming_change
from tabula.protocols import Indexed, TableNamed
from tabula.tags import TagSpec, field_tags
from tabula.types import (
    FieldType,
    RecordRef,
    ScalarKind,
    custom_field_type,
    resolve_annotation,
    zero_value,
)

# ---------------------------------------------------------------------------
# Indexes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IndexSpec:
    """An index over one or more columns. ``name`` is not yet table-namespaced."""

    name: str
    columns: tuple[str, ...]
    unique: bool = False


class Indexes(list):
    """Ordered collection of :class:`IndexSpec` handed to ``indexes`` hooks."""

    def add(self, *columns: str) -> None:
        self.append(IndexSpec("_".join(columns), tuple(columns), False))

    def add_unique(self, *columns: str) -> None:
        self.append(IndexSpec("_".join(columns), tuple(columns), True))


# ---------------------------------------------------------------------------
# Bound descriptors
# ---------------------------------------------------------------------------


@dataclass
class ModelField:
    """One mapped column with its current value."""

    column: str
    attr: str
    value: Any
    field_type: FieldType
    pk: bool = False
    notnull: bool = False
    unique: bool = False
    index: bool = False
    created: bool = False
    updated: bool = False
    size: int = 0
    default: str | None = None
    col_type: str | None = None

    @property
    def kind(self) -> ScalarKind | None:
        return self.field_type.kind

    @property
    def nullable_kind(self) -> ScalarKind | None:
        """The scalar kind when the attribute is optional, else ``None``."""
        return self.field_type.kind if self.field_type.nullable else None

    @property
    def is_string(self) -> bool:
        return self.field_type.kind is ScalarKind.STRING


@dataclass
class Reference:
    """A join edge from the root model to ``model``."""

    attr: str
    alias: str
    local_column: str
    model: Model
    foreign_key: bool = False


@dataclass
class Model:
    table: str
    fields: list[ModelField]
    pk: ModelField | None = None
    references: dict[str, Reference] = field(default_factory=dict)
    indexes: Indexes = field(default_factory=Indexes)
    record: Any = None

    def field_by_column(self, column: str) -> ModelField | None:
        for f in self.fields:
            if f.column == column:
                return f
        return None

    def field_by_attr(self, attr: str) -> ModelField | None:
        for f in self.fields:
            if f.attr == attr:
                return f
        return None

    def columns_and_values(self, for_update: bool = False) -> tuple[list[str], list[Any]]:
        """Columns and values written by INSERT (default) or UPDATE.

        Insert skips NULL values of non-nullable fields and a zero primary
        key (so the database generates one).  Update skips the primary key
        and every NULL value.
        """
        columns: list[str] = []
        values: list[Any] = []
        for f in self.fields:
            if for_update:
                include = f.value is not None and not f.pk
            elif f.value is None and not f.field_type.nullable:
                include = False
            elif f.pk:
                include = not _is_zero_key(f.value)
            else:
                include = True
            if include:
                columns.append(f.column)
                values.append(f.value)
        return columns, values

    def time_field(self, name: str) -> ModelField | None:
        """The ``created``/``updated`` timestamp field, by tag or by column name."""
        for f in self.fields:
            if f.kind is not ScalarKind.TIME:
                continue
            if name == "created" and f.created:
                return f
            if name == "updated" and f.updated:
                return f
            if f.column == name:
                return f
        return None

    def pk_zero(self) -> bool:
        if self.pk is None:
            return True
        return _is_zero_key(self.pk.value)


def _is_zero_key(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, int) and not isinstance(value, bool):
        return value == 0
    return True


# ---------------------------------------------------------------------------
# Schema (memoized, value-independent)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FieldSpec:
    attr: str
    column: str
    field_type: FieldType
    tags: TagSpec
    pk: bool = False

    def bind(self, value: Any) -> ModelField:
        t = self.tags
        return ModelField(
            column=self.column,
            attr=self.attr,
            value=value,
            field_type=self.field_type,
            pk=self.pk,
            notnull=t.notnull,
            unique=t.unique,
            index=t.index,
            created=t.created,
            updated=t.updated,
            size=t.size,
            default=t.default,
            col_type=t.col_type,
        )


@dataclass(frozen=True)
class ReferenceSpec:
    attr: str
    alias: str
    local_attr: str
    local_column: str
    target: type
    foreign_key: bool


@dataclass(frozen=True)
class TableSchema:
    cls: type
    table: str
    fields: tuple[FieldSpec, ...]
    references: tuple[ReferenceSpec, ...]

    @property
    def pk(self) -> FieldSpec | None:
        for f in self.fields:
            if f.pk:
                return f
        return None

    @cached_property
    def by_column(self) -> dict[str, FieldSpec]:
        return {f.column: f for f in self.fields}

    @cached_property
    def by_attr(self) -> dict[str, FieldSpec]:
        return {f.attr: f for f in self.fields}

    @cached_property
    def by_alias(self) -> dict[str, ReferenceSpec]:
        return {r.alias: r for r in self.references}


class SchemaCache:
    """Thread-safe memo of :class:`TableSchema` per (class, naming)."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._schemas: dict[tuple[type, NamingConvention], TableSchema] = {}

    def get(self, cls: type, naming: NamingConvention | None = None) -> TableSchema:
        naming = naming or get_naming()
        key = (cls, naming)
        schema = self._schemas.get(key)
        if schema is not None:
            return schema
        schema = _build_schema(cls, naming)
        with self._lock:
            return self._schemas.setdefault(key, schema)

    def clear(self) -> None:
        with self._lock:
            self._schemas.clear()

    def __len__(self) -> int:
        return len(self._schemas)


schema_cache = SchemaCache()
on_naming_change(schema_cache.clear)


def schema_for(record_or_cls: Any) -> TableSchema:
    cls = record_or_cls if isinstance(record_or_cls, type) else type(record_or_cls)
    return schema_cache.get(cls)


def table_name(obj: Any) -> str:
    """Table name for a string, record instance or record class.

    A class attribute ``__tablename__`` or a ``table_name()`` classmethod
    overrides the naming convention.
    """
    if isinstance(obj, str):
        return obj
    cls = obj if isinstance(obj, type) else type(obj)
    explicit = getattr(cls, "__tablename__", None)
    if isinstance(explicit, str):
        return explicit
    if isinstance(cls, TableNamed) and callable(cls.table_name):
        return cls.table_name()
    return get_naming().class_to_table(cls.__name__)


def _type_hints(cls: type) -> dict[str, Any]:
    try:
        return typing.get_type_hints(cls, include_extras=True)
    except NameError as exc:
        raise UnsupportedFieldTypeError(
            f"cannot resolve annotations of {cls.__name__}: {exc}"
        ).with_context(record=cls.__name__) from exc


def _build_schema(cls: type, naming: NamingConvention) -> TableSchema:
    if not dataclasses.is_dataclass(cls):
        raise ConfigError(f"{cls!r} is not a dataclass record")

    name = cls.__name__
    hints = _type_hints(cls)
    declared = {f.name for f in dataclasses.fields(cls)}

    columns: list[tuple[str, TagSpec, FieldType]] = []
    record_refs: dict[str, RecordRef] = {}
    for f in dataclasses.fields(cls):
        try:
            tags = field_tags(f)
        except TagSyntaxError as exc:
            raise exc.with_context(record=name, column=f.name)
        if tags.ignore:
            continue
        annotation = hints.get(f.name, f.type)
        try:
            resolved = resolve_annotation(annotation)
        except LookupError:
            if not tags.col_type:
                raise UnsupportedFieldTypeError(
                    f"{name}.{f.name}: cannot map {annotation!r} to a column type"
                ).with_context(record=name, column=f.name) from None
            resolved = custom_field_type(annotation, tags.col_type)
        if resolved is None:
            continue
        if isinstance(resolved, RecordRef):
            record_refs[f.name] = resolved
            continue
        columns.append((f.name, tags, resolved))

    explicit_pks = [attr for attr, tags, _ in columns if tags.pk]
    if len(explicit_pks) > 1:
        raise DuplicatePrimaryKeyError(name, explicit_pks)
    pk_attr = explicit_pks[0] if explicit_pks else None
    if pk_attr is None:
        for attr, _, ftype in columns:
            if attr == naming.id_field and ftype.kind is not None and ftype.kind.is_integer:
                pk_attr = attr
                break

    specs: list[FieldSpec] = []
    references: list[ReferenceSpec] = []
    suffix = naming.id_suffix
    for attr, tags, ftype in columns:
        column_name = naming.field_to_column(attr)
        specs.append(FieldSpec(attr, column_name, ftype, tags, pk=attr == pk_attr))

        ref_attr: str | None = None
        if tags.fk:
            ref_attr = tags.fk
        elif tags.join:
            ref_attr = tags.join
        elif (
            len(attr) > len(suffix)
            and attr.endswith(suffix)
            and ftype.kind is not None
            and ftype.kind.is_integer
        ):
            ref_attr = attr[: -len(suffix)]
        if ref_attr is None:
            continue

        target = record_refs.get(ref_attr)
        if target is None:
            if tags.fk or tags.join:
                reason = (
                    "is not a record reference"
                    if ref_attr in declared
                    else "no such field"
                )
                raise ReferenceResolutionError(name, ref_attr, reason)
            continue
        references.append(
            ReferenceSpec(
                attr=ref_attr,
                alias=naming.class_to_table(ref_attr),
                local_attr=attr,
                local_column=column_name,
                target=target.target,
                foreign_key=bool(tags.fk),
            )
        )

    return TableSchema(cls=cls, table=table_name(cls), fields=tuple(specs), references=tuple(references))


# ---------------------------------------------------------------------------
# Extraction (per call)
# ---------------------------------------------------------------------------


def _zero_for(annotation: Any) -> Any:
    try:
        resolved = resolve_annotation(annotation)
    except LookupError:
        return None
    if resolved is None:
        origin = typing.get_origin(annotation) or annotation
        return origin() if callable(origin) else None
    if isinstance(resolved, RecordRef) or resolved.nullable:
        return None
    return zero_value(resolved.kind)


def new_record(cls: type) -> Any:
    """Zero-valued instance of ``cls``, filling required fields by type."""
    hints = _type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        if not f.init:
            continue
        if f.default is not dataclasses.MISSING or f.default_factory is not dataclasses.MISSING:
            continue
        kwargs[f.name] = _zero_for(hints.get(f.name, f.type))
    return cls(**kwargs)


def extract(record: Any, root: bool = True, omit: Iterable[str] = ()) -> Model:
    """Bind a record's current values onto its cached schema.

    For the root model, each resolved reference gets a sub-model; a ``None``
    reference attribute is replaced on ``record`` by a zero-valued instance
    so the row mapper has a destination.  ``omit`` names attributes (columns
    or references) to leave out.
    """
    if isinstance(record, type):
        raise ConfigError(f"extract() needs a record instance, got the class {record.__name__}")
    schema = schema_for(record)
    omitted = set(omit)

    fields: list[ModelField] = []
    pk: ModelField | None = None
    for spec in schema.fields:
        if spec.attr in omitted:
            continue
        mf = spec.bind(getattr(record, spec.attr))
        fields.append(mf)
        if mf.pk:
            pk = mf

    model = Model(table=schema.table, fields=fields, pk=pk, record=record)
    if not root:
        return model

    by_local: dict[str, ReferenceSpec] = {}
    for ref in schema.references:
        if ref.attr in omitted or ref.local_attr in omitted:
            continue
        target = getattr(record, ref.attr)
        if target is None:
            target = new_record(ref.target)
            setattr(record, ref.attr, target)
        sub = extract(target, root=False)
        if sub.pk is None:
            raise ReferenceResolutionError(
                type(record).__name__, ref.attr, "referenced record has no primary key"
            )
        model.references[ref.attr] = Reference(
            attr=ref.attr,
            alias=ref.alias,
            local_column=ref.local_column,
            model=sub,
            foreign_key=ref.foreign_key,
        )
        by_local[ref.local_attr] = ref

    for f in fields:
        if f.attr in by_local:
            model.indexes.add(f.column)
        if f.unique:
            model.indexes.add_unique(f.column)
        elif f.index:
            model.indexes.add(f.column)

    cls = type(record)
    if isinstance(cls, Indexed) and callable(cls.indexes):
        cls.indexes(model.indexes)
    return model


__all__ = [
    "IndexSpec",
    "Indexes",
    "Model",
    "ModelField",
    "Reference",
    "SchemaCache",
    "TableSchema",
    "extract",
    "new_record",
    "schema_cache",
    "schema_for",
    "table_name",
]
