"""Column tag mini-language.

A record attribute carries its mapping options as one comma-separated string::

    pk | fk:<Field> | join:<Field> | size:<N> | default:<literal>
       | index | unique | notnull | created | updated | coltype:<type> | -

Tokens are ``key`` or ``key:value``.  Anything else is a hard configuration
error raised when the record's schema is first built.

Examples:
    >>> from dataclasses import dataclass
    >>> from tabula import column
    >>> @dataclass
    ... class Post:
    ...     id: int = 0
    ...     author_id: int = column("fk:author", default=0)
    ...     title: str = column("size:255,notnull", default="")
    ...     scratch: str = column("-", default="")
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any

from tabula.errors import TagSyntaxError

TAG_METADATA_KEY = "db"

_FLAGS = frozenset({"pk", "index", "unique", "notnull", "created", "updated"})
_VALUED = frozenset({"fk", "join", "size", "default", "coltype"})


@dataclass(frozen=True)
class TagSpec:
    """Parsed column options for one attribute."""

    ignore: bool = False
    pk: bool = False
    fk: str | None = None
    join: str | None = None
    size: int = 0
    default: str | None = None
    index: bool = False
    unique: bool = False
    notnull: bool = False
    created: bool = False
    updated: bool = False
    col_type: str | None = None


def parse_tags(text: str | None) -> TagSpec:
    """Parse a tag string into a :class:`TagSpec`.

    Raises:
        TagSyntaxError: unknown key (``has_value`` tells ``key`` from
            ``key:value``), a flag given a value, a valued key without one,
            or a non-integer ``size``.
    """
    if not text:
        return TagSpec()
    text = text.strip()
    if text == "-":
        return TagSpec(ignore=True)

    options: dict[str, Any] = {}
    for raw in text.split(","):
        token = raw.strip()
        key, sep, value = token.partition(":")
        key = key.strip()
        has_value = bool(sep)

        if key in _FLAGS:
            if has_value:
                raise TagSyntaxError(
                    key, has_value=True, message=f"{token!r} tag syntax error: {key!r} takes no value"
                )
            options[key] = True
        elif key in _VALUED:
            if not has_value or not value:
                raise TagSyntaxError(
                    key, has_value=False, message=f"{token!r} tag syntax error: {key!r} requires a value"
                )
            if key == "size":
                try:
                    options["size"] = int(value)
                except ValueError:
                    raise TagSyntaxError(
                        key, has_value=True, message=f"{token!r} tag syntax error: size must be an integer"
                    ) from None
            elif key == "coltype":
                options["col_type"] = value
            else:
                options[key] = value
        else:
            raise TagSyntaxError(key, has_value=has_value)

    return TagSpec(**options)


def column(tags: str = "", **kwargs: Any) -> Any:
    """``dataclasses.field`` carrying a tag string.

    All keyword arguments (``default``, ``default_factory``, ``repr``, ...)
    are passed through to :func:`dataclasses.field`.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[TAG_METADATA_KEY] = tags
    return dataclasses.field(metadata=metadata, **kwargs)


def field_tags(field: dataclasses.Field) -> TagSpec:
    return parse_tags(field.metadata.get(TAG_METADATA_KEY))


__all__ = ["TAG_METADATA_KEY", "TagSpec", "column", "field_tags", "parse_tags"]
