"""Per-call query state."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from tabula.condition import Condition
from tabula.model import Model

if TYPE_CHECKING:
    from tabula.dialect.base import Dialect


class Order(NamedTuple):
    path: str
    desc: bool = False


@dataclass
class Criteria:
    """Model + condition + ordering + paging for one statement.

    Created by a session for each operation and discarded afterwards.
    """

    model: Model | None = None
    condition: Condition | None = None
    order_bys: list[Order] = field(default_factory=list)
    limit: int = 0
    offset: int = 0
    omit_fields: list[str] = field(default_factory=list)
    omit_join: bool = False

    def merge_pk_condition(self, dialect: Dialect) -> None:
        """Wrap the user condition as ``pk = ? AND (condition)``.

        No-op when the model's primary key is zero.
        """
        if self.model is None or self.model.pk_zero():
            return
        pk = self.model.pk
        con = Condition(f"{dialect.quote(pk.column)} = ?", pk.value)
        con.and_condition(self.condition)
        self.condition = con


__all__ = ["Criteria", "Order"]
