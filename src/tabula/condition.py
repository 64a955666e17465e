"""Composable WHERE conditions.

A :class:`Condition` is a head expression followed by an ordered list of
``(combinator, operand)`` links.  :meth:`Condition.merge` renders it with a
left fold, each step wrapping both sides in parentheses::

    acc = head
    for op, operand in links:
        acc = "(" + acc + ") " + op + " (" + operand.merge() + ")"

so precedence is always construction order::

    Condition("a = ?", 1).or_("b = ?", 2).and_("c = ?", 3)
    -> ((a = ?) OR (b = ?)) AND (c = ?)      args [1, 2, 3]

Operands are captured when they are attached; building on a sub-condition
after passing it to ``and_condition`` does not change the parent.

Examples:
    >>> c = Condition.in_("grade", [6, 7, 8])
    >>> c.and_condition(Condition("score <= ?", 60).or_("score >= ?", 80))
    Condition('(grade IN (?, ?, ?)) AND ((score <= ?) OR (score >= ?))', [6, 7, 8, 60, 80])
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

AND = "AND"
OR = "OR"


class Condition:
    def __init__(self, expr: str, *args: Any):
        self.expr = expr
        self.args: list[Any] = list(args)
        self.links: list[tuple[str, str, list[Any]]] = []

    @classmethod
    def equal(cls, column: str, value: Any) -> Condition:
        """``column = ?``; ``column`` is used verbatim (quote it if needed)."""
        return cls(f"{column} = ?", value)

    @classmethod
    def in_(cls, column: str, values: Iterable[Any]) -> Condition:
        """``column IN (?, ...)``; no values matches no rows."""
        values = list(values)
        if not values:
            return cls("1 = 0")
        markers = ", ".join("?" for _ in values)
        return cls(f"{column} IN ({markers})", *values)

    # -- combinators -------------------------------------------------------

    def _link(self, combinator: str, operand: Condition | None) -> Condition:
        if operand is not None:
            expr, args = operand.merge()
            self.links.append((combinator, expr, args))
        return self

    def and_(self, expr: str, *args: Any) -> Condition:
        return self._link(AND, Condition(expr, *args))

    def or_(self, expr: str, *args: Any) -> Condition:
        return self._link(OR, Condition(expr, *args))

    def and_equal(self, column: str, value: Any) -> Condition:
        return self._link(AND, Condition.equal(column, value))

    def or_equal(self, column: str, value: Any) -> Condition:
        return self._link(OR, Condition.equal(column, value))

    def and_condition(self, sub: Condition | None) -> Condition:
        """AND a whole condition; ``None`` leaves this one unchanged."""
        return self._link(AND, sub)

    def or_condition(self, sub: Condition | None) -> Condition:
        return self._link(OR, sub)

    # -- rendering ---------------------------------------------------------

    def merge(self) -> tuple[str, list[Any]]:
        """Flatten to ``(expr, args)``; args follow placeholder order."""
        expr, args = self.expr, list(self.args)
        for combinator, operand_expr, operand_args in self.links:
            expr = f"({expr}) {combinator} ({operand_expr})"
            args.extend(operand_args)
        return expr, args

    def __repr__(self) -> str:
        expr, args = self.merge()
        return f"Condition({expr!r}, {args!r})"


__all__ = ["AND", "OR", "Condition"]
