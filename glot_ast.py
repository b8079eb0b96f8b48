from __future__ import annotations

import enum

from dataclasses import dataclass
from typing import Optional


class Operator(enum.Enum):
    PLUS = '+'
    MINUS = '-'
    MULT = '*'

    def __str__(self):
        return self.value


class Expression:
    """Base class of the expression tree nodes."""

    __slots__ = ()

    def __str__(self):
        return unparse(self)


@dataclass(frozen=True)
class IntegerLiteral(Expression):
    sign: Optional[Operator]
    digits: str

    def __post_init__(self):
        if self.sign not in (None, Operator.PLUS, Operator.MINUS):
            raise ValueError(f"invalid integer sign: {self.sign!r}")
        if not self.digits or not all('0' <= c <= '9' for c in self.digits):
            raise ValueError(f"invalid integer digits: {self.digits!r}")

    @property
    def value(self) -> int:
        if self.sign is Operator.MINUS:
            return -int(self.digits)
        return int(self.digits)


@dataclass(frozen=True)
class UnaryExpression(Expression):
    operator: Operator
    operand: Expression

    def __post_init__(self):
        if not isinstance(self.operator, Operator):
            raise ValueError(f"invalid operator: {self.operator!r}")


@dataclass(frozen=True)
class BinaryExpression(Expression):
    """A flat chain of terms grouped strictly left to right.

    ``4 + 2 * 8`` is one node with three terms and two operators; there is no
    operator precedence.
    """

    terms: tuple[Expression, ...]
    operators: tuple[Operator, ...]

    def __post_init__(self):
        # Lists are accepted but stored as tuples to keep the node hashable
        object.__setattr__(self, 'terms', tuple(self.terms))
        object.__setattr__(self, 'operators', tuple(self.operators))
        if len(self.terms) < 2:
            raise ValueError("binary expression needs at least two terms")
        if len(self.operators) != len(self.terms) - 1:
            raise ValueError(
                f"{len(self.terms)} terms need {len(self.terms) - 1} "
                f"operators, got {len(self.operators)}")
        for op in self.operators:
            if not isinstance(op, Operator):
                raise ValueError(f"invalid operator: {op!r}")

    def pairs(self):
        """Yield ``(operator, term)`` for every term after the first."""
        return zip(self.operators, self.terms[1:])


def _unparse_term(node: Expression) -> str:
    if isinstance(node, IntegerLiteral):
        return unparse(node)
    return f"({unparse(node)})"


def unparse(node: Expression) -> str:
    """Emit the canonical source form of ``node``.

    Parsing the result yields a tree equal to ``node``. The operator of a
    unary expression is separated from its operand by a space, otherwise
    ``-4`` would read back as a signed integer literal.
    """
    if isinstance(node, IntegerLiteral):
        sign = node.sign.value if node.sign else ""
        return sign + node.digits
    if isinstance(node, UnaryExpression):
        return f"{node.operator.value} {_unparse_term(node.operand)}"
    if isinstance(node, BinaryExpression):
        parts = [_unparse_term(node.terms[0])]
        for op, term in node.pairs():
            parts.append(op.value)
            parts.append(_unparse_term(term))
        return " ".join(parts)
    raise TypeError(f"not an expression node: {node!r}")
