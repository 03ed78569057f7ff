"""Expression tree produced by the formula parser.

Nodes are immutable; a parsed tree belongs to the formula cell that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from gridcalc._cell import CellAddress, CellRange


@dataclass(frozen=True)
class Literal:
    value: int | float | str | bool


@dataclass(frozen=True)
class CellRef:
    address: CellAddress


@dataclass(frozen=True)
class RangeRef:
    range: CellRange


@dataclass(frozen=True)
class UnaryOp:
    op: str  # "-" or "+"
    operand: Expression


@dataclass(frozen=True)
class BinaryOp:
    op: str  # + - * / & = <> < > <= >=
    left: Expression
    right: Expression


@dataclass(frozen=True)
class FunctionCall:
    name: str  # upper-cased
    args: tuple[Expression, ...]


Expression = Union[Literal, CellRef, RangeRef, UnaryOp, BinaryOp, FunctionCall]


def walk(expr: Expression):
    """Yield *expr* and all of its descendants, depth-first, left to right."""
    stack: list[Expression] = [expr]
    while stack:
        node = stack.pop()
        yield node
        if isinstance(node, BinaryOp):
            stack.append(node.right)
            stack.append(node.left)
        elif isinstance(node, UnaryOp):
            stack.append(node.operand)
        elif isinstance(node, FunctionCall):
            stack.extend(reversed(node.args))
