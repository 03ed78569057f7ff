"""Evaluator: walks an expression tree against a caller-supplied value lookup.

Evaluation never raises for spreadsheet-level problems.  Division by zero,
type mismatches, unknown functions and the like become :class:`CellError`
values that propagate through dependent formulas the way NaN does through
floating-point arithmetic.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any, Callable

from gridcalc._cell import CellAddress, CellRange
from gridcalc.calc._ast import (
    BinaryOp,
    CellRef,
    Expression,
    FunctionCall,
    Literal,
    RangeRef,
    UnaryOp,
)
from gridcalc.calc._functions import (
    CellError,
    CellValue,
    FunctionRegistry,
    RangeValue,
    first_error,
    out_of_range,
    to_number,
    to_text,
)

logger = logging.getLogger(__name__)

ValueLookup = Callable[[CellAddress], CellValue]
# Yields (address, value) for the populated cells of a range only.
RangeLookup = Callable[[CellRange], Iterable[tuple[CellAddress, CellValue]]]


# ---------------------------------------------------------------------------
# Operators
# ---------------------------------------------------------------------------


def _finite(value: Any) -> Any:
    return CellError.NUM if out_of_range(value) else value


def _binary_op(left: Any, op: str, right: Any) -> CellValue:
    """Evaluate an arithmetic or concatenation operation."""
    err = first_error(left, right)
    if err is not None:
        return err
    if op == "&":
        return to_text(left) + to_text(right)
    if isinstance(left, str) or isinstance(right, str):
        return CellError.VALUE
    lv, rv = to_number(left), to_number(right)
    if op == "/" and rv == 0:
        return CellError.DIV0
    try:
        if op == "+":
            return _finite(lv + rv)
        if op == "-":
            return _finite(lv - rv)
        if op == "*":
            return _finite(lv * rv)
        if op == "/":
            return _finite(lv / rv)
    except ArithmeticError as e:
        logger.debug("Numeric error in %r: %s", op, e)
        return CellError.NUM
    raise ValueError(f"Unknown operator {op!r}")


def _type_rank(value: Any) -> int:
    """Cross-type ordering: numbers < text < booleans."""
    if isinstance(value, bool):
        return 2
    if isinstance(value, str):
        return 1
    return 0


def _compare(left: Any, right: Any, op: str) -> bool | CellError:
    """Evaluate a comparison.

    Empty compares as 0 against numbers and as "" against text.  Text
    comparison is case-insensitive.  Values of different types order as
    numbers < text < booleans.
    """
    err = first_error(left, right)
    if err is not None:
        return err
    if left is None:
        left = "" if isinstance(right, str) else 0
    if right is None:
        right = "" if isinstance(left, str) else 0

    lr, rr = _type_rank(left), _type_rank(right)
    if lr != rr:
        lk: Any = lr
        rk: Any = rr
    elif lr == 1:
        lk, rk = left.lower(), right.lower()
    else:
        lk, rk = left, right

    if op == "=":
        return lk == rk
    if op == "<>":
        return lk != rk
    if op == "<":
        return lk < rk
    if op == ">":
        return lk > rk
    if op == "<=":
        return lk <= rk
    if op == ">=":
        return lk >= rk
    raise ValueError(f"Unknown comparison {op!r}")


# ---------------------------------------------------------------------------
# Evaluator
# ---------------------------------------------------------------------------


class Evaluator:
    """Evaluates expression trees.

    Usage::

        evaluator = Evaluator()
        value = evaluator.evaluate(parse("=A1*2"), store.get_value)
    """

    def __init__(self, functions: FunctionRegistry | None = None) -> None:
        self._functions = functions if functions is not None else FunctionRegistry()

    @property
    def functions(self) -> FunctionRegistry:
        return self._functions

    def evaluate(
        self,
        expr: Expression,
        value_lookup: ValueLookup,
        range_lookup: RangeLookup | None = None,
    ) -> CellValue:
        """Evaluate *expr* as a whole formula.

        *range_lookup* lets the caller enumerate only populated cells of a
        range; without it every address in the range is passed to
        *value_lookup*.  An Empty result (a bare reference to an empty cell)
        evaluates to 0.
        """
        if range_lookup is None:
            range_lookup = _dense_range_lookup(value_lookup)
        try:
            result = self._eval(expr, value_lookup, range_lookup)
        except RecursionError:
            logger.debug("Formula nests too deeply to evaluate")
            return CellError.NUM
        if isinstance(result, RangeValue):
            return CellError.VALUE
        return 0 if result is None else _finite(result)

    def _eval(self, expr: Expression, lookup: ValueLookup, ranges: RangeLookup) -> Any:
        if isinstance(expr, Literal):
            return expr.value
        if isinstance(expr, CellRef):
            return lookup(expr.address)
        if isinstance(expr, BinaryOp):
            left = self._scalar(self._eval(expr.left, lookup, ranges))
            right = self._scalar(self._eval(expr.right, lookup, ranges))
            if expr.op in ("+", "-", "*", "/", "&"):
                return _binary_op(left, expr.op, right)
            return _compare(left, right, expr.op)
        if isinstance(expr, UnaryOp):
            val = self._scalar(self._eval(expr.operand, lookup, ranges))
            if isinstance(val, CellError):
                return val
            if isinstance(val, str):
                return CellError.VALUE
            num = to_number(val)
            return _finite(-num if expr.op == "-" else num)
        if isinstance(expr, FunctionCall):
            return self._call(expr, lookup, ranges)
        if isinstance(expr, RangeRef):
            return self._resolve_range(expr.range, ranges)
        raise TypeError(f"Not an expression node: {expr!r}")

    @staticmethod
    def _scalar(value: Any) -> Any:
        # A range can only be consumed by a function argument.
        return CellError.VALUE if isinstance(value, RangeValue) else value

    @staticmethod
    def _resolve_range(rng: CellRange, ranges: RangeLookup) -> RangeValue:
        n_rows, n_cols = rng.shape
        values = [v for _, v in ranges(rng) if v is not None]
        return RangeValue(values=values, n_rows=n_rows, n_cols=n_cols)

    # ------------------------------------------------------------------
    # Function dispatch
    # ------------------------------------------------------------------

    def _call(self, call: FunctionCall, lookup: ValueLookup, ranges: RangeLookup) -> Any:
        spec = self._functions.get(call.name)
        if spec is None:
            logger.debug("Unknown function: %s", call.name)
            return CellError.NAME
        if not spec.accepts(len(call.args)):
            logger.debug("Wrong argument count for %s: %d", call.name, len(call.args))
            return CellError.ARITY

        if spec.lazy:
            args: list[Any] = [
                (lambda a=arg: self._scalar(self._eval(a, lookup, ranges)))
                for arg in call.args
            ]
        else:
            args = [self._eval(arg, lookup, ranges) for arg in call.args]
            if not spec.tolerates_errors:
                err = first_error(*args)
                if err is not None:
                    return err

        try:
            result = spec.func(args)
        except ZeroDivisionError:
            return CellError.DIV0
        except ArithmeticError as e:
            logger.debug("Numeric error evaluating %s: %s", call.name, e)
            return CellError.NUM
        except (TypeError, ValueError) as e:
            logger.debug("Error evaluating %s: %s", call.name, e)
            return CellError.VALUE
        return _finite(result)


def _dense_range_lookup(lookup: ValueLookup) -> RangeLookup:
    def _ranges(rng: CellRange) -> Iterable[tuple[CellAddress, CellValue]]:
        for addr in rng.cells():
            yield addr, lookup(addr)

    return _ranges
