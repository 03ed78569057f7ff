"""Error values, range containers and builtin function implementations."""

from __future__ import annotations

import math
import sys
import time
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Union

from gridcalc._errors import ArityError, UnknownFunctionError


# ---------------------------------------------------------------------------
# CellError: typed error values that propagate through formula chains
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Error kinds a cell value can carry. The value is the display tag."""

    DIV_BY_ZERO = "#DIV/0!"
    TYPE_MISMATCH = "#VALUE!"
    UNKNOWN_FUNCTION = "#NAME?"
    ARITY = "#ARITY!"
    NUMERIC = "#NUM!"
    OUT_OF_BOUNDS = "#REF!"
    CYCLE = "#CYCLE!"
    SYNTAX = "#SYNTAX!"


class CellError:
    """Error value stored in a cell instead of raising.

    Use ``CellError.of(kind)`` (or the class-level singletons) so identical
    kinds share one instance.  Errors compare equal to their display tag, so
    ``CellError.DIV0 == "#DIV/0!"`` holds.
    """

    __slots__ = ("kind",)
    _cache: dict[ErrorKind, CellError] = {}

    DIV0: CellError
    VALUE: CellError
    NAME: CellError
    ARITY: CellError
    NUM: CellError
    REF: CellError
    CYCLE: CellError
    SYNTAX: CellError

    def __init__(self, kind: ErrorKind) -> None:
        self.kind = kind

    @classmethod
    def of(cls, kind: ErrorKind | str) -> CellError:
        canon = ErrorKind(kind)
        if canon not in cls._cache:
            cls._cache[canon] = cls(canon)
        return cls._cache[canon]

    @property
    def code(self) -> str:
        return self.kind.value

    def __repr__(self) -> str:
        return self.code

    def __str__(self) -> str:
        return self.code

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CellError):
            return self.kind is other.kind
        if isinstance(other, str):
            return self.code == other.upper()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.code)


CellError.DIV0 = CellError.of(ErrorKind.DIV_BY_ZERO)
CellError.VALUE = CellError.of(ErrorKind.TYPE_MISMATCH)
CellError.NAME = CellError.of(ErrorKind.UNKNOWN_FUNCTION)
CellError.ARITY = CellError.of(ErrorKind.ARITY)
CellError.NUM = CellError.of(ErrorKind.NUMERIC)
CellError.REF = CellError.of(ErrorKind.OUT_OF_BOUNDS)
CellError.CYCLE = CellError.of(ErrorKind.CYCLE)
CellError.SYNTAX = CellError.of(ErrorKind.SYNTAX)

# None is an empty cell; bool is a Number produced by comparisons.
CellValue = Union[None, int, float, bool, str, CellError]


def is_error(val: Any) -> bool:
    return isinstance(val, CellError)


def first_error(*values: Any) -> CellError | None:
    """Return the first CellError in *values* (looking inside ranges), or None."""
    for v in values:
        if isinstance(v, CellError):
            return v
        if isinstance(v, RangeValue):
            err = v.first_error()
            if err is not None:
                return err
    return None


# ---------------------------------------------------------------------------
# RangeValue: sparse view over a resolved range
# ---------------------------------------------------------------------------


@dataclass
class RangeValue:
    """Values of the populated cells in a range, in row-major order.

    Empty cells are not listed; ``size`` is the full cell count of the
    rectangle, so ``size - len(values)`` cells are empty.
    """

    values: list[Any]
    n_rows: int
    n_cols: int

    @property
    def size(self) -> int:
        return self.n_rows * self.n_cols

    def first_error(self) -> CellError | None:
        for v in self.values:
            if isinstance(v, CellError):
                return v
        return None

    def __iter__(self) -> Iterator[Any]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


def out_of_range(value: Any) -> bool:
    """True for NaN, infinities and integers too large to fit a float."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return abs(value) > sys.float_info.max
    if isinstance(value, float):
        return math.isinf(value) or math.isnan(value)
    return False


def format_number(value: int | float | bool) -> str:
    """Canonical decimal text: ``15``, ``2.5``, ``0.1``, ``TRUE``."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if out_of_range(value):
        return CellError.NUM.code
    if isinstance(value, int):
        return str(value)
    if value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(value)


def to_text(value: Any) -> str:
    """Display text of a scalar value (Empty is ``""``)."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, CellError):
        return value.code
    return format_number(value)


def to_number(value: Any) -> int | float:
    """Scalar numeric coercion: Empty is 0, booleans are 1/0, text is rejected."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    raise TypeError(f"expected a number, got {value!r}")


def to_bool(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (bool, int, float)):
        return value != 0
    raise TypeError(f"expected a logical value, got {value!r}")


def _numbers(args: list[Any]) -> list[int | float]:
    """Flatten arguments to numbers for aggregate functions.

    Inside ranges, text and booleans are skipped.  Direct arguments skip
    Empty, count booleans as 1/0 and reject text.
    """
    result: list[int | float] = []
    for v in args:
        if isinstance(v, RangeValue):
            result.extend(
                x for x in v.values
                if isinstance(x, (int, float)) and not isinstance(x, bool)
            )
        elif v is None:
            continue
        else:
            result.append(to_number(v))
    return result


# ---------------------------------------------------------------------------
# Builtin implementations. Eager builtins take a list of resolved argument
# values; lazy ones take a list of zero-argument callables.
# ---------------------------------------------------------------------------


def _builtin_sum(args: list[Any]) -> int | float:
    return sum(_numbers(args))


def _builtin_average(args: list[Any]) -> float | CellError:
    nums = _numbers(args)
    if not nums:
        return CellError.DIV0
    return sum(nums) / len(nums)


def _builtin_count(args: list[Any]) -> int:
    """COUNT - numeric values only."""
    return len(_numbers([a for a in args if not isinstance(a, str)]))


def _builtin_counta(args: list[Any]) -> int:
    """COUNTA - non-empty values."""
    count = 0
    for v in args:
        if isinstance(v, RangeValue):
            count += len(v)
        elif v is not None:
            count += 1
    return count


def _builtin_min(args: list[Any]) -> int | float:
    nums = _numbers(args)
    return min(nums) if nums else 0


def _builtin_max(args: list[Any]) -> int | float:
    nums = _numbers(args)
    return max(nums) if nums else 0


def _builtin_stdev(args: list[Any]) -> float:
    """Population standard deviation; 0 for fewer than two values."""
    nums = _numbers(args)
    if len(nums) < 2:
        return 0.0
    mean = sum(nums) / len(nums)
    return math.sqrt(sum((x - mean) ** 2 for x in nums) / len(nums))


def _builtin_abs(args: list[Any]) -> int | float:
    return abs(to_number(args[0]))


def _builtin_round(args: list[Any]) -> float:
    """ROUND - halves round away from zero."""
    x = to_number(args[0])
    digits = int(to_number(args[1])) if len(args) > 1 else 0
    factor = 10.0 ** digits
    return math.copysign(math.floor(abs(x) * factor + 0.5) / factor, x)


def _builtin_int(args: list[Any]) -> int:
    return math.floor(to_number(args[0]))


def _builtin_mod(args: list[Any]) -> int | float | CellError:
    n, d = to_number(args[0]), to_number(args[1])
    if d == 0:
        return CellError.DIV0
    return n % d


def _builtin_power(args: list[Any]) -> int | float | CellError:
    base, exp = to_number(args[0]), to_number(args[1])
    if base == 0 and exp < 0:
        return CellError.DIV0
    try:
        result = float(base) ** exp
    except OverflowError:
        return CellError.NUM
    if isinstance(result, complex) or out_of_range(result):
        return CellError.NUM
    if isinstance(base, int) and isinstance(exp, int) and exp >= 0:
        return base ** exp
    return result


def _builtin_sqrt(args: list[Any]) -> float | CellError:
    x = to_number(args[0])
    if x < 0:
        return CellError.NUM
    return math.sqrt(x)


def _builtin_and(args: list[Any]) -> bool:
    values: list[Any] = []
    for a in args:
        if isinstance(a, RangeValue):
            values.extend(x for x in a if not isinstance(x, str))
        else:
            values.append(a)
    return all(to_bool(v) for v in values)


def _builtin_or(args: list[Any]) -> bool:
    values: list[Any] = []
    for a in args:
        if isinstance(a, RangeValue):
            values.extend(x for x in a if not isinstance(x, str))
        else:
            values.append(a)
    return any(to_bool(v) for v in values)


def _builtin_not(args: list[Any]) -> bool:
    return not to_bool(args[0])


def _builtin_if(thunks: list[Callable[[], Any]]) -> Any:
    condition = thunks[0]()
    if isinstance(condition, CellError):
        return condition
    if to_bool(condition):
        return thunks[1]()
    return thunks[2]() if len(thunks) > 2 else False


def _builtin_iferror(thunks: list[Callable[[], Any]]) -> Any:
    value = thunks[0]()
    if isinstance(value, CellError):
        return thunks[1]()
    return value


def _builtin_len(args: list[Any]) -> int:
    return len(to_text(args[0]))


def _builtin_upper(args: list[Any]) -> str:
    return to_text(args[0]).upper()


def _builtin_lower(args: list[Any]) -> str:
    return to_text(args[0]).lower()


def _builtin_concatenate(args: list[Any]) -> str:
    parts: list[str] = []
    for a in args:
        if isinstance(a, RangeValue):
            parts.extend(to_text(x) for x in a)
        else:
            parts.append(to_text(a))
    return "".join(parts)


def _builtin_sleep(args: list[Any]) -> int | float:
    """Pause for the given number of seconds and return it."""
    secs = to_number(args[0])
    if secs > 0:
        time.sleep(secs)
    return secs


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FunctionSpec:
    """A callable plus its arity bounds (``max_args=None`` is unbounded).

    ``lazy`` functions receive thunks instead of values.  Functions that do
    not ``tolerate_errors`` never see an error argument: the evaluator
    propagates it before the call.
    """

    func: Callable[[list[Any]], Any]
    min_args: int
    max_args: int | None = None
    lazy: bool = False
    tolerates_errors: bool = False

    def accepts(self, n_args: int) -> bool:
        if n_args < self.min_args:
            return False
        return self.max_args is None or n_args <= self.max_args


_BUILTINS: dict[str, FunctionSpec] = {
    # Aggregates
    "SUM": FunctionSpec(_builtin_sum, 1),
    "AVERAGE": FunctionSpec(_builtin_average, 1),
    "AVG": FunctionSpec(_builtin_average, 1),
    "COUNT": FunctionSpec(_builtin_count, 1),
    "COUNTA": FunctionSpec(_builtin_counta, 1),
    "MIN": FunctionSpec(_builtin_min, 1),
    "MAX": FunctionSpec(_builtin_max, 1),
    "STDEV": FunctionSpec(_builtin_stdev, 1),
    # Math
    "ABS": FunctionSpec(_builtin_abs, 1, 1),
    "ROUND": FunctionSpec(_builtin_round, 1, 2),
    "INT": FunctionSpec(_builtin_int, 1, 1),
    "MOD": FunctionSpec(_builtin_mod, 2, 2),
    "POWER": FunctionSpec(_builtin_power, 2, 2),
    "SQRT": FunctionSpec(_builtin_sqrt, 1, 1),
    # Logic
    "IF": FunctionSpec(_builtin_if, 2, 3, lazy=True),
    "IFERROR": FunctionSpec(_builtin_iferror, 2, 2, lazy=True, tolerates_errors=True),
    "AND": FunctionSpec(_builtin_and, 1),
    "OR": FunctionSpec(_builtin_or, 1),
    "NOT": FunctionSpec(_builtin_not, 1, 1),
    # Text
    "LEN": FunctionSpec(_builtin_len, 1, 1),
    "UPPER": FunctionSpec(_builtin_upper, 1, 1),
    "LOWER": FunctionSpec(_builtin_lower, 1, 1),
    "CONCATENATE": FunctionSpec(_builtin_concatenate, 1),
    # Misc
    "SLEEP": FunctionSpec(_builtin_sleep, 1, 1),
}


class FunctionRegistry:
    """Registry of callable function implementations.

    Starts with the builtins and can be extended with custom functions.
    """

    def __init__(self) -> None:
        self._functions: dict[str, FunctionSpec] = dict(_BUILTINS)

    def register(
        self,
        name: str,
        func: Callable[[list[Any]], Any],
        min_args: int = 0,
        max_args: int | None = None,
        *,
        lazy: bool = False,
        tolerates_errors: bool = False,
    ) -> None:
        self._functions[name.upper()] = FunctionSpec(
            func, min_args, max_args, lazy=lazy, tolerates_errors=tolerates_errors,
        )

    def get(self, name: str) -> FunctionSpec | None:
        return self._functions.get(name.upper())

    def has(self, name: str) -> bool:
        return name.upper() in self._functions

    def check_call(self, name: str, n_args: int) -> FunctionSpec:
        """Return the spec for *name*, or raise if it is unknown or mis-called."""
        spec = self.get(name)
        if spec is None:
            raise UnknownFunctionError(name.upper())
        if not spec.accepts(n_args):
            raise ArityError(name.upper(), n_args, spec.min_args, spec.max_args)
        return spec

    @property
    def supported_functions(self) -> frozenset[str]:
        return frozenset(self._functions.keys())


def is_supported(func_name: str) -> bool:
    """Check if a function name is a builtin."""
    return func_name.upper() in _BUILTINS
