"""Tests for gridcalc.calc error values, coercions and builtin functions."""

from __future__ import annotations

from typing import Any

import pytest

from gridcalc import ArityError, UnknownFunctionError
from gridcalc.calc import CellError, ErrorKind, FunctionRegistry, RangeValue, is_supported
from gridcalc.calc._functions import first_error, format_number, out_of_range, to_number, to_text


def _call(name: str, *args: Any) -> Any:
    spec = FunctionRegistry().get(name)
    assert spec is not None
    return spec.func(list(args))


def _col(*values: Any) -> RangeValue:
    return RangeValue(values=list(values), n_rows=max(len(values), 1), n_cols=1)


class TestCellError:
    def test_singletons(self) -> None:
        assert CellError.of("#DIV/0!") is CellError.DIV0
        assert CellError.of(ErrorKind.TYPE_MISMATCH) is CellError.VALUE

    def test_equals_code(self) -> None:
        assert CellError.DIV0 == "#DIV/0!"
        assert CellError.NAME == "#name?"
        assert CellError.DIV0 != CellError.VALUE

    def test_hash_matches_code(self) -> None:
        assert hash(CellError.REF) == hash("#REF!")

    def test_display(self) -> None:
        assert str(CellError.NUM) == "#NUM!"
        assert repr(CellError.CYCLE) == "#CYCLE!"
        assert CellError.ARITY.code == "#ARITY!"

    def test_unknown_code(self) -> None:
        with pytest.raises(ValueError):
            CellError.of("#NOPE!")

    def test_first_error(self) -> None:
        assert first_error(1, "x", None) is None
        assert first_error(1, _col(2, CellError.NUM), CellError.DIV0) is CellError.NUM


class TestCoercion:
    @pytest.mark.parametrize(
        "value,text",
        [
            (15, "15"),
            (15.0, "15"),
            (2.5, "2.5"),
            (-0.25, "-0.25"),
            (0.1 + 0.2, "0.30000000000000004"),
            (1e20, "1e+20"),
            (True, "TRUE"),
            (False, "FALSE"),
            (10**400, "#NUM!"),
            (float("inf"), "#NUM!"),
        ],
    )
    def test_format_number(self, value: Any, text: str) -> None:
        assert format_number(value) == text

    def test_out_of_range(self) -> None:
        assert out_of_range(10**309)
        assert out_of_range(float("nan"))
        assert not out_of_range(10**308)
        assert not out_of_range(True)
        assert not out_of_range("1e999")

    def test_to_number(self) -> None:
        assert to_number(None) == 0
        assert to_number(True) == 1
        assert to_number(2.5) == 2.5
        with pytest.raises(TypeError):
            to_number("3")

    def test_to_text(self) -> None:
        assert to_text(None) == ""
        assert to_text(4.0) == "4"
        assert to_text(CellError.DIV0) == "#DIV/0!"


class TestRegistry:
    def test_check_call(self) -> None:
        registry = FunctionRegistry()
        spec = registry.check_call("sum", 3)
        assert spec.min_args == 1

    def test_unknown(self) -> None:
        with pytest.raises(UnknownFunctionError) as exc:
            FunctionRegistry().check_call("nope", 1)
        assert exc.value.name == "NOPE"
        assert exc.value.kind == "UnknownFunction"

    def test_arity(self) -> None:
        with pytest.raises(ArityError, match="ABS expects exactly 1 argument"):
            FunctionRegistry().check_call("ABS", 2)
        with pytest.raises(ArityError, match="at least 1"):
            FunctionRegistry().check_call("SUM", 0)
        with pytest.raises(ArityError, match="2 to 3"):
            FunctionRegistry().check_call("IF", 1)

    def test_register(self) -> None:
        registry = FunctionRegistry()
        registry.register("triple", lambda args: args[0] * 3, 1, 1)
        assert registry.has("TRIPLE")
        assert "TRIPLE" in registry.supported_functions
        assert not is_supported("TRIPLE")

    def test_registries_are_independent(self) -> None:
        first = FunctionRegistry()
        first.register("ONLYHERE", lambda args: 1)
        assert not FunctionRegistry().has("ONLYHERE")

    def test_builtins(self) -> None:
        for name in ("SUM", "AVG", "AVERAGE", "MIN", "MAX", "STDEV", "SLEEP", "IF", "IFERROR"):
            assert is_supported(name)


class TestAggregates:
    def test_sum(self) -> None:
        assert _call("SUM", 1, 2, _col(3, "x", True)) == 6

    def test_sum_rejects_direct_text(self) -> None:
        with pytest.raises(TypeError):
            _call("SUM", "x")

    def test_average(self) -> None:
        assert _call("AVERAGE", _col(1, 2, 3, 4)) == 2.5
        assert _call("AVG", 2, 4) == 3.0

    def test_average_of_nothing(self) -> None:
        assert _call("AVERAGE", _col()) is CellError.DIV0

    def test_min_max(self) -> None:
        assert _call("MIN", _col(3, -1, 7)) == -1
        assert _call("MAX", _col(3, -1, 7), 10) == 10

    def test_min_max_of_nothing(self) -> None:
        assert _call("MIN", _col()) == 0
        assert _call("MAX", None) == 0

    def test_stdev_is_population(self) -> None:
        assert _call("STDEV", _col(2, 4, 4, 4, 5, 5, 7, 9)) == pytest.approx(2.0)

    def test_stdev_single_value(self) -> None:
        assert _call("STDEV", 5) == 0.0

    def test_count(self) -> None:
        assert _call("COUNT", 1, None, _col(1, "a", 2.5)) == 3

    def test_counta(self) -> None:
        assert _call("COUNTA", 1, None, "x", _col(1, "a")) == 4


class TestMath:
    def test_abs(self) -> None:
        assert _call("ABS", -3) == 3

    @pytest.mark.parametrize(
        "args,expected",
        [((2.5,), 3.0), ((-2.5,), -3.0), ((1.2345, 2), 1.23), ((1234, -2), 1200.0)],
    )
    def test_round_half_away_from_zero(self, args: tuple[Any, ...], expected: float) -> None:
        assert _call("ROUND", *args) == pytest.approx(expected)

    def test_int_floors(self) -> None:
        assert _call("INT", -2.5) == -3
        assert _call("INT", 2.9) == 2

    def test_mod(self) -> None:
        assert _call("MOD", 7, 3) == 1
        assert _call("MOD", 1, 0) is CellError.DIV0

    def test_power(self) -> None:
        assert _call("POWER", 2, 10) == 1024
        assert _call("POWER", 0, -1) is CellError.DIV0
        assert _call("POWER", -8, 1 / 3) is CellError.NUM

    def test_power_out_of_range(self) -> None:
        assert _call("POWER", 10, 5000) is CellError.NUM
        assert _call("POWER", 2, 1_000_000_000) is CellError.NUM
        assert _call("POWER", 10**400, 2) is CellError.NUM
        assert _call("POWER", 2.0, 0.5) == pytest.approx(1.4142135623730951)
        assert _call("POWER", 2, -1) == 0.5
        assert isinstance(_call("POWER", 3, 40), int)

    def test_sqrt(self) -> None:
        assert _call("SQRT", 9) == 3.0
        assert _call("SQRT", -1) is CellError.NUM


class TestLogicAndText:
    def test_and_or_not(self) -> None:
        assert _call("AND", True, 1) is True
        assert _call("AND", True, 0) is False
        assert _call("OR", 0, False) is False
        assert _call("OR", _col(0, "text", 1)) is True
        assert _call("NOT", 0) is True

    def test_and_rejects_text(self) -> None:
        with pytest.raises(TypeError):
            _call("AND", "x")

    def test_text_functions(self) -> None:
        assert _call("LEN", "hello") == 5
        assert _call("LEN", 12.5) == 4
        assert _call("UPPER", "abc") == "ABC"
        assert _call("LOWER", "ABC") == "abc"

    def test_concatenate(self) -> None:
        assert _call("CONCATENATE", "a", 1, RangeValue(["b", 2.5], 1, 2)) == "a1b2.5"

    def test_sleep_returns_argument(self) -> None:
        assert _call("SLEEP", 0) == 0
        assert _call("SLEEP", -1) == -1
