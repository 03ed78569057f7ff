"""Tests for gridcalc.calc formula parser."""

from __future__ import annotations

import pytest

from gridcalc import EMPTY, CellAddress, CellRange, Formula, FormulaSyntaxError, NumberLiteral, TextLiteral
from gridcalc.calc import (
    BinaryOp,
    CellRef,
    FunctionCall,
    Literal,
    RangeRef,
    UnaryOp,
    function_names,
    parse,
    parse_command,
    parse_content,
    references,
)
from gridcalc.calc._parser import MAX_NESTING, tokenize


def _ref(a1: str) -> CellRef:
    return CellRef(CellAddress.from_a1(a1))


class TestTokenize:
    def test_kinds(self) -> None:
        kinds = [t.kind for t in tokenize('SUM(A1:B2, "x") <= 3.5')]
        assert kinds == [
            "FUNC", "LPAREN", "CELL", "COLON", "CELL", "COMMA",
            "STRING", "RPAREN", "OP", "NUMBER", "EOF",
        ]

    def test_positions_are_offset(self) -> None:
        tokens = tokenize("A1 + 2", base=1)
        assert [t.pos for t in tokens] == [1, 4, 6, 7]

    def test_function_names_upper_cased(self) -> None:
        assert tokenize("sum(1)")[0].text == "SUM"

    def test_string_escape(self) -> None:
        assert tokenize('"say ""hi"""')[0].text == 'say "hi"'


class TestPrecedence:
    def test_mul_before_add(self) -> None:
        assert parse("=1+2*3") == BinaryOp("+", Literal(1), BinaryOp("*", Literal(2), Literal(3)))

    def test_parentheses(self) -> None:
        assert parse("=(1+2)*3") == BinaryOp("*", BinaryOp("+", Literal(1), Literal(2)), Literal(3))

    def test_left_associative(self) -> None:
        assert parse("=10-3-2") == BinaryOp("-", BinaryOp("-", Literal(10), Literal(3)), Literal(2))

    def test_unary_minus(self) -> None:
        assert parse("=-A1*2") == BinaryOp("*", UnaryOp("-", _ref("A1")), Literal(2))

    def test_comparison_lowest(self) -> None:
        expr = parse('=A1&"x"="1x"')
        assert expr == BinaryOp("=", BinaryOp("&", _ref("A1"), Literal("x")), Literal("1x"))

    def test_concat_below_additive(self) -> None:
        assert parse("=1+2&3") == BinaryOp("&", BinaryOp("+", Literal(1), Literal(2)), Literal(3))


class TestLiterals:
    def test_integer(self) -> None:
        lit = parse("=42")
        assert lit == Literal(42)
        assert isinstance(lit.value, int)

    def test_float(self) -> None:
        assert parse("=2.5") == Literal(2.5)
        assert parse("=1e3") == Literal(1000.0)
        assert parse("=.5") == Literal(0.5)

    def test_boolean(self) -> None:
        assert parse("=TRUE") == Literal(True)
        assert parse("=false") == Literal(False)

    def test_string(self) -> None:
        assert parse('="a""b"') == Literal('a"b')

    def test_absolute_reference(self) -> None:
        assert parse("=$B$2") == _ref("B2")


class TestFunctionCalls:
    def test_range_argument(self) -> None:
        expr = parse("=sum(A1:B2)")
        assert expr == FunctionCall("SUM", (RangeRef(CellRange.from_a1("A1:B2")),))

    def test_no_arguments(self) -> None:
        assert parse("=NOW()") == FunctionCall("NOW", ())

    def test_nested(self) -> None:
        expr = parse("=IF(A1>0, MAX(1, A2), 0)")
        assert isinstance(expr, FunctionCall)
        assert expr.name == "IF"
        assert expr.args[1] == FunctionCall("MAX", (Literal(1), _ref("A2")))

    def test_reversed_range_is_normalized(self) -> None:
        expr = parse("=SUM(B2:A1)")
        assert expr.args[0] == RangeRef(CellRange.from_a1("A1:B2"))


class TestSyntaxErrors:
    @pytest.mark.parametrize(
        "text,position",
        [
            ("1+2", 0),
            ("=", 1),
            ("=1+", 3),
            ("=(1+2", 5),
            ("=1 @ 2", 3),
            ("=foo", 1),
            ('="abc', 1),
            ("=A0", 1),
            ("=1 2", 3),
            ("=SUM(1,", 7),
            ("=²", 1),
            ("=1+²", 3),
        ],
    )
    def test_position(self, text: str, position: int) -> None:
        with pytest.raises(FormulaSyntaxError) as exc:
            parse(text)
        assert exc.value.position == position
        assert exc.value.kind == "SyntaxError"
        assert f"at position {position}" in exc.value.message

    def test_bare_range_rejected(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="only allowed as function arguments"):
            parse("=A1:B2")

    def test_superscript_digit_rejected(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Unexpected character"):
            parse("=A1*²")

    def test_non_ascii_digits_are_not_numbers(self) -> None:
        assert parse_content("١٢") == TextLiteral("١٢")


class TestNesting:
    def test_at_limit(self) -> None:
        expr = parse("=" + "(" * MAX_NESTING + "1" + ")" * MAX_NESTING)
        assert expr == Literal(1)

    def test_parentheses_over_limit(self) -> None:
        depth = MAX_NESTING + 1
        with pytest.raises(FormulaSyntaxError, match="nested too deeply") as exc:
            parse("=" + "(" * depth + "1" + ")" * depth)
        assert exc.value.position == MAX_NESTING + 1

    def test_function_calls_over_limit(self) -> None:
        text = "=" + "ABS(" * 100 + "1" + ")" * 100
        with pytest.raises(FormulaSyntaxError, match="nested too deeply"):
            parse(text)

    def test_unary_over_limit(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="nested too deeply"):
            parse("=" + "-" * 1000 + "1")

    def test_siblings_do_not_accumulate(self) -> None:
        text = "=" + "+".join("(" * 40 + "1" + ")" * 40 for _ in range(10))
        assert isinstance(parse(text), BinaryOp)

    def test_long_flat_chain_parses(self) -> None:
        expr = parse("=" + "+".join(["A1"] * 3000))
        assert isinstance(expr, BinaryOp)
        assert references(expr) == ([CellAddress(0, 0)], [])


class TestNumberRange:
    def test_large_integer_stays_exact(self) -> None:
        assert parse_content("12345678901234567890") == NumberLiteral(12345678901234567890)

    def test_integer_beyond_float_range_is_inf(self) -> None:
        content = parse_content("1" + "0" * 400)
        assert isinstance(content, NumberLiteral)
        assert content.value == float("inf")

    def test_formula_literal_beyond_float_range(self) -> None:
        assert parse("=1" + "0" * 400) == Literal(float("inf"))


class TestParseContent:
    @pytest.mark.parametrize("text", ["", "   "])
    def test_blank(self, text: str) -> None:
        assert parse_content(text) is EMPTY

    def test_integer(self) -> None:
        content = parse_content("42")
        assert content == NumberLiteral(42)
        assert isinstance(content.value, int)

    @pytest.mark.parametrize("text,value", [("-3.5", -3.5), ("1e3", 1000.0), ("+7", 7), (" 0.1 ", 0.1)])
    def test_numbers(self, text: str, value: float) -> None:
        assert parse_content(text) == NumberLiteral(value)

    def test_text(self) -> None:
        assert parse_content("hello") == TextLiteral("hello")
        assert parse_content("12abc") == TextLiteral("12abc")

    def test_formula(self) -> None:
        content = parse_content("=A1+1")
        assert isinstance(content, Formula)
        assert content.source == "=A1+1"
        assert content.expression == BinaryOp("+", _ref("A1"), Literal(1))

    def test_error_position_counts_leading_whitespace(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc:
            parse_content(" =A1+")
        assert exc.value.position == 5


class TestParseCommand:
    def test_formula(self) -> None:
        addr, content = parse_command("B2=A1+1")
        assert addr == CellAddress(1, 1)
        assert isinstance(content, Formula)
        assert content.source == "=A1+1"

    def test_number(self) -> None:
        assert parse_command("A1=5") == (CellAddress(0, 0), NumberLiteral(5))

    def test_blank_clears(self) -> None:
        assert parse_command("A1=") == (CellAddress(0, 0), EMPTY)

    def test_optional_leading_equals(self) -> None:
        _, content = parse_command("A1==B1")
        assert content.source == "=B1"

    def test_spaces(self) -> None:
        addr, content = parse_command("C3 = SUM(A1:B2)")
        assert addr == CellAddress.from_a1("C3")
        assert content.source == "=SUM(A1:B2)"

    def test_missing_assignment(self) -> None:
        with pytest.raises(FormulaSyntaxError, match="Expected"):
            parse_command("bogus")

    def test_invalid_target(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc:
            parse_command("1A=3")
        assert exc.value.position == 0

    def test_error_position_in_command(self) -> None:
        with pytest.raises(FormulaSyntaxError) as exc:
            parse_command("A1=1+")
        assert exc.value.position == 5


class TestReferences:
    def test_deduplicated(self) -> None:
        cells, ranges = references(parse("=A1+SUM(B1:C2)+A1+SUM(B1:C2)"))
        assert cells == [CellAddress(0, 0)]
        assert ranges == [CellRange.from_a1("B1:C2")]

    def test_literal_only(self) -> None:
        assert references(parse("=1+2")) == ([], [])

    def test_function_names(self) -> None:
        expr = parse("=IF(A1>0, SUM(A1:A2), MAX(1, SUM(3)))")
        assert function_names(expr) == ["IF", "SUM", "MAX"]
