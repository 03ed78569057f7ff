"""Formula parser: tokenizer + recursive descent into an expression tree.

Formulas start with ``=``.  Raw input that does not is classified as a
literal by :func:`parse_content` without going through the grammar.

Precedence, lowest to highest (binary operators are left-associative)::

    1. comparison      =  <>  <  >  <=  >=
    2. concatenation   &
    3. additive        +  -
    4. multiplicative  *  /
    5. unary           -  +
"""

from __future__ import annotations

import re
from typing import NamedTuple

from gridcalc._cell import (
    EMPTY,
    CellAddress,
    CellContent,
    CellRange,
    Formula,
    NumberLiteral,
    TextLiteral,
)
from gridcalc._errors import FormulaSyntaxError
from gridcalc._utils import a1_to_rowcol, is_a1
from gridcalc.calc._ast import (
    BinaryOp,
    CellRef,
    Expression,
    FunctionCall,
    Literal,
    RangeRef,
    UnaryOp,
    walk,
)

# ---------------------------------------------------------------------------
# Tokenizer
# ---------------------------------------------------------------------------

_NUMBER_RE = re.compile(r"(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_STRING_RE = re.compile(r'"(?:[^"]|"")*"')
_FUNC_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*(?=\s*\()")
_CELL_RE = re.compile(r"\$?[A-Za-z]{1,3}\$?\d+(?![A-Za-z0-9_.$])", re.ASCII)
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_.$]*")
_OP_RE = re.compile(r"<>|<=|>=|[-+*/&=<>]")
_PUNCT = {"(": "LPAREN", ")": "RPAREN", ",": "COMMA", ":": "COLON"}

# Literal cell input: optional sign, decimal or scientific notation.
_NUMERIC_TEXT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?", re.ASCII)
_INT_TEXT_RE = re.compile(r"[+-]?\d+", re.ASCII)

# Integers with more digits than this do not fit a float and are read as floats.
_MAX_INT_DIGITS = 308
# Parentheses, function calls and unary signs may nest this deep.
MAX_NESTING = 64

_COMPARISON_OPS = ("=", "<>", "<", ">", "<=", ">=")


def _is_digit(ch: str) -> bool:
    # str.isdigit also accepts superscripts and other Unicode digits.
    return "0" <= ch <= "9"


class Token(NamedTuple):
    kind: str  # NUMBER STRING BOOL CELL FUNC OP LPAREN RPAREN COMMA COLON EOF
    text: str
    pos: int


def tokenize(body: str, base: int = 0) -> list[Token]:
    """Split an expression (no leading ``=``) into tokens.

    Token positions are offset by *base* so errors point into the caller's text.
    """
    tokens: list[Token] = []
    i = 0
    length = len(body)
    while i < length:
        ch = body[i]
        if ch.isspace():
            i += 1
            continue
        pos = base + i

        if _is_digit(ch) or (ch == "." and i + 1 < length and _is_digit(body[i + 1])):
            m = _NUMBER_RE.match(body, i)
            if m is None:
                raise FormulaSyntaxError(pos, f"Malformed number at {ch!r}")
            tokens.append(Token("NUMBER", m.group(), pos))
            i = m.end()
            continue

        if ch == '"':
            m = _STRING_RE.match(body, i)
            if m is None:
                raise FormulaSyntaxError(pos, "Unterminated string literal")
            tokens.append(Token("STRING", m.group()[1:-1].replace('""', '"'), pos))
            i = m.end()
            continue

        if ch.isalpha() or ch in "_$":
            m = _FUNC_RE.match(body, i)
            if m:
                tokens.append(Token("FUNC", m.group().upper(), pos))
                i = m.end()
                continue
            m = _CELL_RE.match(body, i)
            if m:
                tokens.append(Token("CELL", m.group(), pos))
                i = m.end()
                continue
            m = _IDENT_RE.match(body, i)
            word = m.group() if m else ch
            if word.upper() in ("TRUE", "FALSE"):
                tokens.append(Token("BOOL", word.upper(), pos))
                i += len(word)
                continue
            raise FormulaSyntaxError(pos, f"Unknown identifier {word!r}")

        m = _OP_RE.match(body, i)
        if m:
            tokens.append(Token("OP", m.group(), pos))
            i = m.end()
            continue

        if ch in _PUNCT:
            tokens.append(Token(_PUNCT[ch], ch, pos))
            i += 1
            continue

        raise FormulaSyntaxError(pos, f"Unexpected character {ch!r}")

    tokens.append(Token("EOF", "", base + length))
    return tokens


# ---------------------------------------------------------------------------
# Recursive descent
# ---------------------------------------------------------------------------


class _Parser:
    __slots__ = ("_tokens", "_i", "_depth")

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._i = 0
        self._depth = 0

    def _nest(self, tok: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING:
            raise FormulaSyntaxError(tok.pos, "Formula is nested too deeply")

    def _peek(self, offset: int = 0) -> Token:
        idx = min(self._i + offset, len(self._tokens) - 1)
        return self._tokens[idx]

    def _advance(self) -> Token:
        tok = self._tokens[self._i]
        if tok.kind != "EOF":
            self._i += 1
        return tok

    def _expect(self, kind: str, what: str) -> Token:
        tok = self._peek()
        if tok.kind != kind:
            raise FormulaSyntaxError(tok.pos, f"Expected {what}, found {_describe(tok)}")
        return self._advance()

    def _at_op(self, *ops: str) -> bool:
        tok = self._peek()
        return tok.kind == "OP" and tok.text in ops

    def parse(self) -> Expression:
        if self._peek().kind == "EOF":
            raise FormulaSyntaxError(self._peek().pos, "Empty formula")
        expr = self._comparison()
        tok = self._peek()
        if tok.kind != "EOF":
            raise FormulaSyntaxError(tok.pos, f"Unexpected {_describe(tok)}")
        return expr

    def _comparison(self) -> Expression:
        left = self._concat()
        while self._at_op(*_COMPARISON_OPS):
            op = self._advance().text
            left = BinaryOp(op, left, self._concat())
        return left

    def _concat(self) -> Expression:
        left = self._additive()
        while self._at_op("&"):
            self._advance()
            left = BinaryOp("&", left, self._additive())
        return left

    def _additive(self) -> Expression:
        left = self._term()
        while self._at_op("+", "-"):
            op = self._advance().text
            left = BinaryOp(op, left, self._term())
        return left

    def _term(self) -> Expression:
        left = self._unary()
        while self._at_op("*", "/"):
            op = self._advance().text
            left = BinaryOp(op, left, self._unary())
        return left

    def _unary(self) -> Expression:
        if self._at_op("-", "+"):
            tok = self._advance()
            self._nest(tok)
            operand = self._unary()
            self._depth -= 1
            return UnaryOp(tok.text, operand)
        return self._primary()

    def _primary(self) -> Expression:
        tok = self._peek()
        kind = tok.kind

        if kind == "NUMBER":
            self._advance()
            return Literal(_parse_number(tok.text))
        if kind == "STRING":
            self._advance()
            return Literal(tok.text)
        if kind == "BOOL":
            self._advance()
            return Literal(tok.text == "TRUE")
        if kind == "CELL":
            if self._peek(1).kind == "COLON":
                raise FormulaSyntaxError(
                    tok.pos, "Range references are only allowed as function arguments",
                )
            self._advance()
            return CellRef(_address(tok))
        if kind == "FUNC":
            return self._function_call()
        if kind == "LPAREN":
            self._nest(self._advance())
            inner = self._comparison()
            self._expect("RPAREN", "')'")
            self._depth -= 1
            return inner
        if kind == "EOF":
            raise FormulaSyntaxError(tok.pos, "Unexpected end of formula")
        raise FormulaSyntaxError(tok.pos, f"Unexpected {_describe(tok)}")

    def _function_call(self) -> Expression:
        name = self._advance().text
        self._nest(self._expect("LPAREN", "'('"))
        args: list[Expression] = []
        if self._peek().kind == "RPAREN":
            self._advance()
            self._depth -= 1
            return FunctionCall(name, ())
        while True:
            args.append(self._argument())
            tok = self._peek()
            if tok.kind == "COMMA":
                self._advance()
                continue
            if tok.kind == "RPAREN":
                self._advance()
                self._depth -= 1
                return FunctionCall(name, tuple(args))
            raise FormulaSyntaxError(tok.pos, f"Expected ',' or ')', found {_describe(tok)}")

    def _argument(self) -> Expression:
        if self._peek().kind == "CELL" and self._peek(1).kind == "COLON":
            start = self._advance()
            self._advance()
            end = self._expect("CELL", "cell reference after ':'")
            return RangeRef(CellRange.of(_address(start), _address(end)))
        return self._comparison()


def _address(tok: Token) -> CellAddress:
    try:
        row, col = a1_to_rowcol(tok.text)
    except ValueError:
        raise FormulaSyntaxError(tok.pos, f"Invalid cell reference {tok.text!r}") from None
    return CellAddress(row, col)


def _describe(tok: Token) -> str:
    if tok.kind == "EOF":
        return "end of formula"
    return repr(tok.text)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse(text: str) -> Expression:
    """Parse formula *text* (starting with ``=``) into an expression tree.

    Raises :class:`FormulaSyntaxError` with a zero-based position into *text*.
    """
    if not text.startswith("="):
        raise FormulaSyntaxError(0, "Formula must start with '='")
    return _Parser(tokenize(text[1:], base=1)).parse()


def _parse_number(text: str) -> int | float:
    """Integers stay exact while a float could hold them; the rest are floats.

    Out-of-range input becomes ``inf`` and evaluates to ``#NUM!``.
    """
    if _INT_TEXT_RE.fullmatch(text) and len(text.lstrip("+-0")) <= _MAX_INT_DIGITS:
        return int(text)
    return float(text)


def parse_content(text: str) -> CellContent:
    """Classify raw cell input into a content variant.

    ``"=..."`` is a formula, numeric text a number, blank input clears the
    cell, anything else is stored as text.
    """
    stripped = text.strip()
    if not stripped:
        return EMPTY
    if stripped.startswith("="):
        offset = len(text) - len(text.lstrip())
        try:
            expression = parse(stripped)
        except FormulaSyntaxError as e:
            if offset:
                raise FormulaSyntaxError(e.position + offset, e.reason) from None
            raise
        return Formula(stripped, expression)
    if _NUMERIC_TEXT_RE.fullmatch(stripped):
        return NumberLiteral(_parse_number(stripped))
    return TextLiteral(text)


def parse_command(text: str) -> tuple[CellAddress, CellContent]:
    """Parse an assignment like ``"B2=A1+1"`` into ``(target, content)``.

    The right-hand side is a number, blank, or an expression; a leading
    ``=`` on it is accepted but not required.
    """
    eq = text.find("=")
    if eq < 0:
        raise FormulaSyntaxError(len(text), "Expected '<cell>=<expression>'")
    target = text[:eq].strip()
    if not target or not is_a1(target):
        raise FormulaSyntaxError(0, f"Invalid target cell {target!r}")
    addr = CellAddress.from_a1(target)

    rhs = text[eq + 1:]
    stripped = rhs.strip()
    if not stripped:
        return addr, EMPTY
    if _NUMERIC_TEXT_RE.fullmatch(stripped):
        return addr, NumberLiteral(_parse_number(stripped))
    start = eq + 1 + (len(rhs) - len(rhs.lstrip()))
    if stripped.startswith("="):
        body, base = stripped[1:], start + 1
    else:
        body, base = stripped, start
    expression = _Parser(tokenize(body, base=base)).parse()
    return addr, Formula("=" + body.strip(), expression)


def references(expr: Expression) -> tuple[list[CellAddress], list[CellRange]]:
    """Single-cell and range references in *expr*, de-duplicated, in order."""
    cells: list[CellAddress] = []
    ranges: list[CellRange] = []
    seen_cells: set[CellAddress] = set()
    seen_ranges: set[CellRange] = set()
    for node in walk(expr):
        if isinstance(node, CellRef) and node.address not in seen_cells:
            seen_cells.add(node.address)
            cells.append(node.address)
        elif isinstance(node, RangeRef) and node.range not in seen_ranges:
            seen_ranges.add(node.range)
            ranges.append(node.range)
    return cells, ranges


def function_calls(expr: Expression) -> list[FunctionCall]:
    """All function-call nodes in *expr*, outermost first."""
    return [node for node in walk(expr) if isinstance(node, FunctionCall)]


def function_names(expr: Expression) -> list[str]:
    names: list[str] = []
    for call in function_calls(expr):
        if call.name not in names:
            names.append(call.name)
    return names
