"""A1-notation helpers. All indices are zero-based."""

from __future__ import annotations

import re

# Column letters are capped at three (A..ZZZ, 18278 columns). Rows start at 1.
_A1_RE = re.compile(r"^\$?([A-Za-z]{1,3})\$?(0*[1-9][0-9]*)$")


def column_to_index(letters: str) -> int:
    """``"A"`` -> 0, ``"Z"`` -> 25, ``"AA"`` -> 26."""
    n = 0
    for ch in letters.upper():
        if not "A" <= ch <= "Z":
            raise ValueError(f"Invalid column letters: {letters!r}")
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1


def index_to_column(idx: int) -> str:
    """``0`` -> ``"A"``, ``25`` -> ``"Z"``, ``26`` -> ``"AA"``."""
    if idx < 0:
        raise ValueError(f"Column index must be >= 0, got {idx}")
    letters = ""
    idx += 1
    while idx > 0:
        idx, rem = divmod(idx - 1, 26)
        letters = chr(rem + ord("A")) + letters
    return letters


def a1_to_rowcol(ref: str) -> tuple[int, int]:
    """Parse ``"B3"`` (or ``"$B$3"``) into zero-based ``(row, col)``."""
    m = _A1_RE.match(ref.strip())
    if not m:
        raise ValueError(f"Invalid cell reference: {ref!r}")
    return int(m.group(2)) - 1, column_to_index(m.group(1))


def rowcol_to_a1(row: int, col: int) -> str:
    """Zero-based ``(row, col)`` -> ``"B3"``."""
    if row < 0:
        raise ValueError(f"Row index must be >= 0, got {row}")
    return f"{index_to_column(col)}{row + 1}"


def is_a1(ref: str) -> bool:
    return _A1_RE.match(ref.strip()) is not None
