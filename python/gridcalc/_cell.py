"""Cell addresses, ranges and the content variants a cell can hold."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, NamedTuple, Union

from gridcalc._utils import a1_to_rowcol, rowcol_to_a1

if TYPE_CHECKING:
    from gridcalc.calc._ast import Expression


class CellAddress(NamedTuple):
    """Zero-based ``(row, col)`` key into the grid. Orders row-major."""

    row: int
    col: int

    @classmethod
    def from_a1(cls, ref: str) -> CellAddress:
        row, col = a1_to_rowcol(ref)
        return cls(row, col)

    @property
    def a1(self) -> str:
        return rowcol_to_a1(self.row, self.col)

    def __str__(self) -> str:
        return self.a1


class CellRange(NamedTuple):
    """Rectangular block of cells. Always normalized so ``start`` is top-left."""

    start: CellAddress
    end: CellAddress

    @classmethod
    def of(cls, a: CellAddress, b: CellAddress) -> CellRange:
        return cls(
            CellAddress(min(a.row, b.row), min(a.col, b.col)),
            CellAddress(max(a.row, b.row), max(a.col, b.col)),
        )

    @classmethod
    def from_a1(cls, ref: str) -> CellRange:
        parts = ref.split(":")
        if len(parts) != 2:
            raise ValueError(f"Invalid range: {ref!r}")
        return cls.of(CellAddress.from_a1(parts[0]), CellAddress.from_a1(parts[1]))

    @property
    def a1(self) -> str:
        return f"{self.start.a1}:{self.end.a1}"

    @property
    def shape(self) -> tuple[int, int]:
        return (self.end.row - self.start.row + 1, self.end.col - self.start.col + 1)

    @property
    def size(self) -> int:
        n_rows, n_cols = self.shape
        return n_rows * n_cols

    def contains(self, addr: CellAddress) -> bool:
        return (
            self.start.row <= addr.row <= self.end.row
            and self.start.col <= addr.col <= self.end.col
        )

    def cells(self) -> Iterator[CellAddress]:
        """Yield every address in row-major order without materializing them."""
        for r in range(self.start.row, self.end.row + 1):
            for c in range(self.start.col, self.end.col + 1):
                yield CellAddress(r, c)

    def __str__(self) -> str:
        return self.a1


# ---------------------------------------------------------------------------
# Content variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Empty:
    """No content. Use the ``EMPTY`` singleton."""

    def __repr__(self) -> str:
        return "EMPTY"


EMPTY = Empty()


@dataclass(frozen=True)
class NumberLiteral:
    value: int | float


@dataclass(frozen=True)
class TextLiteral:
    value: str


@dataclass(frozen=True)
class Formula:
    """Formula source text (with leading ``=``) and its parsed tree."""

    source: str
    expression: Expression


CellContent = Union[Empty, NumberLiteral, TextLiteral, Formula]
