"""GridStore: sparse storage for cell contents and cached values."""

from __future__ import annotations

from collections.abc import Iterator
from typing import TYPE_CHECKING, Any

from gridcalc._cell import EMPTY, CellAddress, CellContent, CellRange, Empty, Formula
from gridcalc._errors import InvalidDimensionsError, OutOfBoundsError

if TYPE_CHECKING:
    from gridcalc.calc._functions import CellValue


class GridStore:
    """Fixed-size grid backed by dicts keyed on :class:`CellAddress`.

    Only written cells consume memory, so grids with tens of millions of
    addressable cells are cheap to create.  Unwritten cells read back as
    ``EMPTY`` content and a ``None`` value.
    """

    __slots__ = ("_rows", "_cols", "_contents", "_values")

    def __init__(self, rows: int, cols: int) -> None:
        if not isinstance(rows, int) or isinstance(rows, bool) or rows <= 0:
            raise InvalidDimensionsError(f"rows must be a positive integer, got {rows!r}")
        if not isinstance(cols, int) or isinstance(cols, bool) or cols <= 0:
            raise InvalidDimensionsError(f"cols must be a positive integer, got {cols!r}")
        self._rows = rows
        self._cols = cols
        self._contents: dict[CellAddress, CellContent] = {}
        self._values: dict[CellAddress, Any] = {}

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def cols(self) -> int:
        return self._cols

    def in_bounds(self, addr: CellAddress) -> bool:
        return 0 <= addr.row < self._rows and 0 <= addr.col < self._cols

    def check(self, addr: CellAddress) -> CellAddress:
        """Return *addr* unchanged, or raise :class:`OutOfBoundsError`."""
        if not self.in_bounds(addr):
            raise OutOfBoundsError(addr, self._rows, self._cols)
        return addr

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def get_content(self, addr: CellAddress) -> CellContent:
        self.check(addr)
        return self._contents.get(addr, EMPTY)

    def get_value(self, addr: CellAddress) -> CellValue:
        self.check(addr)
        return self._values.get(addr)

    def set_content(self, addr: CellAddress, content: CellContent) -> None:
        self.check(addr)
        if isinstance(content, Empty):
            self._contents.pop(addr, None)
        else:
            self._contents[addr] = content

    def set_value(self, addr: CellAddress, value: CellValue) -> None:
        self.check(addr)
        if value is None:
            self._values.pop(addr, None)
        else:
            self._values[addr] = value

    # ------------------------------------------------------------------
    # Sparse iteration
    # ------------------------------------------------------------------

    def populated(self) -> list[CellAddress]:
        """Addresses holding content, in row-major order."""
        return sorted(self._contents)

    def populated_in(self, rng: CellRange) -> Iterator[CellAddress]:
        """Populated addresses inside *rng*, in row-major order.

        Walks whichever is smaller: the rectangle or the populated set.
        """
        if rng.size <= len(self._contents):
            contents = self._contents
            for addr in rng.cells():
                if addr in contents:
                    yield addr
        else:
            yield from sorted(a for a in self._contents if rng.contains(a))

    def formula_cells(self) -> list[CellAddress]:
        return sorted(a for a, c in self._contents.items() if isinstance(c, Formula))

    def __len__(self) -> int:
        return len(self._contents)

    def __repr__(self) -> str:
        return f"<GridStore {self._rows}x{self._cols} populated={len(self._contents)}>"
