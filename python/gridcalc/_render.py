"""Projection of the grid (or a window of it) into a table of strings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from gridcalc._cell import CellAddress
from gridcalc._config import PAGE_SIZE
from gridcalc._errors import OutOfBoundsError
from gridcalc._utils import index_to_column
from gridcalc.calc._functions import CellError, format_number

if TYPE_CHECKING:
    from gridcalc._grid import GridStore


def format_value(value: Any) -> str:
    """Display text for a cell value: numbers canonical, errors as tags, Empty as ``""``."""
    if value is None:
        return ""
    if isinstance(value, CellError):
        return value.code
    if isinstance(value, str):
        return value
    return format_number(value)


@dataclass(frozen=True)
class Window:
    """Rectangular block of the grid selected for rendering."""

    top: int
    left: int
    n_rows: int
    n_cols: int

    @classmethod
    def full(cls, rows: int, cols: int) -> Window:
        return cls(0, 0, rows, cols)

    def clip(self, rows: int, cols: int) -> Window:
        """Restrict the window to a ``rows`` x ``cols`` grid."""
        top = min(max(self.top, 0), rows)
        left = min(max(self.left, 0), cols)
        return Window(
            top,
            left,
            max(0, min(self.n_rows, rows - top)),
            max(0, min(self.n_cols, cols - left)),
        )


@dataclass(frozen=True)
class RenderedTable:
    """Rendered cells of one window, row-major, with A1-style labels."""

    top: int
    left: int
    column_labels: tuple[str, ...]
    row_labels: tuple[str, ...]
    cells: tuple[tuple[str, ...], ...]

    @property
    def n_rows(self) -> int:
        return len(self.cells)

    @property
    def n_cols(self) -> int:
        return len(self.column_labels)

    def cell(self, addr: CellAddress | tuple[int, int]) -> str:
        """Rendered text at an absolute grid address inside this window."""
        row, col = addr
        r, c = row - self.top, col - self.left
        if not (0 <= r < self.n_rows and 0 <= c < self.n_cols):
            raise KeyError(f"{CellAddress(row, col).a1} is outside the rendered window")
        return self.cells[r][c]

    def as_lists(self) -> list[list[str]]:
        return [list(row) for row in self.cells]


def render(store: GridStore, window: Window | None = None) -> RenderedTable:
    """Render *window* of *store* (the whole grid when omitted).

    Whole-grid rendering visits every addressable cell; pass a window for
    large grids.
    """
    if window is None:
        window = Window.full(store.rows, store.cols)
    window = window.clip(store.rows, store.cols)
    cols = range(window.left, window.left + window.n_cols)
    rows = range(window.top, window.top + window.n_rows)
    cells = tuple(
        tuple(format_value(store.get_value(CellAddress(r, c))) for c in cols)
        for r in rows
    )
    return RenderedTable(
        top=window.top,
        left=window.left,
        column_labels=tuple(index_to_column(c) for c in cols),
        row_labels=tuple(str(r + 1) for r in rows),
        cells=cells,
    )


def render_text(table: RenderedTable, width: int = 10) -> str:
    """Fixed-width console layout: column headers, then one line per row."""
    lines = ["      " + "".join(f"{label:<{width}}" for label in table.column_labels)]
    for label, row in zip(table.row_labels, table.cells):
        lines.append(f"{label:<3}   " + "".join(f"{text:<{width}}" for text in row))
    return "\n".join(line.rstrip() for line in lines)


class Viewport:
    """Scrollable page over a grid.  Moves a page at a time, clamped to the grid."""

    __slots__ = ("rows", "cols", "page_rows", "page_cols", "top", "left")

    def __init__(self, rows: int, cols: int, page_rows: int = PAGE_SIZE, page_cols: int = PAGE_SIZE) -> None:
        self.rows = rows
        self.cols = cols
        self.page_rows = page_rows
        self.page_cols = page_cols
        self.top = 0
        self.left = 0

    @property
    def window(self) -> Window:
        return Window(self.top, self.left, self.page_rows, self.page_cols).clip(self.rows, self.cols)

    def scroll_up(self) -> None:
        self.top = max(0, self.top - self.page_rows)

    def scroll_left(self) -> None:
        self.left = max(0, self.left - self.page_cols)

    def scroll_down(self) -> None:
        remaining = self.rows - (self.top + self.page_rows)
        if remaining > 0:
            self.top += min(remaining, self.page_rows)

    def scroll_right(self) -> None:
        remaining = self.cols - (self.left + self.page_cols)
        if remaining > 0:
            self.left += min(remaining, self.page_cols)

    def scroll_to(self, addr: CellAddress) -> None:
        """Make *addr* the top-left cell of the page."""
        if not (0 <= addr.row < self.rows and 0 <= addr.col < self.cols):
            raise OutOfBoundsError(addr, self.rows, self.cols)
        self.top, self.left = addr.row, addr.col

    def scroll(self, command: str) -> None:
        """Apply a ``w``/``a``/``s``/``d`` keystroke."""
        moves = {
            "w": self.scroll_up,
            "a": self.scroll_left,
            "s": self.scroll_down,
            "d": self.scroll_right,
        }
        try:
            move = moves[command]
        except KeyError:
            raise ValueError(f"Unknown scroll command: {command!r}") from None
        move()
