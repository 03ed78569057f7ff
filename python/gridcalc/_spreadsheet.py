"""Spreadsheet: the boundary the UI layer talks to."""

from __future__ import annotations

import asyncio
from typing import Union

from gridcalc._cell import CellAddress
from gridcalc._config import GridConfig
from gridcalc._errors import FormulaSyntaxError
from gridcalc._render import RenderedTable, Viewport, Window
from gridcalc._utils import is_a1
from gridcalc.calc._engine import RecalcEngine
from gridcalc.calc._functions import CellValue, FunctionRegistry

Target = Union[CellAddress, tuple[int, int], str, None]


def _coerce_address(target: CellAddress | tuple[int, int] | str) -> CellAddress:
    if isinstance(target, str):
        if not is_a1(target):
            raise FormulaSyntaxError(0, f"Invalid cell reference {target!r}")
        return CellAddress.from_a1(target)
    return CellAddress(*target)


class Spreadsheet:
    """A grid plus the page currently shown to the user.

    Every mutating call returns the freshly rendered page so the caller can
    redraw without a second round trip.  Rejected edits raise a
    :class:`gridcalc.GridError` and leave the sheet unchanged.
    """

    def __init__(
        self,
        rows: int,
        cols: int,
        config: GridConfig | None = None,
        functions: FunctionRegistry | None = None,
    ) -> None:
        self._config = config if config is not None else GridConfig()
        self._engine = RecalcEngine(rows, cols, functions)
        self.viewport = Viewport(
            rows, cols, self._config.viewport_rows, self._config.viewport_cols,
        )

    @property
    def engine(self) -> RecalcEngine:
        return self._engine

    @property
    def config(self) -> GridConfig:
        return self._config

    @property
    def rows(self) -> int:
        return self._engine.rows

    @property
    def cols(self) -> int:
        return self._engine.cols

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, window: Window | None = None) -> RenderedTable:
        """Render *window*, or the current viewport page when omitted."""
        return self._engine.render(window if window is not None else self.viewport.window)

    def render_initial_view(self) -> RenderedTable:
        return self.render()

    def render_all(self) -> RenderedTable:
        """Render every cell of the grid. Only sensible for small grids."""
        return self._engine.render(Window.full(self.rows, self.cols))

    async def arender(self, window: Window | None = None) -> RenderedTable:
        return await asyncio.to_thread(self.render, window)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def submit_formula(self, target: Target, text: str) -> RenderedTable:
        """Set a cell and return the re-rendered page.

        *target* is a :class:`CellAddress`, a ``(row, col)`` tuple, an A1
        string, or ``None`` when *text* names its own target (``"B2=A1+1"``).
        """
        if target is None:
            self._engine.execute(text)
        else:
            self._engine.submit(_coerce_address(target), text)
        return self.render()

    async def asubmit_formula(self, target: Target, text: str) -> RenderedTable:
        """Run :meth:`submit_formula` in a worker thread.

        Submissions are serialized by the engine lock, so awaiting several at
        once applies them one at a time.
        """
        return await asyncio.to_thread(self.submit_formula, target, text)

    def clear(self, target: CellAddress | tuple[int, int] | str) -> RenderedTable:
        return self.submit_formula(target, "")

    # ------------------------------------------------------------------
    # Reads and navigation
    # ------------------------------------------------------------------

    def value(self, target: CellAddress | tuple[int, int] | str) -> CellValue:
        return self._engine.get_value(_coerce_address(target))

    def formula(self, target: CellAddress | tuple[int, int] | str) -> str:
        return self._engine.formula_text(_coerce_address(target))

    def scroll(self, command: str) -> RenderedTable:
        self.viewport.scroll(command)
        return self.render()

    def scroll_to(self, target: CellAddress | tuple[int, int] | str) -> RenderedTable:
        self.viewport.scroll_to(_coerce_address(target))
        return self.render()

    def __repr__(self) -> str:
        return f"<Spreadsheet {self.rows}x{self.cols} populated={len(self._engine.store)}>"


def initialize(rows: int, cols: int, config: GridConfig | None = None) -> Spreadsheet:
    """Create an empty ``rows`` x ``cols`` spreadsheet.

    Raises :class:`gridcalc.InvalidDimensionsError` unless both are positive.
    """
    return Spreadsheet(rows, cols, config)
