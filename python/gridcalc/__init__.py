"""gridcalc - sparse spreadsheet engine with incremental recalculation.

Usage::

    import gridcalc

    sheet = gridcalc.initialize(3, 3)
    sheet.submit_formula("A1", "5")
    sheet.submit_formula("B1", "10")
    table = sheet.submit_formula("C1", "=A1+B1")
    print(table.cell((0, 2)))  # "15"

    sheet.submit_formula(None, "A1=7")  # target embedded in the command
    print(sheet.value("C1"))  # 17
"""

from gridcalc._cell import (
    EMPTY,
    CellAddress,
    CellContent,
    CellRange,
    Empty,
    Formula,
    NumberLiteral,
    TextLiteral,
)
from gridcalc._config import GridConfig
from gridcalc._errors import (
    ArityError,
    CycleError,
    FormulaSyntaxError,
    GridError,
    InvalidDimensionsError,
    OutOfBoundsError,
    UnknownFunctionError,
)
from gridcalc._grid import GridStore
from gridcalc._render import RenderedTable, Viewport, Window, format_value, render, render_text
from gridcalc._spreadsheet import Spreadsheet, initialize

__version__ = "0.1.0"

__all__ = [
    "EMPTY",
    "ArityError",
    "CellAddress",
    "CellContent",
    "CellRange",
    "CycleError",
    "Empty",
    "Formula",
    "FormulaSyntaxError",
    "GridConfig",
    "GridError",
    "GridStore",
    "InvalidDimensionsError",
    "NumberLiteral",
    "OutOfBoundsError",
    "RenderedTable",
    "Spreadsheet",
    "TextLiteral",
    "UnknownFunctionError",
    "Viewport",
    "Window",
    "__version__",
    "format_value",
    "initialize",
    "render",
    "render_text",
]
