"""Structured errors raised at the engine boundary.

Evaluation problems (division by zero, type mismatches) are *not* raised;
they are stored as :class:`gridcalc.calc.CellError` values instead.  The
exceptions here abort a submission before any state is mutated.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from gridcalc._cell import CellAddress


class GridError(Exception):
    """Base class: carries a machine-readable ``kind`` and a human message."""

    kind: str = "GridError"

    def __init__(self, message: str, position: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.position = position

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind, "message": self.message}
        if self.position is not None:
            data["position"] = self.position
        return data

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class InvalidDimensionsError(GridError):
    kind = "InvalidDimensions"


class OutOfBoundsError(GridError):
    kind = "OutOfBounds"

    def __init__(self, address: CellAddress, rows: int, cols: int) -> None:
        super().__init__(
            f"Cell {address.a1} (row {address.row}, col {address.col}) "
            f"is outside the {rows}x{cols} grid"
        )
        self.address = address


class FormulaSyntaxError(GridError):
    """Malformed formula text. ``position`` is a zero-based index into the text."""

    kind = "SyntaxError"

    def __init__(self, position: int, message: str) -> None:
        super().__init__(f"{message} at position {position}", position=position)
        self.reason = message


class CycleError(GridError):
    kind = "CycleError"

    def __init__(self, path: list[CellAddress]) -> None:
        self.path = list(path)
        super().__init__("Circular reference: " + " -> ".join(a.a1 for a in self.path))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["path"] = [a.a1 for a in self.path]
        return data


class UnknownFunctionError(GridError):
    kind = "UnknownFunction"

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown function: {name}")
        self.name = name


class ArityError(GridError):
    kind = "ArityError"

    def __init__(self, name: str, got: int, min_args: int, max_args: int | None) -> None:
        if max_args is None:
            expected = f"at least {min_args}"
        elif min_args == max_args:
            expected = f"exactly {min_args}"
        else:
            expected = f"{min_args} to {max_args}"
        super().__init__(f"{name} expects {expected} argument(s), got {got}")
        self.name = name
