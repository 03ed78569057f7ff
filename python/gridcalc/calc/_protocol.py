"""CalcEngine protocol and result dataclasses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from gridcalc._cell import CellAddress, CellContent


@dataclass(frozen=True)
class CellDelta:
    """A single cell's value change from recalculation."""

    address: CellAddress
    old_value: Any
    new_value: Any
    formula: str | None = None  # the formula that produced new_value


@dataclass(frozen=True)
class RecalcResult:
    """Outcome of one committed submission."""

    target: CellAddress
    content: CellContent
    deltas: tuple[CellDelta, ...]  # cells whose value changed
    recalculated_cells: int = 0  # target plus every transitive dependent
    max_chain_depth: int = 0  # longest dependency chain below the target

    @property
    def changed(self) -> frozenset[CellAddress]:
        return frozenset(d.address for d in self.deltas)


@runtime_checkable
class CalcEngine(Protocol):
    """Protocol for engines that own a grid and keep it consistent under edits."""

    def submit(self, addr: CellAddress, text: str) -> RecalcResult:
        """Validate and commit raw cell input, recalculating dependents.

        Raises a ``GridError`` subclass, without mutating state, when the
        input is rejected.
        """
        ...

    def get_value(self, addr: CellAddress) -> Any:
        """Cached computed value of a cell."""
        ...

    def recalculate_all(self) -> dict[CellAddress, Any]:
        """Re-evaluate every formula cell in dependency order."""
        ...
