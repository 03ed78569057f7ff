"""RecalcEngine: validates edits, keeps the dependency graph in sync and
recomputes only the cells an edit affects.

Each submission moves through a small state machine::

    IDLE -> VALIDATING -> REJECTED   -> IDLE
                       -> COMMITTING -> IDLE

Validation (parsing, bounds, function names/arity, cycle check) happens
before anything is written, so a rejected submission leaves the grid and
the graph exactly as they were.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from gridcalc import _render
from gridcalc._cell import (
    CellAddress,
    CellContent,
    CellRange,
    Empty,
    Formula,
    NumberLiteral,
    TextLiteral,
)
from gridcalc._errors import CycleError, GridError
from gridcalc._grid import GridStore
from gridcalc.calc._evaluator import Evaluator
from gridcalc.calc._functions import (
    CellError,
    CellValue,
    FunctionRegistry,
    format_number,
    out_of_range,
)
from gridcalc.calc._graph import DependencyGraph
from gridcalc.calc._parser import function_calls, parse_command, parse_content, references
from gridcalc.calc._protocol import CellDelta, RecalcResult

if TYPE_CHECKING:
    from gridcalc._render import RenderedTable, Window

logger = logging.getLogger(__name__)


class EngineState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    REJECTED = "rejected"
    COMMITTING = "committing"


def _values_differ(a: Any, b: Any) -> bool:
    # True == 1 in Python, but a boolean result is a different value.
    return type(a) is not type(b) or a != b


class RecalcEngine:
    """Owns the grid store and the dependency graph for one sheet.

    Usage::

        engine = RecalcEngine(3, 3)
        engine.submit(CellAddress(0, 0), "5")
        engine.submit(CellAddress(0, 2), "=A1*2")
        engine.get_value(CellAddress(0, 2))  # 10

    All public methods take one re-entrant lock, so concurrent callers are
    serialized and never observe a half-committed edit.
    """

    def __init__(self, rows: int, cols: int, functions: FunctionRegistry | None = None) -> None:
        self._store = GridStore(rows, cols)
        self._graph = DependencyGraph()
        self._evaluator = Evaluator(functions)
        self._lock = threading.RLock()
        self._state = EngineState.IDLE
        self.last_rejection: GridError | None = None

    @property
    def rows(self) -> int:
        return self._store.rows

    @property
    def cols(self) -> int:
        return self._store.cols

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def store(self) -> GridStore:
        """The grid store. Read-only for callers; mutate through :meth:`submit`."""
        return self._store

    @property
    def graph(self) -> DependencyGraph:
        """The dependency graph. Read-only for callers."""
        return self._graph

    @property
    def functions(self) -> FunctionRegistry:
        return self._evaluator.functions

    def reset(self) -> None:
        """Discard every cell and edge, keeping the dimensions."""
        with self._lock:
            self._store = GridStore(self._store.rows, self._store.cols)
            self._graph = DependencyGraph()
            self.last_rejection = None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def submit(self, addr: CellAddress | tuple[int, int], text: str) -> RecalcResult:
        """Set *addr* from raw input (``"=A1+1"``, ``"42"``, ``"label"``, ``""``)."""
        return self._transaction(lambda: (CellAddress(*addr), parse_content(text)))

    def set_content(self, addr: CellAddress | tuple[int, int], content: CellContent) -> RecalcResult:
        """Set *addr* from already-classified content."""
        return self._transaction(lambda: (CellAddress(*addr), content))

    def clear(self, addr: CellAddress | tuple[int, int]) -> RecalcResult:
        return self.submit(addr, "")

    def execute(self, command: str) -> RecalcResult:
        """Apply an assignment with an embedded target, e.g. ``"B2=A1+1"``."""
        return self._transaction(lambda: parse_command(command))

    def _transaction(self, prepare: Callable[[], tuple[CellAddress, CellContent]]) -> RecalcResult:
        with self._lock:
            self._state = EngineState.VALIDATING
            try:
                try:
                    addr, content = prepare()
                    self._store.check(addr)
                    refs = self._validate(addr, content)
                except GridError as e:
                    self._state = EngineState.REJECTED
                    self.last_rejection = e
                    logger.warning("Rejected edit: %s", e.message)
                    raise
                self._state = EngineState.COMMITTING
                return self._commit(addr, content, refs)
            finally:
                self._state = EngineState.IDLE

    def _validate(
        self, addr: CellAddress, content: CellContent,
    ) -> list[CellAddress | CellRange] | None:
        """Check a formula against the grid without touching it.

        Returns the formula's references (None for literal content).
        """
        if not isinstance(content, Formula):
            return None
        cells, ranges = references(content.expression)
        for ref in cells:
            self._store.check(ref)
        for rng in ranges:
            self._store.check(rng.start)
            self._store.check(rng.end)
        for call in function_calls(content.expression):
            self.functions.check_call(call.name, len(call.args))
        refs: list[CellAddress | CellRange] = [*cells, *ranges]
        cycle = self._graph.find_cycle(addr, refs)
        if cycle is not None:
            raise CycleError(cycle)
        return refs

    def _commit(
        self,
        addr: CellAddress,
        content: CellContent,
        refs: list[CellAddress | CellRange] | None,
    ) -> RecalcResult:
        old_content = self._store.get_content(addr)
        old_refs = [*self._graph.precedents.get(addr, ()), *self._graph.range_precedents.get(addr, ())]
        was_formula = addr in self._graph
        written: dict[CellAddress, CellValue] = {}
        try:
            if refs is None:
                self._graph.remove(addr)
            else:
                self._graph.set_dependencies(addr, refs)
            self._store.set_content(addr, content)

            order, depth = self._graph.order_with_depth({addr})
            deltas: list[CellDelta] = []
            for cell in order:
                old_value = self._store.get_value(cell)
                new_value = self._compute(cell)
                written.setdefault(cell, old_value)
                self._store.set_value(cell, new_value)
                if _values_differ(old_value, new_value):
                    deltas.append(CellDelta(
                        address=cell,
                        old_value=old_value,
                        new_value=new_value,
                        formula=self._formula_source(cell),
                    ))
        except Exception:
            logger.exception("Recalculation of %s failed; restoring previous state", addr.a1)
            self._restore(addr, old_content, old_refs if was_formula else None, written)
            raise

        logger.info(
            "Committed %s = %r (%d cells recalculated, %d changed)",
            addr.a1, self.formula_text(addr), len(order), len(deltas),
        )
        return RecalcResult(
            target=addr,
            content=content,
            deltas=tuple(deltas),
            recalculated_cells=len(order),
            max_chain_depth=depth,
        )

    def _restore(
        self,
        addr: CellAddress,
        content: CellContent,
        refs: list[CellAddress | CellRange] | None,
        values: dict[CellAddress, CellValue],
    ) -> None:
        self._graph.remove(addr)
        if refs is not None:
            self._graph.set_dependencies(addr, refs)
        self._store.set_content(addr, content)
        for cell, value in values.items():
            self._store.set_value(cell, value)

    def recalculate_all(self) -> dict[CellAddress, CellValue]:
        """Re-evaluate every formula cell in dependency order."""
        with self._lock:
            results: dict[CellAddress, CellValue] = {}
            for cell in self._graph.evaluation_order():
                value = self._compute(cell)
                self._store.set_value(cell, value)
                results[cell] = value
            return results

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _compute(self, cell: CellAddress) -> CellValue:
        content = self._store.get_content(cell)
        if isinstance(content, Empty):
            return None
        if isinstance(content, NumberLiteral):
            return CellError.NUM if out_of_range(content.value) else content.value
        if isinstance(content, TextLiteral):
            return content.value
        value = self._evaluator.evaluate(content.expression, self._lookup, self._range_lookup)
        if isinstance(value, CellError):
            logger.debug("%s evaluated to %s", cell.a1, value)
        return value

    def _lookup(self, addr: CellAddress) -> CellValue:
        return self._store.get_value(addr)

    def _range_lookup(self, rng: CellRange) -> Iterator[tuple[CellAddress, CellValue]]:
        for addr in self._store.populated_in(rng):
            yield addr, self._store.get_value(addr)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_value(self, addr: CellAddress | tuple[int, int]) -> CellValue:
        with self._lock:
            return self._store.get_value(CellAddress(*addr))

    def get_content(self, addr: CellAddress | tuple[int, int]) -> CellContent:
        with self._lock:
            return self._store.get_content(CellAddress(*addr))

    def _formula_source(self, addr: CellAddress) -> str | None:
        content = self._store.get_content(addr)
        return content.source if isinstance(content, Formula) else None

    def formula_text(self, addr: CellAddress | tuple[int, int]) -> str:
        """What the user entered: formula source, literal text, or ``""``."""
        with self._lock:
            content = self._store.get_content(CellAddress(*addr))
            if isinstance(content, Formula):
                return content.source
            if isinstance(content, NumberLiteral):
                return format_number(content.value)
            if isinstance(content, TextLiteral):
                return content.value
            return ""

    def render(self, window: Window | None = None) -> RenderedTable:
        with self._lock:
            return _render.render(self._store, window)
