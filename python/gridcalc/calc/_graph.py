"""Dependency graph for formula cells with cycle detection and topological ordering."""

from __future__ import annotations

import heapq
from collections import deque
from collections.abc import Iterable

from gridcalc._cell import CellAddress, CellRange
from gridcalc._errors import CycleError

# Range readers are indexed by blocks of this many rows.
_BAND = 64
# Ranges spanning more bands than this are checked on every lookup instead.
_MAX_BANDS = 16


def _split(references: Iterable[CellAddress | CellRange]) -> tuple[frozenset[CellAddress], tuple[CellRange, ...]]:
    cells: set[CellAddress] = set()
    ranges: list[CellRange] = []
    for ref in references:
        if isinstance(ref, CellRange):
            if ref not in ranges:
                ranges.append(ref)
        else:
            cells.add(CellAddress(*ref))
    return frozenset(cells), tuple(ranges)


class DependencyGraph:
    """Tracks which cells each formula reads and which formulas read each cell.

    Single-cell references are stored as explicit edges.  Range references
    are stored once per formula as a :class:`CellRange` descriptor and never
    expanded: a range makes its formula a dependent of *any* cell inside the
    rectangle, resolved lazily whenever dependents are looked up.  Descriptors
    are indexed by row band so a lookup only tests ranges near the cell.
    """

    __slots__ = (
        "precedents", "range_precedents", "dependents", "range_dependents",
        "range_bands", "tall_ranges",
    )

    def __init__(self) -> None:
        # formula cell -> single cells it reads
        self.precedents: dict[CellAddress, frozenset[CellAddress]] = {}
        # formula cell -> range descriptors it reads
        self.range_precedents: dict[CellAddress, tuple[CellRange, ...]] = {}
        # cell -> formula cells that read it directly (reverse edges)
        self.dependents: dict[CellAddress, set[CellAddress]] = {}
        # range descriptor -> formula cells that read it
        self.range_dependents: dict[CellRange, set[CellAddress]] = {}
        # row band -> range descriptors overlapping it
        self.range_bands: dict[int, set[CellRange]] = {}
        self.tall_ranges: set[CellRange] = set()

    def __contains__(self, addr: object) -> bool:
        return addr in self.precedents or addr in self.range_precedents

    @property
    def formula_cells(self) -> set[CellAddress]:
        return set(self.precedents) | set(self.range_precedents)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def dependents_of(self, addr: CellAddress) -> set[CellAddress]:
        """Formula cells that read *addr*, directly or through a range."""
        result = set(self.dependents.get(addr, ()))
        for ranges in (self.range_bands.get(addr.row // _BAND, ()), self.tall_ranges):
            for rng in ranges:
                if rng.contains(addr):
                    result.update(self.range_dependents[rng])
        return result

    @staticmethod
    def _bands(rng: CellRange) -> range:
        return range(rng.start.row // _BAND, rng.end.row // _BAND + 1)

    def _index_range(self, rng: CellRange) -> None:
        bands = self._bands(rng)
        if len(bands) > _MAX_BANDS:
            self.tall_ranges.add(rng)
            return
        for band in bands:
            self.range_bands.setdefault(band, set()).add(rng)

    def _unindex_range(self, rng: CellRange) -> None:
        if rng in self.tall_ranges:
            self.tall_ranges.discard(rng)
            return
        for band in self._bands(rng):
            members = self.range_bands.get(band)
            if members is not None:
                members.discard(rng)
                if not members:
                    del self.range_bands[band]

    def precedents_of(self, addr: CellAddress) -> tuple[frozenset[CellAddress], tuple[CellRange, ...]]:
        return self.precedents.get(addr, frozenset()), self.range_precedents.get(addr, ())

    def find_cycle(
        self,
        addr: CellAddress,
        references: Iterable[CellAddress | CellRange],
    ) -> list[CellAddress] | None:
        """Check whether giving *addr* these references would close a cycle.

        Does not modify the graph.  Returns the cycle as a dependency path
        (``[A1, B1, A1]`` reads "A1 depends on B1 depends on A1"), or None.
        """
        cells, ranges = _split(references)

        def reads(cell: CellAddress) -> bool:
            return cell in cells or any(r.contains(cell) for r in ranges)

        # DFS forward through dependents: anything reachable from addr that
        # addr would read closes a loop.
        parent: dict[CellAddress, CellAddress | None] = {addr: None}
        stack: list[CellAddress] = [addr]
        while stack:
            cell = stack.pop()
            if reads(cell):
                chain: list[CellAddress] = []
                node: CellAddress | None = cell
                while node is not None:
                    chain.append(node)
                    node = parent[node]
                # chain runs cell -> ... -> addr along "is read by" edges
                return [addr] + chain
            for dep in sorted(self.dependents_of(cell), reverse=True):
                if dep not in parent:
                    parent[dep] = cell
                    stack.append(dep)
        return None

    def set_dependencies(
        self,
        addr: CellAddress,
        references: Iterable[CellAddress | CellRange],
    ) -> None:
        """Replace the precedents of *addr*.

        Raises :class:`CycleError` (leaving the graph unchanged) if the new
        edges would create a circular reference.
        """
        references = list(references)
        cycle = self.find_cycle(addr, references)
        if cycle is not None:
            raise CycleError(cycle)
        self.remove(addr)
        cells, ranges = _split(references)
        if cells:
            self.precedents[addr] = cells
            for ref in cells:
                self.dependents.setdefault(ref, set()).add(addr)
        if ranges:
            self.range_precedents[addr] = ranges
            for rng in ranges:
                if rng not in self.range_dependents:
                    self.range_dependents[rng] = set()
                    self._index_range(rng)
                self.range_dependents[rng].add(addr)
        if not cells and not ranges:
            # A formula with no references is still a formula cell.
            self.precedents[addr] = frozenset()

    def remove(self, addr: CellAddress) -> None:
        """Drop every edge where *addr* is the reader."""
        for ref in self.precedents.pop(addr, ()):
            readers = self.dependents.get(ref)
            if readers is not None:
                readers.discard(addr)
                if not readers:
                    del self.dependents[ref]
        for rng in self.range_precedents.pop(addr, ()):
            readers = self.range_dependents.get(rng)
            if readers is not None:
                readers.discard(addr)
                if not readers:
                    del self.range_dependents[rng]
                    self._unindex_range(rng)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def topological_order(self, starting_from: Iterable[CellAddress]) -> list[CellAddress]:
        """Starting cells plus all transitive dependents, in evaluation order.

        Every cell appears after all of the cells it reads.  Among cells that
        are ready at the same time the smallest address goes first, so the
        order is deterministic for a given graph.
        """
        return self.order_with_depth(starting_from)[0]

    def order_with_depth(self, starting_from: Iterable[CellAddress]) -> tuple[list[CellAddress], int]:
        """:meth:`topological_order` plus the longest dependency chain through it."""
        starts = set(starting_from)
        if not starts:
            return [], 0

        reachable: set[CellAddress] = set(starts)
        edges: dict[CellAddress, set[CellAddress]] = {}
        queue: deque[CellAddress] = deque(starts)
        while queue:
            cell = queue.popleft()
            deps = self.dependents_of(cell)
            edges[cell] = deps
            for dep in deps:
                if dep not in reachable:
                    reachable.add(dep)
                    queue.append(dep)

        in_degree: dict[CellAddress, int] = {cell: 0 for cell in reachable}
        for deps in edges.values():
            for dep in deps:
                in_degree[dep] += 1

        ready = [cell for cell, deg in in_degree.items() if deg == 0]
        heapq.heapify(ready)
        order: list[CellAddress] = []
        depth: dict[CellAddress, int] = {}
        max_d = 0
        while ready:
            cell = heapq.heappop(ready)
            order.append(cell)
            step = depth.get(cell, 0) + 1
            for dep in edges[cell]:
                if step > depth.get(dep, 0):
                    depth[dep] = step
                    max_d = max(max_d, step)
                in_degree[dep] -= 1
                if in_degree[dep] == 0:
                    heapq.heappush(ready, dep)

        if len(order) != len(reachable):
            stuck = sorted(reachable - set(order))
            raise CycleError(stuck + stuck[:1])
        return order, max_d

    def affected_cells(self, changed_cells: Iterable[CellAddress]) -> list[CellAddress]:
        """Transitive dependents of *changed_cells* in evaluation order, excluding them."""
        changed = set(changed_cells)
        return [c for c in self.topological_order(changed) if c not in changed]

    def evaluation_order(self) -> list[CellAddress]:
        """All formula cells in evaluation order."""
        formulas = self.formula_cells
        return [c for c in self.topological_order(formulas) if c in formulas]

    def max_depth(self, roots: Iterable[CellAddress]) -> int:
        """Longest dependency chain from root cells through formula cells."""
        return self.order_with_depth(roots)[1]
