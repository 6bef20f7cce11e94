"""Cell-level searches shared by the cache builder, the planner and the refiner.

Every open list orders entries by ``(priority, -sequence)``: the lowest
priority wins and, on exact ties, the most recently inserted entry is popped
first.  The sequence counter makes the order fully deterministic, so identical
requests on an identical grid always expand identically.
"""

from __future__ import annotations

import heapq
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, AbstractSet, Dict, Iterable, List, Optional, Tuple

from core.chunks import Cell, Region

if TYPE_CHECKING:  # pragma: no cover - import hints only
    from core.grid import Grid

_NO_BLOCKERS: AbstractSet[Cell] = frozenset()


@dataclass
class SearchResult:
    """Outcome of a point-to-point search.

    ``cells`` includes the start cell.  When the goal was not reached and the
    search ran in partial mode, ``cells`` leads to the closest-approach cell.
    """

    cells: List[Cell]
    cost: int
    reached_goal: bool
    expanded: int = 0

    @property
    def endpoint(self) -> Optional[Cell]:
        return self.cells[-1] if self.cells else None


@dataclass
class SearchTree:
    """Shortest-path tree produced by :func:`dijkstra`.

    In a reverse tree, ``dist[c]`` is the cost of travelling *from* ``c`` to
    the root and :meth:`path` returns cells ordered from ``c`` to the root.
    """

    root: Cell
    reverse: bool = False
    dist: Dict[Cell, int] = field(default_factory=dict)
    parent: Dict[Cell, Cell] = field(default_factory=dict)

    def reached(self, cell: Cell) -> bool:
        return cell in self.dist

    def path(self, cell: Cell) -> List[Cell]:
        if cell not in self.dist:
            raise KeyError(f"cell {cell} was not reached from {self.root}")
        cells = [cell]
        while cell != self.root:
            cell = self.parent[cell]
            cells.append(cell)
        if not self.reverse:
            cells.reverse()
        return cells

    def settled(self) -> Iterable[Cell]:
        """Cells in the order they were settled."""

        return self.dist.keys()


def _reconstruct(came_from: Dict[Cell, Cell], start: Cell, end: Cell) -> List[Cell]:
    cells = [end]
    while end != start:
        end = came_from[end]
        cells.append(end)
    cells.reverse()
    return cells


def astar(
    grid: "Grid",
    start: Cell,
    goal: Cell,
    *,
    bounds: Optional[Region] = None,
    blocked: AbstractSet[Cell] = _NO_BLOCKERS,
    partial: bool = False,
    max_expansions: Optional[int] = None,
) -> SearchResult:
    """Cost-aware A* from ``start`` to ``goal``.

    The heuristic is the grid distance scaled by the cheapest cell cost, which
    never overestimates.  ``bounds`` restricts the search to a region,
    ``blocked`` adds temporary obstacles and ``max_expansions`` caps the work
    done.  With ``partial`` the path to the closest-approach cell (smallest
    heuristic distance to ``goal``, first found on ties) is returned instead of
    an empty result.
    """

    if start == goal:
        return SearchResult([start], 0, True)

    min_cost = grid.min_cost
    g_score: Dict[Cell, int] = {start: 0}
    came_from: Dict[Cell, Cell] = {}
    closed: set[Cell] = set()
    sequence = 0
    open_heap: List[Tuple[int, int, Cell]] = [(grid.distance(start, goal) * min_cost, 0, start)]

    best = start
    best_distance = grid.distance(start, goal)
    expanded = 0

    while open_heap:
        _, _, current = heapq.heappop(open_heap)
        if current in closed:
            continue
        if current == goal:
            return SearchResult(_reconstruct(came_from, start, goal), g_score[goal], True, expanded)
        closed.add(current)
        expanded += 1

        current_distance = grid.distance(current, goal)
        if current_distance < best_distance:
            best, best_distance = current, current_distance

        if max_expansions is not None and expanded >= max_expansions:
            break

        base = g_score[current]
        for nxt, step_cost in grid.neighbours(current, bounds, blocked):
            if nxt in closed:
                continue
            tentative = base + step_cost
            if tentative < g_score.get(nxt, tentative + 1):
                g_score[nxt] = tentative
                came_from[nxt] = current
                sequence += 1
                heapq.heappush(
                    open_heap,
                    (tentative + grid.distance(nxt, goal) * min_cost, -sequence, nxt),
                )

    if partial:
        return SearchResult(_reconstruct(came_from, start, best), g_score[best], False, expanded)
    return SearchResult([], 0, False, expanded)


def dijkstra(
    grid: "Grid",
    root: Cell,
    *,
    bounds: Optional[Region] = None,
    targets: Optional[Iterable[Cell]] = None,
    blocked: AbstractSet[Cell] = _NO_BLOCKERS,
    reverse: bool = False,
) -> SearchTree:
    """Shortest-path tree from ``root`` (or towards it when ``reverse``).

    The search stops once every cell of ``targets`` is settled; without
    targets it exhausts the reachable part of ``bounds``.
    """

    tree = SearchTree(root=root, reverse=reverse)
    pending = set(targets) if targets is not None else None
    if pending is not None:
        pending.discard(root)

    best: Dict[Cell, int] = {root: 0}
    parent: Dict[Cell, Cell] = {}
    sequence = 0
    open_heap: List[Tuple[int, int, Cell]] = [(0, 0, root)]
    expand = grid.predecessors if reverse else grid.neighbours

    while open_heap:
        cost, _, current = heapq.heappop(open_heap)
        if current in tree.dist:
            continue
        tree.dist[current] = cost
        if current in parent:
            tree.parent[current] = parent[current]
        if pending is not None:
            pending.discard(current)
            if not pending:
                break

        for nxt, step_cost in expand(current, bounds, blocked):
            if nxt in tree.dist:
                continue
            tentative = cost + step_cost
            if tentative < best.get(nxt, tentative + 1):
                best[nxt] = tentative
                parent[nxt] = current
                sequence += 1
                heapq.heappush(open_heap, (tentative, -sequence, nxt))

    return tree


def _bresenham(a: Cell, b: Cell) -> List[Cell]:
    """3D Bresenham line from ``a`` to ``b`` (inclusive)."""

    x, y, z = a
    deltas = [abs(b[0] - a[0]), abs(b[1] - a[1]), abs(b[2] - a[2])]
    steps = [1 if b[i] > a[i] else -1 for i in range(3)]
    major = max(range(3), key=lambda i: deltas[i])
    length = deltas[major]
    errors = [2 * deltas[i] - length for i in range(3)]
    position = [x, y, z]
    cells = [a]
    for _ in range(length):
        position[major] += steps[major]
        for axis in range(3):
            if axis == major:
                continue
            if errors[axis] >= 0:
                position[axis] += steps[axis]
                errors[axis] -= 2 * length
            errors[axis] += 2 * deltas[axis]
        cells.append((position[0], position[1], position[2]))
    return cells


def trace_line(grid: "Grid", a: Cell, b: Cell) -> List[Cell]:
    """Cells of a straight line from ``a`` to ``b`` usable as a path.

    Ordinal grids get a Bresenham line (diagonal steps allowed); cardinal
    grids get the same line with every diagonal step split into axis-aligned
    steps, x before y before z.
    """

    line = _bresenham(a, b)
    if grid.settings.neighborhood.is_ordinal:
        return line

    cells = [line[0]]
    for nxt in line[1:]:
        position = list(cells[-1])
        for axis in range(3):
            if position[axis] != nxt[axis]:
                position[axis] = nxt[axis]
                cells.append((position[0], position[1], position[2]))
    return cells


def line_is_clear(grid: "Grid", cells: List[Cell], blocked: AbstractSet[Cell] = _NO_BLOCKERS) -> bool:
    """Return ``True`` when every consecutive step of ``cells`` is a legal move."""

    return all(grid.can_move(a, b, blocked) for a, b in zip(cells, cells[1:]))


__all__ = [
    "SearchResult",
    "SearchTree",
    "astar",
    "dijkstra",
    "line_is_clear",
    "trace_line",
]
