"""Hierarchical planning over the entrance graph.

A request is answered in three stages:

1. an exhaustive Dijkstra inside the start chunk (forward) and another inside
   the goal chunk (reverse) connect the real endpoints to the entrance nodes
   of their chunks;
2. A* runs over the abstract graph: a temporary start node, the entrance
   nodes with their crossing and cached intra-chunk edges, and a temporary
   goal node;
3. the winning chain of hops is returned as an :class:`AbstractPath`, whose
   segments the refiner stitches into cells.

When start and goal share a chunk the direct local path is a candidate too
and wins unless the abstract route is strictly cheaper.
"""

from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Dict, Hashable, Iterator, List, Optional, Tuple

from core.chunks import Cell
from core.errors import NoPathFound
from core.grid import Grid
from core.search import SearchTree, dijkstra

logger = logging.getLogger(__name__)

_START = "start"
_GOAL = "goal"

Node = Hashable


@dataclass
class AbstractPath:
    """Chain of hops produced by the planner.

    ``waypoints`` runs from the start through the entrance nodes to the goal
    (or partial endpoint).  ``segments[i]`` holds the cells from
    ``waypoints[i]`` to ``waypoints[i + 1]``, both included.
    """

    waypoints: List[Cell]
    segments: List[List[Cell]] = field(default_factory=list)
    cost: int = 0
    partial: bool = False

    @property
    def start(self) -> Cell:
        return self.waypoints[0]

    @property
    def endpoint(self) -> Cell:
        return self.waypoints[-1]

    @property
    def is_empty(self) -> bool:
        return not self.segments


class HierarchicalPlanner:
    """Plans over chunk entrances and their cached intra-chunk paths."""

    def __init__(self, grid: Grid) -> None:
        self.grid = grid
        self.last_expanded = 0

    def plan(
        self,
        start: Cell,
        goal: Cell,
        *,
        partial: bool = False,
        blocked: AbstractSet[Cell] = frozenset(),
    ) -> AbstractPath:
        """Return the cheapest abstract route from ``start`` to ``goal``.

        Raises:
            IndexError: if either endpoint lies outside the grid.
            NoPathFound: if the goal is unreachable and ``partial`` is off.
        """

        grid = self.grid
        for cell in (start, goal):
            if not grid.in_bounds(cell):
                raise IndexError(f"cell {cell} is outside the grid bounds")
        grid.resolve()

        if start == goal:
            return AbstractPath([start])

        start_chunk = grid.chunk_for(start)
        goal_chunk = grid.chunk_for(goal)
        goal_open = grid.is_walkable(goal) and goal not in blocked

        forward = dijkstra(grid, start, bounds=start_chunk, blocked=blocked)
        backward: Optional[SearchTree] = None
        if goal_open:
            backward = dijkstra(grid, goal, bounds=goal_chunk, blocked=blocked, reverse=True)

        direct_cost: Optional[int] = None
        if start_chunk.index == goal_chunk.index and goal_open and forward.reached(goal):
            direct_cost = forward.dist[goal]

        search = self._search(start, goal, forward, backward, blocked, direct_cost)
        if search.found:
            return self._assemble(start, goal, search, _GOAL)
        if direct_cost is not None:
            return AbstractPath([start, goal], [forward.path(goal)], direct_cost)
        if partial:
            return self._partial(start, goal, forward, search, blocked)
        raise NoPathFound(f"no path from {start} to {goal}", start=start, goal=goal)

    # ------------------------------------------------------------------
    # Abstract A*
    # ------------------------------------------------------------------
    def _successors(
        self,
        node: Node,
        start: Cell,
        forward: SearchTree,
        backward: Optional[SearchTree],
        blocked: AbstractSet[Cell],
    ) -> Iterator[Tuple[Node, int, List[Cell]]]:
        graph = self.grid.graph
        if node == _START:
            for entrance_node in graph.nodes_in(self.grid.chunk_for(start).index):
                if forward.reached(entrance_node):
                    yield entrance_node, forward.dist[entrance_node], forward.path(entrance_node)
            return

        for partner, cost in graph.crossings_from(node):
            if partner not in blocked:
                yield partner, cost, [node, partner]
        chunk = self.grid.chunk_for(node)
        if blocked and any(chunk.contains(cell) for cell in blocked):
            # Cached edges ignore blockers; search this chunk again around them.
            targets = [other for other in graph.nodes_in(chunk.index) if other != node]
            tree = dijkstra(self.grid, node, bounds=chunk, targets=targets, blocked=blocked)
            for target in targets:
                if tree.reached(target):
                    yield target, tree.dist[target], tree.path(target)
        else:
            for target, edge in graph.edges_from(node).items():
                yield target, edge.cost, list(edge.cells)
        if backward is not None and backward.reached(node):
            yield _GOAL, backward.dist[node], backward.path(node)

    def _search(
        self,
        start: Cell,
        goal: Cell,
        forward: SearchTree,
        backward: Optional[SearchTree],
        blocked: AbstractSet[Cell],
        direct_cost: Optional[int],
    ) -> "_AbstractSearch":
        grid = self.grid
        search = _AbstractSearch()

        def heuristic(node: Node) -> int:
            if node == _GOAL:
                return 0
            return grid.heuristic(start if node == _START else node, goal)

        closed: set = set()
        sequence = 0
        open_heap: List[Tuple[int, int, Node]] = [(heuristic(_START), 0, _START)]

        while open_heap:
            f, _, current = heapq.heappop(open_heap)
            if current in closed:
                continue
            if direct_cost is not None and f >= direct_cost:
                break
            if current == _GOAL:
                search.found = True
                break
            closed.add(current)
            if current != _START:
                search.closed_order.append(current)

            base = search.g_score[current]
            for nxt, cost, cells in self._successors(current, start, forward, backward, blocked):
                if nxt in closed:
                    continue
                tentative = base + cost
                if tentative < search.g_score.get(nxt, tentative + 1):
                    search.g_score[nxt] = tentative
                    search.came_from[nxt] = (current, cells)
                    sequence += 1
                    heapq.heappush(open_heap, (tentative + heuristic(nxt), -sequence, nxt))

        self.last_expanded = len(search.closed_order)
        return search

    def _assemble(self, start: Cell, goal: Cell, search: "_AbstractSearch", end: Node) -> AbstractPath:
        hops: List[Tuple[Node, List[Cell]]] = []
        node = end
        while node != _START:
            previous, cells = search.came_from[node]
            hops.append((node, cells))
            node = previous
        hops.reverse()

        waypoints = [start]
        segments: List[List[Cell]] = []
        for node, cells in hops:
            waypoints.append(goal if node == _GOAL else node)
            segments.append(cells)
        return AbstractPath(waypoints, segments, search.g_score[end], partial=end != _GOAL)

    # ------------------------------------------------------------------
    # Partial results
    # ------------------------------------------------------------------
    def _partial(
        self,
        start: Cell,
        goal: Cell,
        forward: SearchTree,
        search: "_AbstractSearch",
        blocked: AbstractSet[Cell],
    ) -> AbstractPath:
        """Route to the reachable cell closest to ``goal``.

        Candidates are the cells of the start chunk reachable from ``start``
        and the abstract nodes the failed search settled; for the best node a
        local search in its chunk looks for a still closer cell.  Only a cell
        strictly closer than ``start`` qualifies; the first one found wins ties.
        """

        grid = self.grid
        best_distance = grid.distance(start, goal)
        best_cell: Optional[Cell] = None
        for cell in forward.settled():
            distance = grid.distance(cell, goal)
            if distance < best_distance:
                best_cell, best_distance = cell, distance

        best_node: Optional[Cell] = None
        for node in search.closed_order:
            distance = grid.distance(node, goal)
            if distance < best_distance:
                best_node, best_distance = node, distance

        if best_node is None:
            if best_cell is None:
                logger.debug("Partial path from %s towards %s is empty", start, goal)
                return AbstractPath([start], partial=True)
            return AbstractPath(
                [start, best_cell], [forward.path(best_cell)], forward.dist[best_cell], partial=True
            )

        route = self._assemble(start, goal, search, best_node)
        local = dijkstra(grid, best_node, bounds=grid.chunk_for(best_node), blocked=blocked)
        endpoint = best_node
        for cell in local.settled():
            distance = grid.distance(cell, goal)
            if distance < best_distance:
                endpoint, best_distance = cell, distance
        if endpoint != best_node:
            route.waypoints.append(endpoint)
            route.segments.append(local.path(endpoint))
            route.cost += local.dist[endpoint]
        return route


@dataclass
class _AbstractSearch:
    """Bookkeeping of one abstract A* run; parents of closed nodes are final."""

    found: bool = False
    g_score: Dict[Node, int] = field(default_factory=lambda: {_START: 0})
    came_from: Dict[Node, Tuple[Node, List[Cell]]] = field(default_factory=dict)
    closed_order: List[Cell] = field(default_factory=list)


__all__ = ["AbstractPath", "HierarchicalPlanner"]
