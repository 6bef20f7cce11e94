"""Turn abstract routes into walkable cell paths.

COARSE paths are the planner's segments stitched end to end.  REFINED paths
additionally replace stretches of the coarse path with straight lines
wherever a line is walkable move by move and costs no more than the stretch
it replaces, so refining never makes a path more expensive.
"""

from __future__ import annotations

import logging
from itertools import accumulate
from typing import AbstractSet, List

from core.chunks import Cell
from core.errors import NoPathFound
from core.grid import Grid
from core.path import Path, PathfindMode
from core.planner import AbstractPath
from core.search import astar, line_is_clear, trace_line

logger = logging.getLogger(__name__)


class Refiner:
    """Builds :class:`Path` objects from planner output or flat searches."""

    # Longest stretch of the coarse path a single straight line may replace.
    max_lookahead = 64

    def __init__(self, grid: Grid) -> None:
        self.grid = grid

    def stitch(self, abstract: AbstractPath) -> List[Cell]:
        """Concatenate the segments of ``abstract``, start cell included."""

        cells = [abstract.start]
        for segment in abstract.segments:
            for cell in segment:
                if cell != cells[-1]:
                    cells.append(cell)
        return cells

    def refine(
        self,
        abstract: AbstractPath,
        mode: PathfindMode = PathfindMode.REFINED,
        blocked: AbstractSet[Cell] = frozenset(),
    ) -> Path:
        mode = PathfindMode(mode)
        cells = self.stitch(abstract)
        if mode is PathfindMode.REFINED and len(cells) > 2:
            cells = self.smooth(cells, blocked)
        return Path(
            cells[1:],
            self.grid.path_cost(cells[1:]),
            mode=mode,
            partial=abstract.partial,
            graph_path=abstract.waypoints,
        )

    def smooth(self, cells: List[Cell], blocked: AbstractSet[Cell] = frozenset()) -> List[Cell]:
        """Shortcut ``cells`` with straight lines that are legal and no dearer.

        From each anchor the farthest cell within :attr:`max_lookahead` that a
        qualifying line reaches becomes the next anchor.
        """

        grid = self.grid
        # prefix[i] is the cost of walking cells[1..i].
        prefix = [0] + list(accumulate(grid.cost(cell) for cell in cells[1:]))
        last = len(cells) - 1

        smoothed = [cells[0]]
        anchor = 0
        while anchor < last:
            step = anchor + 1
            shortcut: List[Cell] = []
            for target in range(min(last, anchor + self.max_lookahead), anchor + 1, -1):
                line = trace_line(grid, cells[anchor], cells[target])
                if len(line) - 1 >= target - anchor:
                    continue
                if not line_is_clear(grid, line, blocked):
                    continue
                if grid.path_cost(line[1:]) <= prefix[target] - prefix[anchor]:
                    step, shortcut = target, line[1:]
                    break
            smoothed.extend(shortcut or [cells[step]])
            anchor = step
        return smoothed

    def flat(
        self,
        start: Cell,
        goal: Cell,
        partial: bool = False,
        blocked: AbstractSet[Cell] = frozenset(),
    ) -> Path:
        """Plan with one A* over the whole grid, bypassing the hierarchy."""

        for cell in (start, goal):
            if not self.grid.in_bounds(cell):
                raise IndexError(f"cell {cell} is outside the grid bounds")
        result = astar(self.grid, start, goal, blocked=blocked, partial=partial)
        if not result.cells:
            raise NoPathFound(f"no path from {start} to {goal}", start=start, goal=goal)
        logger.debug("Flat A* %s -> %s expanded %s cells", start, goal, result.expanded)
        return Path(
            result.cells[1:],
            result.cost,
            mode=PathfindMode.ASTAR,
            partial=not result.reached_goal,
            graph_path=(start, result.cells[-1]),
        )


__all__ = ["Refiner"]
