"""Single entry point for path requests against one grid."""

from __future__ import annotations

import logging
import time
from typing import AbstractSet, Dict

from core.chunks import Cell
from core.errors import NoPathFound
from core.grid import Grid
from core.path import Path, PathfindMode
from core.planner import HierarchicalPlanner
from core.refiner import Refiner
from utils.logger import log_calls

logger = logging.getLogger(__name__)


class Pathfinder:
    """Combines the hierarchical planner and the refiner.

    Example:
        ```python
        pathfinder = Pathfinder(grid)
        path = pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=PathfindMode.COARSE)
        while not path.is_empty:
            step = path.pop()
        ```
    """

    def __init__(self, grid: Grid) -> None:
        self.grid = grid
        self.planner = HierarchicalPlanner(grid)
        self.refiner = Refiner(grid)
        self._stats: Dict[str, float] = {}
        self.reset_stats()

    @log_calls
    def request_path(
        self,
        start: Cell,
        goal: Cell,
        mode: PathfindMode = PathfindMode.REFINED,
        partial: bool = False,
        blocked: AbstractSet[Cell] = frozenset(),
    ) -> Path:
        """Plan a path from ``start`` to ``goal``.

        The returned path excludes ``start``.  With ``partial`` an unreachable
        goal yields a path to the closest reachable cell instead, which is
        empty when no cell is closer than ``start``.

        Raises:
            IndexError: if ``start`` or ``goal`` lies outside the grid.
            NoPathFound: if the goal is unreachable and ``partial`` is off.
        """

        mode = PathfindMode(mode)
        self._stats["requests"] += 1
        started = time.perf_counter()
        try:
            if mode is PathfindMode.ASTAR:
                self.grid.resolve()
                path = self.refiner.flat(start, goal, partial=partial, blocked=blocked)
            else:
                abstract = self.planner.plan(start, goal, partial=partial, blocked=blocked)
                path = self.refiner.refine(abstract, mode, blocked)
        except NoPathFound:
            self._stats["failures"] += 1
            logger.debug("No %s path from %s to %s", mode.value, start, goal)
            raise
        finally:
            self._stats["search_time"] += time.perf_counter() - started

        if path.partial:
            self._stats["partial"] += 1
        logger.debug(
            "%s path %s -> %s: %s steps, cost %s%s",
            mode.value,
            start,
            goal,
            len(path),
            path.cost,
            " (partial)" if path.partial else "",
        )
        return path

    def get_stats(self) -> Dict[str, float]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        self._stats = {"requests": 0, "failures": 0, "partial": 0, "search_time": 0.0}


__all__ = ["Pathfinder"]
