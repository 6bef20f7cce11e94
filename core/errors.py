"""Failure kinds surfaced by the pathfinding engine.

Agent-local failures are :class:`PathError` values that the tick driver
records on the agent.  A direct request through
:class:`core.pathfinder.Pathfinder` raises :class:`NoPathFound` instead and the
caller decides how to recover.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

Cell = Tuple[int, int, int]


class PathError(str, Enum):
    """Recoverable failure kinds."""

    NO_PATH_FOUND = "no_path_found"
    PATH_INVALIDATED = "path_invalidated"
    AVOIDANCE_FAILED = "avoidance_failed"
    REROUTE_FAILED = "reroute_failed"


class PathfindingError(RuntimeError):
    """Base exception raised by the planner, the refiner and the pathfinder."""

    kind: PathError = PathError.NO_PATH_FOUND

    def __init__(
        self,
        message: str = "",
        *,
        start: Optional[Cell] = None,
        goal: Optional[Cell] = None,
    ) -> None:
        super().__init__(message or self.kind.value)
        self.start = start
        self.goal = goal


class NoPathFound(PathfindingError):
    """No connectivity between start and goal and no usable partial endpoint."""

    kind = PathError.NO_PATH_FOUND


__all__ = ["NoPathFound", "PathError", "PathfindingError"]
