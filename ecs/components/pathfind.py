"""
Pathfinding components.

``PathfindComponent`` is a request placed by the host, ``PathComponent`` the
session the navigation system keeps while the agent follows a path, and
``NextPosComponent`` the single step handed back to the host each tick.
"""

from dataclasses import dataclass
from typing import Tuple

from core.path import Path, PathfindMode

Cell = Tuple[int, int, int]


@dataclass
class PathfindComponent:
    """
    Path request for the agent it is attached to.

    Attributes:
        goal: Cell to reach
        mode: How the path is computed (Default: REFINED)
        partial: Accept a path to the closest reachable cell when the goal
                 cannot be reached
    """
    goal: Cell
    mode: PathfindMode = PathfindMode.REFINED
    partial: bool = False

    def __post_init__(self) -> None:
        self.goal = tuple(int(c) for c in self.goal)  # type: ignore[assignment]
        self.mode = PathfindMode(self.mode)


@dataclass
class PathComponent:
    """Navigation session of one agent."""
    goal: Cell
    path: Path
    mode: PathfindMode = PathfindMode.REFINED
    partial: bool = False
    avoidance_attempts: int = 0
    reroute_attempts: int = 0

    def matches(self, request: PathfindComponent) -> bool:
        """True when ``request`` asks for exactly what this session follows."""
        return (
            self.goal == request.goal
            and self.mode == request.mode
            and self.partial == request.partial
        )


@dataclass
class NextPosComponent:
    """Next cell the host should move the agent to; removed by the host."""
    cell: Cell


__all__ = ["NextPosComponent", "PathComponent", "PathfindComponent"]
