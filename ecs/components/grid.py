"""
Grid relation components.

A grid entity carries :class:`GridComponent` and :class:`GridAgentsComponent`;
each agent navigating it carries :class:`AgentOfGridComponent`. Both sides are
only changed through :mod:`ecs.helpers.grid_agents`.
"""

from dataclasses import dataclass, field
from typing import Optional, Set

from core.grid import Grid
from core.pathfinder import Pathfinder


@dataclass
class GridComponent:
    """
    Attributes:
        grid: Navigation grid of this entity
        pathfinder: Pathfinder bound to ``grid`` (created when omitted)
    """
    grid: Grid
    pathfinder: Optional[Pathfinder] = None

    def __post_init__(self) -> None:
        if self.pathfinder is None:
            self.pathfinder = Pathfinder(self.grid)

    @property
    def settings(self):
        return self.grid.settings


@dataclass
class GridAgentsComponent:
    """Entity ids of the agents attached to the grid."""
    agents: Set[int] = field(default_factory=set)


@dataclass
class AgentOfGridComponent:
    """Back-reference from an agent to its grid entity."""
    grid_entity: int


__all__ = ["AgentOfGridComponent", "GridAgentsComponent", "GridComponent"]
