"""
Agent Position Component - Cell currently occupied by a navigating agent.

The host owns this component: the navigation system only reads it and never
moves an agent on its own.
"""

from dataclasses import dataclass
from typing import Tuple


@dataclass
class AgentPosComponent:
    """
    Attributes:
        cell: Current grid cell as ``(x, y, z)``
    """
    cell: Tuple[int, int, int]

    def __post_init__(self) -> None:
        self.cell = tuple(int(c) for c in self.cell)  # type: ignore[assignment]
        if len(self.cell) != 3:
            raise ValueError("agent positions are (x, y, z) cells")


__all__ = ["AgentPosComponent"]
