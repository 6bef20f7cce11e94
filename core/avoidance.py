"""Short local detours around dynamic blockers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, List, Optional, Sequence

from core.chunks import Cell, Region
from core.grid import Grid
from core.search import dijkstra


@dataclass(frozen=True)
class Detour:
    """Cells leading from the agent to ``remaining[rejoin_index]`` of its path."""

    cells: List[Cell]
    rejoin_index: int
    cost_delta: int


def find_detour(
    grid: Grid,
    position: Cell,
    remaining: Sequence[Cell],
    blocked: AbstractSet[Cell],
    radius: int,
) -> Optional[Detour]:
    """Search a box of ``radius`` cells around ``position`` for a way back onto the path.

    Blocked cells are impassable.  The earliest unblocked cell of
    ``remaining`` reachable inside the box is the rejoin point; ``None`` means
    no such cell exists.
    """

    region = Region.around(position, radius, grid.settings.dimensions)
    tree = dijkstra(grid, position, bounds=region, blocked=blocked)
    for index, cell in enumerate(remaining):
        if index == 0 or cell in blocked:
            continue
        if not region.contains(cell):
            break
        if tree.reached(cell):
            cells = tree.path(cell)[1:]
            replaced = list(remaining[: index + 1])
            return Detour(cells, index, grid.path_cost(cells) - grid.path_cost(replaced))
    return None


__all__ = ["Detour", "find_detour"]
