"""Grid builders and brute-force references shared by the tests."""

from __future__ import annotations

from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from core.grid import Grid
from core.search import dijkstra
from core.settings import GridSettings, Neighborhood

Cell = Tuple[int, int, int]


def make_grid(
    width: int = 10,
    height: int = 10,
    *,
    chunk_size: int = 5,
    neighborhood: Neighborhood = Neighborhood.ORDINAL,
    walls: Iterable[Cell] = (),
    build: bool = True,
    **settings,
) -> Grid:
    """Build a single-layer grid with ``walls`` made unwalkable."""

    grid = Grid(
        GridSettings(width=width, height=height, chunk_size=chunk_size, neighborhood=neighborhood, **settings)
    )
    for cell in walls:
        grid.set_nav(cell, walkable=False)
    if build:
        grid.build()
    return grid


def grid_from_rows(rows: Sequence[str], **kwargs) -> Grid:
    """Build a grid from ASCII rows: ``#`` is a wall, digits are cell costs."""

    walls = []
    costs = []
    for y, row in enumerate(rows):
        for x, char in enumerate(row):
            if char == "#":
                walls.append((x, y, 0))
            elif char.isdigit():
                costs.append(((x, y, 0), int(char)))
    grid = make_grid(len(rows[0]), len(rows), walls=walls, build=False, **kwargs)
    for cell, cost in costs:
        grid.set_nav(cell, cost=cost)
    grid.build()
    return grid


def random_grid(seed: int, size: int = 20, density: float = 0.2, **kwargs) -> Grid:
    """Grid with randomly placed walls and costs between 1 and 3."""

    rng = np.random.default_rng(seed)
    grid = make_grid(size, size, build=False, **kwargs)
    for x in range(size):
        for y in range(size):
            if rng.random() < density:
                grid.set_nav((x, y, 0), walkable=False)
            else:
                grid.set_nav((x, y, 0), cost=int(rng.integers(1, 4)))
    grid.build()
    return grid


def reference_cost(grid: Grid, start: Cell, goal: Cell) -> Optional[int]:
    """Exact shortest-path cost by exhaustive Dijkstra, ``None`` if unreachable."""

    tree = dijkstra(grid, start)
    return tree.dist.get(goal)


def assert_walkable_path(grid: Grid, start: Cell, cells: Sequence[Cell]) -> None:
    """Every step of ``cells`` (which excludes ``start``) must be a legal move."""

    previous = start
    for cell in cells:
        assert grid.can_move(previous, cell), f"illegal step {previous} -> {cell}"
        previous = cell
