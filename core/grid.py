"""Navigation grid: per-cell walkability, cost and movement directions.

The grid owns three numpy arrays indexed ``[x, y, z]`` and the chunk layout.
All mutations go through :meth:`Grid.set_nav`, which only records the owning
chunk as dirty.  The entrance graph and the intra-chunk path caches are
brought up to date lazily by :meth:`Grid.resolve`, which every search calls
before reading, so any number of edits made during one tick are applied in a
single batch.

Example:
    ```python
    grid = Grid(GridSettings(width=32, height=32, chunk_size=8))
    for y in range(32):
        if y != 12:
            grid.set_nav((16, y, 0), walkable=False)
    grid.build()
    grid.cell((16, 12, 0)).walkable  # True
    ```
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import IntFlag
from typing import Container, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from core.chunks import Cell, Chunk, ChunkIndex, Region, boundaries_around, build_chunks, chunk_index_for
from core.graph import EntranceGraph
from core.settings import GridSettings, Neighborhood

logger = logging.getLogger(__name__)

Offset = Tuple[int, int, int]


class Direction(IntFlag):
    """Directions a move may leave a cell in."""

    NORTH = 1  # -y
    SOUTH = 2  # +y
    WEST = 4  # -x
    EAST = 8  # +x
    UP = 16  # +z
    DOWN = 32  # -z
    ALL = NORTH | SOUTH | WEST | EAST | UP | DOWN
    NONE = 0


def direction_of(offset: Offset) -> Direction:
    """Return the direction flags a move by ``offset`` requires."""

    dx, dy, dz = offset
    required = Direction.NONE
    if dx:
        required |= Direction.EAST if dx > 0 else Direction.WEST
    if dy:
        required |= Direction.SOUTH if dy > 0 else Direction.NORTH
    if dz:
        required |= Direction.UP if dz > 0 else Direction.DOWN
    return required


def _offsets(neighborhood: Neighborhood) -> Tuple[Offset, ...]:
    dz_range = (-1, 0, 1) if neighborhood.is_3d else (0,)
    offsets: List[Offset] = []
    for dz in dz_range:
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                moved = (dx != 0) + (dy != 0) + (dz != 0)
                if moved == 0:
                    continue
                if not neighborhood.is_ordinal and moved > 1:
                    continue
                offsets.append((dx, dy, dz))
    # Straight moves first so equal-cost expansions prefer them.
    offsets.sort(key=lambda o: (abs(o[0]) + abs(o[1]) + abs(o[2]), o[2], o[1], o[0]))
    return tuple(offsets)


NEIGHBOUR_OFFSETS: Dict[Neighborhood, Tuple[Offset, ...]] = {
    hood: _offsets(hood) for hood in Neighborhood
}


@dataclass(frozen=True)
class NavCell:
    """Read-only snapshot of one grid cell."""

    cell: Cell
    walkable: bool
    cost: int
    directions: Direction

    def allows(self, offset: Offset) -> bool:
        required = direction_of(offset)
        return (self.directions & required) == required


class Grid:
    """Mutable navigation grid split into fixed-size chunks."""

    def __init__(self, settings: GridSettings) -> None:
        self.settings = settings
        shape = settings.dimensions
        self.walkable: np.ndarray = np.full(shape, not settings.default_impassable, dtype=np.bool_)
        self.costs: np.ndarray = np.full(shape, settings.default_cost, dtype=np.int32)
        self.directions: np.ndarray = np.full(shape, int(Direction.ALL), dtype=np.uint8)

        self.chunks: Dict[ChunkIndex, Chunk] = build_chunks(settings)
        self.graph = EntranceGraph(self)
        self.offsets: Tuple[Offset, ...] = NEIGHBOUR_OFFSETS[settings.neighborhood]
        self.version = 0

        self._dirty: set[ChunkIndex] = set()
        self._built = False
        self._min_cost: Optional[int] = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    @property
    def width(self) -> int:
        return self.settings.width

    @property
    def height(self) -> int:
        return self.settings.height

    @property
    def depth(self) -> int:
        return self.settings.depth

    @property
    def bounds(self) -> Region:
        return Region((0, 0, 0), self.settings.dimensions)

    def in_bounds(self, cell: Cell) -> bool:
        x, y, z = cell
        return 0 <= x < self.width and 0 <= y < self.height and 0 <= z < self.depth

    def chunk_for(self, cell: Cell) -> Chunk:
        """Return the chunk owning ``cell``."""

        if not self.in_bounds(cell):
            raise IndexError(f"cell {cell} is outside the grid bounds")
        return self.chunks[chunk_index_for(self.settings, cell)]

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------
    def cell(self, coord: Cell) -> NavCell:
        """Return a :class:`NavCell` view of ``coord``."""

        if not self.in_bounds(coord):
            raise IndexError(f"cell {coord} is outside the grid bounds")
        return NavCell(
            cell=coord,
            walkable=bool(self.walkable[coord]),
            cost=int(self.costs[coord]),
            directions=Direction(int(self.directions[coord])),
        )

    def is_walkable(self, cell: Cell) -> bool:
        return self.in_bounds(cell) and bool(self.walkable[cell])

    def cost(self, cell: Cell) -> int:
        return int(self.costs[cell])

    def set_nav(
        self,
        cell: Cell,
        cost: Optional[int] = None,
        walkable: bool = True,
        directions: Optional[Direction] = None,
    ) -> None:
        """Update one cell and mark its chunk dirty.

        ``cost=None`` keeps the current cost.  Entrances and cached paths are
        recomputed on the next read, not here.
        """

        if not self.in_bounds(cell):
            raise IndexError(f"cell {cell} is outside the grid bounds")
        if cost is not None and int(cost) < 1:
            raise ValueError("cell cost must be at least 1")

        with self._lock:
            before = (bool(self.walkable[cell]), int(self.costs[cell]), int(self.directions[cell]))
            self.walkable[cell] = bool(walkable)
            if cost is not None:
                self.costs[cell] = int(cost)
            if directions is not None:
                self.directions[cell] = int(directions)
            after = (bool(self.walkable[cell]), int(self.costs[cell]), int(self.directions[cell]))
            if before == after:
                return

            self._dirty.add(chunk_index_for(self.settings, cell))
            self._min_cost = None
            self.version += 1
        logger.debug("set_nav %s walkable=%s cost=%s", cell, walkable, cost)

    # ------------------------------------------------------------------
    # Movement model
    # ------------------------------------------------------------------
    @property
    def min_cost(self) -> int:
        """Cheapest walkable cell cost; scales the admissible heuristic."""

        if self._min_cost is None:
            walkable_costs = self.costs[self.walkable]
            self._min_cost = int(walkable_costs.min()) if walkable_costs.size else self.settings.default_cost
        return self._min_cost

    def distance(self, a: Cell, b: Cell) -> int:
        """Step distance under the grid's neighbourhood (Chebyshev or Manhattan)."""

        dx, dy, dz = abs(a[0] - b[0]), abs(a[1] - b[1]), abs(a[2] - b[2])
        if self.settings.neighborhood.is_ordinal:
            return max(dx, dy, dz)
        return dx + dy + dz

    def heuristic(self, a: Cell, b: Cell) -> int:
        return self.distance(a, b) * self.min_cost

    def can_move(self, a: Cell, b: Cell, blocked: Optional[Container[Cell]] = None) -> bool:
        """Return ``True`` when a single step from ``a`` to ``b`` is legal.

        ``b`` must be walkable, ``a`` must allow leaving in that direction and,
        unless corner cutting is enabled, every orthogonal component of a
        diagonal step must be walkable too.  ``a`` itself may be unwalkable.
        """

        if not self.is_walkable(b):
            return False
        if blocked is not None and b in blocked:
            return False
        offset = (b[0] - a[0], b[1] - a[1], b[2] - a[2])
        if max(abs(offset[0]), abs(offset[1]), abs(offset[2])) != 1:
            return False
        moved_axes = [axis for axis in range(3) if offset[axis]]
        if len(moved_axes) > 1 and not self.settings.neighborhood.is_ordinal:
            return False
        if self.in_bounds(a):
            required = direction_of(offset)
            if (Direction(int(self.directions[a])) & required) != required:
                return False
        if len(moved_axes) > 1 and not self.settings.allow_corner_cutting:
            for axis in moved_axes:
                side = list(a)
                side[axis] += offset[axis]
                if not self.is_walkable((side[0], side[1], side[2])):
                    return False
        return True

    def neighbours(
        self,
        cell: Cell,
        bounds: Optional[Region] = None,
        blocked: Optional[Container[Cell]] = None,
    ) -> Iterator[Tuple[Cell, int]]:
        """Yield ``(next_cell, step_cost)`` for every legal move out of ``cell``."""

        x, y, z = cell
        for dx, dy, dz in self.offsets:
            nxt = (x + dx, y + dy, z + dz)
            if bounds is not None and not bounds.contains(nxt):
                continue
            if self.can_move(cell, nxt, blocked):
                yield nxt, int(self.costs[nxt])

    def predecessors(
        self,
        cell: Cell,
        bounds: Optional[Region] = None,
        blocked: Optional[Container[Cell]] = None,
    ) -> Iterator[Tuple[Cell, int]]:
        """Yield ``(previous_cell, step_cost)`` for every legal move into ``cell``."""

        if not self.is_walkable(cell):
            return
        step_cost = int(self.costs[cell])
        x, y, z = cell
        for dx, dy, dz in self.offsets:
            prev = (x - dx, y - dy, z - dz)
            if bounds is not None and not bounds.contains(prev):
                continue
            if not self.is_walkable(prev):
                continue
            if blocked is not None and prev in blocked:
                continue
            if self.can_move(prev, cell, blocked):
                yield prev, step_cost

    def path_cost(self, cells: Sequence[Cell]) -> int:
        """Cost of entering every cell of ``cells`` in order."""

        return int(sum(int(self.costs[c]) for c in cells))

    # ------------------------------------------------------------------
    # Hierarchy maintenance
    # ------------------------------------------------------------------
    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def is_dirty(self) -> bool:
        return bool(self._dirty) or not self._built

    @property
    def dirty_chunks(self) -> frozenset[ChunkIndex]:
        return frozenset(self._dirty)

    def build(self) -> None:
        """Detect every entrance and, if configured, fill every path cache."""

        with self._lock:
            self.graph.rebuild_all()
            self._dirty.clear()
            self._built = True
            logger.info(
                "Built grid %sx%sx%s: %s chunks, %s entrances",
                self.width,
                self.height,
                self.depth,
                len(self.chunks),
                self.graph.entrance_count,
            )
            if self.settings.precompute_on_build:
                self.graph.precompute(progress=self.settings.show_progress)

    def resolve(self) -> None:
        """Apply pending dirty state so searches observe a consistent grid.

        Only the boundaries a dirty chunk can influence are rescanned: its own
        boundaries with every touching chunk, plus diagonal boundaries passing
        beside it.  The dirty chunk loses its cached edges; another chunk
        loses them only when one of its rescanned boundaries changed.
        """

        with self._lock:
            if not self._built:
                self.build()
                return
            if not self._dirty:
                return

            dirty = sorted(self._dirty)
            self._dirty.clear()
            invalidated: set[ChunkIndex] = set(dirty)
            rescanned: set[Tuple[ChunkIndex, ChunkIndex]] = set()
            for index in dirty:
                for pair in boundaries_around(self.chunks, index):
                    if pair in rescanned:
                        continue
                    rescanned.add(pair)
                    if self.graph.rebuild_boundary(*pair):
                        invalidated.update(pair)
            for index in sorted(invalidated):
                self.graph.invalidate_chunk(index)
            logger.debug("Resolved %s dirty chunks, invalidated %s", len(dirty), len(invalidated))


__all__ = ["Direction", "Grid", "NavCell", "NEIGHBOUR_OFFSETS", "direction_of"]
