"""Chunk partitioning and entrance detection along chunk boundaries.

The grid is divided into axis-aligned chunks of ``chunk_size`` cells along x
and y (and ``chunk_depth`` layers along z).  Wherever two face-adjacent chunks
share a boundary, the boundary cell pairs are scanned and every maximal
connected run of open pairs becomes one :class:`Entrance`.  The entrance is
represented by the middle pair of its run: one node inside each chunk.

A single blocked pair is enough to split a run, so two openings separated by
one wall cell stay two distinct entrances.

Ordinal grids may also step diagonally from one chunk into another, across a
shared face or over a shared edge or corner.  Such a step usually replays as
straight steps through the entrances above; the ones that do not (a squeeze
between two walls, say) become single-pair diagonal crossings.
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import permutations
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover - import hints only
    from core.grid import Grid
    from core.settings import GridSettings

Cell = Tuple[int, int, int]
ChunkIndex = Tuple[int, int, int]


@dataclass(frozen=True)
class Region:
    """Axis-aligned box of cells; ``max_corner`` is exclusive."""

    min_corner: Cell
    max_corner: Cell

    def contains(self, cell: Cell) -> bool:
        return all(lo <= c < hi for c, lo, hi in zip(cell, self.min_corner, self.max_corner))

    def cells(self) -> Iterator[Cell]:
        (x0, y0, z0), (x1, y1, z1) = self.min_corner, self.max_corner
        for z in range(z0, z1):
            for y in range(y0, y1):
                for x in range(x0, x1):
                    yield (x, y, z)

    @property
    def size(self) -> Tuple[int, int, int]:
        return tuple(hi - lo for lo, hi in zip(self.min_corner, self.max_corner))  # type: ignore[return-value]

    @classmethod
    def around(cls, center: Cell, radius: int, limits: Cell) -> "Region":
        """Return the box of ``radius`` cells around ``center`` clipped to ``limits``."""

        lo = tuple(max(0, c - radius) for c in center)
        hi = tuple(min(limit, c + radius + 1) for c, limit in zip(center, limits))
        return cls(lo, hi)  # type: ignore[arg-type]


@dataclass(frozen=True)
class Chunk(Region):
    """Fixed partition of the grid.  Created once and never resized."""

    index: ChunkIndex


@dataclass(frozen=True)
class Entrance:
    """Open run of boundary cells shared by two touching chunks.

    ``chunk_a`` is always the lower chunk index and ``cell_a``/``cell_b``
    are the representative cells on each side.  ``axis`` is ``None`` for a
    diagonal crossing, whose span is its single pair.
    """

    key: Tuple[ChunkIndex, ChunkIndex, Cell, Cell]
    chunk_a: ChunkIndex
    chunk_b: ChunkIndex
    axis: Optional[int]
    cell_a: Cell
    cell_b: Cell
    span: Tuple[Tuple[Cell, Cell], ...]

    @property
    def is_diagonal(self) -> bool:
        return self.axis is None

    def side(self, chunk: ChunkIndex) -> Cell:
        """Return the representative cell of this entrance inside ``chunk``."""

        if chunk == self.chunk_a:
            return self.cell_a
        if chunk == self.chunk_b:
            return self.cell_b
        raise KeyError(f"chunk {chunk} is not adjacent to entrance {self.key}")

    def partner(self, cell: Cell) -> Optional[Cell]:
        """Return the representative on the opposite side of ``cell``."""

        if cell == self.cell_a:
            return self.cell_b
        if cell == self.cell_b:
            return self.cell_a
        return None

    def __len__(self) -> int:
        return len(self.span)


def chunk_index_for(settings: "GridSettings", cell: Cell) -> ChunkIndex:
    x, y, z = cell
    return (x // settings.chunk_size, y // settings.chunk_size, z // settings.chunk_depth)


def build_chunks(settings: "GridSettings") -> Dict[ChunkIndex, Chunk]:
    """Partition the grid into chunks; edge chunks are clipped to the grid."""

    size, depth = settings.chunk_size, settings.chunk_depth
    cols = (settings.width + size - 1) // size
    rows = (settings.height + size - 1) // size
    layers = (settings.depth + depth - 1) // depth

    chunks: Dict[ChunkIndex, Chunk] = {}
    for cz in range(layers):
        for cy in range(rows):
            for cx in range(cols):
                lo = (cx * size, cy * size, cz * depth)
                hi = (
                    min(settings.width, lo[0] + size),
                    min(settings.height, lo[1] + size),
                    min(settings.depth, lo[2] + depth),
                )
                chunks[(cx, cy, cz)] = Chunk(lo, hi, (cx, cy, cz))
    return chunks


def touching(a: ChunkIndex, b: ChunkIndex) -> bool:
    """``True`` when two distinct chunks share a face, an edge or a corner."""

    return a != b and all(abs(p - q) <= 1 for p, q in zip(a, b))


def chunk_neighbours(chunks: Dict[ChunkIndex, Chunk], index: ChunkIndex) -> List[ChunkIndex]:
    """Return the indexes of every chunk touching ``index``."""

    result: List[ChunkIndex] = []
    for dz in (-1, 0, 1):
        for dy in (-1, 0, 1):
            for dx in (-1, 0, 1):
                candidate = (index[0] + dx, index[1] + dy, index[2] + dz)
                if candidate != index and candidate in chunks:
                    result.append(candidate)
    return result


def touching_pairs(chunks: Dict[ChunkIndex, Chunk]) -> List[Tuple[ChunkIndex, ChunkIndex]]:
    """Return every touching ``(low, high)`` chunk pair once."""

    pairs: List[Tuple[ChunkIndex, ChunkIndex]] = []
    for index in sorted(chunks):
        for other in chunk_neighbours(chunks, index):
            if index < other:
                pairs.append((index, other))
    return pairs


def boundaries_around(chunks: Dict[ChunkIndex, Chunk], index: ChunkIndex) -> List[Tuple[ChunkIndex, ChunkIndex]]:
    """Return the touching pairs whose crossings depend on cells of ``index``.

    A diagonal step between two chunks can pass beside any chunk lying
    between them, so a pair is included when ``index`` sits inside the box
    spanned by the pair, not only when it is one of the two.
    """

    around = [index] + chunk_neighbours(chunks, index)
    pairs = set()
    for a in around:
        for b in around:
            if a < b and touching(a, b) and all(index[axis] in (a[axis], b[axis]) for axis in range(3)):
                pairs.add((a, b))
    return sorted(pairs)


def boundary_key(a: ChunkIndex, b: ChunkIndex) -> Tuple[ChunkIndex, ChunkIndex]:
    if not touching(a, b):
        raise ValueError(f"chunks {a} and {b} do not touch")
    return (a, b) if a < b else (b, a)


def _boundary_axis(a: ChunkIndex, b: ChunkIndex) -> int:
    diffs = [axis for axis in range(3) if a[axis] != b[axis]]
    if len(diffs) != 1 or abs(a[diffs[0]] - b[diffs[0]]) != 1:
        raise ValueError(f"chunks {a} and {b} are not face-adjacent")
    return diffs[0]


def scan_entrances(grid: "Grid", chunk_a: Chunk, chunk_b: Chunk) -> List[Entrance]:
    """Scan the boundary between two adjacent chunks for entrances.

    ``chunk_a`` and ``chunk_b`` may be passed in either order; the returned
    entrances always use the low-side chunk as ``chunk_a``.
    """

    axis = _boundary_axis(chunk_a.index, chunk_b.index)
    if chunk_a.index[axis] > chunk_b.index[axis]:
        chunk_a, chunk_b = chunk_b, chunk_a

    side_a = chunk_a.max_corner[axis] - 1
    side_b = chunk_b.min_corner[axis]
    u_axis, v_axis = [other for other in range(3) if other != axis]

    open_pairs: Dict[Tuple[int, int], Tuple[Cell, Cell]] = {}
    for v in range(chunk_a.min_corner[v_axis], chunk_a.max_corner[v_axis]):
        for u in range(chunk_a.min_corner[u_axis], chunk_a.max_corner[u_axis]):
            coords_a = [0, 0, 0]
            coords_a[axis], coords_a[u_axis], coords_a[v_axis] = side_a, u, v
            coords_b = list(coords_a)
            coords_b[axis] = side_b
            cell_a = (coords_a[0], coords_a[1], coords_a[2])
            cell_b = (coords_b[0], coords_b[1], coords_b[2])
            if not (grid.is_walkable(cell_a) and grid.is_walkable(cell_b)):
                continue
            if grid.can_move(cell_a, cell_b) or grid.can_move(cell_b, cell_a):
                open_pairs[(u, v)] = (cell_a, cell_b)

    entrances: List[Entrance] = []
    seen: set[Tuple[int, int]] = set()
    for start in sorted(open_pairs, key=lambda uv: (uv[1], uv[0])):
        if start in seen:
            continue
        # Flood fill the run (4-connected inside the boundary plane).
        run: List[Tuple[int, int]] = []
        stack = [start]
        seen.add(start)
        while stack:
            u, v = stack.pop()
            run.append((u, v))
            for nu, nv in ((u + 1, v), (u - 1, v), (u, v + 1), (u, v - 1)):
                if (nu, nv) in open_pairs and (nu, nv) not in seen:
                    seen.add((nu, nv))
                    stack.append((nu, nv))
        run.sort(key=lambda uv: (uv[1], uv[0]))
        span = tuple(open_pairs[uv] for uv in run)
        cell_a, cell_b = span[len(span) // 2]
        entrances.append(
            Entrance(
                key=(chunk_a.index, chunk_b.index, cell_a, cell_b),
                chunk_a=chunk_a.index,
                chunk_b=chunk_b.index,
                axis=axis,
                cell_a=cell_a,
                cell_b=cell_b,
                span=span,
            )
        )
    return entrances


def _replays_straight(grid: "Grid", a: Cell, b: Cell) -> bool:
    """``True`` when the diagonal step ``a -> b`` can be made one axis at a time."""

    moved = [axis for axis in range(3) if a[axis] != b[axis]]
    for order in permutations(moved):
        current = a
        for axis in order:
            coords = list(current)
            coords[axis] = b[axis]
            nxt = (coords[0], coords[1], coords[2])
            if not grid.can_move(current, nxt):
                break
            current = nxt
        else:
            return True
    return False


def scan_diagonal_crossings(grid: "Grid", chunk_a: Chunk, chunk_b: Chunk) -> List[Entrance]:
    """Find the diagonal steps between two touching chunks that need their own crossing.

    Every single-axis step between chunks lies on a straight entrance, so a
    diagonal step that replays as single-axis steps is already represented.
    Any other legal diagonal step, in either direction, becomes a one-pair
    entrance.
    """

    if not touching(chunk_a.index, chunk_b.index):
        raise ValueError(f"chunks {chunk_a.index} and {chunk_b.index} do not touch")
    if chunk_a.index > chunk_b.index:
        chunk_a, chunk_b = chunk_b, chunk_a

    # Only the layer of chunk_a facing chunk_b can reach it in one step.
    ranges = []
    for axis in range(3):
        lo, hi = chunk_a.min_corner[axis], chunk_a.max_corner[axis]
        if chunk_a.index[axis] < chunk_b.index[axis]:
            ranges.append(range(hi - 1, hi))
        elif chunk_a.index[axis] > chunk_b.index[axis]:
            ranges.append(range(lo, lo + 1))
        else:
            ranges.append(range(lo, hi))
    diagonals = [offset for offset in grid.offsets if sum(1 for d in offset if d) > 1]

    crossings: List[Entrance] = []
    for z in ranges[2]:
        for y in ranges[1]:
            for x in ranges[0]:
                cell_a = (x, y, z)
                if not grid.is_walkable(cell_a):
                    continue
                for dx, dy, dz in diagonals:
                    cell_b = (x + dx, y + dy, z + dz)
                    if not chunk_b.contains(cell_b) or not grid.is_walkable(cell_b):
                        continue
                    needed = (grid.can_move(cell_a, cell_b) and not _replays_straight(grid, cell_a, cell_b)) or (
                        grid.can_move(cell_b, cell_a) and not _replays_straight(grid, cell_b, cell_a)
                    )
                    if not needed:
                        continue
                    crossings.append(
                        Entrance(
                            key=(chunk_a.index, chunk_b.index, cell_a, cell_b),
                            chunk_a=chunk_a.index,
                            chunk_b=chunk_b.index,
                            axis=None,
                            cell_a=cell_a,
                            cell_b=cell_b,
                            span=((cell_a, cell_b),),
                        )
                    )
    return crossings


def scan_boundary(grid: "Grid", chunk_a: Chunk, chunk_b: Chunk) -> List[Entrance]:
    """Return every entrance between two touching chunks, straight runs first."""

    if chunk_a.index > chunk_b.index:
        chunk_a, chunk_b = chunk_b, chunk_a
    entrances: List[Entrance] = []
    if sum(abs(p - q) for p, q in zip(chunk_a.index, chunk_b.index)) == 1:
        entrances.extend(scan_entrances(grid, chunk_a, chunk_b))
    entrances.extend(scan_diagonal_crossings(grid, chunk_a, chunk_b))
    return entrances


__all__ = [
    "Cell",
    "Chunk",
    "ChunkIndex",
    "Entrance",
    "Region",
    "boundaries_around",
    "boundary_key",
    "build_chunks",
    "chunk_index_for",
    "chunk_neighbours",
    "scan_boundary",
    "scan_diagonal_crossings",
    "scan_entrances",
    "touching",
    "touching_pairs",
]
