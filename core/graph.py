"""Abstract entrance graph with lazily cached intra-chunk paths.

Nodes are the representative cells of entrances.  Two kinds of edges exist:

* crossing edges join the two representatives of one entrance, straight or
  diagonal.  They are static for as long as the entrance exists and cost the
  entered cell's cost;
  they are derived from the entrance list on every query and never cached.
* cached edges join two nodes of the same chunk.  The first lookup of a
  source node runs one Dijkstra restricted to the chunk and stores the cost
  and full cell sequence towards every other node of the chunk.

Invalidation is chunk-scoped: :meth:`EntranceGraph.invalidate_chunk` drops
every table of the chunk and the next lookup recomputes only the requested
source node.  Recomputation is serialized per chunk, so two readers hitting
the same stale chunk produce one table and the second reuses it.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Tuple

from tqdm import tqdm

from core.chunks import Cell, ChunkIndex, Entrance, boundary_key, scan_boundary, touching_pairs
from core.search import dijkstra

if TYPE_CHECKING:  # pragma: no cover - import hints only
    from core.grid import Grid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedEdge:
    """Shortest intra-chunk path between two entrance nodes."""

    source: Cell
    target: Cell
    cost: int
    cells: Tuple[Cell, ...]
    chunk: ChunkIndex


class EntranceGraph:
    """Entrance nodes, crossing edges and the per-chunk path cache."""

    def __init__(self, grid: "Grid") -> None:
        self._grid = grid
        self._entrances: Dict[Tuple[ChunkIndex, ChunkIndex], Tuple[Entrance, ...]] = {}
        self._by_chunk: Dict[ChunkIndex, List[Entrance]] = defaultdict(list)
        self._nodes: Dict[ChunkIndex, Tuple[Cell, ...]] = {}
        self._edges: Dict[ChunkIndex, Dict[Cell, Dict[Cell, CachedEdge]]] = {}
        self._locks: Dict[ChunkIndex, threading.Lock] = {
            index: threading.Lock() for index in grid.chunks
        }
        self._stats = {"cache_hits": 0, "cache_misses": 0, "invalidations": 0}

    # ------------------------------------------------------------------
    # Entrances
    # ------------------------------------------------------------------
    def rebuild_all(self) -> None:
        """Rescan every boundary and drop every cached edge."""

        chunks = self._grid.chunks
        self._entrances.clear()
        for a, b in touching_pairs(chunks):
            self._entrances[(a, b)] = tuple(scan_boundary(self._grid, chunks[a], chunks[b]))
        self._reindex(chunks.keys())
        for index in chunks:
            self.invalidate_chunk(index)

    def rebuild_boundary(self, a: ChunkIndex, b: ChunkIndex) -> bool:
        """Rescan the boundary between ``a`` and ``b``.

        Returns ``True`` when the entrance set changed.
        """

        key = boundary_key(a, b)
        chunks = self._grid.chunks
        rescanned = tuple(scan_boundary(self._grid, chunks[key[0]], chunks[key[1]]))
        if self._entrances.get(key) == rescanned:
            return False
        self._entrances[key] = rescanned
        self._reindex(key)
        logger.debug("Boundary %s -> %s now has %s entrances", key[0], key[1], len(rescanned))
        return True

    def _reindex(self, indexes) -> None:
        for index in indexes:
            entrances = [
                entrance
                for key, run in self._entrances.items()
                if index in key
                for entrance in run
            ]
            self._by_chunk[index] = entrances
            self._nodes[index] = tuple(sorted({entrance.side(index) for entrance in entrances}))

    @property
    def entrance_count(self) -> int:
        return sum(len(run) for run in self._entrances.values())

    def entrances_between(self, a: ChunkIndex, b: ChunkIndex) -> Tuple[Entrance, ...]:
        return self._entrances.get(boundary_key(a, b), ())

    def entrances_of(self, chunk: ChunkIndex) -> Tuple[Entrance, ...]:
        return tuple(self._by_chunk.get(chunk, ()))

    def nodes_in(self, chunk: ChunkIndex) -> Tuple[Cell, ...]:
        return self._nodes.get(chunk, ())

    def is_node(self, cell: Cell) -> bool:
        return cell in self.nodes_in(self._grid.chunk_for(cell).index)

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------
    def crossings_from(self, node: Cell) -> List[Tuple[Cell, int]]:
        """Return ``(partner, cost)`` for every entrance ``node`` can cross."""

        chunk = self._grid.chunk_for(node).index
        result: List[Tuple[Cell, int]] = []
        for entrance in self._by_chunk.get(chunk, ()):
            partner = entrance.partner(node)
            if partner is None or not self._grid.can_move(node, partner):
                continue
            result.append((partner, self._grid.cost(partner)))
        return result

    def edges_from(self, node: Cell) -> Dict[Cell, CachedEdge]:
        """Return the cached intra-chunk edges leaving ``node``.

        A missing table is computed on the spot, under the chunk's lock.
        """

        chunk = self._grid.chunk_for(node).index
        table = self._edges.get(chunk)
        if table is not None and node in table:
            self._stats["cache_hits"] += 1
            return table[node]

        with self._locks[chunk]:
            table = self._edges.setdefault(chunk, {})
            if node in table:
                self._stats["cache_hits"] += 1
                return table[node]
            self._stats["cache_misses"] += 1
            table[node] = self._compute_edges(chunk, node)
            return table[node]

    def edge(self, source: Cell, target: Cell) -> CachedEdge | None:
        return self.edges_from(source).get(target)

    def _compute_edges(self, chunk: ChunkIndex, source: Cell) -> Dict[Cell, CachedEdge]:
        nodes = self._nodes.get(chunk, ())
        if source not in nodes:
            return {}
        targets = [node for node in nodes if node != source]
        tree = dijkstra(self._grid, source, bounds=self._grid.chunks[chunk], targets=targets)
        edges: Dict[Cell, CachedEdge] = {}
        for target in targets:
            if tree.reached(target):
                edges[target] = CachedEdge(
                    source=source,
                    target=target,
                    cost=tree.dist[target],
                    cells=tuple(tree.path(target)),
                    chunk=chunk,
                )
        return edges

    def invalidate_chunk(self, chunk: ChunkIndex) -> None:
        """Discard every cached edge of ``chunk``."""

        with self._locks[chunk]:
            if self._edges.pop(chunk, None) is not None:
                self._stats["invalidations"] += 1

    def cached_sources(self, chunk: ChunkIndex) -> Tuple[Cell, ...]:
        """Source nodes of ``chunk`` whose edge table is currently cached."""

        return tuple(self._edges.get(chunk, {}))

    def precompute(self, progress: bool = False) -> None:
        """Fill the edge table of every node of every chunk."""

        for index in tqdm(sorted(self._nodes), desc="Caching chunk paths", disable=not progress):
            for node in self._nodes[index]:
                self.edges_from(node)

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)


__all__ = ["CachedEdge", "EntranceGraph"]
