"""Movement modes and the restartable :class:`Path` handed to agents."""

from __future__ import annotations

from enum import Enum
from typing import Iterator, List, Optional, Sequence, Tuple

from core.chunks import Cell


class PathfindMode(str, Enum):
    """How a request is turned into cells."""

    REFINED = "refined"
    """Hierarchical plan stitched from cached segments, then line-of-sight smoothed."""

    COARSE = "coarse"
    """Hierarchical plan stitched from cached segments as-is."""

    ASTAR = "astar"
    """One full-grid A* search, ignoring the hierarchy."""


class Path:
    """Ordered cells an agent walks, excluding the cell it starts on.

    A cursor tracks progress: :meth:`pop` consumes the next step, :meth:`peek`
    looks at it and :meth:`restart` rewinds to the first step.  The last cell
    is the goal, or the closest reachable cell for a partial path.
    """

    __slots__ = ("_cells", "_cursor", "cost", "mode", "partial", "graph_path")

    def __init__(
        self,
        cells: Sequence[Cell],
        cost: int,
        mode: PathfindMode = PathfindMode.REFINED,
        partial: bool = False,
        graph_path: Sequence[Cell] = (),
    ) -> None:
        self._cells: List[Cell] = list(cells)
        self._cursor = 0
        self.cost = int(cost)
        self.mode = PathfindMode(mode)
        self.partial = bool(partial)
        self.graph_path: Tuple[Cell, ...] = tuple(graph_path)

    @classmethod
    def empty(cls, mode: PathfindMode = PathfindMode.REFINED, partial: bool = False) -> "Path":
        return cls((), 0, mode, partial)

    @property
    def cells(self) -> Tuple[Cell, ...]:
        """Every cell of the path, consumed or not."""

        return tuple(self._cells)

    @property
    def goal(self) -> Optional[Cell]:
        return self._cells[-1] if self._cells else None

    @property
    def is_empty(self) -> bool:
        return self._cursor >= len(self._cells)

    def peek(self) -> Optional[Cell]:
        if self.is_empty:
            return None
        return self._cells[self._cursor]

    def pop(self) -> Optional[Cell]:
        cell = self.peek()
        if cell is not None:
            self._cursor += 1
        return cell

    def remaining(self) -> List[Cell]:
        return self._cells[self._cursor:]

    def restart(self) -> None:
        self._cursor = 0

    def splice(self, index: int, cells: Sequence[Cell], cost_delta: int = 0) -> None:
        """Replace the first ``index`` remaining cells with ``cells``.

        Used by local avoidance: ``cells`` is a detour ending on the cell the
        path rejoins, and ``cost_delta`` adjusts :attr:`cost` accordingly.
        """

        if index < 0 or index > len(self._cells) - self._cursor:
            raise IndexError(f"splice index {index} outside the remaining path")
        start = self._cursor
        self._cells[start:start + index] = list(cells)
        self.cost += int(cost_delta)

    def __iter__(self) -> Iterator[Cell]:
        return iter(self.remaining())

    def __len__(self) -> int:
        return len(self._cells) - self._cursor

    def __repr__(self) -> str:
        return (
            f"Path(mode={self.mode.value}, cost={self.cost}, partial={self.partial}, "
            f"remaining={len(self)}/{len(self._cells)})"
        )


__all__ = ["Path", "PathfindMode"]
