"""Per-tick occupancy snapshots of dynamic blockers."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import AbstractSet, Iterable, Mapping, Tuple

from ecs.components.agent_pos import AgentPosComponent
from ecs.components.blocking import BlockingComponent
from ecs.ecs_manager import ECSManager
from ecs.helpers.grid_agents import grid_of

Cell = Tuple[int, int, int]


@dataclass(frozen=True)
class TickSnapshot:
    """Immutable view of which entity blocks which cell during one tick."""

    tick: int
    blocking: Mapping[Cell, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "blocking", MappingProxyType(dict(self.blocking)))

    def blocker_at(self, cell: Cell) -> int | None:
        return self.blocking.get(cell)

    def is_blocked(self, cell: Cell, ignore: Iterable[int] = ()) -> bool:
        entity = self.blocking.get(cell)
        return entity is not None and entity not in set(ignore)


def build_snapshot(ecs_manager: ECSManager, grid_entity: int, tick: int) -> TickSnapshot:
    """Collect every blocking entity positioned on ``grid_entity``.

    Blockers without a grid relation are treated as living on every grid.
    When two blockers share a cell the lower entity id is recorded.
    """

    blocking: dict[Cell, int] = {}
    for entity, (_, position) in ecs_manager.get_components(BlockingComponent, AgentPosComponent):
        owner = grid_of(ecs_manager, entity)
        if owner is not None and owner != grid_entity:
            continue
        blocking.setdefault(position.cell, entity)
    return TickSnapshot(tick, blocking)


def collect_blocked_cells(snapshot: TickSnapshot, ignore: Iterable[int] = ()) -> AbstractSet[Cell]:
    """Cells blocked in ``snapshot`` by entities other than those in ``ignore``."""

    skip = set(ignore)
    return frozenset(cell for cell, entity in snapshot.blocking.items() if entity not in skip)


__all__ = ["TickSnapshot", "build_snapshot", "collect_blocked_cells"]
