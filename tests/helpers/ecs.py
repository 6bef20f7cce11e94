"""Helper functions to wire navigation worlds in tests."""

from __future__ import annotations

from typing import Any, List, Optional

from core.event_bus import EventBus
from core.grid import Grid
from core.settings import NavigationSettings
from ecs.components.agent_pos import AgentPosComponent
from ecs.components.grid import GridComponent
from ecs.components.pathfind import NextPosComponent
from ecs.ecs_manager import ECSManager
from ecs.systems.navigation import AgentUpdate, NavigationSystem


class LoggedEventBus(EventBus):
    """Event bus that records every publication for assertions."""

    def __init__(self) -> None:
        super().__init__()
        self.log: list[tuple[str, dict[str, Any]]] = []

    def publish(self, topic, payload=None, /, **kwargs: Any) -> None:  # type: ignore[override]
        self.log.append((topic.value, dict(payload or {}, **kwargs)))
        super().publish(topic, payload, **kwargs)

    def topics(self) -> List[str]:
        return [topic for topic, _ in self.log]


def build_navigation(
    ecs_manager: ECSManager,
    grid: Grid,
    settings: Optional[NavigationSettings] = None,
    event_bus: Optional[EventBus] = None,
) -> tuple[NavigationSystem, int]:
    """Return a navigation system and the entity of ``grid``."""

    system = NavigationSystem(ecs_manager, settings, event_bus=event_bus)
    grid_entity = system.add_grid(GridComponent(grid))
    return system, grid_entity


def apply_moves(ecs_manager: ECSManager, updates: List[AgentUpdate]) -> None:
    """Play the host: move every agent to its emitted next position."""

    for update in updates:
        if update.next_pos is None:
            continue
        ecs_manager.get_component(update.entity, AgentPosComponent).cell = update.next_pos
        ecs_manager.remove_component(update.entity, NextPosComponent)


def update_for(updates: List[AgentUpdate], entity: int) -> Optional[AgentUpdate]:
    for update in updates:
        if update.entity == entity:
            return update
    return None
