"""Grid membership of agents.

These helpers are the only code that mutates :class:`AgentOfGridComponent`
and :class:`GridAgentsComponent`, so an agent's back-reference and its grid's
agent set always agree.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from ecs.components.grid import AgentOfGridComponent, GridAgentsComponent, GridComponent
from ecs.ecs_manager import ECSManager

logger = logging.getLogger(__name__)


def _agents_component(ecs_manager: ECSManager, grid_entity: int) -> GridAgentsComponent:
    if not ecs_manager.has_component(grid_entity, GridComponent):
        raise KeyError(f"entity {grid_entity} is not a grid")
    agents = ecs_manager.try_get_component(grid_entity, GridAgentsComponent)
    if agents is None:
        agents = GridAgentsComponent()
        ecs_manager.add_component(grid_entity, agents)
    return agents


def attach_agent(ecs_manager: ECSManager, agent: int, grid_entity: int) -> None:
    """Attach ``agent`` to ``grid_entity``, leaving any previous grid first."""

    agents = _agents_component(ecs_manager, grid_entity)
    current = grid_of(ecs_manager, agent)
    if current == grid_entity:
        return
    if current is not None:
        detach_agent(ecs_manager, agent)
    agents.agents.add(agent)
    ecs_manager.add_component(agent, AgentOfGridComponent(grid_entity))
    logger.debug("Agent %s attached to grid %s", agent, grid_entity)


def detach_agent(ecs_manager: ECSManager, agent: int) -> Optional[int]:
    """Detach ``agent`` from its grid; returns the grid it left, if any."""

    relation = ecs_manager.remove_component(agent, AgentOfGridComponent)
    if relation is None:
        return None
    agents = ecs_manager.try_get_component(relation.grid_entity, GridAgentsComponent)
    if agents is not None:
        agents.agents.discard(agent)
    logger.debug("Agent %s detached from grid %s", agent, relation.grid_entity)
    return relation.grid_entity


def remove_agent(ecs_manager: ECSManager, agent: int) -> None:
    """Detach ``agent`` and delete the entity."""

    detach_agent(ecs_manager, agent)
    if ecs_manager.entity_exists(agent):
        ecs_manager.delete_entity(agent)


def grid_of(ecs_manager: ECSManager, agent: int) -> Optional[int]:
    relation = ecs_manager.try_get_component(agent, AgentOfGridComponent)
    return relation.grid_entity if relation is not None else None


def agents_of(ecs_manager: ECSManager, grid_entity: int) -> Tuple[int, ...]:
    """Agents of ``grid_entity`` in entity order."""

    agents = ecs_manager.try_get_component(grid_entity, GridAgentsComponent)
    if agents is None:
        return ()
    return tuple(sorted(agents.agents))


def prune_agents(ecs_manager: ECSManager, grid_entity: int) -> Tuple[int, ...]:
    """Forget agents of ``grid_entity`` whose entity was deleted directly.

    Returns the ids that were dropped.
    """

    agents = ecs_manager.try_get_component(grid_entity, GridAgentsComponent)
    if agents is None:
        return ()
    dead = tuple(sorted(agent for agent in agents.agents if not ecs_manager.entity_exists(agent)))
    if dead:
        agents.agents.difference_update(dead)
        logger.debug("Grid %s dropped deleted agents %s", grid_entity, dead)
    return dead


__all__ = ["agents_of", "attach_agent", "detach_agent", "grid_of", "prune_agents", "remove_agent"]
