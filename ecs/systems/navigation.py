"""Tick driver moving agents along their paths one step at a time.

Every call to :meth:`NavigationSystem.advance_tick` walks each grid entity in
entity order.  The grid's pending navigation edits are applied once, then
every attached agent goes through three phases:

* **pathfind**: a :class:`PathfindComponent` that the agent's session does not
  match yet is planned.
* **step**: an agent with a session and no pending :class:`NextPosComponent`
  gets its next cell checked.  A cell that became unwalkable triggers one
  replan; a cell held by a blocker (or reserved earlier in the tick) triggers
  a bounded local detour; a free cell is emitted as the next position.
* **reroute**: an ``AVOIDANCE_FAILED`` agent gets one full replan that avoids
  the current blockers, when ``auto_reroute`` is enabled.

No agent is planned more than once per tick and agent-local failures never
raise; they are recorded on the agent's :class:`AgentStatusComponent`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import AbstractSet, Any, Dict, List, Mapping, Optional, Set, Tuple

import esper

from core.avoidance import find_detour
from core.chunks import Cell
from core.errors import NoPathFound, PathError
from core.events.topics import NavigationEvents
from core.grid import Direction
from core.path import Path, PathfindMode
from core.settings import NavigationSettings
from ecs.components.agent_pos import AgentPosComponent
from ecs.components.agent_status import AgentStatus, AgentStatusComponent
from ecs.components.blocking import BlockingComponent
from ecs.components.entity_id import EntityIdComponent
from ecs.components.grid import GridAgentsComponent, GridComponent
from ecs.components.pathfind import NextPosComponent, PathComponent, PathfindComponent
from ecs.ecs_manager import ECSManager
from ecs.helpers.grid_agents import agents_of, attach_agent, grid_of, prune_agents
from ecs.helpers.occupancy import TickSnapshot, build_snapshot, collect_blocked_cells

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentUpdate:
    """What happened to one agent during a tick.

    ``transitions`` lists every status the agent went through, in order;
    ``status`` is the last of them (or the unchanged status).
    """

    entity: int
    status: Optional[AgentStatus]
    next_pos: Optional[Cell] = None
    error: Optional[PathError] = None
    arrived: bool = False
    transitions: Tuple[AgentStatus, ...] = ()


@dataclass
class _Progress:
    transitions: List[AgentStatus] = field(default_factory=list)
    next_pos: Optional[Cell] = None
    arrived: bool = False
    error: Optional[PathError] = None


class NavigationSystem(esper.Processor):
    """esper processor driving every agent attached to a grid entity."""

    def __init__(
        self,
        ecs_manager: ECSManager,
        settings: Optional[NavigationSettings] = None,
        *,
        event_bus: Any | None = None,
    ) -> None:
        if ecs_manager is None:
            raise ValueError("NavigationSystem requires an ECSManager.")
        self.ecs_manager = ecs_manager
        self.settings = settings or NavigationSettings()
        self.event_bus = event_bus or getattr(ecs_manager, "event_bus", None)
        self.tick = 0
        self.last_updates: List[AgentUpdate] = []

        self._replanned: Set[int] = set()
        self._progress: Dict[int, _Progress] = {}
        self._stats: Dict[str, float] = {}
        self.reset_stats()

    # ------------------------------------------------------------------
    # Setup helpers
    # ------------------------------------------------------------------
    def add_grid(self, grid_component: GridComponent) -> int:
        """Create a grid entity; returns its id."""

        return self.ecs_manager.create_entity(grid_component, GridAgentsComponent())

    def add_agent(
        self,
        grid_entity: int,
        cell: Cell,
        *,
        blocking: bool = True,
        entity_id: Optional[str] = None,
    ) -> int:
        """Create an agent standing on ``cell`` and attach it to ``grid_entity``."""

        components: List[Any] = [AgentPosComponent(cell)]
        if blocking:
            components.append(BlockingComponent())
        if entity_id is not None:
            components.append(EntityIdComponent(entity_id))
        agent = self.ecs_manager.create_entity(*components)
        attach_agent(self.ecs_manager, agent, grid_entity)
        return agent

    def _grid_component(self, agent: int) -> GridComponent:
        grid_entity = grid_of(self.ecs_manager, agent)
        if grid_entity is None:
            raise KeyError(f"agent {agent} is not attached to a grid")
        return self.ecs_manager.get_component(grid_entity, GridComponent)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------
    def request_path(
        self,
        agent: int,
        goal: Cell,
        mode: PathfindMode = PathfindMode.REFINED,
        partial: bool = False,
    ) -> Path:
        """Plan immediately and start a session for ``agent``.

        Raises:
            NoPathFound: after recording ``PATHFINDING_FAILED`` on the agent.
        """

        manager = self.ecs_manager
        grid_component = self._grid_component(agent)
        position = manager.get_component(agent, AgentPosComponent)
        request = PathfindComponent(goal, mode, partial)

        self._stats["requests"] += 1
        started = time.perf_counter()
        try:
            path = grid_component.pathfinder.request_path(
                position.cell, request.goal, mode=request.mode, partial=request.partial
            )
        except NoPathFound:
            self._stats["failures"] += 1
            manager.remove_component(agent, PathComponent)
            manager.remove_component(agent, PathfindComponent)
            self._set_status(agent, AgentStatus.PATHFINDING_FAILED, PathError.NO_PATH_FOUND)
            self._publish(NavigationEvents.PATH_FAILED, entity=agent, goal=request.goal, error=PathError.NO_PATH_FOUND)
            raise
        finally:
            self._stats["search_time"] += time.perf_counter() - started

        manager.add_component(agent, request)
        self._start_session(agent, request, path)
        return path

    def set_nav(
        self,
        grid_entity: int,
        cell: Cell,
        cost: Optional[int] = None,
        walkable: bool = True,
        directions: Optional[Direction] = None,
    ) -> None:
        """Edit one cell of the grid held by ``grid_entity``."""

        grid_component = self.ecs_manager.get_component(grid_entity, GridComponent)
        grid_component.grid.set_nav(cell, cost=cost, walkable=walkable, directions=directions)
        self._publish(NavigationEvents.GRID_CHANGED, grid_entity=grid_entity, cells=(tuple(cell),))

    def snapshot(self, grid_entity: int, tick: Optional[int] = None) -> TickSnapshot:
        """Occupancy of ``grid_entity`` as the tick driver would see it."""

        return build_snapshot(self.ecs_manager, grid_entity, self.tick if tick is None else tick)

    def clear_failure(self, agent: int) -> bool:
        """Drop a failure status and the agent's session.

        Returns ``True`` when the agent was in a failure state.
        """

        manager = self.ecs_manager
        status = manager.try_get_component(agent, AgentStatusComponent)
        if status is None or not status.status.is_failure:
            return False
        manager.remove_component(agent, AgentStatusComponent)
        manager.remove_component(agent, PathComponent)
        manager.remove_component(agent, PathfindComponent)
        logger.debug("Cleared %s on agent %s", status.status.value, agent)
        return True

    def process(self, *args: Any, **kwargs: Any) -> None:
        snapshots = kwargs.get("snapshots")
        self.last_updates = self.advance_tick(snapshots)

    def get_stats(self) -> Dict[str, float]:
        return dict(self._stats)

    def reset_stats(self) -> None:
        self._stats = {
            "requests": 0,
            "failures": 0,
            "avoidance_attempts": 0,
            "reroutes": 0,
            "search_time": 0.0,
        }

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------
    def advance_tick(self, snapshots: Optional[Mapping[int, TickSnapshot]] = None) -> List[AgentUpdate]:
        """Run one tick over every grid; returns one update per touched agent."""

        self.tick += 1
        self._replanned = set()
        self._progress = {}
        manager = self.ecs_manager

        for grid_entity, (grid_component,) in manager.get_components(GridComponent):
            grid_component.grid.resolve()
            snapshot = (snapshots or {}).get(grid_entity) or self.snapshot(grid_entity, self.tick)
            prune_agents(manager, grid_entity)
            agents = list(agents_of(manager, grid_entity))

            for agent in agents:
                self._pathfind_phase(agent, grid_component)

            reserved = self._pending_reservations(agents)
            for agent in agents:
                self._step_phase(agent, grid_component, snapshot, reserved)

            if self.settings.auto_reroute:
                for agent in agents:
                    self._reroute_phase(agent, grid_component, snapshot, reserved)

        updates = [self._update_for(agent) for agent in sorted(self._progress)]
        return updates

    def _pathfind_phase(self, agent: int, grid_component: GridComponent) -> None:
        manager = self.ecs_manager
        request = manager.try_get_component(agent, PathfindComponent)
        if request is None:
            return
        session = manager.try_get_component(agent, PathComponent)
        if session is not None and session.matches(request):
            return

        position = manager.get_component(agent, AgentPosComponent)
        path = self._plan(agent, grid_component, position.cell, request.goal, request.mode, request.partial)
        if path is None:
            manager.remove_component(agent, PathComponent)
            manager.remove_component(agent, PathfindComponent)
            self._set_status(agent, AgentStatus.PATHFINDING_FAILED, PathError.NO_PATH_FOUND)
            self._publish(NavigationEvents.PATH_FAILED, entity=agent, goal=request.goal, error=PathError.NO_PATH_FOUND)
            return
        self._start_session(agent, request, path)

    def _step_phase(
        self,
        agent: int,
        grid_component: GridComponent,
        snapshot: TickSnapshot,
        reserved: Set[Cell],
    ) -> None:
        manager = self.ecs_manager
        session = manager.try_get_component(agent, PathComponent)
        if session is None or manager.has_component(agent, NextPosComponent):
            return
        status = manager.try_get_component(agent, AgentStatusComponent)
        if status is not None and status.status.is_failure:
            return

        grid = grid_component.grid
        position = manager.get_component(agent, AgentPosComponent).cell
        path = session.path

        if path.is_empty:
            self._arrive(agent, position, session)
            return

        next_cell = path.peek()
        if not grid.is_walkable(next_cell):
            self._progress_of(agent).error = PathError.PATH_INVALIDATED
            logger.debug("Agent %s: next cell %s is no longer walkable", agent, next_cell)
            if agent in self._replanned:
                return
            replanned = self._plan(agent, grid_component, position, session.goal, session.mode, session.partial)
            if replanned is None:
                manager.remove_component(agent, PathComponent)
                manager.remove_component(agent, PathfindComponent)
                self._set_status(agent, AgentStatus.PATHFINDING_FAILED, PathError.PATH_INVALIDATED)
                self._publish(
                    NavigationEvents.PATH_FAILED, entity=agent, goal=session.goal, error=PathError.PATH_INVALIDATED
                )
                return
            session.path = replanned
            self._set_status(agent, AgentStatus.FOLLOWING)
            self._publish(
                NavigationEvents.PATH_FOUND, entity=agent, goal=session.goal, path=replanned, partial=replanned.partial
            )
            return

        blocking = manager.has_component(agent, BlockingComponent)
        if self.settings.collision and (snapshot.is_blocked(next_cell, ignore=(agent,)) or next_cell in reserved):
            self._set_status(agent, AgentStatus.BLOCKED)
            self._set_status(agent, AgentStatus.LOCAL_AVOIDANCE)
            self._stats["avoidance_attempts"] += 1
            obstacles = set(collect_blocked_cells(snapshot, ignore=(agent,))) | reserved
            detour = find_detour(grid, position, path.remaining(), obstacles, self.settings.avoidance_distance)
            if detour is None:
                session.avoidance_attempts += 1
                logger.debug(
                    "Agent %s: no detour around %s (attempt %s/%s)",
                    agent,
                    next_cell,
                    session.avoidance_attempts,
                    self.settings.max_avoidance_attempts,
                )
                if session.avoidance_attempts >= self.settings.max_avoidance_attempts:
                    self._set_status(agent, AgentStatus.AVOIDANCE_FAILED, PathError.AVOIDANCE_FAILED)
                return
            path.splice(detour.rejoin_index + 1, detour.cells, detour.cost_delta)
            self._emit_step(agent, path, reserved if blocking else None)
            return

        session.avoidance_attempts = 0
        session.reroute_attempts = 0
        self._set_status(agent, AgentStatus.FOLLOWING)
        self._emit_step(agent, path, reserved if blocking else None)

    def _reroute_phase(
        self,
        agent: int,
        grid_component: GridComponent,
        snapshot: TickSnapshot,
        reserved: Set[Cell],
    ) -> None:
        manager = self.ecs_manager
        status = manager.try_get_component(agent, AgentStatusComponent)
        session = manager.try_get_component(agent, PathComponent)
        if status is None or session is None or status.status is not AgentStatus.AVOIDANCE_FAILED:
            return
        if agent in self._replanned:
            return

        self._stats["reroutes"] += 1
        position = manager.get_component(agent, AgentPosComponent).cell
        obstacles = set(collect_blocked_cells(snapshot, ignore=(agent,))) | reserved
        path = self._plan(
            agent, grid_component, position, session.goal, session.mode, session.partial, blocked=obstacles
        )
        if path is None:
            session.reroute_attempts += 1
            self._progress_of(agent)
            if session.reroute_attempts >= self.settings.max_reroute_attempts:
                self._set_status(agent, AgentStatus.REROUTE_FAILED, PathError.REROUTE_FAILED)
                self._publish(
                    NavigationEvents.PATH_FAILED, entity=agent, goal=session.goal, error=PathError.REROUTE_FAILED
                )
            return

        session.path = path
        session.avoidance_attempts = 0
        self._set_status(agent, AgentStatus.FOLLOWING)
        self._publish(NavigationEvents.PATH_FOUND, entity=agent, goal=session.goal, path=path, partial=path.partial)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _plan(
        self,
        agent: int,
        grid_component: GridComponent,
        start: Cell,
        goal: Cell,
        mode: PathfindMode,
        partial: bool,
        blocked: AbstractSet[Cell] = frozenset(),
    ) -> Optional[Path]:
        self._replanned.add(agent)
        self._stats["requests"] += 1
        started = time.perf_counter()
        try:
            return grid_component.pathfinder.request_path(start, goal, mode=mode, partial=partial, blocked=blocked)
        except NoPathFound:
            self._stats["failures"] += 1
            return None
        except IndexError as exc:
            self._stats["failures"] += 1
            logger.warning("Agent %s: rejected path request %s -> %s: %s", agent, start, goal, exc)
            return None
        finally:
            self._stats["search_time"] += time.perf_counter() - started

    def _start_session(self, agent: int, request: PathfindComponent, path: Path) -> None:
        self.ecs_manager.add_component(
            agent, PathComponent(goal=request.goal, path=path, mode=request.mode, partial=request.partial)
        )
        self._set_status(agent, AgentStatus.FOLLOWING)
        self._publish(NavigationEvents.PATH_FOUND, entity=agent, goal=request.goal, path=path, partial=path.partial)

    def _emit_step(self, agent: int, path: Path, reserved: Optional[Set[Cell]]) -> None:
        step = path.pop()
        self.ecs_manager.add_component(agent, NextPosComponent(step))
        if reserved is not None:
            reserved.add(step)
        self._progress_of(agent).next_pos = step
        self._publish(NavigationEvents.NEXT_STEP, entity=agent, next_pos=step)

    def _arrive(self, agent: int, position: Cell, session: PathComponent) -> None:
        manager = self.ecs_manager
        manager.remove_component(agent, PathComponent)
        manager.remove_component(agent, PathfindComponent)
        manager.remove_component(agent, AgentStatusComponent)
        self._progress_of(agent).arrived = True
        logger.debug("Agent %s arrived at %s", agent, position)
        self._publish(NavigationEvents.ARRIVED, entity=agent, position=position, partial=session.path.partial)

    def _pending_reservations(self, agents: List[int]) -> Set[Cell]:
        """Cells blocking agents were told to move to and have not reached yet."""

        manager = self.ecs_manager
        reserved: Set[Cell] = set()
        for agent in agents:
            pending = manager.try_get_component(agent, NextPosComponent)
            if pending is not None and manager.has_component(agent, BlockingComponent):
                reserved.add(pending.cell)
        return reserved

    def _set_status(self, agent: int, status: AgentStatus, error: Optional[PathError] = None) -> None:
        manager = self.ecs_manager
        component = manager.try_get_component(agent, AgentStatusComponent)
        previous = component.status if component is not None else None
        if component is None:
            manager.add_component(agent, AgentStatusComponent(status, error))
        else:
            component.status = status
            component.error = error

        progress = self._progress_of(agent)
        progress.transitions.append(status)
        if error is not None:
            progress.error = error
        if previous != status:
            logger.debug("Agent %s: %s -> %s", agent, previous.value if previous else None, status.value)
            self._publish(NavigationEvents.STATUS_CHANGED, entity=agent, previous=previous, status=status, error=error)

    def _progress_of(self, agent: int) -> _Progress:
        return self._progress.setdefault(agent, _Progress())

    def _update_for(self, agent: int) -> AgentUpdate:
        progress = self._progress[agent]
        status = self.ecs_manager.try_get_component(agent, AgentStatusComponent)
        return AgentUpdate(
            entity=agent,
            status=status.status if status is not None else None,
            next_pos=progress.next_pos,
            error=progress.error,
            arrived=progress.arrived,
            transitions=tuple(progress.transitions),
        )

    def _publish(self, topic: NavigationEvents, **payload: Any) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(topic, **payload)


__all__ = ["AgentUpdate", "NavigationSystem"]
