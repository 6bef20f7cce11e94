# ecs/ecs_manager.py
"""
Entity Component System Manager Module
=====================================

This module provides a centralized manager around the esper framework. esper
keeps its entity database in module-level *worlds*; every ``ECSManager`` owns
one named world and switches to it before each operation, so several managers
(for example one per test) never see each other's entities.

Example:
    # Create an event bus
    event_bus = EventBus()

    # Initialize the ECS manager
    ecs_manager = ECSManager(event_bus)

    # Add the navigation processor
    ecs_manager.add_processor(NavigationSystem(ecs_manager, event_bus=event_bus), priority=1)

    # Create an agent
    agent = ecs_manager.create_entity(AgentPosComponent((0, 0, 0)))

    # Process all systems
    ecs_manager.process()
"""
from __future__ import annotations

import itertools
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type, TypeVar

import esper

from ecs.components.entity_id import EntityIdComponent

C = TypeVar("C")

_WORLD_COUNTER = itertools.count(1)


class ECSManager:
    """
    Manages one esper world.

    Attributes:
        world_name (str): Name of the esper world owned by this manager
        event_bus: The event system used for communication between systems
    """

    def __init__(self, event_bus: Optional[Any] = None, world_name: Optional[str] = None):
        """
        Initialize the ECS Manager with an optional event bus.

        Args:
            event_bus: The event system for communication between components
                       (Default: None)
            world_name: Name of the esper world to use (Default: a fresh,
                        unique name)
        """
        self.world_name = world_name or f"gridnav-{next(_WORLD_COUNTER)}"
        self.event_bus = event_bus
        self._entity_lookup: Dict[str, int] = {}
        self._reverse_lookup: Dict[int, str] = {}
        self._closed = False
        self._activate()

    def _activate(self) -> None:
        if self._closed:
            raise RuntimeError(f"ECS world {self.world_name!r} has been closed")
        if esper.current_world != self.world_name:
            esper.switch_world(self.world_name)

    # Processors ----------------------------------------------------------------
    def add_processor(self, processor_instance: esper.Processor, priority: int = 0):
        """
        Adds a system processor to the world with the specified priority.

        Higher priority processors are processed first.

        Args:
            processor_instance (esper.Processor): The processor to add
            priority (int): Processing order priority (Default: 0)
        """
        self._activate()
        esper.add_processor(processor_instance, priority)

    def remove_processor(self, processor_type: Type[esper.Processor]):
        """Removes the processor of ``processor_type`` from the world."""
        self._activate()
        esper.remove_processor(processor_type)

    def get_processor(self, processor_type: Type[C]) -> Optional[C]:
        """
        Gets a processor of a specific type from the world.

        Returns:
            Optional[esper.Processor]: The processor instance if found, None otherwise
        """
        self._activate()
        return esper.get_processor(processor_type)

    def process(self, *args, **kwargs):
        """
        Processes all registered processors in the world.

        This should be called once per simulation tick.
        """
        self._activate()
        esper.process(*args, **kwargs)

    # Entities ------------------------------------------------------------------
    def create_entity(self, *components: Any) -> int:
        """
        Creates a new entity with the given components.

        Returns:
            int: The newly created entity ID
        """
        self._activate()
        entity_id = esper.create_entity(*components)
        for component in components:
            self._register_entity_identity(entity_id, component)
        return entity_id

    def delete_entity(self, entity_id: int):
        """Deletes an entity and all its components immediately."""
        self._activate()
        string_id = self._reverse_lookup.pop(entity_id, None)
        if string_id:
            self._entity_lookup.pop(string_id, None)
        esper.delete_entity(entity_id, immediate=True)

    def entity_exists(self, entity_id: int) -> bool:
        self._activate()
        return esper.entity_exists(entity_id)

    # Components ----------------------------------------------------------------
    def add_component(self, entity_id: int, component_instance: Any):
        """
        Adds a component to an existing entity.

        If the entity already has a component of the same type,
        it will be replaced with this new instance.
        """
        self._activate()
        esper.add_component(entity_id, component_instance)
        self._register_entity_identity(entity_id, component_instance)

    def remove_component(self, entity_id: int, component_type: Type[C]) -> Optional[C]:
        """Remove ``component_type`` from the entity; missing components are ignored."""
        self._activate()
        if not self.has_component(entity_id, component_type):
            return None
        if component_type is EntityIdComponent:
            string_id = self._reverse_lookup.pop(entity_id, None)
            if string_id:
                self._entity_lookup.pop(string_id, None)
        return esper.remove_component(entity_id, component_type)

    def get_component(self, entity_id: int, component_type: Type[C]) -> C:
        """
        Retrieves a component instance for an entity.

        Raises:
            KeyError: If the entity does not have the specified component
        """
        self._activate()
        return esper.component_for_entity(entity_id, component_type)

    def try_get_component(self, entity_id: int, component_type: Type[C]) -> Optional[C]:
        """Return the component when present, ``None`` otherwise."""
        self._activate()
        if not esper.entity_exists(entity_id):
            return None
        return esper.try_component(entity_id, component_type)

    def has_component(self, entity_id: int, component_type: type) -> bool:
        self._activate()
        return esper.entity_exists(entity_id) and esper.has_component(entity_id, component_type)

    def get_components(self, *component_types: type) -> List[Tuple[int, List[Any]]]:
        """
        Retrieves all entities and their specified component instances.

        Returns:
            List[Any]: A list of (entity_id, [component1, component2, ...]),
            sorted by entity id.

        Example:
            > for entity, (pos, status) in ecs_manager.get_components(AgentPosComponent, AgentStatusComponent):
            >     print(entity, pos.cell, status.status)
        """
        self._activate()
        return sorted(esper.get_components(*component_types), key=lambda item: item[0])

    # String identifiers ------------------------------------------------------------
    def resolve_entity(self, entity_id: str) -> Optional[int]:
        """Return the internal ECS integer id for a string ``entity_id``."""

        return self._entity_lookup.get(entity_id)

    def iter_with_id(self, *component_types: Type[Any]) -> Iterator[Tuple[Any, ...]]:
        """
        Yield tuples of ``(entity_id_str, components...)`` for entities that
        provide ``EntityIdComponent`` in addition to ``component_types``.
        """

        for _, components in self.get_components(EntityIdComponent, *component_types):
            entity_id_component: EntityIdComponent = components[0]
            yield (entity_id_component.entity_id, *components[1:])

    def _register_entity_identity(self, entity_id: int, component: Any) -> None:
        if isinstance(component, EntityIdComponent):
            previous = self._reverse_lookup.get(entity_id)
            if previous and previous != component.entity_id:
                self._entity_lookup.pop(previous, None)
            self._entity_lookup[component.entity_id] = entity_id
            self._reverse_lookup[entity_id] = component.entity_id

    # Lifecycle ---------------------------------------------------------------------
    def close(self) -> None:
        """Delete the esper world owned by this manager."""

        if self._closed:
            return
        if esper.current_world == self.world_name:
            esper.switch_world("default")
        if self.world_name != "default":
            esper.delete_world(self.world_name)
        self._entity_lookup.clear()
        self._reverse_lookup.clear()
        self._closed = True


__all__ = ["ECSManager"]
