"""Canonical registry of event bus topics published by the navigation engine.

Each entry is declared as a :class:`~enum.Enum` member and documents the
producer, the intended consumers and the payload guarantees for the associated
event.  Importing modules should rely on the enum members (e.g.
``topics.NavigationEvents.NEXT_STEP``) to avoid drifting topic names.
"""

from __future__ import annotations

from enum import Enum

__all__ = ["NavigationEvents"]


class NavigationEvents(str, Enum):
    """Enumeration of every topic published by the navigation systems."""

    PATH_FOUND = "navigation.path_found"
    """Published by :class:`ecs.systems.navigation.NavigationSystem` when a
    request produced a path.

    Subscribers: hosts tracking agent plans, debug tooling.
    Guarantees: provides ``entity``, ``goal``, ``path`` and ``partial``.
    """

    PATH_FAILED = "navigation.path_failed"
    """Published when a request or a replan could not produce a path.

    Subscribers: hosts choosing a new goal or waiting before retrying.
    Guarantees: provides ``entity``, ``goal`` and ``error`` (a
    :class:`core.errors.PathError`).
    """

    NEXT_STEP = "navigation.next_step"
    """Published when a next position has been emitted for an agent.

    Subscribers: hosts applying movement to their own entity representation.
    Guarantees: provides ``entity`` and ``next_pos``.
    """

    STATUS_CHANGED = "navigation.status_changed"
    """Published whenever an agent's :class:`AgentStatus` variant changes.

    Subscribers: AI controllers, analytics hooks.
    Guarantees: provides ``entity``, ``previous``, ``status`` and ``error``.
    """

    ARRIVED = "navigation.arrived"
    """Published when an agent consumed its whole path.

    Subscribers: hosts and AI controllers.
    Guarantees: provides ``entity``, ``position`` and ``partial``.
    """

    GRID_CHANGED = "navigation.grid_changed"
    """Published by the navigation system after navigation edits were applied.

    Subscribers: debug tooling and caches outside the engine.
    Guarantees: provides ``grid_entity`` and ``cells``.
    """
