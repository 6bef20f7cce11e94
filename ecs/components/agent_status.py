"""
Agent Status Component - Navigation state of an agent.

Exactly one :class:`AgentStatus` variant is held at a time. Failure variants
carry the :class:`core.errors.PathError` that caused them.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.errors import PathError


class AgentStatus(str, Enum):
    FOLLOWING = "following"
    BLOCKED = "blocked"
    LOCAL_AVOIDANCE = "local_avoidance"
    AVOIDANCE_FAILED = "avoidance_failed"
    REROUTE_FAILED = "reroute_failed"
    PATHFINDING_FAILED = "pathfinding_failed"

    @property
    def is_failure(self) -> bool:
        return self in (
            AgentStatus.AVOIDANCE_FAILED,
            AgentStatus.REROUTE_FAILED,
            AgentStatus.PATHFINDING_FAILED,
        )


@dataclass
class AgentStatusComponent:
    status: AgentStatus = AgentStatus.FOLLOWING
    error: Optional[PathError] = None


__all__ = ["AgentStatus", "AgentStatusComponent"]
