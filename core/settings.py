"""Configuration bundles for grids and the navigation tick driver."""
from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Mapping

from config.config_loader import ConfigLoader


class Neighborhood(str, Enum):
    """Movement model of a grid.

    Cardinal neighbourhoods measure distance with the Manhattan metric,
    ordinal ones with the Chebyshev metric.
    """

    CARDINAL = "cardinal"
    ORDINAL = "ordinal"
    CARDINAL_3D = "cardinal_3d"
    ORDINAL_3D = "ordinal_3d"

    @property
    def is_ordinal(self) -> bool:
        return self in (Neighborhood.ORDINAL, Neighborhood.ORDINAL_3D)

    @property
    def is_3d(self) -> bool:
        return self in (Neighborhood.CARDINAL_3D, Neighborhood.ORDINAL_3D)


@dataclass(slots=True)
class GridSettings:
    """Dimensions, chunking and movement model of a navigation grid."""

    width: int
    height: int
    #: Number of layers; ``1`` for a plain 2D grid.
    depth: int = 1
    #: Cells per chunk along x and y.
    chunk_size: int = 16
    #: Layers per chunk along z.
    chunk_depth: int = 1
    #: Cost of entering a cell that never received an explicit cost.
    default_cost: int = 1
    #: Start with every cell impassable (carve walkable space with ``set_nav``).
    default_impassable: bool = False
    neighborhood: Neighborhood = Neighborhood.ORDINAL
    #: Allow diagonal moves that squeeze between two blocked orthogonal cells.
    allow_corner_cutting: bool = True
    #: Fill every intra-chunk cache during ``Grid.build`` instead of on first use.
    precompute_on_build: bool = True
    #: Report build progress through ``tqdm``.
    show_progress: bool = False

    def __post_init__(self) -> None:
        self.neighborhood = Neighborhood(self.neighborhood)
        if self.width <= 0 or self.height <= 0 or self.depth <= 0:
            raise ValueError("width, height and depth must be positive")
        if self.chunk_size <= 0 or self.chunk_depth <= 0:
            raise ValueError("chunk_size and chunk_depth must be positive")
        if self.chunk_size < 2 and max(self.width, self.height) > 1:
            raise ValueError("chunk_size must be at least 2")
        if self.default_cost < 1:
            raise ValueError("default_cost must be at least 1")

    @property
    def dimensions(self) -> tuple[int, int, int]:
        return (self.width, self.height, self.depth)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "GridSettings":
        """Build settings from a plain mapping, ignoring unknown keys."""

        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in mapping.items() if key in known})

    @classmethod
    def from_config(cls, loader: ConfigLoader) -> "GridSettings":
        """Build settings from the ``grid`` section of a :class:`ConfigLoader`."""

        return cls.from_mapping(loader.section("grid"))


@dataclass(slots=True)
class NavigationSettings:
    """Collision avoidance and reroute limits of the tick driver."""

    #: Check next steps against ``BlockingComponent`` entities.
    collision: bool = True
    #: How many path cells ahead local avoidance may rejoin the path.
    avoidance_distance: int = 4
    #: Failed local detours tolerated before ``AVOIDANCE_FAILED``.
    max_avoidance_attempts: int = 3
    #: Failed full replans tolerated before ``REROUTE_FAILED``.
    max_reroute_attempts: int = 2
    #: Let the driver replan ``AVOIDANCE_FAILED`` agents on its own.  When
    #: disabled the status is left for the host to handle.
    auto_reroute: bool = True

    def __post_init__(self) -> None:
        if self.avoidance_distance < 1:
            raise ValueError("avoidance_distance must be at least 1")
        if self.max_avoidance_attempts < 1:
            raise ValueError("max_avoidance_attempts must be at least 1")
        if self.max_reroute_attempts < 1:
            raise ValueError("max_reroute_attempts must be at least 1")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "NavigationSettings":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in mapping.items() if key in known})

    @classmethod
    def from_config(cls, loader: ConfigLoader) -> "NavigationSettings":
        return cls.from_mapping(loader.section("navigation"))


def load_settings(path: str | None = None) -> tuple[GridSettings, NavigationSettings]:
    """Load grid and navigation settings from a YAML file.

    ``None`` loads the packaged ``config/navigation.yaml`` defaults.
    """

    loader = ConfigLoader(path) if path else ConfigLoader()
    return GridSettings.from_config(loader), NavigationSettings.from_config(loader)


__all__ = ["GridSettings", "NavigationSettings", "Neighborhood", "load_settings"]
