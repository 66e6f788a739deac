"""Simulation parameters shared by every phase of a tick."""

import math
from dataclasses import dataclass, fields, replace as dc_replace
from typing import Set

from config import boids as config
from .errors import ConfigurationError


_RADII = ("separation_radius", "alignment_radius", "cohesion_radius")
_WEIGHTS = ("separation_weight", "alignment_weight", "cohesion_weight")
_WORLD = ("world_width", "world_height")
_GRID_TUNING = (
    "cell_size_factor",
    "adaptive_cell_sizing",
    "target_occupancy",
    "occupancy_tolerance",
    "retune_interval",
)


@dataclass(frozen=True)
class SimulationParams:
    """
    Adjustable parameters of the flock.

    Instances are immutable; the UI builds a new one with ``replace`` and hands
    it to the driver, which swaps it in at the next tick boundary.
    """
    agent_count: int = config.BOIDS["count"]

    separation_weight: float = config.BOIDS["separation_weight"]
    alignment_weight: float = config.BOIDS["alignment_weight"]
    cohesion_weight: float = config.BOIDS["cohesion_weight"]

    separation_radius: float = config.BOIDS["separation_radius"]
    alignment_radius: float = config.BOIDS["alignment_radius"]
    cohesion_radius: float = config.BOIDS["cohesion_radius"]

    max_speed: float = config.BOIDS["max_speed"]
    max_force: float = config.BOIDS["max_force"]
    world_width: float = config.WORLD["width"]
    world_height: float = config.WORLD["height"]

    # Performance settings
    enable_spatial_grid: bool = config.GRID["enabled"]
    enable_parallel: bool = config.PHYSICS["parallel"]
    enable_interpolation: bool = config.PHYSICS["interpolation"]
    cell_size_factor: float = config.GRID["cell_size_factor"]
    adaptive_cell_sizing: bool = config.GRID["adaptive"]
    target_occupancy: float = config.GRID["target_occupancy"]
    occupancy_tolerance: float = config.GRID["occupancy_tolerance"]
    retune_interval: int = config.GRID["retune_interval"]

    @classmethod
    def from_config(cls, **overrides) -> "SimulationParams":
        """Build parameters from the config defaults, applying overrides and validating."""
        params = cls(**overrides)
        params.validate()
        return params

    def replace(self, **changes) -> "SimulationParams":
        """Return a copy with ``changes`` applied. The copy is not validated."""
        return dc_replace(self, **changes)

    @property
    def max_radius(self) -> float:
        """Largest perception radius."""
        return max(self.separation_radius, self.alignment_radius, self.cohesion_radius)

    @property
    def min_cell_size(self) -> float:
        """Floor for the grid's cell size: the largest radius scaled by ``cell_size_factor``."""
        return self.max_radius * self.cell_size_factor

    def validate(self) -> None:
        """Raise ConfigurationError on the first out-of-range field."""
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool):
                continue
            if not isinstance(value, (int, float)):
                raise ConfigurationError(field.name, f"expected a number, got {type(value).__name__}")
            if not math.isfinite(value):
                raise ConfigurationError(field.name, "must be finite")

        if isinstance(self.agent_count, float) and not self.agent_count.is_integer():
            raise ConfigurationError("agent_count", "must be a whole number")
        if self.agent_count < 0:
            raise ConfigurationError("agent_count", "must be >= 0")

        for name in _WEIGHTS:
            if getattr(self, name) < 0:
                raise ConfigurationError(name, "must be >= 0")
        for name in _RADII + _WORLD + ("max_speed", "max_force", "cell_size_factor", "target_occupancy"):
            if getattr(self, name) <= 0:
                raise ConfigurationError(name, "must be > 0")

        if not 0.0 < self.occupancy_tolerance < 1.0:
            raise ConfigurationError("occupancy_tolerance", "must be between 0 and 1 (exclusive)")
        if self.retune_interval < 1:
            raise ConfigurationError("retune_interval", "must be >= 1")

    def structural_changes(self, other: "SimulationParams") -> Set[str]:
        """
        Name the structural groups that differ between ``self`` and ``other``.

        Returns a subset of ``{"count", "radii", "world", "grid"}``. Weight and
        speed changes are not structural: they only flow into the next tick.
        """
        changed = set()
        if self.agent_count != other.agent_count:
            changed.add("count")
        if any(getattr(self, name) != getattr(other, name) for name in _RADII):
            changed.add("radii")
        if any(getattr(self, name) != getattr(other, name) for name in _WORLD):
            changed.add("world")
        if any(getattr(self, name) != getattr(other, name) for name in _GRID_TUNING):
            changed.add("grid")
        return changed
