"""Snapshot of a single boid, for code that follows or inspects one agent."""

import numpy as np
from dataclasses import dataclass, field

from .topology import WorldTopology


@dataclass
class Boid:
    """
    A single boid (bird-oid object) as seen between ticks.

    Attributes:
        index: Position in the agent arrays; stable for the agent's lifetime
        position: 2D position after the last tick
        velocity: 2D velocity after the last tick
        previous_position: Position at the start of the last tick
        previous_velocity: Velocity at the start of the last tick
    """
    index: int
    position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))
    previous_position: np.ndarray = field(default_factory=lambda: np.zeros(2))
    previous_velocity: np.ndarray = field(default_factory=lambda: np.zeros(2))

    @property
    def speed(self) -> float:
        return float(np.hypot(self.velocity[0], self.velocity[1]))

    def interpolated_position(self, alpha: float, topology: WorldTopology) -> np.ndarray:
        """Position ``alpha`` of the way from the previous to the current tick, taking the short way round."""
        step = topology.toroidal_delta(self.previous_position, self.position)
        return topology.wrap(self.previous_position + step * alpha)

    def interpolated_velocity(self, alpha: float) -> np.ndarray:
        return self.previous_velocity + (self.velocity - self.previous_velocity) * alpha
