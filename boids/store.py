"""Flat agent storage: positions, velocities and the previous-tick snapshot."""

import math
import numpy as np
from numba import njit, prange

from config import boids as config
from .boid import Boid
from .errors import CapacityError
from .topology import WorldTopology, delta_coord, wrap_coord


@njit(parallel=True, cache=True)
def interpolate_positions(
    previous: np.ndarray,
    current: np.ndarray,
    out: np.ndarray,
    alpha: float,
    width: float,
    height: float,
    num_agents: int
):
    """Lerp previous -> current along the toroidal delta, wrapping the result."""
    for i in prange(num_agents):
        dx = delta_coord(previous[i, 0], current[i, 0], width)
        dy = delta_coord(previous[i, 1], current[i, 1], height)
        out[i, 0] = wrap_coord(previous[i, 0] + dx * alpha, width)
        out[i, 1] = wrap_coord(previous[i, 1] + dy * alpha, height)


def _read_only(array: np.ndarray) -> np.ndarray:
    view = array.view()
    view.flags.writeable = False
    return view


class AgentsView:
    """
    Read-only view of the agent store between ticks.

    The arrays alias the live store; they reflect the state after the most
    recent tick and change in place when the next tick runs. Use ``copy()``
    to keep a snapshot.
    """

    def __init__(self, store: "AgentStore"):
        self._topology = store.topology
        self.positions = _read_only(store.positions)
        self.velocities = _read_only(store.velocities)
        self.previous_positions = _read_only(store.previous_positions)
        self.previous_velocities = _read_only(store.previous_velocities)

    def __len__(self):
        return len(self.positions)

    def boid(self, index: int) -> Boid:
        return Boid(
            index=index,
            position=self.positions[index].copy(),
            velocity=self.velocities[index].copy(),
            previous_position=self.previous_positions[index].copy(),
            previous_velocity=self.previous_velocities[index].copy(),
        )

    def interpolated_positions(self, alpha: float) -> np.ndarray:
        """Render-time positions for interpolation factor ``alpha``."""
        out = np.empty_like(self.positions)
        n = len(self.positions)
        if n:
            interpolate_positions(
                self.previous_positions, self.positions, out,
                float(alpha), self._topology.width, self._topology.height, n
            )
        return out

    def copy(self) -> dict:
        return {
            "positions": self.positions.copy(),
            "velocities": self.velocities.copy(),
            "previous_positions": self.previous_positions.copy(),
            "previous_velocities": self.previous_velocities.copy(),
        }


class AgentStore:
    """
    Owner of the flat agent arrays.

    Agent identity is the row index. Rows are never reordered: growing appends
    new agents at the end and shrinking truncates, so indices held by external
    code stay valid for surviving agents.
    """

    def __init__(
        self,
        count: int,
        topology: WorldTopology,
        max_speed: float,
        capacity: int = config.BOIDS["max_count"],
        rng: np.random.Generator = None,
        initial_speed_fraction: float = config.BOIDS["initial_speed_fraction"],
    ):
        self.topology = topology
        self.max_speed = float(max_speed)
        self.capacity = int(capacity)
        self.initial_speed_fraction = float(initial_speed_fraction)
        self.rng = rng if rng is not None else np.random.default_rng()

        self.positions = np.zeros((0, 2), dtype=np.float64)
        self.velocities = np.zeros((0, 2), dtype=np.float64)
        self.previous_positions = np.zeros((0, 2), dtype=np.float64)
        self.previous_velocities = np.zeros((0, 2), dtype=np.float64)
        self.randomize(count)

    def __len__(self):
        return len(self.positions)

    @property
    def count(self) -> int:
        return len(self.positions)

    def _check_capacity(self, count: int):
        if count < 0:
            raise ValueError(f"Agent count must be >= 0, got {count}")
        if count > self.capacity:
            raise CapacityError(count, self.capacity)

    def _random_state(self, count: int):
        positions = np.empty((count, 2), dtype=np.float64)
        positions[:, 0] = self.rng.uniform(0.0, self.topology.width, count)
        positions[:, 1] = self.rng.uniform(0.0, self.topology.height, count)
        # uniform() can round up to the upper bound
        self.topology.wrap_all(positions)

        angles = self.rng.uniform(0.0, 2.0 * math.pi, count)
        speed = self.max_speed * self.initial_speed_fraction
        velocities = np.empty((count, 2), dtype=np.float64)
        velocities[:, 0] = np.cos(angles) * speed
        velocities[:, 1] = np.sin(angles) * speed
        return positions, velocities

    def randomize(self, count: int):
        """Replace every agent with ``count`` freshly randomized ones."""
        count = int(count)
        self._check_capacity(count)
        self.positions, self.velocities = self._random_state(count)
        self.previous_positions = self.positions.copy()
        self.previous_velocities = self.velocities.copy()

    def resize(self, count: int):
        """Grow by appending randomized agents, or shrink by truncating."""
        count = int(count)
        self._check_capacity(count)
        current = len(self.positions)
        if count == current:
            return

        if count < current:
            self.positions = self.positions[:count].copy()
            self.velocities = self.velocities[:count].copy()
            self.previous_positions = self.previous_positions[:count].copy()
            self.previous_velocities = self.previous_velocities[:count].copy()
            return

        positions, velocities = self._random_state(count - current)
        self.positions = np.concatenate((self.positions, positions))
        self.velocities = np.concatenate((self.velocities, velocities))
        self.previous_positions = np.concatenate((self.previous_positions, positions))
        self.previous_velocities = np.concatenate((self.previous_velocities, velocities))

    def set_topology(self, topology: WorldTopology):
        """Move to new world bounds, wrapping every stored position into them."""
        self.topology = topology
        topology.wrap_all(self.positions)
        topology.wrap_all(self.previous_positions)

    def view(self) -> AgentsView:
        return AgentsView(self)
