"""2D toroidal boids engine: spatial grid, force pipeline, integrator."""

from .errors import BoidsError, CapacityError, ConfigurationError, SimulationStateError
from .params import SimulationParams
from .topology import WorldTopology
from .boid import Boid
from .store import AgentStore, AgentsView
from .grid import GridStats, SpatialGrid
from .forces import compute_accelerations
from .integrator import integrate
from .flock import Flock

__all__ = [
    "BoidsError",
    "CapacityError",
    "ConfigurationError",
    "SimulationStateError",
    "SimulationParams",
    "WorldTopology",
    "Boid",
    "AgentStore",
    "AgentsView",
    "GridStats",
    "SpatialGrid",
    "compute_accelerations",
    "integrate",
    "Flock",
]
