"""Fixed-timestep integration of the flock."""

import math
import numpy as np
from numba import njit, prange

from .topology import wrap_coord


@njit(parallel=True, cache=True)
def update_physics_numba(
    positions: np.ndarray,
    velocities: np.ndarray,
    previous_positions: np.ndarray,
    previous_velocities: np.ndarray,
    accelerations: np.ndarray,
    max_speed: float,
    width: float,
    height: float,
    dt: float,
    num_agents: int
):
    """
    Numba JIT-compiled physics update.

    Each iteration touches only row ``i``: snapshot the previous state, apply
    the acceleration, clamp speed, move, wrap.
    """
    for i in prange(num_agents):
        previous_positions[i, 0] = positions[i, 0]
        previous_positions[i, 1] = positions[i, 1]
        previous_velocities[i, 0] = velocities[i, 0]
        previous_velocities[i, 1] = velocities[i, 1]

        vx = velocities[i, 0] + accelerations[i, 0] * dt
        vy = velocities[i, 1] + accelerations[i, 1] * dt

        speed = math.sqrt(vx * vx + vy * vy)
        if speed > max_speed:
            scale = max_speed / speed
            vx *= scale
            vy *= scale

        velocities[i, 0] = vx
        velocities[i, 1] = vy
        positions[i, 0] = wrap_coord(positions[i, 0] + vx * dt, width)
        positions[i, 1] = wrap_coord(positions[i, 1] + vy * dt, height)


def integrate(store, accelerations: np.ndarray, max_speed: float, dt: float):
    """Advance every agent in ``store`` by ``dt`` using ``accelerations``."""
    num_agents = len(store)
    if num_agents == 0:
        return
    topology = store.topology
    update_physics_numba(
        store.positions,
        store.velocities,
        store.previous_positions,
        store.previous_velocities,
        accelerations,
        float(max_speed),
        topology.width,
        topology.height,
        float(dt),
        num_agents
    )
