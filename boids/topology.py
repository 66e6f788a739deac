"""Toroidal world topology: wrap and minimum-image distance."""

import math
import numpy as np
from numba import njit, prange


# ============================================================================
# NUMBA JIT-COMPILED SCALAR HELPERS
# ============================================================================

@njit(cache=True)
def wrap_coord(value: float, extent: float) -> float:
    """Floored modulo of ``value`` into ``[0, extent)``."""
    wrapped = value - extent * math.floor(value / extent)
    # Rounding can land exactly on the upper edge for tiny negative inputs
    if wrapped >= extent or wrapped < 0.0:
        wrapped = 0.0
    return wrapped


@njit(cache=True)
def delta_coord(a: float, b: float, extent: float) -> float:
    """Signed shortest displacement from ``a`` to ``b`` on a circle of length ``extent``."""
    d = b - a
    if d >= extent or d <= -extent:
        d = d - extent * math.floor(d / extent)
    half = extent * 0.5
    if d > half:
        d -= extent
    elif d < -half:
        d += extent
    return d


@njit(cache=True)
def distance_sq_xy(ax: float, ay: float, bx: float, by: float, width: float, height: float) -> float:
    """Squared toroidal distance between two points."""
    dx = delta_coord(ax, bx, width)
    dy = delta_coord(ay, by, height)
    return dx * dx + dy * dy


@njit(parallel=True, cache=True)
def wrap_positions(positions: np.ndarray, width: float, height: float, num_agents: int):
    """Wrap every position in place."""
    for i in prange(num_agents):
        positions[i, 0] = wrap_coord(positions[i, 0], width)
        positions[i, 1] = wrap_coord(positions[i, 1], height)


# ============================================================================
# WORLD TOPOLOGY
# ============================================================================

class WorldTopology:
    """
    Bounds of a toroidal world.

    Every distance in the engine goes through this class (or the scalar
    helpers above); an unwrapped Euclidean distance is wrong near the edges.
    """

    def __init__(self, width: float, height: float):
        self.width = float(width)
        self.height = float(height)

    @property
    def size(self):
        return self.width, self.height

    def wrap(self, point) -> np.ndarray:
        """Map a point into ``[0, width) x [0, height)``."""
        x, y = point
        return np.array([wrap_coord(float(x), self.width), wrap_coord(float(y), self.height)])

    def toroidal_delta(self, a, b) -> np.ndarray:
        """Minimum-magnitude displacement from ``a`` to ``b``, chosen per axis."""
        return np.array([
            delta_coord(float(a[0]), float(b[0]), self.width),
            delta_coord(float(a[1]), float(b[1]), self.height),
        ])

    def toroidal_distance_sq(self, a, b) -> float:
        return distance_sq_xy(float(a[0]), float(a[1]), float(b[0]), float(b[1]), self.width, self.height)

    def wrap_all(self, positions: np.ndarray):
        """Wrap an ``(n, 2)`` array of positions in place."""
        wrap_positions(positions, self.width, self.height, len(positions))

    def __repr__(self):
        return f"WorldTopology({self.width:g} x {self.height:g})"
