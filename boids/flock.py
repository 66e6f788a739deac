"""Flock management - one fixed physics tick over the whole agent store."""

from contextlib import contextmanager
import numpy as np
from numba import get_num_threads, set_num_threads

from config import boids as config
from .errors import CapacityError
from .forces import compute_accelerations
from .grid import SpatialGrid
from .integrator import integrate
from .params import SimulationParams
from .store import AgentStore
from .topology import WorldTopology


@contextmanager
def _thread_limit(parallel: bool):
    """Run Numba kernels on a single thread while ``parallel`` is off."""
    if parallel:
        yield
        return
    previous = get_num_threads()
    set_num_threads(1)
    try:
        yield
    finally:
        set_num_threads(previous)


class Flock:
    """
    Agent store, spatial grid and acceleration buffer, advanced one tick at a time.

    A tick runs three phases, each a parallel kernel whose return is the
    barrier before the next: grid rebuild, force pipeline, integration.
    """

    def __init__(
        self,
        params: SimulationParams = None,
        capacity: int = config.BOIDS["max_count"],
        seed: int = None,
        verbose: bool = config.SIMULATION["verbose"],
    ):
        params = params if params is not None else SimulationParams()
        params.validate()
        count = int(params.agent_count)
        if count > capacity:
            raise CapacityError(count, capacity)

        self.params = params
        self.capacity = int(capacity)
        self.verbose = verbose
        self.rng = np.random.default_rng(seed)
        self.tick_count = 0

        self.topology = WorldTopology(params.world_width, params.world_height)
        self.store = AgentStore(count, self.topology, params.max_speed, capacity=self.capacity, rng=self.rng)
        self.grid = SpatialGrid(
            params.world_width,
            params.world_height,
            cell_size=params.min_cell_size,
            min_cell_size=params.min_cell_size,
            target_occupancy=params.target_occupancy,
            occupancy_tolerance=params.occupancy_tolerance,
            verbose=verbose,
        )

        self._accelerations = np.zeros((count, 2), dtype=np.float64)
        self._needs_retune = True
        self._grid_stale = True

        if verbose:
            cols, rows = self.grid.dimensions
            print(
                f"[Boids] Initialized {count:,} agents in "
                f"{params.world_width:g}x{params.world_height:g} world "
                f"(grid {cols}x{rows}, cell {self.grid.cell_size:.2f})"
            )

    @property
    def num_agents(self) -> int:
        return len(self.store)

    @property
    def accelerations(self) -> np.ndarray:
        """Accelerations computed by the most recent tick."""
        view = self._accelerations.view()
        view.flags.writeable = False
        return view

    def _ensure_buffers(self):
        n = len(self.store)
        if len(self._accelerations) != n:
            self._accelerations = np.zeros((n, 2), dtype=np.float64)

    def apply_params(self, params: SimulationParams):
        """
        Swap in new parameters. Must be called between ticks.

        Structural changes are applied immediately: the store is resized, the
        world re-wrapped, and the grid flagged for re-tuning before its next
        rebuild. Nothing is changed if validation or the capacity check fails.
        """
        params.validate()
        count = int(params.agent_count)
        if count > self.capacity:
            raise CapacityError(count, self.capacity)

        changes = self.params.structural_changes(params)
        self.params = params
        self.store.max_speed = params.max_speed

        if "world" in changes:
            self.topology = WorldTopology(params.world_width, params.world_height)
            self.store.set_topology(self.topology)
            self.grid.configure(width=params.world_width, height=params.world_height)

        if "radii" in changes or "grid" in changes:
            # A fixed grid snaps back to the floor; an adaptive one re-tunes from it
            self.grid.configure(
                min_cell_size=params.min_cell_size,
                target_occupancy=params.target_occupancy,
                occupancy_tolerance=params.occupancy_tolerance,
                cell_size=None if params.adaptive_cell_sizing else params.min_cell_size,
            )

        if "count" in changes:
            old = len(self.store)
            self.store.resize(count)
            self._ensure_buffers()
            if self.verbose:
                print(f"[Boids] Resized flock {old:,} -> {count:,}")

        if changes:
            self._needs_retune = True
            self._grid_stale = True

    def reset(self, params: SimulationParams = None):
        """Re-randomize every agent, optionally under new parameters."""
        if params is not None:
            self.apply_params(params)
        self.store.randomize(int(self.params.agent_count))
        self._ensure_buffers()
        self._needs_retune = True
        self._grid_stale = True
        self.tick_count = 0

    def _maybe_retune(self):
        params = self.params
        periodic = params.adaptive_cell_sizing and self.tick_count % params.retune_interval == 0
        if not (self._needs_retune or periodic):
            return
        if params.adaptive_cell_sizing:
            self.grid.retune(len(self.store))
        self._needs_retune = False

    def refresh_grid(self):
        """Rebuild buckets if agents moved since the last rebuild."""
        if self._grid_stale:
            self.grid.rebuild(self.store.positions)
            self._grid_stale = False

    def step(self, dt: float):
        """Run one fixed tick: re-tune check, grid rebuild, forces, integration."""
        params = self.params
        with _thread_limit(params.enable_parallel):
            self.tick_count += 1
            self._maybe_retune()

            if params.enable_spatial_grid:
                self.grid.rebuild(self.store.positions)
                grid = self.grid
            else:
                grid = None

            compute_accelerations(
                self.store.positions,
                self.store.velocities,
                params,
                self._accelerations,
                grid=grid,
            )
            integrate(self.store, self._accelerations, params.max_speed, dt)
            self._grid_stale = True

    def nearest_agent(self, point, radius: float):
        """Index of the agent nearest ``point`` within ``radius``, or None."""
        with _thread_limit(self.params.enable_parallel):
            self.refresh_grid()
        x, y = self.topology.wrap(point)
        indices, dist_sq = self.grid.query_point(x, y, radius, with_distances=True)
        if len(indices) == 0:
            return None
        return int(indices[int(np.argmin(dist_sq))])

    @staticmethod
    def warmup():
        """Pre-compile the Numba kernels on a tiny flock."""
        flock = Flock(
            SimulationParams(agent_count=64, world_width=100.0, world_height=100.0,
                             separation_radius=5.0, alignment_radius=10.0, cohesion_radius=10.0),
            seed=0,
            verbose=False,
        )
        flock.step(1.0 / 60.0)
        flock.apply_params(flock.params.replace(enable_spatial_grid=False))
        flock.step(1.0 / 60.0)
        flock.store.view().interpolated_positions(0.5)
