"""Fixed-timestep simulation driver with render interpolation."""

import threading
import time
from enum import Enum
from typing import Callable, Optional

import numpy as np

from config import boids as config
from boids.errors import CapacityError, SimulationStateError
from boids.flock import Flock
from boids.grid import GridStats
from boids.params import SimulationParams
from boids.store import AgentsView


class SimulationState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class Simulation:
    """
    Drives a Flock at a fixed physics rate, independent of the frame rate.

    Each ``update`` adds the elapsed wall-clock time to an accumulator and runs
    as many whole ticks as it holds, capped at ``max_ticks_per_frame``. The
    leftover fraction of a tick is the interpolation factor for rendering.

    Control methods and ``apply_params`` may be called from another thread
    (a UI); they take effect at the next tick boundary and never interrupt a
    tick in flight.
    """

    def __init__(
        self,
        params: SimulationParams = None,
        fixed_fps: float = config.PHYSICS["fixed_fps"],
        max_ticks_per_frame: int = config.PHYSICS["max_ticks_per_frame"],
        max_frame_time: float = config.PHYSICS["max_frame_time"],
        capacity: int = config.BOIDS["max_count"],
        seed: Optional[int] = config.SIMULATION["seed"],
        clock: Callable[[], float] = time.perf_counter,
        verbose: bool = config.SIMULATION["verbose"],
    ):
        params = params if params is not None else SimulationParams()
        params.validate()
        if int(params.agent_count) > capacity:
            raise CapacityError(int(params.agent_count), capacity)
        if fixed_fps <= 0:
            raise ValueError(f"fixed_fps must be > 0, got {fixed_fps}")
        if max_ticks_per_frame < 1:
            raise ValueError(f"max_ticks_per_frame must be >= 1, got {max_ticks_per_frame}")

        self.fixed_dt = 1.0 / fixed_fps
        self.max_ticks_per_frame = int(max_ticks_per_frame)
        self.max_frame_time = float(max_frame_time)
        self.capacity = int(capacity)
        self.seed = seed
        self.clock = clock
        self.verbose = verbose

        self.state = SimulationState.IDLE
        self.flock: Optional[Flock] = None
        self.tick = 0
        self.dropped_ticks = 0
        self.ticks_last_frame = 0

        self._params = params
        self._staged: Optional[SimulationParams] = None
        self._accumulator = 0.0
        self._alpha = 0.0
        self._last_time: Optional[float] = None

        # Held for the whole of each tick; control calls wait on it
        self._tick_lock = threading.RLock()
        self._params_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @property
    def params(self) -> SimulationParams:
        """The parameters the next tick will run with."""
        with self._params_lock:
            return self._staged if self._staged is not None else self._params

    def apply_params(self, params: SimulationParams):
        """
        Validate and stage new parameters for the next tick boundary.

        Raises ConfigurationError or CapacityError; on error the previous
        configuration stays in effect.
        """
        params.validate()
        count = int(params.agent_count)
        if count > self.capacity:
            raise CapacityError(count, self.capacity)
        with self._params_lock:
            self._staged = params

    def _take_staged(self) -> SimulationParams:
        with self._params_lock:
            if self._staged is not None:
                self._params = self._staged
                self._staged = None
                if self.flock is not None:
                    self.flock.apply_params(self._params)
            return self._params

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self):
        """Idle -> Running: create the agent store."""
        with self._tick_lock:
            if self.state is not SimulationState.IDLE:
                raise SimulationStateError(f"Cannot start from state {self.state.value}")
            params = self._take_staged()
            self.flock = Flock(params, capacity=self.capacity, seed=self.seed, verbose=self.verbose)
            self._restart_clock()
            self.state = SimulationState.RUNNING

    def pause(self):
        """Running -> Paused, after any tick in flight completes."""
        with self._tick_lock:
            if self.state is not SimulationState.RUNNING:
                raise SimulationStateError(f"Cannot pause from state {self.state.value}")
            self.state = SimulationState.PAUSED

    def resume(self):
        """Paused -> Running. Time spent paused is not simulated."""
        with self._tick_lock:
            if self.state is not SimulationState.PAUSED:
                raise SimulationStateError(f"Cannot resume from state {self.state.value}")
            self._last_time = self.clock()
            self.state = SimulationState.RUNNING

    def reset(self):
        """Any state -> Running with a freshly randomized flock."""
        with self._tick_lock:
            params = self._take_staged()
            if self.flock is None:
                self.flock = Flock(params, capacity=self.capacity, seed=self.seed, verbose=self.verbose)
            else:
                self.flock.reset()
            self.tick = 0
            self.dropped_ticks = 0
            self._restart_clock()
            self.state = SimulationState.RUNNING

    def _restart_clock(self):
        self._accumulator = 0.0
        self._alpha = 0.0
        self._last_time = self.clock()

    # ------------------------------------------------------------------
    # Frame update
    # ------------------------------------------------------------------

    def update(self, elapsed: Optional[float] = None) -> int:
        """
        Advance by one rendered frame.

        ``elapsed`` is the frame time in seconds; when omitted it is read from
        the clock. Returns the number of physics ticks executed.

        The lock is released between ticks so control calls can land at tick
        boundaries; accumulator bookkeeping only happens while it is held.
        """
        now = self.clock()
        with self._tick_lock:
            if elapsed is None:
                elapsed = now - self._last_time if self._last_time is not None else 0.0
            self._last_time = now
            self.ticks_last_frame = 0
            if self.state is not SimulationState.RUNNING:
                return 0
            # Cap elapsed to prevent physics explosion on lag
            self._accumulator += min(max(elapsed, 0.0), self.max_frame_time)

        ticks = 0
        while ticks < self.max_ticks_per_frame:
            with self._tick_lock:
                if self.state is not SimulationState.RUNNING or self._accumulator < self.fixed_dt:
                    break
                self._step()
                self._accumulator -= self.fixed_dt
            ticks += 1

        with self._tick_lock:
            self.ticks_last_frame = ticks
            if self.state is not SimulationState.RUNNING:
                return ticks

            if self._accumulator >= self.fixed_dt:
                dropped = int(self._accumulator // self.fixed_dt)
                self._accumulator -= dropped * self.fixed_dt
                self.dropped_ticks += dropped
                if self.verbose:
                    print(f"[Sim] Dropped {dropped} catch-up ticks")

            if self._params.enable_interpolation:
                self._alpha = min(max(self._accumulator / self.fixed_dt, 0.0), 1.0)
            else:
                self._alpha = 0.0
        return ticks

    def step(self):
        """Run exactly one tick regardless of the clock (Running or Paused)."""
        with self._tick_lock:
            if self.state is SimulationState.IDLE:
                raise SimulationStateError("Cannot step before start()")
            self._step()

    def _step(self):
        self._take_staged()
        self.flock.step(self.fixed_dt)
        self.tick += 1

    # ------------------------------------------------------------------
    # Read access between ticks
    # ------------------------------------------------------------------

    def current_agents(self) -> AgentsView:
        """Read-only view of the agents as of the last completed tick."""
        with self._tick_lock:
            if self.flock is None:
                empty = np.zeros((0, 2), dtype=np.float64)
                return _EmptyView(empty)
            return self.flock.store.view()

    def interpolation_factor(self) -> float:
        """Fraction of the next tick already elapsed, in [0, 1]."""
        return self._alpha

    def grid_stats(self) -> GridStats:
        with self._tick_lock:
            if self.flock is None:
                return GridStats(0, 0, 0.0, (0, 0), 0, 0.0)
            self.flock.refresh_grid()
            return self.flock.grid.stats()

    def nearest_agent(self, point, radius: float) -> Optional[int]:
        """Index of the agent nearest ``point`` (for selection and follow), or None."""
        with self._tick_lock:
            if self.flock is None:
                return None
            return self.flock.nearest_agent(point, radius)


class _EmptyView(AgentsView):
    """Agent view before the simulation has started."""

    def __init__(self, empty: np.ndarray):
        empty.flags.writeable = False
        self.positions = empty
        self.velocities = empty
        self.previous_positions = empty
        self.previous_velocities = empty

    def interpolated_positions(self, alpha: float) -> np.ndarray:
        return np.zeros((0, 2), dtype=np.float64)
