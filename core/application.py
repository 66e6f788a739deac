"""Headless application loop that drives the simulation in real time."""

import time
from typing import Optional

from config import boids as config
from boids import Flock, SimulationParams
from .simulation import Simulation, SimulationState


class Application:
    """
    Real-time frame loop around a Simulation.

    Stands in for a renderer: each frame it updates the driver, reads the
    interpolated positions a renderer would draw, and periodically prints a
    status line with grid statistics.
    """

    def __init__(
        self,
        params: SimulationParams = None,
        frame_rate: Optional[float] = None,
        status_interval: float = config.SIMULATION["status_interval"],
        seed: Optional[int] = config.SIMULATION["seed"],
        verbose: bool = config.SIMULATION["verbose"],
    ):
        self.simulation = Simulation(params, seed=seed, verbose=verbose)
        self.frame_rate = frame_rate
        self.status_interval = status_interval
        self.verbose = verbose

        # State
        self.running = True
        self.frames = 0
        self.fps = 0.0

    def _status_line(self) -> str:
        sim = self.simulation
        stats = sim.grid_stats()
        cols, rows = stats.dimensions
        return (
            f"Boids: {len(sim.current_agents()):,}  |  FPS: {self.fps:.0f}  |  "
            f"Tick: {sim.tick}  |  Alpha: {sim.interpolation_factor():.2f}  |  "
            f"Grid: {cols}x{rows} @ {stats.cell_size:.1f}  "
            f"occupied {stats.occupied_cell_count:,}/{stats.total_cells:,}  "
            f"max {stats.max_bucket_population}"
        )

    def _render(self):
        """Read the state a renderer would draw between ticks."""
        agents = self.simulation.current_agents()
        return agents.interpolated_positions(self.simulation.interpolation_factor())

    def run(self, duration: Optional[float] = None, max_frames: Optional[int] = None):
        """Main application loop. Stops after ``duration`` seconds or ``max_frames`` frames."""
        Flock.warmup()
        sim = self.simulation
        if sim.state is SimulationState.IDLE:
            sim.start()

        started = time.perf_counter()
        last_status = started
        frames_since_status = 0
        frame_budget = 1.0 / self.frame_rate if self.frame_rate else 0.0

        try:
            while self.running:
                frame_start = time.perf_counter()
                sim.update()
                self._render()
                self.frames += 1
                frames_since_status += 1

                now = time.perf_counter()
                since_status = now - last_status
                if since_status >= self.status_interval and since_status > 0:
                    self.fps = frames_since_status / since_status
                    frames_since_status = 0
                    last_status = now
                    if self.verbose:
                        print(f"[App] {self._status_line()}")

                if duration is not None and now - started >= duration:
                    self.running = False
                if max_frames is not None and self.frames >= max_frames:
                    self.running = False

                if frame_budget:
                    remaining = frame_budget - (time.perf_counter() - frame_start)
                    if remaining > 0:
                        time.sleep(remaining)
        except KeyboardInterrupt:
            self.running = False

        if self.verbose:
            print(f"[App] Finished after {self.frames:,} frames, {sim.tick:,} ticks "
                  f"({sim.dropped_ticks:,} dropped)")
        return self.frames
