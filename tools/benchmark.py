"""
Boids Engine Benchmark
======================

Times the three phases of a tick (grid rebuild, force pipeline, integration)
for several flock sizes, and compares the grid against brute force.

Usage:
    python -m tools.benchmark                         # Default sizes
    python -m tools.benchmark --sizes 1k 10k 100k     # Custom sizes
    python -m tools.benchmark --repeats 20 --serial   # Single-threaded kernels
    python -m tools.benchmark --brute-limit 5000      # Skip brute force above 5k
"""

import argparse
import time

import numpy as np
from numba import set_num_threads

from boids import Flock, SimulationParams, compute_accelerations, integrate
from tools.cli import parse_count

AGENT_DENSITY = 0.005  # Agents per unit area, keeps neighborhoods comparable across sizes


def _time(fn, repeats: int) -> float:
    """Best-of-``repeats`` wall time in milliseconds."""
    best = float("inf")
    for _ in range(repeats):
        start = time.perf_counter()
        fn()
        best = min(best, time.perf_counter() - start)
    return best * 1000.0


def bench_size(count: int, repeats: int, parallel: bool, brute_limit: int) -> dict:
    side = float(np.sqrt(count / AGENT_DENSITY))
    params = SimulationParams.from_config(
        agent_count=count,
        world_width=side,
        world_height=side,
        enable_parallel=parallel,
    )
    flock = Flock(params, seed=0, verbose=False)
    flock.step(1.0 / 60.0)  # compile + first re-tune

    store = flock.store
    accelerations = np.zeros((count, 2))
    dt = 1.0 / 60.0

    result = {
        "count": count,
        "rebuild_ms": _time(lambda: flock.grid.rebuild(store.positions), repeats),
        "forces_ms": _time(
            lambda: compute_accelerations(store.positions, store.velocities, params, accelerations, grid=flock.grid),
            repeats,
        ),
        "integrate_ms": _time(lambda: integrate(store, accelerations, params.max_speed, dt), repeats),
        "tick_ms": _time(lambda: flock.step(dt), repeats),
        "brute_ms": None,
    }
    if count <= brute_limit:
        result["brute_ms"] = _time(
            lambda: compute_accelerations(store.positions, store.velocities, params, accelerations, grid=None),
            max(1, repeats // 4),
        )
    stats = flock.grid.stats()
    result["grid"] = f"{stats.dimensions[0]}x{stats.dimensions[1]}"
    result["max_bucket"] = stats.max_bucket_population
    return result


def main():
    parser = argparse.ArgumentParser(description="Boids engine benchmark")
    parser.add_argument("--sizes", nargs="+", type=parse_count, default=[1_000, 10_000, 50_000, 100_000])
    parser.add_argument("--repeats", "-r", type=int, default=10, help="Timed repetitions per phase")
    parser.add_argument("--serial", action="store_true", help="Run kernels on a single thread")
    parser.add_argument("--brute-limit", type=parse_count, default=20_000, help="Largest size to brute force")
    args = parser.parse_args()

    if args.serial:
        set_num_threads(1)
    Flock.warmup()
    print(f"{'boids':>9} {'grid':>9} {'max':>5} {'rebuild':>9} {'forces':>9} "
          f"{'integrate':>10} {'tick':>9} {'brute':>10}")
    for count in args.sizes:
        r = bench_size(count, args.repeats, not args.serial, args.brute_limit)
        brute = f"{r['brute_ms']:.2f}ms" if r["brute_ms"] is not None else "-"
        print(f"{r['count']:>9,} {r['grid']:>9} {r['max_bucket']:>5} {r['rebuild_ms']:>7.2f}ms "
              f"{r['forces_ms']:>7.2f}ms {r['integrate_ms']:>8.2f}ms {r['tick_ms']:>7.2f}ms {brute:>10}")


if __name__ == "__main__":
    main()
