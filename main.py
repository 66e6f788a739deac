"""
2D Boids Simulation (headless)
==============================

Runs the flocking engine in real time at a fixed physics rate and prints
grid statistics once per second.

Usage:
    python main.py                          # Defaults from config/boids.py
    python main.py --boids 50000            # More agents
    python main.py --duration 10 --seed 1   # Stop after 10 seconds
    python main.py --no-grid                # Brute-force neighbor search
"""

import argparse

from boids import SimulationParams
from core import Application
from tools.cli import parse_count


def main():
    parser = argparse.ArgumentParser(description="Headless 2D boids simulation")
    parser.add_argument("--boids", "-n", type=parse_count, help="Number of boids (e.g., 20000, 50k)")
    parser.add_argument("--width", type=float, help="World width")
    parser.add_argument("--height", type=float, help="World height")
    parser.add_argument("--duration", "-d", type=float, default=None, help="Seconds to run (default: until Ctrl+C)")
    parser.add_argument("--frames", "-f", type=int, default=None, help="Frames to run")
    parser.add_argument("--fps", type=float, default=None, help="Cap the frame rate")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--no-grid", action="store_true", help="Disable the spatial grid")
    parser.add_argument("--serial", action="store_true", help="Run kernels on a single thread")
    parser.add_argument("--quiet", "-q", action="store_true", help="No status output")
    args = parser.parse_args()

    overrides = {}
    if args.boids is not None:
        overrides["agent_count"] = args.boids
    if args.width is not None:
        overrides["world_width"] = args.width
    if args.height is not None:
        overrides["world_height"] = args.height
    if args.no_grid:
        overrides["enable_spatial_grid"] = False
    if args.serial:
        overrides["enable_parallel"] = False

    params = SimulationParams.from_config(**overrides)
    app = Application(params, frame_rate=args.fps, seed=args.seed, verbose=not args.quiet)
    app.run(duration=args.duration, max_frames=args.frames)


if __name__ == "__main__":
    main()
