import sys
from pathlib import Path

import numpy as np
import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from boids import SimulationParams  # noqa: E402


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run tests with large flocks",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-slow"):
        return

    skip_marker = pytest.mark.skip(reason="Large flock (use --run-slow)")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def small_params() -> SimulationParams:
    return SimulationParams(
        agent_count=200,
        world_width=200.0,
        world_height=150.0,
        separation_radius=5.0,
        alignment_radius=10.0,
        cohesion_radius=12.0,
        max_speed=20.0,
        max_force=40.0,
        target_occupancy=4.0,
        retune_interval=10,
    )


@pytest.fixture
def rng() -> np.random.Generator:
    return np.random.default_rng(1234)


@pytest.fixture
def make_positions(rng):
    """Factory for uniform random placements inside a world."""

    def _make(count: int, width: float, height: float) -> np.ndarray:
        positions = np.empty((count, 2))
        positions[:, 0] = rng.uniform(0.0, width, count)
        positions[:, 1] = rng.uniform(0.0, height, count)
        return positions

    return _make
