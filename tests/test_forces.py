import numpy as np
import pytest

from boids import SimulationParams, SpatialGrid, compute_accelerations


def _params(**overrides):
    base = dict(
        agent_count=2,
        world_width=100.0,
        world_height=100.0,
        separation_radius=5.0,
        alignment_radius=10.0,
        cohesion_radius=10.0,
        separation_weight=0.0,
        alignment_weight=0.0,
        cohesion_weight=0.0,
        max_speed=10.0,
        max_force=4.0,
    )
    base.update(overrides)
    return SimulationParams(**base)


def _accelerations(positions, velocities, params, use_grid=True):
    positions = np.asarray(positions, dtype=np.float64)
    velocities = np.asarray(velocities, dtype=np.float64)
    accelerations = np.zeros_like(positions)
    grid = None
    if use_grid:
        grid = SpatialGrid(params.world_width, params.world_height, params.max_radius,
                           min_cell_size=params.max_radius)
        grid.rebuild(positions)
    return compute_accelerations(positions, velocities, params, accelerations, grid=grid)


@pytest.mark.parametrize("use_grid", [True, False])
def test_isolated_agent_has_no_acceleration(use_grid):
    params = _params(agent_count=1, separation_weight=1.5, alignment_weight=1.0, cohesion_weight=1.0)
    result = _accelerations([[50.0, 50.0]], [[3.0, -2.0]], params, use_grid)
    assert result.tolist() == [[0.0, 0.0]]


@pytest.mark.parametrize("use_grid", [True, False])
def test_agents_out_of_range_have_no_acceleration(use_grid):
    params = _params(separation_weight=1.5, alignment_weight=1.0, cohesion_weight=1.0)
    result = _accelerations([[10.0, 10.0], [60.0, 60.0]], [[1.0, 0.0], [0.0, 1.0]], params, use_grid)
    assert np.all(result == 0.0)


def test_separation_pushes_away():
    params = _params(separation_weight=1.0)
    result = _accelerations([[50.0, 50.0], [51.0, 50.0]], np.zeros((2, 2)), params)
    # Steering from rest saturates at max_force
    np.testing.assert_allclose(result[0], [-4.0, 0.0])
    np.testing.assert_allclose(result[1], [4.0, 0.0])


def test_separation_across_the_seam():
    params = _params(separation_weight=1.0)
    result = _accelerations([[0.5, 50.0], [99.5, 50.0]], np.zeros((2, 2)), params)
    assert result[0, 0] > 0.0
    assert result[1, 0] < 0.0
    assert result[0, 1] == pytest.approx(0.0)


def test_coincident_agents_still_separate():
    params = _params(separation_weight=2.0)
    result = _accelerations([[20.0, 20.0], [20.0, 20.0]], np.zeros((2, 2)), params)
    assert np.all(np.isfinite(result))
    np.testing.assert_allclose(result, [[8.0, 0.0], [8.0, 0.0]])


def test_alignment_steers_toward_neighbor_heading():
    params = _params(alignment_weight=1.0)
    result = _accelerations([[50.0, 50.0], [57.0, 50.0]], [[0.0, 0.0], [0.0, 3.0]], params)
    # Agent 0 wants (0, 10), already has (0, 0): clamped to max_force
    np.testing.assert_allclose(result[0], [0.0, 4.0])


def test_cohesion_pulls_the_short_way_round():
    params = _params(cohesion_weight=1.0)
    result = _accelerations([[1.0, 50.0], [97.0, 50.0]], np.zeros((2, 2)), params)
    assert result[0, 0] < 0.0
    assert result[1, 0] > 0.0


def test_each_rule_uses_its_own_radius():
    params = _params(separation_weight=1.0)
    # Inside alignment/cohesion range but outside separation range
    result = _accelerations([[50.0, 50.0], [58.0, 50.0]], np.zeros((2, 2)), params)
    assert np.all(result == 0.0)


def test_force_never_exceeds_weighted_max_force(make_positions, rng):
    params = _params(agent_count=300, separation_weight=1.5, alignment_weight=1.0, cohesion_weight=1.0)
    positions = make_positions(300, 100.0, 100.0)
    velocities = rng.uniform(-10.0, 10.0, (300, 2))
    result = _accelerations(positions, velocities, params)
    magnitudes = np.hypot(result[:, 0], result[:, 1])
    assert np.all(magnitudes <= params.max_force * 3.5 + 1e-9)


@pytest.mark.parametrize("width,height", [(200.0, 150.0), (100.0, 100.0), (73.0, 41.0)])
def test_grid_matches_brute_force(make_positions, rng, width, height):
    params = _params(
        agent_count=400,
        world_width=width,
        world_height=height,
        separation_radius=4.0,
        alignment_radius=9.0,
        cohesion_radius=11.0,
        separation_weight=1.5,
        alignment_weight=1.0,
        cohesion_weight=1.0,
    )
    positions = make_positions(400, width, height)
    velocities = rng.uniform(-10.0, 10.0, (400, 2))
    with_grid = _accelerations(positions, velocities, params, use_grid=True)
    without_grid = _accelerations(positions, velocities, params, use_grid=False)
    np.testing.assert_allclose(with_grid, without_grid, rtol=1e-7, atol=1e-7)


def test_grid_disabled_in_params_uses_brute_force(make_positions, rng):
    params = _params(agent_count=100, separation_weight=1.0, cohesion_weight=1.0, enable_spatial_grid=False)
    positions = make_positions(100, 100.0, 100.0)
    velocities = rng.uniform(-5.0, 5.0, (100, 2))
    # Never rebuilt, so using it would find no neighbors
    grid = SpatialGrid(100.0, 100.0, 10.0)
    accelerations = np.zeros((100, 2))
    compute_accelerations(positions, velocities, params, accelerations, grid=grid)
    expected = _accelerations(positions, velocities, params, use_grid=False)
    np.testing.assert_allclose(accelerations, expected)


def test_empty_flock():
    params = _params(agent_count=0)
    result = _accelerations(np.zeros((0, 2)), np.zeros((0, 2)), params)
    assert result.shape == (0, 2)
