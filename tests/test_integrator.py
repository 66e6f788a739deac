import numpy as np
import pytest

from boids import AgentStore, WorldTopology, integrate


def _store(positions, velocities, width=100.0, height=100.0, max_speed=10.0):
    store = AgentStore(0, WorldTopology(width, height), max_speed)
    store.positions = np.array(positions, dtype=np.float64)
    store.velocities = np.array(velocities, dtype=np.float64)
    store.previous_positions = store.positions.copy()
    store.previous_velocities = store.velocities.copy()
    return store


def test_straight_line_without_acceleration():
    store = _store([[10.0, 20.0]], [[3.0, -4.0]])
    integrate(store, np.zeros((1, 2)), max_speed=10.0, dt=0.5)
    np.testing.assert_allclose(store.positions, [[11.5, 18.0]])
    np.testing.assert_allclose(store.velocities, [[3.0, -4.0]])


def test_previous_state_is_snapshotted():
    store = _store([[10.0, 20.0], [5.0, 5.0]], [[3.0, -4.0], [1.0, 1.0]])
    integrate(store, np.ones((2, 2)), max_speed=10.0, dt=0.1)
    np.testing.assert_array_equal(store.previous_positions, [[10.0, 20.0], [5.0, 5.0]])
    np.testing.assert_array_equal(store.previous_velocities, [[3.0, -4.0], [1.0, 1.0]])


def test_speed_is_clamped_keeping_direction():
    store = _store([[50.0, 50.0]], [[0.0, 0.0]], max_speed=5.0)
    integrate(store, np.array([[300.0, 400.0]]), max_speed=5.0, dt=1.0)
    np.testing.assert_allclose(store.velocities, [[3.0, 4.0]])
    np.testing.assert_allclose(store.positions, [[53.0, 54.0]])


def test_positions_wrap_across_edges():
    store = _store([[99.5, 0.5], [0.2, 99.9]], [[2.0, -2.0], [-1.0, 1.0]])
    integrate(store, np.zeros((2, 2)), max_speed=10.0, dt=1.0)
    np.testing.assert_allclose(store.positions, [[1.5, 98.5], [99.2, 0.9]])


def test_bounds_and_speed_hold_for_random_flock(rng):
    count = 2000
    store = AgentStore(count, WorldTopology(300.0, 200.0), max_speed=15.0, rng=rng)
    for _ in range(20):
        accelerations = rng.normal(0.0, 200.0, (count, 2))
        integrate(store, accelerations, max_speed=15.0, dt=1.0 / 60.0)

        speeds = np.hypot(store.velocities[:, 0], store.velocities[:, 1])
        assert np.all(speeds <= 15.0 + 1e-9)
        assert np.all(store.positions[:, 0] >= 0.0) and np.all(store.positions[:, 0] < 300.0)
        assert np.all(store.positions[:, 1] >= 0.0) and np.all(store.positions[:, 1] < 200.0)


def test_empty_store_is_a_no_op():
    store = AgentStore(0, WorldTopology(10.0, 10.0), max_speed=1.0)
    integrate(store, np.zeros((0, 2)), max_speed=1.0, dt=0.1)
    assert len(store) == 0


@pytest.mark.parametrize("dt", [1.0 / 30.0, 1.0 / 60.0, 1.0 / 240.0])
def test_displacement_matches_velocity(dt, rng):
    store = AgentStore(100, WorldTopology(500.0, 500.0), max_speed=20.0, rng=rng)
    integrate(store, np.zeros((100, 2)), max_speed=20.0, dt=dt)
    topology = store.topology
    for before, after, velocity in zip(store.previous_positions, store.positions, store.velocities):
        np.testing.assert_allclose(topology.toroidal_delta(before, after), velocity * dt, atol=1e-9)
