import numpy as np
import pytest

from boids import AgentStore, Boid, CapacityError, WorldTopology


def _store(count=50, width=100.0, height=80.0, max_speed=10.0, capacity=1000, seed=7):
    return AgentStore(
        count,
        WorldTopology(width, height),
        max_speed,
        capacity=capacity,
        rng=np.random.default_rng(seed),
    )


def test_randomize_places_agents_in_bounds():
    store = _store(500)
    assert len(store) == store.count == 500
    assert np.all((store.positions >= 0.0) & (store.positions < [100.0, 80.0]))
    speeds = np.hypot(store.velocities[:, 0], store.velocities[:, 1])
    np.testing.assert_allclose(speeds, 10.0 * store.initial_speed_fraction)
    np.testing.assert_array_equal(store.previous_positions, store.positions)


def test_grow_appends_and_keeps_existing_agents():
    store = _store(50)
    positions = store.positions.copy()
    velocities = store.velocities.copy()
    store.resize(120)
    assert len(store) == 120
    np.testing.assert_array_equal(store.positions[:50], positions)
    np.testing.assert_array_equal(store.velocities[:50], velocities)
    np.testing.assert_array_equal(store.previous_positions[50:], store.positions[50:])
    assert store.previous_velocities.shape == (120, 2)


def test_shrink_truncates_keeping_order():
    store = _store(100)
    positions = store.positions.copy()
    store.resize(10)
    assert len(store) == 10
    np.testing.assert_array_equal(store.positions, positions[:10])
    assert store.previous_positions.shape == (10, 2)


def test_resize_to_same_count_keeps_arrays():
    store = _store(30)
    positions = store.positions
    store.resize(30)
    assert store.positions is positions


def test_capacity_is_enforced():
    store = _store(10, capacity=20)
    with pytest.raises(CapacityError) as excinfo:
        store.resize(21)
    assert excinfo.value.requested == 21
    assert len(store) == 10
    with pytest.raises(ValueError):
        store.resize(-1)


def test_set_topology_rewraps_positions():
    store = _store(200, width=100.0, height=100.0)
    store.set_topology(WorldTopology(40.0, 30.0))
    assert np.all(store.positions[:, 0] < 40.0)
    assert np.all(store.positions[:, 1] < 30.0)
    assert np.all(store.previous_positions[:, 0] < 40.0)


def test_view_is_read_only():
    store = _store(5)
    view = store.view()
    assert len(view) == 5
    with pytest.raises(ValueError):
        view.positions[0, 0] = 1.0
    snapshot = view.copy()
    snapshot["positions"][0, 0] = -1.0
    assert store.positions[0, 0] != -1.0


def test_view_boid():
    store = _store(5)
    boid = store.view().boid(3)
    assert isinstance(boid, Boid)
    assert boid.index == 3
    np.testing.assert_array_equal(boid.position, store.positions[3])
    assert boid.speed == pytest.approx(np.hypot(*store.velocities[3]))


def test_interpolation_takes_the_short_way_round():
    store = _store(1, width=100.0, height=100.0)
    store.previous_positions[:] = [[99.0, 50.0]]
    store.positions[:] = [[1.0, 50.0]]
    view = store.view()

    np.testing.assert_allclose(view.interpolated_positions(0.0), [[99.0, 50.0]])
    np.testing.assert_allclose(view.interpolated_positions(0.25), [[99.5, 50.0]])
    np.testing.assert_allclose(view.interpolated_positions(0.5), [[0.0, 50.0]], atol=1e-12)
    np.testing.assert_allclose(view.interpolated_positions(1.0), [[1.0, 50.0]])

    boid = view.boid(0)
    np.testing.assert_allclose(boid.interpolated_position(0.25, store.topology), [99.5, 50.0])


def test_boid_interpolated_velocity():
    boid = Boid(0, velocity=np.array([4.0, 0.0]), previous_velocity=np.array([0.0, 2.0]))
    np.testing.assert_allclose(boid.interpolated_velocity(0.5), [2.0, 1.0])
