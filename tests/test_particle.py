import logging
import numpy as np
import pytest
from particle import ParticleSystem
from constants import PLACEMENT_SPACING


def _pairwise_min_distance(positions):
    delta = positions[:, np.newaxis, :].astype(np.float64) - positions[np.newaxis, :, :]
    distances = np.sqrt(np.sum(delta ** 2, axis=-1))
    np.fill_diagonal(distances, np.inf)
    return distances.min()


@pytest.mark.parametrize("count, type_count", [(10, 2), (50, 3), (300, 8)])
def test_initial_state_respects_bounds_and_types(count, type_count):
    radius = 4
    particles = ParticleSystem(count, type_count, 800, 600, radius, np.random.default_rng(0))

    assert particles.positions.shape == (count, 2)
    assert particles.velocities.shape == (count, 2)
    assert particles.forces.shape == (count, 2)
    assert particles.types.shape == (count,)
    assert particles.positions.dtype == np.float32
    assert particles.types.dtype == np.uint8

    assert np.all(particles.positions[:, 0] >= radius)
    assert np.all(particles.positions[:, 0] <= 800 - radius)
    assert np.all(particles.positions[:, 1] >= radius)
    assert np.all(particles.positions[:, 1] <= 600 - radius)
    assert np.all(particles.types < type_count)
    assert not np.any(particles.velocities)


def test_types_are_assigned_round_robin():
    particles = ParticleSystem(10, 3, 800, 600, 4, np.random.default_rng(0))
    assert particles.types.tolist() == [0, 1, 2, 0, 1, 2, 0, 1, 2, 0]


def test_sparse_placement_has_no_overlaps():
    radius = 4
    particles = ParticleSystem(50, 3, 800, 600, radius, np.random.default_rng(5))

    assert particles.placed_without_overlap == 50
    assert _pairwise_min_distance(particles.positions) >= PLACEMENT_SPACING * radius - 1e-3


def test_same_seed_gives_same_placement():
    a = ParticleSystem(40, 3, 800, 600, 4, np.random.default_rng(99))
    b = ParticleSystem(40, 3, 800, 600, 4, np.random.default_rng(99))
    assert np.array_equal(a.positions, b.positions)


def test_overcrowded_placement_falls_back_to_random(caplog):
    radius = 4
    with caplog.at_level(logging.WARNING):
        particles = ParticleSystem(200, 4, 60, 60, radius, np.random.default_rng(2))

    assert particles.placed_without_overlap < 200
    assert "Could only place" in caplog.text
    # The fallback still keeps everyone inside the walls.
    assert np.all(particles.positions >= radius)
    assert np.all(particles.positions <= 60 - radius)
    assert np.all(particles.types < 4)


def test_zero_particles():
    particles = ParticleSystem(0, 3, 800, 600, 4, np.random.default_rng(0))
    assert particles.positions.shape == (0, 2)
    assert particles.placed_without_overlap == 0
