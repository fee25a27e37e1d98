# conftest.py
"""Shared fixtures for the simulation tests."""
import logging
import numpy as np
import pytest
from simulation import Simulation

WORLD_WIDTH = 800
WORLD_HEIGHT = 600


@pytest.fixture
def make_simulation():
    """
    Factory building a seeded Simulation with `count` particles.

    When `positions` is given the placed particles are moved there, so a
    test can control the exact geometry.
    """
    def _make(count=2, type_count=2, matrix=None, positions=None, velocities=None,
              types=None, brute_force=True, params=None, seed=1234):
        sim = Simulation(WORLD_WIDTH, WORLD_HEIGHT, params or {}, seed=seed)
        sim.set_brute_force(brute_force)
        if matrix is None:
            matrix = np.zeros((type_count, type_count))
        sim.initialize(count, type_count, matrix)
        if positions is not None:
            sim.particles.positions[:] = np.asarray(positions, dtype=np.float32)
        if velocities is not None:
            sim.particles.velocities[:] = np.asarray(velocities, dtype=np.float32)
        if types is not None:
            sim.particles.types[:] = np.asarray(types, dtype=np.uint8)
        return sim
    return _make


@pytest.fixture
def restore_root_logger():
    """Restores the root logger after a test reconfigures it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
