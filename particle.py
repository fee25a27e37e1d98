# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the ParticleSystem class, which stores particle data
(position, velocity, type and the per-step force accumulator) in parallel
NumPy arrays, and places new particles without overlaps.
"""
import logging
import numpy as np
from spatial_hash import SpatialHash
from constants import PLACEMENT_SPACING, PLACEMENT_ATTEMPTS_PER_PARTICLE

# --- Data Contracts ---
#
# class ParticleSystem:
#   - __init__(self, count: int, type_count: int, width: float, height: float,
#              particle_radius: float, rng: np.random.Generator):
#     - Inputs:
#       - count: number of particles (>= 0).
#       - type_count: number of particle types (>= 1).
#       - width, height: world dimensions.
#       - particle_radius: wall margin and placement spacing unit.
#       - rng: the simulation's master random generator.
#     - Outputs: None
#     - Side Effects: Allocates the particle arrays and places particles.
#     - Invariants:
#       - positions, velocities, forces are float32 arrays of shape (N, 2).
#       - types is a uint8 array of shape (N,), every value < type_count.
#       - Every position lies within [radius, dimension - radius].

class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self, count: int, type_count: int, width: float, height: float,
                 particle_radius: float, rng: np.random.Generator):
        self.particle_count = count
        self.particle_types = type_count
        self.rng = rng

        self.positions = np.zeros((count, 2), dtype=np.float32)
        self.velocities = np.zeros((count, 2), dtype=np.float32)
        self.forces = np.zeros((count, 2), dtype=np.float32)
        # Round-robin assignment keeps the initial type distribution even.
        self.types = (np.arange(count) % type_count).astype(np.uint8)

        self.placed_without_overlap = self._place_non_overlapping(width, height, particle_radius)

        logging.info(
            f"ParticleSystem initialized with {self.particle_count} "
            f"particles of {self.particle_types} types."
        )
        logging.debug(
            f"Particle data arrays created. "
            f"Positions shape: {self.positions.shape}, "
            f"Velocities shape: {self.velocities.shape}, "
            f"Types shape: {self.types.shape}"
        )

    def _place_non_overlapping(self, width: float, height: float, radius: float) -> int:
        """
        Places particles by rejection sampling so that no two centres are
        closer than PLACEMENT_SPACING * radius.

        A temporary spatial hash with the minimum distance as its cell size
        keeps each collision check local. After PLACEMENT_ATTEMPTS_PER_PARTICLE
        attempts per particle, the remainder is placed at random without a
        collision check.

        Returns:
            int: The number of particles placed without overlap.
        """
        min_dist = PLACEMENT_SPACING * radius
        min_dist_sq = min_dist * min_dist
        low = (radius, radius)
        high = (width - radius, height - radius)

        placement_hash = SpatialHash(min_dist, width, height)
        max_attempts = self.particle_count * PLACEMENT_ATTEMPTS_PER_PARTICLE

        placed = 0
        attempts = 0
        while placed < self.particle_count and attempts < max_attempts:
            attempts += 1
            # Check the float32 value that will actually be stored.
            candidate = self.rng.uniform(low, high).astype(np.float32)
            x, y = float(candidate[0]), float(candidate[1])

            nearby = placement_hash.get_nearby(x, y)
            if len(nearby) > 0:
                delta = self.positions[nearby].astype(np.float64) - (x, y)
                if np.any(np.einsum('ij,ij->i', delta, delta) < min_dist_sq):
                    continue

            self.positions[placed] = candidate
            placement_hash.insert(placed, x, y)
            placed += 1

        if placed < self.particle_count:
            remaining = self.particle_count - placed
            logging.warning(
                f"Could only place {placed}/{self.particle_count} particles without "
                f"overlap after {attempts} attempts. Placing the remaining {remaining} randomly."
            )
            self.positions[placed:] = self.rng.uniform(low, high, size=(remaining, 2))
        else:
            logging.debug(f"Placed {placed} particles without overlap in {attempts} attempts.")

        return placed
