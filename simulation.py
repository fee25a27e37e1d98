# simulation.py
"""
Handles the core simulation logic and physics calculations.

This module defines the Simulation class, which owns the particle state,
the interaction matrix and the physics parameters, and advances the world
by one time step per call to `update`. Pairwise forces are computed either
by a brute-force loop over all pairs or by a neighbour loop over a uniform
spatial grid; both are compiled with Numba.
"""
import logging
import numpy as np
from dataclasses import dataclass, fields
from typing import Dict, Any, NamedTuple, Optional
from numba import jit
from particle import ParticleSystem
from spatial_hash import SpatialHash
from settings import generate_random_matrix, resize_matrix
from constants import (
    DEFAULT_INTERACTION_RADIUS, PARTICLE_RADIUS, REPULSION_RADIUS,
    REPULSION_STRENGTH, FRICTION, MAX_VELOCITY, FORCE_SCALE,
    DEFAULT_FORCE_FALLOFF, BOUNDARY_DAMPING, DEFAULT_USE_BRUTE_FORCE,
    MAX_DELTA_TIME, BASE_FPS, MIN_DISTANCE_SQ
)

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, width: float, height: float,
#              params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None):
#     - Inputs:
#       - width, height: world dimensions.
#       - params: the "simulation_parameters" config section. Any field of
#         PhysicsParameters may be overridden; "seed" seeds the RNG.
#     - Side Effects: Creates the master RNG and the spatial grid. No
#       particles exist until initialize() is called.
#
#   - initialize(self, count, type_count, matrix) -> None:
#     - Side Effects: Replaces the particle system with `count` freshly
#       placed particles at rest.
#
#   - update(self, dt: float) -> None:
#     - Inputs: elapsed time in seconds (clamped to MAX_DELTA_TIME).
#     - Side Effects: Advances positions and velocities by one step.
#     - Invariants: Particle count and types are unchanged. Positions lie
#       within [particle_radius, dimension - particle_radius].
#
# The matrix, counts and radii are trusted to be validated by the settings
# layer. The hot loops do not re-check shapes.

@jit(nopython=True)
def _close_range_repulsion_numba(distance, repulsion_radius, repulsion_strength):
    """Matrix-independent repulsion magnitude for pairs closer than repulsion_radius."""
    if distance >= repulsion_radius:
        return 0.0
    overlap = 1.0 - distance / repulsion_radius
    return repulsion_strength * overlap * overlap

@jit(nopython=True)
def _calculate_forces_brute_force_numba(
    positions, types, forces, interaction_matrix,
    repulsion_radius, repulsion_strength, force_scale, force_falloff
):
    """
    Numba-jitted O(n^2) force calculation over every unordered pair.

    The matrix term falls off as (repulsion_radius / distance) ** force_falloff
    with no distance cutoff. Each pair is computed once and applied to both
    particles with opposite signs.
    """
    particle_count = positions.shape[0]

    for i in range(particle_count):
        xi = positions[i, 0]
        yi = positions[i, 1]
        type_i = types[i]

        for j in range(i + 1, particle_count):
            dx = positions[j, 0] - xi
            dy = positions[j, 1] - yi
            distance_sq = dx * dx + dy * dy

            # Co-located particles have no defined direction
            if distance_sq < MIN_DISTANCE_SQ:
                continue

            distance = np.sqrt(distance_sq)
            # Direction is FROM i TO j
            nx = dx / distance
            ny = dy / distance

            type_j = types[j]
            attraction = (interaction_matrix[type_i, type_j] + interaction_matrix[type_j, type_i]) / 2.0

            force_magnitude = attraction * force_scale * (repulsion_radius / distance) ** force_falloff
            force_magnitude -= _close_range_repulsion_numba(distance, repulsion_radius, repulsion_strength)

            fx = force_magnitude * nx
            fy = force_magnitude * ny
            forces[i, 0] += fx
            forces[i, 1] += fy
            forces[j, 0] -= fx
            forces[j, 1] -= fy

@jit(nopython=True)
def _calculate_forces_spatial_numba(
    positions, types, forces, interaction_matrix, grid, grid_cols, grid_rows, grid_cell_size,
    interaction_radius, repulsion_radius, repulsion_strength, force_scale
):
    """
    Numba-jitted force calculation using the spatial grid.

    Only pairs within interaction_radius interact, with a linear falloff of
    the matrix term. Candidates come from the 3x3 cell block around each
    particle; only indices j > i are processed so each pair is handled once.
    """
    particle_count = positions.shape[0]
    interaction_radius_sq = interaction_radius * interaction_radius
    falloff_span = interaction_radius - repulsion_radius

    for i in range(particle_count):
        xi = positions[i, 0]
        yi = positions[i, 1]
        type_i = types[i]

        cell_x = int(np.floor(xi / grid_cell_size))
        cell_y = int(np.floor(yi / grid_cell_size))
        cell_x = min(max(cell_x, 0), grid_cols - 1)
        cell_y = min(max(cell_y, 0), grid_rows - 1)

        for dy in range(-1, 2):
            for dx in range(-1, 2):
                nx_cell, ny_cell = cell_x + dx, cell_y + dy
                if nx_cell < 0 or nx_cell >= grid_cols or ny_cell < 0 or ny_cell >= grid_rows:
                    continue

                for j in grid[nx_cell + ny_cell * grid_cols]:
                    if j <= i:
                        continue

                    delta_x = positions[j, 0] - xi
                    delta_y = positions[j, 1] - yi
                    distance_sq = delta_x * delta_x + delta_y * delta_y

                    if distance_sq > interaction_radius_sq or distance_sq < MIN_DISTANCE_SQ:
                        continue

                    distance = np.sqrt(distance_sq)
                    nx = delta_x / distance
                    ny = delta_y / distance

                    type_j = types[j]
                    attraction = (interaction_matrix[type_i, type_j] + interaction_matrix[type_j, type_i]) / 2.0

                    falloff = max(0.0, 1.0 - (distance - repulsion_radius) / falloff_span)
                    force_magnitude = attraction * force_scale * falloff
                    force_magnitude -= _close_range_repulsion_numba(distance, repulsion_radius, repulsion_strength)

                    fx = force_magnitude * nx
                    fy = force_magnitude * ny
                    forces[i, 0] += fx
                    forces[i, 1] += fy
                    forces[j, 0] -= fx
                    forces[j, 1] -= fy


@dataclass
class PhysicsParameters:
    """The mutable parameter set of one Simulation."""
    interaction_radius: float = DEFAULT_INTERACTION_RADIUS
    particle_radius: float = PARTICLE_RADIUS
    repulsion_radius: float = REPULSION_RADIUS
    repulsion_strength: float = REPULSION_STRENGTH
    friction: float = FRICTION
    max_velocity: float = MAX_VELOCITY
    force_scale: float = FORCE_SCALE
    force_falloff: float = DEFAULT_FORCE_FALLOFF
    boundary_damping: float = BOUNDARY_DAMPING
    use_brute_force: bool = DEFAULT_USE_BRUTE_FORCE

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "PhysicsParameters":
        """Builds parameters from a config section, ignoring unrelated keys."""
        known = {f.name for f in fields(cls)}
        physics = cls(**{key: value for key, value in params.items() if key in known})
        if 'particle_radius' in params and 'repulsion_radius' not in params:
            physics.repulsion_radius = physics.particle_radius * 2
        return physics


class ParticleData(NamedTuple):
    """Read-only view handed to the renderer after each update."""
    positions: np.ndarray
    types: np.ndarray
    count: int


class Simulation:
    """
    Owns the particle state and advances it with one of two force models.
    """
    def __init__(self, width: float, height: float,
                 params: Optional[Dict[str, Any]] = None, seed: Optional[int] = None):
        """
        Initializes the simulation environment.

        Args:
            width (float): The width of the simulation world.
            height (float): The height of the simulation world.
            params (Dict[str, Any]): Simulation parameters from config.
            seed (int): Overrides params["seed"] when given.
        """
        params = params if params is not None else {}
        self.width = float(width)
        self.height = float(height)
        self.physics = PhysicsParameters.from_dict(params)

        # All randomness is controlled by a single master seed.
        self.seed = seed if seed is not None else params.get('seed')
        self.rng = np.random.default_rng(self.seed)

        self.particles: Optional[ParticleSystem] = None
        self.type_count = 0
        self.interaction_matrix = np.zeros((0, 0), dtype=np.float32)

        self.spatial_hash = SpatialHash(self.physics.interaction_radius, self.width, self.height)

        logging.info(f"Simulation created for a {self.width:.0f}x{self.height:.0f} world.")
        logging.debug(f"Physics parameters: {self.physics}")

    @property
    def particle_count(self) -> int:
        return 0 if self.particles is None else self.particles.particle_count

    def initialize(self, count: int, type_count: int, matrix):
        """
        (Re)creates all particles with non-overlapping positions and zero velocity.
        """
        self.type_count = type_count
        self.interaction_matrix = np.array(matrix, dtype=np.float32)
        self.particles = ParticleSystem(
            count, type_count, self.width, self.height,
            self.physics.particle_radius, self.rng
        )
        logging.info(
            f"Simulation initialized: {count} particles, {type_count} types, "
            f"{'brute-force' if self.physics.use_brute_force else 'spatial-hash'} mode."
        )

    # --- Mutation entry points ---

    def set_interaction_matrix(self, matrix):
        """Replaces the interaction matrix without touching particles."""
        self.interaction_matrix = np.array(matrix, dtype=np.float32)
        logging.debug("Interaction matrix replaced.")

    def randomize_interaction_matrix(self):
        """
        Replaces the current interaction matrix with random values in range.
        """
        self.interaction_matrix = np.array(
            generate_random_matrix(self.type_count, self.rng), dtype=np.float32
        )
        logging.info("Interaction matrix randomized by user.")

    def set_interaction_radius(self, radius: float):
        """Updates the interaction radius and resizes the grid cells to match."""
        self.physics.interaction_radius = float(radius)
        self.spatial_hash.resize(self.width, self.height, cell_size=radius)
        logging.info(f"Interaction radius set to {radius}.")

    def set_particle_radius(self, radius: float):
        """Updates the particle radius; the repulsion radius follows at twice its value."""
        self.physics.particle_radius = float(radius)
        self.physics.repulsion_radius = float(radius) * 2
        logging.info(f"Particle radius set to {radius}.")

    def set_force_falloff(self, exponent: float):
        self.physics.force_falloff = float(exponent)
        logging.info(f"Force falloff exponent set to {exponent}.")

    def set_brute_force(self, use_brute_force: bool):
        self.physics.use_brute_force = bool(use_brute_force)
        logging.info(f"Force model set to {'brute-force' if use_brute_force else 'spatial-hash'}.")

    def add_particle_type(self, new_type_count: int, new_matrix=None):
        """
        Grows the type count. Existing particles keep their types, since the
        old types are a prefix of the new ones.

        Without `new_matrix`, the current matrix is kept as the top-left block
        and the new rows and columns are filled with random values.
        """
        if new_matrix is None:
            new_matrix = resize_matrix(self.interaction_matrix.tolist(), new_type_count, self.rng)
        self.type_count = new_type_count
        self.interaction_matrix = np.array(new_matrix, dtype=np.float32)
        if self.particles is not None:
            self.particles.particle_types = new_type_count
        logging.info(f"Particle type added. Type count is now {new_type_count}.")

    def remove_particle_type(self, removed_index: int, new_type_count: int, new_matrix=None):
        """
        Removes one type and remaps every particle in a single pass.

        Particles of the removed type get a random remaining type, particles
        of higher types shift down by one, the rest are unchanged. Without
        `new_matrix`, the removed row and column are dropped from the
        current matrix.
        """
        if new_matrix is None:
            new_matrix = np.delete(np.delete(self.interaction_matrix, removed_index, axis=0), removed_index, axis=1)
        self.type_count = new_type_count
        self.interaction_matrix = np.array(new_matrix, dtype=np.float32)

        if self.particles is not None:
            types = self.particles.types
            old_types = types.copy()
            removed_mask = old_types == removed_index
            shifted_mask = old_types > removed_index
            types[shifted_mask] = old_types[shifted_mask] - 1
            types[removed_mask] = self.rng.integers(0, new_type_count, size=int(removed_mask.sum()))
            self.particles.particle_types = new_type_count
            logging.info(
                f"Particle type {removed_index} removed. "
                f"{int(removed_mask.sum())} particles reassigned, {int(shifted_mask.sum())} shifted."
            )

    def resize(self, new_width: float, new_height: float):
        """
        Rescales positions to new world dimensions and clamps them inside.
        Velocities are left unchanged.
        """
        scale_x = new_width / self.width
        scale_y = new_height / self.height
        self.width = float(new_width)
        self.height = float(new_height)
        self.spatial_hash.resize(self.width, self.height)

        if self.particles is not None:
            r = self.physics.particle_radius
            pos = self.particles.positions
            pos[:, 0] = np.clip(pos[:, 0] * scale_x, r, self.width - r)
            pos[:, 1] = np.clip(pos[:, 1] * scale_y, r, self.height - r)

        logging.info(f"World resized to {self.width:.0f}x{self.height:.0f}.")

    def get_particle_data(self) -> ParticleData:
        """
        Returns read-only views of positions and types, valid until the next update.
        """
        if self.particles is None:
            return ParticleData(np.zeros((0, 2), dtype=np.float32), np.zeros(0, dtype=np.uint8), 0)
        positions = self.particles.positions.view()
        positions.flags.writeable = False
        types = self.particles.types.view()
        types.flags.writeable = False
        return ParticleData(positions, types, self.particles.particle_count)

    # --- Per-frame update ---

    def calculate_forces(self) -> np.ndarray:
        """
        Clears the force accumulators and fills them with the selected model.

        Returns:
            np.ndarray: The (N, 2) force accumulator.
        """
        particles = self.particles
        particles.forces.fill(0.0)
        physics = self.physics

        if physics.use_brute_force:
            _calculate_forces_brute_force_numba(
                particles.positions, particles.types, particles.forces, self.interaction_matrix,
                physics.repulsion_radius, physics.repulsion_strength,
                physics.force_scale, physics.force_falloff
            )
        else:
            self.spatial_hash.rebuild(particles.positions)
            grid = self.spatial_hash
            _calculate_forces_spatial_numba(
                particles.positions, particles.types, particles.forces, self.interaction_matrix,
                grid.grid, grid.cols, grid.rows, grid.cell_size,
                physics.interaction_radius, physics.repulsion_radius,
                physics.repulsion_strength, physics.force_scale
            )
        return particles.forces

    def update(self, dt: float):
        """
        Executes one time step of the simulation.
        """
        if self.particle_count == 0:
            return

        # Bound the per-step displacement after stalls or slow frames.
        dt = min(float(dt), MAX_DELTA_TIME)

        # 1. Accumulate pairwise forces
        self.calculate_forces()

        # 2. Integrate motion (semi-implicit Euler)
        self._integrate(dt)

        # 3. Handle boundary conditions (reflective walls)
        self._handle_boundaries()

    def _integrate(self, dt: float):
        # Forces are tuned for 60 steps per second.
        dt_scale = np.float32(dt * BASE_FPS)
        velocities = self.particles.velocities

        velocities += self.particles.forces * dt_scale
        velocities *= np.float32(self.physics.friction)

        # Apply velocity cap by rescaling the whole vector
        speed = np.linalg.norm(velocities, axis=1)
        over_speed_mask = speed > self.physics.max_velocity
        velocities[over_speed_mask] = (
            velocities[over_speed_mask] / speed[over_speed_mask, np.newaxis]
        ) * self.physics.max_velocity

        self.particles.positions += velocities * dt_scale

    def _handle_boundaries(self):
        """
        Clamps particles inside the walls and reflects the offending velocity
        component with damping.
        """
        r = self.physics.particle_radius
        damping = self.physics.boundary_damping
        pos = self.particles.positions
        vel = self.particles.velocities

        for axis, limit in ((0, self.width), (1, self.height)):
            low_mask = pos[:, axis] < r
            high_mask = pos[:, axis] > limit - r

            pos[low_mask, axis] = r
            vel[low_mask, axis] = np.abs(vel[low_mask, axis]) * damping

            pos[high_mask, axis] = limit - r
            vel[high_mask, axis] = -np.abs(vel[high_mask, axis]) * damping
