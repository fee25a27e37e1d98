# spatial_hash.py
"""
Uniform spatial grid for fast neighbour queries.

The simulation plane is divided into square cells whose side equals the
interaction radius. Every particle index is stored in the cell containing
its position, and a query returns everything in the 3x3 block of cells
around a point. The result is a superset of the true neighbours; callers
apply the exact distance test themselves.

Any point within `cell_size` of the query point on both axes lies in one of
the nine queried cells, so the grid never misses a neighbour.
"""
import logging
import numpy as np
from numba import jit
from numba.core import types
from numba.typed import List

# --- Data Contracts ---
#
# class SpatialHash:
#   - __init__(self, cell_size: float, width: float, height: float):
#     - Inputs: cell size and world dimensions (all > 0).
#     - Side Effects: Allocates cols * rows empty cells, where
#       cols = ceil(width / cell_size), rows = ceil(height / cell_size).
#
#   - insert(self, index: int, x: float, y: float) -> None:
#     - Side Effects: Appends index to the cell containing (x, y). Positions
#       outside the world are clamped into the nearest edge cell.
#
#   - get_nearby(self, x: float, y: float) -> np.ndarray:
#     - Outputs: int64 array of all indices in the 3x3 cell block around the
#       cell of (x, y). Cells outside the grid are skipped (no wraparound).
#
#   - rebuild(self, positions: np.ndarray) -> None:
#     - Inputs: (N, 2) array of positions.
#     - Side Effects: Clears the grid and inserts index i at positions[i].
#
#   - resize(self, width, height, cell_size=None) -> None:
#     - Side Effects: Recomputes the grid dimensions and discards contents.

@jit(nopython=True)
def _cell_coords_numba(x, y, cell_size, cols, rows):
    """Returns the (col, row) of the cell containing (x, y), clamped to the grid."""
    col = int(np.floor(x / cell_size))
    row = int(np.floor(y / cell_size))
    if col < 0:
        col = 0
    elif col >= cols:
        col = cols - 1
    if row < 0:
        row = 0
    elif row >= rows:
        row = rows - 1
    return col, row

@jit(nopython=True)
def _rebuild_grid_numba(positions, grid, cell_size, cols, rows):
    """
    Numba-jitted function to repopulate the grid from scratch.
    """
    for cell in grid:
        cell.clear()

    for i in range(positions.shape[0]):
        col, row = _cell_coords_numba(positions[i, 0], positions[i, 1], cell_size, cols, rows)
        grid[col + row * cols].append(i)

@jit(nopython=True)
def _gather_nearby_numba(grid, x, y, cell_size, cols, rows):
    """
    Numba-jitted function collecting every index in the 3x3 block of cells
    around (x, y) into a flat array.
    """
    col, row = _cell_coords_numba(x, y, cell_size, cols, rows)

    # First pass sizes the output so it can be filled without reallocation.
    total = 0
    for dy in range(-1, 2):
        for dx in range(-1, 2):
            nx, ny = col + dx, row + dy
            if 0 <= nx < cols and 0 <= ny < rows:
                total += len(grid[nx + ny * cols])

    nearby = np.empty(total, dtype=np.int64)
    k = 0
    for dy in range(-1, 2):
        for dx in range(-1, 2):
            nx, ny = col + dx, row + dy
            if 0 <= nx < cols and 0 <= ny < rows:
                for j in grid[nx + ny * cols]:
                    nearby[k] = j
                    k += 1
    return nearby

class SpatialHash:
    """
    A grid of cells mapping each cell to the list of particle indices inside it.
    """
    def __init__(self, cell_size: float, width: float, height: float):
        self.cell_size = float(cell_size)
        self.resize(width, height)

    def resize(self, width: float, height: float, cell_size: float = None):
        """
        Recomputes the grid dimensions and discards all cell contents.

        Must be called whenever the world bounds or the cell size change.
        """
        if cell_size is not None:
            self.cell_size = float(cell_size)
        self.width = float(width)
        self.height = float(height)
        self.cols = max(1, int(np.ceil(self.width / self.cell_size)))
        self.rows = max(1, int(np.ceil(self.height / self.cell_size)))

        # Numba requires typed data structures for JIT compilation.
        self.grid = List([List.empty_list(types.int64) for _ in range(self.cols * self.rows)])

        logging.debug(
            f"Spatial grid sized to {self.cols}x{self.rows} cells, "
            f"cell size {self.cell_size:.2f}px."
        )

    def clear(self):
        """Empties every cell. Must run before each rebuild."""
        for cell in self.grid:
            cell.clear()

    def insert(self, index: int, x: float, y: float):
        """Adds a particle index to the cell containing (x, y)."""
        col, row = _cell_coords_numba(x, y, self.cell_size, self.cols, self.rows)
        self.grid[col + row * self.cols].append(index)

    def rebuild(self, positions: np.ndarray):
        """Clears the grid and inserts every particle at its current position."""
        _rebuild_grid_numba(positions, self.grid, self.cell_size, self.cols, self.rows)

    def get_nearby(self, x: float, y: float) -> np.ndarray:
        """
        Returns all indices in the 3x3 cell block around (x, y).

        Candidates may lie farther away than `cell_size`; the caller is
        responsible for the exact distance filter.
        """
        return _gather_nearby_numba(self.grid, x, y, self.cell_size, self.cols, self.rows)
