import numpy as np
from spatial_hash import SpatialHash


def test_grid_dimensions_round_up():
    grid = SpatialHash(300, 800, 600)
    assert (grid.cols, grid.rows) == (3, 2)
    assert len(grid.grid) == 6


def test_cell_larger_than_world_gives_single_cell():
    grid = SpatialHash(2000, 800, 600)
    assert (grid.cols, grid.rows) == (1, 1)


def test_get_nearby_returns_only_the_3x3_block():
    grid = SpatialHash(100, 1000, 1000)
    grid.insert(0, 50, 50)
    grid.insert(1, 150, 150)
    grid.insert(2, 550, 550)
    grid.insert(3, 250, 50)

    assert set(grid.get_nearby(60, 60)) == {0, 1}
    assert set(grid.get_nearby(150, 150)) == {0, 1, 3}
    assert set(grid.get_nearby(550, 550)) == {2}


def test_insert_clamps_positions_on_or_beyond_the_boundary():
    grid = SpatialHash(100, 1000, 1000)
    grid.insert(0, 1000, 1000)
    grid.insert(1, -20, -5)
    grid.insert(2, 5000, 10)

    assert 0 in grid.get_nearby(999, 999)
    assert 1 in grid.get_nearby(0, 0)
    assert 2 in grid.get_nearby(999, 0)


def test_get_nearby_on_empty_grid():
    grid = SpatialHash(100, 300, 300)
    nearby = grid.get_nearby(150, 150)
    assert len(nearby) == 0


def test_clear_empties_every_cell():
    grid = SpatialHash(100, 300, 300)
    for i in range(9):
        grid.insert(i, 50 + 100 * (i % 3), 50 + 100 * (i // 3))
    assert len(grid.get_nearby(150, 150)) == 9

    grid.clear()
    assert len(grid.get_nearby(150, 150)) == 0


def test_rebuild_matches_individual_inserts():
    rng = np.random.default_rng(3)
    positions = rng.uniform((0, 0), (500, 400), size=(200, 2)).astype(np.float32)

    rebuilt = SpatialHash(60, 500, 400)
    rebuilt.insert(999, 10, 10) # stale entry must disappear
    rebuilt.rebuild(positions)

    inserted = SpatialHash(60, 500, 400)
    for i, (x, y) in enumerate(positions):
        inserted.insert(i, float(x), float(y))

    for x, y in [(0, 0), (250, 200), (499, 399), (120, 330)]:
        assert sorted(rebuilt.get_nearby(x, y)) == sorted(inserted.get_nearby(x, y))


def test_every_point_within_cell_size_is_found():
    rng = np.random.default_rng(11)
    cell_size = 50
    width, height = 500, 400

    for _ in range(300):
        p = rng.uniform((0, 0), (width, height))
        q = np.clip(p + rng.uniform(-0.999 * cell_size, 0.999 * cell_size, size=2), 0, (width, height))

        grid = SpatialHash(cell_size, width, height)
        grid.insert(0, p[0], p[1])
        grid.insert(1, q[0], q[1])

        assert 1 in grid.get_nearby(p[0], p[1])
        assert 0 in grid.get_nearby(q[0], q[1])


def test_resize_recomputes_dimensions_and_discards_contents():
    grid = SpatialHash(100, 300, 300)
    grid.insert(0, 50, 50)

    grid.resize(1000, 450)
    assert (grid.cols, grid.rows) == (10, 5)
    assert len(grid.get_nearby(50, 50)) == 0

    grid.resize(1000, 450, cell_size=250)
    assert grid.cell_size == 250
    assert (grid.cols, grid.rows) == (4, 2)
