import unittest

from core.grid import Direction, Grid, direction_of
from core.settings import GridSettings, Neighborhood
from tests.helpers.grids import make_grid


class TestGridCells(unittest.TestCase):
    def setUp(self) -> None:
        self.grid = make_grid(10, 10, build=False)

    def test_defaults(self):
        cell = self.grid.cell((3, 4, 0))
        self.assertTrue(cell.walkable)
        self.assertEqual(cell.cost, 1)
        self.assertEqual(cell.directions, Direction.ALL)

    def test_default_impassable_grid(self):
        grid = Grid(GridSettings(width=4, height=4, chunk_size=2, default_impassable=True))
        self.assertFalse(grid.is_walkable((0, 0, 0)))
        grid.set_nav((0, 0, 0), cost=2)
        self.assertTrue(grid.is_walkable((0, 0, 0)))
        self.assertEqual(grid.cost((0, 0, 0)), 2)

    def test_out_of_bounds_rejected(self):
        with self.assertRaises(IndexError):
            self.grid.cell((10, 0, 0))
        with self.assertRaises(IndexError):
            self.grid.set_nav((-1, 0, 0), walkable=False)
        with self.assertRaises(IndexError):
            self.grid.chunk_for((0, 0, 1))

    def test_invalid_cost_rejected(self):
        with self.assertRaises(ValueError):
            self.grid.set_nav((1, 1, 0), cost=0)

    def test_set_nav_marks_owning_chunk_dirty(self):
        self.grid.build()
        self.assertFalse(self.grid.is_dirty)
        version = self.grid.version

        self.grid.set_nav((7, 2, 0), walkable=False)
        self.assertEqual(self.grid.dirty_chunks, frozenset({(1, 0, 0)}))
        self.assertEqual(self.grid.version, version + 1)

        self.grid.resolve()
        self.assertFalse(self.grid.is_dirty)

    def test_unchanged_set_nav_is_noop(self):
        self.grid.build()
        version = self.grid.version
        self.grid.set_nav((1, 1, 0), cost=1, walkable=True)
        self.assertEqual(self.grid.version, version)
        self.assertFalse(self.grid.is_dirty)

    def test_min_cost_follows_edits(self):
        self.assertEqual(self.grid.min_cost, 1)
        for x in range(10):
            for y in range(10):
                self.grid.set_nav((x, y, 0), cost=3)
        self.assertEqual(self.grid.min_cost, 3)
        self.grid.set_nav((0, 0, 0), cost=2)
        self.assertEqual(self.grid.min_cost, 2)


class TestMovementModel(unittest.TestCase):
    def test_distance_metrics(self):
        ordinal = make_grid(10, 10, build=False)
        cardinal = make_grid(10, 10, neighborhood=Neighborhood.CARDINAL, build=False)
        self.assertEqual(ordinal.distance((0, 0, 0), (9, 4, 0)), 9)
        self.assertEqual(cardinal.distance((0, 0, 0), (9, 4, 0)), 13)

    def test_neighbour_counts(self):
        ordinal = make_grid(10, 10, build=False)
        cardinal = make_grid(10, 10, neighborhood=Neighborhood.CARDINAL, build=False)
        self.assertEqual(len(list(ordinal.neighbours((5, 5, 0)))), 8)
        self.assertEqual(len(list(ordinal.neighbours((0, 0, 0)))), 3)
        self.assertEqual(len(list(cardinal.neighbours((5, 5, 0)))), 4)
        self.assertEqual(len(list(cardinal.neighbours((0, 0, 0)))), 2)

    def test_straight_moves_listed_first(self):
        grid = make_grid(10, 10, build=False)
        first_four = [cell for cell, _ in grid.neighbours((5, 5, 0))][:4]
        for cell in first_four:
            self.assertEqual(grid.distance((5, 5, 0), cell), 1)
            self.assertEqual(abs(cell[0] - 5) + abs(cell[1] - 5), 1)

    def test_step_cost_is_entered_cell_cost(self):
        grid = make_grid(10, 10, build=False)
        grid.set_nav((1, 0, 0), cost=7)
        costs = dict(grid.neighbours((0, 0, 0)))
        self.assertEqual(costs[(1, 0, 0)], 7)
        self.assertEqual(costs[(0, 1, 0)], 1)

    def test_direction_mask_restricts_leaving(self):
        grid = make_grid(10, 10, build=False)
        grid.set_nav((2, 2, 0), directions=Direction.EAST)
        self.assertTrue(grid.can_move((2, 2, 0), (3, 2, 0)))
        self.assertFalse(grid.can_move((2, 2, 0), (1, 2, 0)))
        self.assertFalse(grid.can_move((2, 2, 0), (3, 3, 0)))
        # Entering the one-way cell is unrestricted.
        self.assertTrue(grid.can_move((1, 2, 0), (2, 2, 0)))

    def test_direction_of_diagonal(self):
        self.assertEqual(direction_of((1, -1, 0)), Direction.EAST | Direction.NORTH)
        self.assertEqual(direction_of((0, 0, -1)), Direction.DOWN)

    def test_corner_cutting(self):
        cutting = make_grid(4, 4, chunk_size=2, walls=[(1, 0, 0)], build=False)
        strict = make_grid(4, 4, chunk_size=2, walls=[(1, 0, 0)], build=False, allow_corner_cutting=False)
        self.assertTrue(cutting.can_move((0, 0, 0), (1, 1, 0)))
        self.assertFalse(strict.can_move((0, 0, 0), (1, 1, 0)))
        self.assertTrue(strict.can_move((0, 0, 0), (0, 1, 0)))

    def test_blocked_cells_are_not_entered(self):
        grid = make_grid(4, 4, chunk_size=2, build=False)
        reachable = [cell for cell, _ in grid.neighbours((0, 0, 0), blocked={(1, 0, 0)})]
        self.assertNotIn((1, 0, 0), reachable)
        self.assertIn((1, 1, 0), reachable)

    def test_unwalkable_start_can_still_move_out(self):
        grid = make_grid(4, 4, chunk_size=2, walls=[(0, 0, 0)], build=False)
        self.assertTrue(grid.can_move((0, 0, 0), (1, 0, 0)))
        self.assertEqual(list(grid.predecessors((0, 0, 0))), [])

    def test_layers_in_3d_neighborhood(self):
        grid = Grid(GridSettings(width=4, height=4, depth=3, chunk_size=2, neighborhood=Neighborhood.CARDINAL_3D))
        cells = {cell for cell, _ in grid.neighbours((1, 1, 1))}
        self.assertEqual(len(cells), 6)
        self.assertIn((1, 1, 2), cells)
        grid.set_nav((1, 1, 1), directions=Direction.ALL & ~Direction.UP)
        self.assertFalse(grid.can_move((1, 1, 1), (1, 1, 2)))
        self.assertTrue(grid.can_move((1, 1, 1), (1, 1, 0)))


class TestBuild(unittest.TestCase):
    def test_resolve_builds_lazily(self):
        grid = make_grid(10, 10, build=False)
        self.assertFalse(grid.is_built)
        grid.resolve()
        self.assertTrue(grid.is_built)
        self.assertEqual(len(grid.chunks), 4)
        # Four open boundaries, one entrance each.
        self.assertEqual(grid.graph.entrance_count, 4)


if __name__ == "__main__":
    unittest.main()
