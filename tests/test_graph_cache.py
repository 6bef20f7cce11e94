import threading
import unittest

from tests.helpers.grids import make_grid


class TestEntranceGraph(unittest.TestCase):
    def setUp(self) -> None:
        self.grid = make_grid(10, 10)
        self.graph = self.grid.graph

    def test_nodes_per_chunk(self):
        self.assertEqual(self.graph.nodes_in((0, 0, 0)), ((2, 4, 0), (4, 2, 0)))
        self.assertEqual(self.graph.nodes_in((1, 1, 0)), ((5, 7, 0), (7, 5, 0)))

    def test_crossings_cost_entered_cell(self):
        self.grid.set_nav((5, 2, 0), cost=4)
        self.grid.resolve()
        self.assertIn(((5, 2, 0), 4), self.graph.crossings_from((4, 2, 0)))
        self.assertIn(((4, 2, 0), 1), self.graph.crossings_from((5, 2, 0)))

    def test_precompute_fills_every_table(self):
        for index in self.grid.chunks:
            self.assertEqual(set(self.graph.cached_sources(index)), set(self.graph.nodes_in(index)))

    def test_cached_edges_stay_inside_their_chunk(self):
        for index, chunk in self.grid.chunks.items():
            for node in self.graph.nodes_in(index):
                for target, edge in self.graph.edges_from(node).items():
                    self.assertEqual(edge.cells[0], node)
                    self.assertEqual(edge.cells[-1], target)
                    for cell in edge.cells:
                        self.assertTrue(chunk.contains(cell))
                        self.assertTrue(self.grid.is_walkable(cell))
                    self.assertEqual(edge.cost, self.grid.path_cost(edge.cells[1:]))

    def test_lazy_tables_are_computed_once(self):
        grid = make_grid(10, 10, precompute_on_build=False)
        graph = grid.graph
        self.assertEqual(graph.cached_sources((0, 0, 0)), ())
        first = graph.edges_from((4, 2, 0))
        second = graph.edges_from((4, 2, 0))
        self.assertIs(first, second)
        stats = graph.get_stats()
        self.assertEqual(stats["cache_misses"], 1)
        self.assertEqual(stats["cache_hits"], 1)

    def test_concurrent_readers_share_one_computation(self):
        grid = make_grid(10, 10, precompute_on_build=False)
        graph = grid.graph
        results = []

        def read():
            results.append(graph.edges_from((4, 2, 0)))

        threads = [threading.Thread(target=read) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(graph.get_stats()["cache_misses"], 1)
        self.assertTrue(all(result is results[0] for result in results))


class TestCacheInvalidation(unittest.TestCase):
    def setUp(self) -> None:
        self.grid = make_grid(10, 10)
        self.graph = self.grid.graph

    def test_interior_edit_only_drops_owning_chunk(self):
        self.grid.set_nav((2, 2, 0), cost=5)
        self.grid.resolve()
        self.assertEqual(self.graph.cached_sources((0, 0, 0)), ())
        self.assertNotEqual(self.graph.cached_sources((1, 0, 0)), ())
        self.assertNotEqual(self.graph.cached_sources((0, 1, 0)), ())

    def test_entrance_change_drops_neighbour_too(self):
        self.grid.set_nav((4, 2, 0), walkable=False)
        self.grid.resolve()
        self.assertEqual(len(self.graph.entrances_between((0, 0, 0), (1, 0, 0))), 2)
        self.assertEqual(self.graph.cached_sources((0, 0, 0)), ())
        self.assertEqual(self.graph.cached_sources((1, 0, 0)), ())
        self.assertNotEqual(self.graph.cached_sources((1, 1, 0)), ())

    def test_cost_change_on_cached_edge_is_observed(self):
        edge = self.graph.edge((4, 2, 0), (2, 4, 0))
        self.assertEqual(edge.cost, 2)
        self.assertIn((3, 3, 0), edge.cells)

        self.grid.set_nav((3, 3, 0), cost=10)
        self.grid.resolve()

        edge = self.graph.edge((4, 2, 0), (2, 4, 0))
        self.assertEqual(edge.cost, 3)
        self.assertNotIn((3, 3, 0), edge.cells)

    def test_walls_beside_a_corner_add_a_diagonal_crossing(self):
        self.grid.set_nav((5, 4, 0), walkable=False)
        self.grid.set_nav((4, 5, 0), walkable=False)
        self.grid.resolve()
        crossings = self.graph.entrances_between((1, 1, 0), (0, 0, 0))
        self.assertEqual([(e.cell_a, e.cell_b) for e in crossings], [((4, 4, 0), (5, 5, 0))])
        self.assertIn((4, 4, 0), self.graph.nodes_in((0, 0, 0)))
        self.assertIn(((5, 5, 0), 1), self.graph.crossings_from((4, 4, 0)))
        self.assertEqual(self.graph.cached_sources((1, 1, 0)), ())

    def test_edges_disappear_when_chunk_is_split(self):
        for y in range(5):
            self.grid.set_nav((3, y, 0), walkable=False)
        self.grid.resolve()
        # The south boundary now has two runs, one on each side of the wall.
        self.assertEqual(self.graph.nodes_in((0, 0, 0)), ((1, 4, 0), (4, 2, 0), (4, 4, 0)))
        self.assertEqual(set(self.graph.edges_from((4, 2, 0))), {(4, 4, 0)})


if __name__ == "__main__":
    unittest.main()
