"""Behavioural tests of the hierarchical planner through :class:`Pathfinder`."""

import pytest

from core.errors import NoPathFound, PathError, PathfindingError
from core.path import PathfindMode
from core.pathfinder import Pathfinder
from core.planner import HierarchicalPlanner
from core.settings import Neighborhood
from tests.helpers.grids import assert_walkable_path, make_grid, random_grid, reference_cost

MODES = [PathfindMode.REFINED, PathfindMode.COARSE, PathfindMode.ASTAR]
WALL_WITH_OPENING = [(5, y, 0) for y in range(10) if y != 5]


@pytest.mark.parametrize(
    "neighborhood, expected",
    [(Neighborhood.ORDINAL, 9), (Neighborhood.CARDINAL, 18)],
)
def test_open_grid_corner_to_corner_astar(neighborhood, expected):
    pathfinder = Pathfinder(make_grid(10, 10, neighborhood=neighborhood))
    path = pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=PathfindMode.ASTAR)
    assert len(path) == expected
    assert path.cost == expected
    assert path.goal == (9, 9, 0)
    assert not path.partial


def test_refined_smooths_hierarchical_detour():
    pathfinder = Pathfinder(make_grid(10, 10))
    coarse = pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=PathfindMode.COARSE)
    refined = pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=PathfindMode.REFINED)
    # Entrances sit mid-boundary, so the abstract route bends.
    assert coarse.cost == 12
    assert refined.cost == 9
    assert refined.cells == tuple((i, i, 0) for i in range(1, 10))


@pytest.mark.parametrize("mode", [PathfindMode.COARSE, PathfindMode.ASTAR, PathfindMode.REFINED])
def test_wall_opening_is_used(mode):
    grid = make_grid(10, 10, walls=WALL_WITH_OPENING)
    path = Pathfinder(grid).request_path((0, 0, 0), (9, 9, 0), mode=mode)
    assert (5, 5, 0) in path.cells
    assert_walkable_path(grid, (0, 0, 0), path.cells)


def test_closing_and_reopening_the_opening():
    grid = make_grid(10, 10, walls=WALL_WITH_OPENING)
    pathfinder = Pathfinder(grid)
    pathfinder.request_path((0, 0, 0), (9, 0, 0), mode=PathfindMode.COARSE)

    grid.set_nav((5, 5, 0), walkable=False)
    for mode in MODES:
        with pytest.raises(NoPathFound) as excinfo:
            pathfinder.request_path((0, 0, 0), (9, 0, 0), mode=mode)
        assert excinfo.value.kind is PathError.NO_PATH_FOUND
        assert (excinfo.value.start, excinfo.value.goal) == ((0, 0, 0), (9, 0, 0))
        assert isinstance(excinfo.value, PathfindingError)

    grid.set_nav((5, 5, 0), walkable=True)
    path = pathfinder.request_path((0, 0, 0), (9, 0, 0), mode=PathfindMode.COARSE)
    assert (5, 5, 0) in path.cells


@pytest.mark.parametrize("mode", MODES)
def test_diagonal_squeeze_across_chunk_corner(mode):
    # The only way out of the first chunk is the corner step (4, 4) -> (5, 5).
    walls = [(5, y, 0) for y in range(5)] + [(x, 5, 0) for x in range(5)]
    grid = make_grid(10, 10, walls=walls)
    path = Pathfinder(grid).request_path((0, 0, 0), (9, 9, 0), mode=mode)
    assert path.cost == reference_cost(grid, (0, 0, 0), (9, 9, 0)) == 9
    step = path.cells.index((4, 4, 0))
    assert path.cells[step + 1] == (5, 5, 0)
    assert_walkable_path(grid, (0, 0, 0), path.cells)


@pytest.mark.parametrize("mode", [PathfindMode.COARSE, PathfindMode.REFINED])
def test_diagonal_squeeze_found_after_edit(mode):
    grid = make_grid(10, 10, walls=[(5, y, 0) for y in range(5)] + [(x, 5, 0) for x in range(4)])
    pathfinder = Pathfinder(grid)
    pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=mode)

    # Closing (4, 5) leaves the corner step as the only connection.
    grid.set_nav((4, 5, 0), walkable=False)
    path = pathfinder.request_path((0, 0, 0), (9, 9, 0), mode=mode)
    assert (5, 5, 0) in path.cells
    assert path.cost == 9


@pytest.mark.parametrize("mode", MODES)
def test_layers_joined_by_one_stair(mode):
    walls = [(x, y, 1) for x in range(8) for y in range(8) if (x, y) != (6, 6)]
    grid = make_grid(8, 8, chunk_size=4, depth=3, neighborhood=Neighborhood.CARDINAL_3D, walls=walls)
    start, goal = (0, 0, 0), (0, 0, 2)
    path = Pathfinder(grid).request_path(start, goal, mode=mode)
    assert path.cost == reference_cost(grid, start, goal) == 26
    assert (6, 6, 1) in path.cells
    assert path.goal == goal
    assert_walkable_path(grid, start, path.cells)


def test_layers_with_ordinal_3d_moves():
    walls = [(x, y, 1) for x in range(8) for y in range(8) if (x, y) != (6, 6)]
    grid = make_grid(8, 8, chunk_size=4, depth=3, neighborhood=Neighborhood.ORDINAL_3D, walls=walls)
    start, goal = (0, 0, 0), (0, 0, 2)
    pathfinder = Pathfinder(grid)
    astar = pathfinder.request_path(start, goal, mode=PathfindMode.ASTAR)
    assert astar.cost == reference_cost(grid, start, goal)
    for mode in (PathfindMode.COARSE, PathfindMode.REFINED):
        path = pathfinder.request_path(start, goal, mode=mode)
        assert path.cost >= astar.cost
        assert (6, 6, 1) in path.cells
        assert_walkable_path(grid, start, path.cells)


@pytest.mark.parametrize("seed", [1, 2, 3, 4])
def test_modes_against_exhaustive_search(seed):
    grid = random_grid(seed)
    pathfinder = Pathfinder(grid)
    pairs = [((0, 0, 0), (19, 19, 0)), ((3, 17, 0), (16, 2, 0)), ((10, 10, 0), (1, 12, 0)), ((4, 4, 0), (8, 2, 0))]
    for start, goal in pairs:
        for cell in (start, goal):
            grid.set_nav(cell, walkable=True)
        expected = reference_cost(grid, start, goal)
        if expected is None:
            for mode in MODES:
                with pytest.raises(NoPathFound):
                    pathfinder.request_path(start, goal, mode=mode)
            continue

        astar = pathfinder.request_path(start, goal, mode=PathfindMode.ASTAR)
        coarse = pathfinder.request_path(start, goal, mode=PathfindMode.COARSE)
        refined = pathfinder.request_path(start, goal, mode=PathfindMode.REFINED)
        assert astar.cost == expected
        assert coarse.cost >= astar.cost
        assert astar.cost <= refined.cost <= coarse.cost
        for path in (astar, coarse, refined):
            assert path.goal == goal
            assert path.cost == grid.path_cost(path.cells)
            assert_walkable_path(grid, start, path.cells)


@pytest.mark.parametrize("mode", MODES)
def test_identical_requests_are_deterministic(mode):
    grid = random_grid(7)
    grid.set_nav((0, 0, 0), walkable=True)
    grid.set_nav((19, 19, 0), walkable=True)
    pathfinder = Pathfinder(grid)
    first = pathfinder.request_path((0, 0, 0), (19, 19, 0), mode=mode, partial=True)
    second = pathfinder.request_path((0, 0, 0), (19, 19, 0), mode=mode, partial=True)
    assert first.cells == second.cells
    assert first.cost == second.cost


def test_same_chunk_uses_direct_path():
    grid = make_grid(10, 10)
    path = Pathfinder(grid).request_path((0, 0, 0), (3, 3, 0), mode=PathfindMode.COARSE)
    assert path.cost == 3
    assert path.graph_path == ((0, 0, 0), (3, 3, 0))


def test_same_chunk_detours_through_neighbour_when_cheaper():
    walls = [(x, 2, 0) for x in range(5)]
    grid = make_grid(10, 10, walls=walls)
    start, goal = (0, 0, 0), (0, 4, 0)
    path = Pathfinder(grid).request_path(start, goal, mode=PathfindMode.COARSE)
    assert path.goal == goal
    assert any(cell[0] >= 5 for cell in path.cells)
    assert_walkable_path(grid, start, path.cells)


def test_start_equals_goal_is_empty():
    path = Pathfinder(make_grid(10, 10)).request_path((4, 4, 0), (4, 4, 0))
    assert path.is_empty
    assert path.cost == 0
    assert not path.partial


def test_out_of_bounds_endpoints_raise_index_error():
    pathfinder = Pathfinder(make_grid(10, 10))
    with pytest.raises(IndexError):
        pathfinder.request_path((0, 0, 0), (10, 0, 0))
    with pytest.raises(IndexError):
        pathfinder.request_path((-1, 0, 0), (1, 0, 0), mode=PathfindMode.ASTAR)


def test_unwalkable_start_can_leave():
    grid = make_grid(10, 10, walls=[(0, 0, 0)])
    path = Pathfinder(grid).request_path((0, 0, 0), (8, 8, 0), mode=PathfindMode.COARSE)
    assert path.goal == (8, 8, 0)


ENCLOSED_GOAL = [(x, y, 0) for x in range(7, 10) for y in range(7, 10) if (x, y) != (8, 8)]


@pytest.mark.parametrize("mode", MODES)
def test_partial_path_ends_closer_than_start(mode):
    grid = make_grid(10, 10, walls=ENCLOSED_GOAL)
    start, goal = (0, 0, 0), (8, 8, 0)
    pathfinder = Pathfinder(grid)
    with pytest.raises(NoPathFound):
        pathfinder.request_path(start, goal, mode=mode)

    path = pathfinder.request_path(start, goal, mode=mode, partial=True)
    assert path.partial
    assert grid.distance(path.goal, goal) < grid.distance(start, goal)
    assert grid.distance(path.goal, goal) == 2
    assert_walkable_path(grid, start, path.cells)


@pytest.mark.parametrize("mode", MODES)
def test_partial_path_is_empty_when_start_is_closest(mode):
    grid = make_grid(10, 10, walls=[(1, 0, 0), (0, 1, 0), (1, 1, 0)])
    path = Pathfinder(grid).request_path((0, 0, 0), (9, 9, 0), mode=mode, partial=True)
    assert path.is_empty
    assert path.partial


def test_blocked_cells_are_avoided():
    grid = make_grid(10, 10)
    blocked = frozenset({(x, 3, 0) for x in range(9)})
    for mode in MODES:
        path = Pathfinder(grid).request_path((0, 0, 0), (0, 9, 0), mode=mode, blocked=blocked)
        assert not blocked & set(path.cells)
        assert (9, 3, 0) in path.cells
        assert path.goal == (0, 9, 0)


def test_planner_returns_waypoints_and_segments():
    grid = make_grid(10, 10, walls=WALL_WITH_OPENING)
    abstract = HierarchicalPlanner(grid).plan((0, 0, 0), (9, 9, 0))
    assert abstract.start == (0, 0, 0)
    assert abstract.endpoint == (9, 9, 0)
    assert len(abstract.segments) == len(abstract.waypoints) - 1
    for index, segment in enumerate(abstract.segments):
        assert segment[0] == abstract.waypoints[index]
        assert segment[-1] == abstract.waypoints[index + 1]


def test_request_statistics():
    grid = make_grid(10, 10, walls=ENCLOSED_GOAL)
    pathfinder = Pathfinder(grid)
    pathfinder.request_path((0, 0, 0), (5, 5, 0))
    with pytest.raises(NoPathFound):
        pathfinder.request_path((0, 0, 0), (8, 8, 0))
    pathfinder.request_path((0, 0, 0), (8, 8, 0), partial=True)
    stats = pathfinder.get_stats()
    assert stats["requests"] == 3
    assert stats["failures"] == 1
    assert stats["partial"] == 1
    pathfinder.reset_stats()
    assert pathfinder.get_stats()["requests"] == 0
