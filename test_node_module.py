# test_node_module.py
"""
Tests for lattice nodes: index encoding, validity and neighbor expansion.
"""

import math

import pytest

from costmap import FREE_SPACE, INSCRIBED, OCCUPIED, UNKNOWN
from motion_primitives import MotionModel, MotionTable, Pose
from node_module import NodeSE2, get_coords, get_index


def test_index_layout():
    # theta + x * N + y * size_x * N
    assert get_index(3, 2, 5, 10, 8) == 5 + 3 * 8 + 2 * 10 * 8
    assert get_coords(189, 10, 8) == (3, 2, 5)


def test_index_is_a_bijection():
    for size_x, size_y, bins in [(7, 5, 8), (3, 4, 1), (1, 6, 72)]:
        seen = set()
        for y in range(size_y):
            for x in range(size_x):
                for theta in range(bins):
                    index = get_index(x, y, theta, size_x, bins)
                    assert get_coords(index, size_x, bins) == (x, y, theta)
                    seen.add(index)
        assert seen == set(range(size_x * size_y * bins))


def test_validity():
    assert NodeSE2(FREE_SPACE, 0).is_valid(traverse_unknown=False)
    assert NodeSE2(200, 0).is_valid(traverse_unknown=False)
    assert not NodeSE2(OCCUPIED, 0).is_valid(traverse_unknown=True)
    assert not NodeSE2(INSCRIBED, 0).is_valid(traverse_unknown=True)
    assert not NodeSE2(OCCUPIED, 0).is_valid(traverse_unknown=False)
    assert not NodeSE2(INSCRIBED, 0).is_valid(traverse_unknown=False)
    assert NodeSE2(UNKNOWN, 0).is_valid(traverse_unknown=True)
    assert not NodeSE2(UNKNOWN, 0).is_valid(traverse_unknown=False)


def test_heuristic_ignores_heading():
    assert NodeSE2.heuristic_cost(Pose(0.0, 0.0, 0), Pose(3.0, 4.0, 5)) == pytest.approx(5.0)
    assert NodeSE2.heuristic_cost(Pose(2.0, 2.0, 1), Pose(2.0, 2.0, 7)) == 0.0


def test_heuristic_is_not_admissible():
    # The goal is reached on entering its cell, yet a pose in that cell can
    # still be most of a diagonal away from the goal pose.
    node_pose = Pose(7.9, 0.9, 0)
    goal_pose = Pose(7.1, 0.1, 0)
    assert get_index(7, 0, 0, 10, 1) == get_index(int(node_pose.x), int(node_pose.y), 0, 10, 1)
    assert NodeSE2.heuristic_cost(node_pose, goal_pose) > 1.0

    # A half turn in place costs heading change but no distance
    assert NodeSE2.heuristic_cost(Pose(3.0, 3.0, 0), Pose(3.0, 3.0, 36)) == 0.0


def test_reset():
    node = NodeSE2(10, 4)
    node.parent = 3
    node.pose = Pose(1.0, 1.0, 0)
    node.accumulated_cost = 5.0
    node.visited = True
    node.queued = True

    node.reset(20, 9)
    assert node.parent is None
    assert node.pose is None
    assert node.cell_cost == 20
    assert node.index == 9
    assert math.isinf(node.accumulated_cost)
    assert not node.visited and not node.queued


def test_neighbors_of_grid_node():
    table = MotionTable(MotionModel.MOORE, size_x=10, num_angle_quantization=1)
    node = NodeSE2(FREE_SPACE, get_index(5, 5, 0, 10, 1))
    node.pose = Pose(5.5, 5.5, 0)

    neighbors = node.get_neighbors(table, lambda index: NodeSE2(FREE_SPACE, index))
    cells = {get_coords(n.index, 10, 1)[:2] for n, _, _ in neighbors}
    expected = {(5 + dx, 5 + dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)}
    assert cells == expected

    # The projected pose is handed back, not written onto the neighbor
    for neighbor, pose, _ in neighbors:
        assert neighbor.pose is None
        assert get_index(int(pose.x), int(pose.y), 0, 10, 1) == neighbor.index


def test_neighbors_do_not_wrap_across_edges():
    table = MotionTable(MotionModel.MOORE, size_x=10, num_angle_quantization=1)

    def checker(index):
        return NodeSE2(FREE_SPACE, index)

    corner = NodeSE2(FREE_SPACE, get_index(0, 0, 0, 10, 1))
    corner.pose = Pose(0.5, 0.5, 0)
    cells = {get_coords(n.index, 10, 1)[:2] for n, _, _ in corner.get_neighbors(table, checker)}
    assert cells == {(1, 0), (0, 1), (1, 1)}

    right_edge = NodeSE2(FREE_SPACE, get_index(9, 3, 0, 10, 1))
    right_edge.pose = Pose(9.5, 3.5, 0)
    cells = {get_coords(n.index, 10, 1)[:2]
             for n, _, _ in right_edge.get_neighbors(table, checker)}
    assert cells == {(8, 2), (9, 2), (8, 3), (8, 4), (9, 4)}


def test_rejected_neighbors_are_skipped():
    table = MotionTable(MotionModel.VON_NEUMANN, size_x=10, num_angle_quantization=1)
    node = NodeSE2(FREE_SPACE, get_index(5, 5, 0, 10, 1))
    node.pose = Pose(5.5, 5.5, 0)
    blocked = get_index(6, 5, 0, 10, 1)

    def checker(index):
        return None if index == blocked else NodeSE2(FREE_SPACE, index)

    neighbors = node.get_neighbors(table, checker)
    assert len(neighbors) == 3
    assert blocked not in {n.index for n, _, _ in neighbors}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
