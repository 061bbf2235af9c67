# test_collision.py
"""
Tests for point and segment collision checks against a costmap.
"""

import numpy as np
import pytest

from collision import (colliding_points, line_collision_free, path_collision_free,
                       point_collision_free)
from costmap import Costmap, INSCRIBED, OCCUPIED, UNKNOWN


def make_costmap():
    # 10 x 10 cells of 0.5 m with a wall at mx = 5 for my < 8
    costs = np.zeros((10, 10), dtype=np.uint8)
    costs[:8, 5] = OCCUPIED
    costs[9, 0] = UNKNOWN
    costs[9, 9] = INSCRIBED
    return Costmap(costs, resolution=0.5)


def test_point_checks():
    costmap = make_costmap()
    assert point_collision_free([0.3, 0.3], costmap)
    assert not point_collision_free([2.7, 1.0], costmap)     # wall
    assert not point_collision_free([4.8, 4.8], costmap)     # inscribed
    assert not point_collision_free([-0.1, 1.0], costmap)    # off the grid
    assert not point_collision_free([1.0, 5.1], costmap)

    assert point_collision_free([0.2, 4.8], costmap, traverse_unknown=True)
    assert not point_collision_free([0.2, 4.8], costmap, traverse_unknown=False)


def test_segment_checks():
    costmap = make_costmap()
    assert not line_collision_free([1.0, 1.0], [4.0, 1.0], costmap)
    assert line_collision_free([1.0, 1.0], [1.0, 4.0], costmap)
    # Crosses the wall column above its end
    assert line_collision_free([1.0, 4.3], [4.0, 4.3], costmap)


def test_colliding_points_and_paths():
    costmap = make_costmap()
    points = np.array([[1.0, 1.0], [2.6, 1.0], [4.0, 1.0], [4.0, 4.3]])
    np.testing.assert_array_equal(colliding_points(points, costmap), [1])
    assert colliding_points(points[[0, 2]], costmap).size == 0

    assert not path_collision_free(points, costmap)
    assert path_collision_free([[1.0, 1.0], [1.0, 4.3], [4.0, 4.3], [4.0, 1.0]], costmap)
    assert path_collision_free([[1.0, 1.0]], costmap)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
