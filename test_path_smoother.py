# test_path_smoother.py
"""
Tests for the costmap-aware path smoother.
"""

import numpy as np
import pytest

from collision import colliding_points
from costmap import Costmap, OCCUPIED
from path_smoother import path_curvature, smooth_path
from planner_config import SmootherParams, OptimizerParams


def roughness(points, params):
    """Smoothness and curvature part of the smoother objective."""
    second_diff = points[:-2] - 2.0 * points[1:-1] + points[2:]
    excess = np.maximum(0.0, path_curvature(points) - params.max_curvature)
    return (params.smooth_weight * np.sum(second_diff ** 2) +
            params.curvature_weight * np.sum(excess ** 2))


def test_path_curvature():
    straight = np.array([[0.0, 0.0], [1.0, 0.0], [2.0, 0.0]])
    assert path_curvature(straight) == pytest.approx([0.0])

    corner = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 2.0]])
    assert path_curvature(corner) == pytest.approx([np.pi / 4])


def test_zigzag_is_smoothed():
    costmap = Costmap(np.zeros((20, 20)), resolution=1.0)
    zigzag = np.array([[2.0, 5.0], [3.0, 6.0], [4.0, 5.0], [5.0, 6.0],
                       [6.0, 5.0], [7.0, 6.0], [8.0, 5.0]])
    params = SmootherParams()

    ok, smoothed = smooth_path(zigzag, costmap, params, OptimizerParams())
    assert ok
    assert smoothed.shape == zigzag.shape
    np.testing.assert_array_equal(smoothed[0], zigzag[0])
    np.testing.assert_array_equal(smoothed[-1], zigzag[-1])
    assert roughness(smoothed, params) < roughness(zigzag, params)
    # The input is left untouched
    assert zigzag[1].tolist() == [3.0, 6.0]


def stiff_params():
    # Smoothness dominates: an unpinned path collapses onto the chord
    return SmootherParams(smooth_weight=1000.0, distance_weight=0.001,
                          costmap_weight=0.0, curvature_weight=0.0)


def test_colliding_points_are_reanchored(capsys):
    costs = np.zeros((12, 22), dtype=np.uint8)
    costs[4:7, 10] = OCCUPIED
    costmap = Costmap(costs, resolution=1.0)
    # Straight along y = 5.5 with a detour over the post at x = 10
    detour = np.array([[x + 0.5, 5.5] for x in range(0, 21, 2)])
    detour[5] = [10.5, 7.5]
    assert colliding_points(detour, costmap).size == 0

    params = stiff_params()
    ok, smoothed = smooth_path(detour, costmap, params, OptimizerParams())
    assert "re-anchoring" in capsys.readouterr().out
    assert ok
    # The detour point is pinned to where the search put it
    np.testing.assert_array_equal(smoothed[5], detour[5])
    assert colliding_points(smoothed, costmap).size == 0
    assert roughness(smoothed, params) < roughness(detour, params)


def test_fully_pinned_path_is_not_smoothed(capsys):
    costs = np.zeros((12, 8), dtype=np.uint8)
    costs[4:7, 2] = OCCUPIED
    costmap = Costmap(costs, resolution=1.0)
    detour = np.array([[0.5, 5.5], [2.5, 7.5], [4.5, 5.5]])

    ok, points = smooth_path(detour, costmap, stiff_params(), OptimizerParams())
    assert "re-anchoring" in capsys.readouterr().out
    assert not ok
    np.testing.assert_array_equal(points, detour)


def test_short_paths_are_not_smoothed():
    costmap = Costmap(np.zeros((5, 5)))
    ok, points = smooth_path([[0.5, 0.5], [1.5, 1.5]], costmap)
    assert not ok
    np.testing.assert_array_equal(points, [[0.5, 0.5], [1.5, 1.5]])


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
