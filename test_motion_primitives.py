# test_motion_primitives.py
"""
Tests for the motion primitive tables.
"""

import math

import numpy as np
import pytest

from motion_primitives import (MotionModel, MotionTable, Pose, FALLBACK_MOTION_MODEL,
                               minimum_turning_angle, motion_model_from_string)
from planner_config import ConfigurationError


def test_primitive_counts():
    expected = {
        MotionModel.DUBIN: 3,
        MotionModel.REEDS_SHEPP: 6,
        MotionModel.BALKCOM_MASON: 8,
        MotionModel.MOORE: 8,
        MotionModel.VON_NEUMANN: 4,
    }
    for model, count in expected.items():
        table = MotionTable(model, size_x=20, num_angle_quantization=72, min_turning_radius=2.0)
        assert len(table) == count, model


def test_grid_models_ignore_heading():
    table = MotionTable(MotionModel.MOORE, size_x=20, num_angle_quantization=72)
    assert table.num_angle_quantization == 1
    assert all(not p.rotate_with_heading for p in table.projections)

    offsets = {(p.delta_x, p.delta_y) for p in table.projections}
    assert (1.0, 1.0) in offsets
    assert (-1.0, 0.0) in offsets


def test_minimum_turning_angle_rounds_up_to_bins():
    bin_size = 2.0 * math.pi / 72
    increments, angle = minimum_turning_angle(2.0, bin_size)

    raw_angle = 2.0 * math.asin(math.sqrt(2.0) / 4.0)  # ~41.4 degrees
    assert increments == 9
    assert angle == pytest.approx(9 * bin_size)
    assert angle >= raw_angle


def test_turning_primitives_leave_the_cell():
    # The chord of every turn is at least one cell diagonal
    for radius in (1.0, 2.0, 5.0, 10.0):
        for bins in (16, 72):
            table = MotionTable(MotionModel.REEDS_SHEPP, 50, bins, radius)
            for prim in table.projections:
                chord = math.hypot(prim.delta_x, prim.delta_y)
                assert chord >= math.sqrt(2.0) - 1e-9, (radius, bins, prim.name)
                assert prim.length >= chord - 1e-9
                # Whole number of heading bins
                assert prim.delta_theta == pytest.approx(prim.delta_bins * table.bin_size)
                if prim.delta_theta != 0.0:
                    assert abs(prim.delta_bins) >= 1


def test_tables_are_deterministic():
    a = MotionTable(MotionModel.REEDS_SHEPP, 40, 72, 3.5)
    b = MotionTable(MotionModel.REEDS_SHEPP, 40, 72, 3.5)
    assert a.projections == b.projections


def test_turn_directions_are_consistent():
    table = MotionTable(MotionModel.REEDS_SHEPP, 50, 72, 2.0)
    prims = {p.name: p for p in table.projections}

    assert prims['forward_left'].delta_y > 0 and prims['forward_left'].delta_bins > 0
    assert prims['forward_right'].delta_y < 0 and prims['forward_right'].delta_bins < 0
    assert prims['backward_left'].delta_x < 0 and prims['backward_left'].delta_y > 0
    assert prims['backward_right'].delta_x < 0 and prims['backward_right'].delta_y < 0
    assert all(prims[name].reverse for name in ('backward', 'backward_left', 'backward_right'))
    assert not any(prims[name].reverse for name in ('forward', 'forward_left', 'forward_right'))


def test_projection_rotates_with_heading():
    table = MotionTable(MotionModel.BALKCOM_MASON, 20, 8)
    forward = [p.name for p in table.projections].index('forward')

    ahead = table.get_projection(Pose(0.5, 0.5, 0), forward)
    assert ahead.x == pytest.approx(0.5 + math.sqrt(2.0))
    assert ahead.y == pytest.approx(0.5)
    assert ahead.theta == 0

    # Bin 2 of 8 is 90 degrees
    up = table.get_projection(Pose(0.5, 0.5, 2), forward)
    assert up.x == pytest.approx(0.5)
    assert up.y == pytest.approx(0.5 + math.sqrt(2.0))

    # Bin 1 of 8 is a diagonal step of one cell in x and y
    diagonal = table.get_projection(Pose(0.5, 0.5, 1), forward)
    assert diagonal.x == pytest.approx(1.5)
    assert diagonal.y == pytest.approx(1.5)


def test_heading_wraps_around():
    table = MotionTable(MotionModel.BALKCOM_MASON, 20, 8)
    names = [p.name for p in table.projections]

    spun = table.get_projection(Pose(3.5, 3.5, 0), names.index('spin_right'))
    assert spun.theta == 7
    assert (spun.x, spun.y) == (3.5, 3.5)

    spun = table.get_projection(Pose(3.5, 3.5, 7), names.index('spin_left'))
    assert spun.theta == 0


def test_projections_are_relative():
    table = MotionTable(MotionModel.DUBIN, 50, 72, 3.0)
    a = np.array([(p.x, p.y) for p in table.get_projections(Pose(1.0, 1.0, 10))])
    b = np.array([(p.x, p.y) for p in table.get_projections(Pose(21.0, 31.0, 10))])
    np.testing.assert_allclose(b - a, np.tile([20.0, 30.0], (len(table), 1)))


def test_motion_model_from_string():
    selection = motion_model_from_string("reeds_shepp")
    assert selection.model is MotionModel.REEDS_SHEPP
    assert selection.recognized

    for name in ("ACKERMANN", "", "UNKNOWN"):
        selection = motion_model_from_string(name)
        assert selection.model is FALLBACK_MOTION_MODEL
        assert not selection.recognized


def test_invalid_tables_are_rejected():
    with pytest.raises(ConfigurationError):
        MotionTable(MotionModel.UNKNOWN, 10, 72)
    with pytest.raises(ConfigurationError):
        MotionTable("DUBIN", 10, 72)
    with pytest.raises(ConfigurationError):
        MotionTable(MotionModel.DUBIN, 10, 0)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
