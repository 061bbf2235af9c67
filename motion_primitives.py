# motion_primitives.py
"""
Motion primitive tables for the lattice search.

Each table is a fixed set of relative moves usable from any grid cell. All
lengths are in grid cells; headings are stored as bins of size 2*pi / N.
Primitives are expressed in the frame of the current heading (x forward,
y to the left) unless rotate_with_heading is False.

Models:
    DUBIN          ackermann, forward only            (3 primitives)
    REEDS_SHEPP    ackermann, forward and reverse     (6 primitives)
    BALKCOM_MASON  differential drive / omni          (8 primitives)
    MOORE          8-connected grid, heading ignored  (8 primitives)
    VON_NEUMANN    4-connected grid, heading ignored  (4 primitives)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import List, NamedTuple, Tuple

from planner_config import ConfigurationError

SQRT_2 = math.sqrt(2.0)


class MotionModel(Enum):
    UNKNOWN = "UNKNOWN"
    VON_NEUMANN = "VON_NEUMANN"
    MOORE = "MOORE"
    DUBIN = "DUBIN"
    REEDS_SHEPP = "REEDS_SHEPP"
    BALKCOM_MASON = "BALKCOM_MASON"


# Substituted for unrecognized model names
FALLBACK_MOTION_MODEL = MotionModel.BALKCOM_MASON

GRID_MOTION_MODELS = (MotionModel.VON_NEUMANN, MotionModel.MOORE)


class MotionModelSelection(NamedTuple):
    """Result of looking up a motion model by name."""
    model: MotionModel
    recognized: bool


def motion_model_from_string(name: str) -> MotionModelSelection:
    """
    Look up a motion model by its configuration name.

    Unrecognized names are not an error: the selection carries the fallback
    model and recognized=False so the caller can warn and carry on.
    """
    key = str(name).strip().upper()
    model = MotionModel.__members__.get(key)
    if model is None or model is MotionModel.UNKNOWN:
        return MotionModelSelection(FALLBACK_MOTION_MODEL, False)
    return MotionModelSelection(model, True)


class Pose(NamedTuple):
    """Continuous grid position with a heading bin."""
    x: float
    y: float
    theta: int


@dataclass(frozen=True)
class MotionPrimitive:
    delta_x: float  # cells, along the heading
    delta_y: float  # cells, to the left of the heading
    delta_theta: float  # radians
    delta_bins: int  # heading bins, delta_theta == delta_bins * bin_size
    length: float  # travelled distance in cells
    reverse: bool = False
    rotate_with_heading: bool = True
    name: str = ""


def minimum_turning_angle(min_turning_radius: float, bin_size: float) -> Tuple[int, float]:
    """
    Smallest heading change a curvature-constrained primitive may make.

    The arc must leave the current cell even diagonally, so its chord on the
    turning circle is at least sqrt(2):

        chord = 2 * R * sin(angle / 2) >= sqrt(2)
        angle >= 2 * asin(sqrt(2) / (2 * R))

    The angle is then rounded up to a whole number of heading bins.

    Returns
    -------
    increments : int
        Number of heading bins per turn (>= 1)
    angle : float
        increments * bin_size, in radians
    """
    # Below sqrt(2)/2 no arc of the circle has a chord of sqrt(2)
    radius = max(float(min_turning_radius), SQRT_2 / 2.0)
    angle = 2.0 * math.asin(min(1.0, SQRT_2 / (2.0 * radius)))
    increments = max(1, int(math.ceil(angle / bin_size)))
    return increments, increments * bin_size


def _dubin_primitives(min_turning_radius, bin_size):
    increments, angle = minimum_turning_angle(min_turning_radius, bin_size)
    radius = max(float(min_turning_radius), SQRT_2 / 2.0)
    # Right triangle inside the turning circle: the chord end sits R*sin(a)
    # ahead and R*(1 - cos(a)) to the side of the start.
    delta_x = radius * math.sin(angle)
    delta_y = radius * (1.0 - math.cos(angle))
    arc = radius * angle
    return [
        MotionPrimitive(SQRT_2, 0.0, 0.0, 0, SQRT_2, name="forward"),
        MotionPrimitive(delta_x, delta_y, angle, increments, arc, name="forward_left"),
        MotionPrimitive(delta_x, -delta_y, -angle, -increments, arc, name="forward_right"),
    ]


def _reeds_shepp_primitives(min_turning_radius, bin_size):
    prims = _dubin_primitives(min_turning_radius, bin_size)
    _, left, _ = prims
    # Reversing along the same turning circles
    prims += [
        MotionPrimitive(-SQRT_2, 0.0, 0.0, 0, SQRT_2, reverse=True, name="backward"),
        MotionPrimitive(-left.delta_x, left.delta_y, -left.delta_theta, -left.delta_bins,
                        left.length, reverse=True, name="backward_left"),
        MotionPrimitive(-left.delta_x, -left.delta_y, left.delta_theta, left.delta_bins,
                        left.length, reverse=True, name="backward_right"),
    ]
    return prims


def _balkcom_mason_primitives(bin_size):
    return [
        MotionPrimitive(SQRT_2, 0.0, 0.0, 0, SQRT_2, name="forward"),
        MotionPrimitive(-SQRT_2, 0.0, 0.0, 0, SQRT_2, reverse=True, name="backward"),
        MotionPrimitive(0.0, 0.0, bin_size, 1, 0.0, name="spin_left"),
        MotionPrimitive(0.0, 0.0, -bin_size, -1, 0.0, name="spin_right"),
        MotionPrimitive(SQRT_2, 0.0, bin_size, 1, SQRT_2, name="forward_spin_left"),
        MotionPrimitive(-SQRT_2, 0.0, bin_size, 1, SQRT_2, reverse=True, name="backward_spin_left"),
        MotionPrimitive(SQRT_2, 0.0, -bin_size, -1, SQRT_2, name="forward_spin_right"),
        MotionPrimitive(-SQRT_2, 0.0, -bin_size, -1, SQRT_2, reverse=True, name="backward_spin_right"),
    ]


def _grid_primitives(connect_diagonals):
    offsets = [(1, 0), (0, 1), (-1, 0), (0, -1)]
    if connect_diagonals:
        offsets += [(1, 1), (-1, 1), (-1, -1), (1, -1)]
    return [MotionPrimitive(float(dx), float(dy), 0.0, 0, math.hypot(dx, dy),
                            rotate_with_heading=False, name=f"grid_{dx}_{dy}")
            for dx, dy in offsets]


class MotionTable:
    """
    Immutable set of motion primitives for one planner configuration.

    Built once when the planner is configured and shared read-only by every
    search; it holds no per-search state.
    """

    def __init__(self, motion_model: MotionModel, size_x: int,
                 num_angle_quantization: int, min_turning_radius: float = 1.0):
        """
        Parameters
        ----------
        motion_model : MotionModel
            Vehicle kinematic class
        size_x : int
            Width of the grid in cells (used for index encoding)
        num_angle_quantization : int
            Number of heading bins
        min_turning_radius : float
            Minimum turning radius in grid cells (curvature-constrained models)
        """
        if not isinstance(motion_model, MotionModel) or motion_model is MotionModel.UNKNOWN:
            raise ConfigurationError(
                f"Invalid motion model {motion_model!r}. Please select between"
                " DUBIN (Ackermann forward only),"
                " REEDS_SHEPP (Ackermann forward and back),"
                " BALKCOM_MASON (Differential drive and omnidirectional),"
                " MOORE or VON_NEUMANN (2D grid).")
        if num_angle_quantization < 1:
            raise ConfigurationError(
                f"num_angle_quantization must be >= 1, got {num_angle_quantization}")

        if motion_model in GRID_MOTION_MODELS:
            num_angle_quantization = 1

        self.motion_model = motion_model
        self.size_x = int(size_x)
        self.num_angle_quantization = int(num_angle_quantization)
        self.min_turning_radius = float(min_turning_radius)
        self.bin_size = 2.0 * math.pi / self.num_angle_quantization

        if motion_model is MotionModel.DUBIN:
            prims = _dubin_primitives(self.min_turning_radius, self.bin_size)
        elif motion_model is MotionModel.REEDS_SHEPP:
            prims = _reeds_shepp_primitives(self.min_turning_radius, self.bin_size)
        elif motion_model is MotionModel.BALKCOM_MASON:
            prims = _balkcom_mason_primitives(self.bin_size)
        elif motion_model is MotionModel.MOORE:
            prims = _grid_primitives(connect_diagonals=True)
        else:
            prims = _grid_primitives(connect_diagonals=False)
        self.projections = tuple(prims)

    def __len__(self):
        return len(self.projections)

    def get_projection(self, pose: Pose, motion_index: int) -> Pose:
        """Apply one primitive to a pose."""
        prim = self.projections[motion_index]
        if prim.rotate_with_heading:
            heading = pose.theta * self.bin_size
            cos_h = math.cos(heading)
            sin_h = math.sin(heading)
            x = pose.x + prim.delta_x * cos_h - prim.delta_y * sin_h
            y = pose.y + prim.delta_x * sin_h + prim.delta_y * cos_h
        else:
            x = pose.x + prim.delta_x
            y = pose.y + prim.delta_y
        theta = (pose.theta + prim.delta_bins) % self.num_angle_quantization
        return Pose(x, y, theta)

    def get_projections(self, pose: Pose) -> List[Pose]:
        return [self.get_projection(pose, i) for i in range(len(self.projections))]
