# kinematic_planner.py
"""
Planner front end: one request / response cycle from a start pose to a goal
pose on a costmap.

    build graph -> set endpoints -> search -> world coordinates
        -> [smooth] -> [remove hook] -> [upsample] -> poses

Search failures are reported in the result, never raised. Only configuration
errors escape as exceptions.
"""

import math
import time
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Tuple

import numpy as np

import planner_config as cfg
from astar_planner import AStarAlgorithm, SearchStatus
from collision import path_collision_free
from costmap import Costmap
from costmap_downsampler import downsample_costmap
from motion_primitives import MotionModel, MotionTable, motion_model_from_string
from node_module import get_coords
from path_smoother import smooth_path
from path_upsampler import upsample_path
from planner_config import PlannerConfig, validate_config

FAILURE_REASONS = {
    SearchStatus.NO_PATH: "no valid path found",
    SearchStatus.ITERATIONS_EXCEEDED: "exceeded maximum iterations",
    SearchStatus.TIME_EXPIRED: "exceeded maximum planning time",
}


@dataclass(frozen=True)
class PlanResult:
    path: List[Tuple[float, float, float]]  # world (x, y, yaw)
    success: bool
    error: str = ""
    iterations: int = 0
    time_s: float = 0.0
    stats: Dict[str, Any] = field(default_factory=dict)


def remove_hook(path) -> np.ndarray:
    """
    Straighten the kink the optimizer leaves in front of the pinned goal.

    The second-to-last point is replaced by the midpoint of its neighbours
    when that midpoint is closer to the goal.
    """
    path = np.array(path, dtype=float)
    if len(path) < 3:
        return path
    interpolated = (path[-3] + path[-1]) / 2.0
    if np.sum((path[-2] - path[-1]) ** 2) > np.sum((interpolated - path[-1]) ** 2):
        path[-2] = interpolated
    return path


def decimate_path(path: list, ratio: int) -> list:
    """Keep every ratio-th element; the first and last are always kept."""
    if len(path) <= 2 or ratio <= 1:
        return list(path)
    kept = list(path[::ratio])
    if (len(path) - 1) % ratio != 0:
        kept.append(path[-1])
    return kept


def path_to_poses(points, goal_yaw: float) -> List[Tuple[float, float, float]]:
    """Attach a heading to each point: the direction of the next segment."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    poses = []
    for i, (x, y) in enumerate(points):
        if i + 1 < len(points):
            dx, dy = points[i + 1] - points[i]
            yaw = math.atan2(dy, dx)
        else:
            yaw = goal_yaw
        poses.append((float(x), float(y), float(yaw)))
    return poses


class KinematicPlanner:
    def __init__(self, name: str = "KinematicPlanner"):
        self.name = name
        self.costmap = None
        self.config = None
        self.motion_table = None
        self.smoother_params = None
        self.downsampling_factor = 1

    def configure(self, costmap: Costmap, config: PlannerConfig = None):
        """
        Validate parameters and build the motion table shared by all searches.

        Raises
        ------
        ConfigurationError
            If a parameter has no safe substitute
        """
        config = validate_config(config or PlannerConfig())

        selection = motion_model_from_string(config.motion_model_for_search)
        if not selection.recognized:
            valid = ", ".join(m.value for m in MotionModel if m is not MotionModel.UNKNOWN)
            print(f"Warning: Unable to get MotionModel search type. Given "
                  f"'{config.motion_model_for_search}', valid options are {valid}. "
                  f"Using {selection.model.value}.")

        factor = config.downsampling_factor if config.downsample_costmap else 1
        coarse_size_x = int(math.ceil(costmap.size_x / factor))
        grid_turning_radius = config.minimum_turning_radius / (costmap.resolution * factor)

        self.costmap = costmap
        self.config = config
        self.downsampling_factor = factor
        self.motion_table = MotionTable(selection.model, coarse_size_x,
                                        config.angle_quantization_bins, grid_turning_radius)
        self.smoother_params = replace(config.smoother,
                                       max_curvature=1.0 / config.minimum_turning_radius)

        print(f"Configured {self.name} with travel cost {config.travel_cost_scale:.2f}, "
              f"tolerance {config.tolerance:.2f}, maximum iterations {config.max_iterations}, "
              f"and {'allowing' if config.allow_unknown else 'not allowing'} unknown traversal. "
              f"Using motion model: {selection.model.value}.")

    def _heading_to_bin(self, yaw: float) -> int:
        n = self.motion_table.num_angle_quantization
        yaw = yaw % (2.0 * math.pi)
        return int(round(yaw / self.motion_table.bin_size)) % n

    def _failure(self, error: str, iterations: int, start_time: float, **stats) -> PlanResult:
        print(f"Warning: {self.name}: failed to create plan, {error}.")
        return PlanResult([], False, error, iterations, time.perf_counter() - start_time, stats)

    def _index_path_to_world(self, index_path, costmap: Costmap) -> np.ndarray:
        points = []
        for index in index_path:
            mx, my, _ = get_coords(index, costmap.size_x,
                                   self.motion_table.num_angle_quantization)
            point = costmap.map_to_world(mx, my)
            # In-place rotations leave the position unchanged
            if not points or point != points[-1]:
                points.append(point)
        return np.array(points, dtype=float).reshape(-1, 2)

    def create_plan(self, start, goal) -> PlanResult:
        """
        Plan from start to goal.

        Parameters
        ----------
        start, goal : array-like
            World poses [x, y, yaw]

        Returns
        -------
        PlanResult
            Poses from start to goal, empty with an error string on failure
        """
        start_time = time.perf_counter()
        if self.motion_table is None:
            return self._failure("invalid use: planner has not been configured", 0, start_time)

        with self.costmap.get_mutex():
            return self._create_plan_locked(start, goal, start_time)

    def _create_plan_locked(self, start, goal, start_time) -> PlanResult:
        config = self.config
        costmap = self.costmap
        if self.downsampling_factor > 1:
            costmap = downsample_costmap(costmap, self.downsampling_factor)

        # Fresh search state per call; only the motion table is shared
        a_star = AStarAlgorithm(
            self.motion_table,
            travel_cost_scale=config.travel_cost_scale,
            allow_unknown=config.allow_unknown,
            max_iterations=config.max_iterations,
            max_on_approach_iterations=config.max_on_approach_iterations,
            max_planning_time_s=config.max_planning_time_s)

        try:
            a_star.create_graph(costmap.size_x, costmap.size_y,
                                self.motion_table.num_angle_quantization,
                                costmap.get_char_map())
            mx, my = costmap.world_to_map(start[0], start[1])
            a_star.set_start(mx, my, self._heading_to_bin(start[2]))
            mx, my = costmap.world_to_map(goal[0], goal[1])
            a_star.set_goal(mx, my, self._heading_to_bin(goal[2]))
            result = a_star.create_path(config.tolerance / costmap.resolution)
        except RuntimeError as e:
            return self._failure(f"invalid use: {e}", a_star.iterations, start_time)

        if not result.success:
            return self._failure(FAILURE_REASONS[result.status], result.iterations, start_time,
                                 search_status=result.status.value)

        index_path = list(reversed(result.path))
        if config.smooth_path:
            # Every 4th search point, both endpoints kept
            index_path = decimate_path(index_path, cfg.PATH_DOWNSAMPLE_RATIO)
        raw_path = self._index_path_to_world(index_path, costmap)

        stats = {
            'search_status': result.status.value,
            'raw_path': [tuple(p) for p in raw_path],
            'downsampling_factor': self.downsampling_factor,
            'smoothed': False,
            'upsampled': False,
        }

        def finish(points):
            return PlanResult(path_to_poses(points, float(goal[2])), True, "",
                              result.iterations, time.perf_counter() - start_time, stats)

        if not config.smooth_path or len(raw_path) < cfg.MIN_POINTS_FOR_SMOOTHING:
            return finish(raw_path)

        ok, smoothed = smooth_path(raw_path, costmap, self.smoother_params, config.optimizer)
        if not ok:
            print(f"Warning: {self.name}: failed to smooth plan, "
                  f"the optimizer could not find a usable solution.")
            return finish(raw_path)
        smoothed = remove_hook(smoothed)
        if not path_collision_free(smoothed, costmap, config.allow_unknown):
            print(f"Warning: {self.name}: smoothed plan cuts through an obstacle, "
                  f"using the search path.")
            return finish(raw_path)
        stats['smoothed'] = True

        if config.upsample_path:
            ok, upsampled = upsample_path(smoothed, self.smoother_params, config.optimizer,
                                          config.upsampling_ratio)
            if ok:
                smoothed = upsampled
                stats['upsampled'] = True
            else:
                print(f"Warning: {self.name}: failed to upsample plan, "
                      f"the optimizer could not find a usable solution.")

        return finish(smoothed)
