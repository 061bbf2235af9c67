# path_smoother.py
"""
Costmap-aware path smoothing as a nonlinear least-squares problem.

The interior points of a world-frame polyline are moved to minimise

    w_smooth * |p[i-1] - 2 p[i] + p[i+1]|^2          (smoothness)
  + w_curve  * max(0, kappa_i - kappa_max)^2           (curvature limit)
  + w_dist   * |p[i] - p_orig[i]|^2                    (stay near the search path)
  + w_cost   * max(0, cost(p[i]) - cost_threshold)^2   (obstacle proximity)

with the two endpoints pinned. Smoothed points that land in lethal cells are
anchored at their original position and the problem is solved again.
"""

from typing import Tuple

import numpy as np
from scipy.ndimage import map_coordinates
from scipy.optimize import least_squares

from collision import colliding_points
from costmap import Costmap, UNKNOWN
from planner_config import SmootherParams, OptimizerParams


def _cost_field(costmap: Costmap) -> np.ndarray:
    field = costmap.costs.astype(float)
    # Unknown cells carry no cost here
    field[costmap.costs == UNKNOWN] = 0.0
    return field


def _interpolate_cost(field: np.ndarray, costmap: Costmap, points: np.ndarray) -> np.ndarray:
    """Bilinear cost at world points, sampled between cell centres."""
    mx = (points[:, 0] - costmap.origin_x) / costmap.resolution - 0.5
    my = (points[:, 1] - costmap.origin_y) / costmap.resolution - 0.5
    return map_coordinates(field, [my, mx], order=1, mode='nearest')


def path_curvature(points: np.ndarray) -> np.ndarray:
    """
    Discrete curvature at each interior point: turning angle over the length
    of the incoming segment.
    """
    d1 = points[1:-1] - points[:-2]
    d2 = points[2:] - points[1:-1]
    cross = d1[:, 0] * d2[:, 1] - d1[:, 1] * d2[:, 0]
    dot = np.sum(d1 * d2, axis=1)
    turn = np.abs(np.arctan2(cross, dot))
    return turn / np.maximum(np.linalg.norm(d1, axis=1), 1e-6)


def _residuals(free_values, fixed, anchor, original, field, costmap, params):
    pts = anchor.copy()
    pts[~fixed] = free_values.reshape(-1, 2)

    second_diff = pts[:-2] - 2.0 * pts[1:-1] + pts[2:]
    r_smooth = np.sqrt(params.smooth_weight) * second_diff.ravel()

    excess_curvature = np.maximum(0.0, path_curvature(pts) - params.max_curvature)
    r_curve = np.sqrt(params.curvature_weight) * excess_curvature

    r_dist = np.sqrt(params.distance_weight) * (pts[1:-1] - original[1:-1]).ravel()

    cost = _interpolate_cost(field, costmap, pts[1:-1])
    r_cost = np.sqrt(params.costmap_weight) * np.maximum(0.0, cost - params.cost_threshold)

    return np.concatenate([r_smooth, r_curve, r_dist, r_cost])


def _optimize(original, fixed, field, costmap, smoother_params, optimizer_params):
    free = ~fixed
    x0 = original[free].ravel()
    try:
        result = least_squares(
            _residuals, x0,
            args=(fixed, original, original, field, costmap, smoother_params),
            method='trf',
            max_nfev=optimizer_params.max_iterations,
            ftol=optimizer_params.fn_tol,
            xtol=optimizer_params.param_tol,
            gtol=optimizer_params.gradient_tol)
    except ValueError as e:
        print(f"Warning: smoother rejected the problem: {e}")
        return False, original

    if not result.success or not np.all(np.isfinite(result.x)):
        return False, original

    smoothed = original.copy()
    smoothed[free] = result.x.reshape(-1, 2)
    return True, smoothed


def smooth_path(points, costmap: Costmap,
                smoother_params: SmootherParams = None,
                optimizer_params: OptimizerParams = None) -> Tuple[bool, np.ndarray]:
    """
    Smooth a world-frame path.

    Parameters
    ----------
    points : array-like
        (n, 2) world points, start first
    costmap : Costmap
        Map used for the obstacle term and the collision re-check
    smoother_params : SmootherParams
        Cost weights
    optimizer_params : OptimizerParams
        Solver termination settings and re-anchoring attempts

    Returns
    -------
    success : bool
        False if the solver did not converge, collisions remained or every
        interior point had to be re-anchored
    points : np.ndarray
        Smoothed points on success, otherwise a copy of the input
    """
    smoother_params = smoother_params or SmootherParams()
    optimizer_params = optimizer_params or OptimizerParams()

    original = np.array(points, dtype=float).reshape(-1, 2)
    if len(original) < 3:
        return False, original

    fixed = np.zeros(len(original), dtype=bool)
    fixed[0] = True
    fixed[-1] = True
    field = _cost_field(costmap)

    for attempt in range(optimizer_params.max_reanchor_attempts + 1):
        # Nothing left to move
        if fixed.all():
            return False, original

        ok, smoothed = _optimize(original, fixed, field, costmap,
                                 smoother_params, optimizer_params)
        if not ok:
            return False, original

        in_collision = [i for i in colliding_points(smoothed, costmap) if not fixed[i]]
        if not in_collision:
            return True, smoothed

        # Pin the offending points to the collision-free search path and retry
        fixed[in_collision] = True
        print(f"Smoothed path in collision at {len(in_collision)} points, "
              f"re-anchoring (attempt {attempt + 1}).")

    return False, original
