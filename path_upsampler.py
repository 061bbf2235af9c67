# path_upsampler.py
"""
Increase the point density of a smoothed path.

ratio - 1 points are inserted between every pair of input points. The result
is the solution of a QP that keeps the input points fixed and places the new
ones on a smooth curve:

    min  w_smooth * sum |p[j-1] - 2 p[j] + p[j+1]|^2 + w_dist * sum |p[j] - p_lin[j]|^2
    s.t. p[k * ratio] = input[k]

where p_lin is the linear interpolation of the input. Solved with OSQP
through CasADi.
"""

from typing import Tuple

import casadi as ca
import numpy as np

from planner_config import SmootherParams, OptimizerParams, VALID_UPSAMPLING_RATIOS


def _second_difference_matrix(m: int) -> np.ndarray:
    D = np.zeros((max(m - 2, 0), m))
    for i in range(m - 2):
        D[i, i] = 1.0
        D[i, i + 1] = -2.0
        D[i, i + 2] = 1.0
    return D


def upsample_path(points, smoother_params: SmootherParams = None,
                  optimizer_params: OptimizerParams = None,
                  ratio: int = 2) -> Tuple[bool, np.ndarray]:
    """
    Parameters
    ----------
    points : array-like
        (n, 2) world points
    smoother_params : SmootherParams
        smooth_weight and distance_weight are used
    optimizer_params : OptimizerParams
        qp_max_iterations bounds the OSQP iterations
    ratio : int
        2 or 4

    Returns
    -------
    success : bool
        False if the QP could not be solved
    points : np.ndarray
        ((n - 1) * ratio + 1, 2) points on success, otherwise a copy of the input
    """
    if ratio not in VALID_UPSAMPLING_RATIOS:
        raise ValueError(f"Upsampling ratio must be one of {VALID_UPSAMPLING_RATIOS}, got {ratio}")
    smoother_params = smoother_params or SmootherParams()
    optimizer_params = optimizer_params or OptimizerParams()

    original = np.array(points, dtype=float).reshape(-1, 2)
    n = len(original)
    if n < 2:
        return False, original

    m = (n - 1) * ratio + 1
    t = np.arange(m) / ratio
    p_lin = np.column_stack([np.interp(t, np.arange(n), original[:, 0]),
                             np.interp(t, np.arange(n), original[:, 1])])

    # z = [x_0..x_{m-1}, y_0..y_{m-1}]
    D = _second_difference_matrix(m)
    Q = 2.0 * (smoother_params.smooth_weight * D.T @ D +
               smoother_params.distance_weight * np.eye(m))
    H = np.kron(np.eye(2), Q)
    q = -2.0 * smoother_params.distance_weight * np.concatenate([p_lin[:, 0], p_lin[:, 1]])

    # Input points are equality constraints
    fixed = np.arange(0, m, ratio)
    A = np.zeros((2 * n, 2 * m))
    A[np.arange(n), fixed] = 1.0
    A[n + np.arange(n), m + fixed] = 1.0
    bounds = np.concatenate([original[:, 0], original[:, 1]])

    x_var = ca.SX.sym('x', 2 * m)
    qp_prob = {
        'x': x_var,
        'f': 0.5 * ca.mtimes([x_var.T, ca.DM(H), x_var]) + ca.dot(ca.DM(q), x_var),
        'g': ca.mtimes(ca.DM(A), x_var)
    }
    opts = {
        'error_on_fail': False,
        'osqp': {
            'verbose': False,
            'polish': True,
            'max_iter': int(optimizer_params.qp_max_iterations),
            'eps_abs': 1e-6,
            'eps_rel': 1e-6,
        }
    }
    qpsolver = ca.qpsol('upsampler', 'osqp', qp_prob, opts)
    sol = qpsolver(lbg=ca.DM(bounds), ubg=ca.DM(bounds))

    return_status = qpsolver.stats().get('return_status', 'unknown')
    if return_status not in ['solved', 'solved inaccurate']:
        print(f"Warning: upsampling QP failed. Return code: {return_status}")
        return False, original

    z = np.array(sol['x']).reshape(-1)
    if np.any(~np.isfinite(z)):
        print("Warning: NaN detected in upsampled path")
        return False, original

    upsampled = np.column_stack([z[:m], z[m:]])
    # Remove solver tolerance from the points that were fixed anyway
    upsampled[fixed] = original
    return True, upsampled
