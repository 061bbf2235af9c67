# collision.py

import numpy as np

from costmap import Costmap, INSCRIBED, OCCUPIED, UNKNOWN


def _lethal(cost, traverse_unknown):
    if cost == OCCUPIED or cost == INSCRIBED:
        return True
    return cost == UNKNOWN and not traverse_unknown


def point_collision_free(point, costmap: Costmap, traverse_unknown=True) -> bool:
    """
    Check a single world point against the costmap.

    Points off the grid are treated as in collision.
    """
    cell = costmap.world_to_map_index(point[0], point[1])
    if cell is None:
        return False
    return not _lethal(costmap.get_cost(*cell), traverse_unknown)


def line_collision_free(x1, x2, costmap: Costmap, traverse_unknown=True) -> bool:
    """Return True if the straight segment x1 -> x2 crosses no lethal cell."""
    x1 = np.asarray(x1, dtype=float)[:2]
    x2 = np.asarray(x2, dtype=float)[:2]
    length = np.linalg.norm(x2 - x1)
    # Half-cell sampling
    n_steps = max(1, int(np.ceil(length / (0.5 * costmap.resolution))))
    for t in np.linspace(0.0, 1.0, n_steps + 1):
        if not point_collision_free(x1 + t * (x2 - x1), costmap, traverse_unknown):
            return False
    return True


def colliding_points(points, costmap: Costmap, traverse_unknown=True) -> np.ndarray:
    """Indices of the path points that lie in a lethal cell or off the grid."""
    points = np.asarray(points, dtype=float)
    return np.array([i for i, p in enumerate(points)
                     if not point_collision_free(p, costmap, traverse_unknown)], dtype=int)


def path_collision_free(points, costmap: Costmap, traverse_unknown=True) -> bool:
    """Check every segment of a polyline."""
    points = np.asarray(points, dtype=float)
    if len(points) == 1:
        return point_collision_free(points[0], costmap, traverse_unknown)
    for i in range(len(points) - 1):
        if not line_collision_free(points[i], points[i + 1], costmap, traverse_unknown):
            return False
    return True
