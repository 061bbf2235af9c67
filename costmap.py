# costmap.py
"""
2D occupancy grid used as the planning snapshot.

Costs are stored row-major as costs[my, mx] so that the flat index of a cell
is my * size_x + mx.
"""

import json
import threading
from typing import Optional, Tuple

import numpy as np

# Reserved cell costs
FREE_SPACE = 0
MAX_NON_OBSTACLE = 252
INSCRIBED = 253
OCCUPIED = 254
UNKNOWN = 255


class Costmap:
    """Grid of traversal costs with an affine map to world coordinates."""

    def __init__(self, costs, resolution: float = 1.0,
                 origin: Tuple[float, float] = (0.0, 0.0)):
        """
        Parameters
        ----------
        costs : array-like
            (size_y, size_x) array of cell costs in [0, 255]
        resolution : float
            Cell edge length in meters
        origin : tuple
            World position of the lower-left corner of cell (0, 0)
        """
        costs = np.asarray(costs)
        if costs.ndim != 2:
            raise ValueError(f"costs must be a 2D array, got shape {costs.shape}")
        if resolution <= 0.0:
            raise ValueError(f"resolution must be positive, got {resolution}")
        self.costs = np.ascontiguousarray(costs, dtype=np.uint8)
        self.resolution = float(resolution)
        self.origin_x = float(origin[0])
        self.origin_y = float(origin[1])
        self._mutex = threading.RLock()

    @property
    def size_x(self) -> int:
        return int(self.costs.shape[1])

    @property
    def size_y(self) -> int:
        return int(self.costs.shape[0])

    def get_mutex(self):
        """Lock guarding the cost buffer against concurrent updates."""
        return self._mutex

    def get_char_map(self) -> np.ndarray:
        """Flat view of the cost buffer, indexed by my * size_x + mx."""
        return self.costs.reshape(-1)

    def in_bounds(self, mx: int, my: int) -> bool:
        return 0 <= mx < self.size_x and 0 <= my < self.size_y

    def get_cost(self, mx: int, my: int) -> int:
        return int(self.costs[my, mx])

    def set_cost(self, mx: int, my: int, cost: int):
        with self._mutex:
            self.costs[my, mx] = cost

    def world_to_map(self, wx: float, wy: float) -> Tuple[float, float]:
        """Continuous grid coordinates of a world point (not bounds checked)."""
        return ((wx - self.origin_x) / self.resolution,
                (wy - self.origin_y) / self.resolution)

    def world_to_map_index(self, wx: float, wy: float) -> Optional[Tuple[int, int]]:
        """Cell containing a world point, or None when it lies off the grid."""
        mx, my = self.world_to_map(wx, wy)
        mx = int(np.floor(mx))
        my = int(np.floor(my))
        if not self.in_bounds(mx, my):
            return None
        return mx, my

    def map_to_world(self, mx: float, my: float) -> Tuple[float, float]:
        """World position of the centre of cell (mx, my)."""
        return (self.origin_x + (mx + 0.5) * self.resolution,
                self.origin_y + (my + 0.5) * self.resolution)

    def copy(self) -> "Costmap":
        with self._mutex:
            return Costmap(self.costs.copy(), self.resolution,
                           (self.origin_x, self.origin_y))


def _distance_to_rectangle(xs, ys, corner1, corner2):
    x_min, x_max = sorted((corner1[0], corner2[0]))
    y_min, y_max = sorted((corner1[1], corner2[1]))
    dx = np.maximum(np.maximum(x_min - xs, 0.0), xs - x_max)
    dy = np.maximum(np.maximum(y_min - ys, 0.0), ys - y_max)
    return np.hypot(dx, dy)


def rasterize_obstacles(circles, rectangles, bounds, resolution: float,
                        inscribed_radius: float = 0.0) -> Costmap:
    """
    Rasterize circle and rectangle obstacles into a costmap.

    Cells whose centre lies inside an obstacle are OCCUPIED, cells within
    inscribed_radius of one are INSCRIBED, everything else is FREE_SPACE.

    Parameters
    ----------
    circles : list
        List of (center, radius) tuples
    rectangles : list
        List of (corner1, corner2) tuples
    bounds : array-like
        [[x_min, x_max], [y_min, y_max]] world extent of the map
    resolution : float
        Cell size in meters
    inscribed_radius : float
        Width of the INSCRIBED buffer around obstacles
    """
    bounds = np.asarray(bounds, dtype=float)
    size_x = int(np.ceil((bounds[0, 1] - bounds[0, 0]) / resolution))
    size_y = int(np.ceil((bounds[1, 1] - bounds[1, 0]) / resolution))
    costmap = Costmap(np.zeros((size_y, size_x), dtype=np.uint8), resolution,
                      (bounds[0, 0], bounds[1, 0]))

    xs = bounds[0, 0] + (np.arange(size_x) + 0.5) * resolution
    ys = bounds[1, 0] + (np.arange(size_y) + 0.5) * resolution
    grid_x, grid_y = np.meshgrid(xs, ys)

    distance = np.full(grid_x.shape, np.inf)
    for center, radius in circles:
        d = np.hypot(grid_x - center[0], grid_y - center[1]) - radius
        distance = np.minimum(distance, d)
    for corner1, corner2 in rectangles:
        d = _distance_to_rectangle(grid_x, grid_y, corner1, corner2)
        distance = np.minimum(distance, d)

    costmap.costs[distance <= inscribed_radius] = INSCRIBED
    costmap.costs[distance <= 0.0] = OCCUPIED
    return costmap


def load_costmap_from_json(filename: str, resolution: float = 0.5,
                           bounds=None, inscribed_radius: float = 0.0) -> Costmap:
    """
    Build a costmap from an obstacle map file.

    The file holds 'circles' ({'center', 'radius'}) and 'rectangles'
    ({'corner1', 'corner2'}) and optionally 'bounds'.
    """
    with open(filename, 'r') as f:
        data = json.load(f)

    circles = [(np.array(c['center'], dtype=float), float(c['radius']))
               for c in data.get('circles', [])]
    rectangles = [(np.array(r['corner1'], dtype=float), np.array(r['corner2'], dtype=float))
                  for r in data.get('rectangles', [])]
    if bounds is None:
        bounds = data.get('bounds', [[0.0, 30.0], [0.0, 30.0]])

    print(f"Loaded {len(circles)} circles and {len(rectangles)} rectangles from {filename}")
    return rasterize_obstacles(circles, rectangles, bounds, resolution, inscribed_radius)
