# visualize_path.py
"""
Plan across an obstacle map and plot the costmap with the raw search path
and the refined path.

Usage:
    python visualize_path.py [map.json]

Without a map file a built-in set of obstacles is used.
"""

import sys

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.colors import ListedColormap

from costmap import rasterize_obstacles, load_costmap_from_json, OCCUPIED, INSCRIBED
from kinematic_planner import KinematicPlanner
from planner_config import PlannerConfig

MAP_BOUNDS = [[0.0, 30.0], [0.0, 30.0]]
RESOLUTION = 0.5
INSCRIBED_RADIUS = 0.5

START = (2.0, 2.0, 0.0)
GOAL = (27.0, 26.0, np.pi / 2)


def default_costmap():
    circles = [
        (np.array([10.0, 8.0]), 3.0),
        (np.array([20.0, 18.0]), 4.0),
        (np.array([8.0, 22.0]), 2.5),
    ]
    rectangles = [
        (np.array([14.0, 0.0]), np.array([16.0, 12.0])),
        (np.array([22.0, 24.0]), np.array([30.0, 25.0])),
    ]
    return rasterize_obstacles(circles, rectangles, MAP_BOUNDS, RESOLUTION, INSCRIBED_RADIUS)


def plot_plan(costmap, result, start, goal):
    fig, ax = plt.subplots(figsize=(10, 9))

    extent = [costmap.origin_x, costmap.origin_x + costmap.size_x * costmap.resolution,
              costmap.origin_y, costmap.origin_y + costmap.size_y * costmap.resolution]
    display = np.zeros(costmap.costs.shape)
    display[costmap.costs == INSCRIBED] = 1
    display[costmap.costs == OCCUPIED] = 2
    ax.imshow(display, origin='lower', extent=extent,
              cmap=ListedColormap(['white', 'lightsalmon', 'firebrick']), vmin=0, vmax=2)

    raw = np.array(result.stats.get('raw_path', []))
    if len(raw) > 0:
        ax.plot(raw[:, 0], raw[:, 1], 'o--', color='gray', markersize=3, label='Search path')

    if result.success:
        path = np.array(result.path)
        ax.plot(path[:, 0], path[:, 1], '-', color='gold', linewidth=2.5, label='Refined path')
        ax.quiver(path[::3, 0], path[::3, 1], np.cos(path[::3, 2]), np.sin(path[::3, 2]),
                  color='darkorange', scale=30, width=0.003)

    ax.plot(start[0], start[1], 'bs', markersize=10, label='Start')
    ax.plot(goal[0], goal[1], 'g*', markersize=15, label='Goal')

    status = "success" if result.success else f"failed: {result.error}"
    ax.set_title(f"Kinematic planner ({status})\n"
                 f"{result.iterations} iterations, {result.time_s * 1000:.1f} ms")
    ax.set_xlabel('X [m]')
    ax.set_ylabel('Y [m]')
    ax.set_aspect('equal')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='upper left')
    plt.tight_layout()
    plt.show()


def main():
    if len(sys.argv) > 1:
        costmap = load_costmap_from_json(sys.argv[1], RESOLUTION, MAP_BOUNDS, INSCRIBED_RADIUS)
    else:
        costmap = default_costmap()

    config = PlannerConfig(motion_model_for_search="REEDS_SHEPP",
                           angle_quantization_bins=36,
                           minimum_turning_radius=2.0,
                           tolerance=0.5,
                           upsample_path=True)
    planner = KinematicPlanner()
    planner.configure(costmap, config)

    print(f"Planning from {START} to {GOAL}...")
    result = planner.create_plan(START, GOAL)
    if result.success:
        print(f"Path found with {len(result.path)} poses in {result.time_s:.3f}s "
              f"({result.iterations} iterations)")
    else:
        print(f"No path: {result.error}")

    plot_plan(costmap, result, START, GOAL)


if __name__ == "__main__":
    main()
