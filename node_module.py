# node_module.py
"""
Search vertex of the (x, y, heading-bin) lattice.

A node is keyed by its flat index
    index = theta + x * N + y * size_x * N
with N the number of heading bins. Nodes link to their predecessor by index,
never by reference, so a finished search is just a dict of nodes.
"""

import math
from typing import Callable, List, Optional, Tuple

from costmap import INSCRIBED, OCCUPIED, UNKNOWN
from motion_primitives import MotionPrimitive, MotionTable, Pose


def get_index(x: int, y: int, theta: int, size_x: int, num_angle_quantization: int) -> int:
    """Flat index of a discrete state."""
    return theta + x * num_angle_quantization + y * size_x * num_angle_quantization


def get_coords(index: int, size_x: int, num_angle_quantization: int) -> Tuple[int, int, int]:
    """Inverse of get_index: (x, y, theta) of a flat index."""
    theta = index % num_angle_quantization
    x = (index // num_angle_quantization) % size_x
    y = index // (num_angle_quantization * size_x)
    return x, y, theta


class NodeSE2:
    def __init__(self, cell_cost: float, index: int):
        self.parent: Optional[int] = None
        self.pose: Optional[Pose] = None
        self.cell_cost = float(cell_cost)
        self.accumulated_cost = math.inf
        self.index = index
        self.visited = False
        self.queued = False

    def reset(self, cell_cost: float, index: int):
        """Return the node to its freshly allocated state."""
        self.parent = None
        self.pose = None
        self.cell_cost = float(cell_cost)
        self.accumulated_cost = math.inf
        self.index = index
        self.visited = False
        self.queued = False

    def is_valid(self, traverse_unknown: bool) -> bool:
        if self.cell_cost == OCCUPIED or self.cell_cost == INSCRIBED:
            return False
        if self.cell_cost == UNKNOWN and not traverse_unknown:
            return False
        return True

    @staticmethod
    def heuristic_cost(node_pose: Pose, goal_pose: Pose) -> float:
        """
        Straight-line distance in cells. Heading is ignored, so for
        curvature-constrained models this can underestimate badly and is not
        a tight bound on the true cost of a sharp goal turn.
        """
        return math.hypot(goal_pose.x - node_pose.x, goal_pose.y - node_pose.y)

    def get_neighbors(
        self,
        motion_table: MotionTable,
        validity_checker: Callable[[int], Optional["NodeSE2"]],
    ) -> List[Tuple["NodeSE2", Pose, MotionPrimitive]]:
        """
        Expand this node with every primitive of the motion table.

        Parameters
        ----------
        motion_table : MotionTable
            Primitive set of the current configuration
        validity_checker : callable
            Maps a flat index to a ready-to-use node, or None when the index is
            out of range, blocked or already expanded

        Returns
        -------
        list
            (neighbor, projected_pose, primitive) for every accepted projection.
            The projected pose is only written onto the neighbor by the search
            once it improves that neighbor's cost.
        """
        neighbors = []
        for motion_index, primitive in enumerate(motion_table.projections):
            pose = motion_table.get_projection(self.pose, motion_index)
            cell_x = int(math.floor(pose.x))
            cell_y = int(math.floor(pose.y))
            # Off the left / right edge the flat index would wrap into the
            # neighbouring row. The top edge is caught by the index range.
            if cell_x < 0 or cell_x >= motion_table.size_x or cell_y < 0:
                continue
            index = get_index(cell_x, cell_y, pose.theta,
                              motion_table.size_x, motion_table.num_angle_quantization)
            neighbor = validity_checker(index)
            if neighbor is not None:
                neighbors.append((neighbor, pose, primitive))
        return neighbors
