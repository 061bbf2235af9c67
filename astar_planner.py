"""
A* search over the (x, y, heading-bin) lattice.
Expands nodes with the primitives of a MotionTable and supports iteration,
on-approach and time budgets plus tolerance-based early acceptance.
"""

import heapq
import itertools
import math
import sys
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

import planner_config as cfg
from costmap import MAX_NON_OBSTACLE
from motion_primitives import MotionPrimitive, MotionTable, Pose
from node_module import NodeSE2, get_index

# Stand-in for "no limit" on iteration budgets
UNBOUNDED = sys.maxsize


class SearchStatus(Enum):
    """Outcome of a search."""
    NOT_STARTED = "not_started"
    PATH_FOUND = "path_found"
    NO_PATH = "no_path"
    ITERATIONS_EXCEEDED = "iterations_exceeded"
    TIME_EXPIRED = "time_expired"


class InvalidSearchUse(RuntimeError):
    """The search was called in a state it can not run from."""


@dataclass
class SearchResult:
    status: SearchStatus
    path: List[int] = field(default_factory=list)  # node indices, goal -> start
    iterations: int = 0

    @property
    def success(self) -> bool:
        return self.status == SearchStatus.PATH_FOUND


class AStarAlgorithm:
    """A* planner over a costmap snapshot. One instance serves one search at a time."""

    def __init__(self, motion_table: MotionTable,
                 travel_cost_scale: float = cfg.TRAVEL_COST_SCALE,
                 allow_unknown: bool = cfg.ALLOW_UNKNOWN,
                 max_iterations: int = cfg.MAX_ITERATIONS,
                 max_on_approach_iterations: int = cfg.MAX_ON_APPROACH_ITERATIONS,
                 max_planning_time_s: float = cfg.MAX_PLANNING_TIME):
        """
        Parameters
        ----------
        motion_table : MotionTable
            Shared, read-only primitive set
        travel_cost_scale : float
            Weight in [0, 1] of cell cost relative to distance
        allow_unknown : bool
            Whether UNKNOWN cells may be traversed
        max_iterations : int
            Expansion budget, <= 0 for unbounded
        max_on_approach_iterations : int
            Expansions allowed once within tolerance of the goal, <= 0 for unbounded
        max_planning_time_s : float
            Wall clock budget in seconds, <= 0 for unbounded
        """
        if not isinstance(motion_table, MotionTable):
            raise cfg.ConfigurationError(
                f"A* requires a MotionTable, got {type(motion_table).__name__}")
        if not 0.0 <= travel_cost_scale <= 1.0:
            raise cfg.ConfigurationError(
                f"Travel cost scale must be between 0 and 1, got {travel_cost_scale}.")

        self.motion_table = motion_table
        self.travel_cost_scale = float(travel_cost_scale)
        self.allow_unknown = bool(allow_unknown)
        self.max_iterations = max_iterations if max_iterations > 0 else UNBOUNDED
        self.max_on_approach_iterations = (
            max_on_approach_iterations if max_on_approach_iterations > 0 else UNBOUNDED)
        self.max_planning_time_s = max_planning_time_s if max_planning_time_s > 0 else math.inf

        # Per-search state
        self.graph: Dict[int, NodeSE2] = {}
        self.open_set = []
        self.costs: Optional[np.ndarray] = None
        self.size_x = 0
        self.size_y = 0
        self.num_angle_quantization = 0
        self.start: Optional[NodeSE2] = None
        self.goal: Optional[NodeSE2] = None
        self.goal_pose: Optional[Pose] = None
        self.iterations = 0
        self.best_heuristic_node = (math.inf, None)
        self._counter = itertools.count()

    def get_max_iterations(self) -> int:
        return self.max_iterations

    def create_graph(self, size_x: int, size_y: int, num_angle_quantization: int, costs):
        """
        Bind the search to a costmap snapshot and drop all nodes of a previous search.

        Parameters
        ----------
        costs : array-like
            Flat or (size_y, size_x) array of cell costs
        """
        if size_x != self.motion_table.size_x:
            raise InvalidSearchUse(
                f"Grid width {size_x} does not match the motion table width "
                f"{self.motion_table.size_x}")
        if num_angle_quantization != self.motion_table.num_angle_quantization:
            raise InvalidSearchUse(
                f"{num_angle_quantization} heading bins requested but the motion table "
                f"uses {self.motion_table.num_angle_quantization}")
        costs = np.asarray(costs).reshape(-1)
        if costs.size != size_x * size_y:
            raise InvalidSearchUse(
                f"Cost buffer holds {costs.size} cells, expected {size_x * size_y}")

        self.costs = costs
        self.size_x = int(size_x)
        self.size_y = int(size_y)
        self.num_angle_quantization = int(num_angle_quantization)
        self.graph = {}
        self.open_set = []
        self.start = None
        self.goal = None
        self.goal_pose = None
        self.iterations = 0
        self.best_heuristic_node = (math.inf, None)

    def _graph_size(self) -> int:
        return self.size_x * self.size_y * self.num_angle_quantization

    def _add_to_graph(self, index: int) -> NodeSE2:
        """Return the node for an index, allocating it on first use."""
        node = self.graph.get(index)
        if node is None:
            cell_cost = self.costs[index // self.num_angle_quantization]
            node = NodeSE2(cell_cost, index)
            self.graph[index] = node
        return node

    def _set_endpoint(self, mx: float, my: float, theta: int, name: str) -> NodeSE2:
        if self.costs is None:
            raise InvalidSearchUse(f"Graph must be created before setting the {name}")
        cell_x = int(math.floor(mx))
        cell_y = int(math.floor(my))
        if not (0 <= cell_x < self.size_x and 0 <= cell_y < self.size_y):
            raise InvalidSearchUse(f"{name.capitalize()} ({mx:.2f}, {my:.2f}) is outside the grid")
        theta = int(theta) % self.num_angle_quantization
        index = get_index(cell_x, cell_y, theta, self.size_x, self.num_angle_quantization)
        node = self._add_to_graph(index)
        node.pose = Pose(float(mx), float(my), theta)
        return node

    def set_start(self, mx: float, my: float, theta: int):
        """Start pose in continuous grid coordinates and a heading bin."""
        self.start = self._set_endpoint(mx, my, theta, "start")

    def set_goal(self, mx: float, my: float, theta: int):
        """Goal pose in continuous grid coordinates and a heading bin."""
        self.goal = self._set_endpoint(mx, my, theta, "goal")
        # The goal node's pose is overwritten when the search enters its cell
        self.goal_pose = self.goal.pose

    def _check_inputs(self):
        if self.costs is None or self._graph_size() == 0:
            raise InvalidSearchUse("Failed to compute path, no costmap given.")
        if self.start is None:
            raise InvalidSearchUse("Failed to compute path, no valid start.")
        if self.goal is None:
            raise InvalidSearchUse("Failed to compute path, no valid goal.")

    def _validity_checker(self, index: int) -> Optional[NodeSE2]:
        """Node for a neighbor index, or None if it can not be expanded into."""
        if index < 0 or index >= self._graph_size():
            return None
        node = self._add_to_graph(index)
        if node.visited or not node.is_valid(self.allow_unknown):
            return None
        return node

    def _traversal_cost(self, neighbor: NodeSE2, primitive: MotionPrimitive) -> float:
        """Cost of moving into a neighbor with one primitive."""
        normalized_cost = neighbor.cell_cost / MAX_NON_OBSTACLE
        # Quadratic in normalized cell cost
        step = cfg.COST_STEP * primitive.length * (
            1.0 + self.travel_cost_scale * normalized_cost * normalized_cost)
        turn = cfg.COST_TURN * abs(primitive.delta_theta)
        reverse = cfg.COST_REVERSE if primitive.reverse else 0.0
        return step + turn + reverse

    def _add_to_queue(self, node: NodeSE2, heuristic: float):
        # Ties on f go to the node closer to the goal, then first come first served
        heapq.heappush(self.open_set, (node.accumulated_cost + heuristic, heuristic,
                                       next(self._counter), node.index))
        node.queued = True

    def _get_next_node(self) -> NodeSE2:
        _, _, _, index = heapq.heappop(self.open_set)
        return self.graph[index]

    def _has_open_nodes(self) -> bool:
        return any(not self.graph[entry[3]].visited for entry in self.open_set)

    def _backtrace_path(self, node: NodeSE2) -> List[int]:
        """Indices from node back to the start (goal -> start order)."""
        path = []
        current = node
        while current is not None:
            path.append(current.index)
            current = self.graph[current.parent] if current.parent is not None else None
        return path

    def create_path(self, tolerance: float = 0.0) -> SearchResult:
        """
        Run the search.

        Parameters
        ----------
        tolerance : float
            Goal radius in grid cells within which the closest node is accepted
            when the exact goal can not be reached; 0 disables it

        Returns
        -------
        SearchResult
            Path in goal -> start order on success. On failure the status tells
            an exhausted open set (NO_PATH) apart from a spent budget.
        """
        self._check_inputs()

        self.open_set = []
        self.iterations = 0
        approach_iterations = 0
        start_time = time.perf_counter()

        self.start.accumulated_cost = 0.0
        self.start.parent = None
        start_heuristic = NodeSE2.heuristic_cost(self.start.pose, self.goal_pose)
        self._add_to_queue(self.start, start_heuristic)
        self.best_heuristic_node = (start_heuristic, self.start.index)

        while self.iterations < self.max_iterations and self.open_set:
            current = self._get_next_node()

            # Stale queue entry of an already expanded node
            if current.visited:
                continue

            self.iterations += 1
            current.visited = True
            current.queued = False

            if current.index == self.goal.index:
                return SearchResult(SearchStatus.PATH_FOUND,
                                    self._backtrace_path(current), self.iterations)

            if self.best_heuristic_node[0] < tolerance:
                approach_iterations += 1
                if (approach_iterations > self.max_on_approach_iterations or
                        self.iterations + 1 == self.max_iterations):
                    return self._best_node_result()

            if self.iterations % cfg.ITERATIONS_PER_CHECK == 0:
                if time.perf_counter() - start_time >= self.max_planning_time_s:
                    if self.best_heuristic_node[0] < tolerance:
                        return self._best_node_result()
                    return SearchResult(SearchStatus.TIME_EXPIRED, [], self.iterations)

            for neighbor, pose, primitive in current.get_neighbors(
                    self.motion_table, self._validity_checker):
                g_cost = current.accumulated_cost + self._traversal_cost(neighbor, primitive)
                if g_cost < neighbor.accumulated_cost:
                    neighbor.accumulated_cost = g_cost
                    neighbor.parent = current.index
                    neighbor.pose = pose
                    heuristic = NodeSE2.heuristic_cost(pose, self.goal_pose)
                    self._add_to_queue(neighbor, heuristic)
                    if heuristic < self.best_heuristic_node[0]:
                        self.best_heuristic_node = (heuristic, neighbor.index)

        if self.best_heuristic_node[0] < tolerance:
            return self._best_node_result()

        if self.iterations >= self.max_iterations and self._has_open_nodes():
            return SearchResult(SearchStatus.ITERATIONS_EXCEEDED, [], self.iterations)
        return SearchResult(SearchStatus.NO_PATH, [], self.iterations)

    def _best_node_result(self) -> SearchResult:
        best = self.graph[self.best_heuristic_node[1]]
        return SearchResult(SearchStatus.PATH_FOUND, self._backtrace_path(best), self.iterations)

    def get_planning_info(self) -> dict:
        """Statistics of the last search."""
        return {
            'iterations': self.iterations,
            'nodes_allocated': len(self.graph),
            'open_set_size': len(self.open_set),
            'best_heuristic': self.best_heuristic_node[0],
        }
