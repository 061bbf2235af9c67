"""
Configuration for the kinematic grid planner.

Module-level constants are the defaults; PlannerConfig bundles them into one
object per planner instance and can be persisted as JSON.
"""

import json
from dataclasses import dataclass, field, asdict, replace


class ConfigurationError(ValueError):
    """Raised when a planner parameter can not be used at all."""


# Search parameters
TOLERANCE = 0.125  # meters, goal radius for early acceptance (0 disables)
DOWNSAMPLE_COSTMAP = True
DOWNSAMPLING_FACTOR = 1
ANGLE_QUANTIZATION_BINS = 72  # 5 degree heading bins
ALLOW_UNKNOWN = True
MAX_ITERATIONS = -1  # <= 0 means unbounded
MAX_ON_APPROACH_ITERATIONS = -1  # <= 0 means unbounded
MAX_PLANNING_TIME = -1.0  # seconds, <= 0 means unbounded
TRAVEL_COST_SCALE = 0.8
MINIMUM_TURNING_RADIUS = 1.0  # meters
MOTION_MODEL_FOR_SEARCH = "MOORE"

# Refinement
SMOOTH_PATH = True
UPSAMPLE_PATH = False
UPSAMPLING_RATIO = 2
VALID_UPSAMPLING_RATIOS = (2, 4)
PATH_DOWNSAMPLE_RATIO = 4  # keep every 4th search point before smoothing
MIN_POINTS_FOR_SMOOTHING = 4

# Cost weights for a single motion primitive
COST_STEP = 1.0  # Cost per grid cell travelled
COST_TURN = 0.5  # Cost per radian of heading change
COST_REVERSE = 0.5  # Extra cost for reversing

# Real-time budget
ITERATIONS_PER_CHECK = 100  # Check the planning clock every N iterations

# Smoother weights
SMOOTHING_WEIGHT = 10.0
CURVATURE_WEIGHT = 30.0
DISTANCE_WEIGHT = 1.0
COSTMAP_WEIGHT = 0.025
COST_THRESHOLD = 10.0  # cells cheaper than this exert no force

# Optimizer settings
OPTIMIZER_MAX_ITERATIONS = 500
OPTIMIZER_FN_TOL = 1e-7
OPTIMIZER_PARAM_TOL = 1e-8
OPTIMIZER_GRADIENT_TOL = 1e-10
MAX_REANCHOR_ATTEMPTS = 3
QP_MAX_ITERATIONS = 10000


@dataclass
class SmootherParams:
    """Weights of the smoothing / upsampling cost functional."""
    smooth_weight: float = SMOOTHING_WEIGHT
    curvature_weight: float = CURVATURE_WEIGHT
    distance_weight: float = DISTANCE_WEIGHT
    costmap_weight: float = COSTMAP_WEIGHT
    cost_threshold: float = COST_THRESHOLD
    max_curvature: float = 1.0 / MINIMUM_TURNING_RADIUS  # 1/m


@dataclass
class OptimizerParams:
    """Termination settings handed to the least-squares and QP solvers."""
    max_iterations: int = OPTIMIZER_MAX_ITERATIONS
    fn_tol: float = OPTIMIZER_FN_TOL
    param_tol: float = OPTIMIZER_PARAM_TOL
    gradient_tol: float = OPTIMIZER_GRADIENT_TOL
    max_reanchor_attempts: int = MAX_REANCHOR_ATTEMPTS
    qp_max_iterations: int = QP_MAX_ITERATIONS


@dataclass
class PlannerConfig:
    tolerance: float = TOLERANCE
    downsample_costmap: bool = DOWNSAMPLE_COSTMAP
    downsampling_factor: int = DOWNSAMPLING_FACTOR
    angle_quantization_bins: int = ANGLE_QUANTIZATION_BINS
    allow_unknown: bool = ALLOW_UNKNOWN
    max_iterations: int = MAX_ITERATIONS
    max_on_approach_iterations: int = MAX_ON_APPROACH_ITERATIONS
    max_planning_time_s: float = MAX_PLANNING_TIME
    travel_cost_scale: float = TRAVEL_COST_SCALE
    smooth_path: bool = SMOOTH_PATH
    upsample_path: bool = UPSAMPLE_PATH
    upsampling_ratio: int = UPSAMPLING_RATIO
    minimum_turning_radius: float = MINIMUM_TURNING_RADIUS
    motion_model_for_search: str = MOTION_MODEL_FOR_SEARCH
    smoother: SmootherParams = field(default_factory=SmootherParams)
    optimizer: OptimizerParams = field(default_factory=OptimizerParams)


def validate_config(config: PlannerConfig) -> PlannerConfig:
    """
    Check a configuration and return the one the planner will actually use.

    Unusable values raise ConfigurationError. Values with a safe substitute
    are replaced and reported with a warning.

    Parameters
    ----------
    config : PlannerConfig
        Requested configuration

    Returns
    -------
    PlannerConfig
        Possibly coerced copy of the configuration
    """
    if not 0.0 <= config.travel_cost_scale <= 1.0:
        raise ConfigurationError(
            f"Travel cost scale must be between 0 and 1, got {config.travel_cost_scale}.")
    if config.angle_quantization_bins < 1:
        raise ConfigurationError(
            f"angle_quantization_bins must be >= 1, got {config.angle_quantization_bins}.")
    if config.downsampling_factor < 1:
        raise ConfigurationError(
            f"downsampling_factor must be >= 1, got {config.downsampling_factor}.")
    if config.minimum_turning_radius <= 0.0:
        raise ConfigurationError(
            f"minimum_turning_radius must be positive, got {config.minimum_turning_radius}.")

    if config.upsampling_ratio not in VALID_UPSAMPLING_RATIOS:
        print(f"Warning: Upsample ratio set to {config.upsampling_ratio}, "
              f"only 2 and 4 are valid. Defaulting to 2.")
        config = replace(config, upsampling_ratio=2)

    if config.max_iterations <= 0:
        print("Maximum iterations selected as <= 0, disabling maximum iterations.")
    if config.max_on_approach_iterations <= 0:
        print("On approach iterations selected as <= 0, disabling on approach iterations.")

    return config


def config_from_dict(data: dict) -> PlannerConfig:
    """Build a PlannerConfig from a (possibly partial) dictionary."""
    data = dict(data)
    smoother = SmootherParams(**data.pop('smoother', {}))
    optimizer = OptimizerParams(**data.pop('optimizer', {}))
    return PlannerConfig(smoother=smoother, optimizer=optimizer, **data)


def load_planner_config(filepath: str) -> PlannerConfig:
    """Load planner parameters from a JSON file; missing keys keep defaults."""
    with open(filepath, 'r') as f:
        data = json.load(f)
    return config_from_dict(data)


def save_planner_config(config: PlannerConfig, filepath: str):
    """Write planner parameters to a JSON file."""
    data = asdict(config)
    with open(filepath, 'w') as f:
        json.dump(data, f, indent=2)
    print(f"Planner config saved to {filepath}")
