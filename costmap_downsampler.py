# costmap_downsampler.py
"""
Coarsen a costmap before search by aggregating square blocks of cells.

A block takes the worst cost found inside it so that narrow obstacles never
vanish from the coarse grid: OCCUPIED > INSCRIBED > UNKNOWN > highest
traversable cost.
"""

import numpy as np

from costmap import Costmap, MAX_NON_OBSTACLE, INSCRIBED, OCCUPIED, UNKNOWN


def _block_view(costs: np.ndarray, factor: int, fill: int) -> np.ndarray:
    """Pad to a multiple of factor and reshape to (rows, factor, cols, factor)."""
    size_y, size_x = costs.shape
    pad_y = (-size_y) % factor
    pad_x = (-size_x) % factor
    padded = np.pad(costs, ((0, pad_y), (0, pad_x)), mode='constant', constant_values=fill)
    rows = padded.shape[0] // factor
    cols = padded.shape[1] // factor
    return padded.reshape(rows, factor, cols, factor)


def downsample_costmap(costmap: Costmap, factor: int) -> Costmap:
    """
    Parameters
    ----------
    costmap : Costmap
        Full resolution map
    factor : int
        Number of cells per coarse cell edge

    Returns
    -------
    Costmap
        Coarse map with resolution * factor and the same origin. The input is
        returned unchanged for factor 1.
    """
    factor = int(factor)
    if factor < 1:
        raise ValueError(f"Downsampling factor must be >= 1, got {factor}")
    if factor == 1:
        return costmap

    costs = costmap.costs
    occupied = _block_view(costs == OCCUPIED, factor, False).any(axis=(1, 3))
    inscribed = _block_view(costs == INSCRIBED, factor, False).any(axis=(1, 3))
    unknown = _block_view(costs == UNKNOWN, factor, False).any(axis=(1, 3))

    known = np.where(costs <= MAX_NON_OBSTACLE, costs, 0).astype(np.uint8)
    coarse = _block_view(known, factor, 0).max(axis=(1, 3))

    coarse = np.where(unknown, UNKNOWN, coarse)
    coarse = np.where(inscribed, INSCRIBED, coarse)
    coarse = np.where(occupied, OCCUPIED, coarse)

    return Costmap(coarse.astype(np.uint8), costmap.resolution * factor,
                   (costmap.origin_x, costmap.origin_y))
