"""
update.py - Move-limited density update.
"""

import numpy as np


def update_density(
    rho_prev: np.ndarray,
    rho_filtered: np.ndarray,
    mask: np.ndarray,
    alpha: float,
    rho_min: float,
    rho_max: float
) -> np.ndarray:
    """
    Blend the previous and the newly filtered density.

    rho_new = alpha * rho_prev + (1 - alpha) * rho_filtered, clamped to
    [rho_min, rho_max] inside the design mask and 0 outside it.

    Args:
        rho_prev: Density of the previous iteration
        rho_filtered: Filtered allocation of this iteration
        mask: Design mask
        alpha: Move limit (weight of the previous density), clipped to [0, 1]
        rho_min: Lower density bound
        rho_max: Upper density bound

    Returns:
        New density field
    """
    alpha = float(np.clip(alpha, 0.0, 1.0))
    rho = alpha * np.asarray(rho_prev, dtype=np.float64) + (1.0 - alpha) * np.asarray(rho_filtered, dtype=np.float64)
    rho = np.clip(rho, rho_min, rho_max)
    return np.where(mask, rho, 0.0)
