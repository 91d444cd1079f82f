"""
filters.py - Cone-kernel density filter.

The kernel weights neighbours by max(0, r_min - distance), with distances
measured in physical units so that anisotropic elements are handled. The
kernel is normalized once globally and applied with zero padding, so near the
domain boundary the filtered field loses some mass (no per-element
renormalization).
"""

import warnings
import numpy as np
from scipy import ndimage
from typing import Sequence


class FilterWarning(RuntimeWarning):
    """Filter kernel degenerated to the identity."""


def cone_kernel(r_min: float, spacing: Sequence[float]) -> np.ndarray:
    """
    Build the normalized cone kernel.

    Args:
        r_min: Filter radius (physical units)
        spacing: Element size along each axis

    Returns:
        Kernel array with odd size 2*h+1 along every axis, summing to 1.
        Falls back to a single-entry (identity) kernel with a FilterWarning
        when no neighbour gets positive weight.
    """
    if r_min < 0:
        raise ValueError(f"Filter radius must be non-negative, got {r_min}")
    spacing = np.asarray(spacing, dtype=float)
    ndim = spacing.size

    half = int(np.ceil(r_min / spacing.min()))
    offsets = np.arange(-half, half + 1)
    grids = np.meshgrid(*([offsets] * ndim), indexing="ij")
    dist = np.sqrt(sum((g * h) ** 2 for g, h in zip(grids, spacing)))

    kernel = np.maximum(0.0, r_min - dist)
    total = kernel.sum()
    if total <= 1e-9:
        warnings.warn(
            f"Filter radius {r_min} gives an empty kernel; filtering disabled",
            FilterWarning,
            stacklevel=2,
        )
        return np.ones((1,) * ndim)

    return kernel / total


class DensityFilter:
    """
    Density filter with a precomputed kernel.

    Usage:
        filt = DensityFilter(1.5, mesh.spacing)
        rho_f = filt(rho)
    """

    def __init__(self, r_min: float, spacing: Sequence[float]):
        self.r_min = r_min
        self.spacing = tuple(spacing)
        self.kernel = cone_kernel(r_min, self.spacing)

    @property
    def is_identity(self) -> bool:
        return self.kernel.size == 1

    def apply(self, x: np.ndarray) -> np.ndarray:
        """Filter a field of the same dimension as the kernel (same-size output)."""
        x = np.asarray(x, dtype=np.float64)
        if x.ndim != self.kernel.ndim:
            raise ValueError(f"Field has {x.ndim} dims, filter was built for {self.kernel.ndim}")
        if self.is_identity:
            return x.copy()
        return ndimage.convolve(x, self.kernel, mode="constant", cval=0.0)

    __call__ = apply
