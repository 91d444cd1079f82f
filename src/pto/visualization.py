"""
visualization.py - Plots of optimization results.

This module handles:
- Density field maps (2D image, 3D mid-plane slice)
- Iteration history (compliance, volume, peak stress with allowed band)
"""

import numpy as np
from pathlib import Path
from typing import List, Optional, Union

from .core.mesh import Mesh
from .numerical.topopt import IterationRecord


def plot_density(
    density: np.ndarray,
    mesh: Optional[Mesh] = None,
    design_mask: Optional[np.ndarray] = None,
    z_level: Optional[int] = None,
    title: str = "Density",
    path: Optional[Union[str, Path]] = None
):
    """
    Draw a density field.

    2D fields are shown as an image with y upwards; for 3D fields the slice
    at `z_level` (default: mid-plane) is shown. Void elements of the design
    mask are drawn white.

    Args:
        density: Density field (nelx, nely[, nelz])
        mesh: Mesh, used for physical axis extents
        design_mask: Optional mask; False elements are hidden
        z_level: Slice index for 3D fields
        title: Axes title
        path: Save the figure there if given

    Returns:
        matplotlib Figure
    """
    import matplotlib.pyplot as plt

    data = np.asarray(density, dtype=np.float64)
    mask = None if design_mask is None else np.asarray(design_mask, dtype=bool)
    if data.ndim == 3:
        k = data.shape[2] // 2 if z_level is None else z_level
        data = data[:, :, k]
        mask = None if mask is None else mask[:, :, k]
        title = f"{title} (z slice {k})"
    elif data.ndim != 2:
        raise ValueError(f"Expected a 2D or 3D field, got {data.ndim} dims")

    if mask is not None:
        data = np.ma.masked_where(~mask, data)

    extent = None
    if mesh is not None:
        extent = [0, mesh.nelx * mesh.dx, 0, mesh.nely * mesh.dy]

    fig, ax = plt.subplots(figsize=(8, 4))
    im = ax.imshow(data.T, cmap="gray_r", vmin=0.0, vmax=1.0, origin="lower", extent=extent)
    ax.set_xlabel("x")
    ax.set_ylabel("y")
    ax.set_title(title)
    fig.colorbar(im, ax=ax, label="rho")
    fig.tight_layout()

    if path is not None:
        fig.savefig(path, dpi=150)
    return fig


def plot_history(
    history: List[IterationRecord],
    allowable_stress: Optional[float] = None,
    tolerance_band: float = 0.0,
    path: Optional[Union[str, Path]] = None
):
    """
    Draw compliance, volume and (stress variant) peak stress per iteration.

    Args:
        history: Iteration records
        allowable_stress: Draw the accepted stress band around this value
        tolerance_band: Relative half-width of the band
        path: Save the figure there if given

    Returns:
        matplotlib Figure
    """
    import matplotlib.pyplot as plt

    iters = [r.iteration for r in history]
    has_stress = any(r.sigma_max is not None for r in history)
    n_axes = 3 if has_stress else 2

    fig, axes = plt.subplots(n_axes, 1, figsize=(8, 2.5 * n_axes), sharex=True)

    axes[0].semilogy(iters, [r.compliance for r in history], "b-")
    axes[0].set_ylabel("Compliance")

    axes[1].plot(iters, [r.volume for r in history], "g-")
    axes[1].set_ylabel("Volume")

    if has_stress:
        axes[2].plot(iters, [r.sigma_max for r in history], "r-", label="max Von Mises")
        if allowable_stress is not None:
            axes[2].axhspan(
                (1 - tolerance_band) * allowable_stress,
                (1 + tolerance_band) * allowable_stress,
                color="gray",
                alpha=0.3,
                label="allowed band",
            )
        axes[2].set_ylabel("Stress")
        axes[2].legend(loc="best")

    axes[-1].set_xlabel("Iteration")
    for ax in axes:
        ax.grid(True, alpha=0.3)
    fig.tight_layout()

    if path is not None:
        fig.savefig(path, dpi=150)
    return fig
