"""
fields.py - Element-wise fields derived from a displacement solution.

This module handles:
- Element compliance C_e = u_e^T * E(rho_e) * Ke * u_e
- Centroid stress components and Von Mises equivalent stress
- Total compliance u^T * K * u
"""

import numpy as np
from scipy import sparse

from .fem import MaterialProperties


def _element_displacements(u: np.ndarray, edof: np.ndarray) -> np.ndarray:
    """Gather u into an (n_elements, n_element_dofs) array."""
    return np.asarray(u, dtype=np.float64)[edof]


def element_compliance(
    u: np.ndarray,
    edof: np.ndarray,
    density: np.ndarray,
    Ke: np.ndarray,
    material: MaterialProperties
) -> np.ndarray:
    """
    Compliance contribution of every element.

    Args:
        u: Global displacement vector
        edof: Connectivity table (n_elements, n_element_dofs)
        density: Density field, its shape is kept in the output
        Ke: Unit-modulus element matrix
        material: Material properties (SIMP interpolation)

    Returns:
        Array with the shape of `density`
    """
    ue = _element_displacements(u, edof)
    ce = np.einsum("ei,ij,ej->e", ue, Ke, ue)
    E = material.youngs_modulus(density).ravel()
    return (E * ce).reshape(np.shape(density))


def stress_components(
    u: np.ndarray,
    edof: np.ndarray,
    density: np.ndarray,
    B: np.ndarray,
    D0: np.ndarray,
    material: MaterialProperties
) -> np.ndarray:
    """
    Centroid stress of every element, sigma = E(rho_e) * D0 * B * u_e.

    Returns:
        Array (*density.shape, 3) with [sxx, syy, txy] in 2D or
        (*density.shape, 6) with [sxx, syy, szz, txy, tyz, txz] in 3D
    """
    ue = _element_displacements(u, edof)
    DB = D0 @ B
    E = material.youngs_modulus(density).ravel()
    sigma = E[:, None] * (ue @ DB.T)
    return sigma.reshape(*np.shape(density), DB.shape[0])


def von_mises(sigma: np.ndarray) -> np.ndarray:
    """
    Von Mises equivalent stress from Voigt components (last axis).

    2D (plane stress): sqrt(sxx^2 + syy^2 - sxx*syy + 3*txy^2)
    3D: sqrt(0.5*((sxx-syy)^2 + (syy-szz)^2 + (szz-sxx)^2) + 3*(txy^2 + tyz^2 + txz^2))
    """
    n_comp = sigma.shape[-1]
    if n_comp == 3:
        sxx, syy, txy = np.moveaxis(sigma, -1, 0)
        vm2 = sxx ** 2 + syy ** 2 - sxx * syy + 3 * txy ** 2
    elif n_comp == 6:
        sxx, syy, szz, txy, tyz, txz = np.moveaxis(sigma, -1, 0)
        vm2 = (0.5 * ((sxx - syy) ** 2 + (syy - szz) ** 2 + (szz - sxx) ** 2)
               + 3 * (txy ** 2 + tyz ** 2 + txz ** 2))
    else:
        raise ValueError(f"Expected 3 or 6 stress components, got {n_comp}")
    return np.sqrt(np.maximum(vm2, 0.0))


def von_mises_stress(
    u: np.ndarray,
    edof: np.ndarray,
    density: np.ndarray,
    B: np.ndarray,
    D0: np.ndarray,
    material: MaterialProperties
) -> np.ndarray:
    """Von Mises stress at every element centroid, same shape as `density`."""
    return von_mises(stress_components(u, edof, density, B, D0, material))


def total_compliance(u: np.ndarray, K: sparse.spmatrix) -> float:
    """Structural compliance u^T * K * u."""
    return float(u @ (K @ u))
