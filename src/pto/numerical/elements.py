"""
elements.py - Reference element matrices.

This module handles:
- Elastic constitutive matrices (plane stress and 3D isotropic)
- Unit-modulus stiffness matrix of the bilinear quad (8x8) and hex8 (24x24)
  via 2x2(x2) Gauss quadrature
- Strain-displacement matrix evaluated at the element centroid
"""

import numpy as np
from typing import Tuple

from ..core.mesh import Mesh


# Reference corner coordinates, same local order as Mesh.element_nodes
QUAD4_NODES = np.array([
    [-1, -1],
    [+1, -1],
    [+1, +1],
    [-1, +1]
], dtype=float)

HEX8_NODES = np.array([
    [-1, -1, -1],
    [+1, -1, -1],
    [+1, +1, -1],
    [-1, +1, -1],
    [-1, -1, +1],
    [+1, -1, +1],
    [+1, +1, +1],
    [-1, +1, +1]
], dtype=float)

GAUSS_POINT = 1.0 / np.sqrt(3)


def constitutive_matrix(nu: float, ndim: int, E: float = 1.0) -> np.ndarray:
    """
    Linear elastic constitutive matrix in Voigt notation.

    2D uses plane stress [xx, yy, xy]; 3D uses [xx, yy, zz, xy, yz, xz] with
    engineering shear strains.

    Args:
        nu: Poisson's ratio
        ndim: 2 or 3
        E: Young's modulus

    Returns:
        Matrix 3x3 or 6x6
    """
    if ndim == 2:
        return E / (1 - nu ** 2) * np.array([
            [1, nu, 0],
            [nu, 1, 0],
            [0, 0, (1 - nu) / 2]
        ])
    if ndim == 3:
        return E / ((1 + nu) * (1 - 2 * nu)) * np.array([
            [1 - nu, nu, nu, 0, 0, 0],
            [nu, 1 - nu, nu, 0, 0, 0],
            [nu, nu, 1 - nu, 0, 0, 0],
            [0, 0, 0, (1 - 2 * nu) / 2, 0, 0],
            [0, 0, 0, 0, (1 - 2 * nu) / 2, 0],
            [0, 0, 0, 0, 0, (1 - 2 * nu) / 2]
        ])
    raise ValueError(f"Unsupported dimension: {ndim}")


def _shape_derivatives(nodes_local: np.ndarray, point: np.ndarray) -> np.ndarray:
    """
    Derivatives of the multilinear shape functions w.r.t. natural coordinates.

    N_i = prod_d (1 + a_id * xi_d) / 2**ndim

    Returns:
        Array (n_nodes, ndim)
    """
    n_nodes, ndim = nodes_local.shape
    factors = 1 + nodes_local * point[None, :]
    dN = np.zeros((n_nodes, ndim))
    for d in range(ndim):
        others = np.prod(np.delete(factors, d, axis=1), axis=1)
        dN[:, d] = nodes_local[:, d] * others
    return dN / 2 ** ndim


def _strain_displacement(dN_dx: np.ndarray) -> np.ndarray:
    """Assemble B from physical shape function derivatives (n_nodes, ndim)."""
    n_nodes, ndim = dN_dx.shape
    if ndim == 2:
        B = np.zeros((3, 2 * n_nodes))
        for i in range(n_nodes):
            B[0, 2*i] = dN_dx[i, 0]      # epsilon_xx
            B[1, 2*i+1] = dN_dx[i, 1]    # epsilon_yy
            B[2, 2*i] = dN_dx[i, 1]      # gamma_xy
            B[2, 2*i+1] = dN_dx[i, 0]
        return B

    B = np.zeros((6, 3 * n_nodes))
    for i in range(n_nodes):
        B[0, 3*i] = dN_dx[i, 0]      # epsilon_xx
        B[1, 3*i+1] = dN_dx[i, 1]    # epsilon_yy
        B[2, 3*i+2] = dN_dx[i, 2]    # epsilon_zz
        B[3, 3*i] = dN_dx[i, 1]      # gamma_xy
        B[3, 3*i+1] = dN_dx[i, 0]
        B[4, 3*i+1] = dN_dx[i, 2]    # gamma_yz
        B[4, 3*i+2] = dN_dx[i, 1]
        B[5, 3*i] = dN_dx[i, 2]      # gamma_xz
        B[5, 3*i+2] = dN_dx[i, 0]
    return B


def _reference_nodes(ndim: int) -> np.ndarray:
    if ndim == 2:
        return QUAD4_NODES
    if ndim == 3:
        return HEX8_NODES
    raise ValueError(f"Unsupported dimension: {ndim}")


def strain_displacement_matrix(
    spacing: Tuple[float, ...],
    point: Tuple[float, ...] = None
) -> np.ndarray:
    """
    Strain-displacement matrix B at a natural coordinate of a box element.

    Args:
        spacing: Element size along each axis (dx, dy[, dz])
        point: Natural coordinates, defaults to the centroid (origin)

    Returns:
        Matrix 3x8 (2D) or 6x24 (3D)
    """
    ndim = len(spacing)
    nodes_local = _reference_nodes(ndim)
    xi = np.zeros(ndim) if point is None else np.asarray(point, dtype=float)

    # Box element: Jacobian is diagonal and constant
    inv_jac = 2.0 / np.asarray(spacing, dtype=float)
    dN_dx = _shape_derivatives(nodes_local, xi) * inv_jac[None, :]
    return _strain_displacement(dN_dx)


def get_element_stiffness_matrix(nu: float, spacing: Tuple[float, ...]) -> np.ndarray:
    """
    Stiffness matrix of one element made of unit-modulus material.

    2D elements are plane stress with unit thickness. Integration uses 2 Gauss
    points per direction, which is exact for undistorted box elements.

    Args:
        nu: Poisson's ratio
        spacing: Element size along each axis (dx, dy[, dz])

    Returns:
        Matrix 8x8 (quad4) or 24x24 (hex8)
    """
    ndim = len(spacing)
    nodes_local = _reference_nodes(ndim)
    D = constitutive_matrix(nu, ndim)
    detJ = float(np.prod(np.asarray(spacing, dtype=float) / 2.0))

    n = nodes_local.shape[0] * ndim
    Ke = np.zeros((n, n))
    gauss_points = nodes_local * GAUSS_POINT  # one point per corner, weight 1
    for gp in gauss_points:
        B = strain_displacement_matrix(spacing, gp)
        Ke += B.T @ D @ B * detJ

    return 0.5 * (Ke + Ke.T)


def element_matrices(mesh: Mesh, nu: float) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Everything the optimizer needs from the element library for one mesh.

    Returns:
        (Ke, B_centroid, D0) for unit Young's modulus
    """
    Ke = get_element_stiffness_matrix(nu, mesh.spacing)
    B = strain_displacement_matrix(mesh.spacing)
    D0 = constitutive_matrix(nu, mesh.ndim)
    return Ke, B, D0


if __name__ == "__main__":
    for spacing in [(1.0, 1.0), (1.0, 1.0, 1.0)]:
        Ke = get_element_stiffness_matrix(0.3, spacing)
        eig = np.linalg.eigvalsh(Ke)
        print(f"Element {len(spacing)}D: shape {Ke.shape}")
        print(f"  Symmetry check: {np.allclose(Ke, Ke.T)}")
        print(f"  Zero eigenvalues: {int(np.sum(np.abs(eig) < 1e-10))}")
