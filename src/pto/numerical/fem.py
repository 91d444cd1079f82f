"""
fem.py - SIMP stiffness assembly and linear solve.

This module handles:
- Material properties and SIMP modulus interpolation
- Global stiffness matrix K assembly (sparse, vectorised over elements)
- Solution of the constrained linear system K*u = F
"""

import warnings
import numpy as np
from scipy import sparse
from scipy.sparse.linalg import MatrixRankWarning, cg, spsolve
from dataclasses import dataclass
from typing import Optional

from ..core.loads import BoundaryConditionError, BoundaryConditions
from ..core.mesh import Mesh
from .elements import get_element_stiffness_matrix


class SingularSystemError(BoundaryConditionError):
    """The reduced stiffness matrix could not be factorised."""


class SolverWarning(RuntimeWarning):
    """Iterative solver stopped before reaching its tolerance."""


@dataclass
class MaterialProperties:
    """
    Linear elastic material with SIMP interpolation.

    Attributes:
        E0: Young's modulus of solid material
        nu: Poisson's ratio [-]
        penalty: SIMP exponent (p)
        e_min_ratio: Void modulus as a fraction of E0
    """
    E0: float = 1.0
    nu: float = 0.3
    penalty: float = 3.0
    e_min_ratio: float = 1e-9

    def __post_init__(self):
        if self.E0 <= 0:
            raise ValueError(f"E0 must be positive, got {self.E0}")
        if not -1.0 < self.nu < 0.5:
            raise ValueError(f"Poisson's ratio must lie in (-1, 0.5), got {self.nu}")
        if self.penalty < 1:
            raise ValueError(f"SIMP penalty must be >= 1, got {self.penalty}")
        if not 0 < self.e_min_ratio < 1:
            raise ValueError(f"e_min_ratio must lie in (0, 1), got {self.e_min_ratio}")

    @property
    def E_min(self) -> float:
        """Modulus assigned to empty elements."""
        return self.e_min_ratio * self.E0

    def youngs_modulus(self, density: np.ndarray) -> np.ndarray:
        """SIMP interpolation E(rho) = E_min + rho^p * (E0 - E_min)."""
        rho = np.asarray(density, dtype=np.float64)
        return self.E_min + rho ** self.penalty * (self.E0 - self.E_min)


def assemble_global_stiffness(
    mesh: Mesh,
    density: np.ndarray,
    material: MaterialProperties,
    Ke: Optional[np.ndarray] = None,
    edof: Optional[np.ndarray] = None
) -> sparse.csr_matrix:
    """
    Assemble the global stiffness matrix (sparse).

    Every element contributes E(rho_e) * Ke; elements outside the design
    region carry density 0 and therefore the void modulus E_min.

    Args:
        mesh: Structured mesh
        density: Density field with shape mesh.shape
        material: Material properties
        Ke: Unit-modulus element matrix (computed if None)
        edof: Connectivity table from mesh.connectivity() (computed if None)

    Returns:
        Global K in CSR format
    """
    if Ke is None:
        Ke = get_element_stiffness_matrix(material.nu, mesh.spacing)
    if edof is None:
        edof = mesh.connectivity()

    rho = np.asarray(density, dtype=np.float64)
    if rho.shape != mesh.shape:
        raise ValueError(f"Density shape {rho.shape} does not match mesh {mesh.shape}")

    n = Ke.shape[0]
    E = material.youngs_modulus(rho).ravel()

    # COO triplets, duplicates are summed on conversion
    rows = np.repeat(edof, n, axis=1).ravel()
    cols = np.tile(edof, (1, n)).ravel()
    data = (E[:, None] * Ke.ravel()[None, :]).ravel()

    K = sparse.coo_matrix((data, (rows, cols)), shape=(mesh.n_dofs, mesh.n_dofs))
    K = K.tocsr()
    K = (K + K.T) / 2  # enforce exact symmetry

    return K


def solve_fem(
    K: sparse.csr_matrix,
    F: np.ndarray,
    constrained_dofs: np.ndarray,
    method: str = "direct",
    rtol: float = 1e-8,
    maxiter: int = 5000
) -> np.ndarray:
    """
    Solve K*u = F with homogeneous Dirichlet constraints.

    Args:
        K: Global stiffness matrix
        F: Load vector
        constrained_dofs: Indices of fixed DOFs
        method: 'direct' (spsolve) or 'iterative' (Jacobi-preconditioned CG)
        rtol: Relative tolerance of the iterative solver
        maxiter: Iteration cap of the iterative solver

    Returns:
        Displacement vector u, exactly zero on constrained DOFs

    Raises:
        SingularSystemError: the reduced matrix is singular or the solve
            produced non-finite values
    """
    n_dofs = K.shape[0]

    free_dofs = np.setdiff1d(np.arange(n_dofs), constrained_dofs)
    if free_dofs.size == 0:
        return np.zeros(n_dofs)

    K_ff = K[free_dofs, :][:, free_dofs].tocsc()
    F_f = F[free_dofs]

    if method == "direct":
        with warnings.catch_warnings():
            warnings.simplefilter("error", MatrixRankWarning)
            try:
                u_f = spsolve(K_ff, F_f)
            except MatrixRankWarning as exc:
                raise SingularSystemError(f"Stiffness matrix is singular: {exc}") from exc
    elif method == "iterative":
        diag = K_ff.diagonal()
        if np.any(diag <= 0):
            raise SingularSystemError("Stiffness matrix has non-positive diagonal entries")
        M = sparse.diags(1.0 / diag)
        u_f, info = cg(K_ff, F_f, rtol=rtol, maxiter=maxiter, M=M)
        if info > 0:
            warnings.warn(
                f"CG did not converge in {info} iterations (rtol={rtol:g})",
                SolverWarning,
                stacklevel=2,
            )
        elif info < 0:
            raise SingularSystemError(f"CG breakdown: info={info}")
    else:
        raise ValueError(f"Unknown method: {method}")

    if not np.all(np.isfinite(u_f)):
        raise SingularSystemError("Linear solve returned non-finite displacements")

    u = np.zeros(n_dofs)
    u[free_dofs] = u_f

    return u


def solve_displacements(
    mesh: Mesh,
    density: np.ndarray,
    boundary_conditions: BoundaryConditions,
    material: MaterialProperties,
    Ke: Optional[np.ndarray] = None,
    edof: Optional[np.ndarray] = None,
    method: str = "direct",
    validate: bool = True
):
    """
    Assemble and solve in one call.

    Args:
        mesh: Structured mesh
        density: Density field with shape mesh.shape
        boundary_conditions: Fixed and loaded DOFs
        material: Material properties
        Ke: Unit-modulus element matrix (computed if None)
        edof: Connectivity table (computed if None)
        method: Solver method, see solve_fem
        validate: Check the boundary conditions first

    Returns:
        (u, K)
    """
    if validate:
        boundary_conditions.validate(mesh)
    K = assemble_global_stiffness(mesh, density, material, Ke, edof)
    F = boundary_conditions.get_force_vector(mesh.n_dofs)
    u = solve_fem(K, F, boundary_conditions.fixed_dofs, method=method)
    return u, K


if __name__ == "__main__":
    from ..core.problems import create_cantilever

    problem = create_cantilever(nelx=10, nely=5)
    density = np.full(problem.mesh.shape, 0.5)
    u, K = solve_displacements(problem.mesh, density, problem.boundary_conditions, MaterialProperties())

    print(f"Global stiffness: {K.shape}, nnz={K.nnz:,}")
    print(f"Max |u|: {np.abs(u).max():.4e}")
    print(f"Compliance: {u @ (K @ u):.4e}")
