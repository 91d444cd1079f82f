"""
loads.py - Boundary conditions and nodal loads.

This module handles:
- Fixed (zero displacement) DOFs and loaded DOFs with load values
- Node-level supports, point loads and uniformly distributed loads
- Validation of boundary conditions against a mesh
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from .mesh import Mesh


class BoundaryConditionError(ValueError):
    """Ill-posed boundary conditions (bad indices or unrestrained rigid-body motion)."""


class DOF(Enum):
    """Degrees of freedom of a node."""
    UX = 0
    UY = 1
    UZ = 2


ALL_2D = [DOF.UX, DOF.UY]
ALL_3D = [DOF.UX, DOF.UY, DOF.UZ]


def node_dofs(
    node_indices: Sequence[int],
    dofs: Sequence[DOF],
    dofs_per_node: int
) -> np.ndarray:
    """
    Global DOF indices of the given components on the given nodes.

    Args:
        node_indices: Global node numbers
        dofs: Components to select
        dofs_per_node: 2 for 2D, 3 for 3D

    Returns:
        Array of DOF indices, node-major
    """
    nodes = np.asarray(node_indices, dtype=np.int64).ravel()
    comps = np.array([d.value for d in dofs], dtype=np.int64)
    if np.any(comps >= dofs_per_node):
        raise ValueError(f"DOF component out of range for {dofs_per_node} DOFs per node")
    return (dofs_per_node * nodes[:, None] + comps[None, :]).ravel()


@dataclass
class Support:
    """
    Displacement constraint on a set of nodes.

    Attributes:
        node_indices: Constrained nodes
        constrained_dofs: Components held at zero (default: every
            component of the node)
    """
    node_indices: np.ndarray
    constrained_dofs: Optional[List[DOF]] = None

    def __post_init__(self):
        self.node_indices = np.asarray(self.node_indices, dtype=np.int64).ravel()

    def get_dof_indices(self, dofs_per_node: int) -> np.ndarray:
        dofs = self.constrained_dofs
        if dofs is None:
            dofs = list(DOF)[:dofs_per_node]
        return node_dofs(self.node_indices, dofs, dofs_per_node)


@dataclass
class PointLoad:
    """
    Concentrated force on one node.

    Attributes:
        node_index: Node the force acts on
        force_vector: Components [Fx, Fy(, Fz)]
    """
    node_index: int
    force_vector: np.ndarray

    def __post_init__(self):
        self.force_vector = np.asarray(self.force_vector, dtype=np.float64).ravel()


@dataclass
class DistributedLoad:
    """
    Total force split uniformly over a set of nodes.

    Attributes:
        node_indices: Nodes sharing the load
        total_force: Resultant [Fx, Fy(, Fz)]
    """
    node_indices: np.ndarray
    total_force: np.ndarray

    def __post_init__(self):
        self.node_indices = np.asarray(self.node_indices, dtype=np.int64).ravel()
        self.total_force = np.asarray(self.total_force, dtype=np.float64).ravel()

    def get_nodal_forces(self) -> np.ndarray:
        """Array (N, ndim) of per-node forces."""
        n_nodes = len(self.node_indices)
        return np.tile(self.total_force / n_nodes, (n_nodes, 1))


@dataclass
class BoundaryConditions:
    """
    Fixed and loaded DOFs of a static problem.

    Attributes:
        fixed_dofs: DOFs with zero displacement
        load_dofs: DOFs carrying a load (repeated entries accumulate)
        load_values: Load magnitudes, parallel to load_dofs
    """
    fixed_dofs: np.ndarray
    load_dofs: np.ndarray
    load_values: np.ndarray

    def __post_init__(self):
        self.fixed_dofs = np.unique(np.asarray(self.fixed_dofs, dtype=np.int64).ravel())
        self.load_dofs = np.asarray(self.load_dofs, dtype=np.int64).ravel()
        self.load_values = np.asarray(self.load_values, dtype=np.float64).ravel()
        if self.load_values.size == 1 and self.load_dofs.size > 1:
            self.load_values = np.full(self.load_dofs.size, self.load_values[0])

    @classmethod
    def from_nodes(
        cls,
        supports: List[Support],
        point_loads: Optional[List[PointLoad]] = None,
        distributed_loads: Optional[List[DistributedLoad]] = None,
        dofs_per_node: int = 2
    ) -> "BoundaryConditions":
        """
        Build DOF-level boundary conditions from node-level definitions.

        Zero force components are dropped.
        """
        fixed = [s.get_dof_indices(dofs_per_node) for s in supports]
        load_dofs: List[int] = []
        load_vals: List[float] = []

        for load in point_loads or []:
            for comp, value in enumerate(load.force_vector[:dofs_per_node]):
                if value != 0.0:
                    load_dofs.append(dofs_per_node * load.node_index + comp)
                    load_vals.append(value)

        for dist_load in distributed_loads or []:
            nodal_forces = dist_load.get_nodal_forces()
            for node_idx, force in zip(dist_load.node_indices, nodal_forces):
                for comp, value in enumerate(force[:dofs_per_node]):
                    if value != 0.0:
                        load_dofs.append(dofs_per_node * int(node_idx) + comp)
                        load_vals.append(value)

        return cls(
            fixed_dofs=np.concatenate(fixed) if fixed else np.zeros(0, dtype=np.int64),
            load_dofs=np.array(load_dofs, dtype=np.int64),
            load_values=np.array(load_vals, dtype=np.float64),
        )

    @property
    def total_load(self) -> float:
        return float(np.sum(self.load_values))

    def get_force_vector(self, n_dofs: int) -> np.ndarray:
        """
        Global load vector.

        Args:
            n_dofs: Total number of DOFs

        Returns:
            Vector (n_dofs,)
        """
        F = np.zeros(n_dofs, dtype=np.float64)
        np.add.at(F, self.load_dofs, self.load_values)
        return F

    def free_dofs(self, n_dofs: int) -> np.ndarray:
        return np.setdiff1d(np.arange(n_dofs), self.fixed_dofs)

    def validate(self, mesh: Mesh) -> None:
        """
        Check that the boundary conditions define a well-posed linear problem.

        Raises:
            BoundaryConditionError: out-of-range indices, mismatched load
                arrays, overlapping fixed/loaded DOFs, or fixed DOFs that do
                not restrain every rigid-body mode of the mesh
        """
        n_dofs = mesh.n_dofs
        if self.load_dofs.shape != self.load_values.shape:
            raise BoundaryConditionError(
                f"{self.load_dofs.size} load DOFs but {self.load_values.size} load values"
            )
        if self.fixed_dofs.size == 0:
            raise BoundaryConditionError("No fixed DOFs: rigid-body motion is unrestrained")
        for name, dofs in (("fixed", self.fixed_dofs), ("load", self.load_dofs)):
            if dofs.size and (dofs.min() < 0 or dofs.max() >= n_dofs):
                raise BoundaryConditionError(
                    f"{name} DOF index outside [0, {n_dofs}): "
                    f"min={dofs.min()}, max={dofs.max()}"
                )
        overlap = np.intersect1d(self.fixed_dofs, self.load_dofs)
        if overlap.size:
            raise BoundaryConditionError(f"DOFs both fixed and loaded: {overlap[:10].tolist()}")

        modes = mesh.rigid_body_modes()[self.fixed_dofs]
        n_modes = modes.shape[1]
        rank = np.linalg.matrix_rank(modes)
        if rank < n_modes:
            raise BoundaryConditionError(
                f"Fixed DOFs restrain only {rank} of {n_modes} rigid-body modes; "
                "the reduced stiffness matrix would be singular"
            )
