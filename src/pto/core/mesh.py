"""
mesh.py - Structured element grid and design-space marking.

This module handles:
- Structured 2D (quad4) and 3D (hex8) grids with physical element sizes
- Closed-form node / DOF numbering and element connectivity
- Design masks (design space vs permanently void elements)
- Rigid-body modes used to validate boundary conditions
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class Mesh:
    """
    Structured mesh for topology optimization.

    Element arrays are indexed [i, j] (2D) or [i, j, k] (3D), with i along x,
    j along y and k along z. Nodes are numbered column by column:

        2D: node(i, j)    = i * (nely + 1) + j
        3D: node(i, j, k) = k * (nelx + 1) * (nely + 1) + i * (nely + 1) + j

    Attributes:
        nelx: Number of elements in x
        nely: Number of elements in y
        nelz: Number of elements in z (None for 2D)
        dx: Element size in x
        dy: Element size in y
        dz: Element size in z (ignored in 2D)
    """
    nelx: int
    nely: int
    nelz: Optional[int] = None
    dx: float = 1.0
    dy: float = 1.0
    dz: float = 1.0

    def __post_init__(self):
        counts = (self.nelx, self.nely) if self.nelz is None else (self.nelx, self.nely, self.nelz)
        if any(int(n) != n or n < 1 for n in counts):
            raise ValueError(f"Element counts must be positive integers, got {counts}")
        if any(h <= 0 for h in self.spacing):
            raise ValueError(f"Element sizes must be positive, got {self.spacing}")

    @property
    def ndim(self) -> int:
        """Spatial dimension (2 or 3)."""
        return 2 if self.nelz is None else 3

    @property
    def shape(self) -> Tuple[int, ...]:
        """Shape of element arrays (nelx, nely[, nelz])."""
        if self.ndim == 2:
            return (self.nelx, self.nely)
        return (self.nelx, self.nely, self.nelz)

    @property
    def spacing(self) -> Tuple[float, ...]:
        """Physical element size along each array axis."""
        if self.nelz is None:
            return (self.dx, self.dy)
        return (self.dx, self.dy, self.dz)

    @property
    def node_shape(self) -> Tuple[int, ...]:
        return tuple(n + 1 for n in self.shape)

    @property
    def dofs_per_node(self) -> int:
        return self.ndim

    @property
    def n_elements(self) -> int:
        return int(np.prod(self.shape))

    @property
    def n_nodes(self) -> int:
        return int(np.prod(self.node_shape))

    @property
    def n_dofs(self) -> int:
        return self.dofs_per_node * self.n_nodes

    @property
    def element_volume(self) -> float:
        """Element area (2D, unit thickness) or volume (3D)."""
        return float(np.prod(self.spacing))

    def node_id(self, i, j, k=None):
        """
        Global node number of grid point (i, j[, k]).

        Works on scalars and on integer arrays.
        """
        nny = self.nely + 1
        if self.ndim == 2:
            return i * nny + j
        if k is None:
            raise ValueError("3D mesh requires a k index")
        return k * (self.nelx + 1) * nny + i * nny + j

    def element_nodes(self, i: int, j: int, k: Optional[int] = None) -> np.ndarray:
        """
        Node numbers of element (i, j[, k]) in local order.

        Order: (i,j), (i+1,j), (i+1,j+1), (i,j+1) counter-clockwise; in 3D the
        same four corners on layer k followed by layer k+1.
        """
        corners = [(0, 0), (1, 0), (1, 1), (0, 1)]
        if self.ndim == 2:
            return np.array([self.node_id(i + a, j + b) for a, b in corners], dtype=np.int64)
        if k is None:
            raise ValueError("3D mesh requires a k index")
        nodes = [self.node_id(i + a, j + b, k + c) for c in (0, 1) for a, b in corners]
        return np.array(nodes, dtype=np.int64)

    def element_dofs(self, i: int, j: int, k: Optional[int] = None) -> np.ndarray:
        """Global DOF indices of one element, node by node (ux, uy[, uz])."""
        nodes = self.element_nodes(i, j, k)
        d = self.dofs_per_node
        return (d * nodes[:, None] + np.arange(d)[None, :]).ravel()

    def connectivity(self) -> np.ndarray:
        """
        Element -> DOF table for the whole mesh.

        Row e is the element with flat (C-order) index e in an array of
        shape `self.shape`.

        Returns:
            Array (n_elements, 2**ndim * ndim) of DOF indices
        """
        grids = np.meshgrid(*[np.arange(n) for n in self.shape], indexing="ij")
        idx = [g.ravel() for g in grids]
        if self.ndim == 2:
            i, j = idx
            corners = [(0, 0, 0), (1, 0, 0), (1, 1, 0), (0, 1, 0)]
            nodes = np.stack([self.node_id(i + a, j + b) for a, b, _ in corners], axis=1)
        else:
            i, j, k = idx
            corners = [(a, b, c) for c in (0, 1) for a, b in [(0, 0), (1, 0), (1, 1), (0, 1)]]
            nodes = np.stack([self.node_id(i + a, j + b, k + c) for a, b, c in corners], axis=1)
        d = self.dofs_per_node
        edof = d * nodes[:, :, None] + np.arange(d)[None, None, :]
        return edof.reshape(self.n_elements, -1).astype(np.int64)

    def node_coordinates(self) -> np.ndarray:
        """
        Physical coordinates of every node, ordered by node number.

        Returns:
            Array (n_nodes, ndim)
        """
        coords = np.zeros((self.n_nodes, self.ndim))
        axes = [np.arange(n) for n in self.node_shape]
        grids = np.meshgrid(*axes, indexing="ij")
        ids = self.node_id(*grids)
        for axis, (g, h) in enumerate(zip(grids, self.spacing)):
            coords[ids.ravel(), axis] = g.ravel() * h
        return coords

    def rigid_body_modes(self) -> np.ndarray:
        """
        Rigid-body displacement modes of the whole grid.

        Translations along each axis plus infinitesimal rotations about the
        centroid (1 in 2D, 3 in 3D).

        Returns:
            Array (n_dofs, 3) in 2D or (n_dofs, 6) in 3D
        """
        xyz = self.node_coordinates()
        xyz = xyz - xyz.mean(axis=0)
        d = self.ndim
        n = self.n_nodes
        modes = []
        for axis in range(d):
            m = np.zeros((n, d))
            m[:, axis] = 1.0
            modes.append(m)
        if d == 2:
            x, y = xyz[:, 0], xyz[:, 1]
            modes.append(np.stack([-y, x], axis=1))
        else:
            x, y, z = xyz[:, 0], xyz[:, 1], xyz[:, 2]
            zero = np.zeros(n)
            modes.append(np.stack([-y, x, zero], axis=1))   # about z
            modes.append(np.stack([zero, -z, y], axis=1))   # about x
            modes.append(np.stack([z, zero, -x], axis=1))   # about y
        return np.stack([m.ravel() for m in modes], axis=1)

    def full_mask(self) -> np.ndarray:
        """Design mask with every element optimizable."""
        return np.ones(self.shape, dtype=bool)

    def validate_mask(self, design_mask: np.ndarray) -> np.ndarray:
        """
        Check a design mask against the mesh and return it as a bool array.

        Raises:
            ValueError: wrong shape or empty design region
        """
        mask = np.asarray(design_mask, dtype=bool)
        if mask.shape != self.shape:
            raise ValueError(f"Design mask shape {mask.shape} does not match mesh {self.shape}")
        if not mask.any():
            raise ValueError("Design mask has no design elements")
        return mask


def rectangular_cutout_mask(
    mesh: Mesh,
    lower: Tuple[int, ...],
    upper: Tuple[int, ...]
) -> np.ndarray:
    """
    Design mask with a box of void elements removed.

    Args:
        mesh: Mesh the mask refers to
        lower: First void element index along each axis (inclusive)
        upper: Last void element index along each axis (exclusive)

    Returns:
        Boolean mask, False inside the cutout
    """
    if len(lower) != mesh.ndim or len(upper) != mesh.ndim:
        raise ValueError("Cutout bounds must have one entry per mesh axis")
    mask = mesh.full_mask()
    mask[tuple(slice(lo, hi) for lo, hi in zip(lower, upper))] = False
    return mask
