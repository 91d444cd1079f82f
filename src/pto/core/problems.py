"""
problems.py - Benchmark problem definitions.

Each factory returns a Problem bundling the mesh, the design mask and the
boundary conditions of a classic topology-optimization benchmark:
- cantilever: 2D cantilever, left edge clamped, tip load at bottom-right
- mbb: half MBB beam with symmetry on the left edge
- l_bracket: 2D L-shaped bracket (top-right cutout)
- cantilever_3d: 3D cantilever, left face clamped, patch load on right face
- cantilever_distributed: 2D cantilever, load spread over the right edge
- fixed_fixed, simply_supported: beams with a top mid-span load
- multiple_supports: beam on several bottom pins
- c_beam: C-shaped beam clamped along its spine
- l_bracket_3d, plate_3d: 3D bracket and plate
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, Dict, List, Sequence

from .mesh import Mesh, rectangular_cutout_mask
from .loads import (
    ALL_2D,
    ALL_3D,
    DOF,
    BoundaryConditions,
    DistributedLoad,
    PointLoad,
    Support,
)


@dataclass
class Problem:
    """
    Complete problem definition for the optimizer.

    Attributes:
        name: Short identifier
        mesh: Structured mesh
        design_mask: True for optimizable elements
        boundary_conditions: Fixed and loaded DOFs
        description: Human readable summary
    """
    name: str
    mesh: Mesh
    design_mask: np.ndarray
    boundary_conditions: BoundaryConditions
    description: str = ""

    @property
    def n_design(self) -> int:
        return int(np.sum(self.design_mask))


def create_cantilever(
    nelx: int = 120,
    nely: int = 60,
    load: float = -1.0,
    dx: float = 1.0,
    dy: float = 1.0
) -> Problem:
    """
    2D cantilever beam.

    - Constraint: every node on the left edge clamped in x and y
    - Load: vertical point load at the bottom-right corner
    """
    mesh = Mesh(nelx, nely, dx=dx, dy=dy)

    # === BOUNDARY CONDITIONS ===
    left_edge = mesh.node_id(0, np.arange(nely + 1))
    clamp = Support(node_indices=left_edge, constrained_dofs=ALL_2D)

    # === LOADS ===
    tip = PointLoad(node_index=int(mesh.node_id(nelx, 0)), force_vector=[0.0, load])

    bc = BoundaryConditions.from_nodes([clamp], point_loads=[tip], dofs_per_node=2)
    return Problem(
        name="cantilever",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description="Left edge clamped, point load at bottom-right corner",
    )


def create_mbb_beam(
    nelx: int = 120,
    nely: int = 40,
    load: float = -1.0,
    n_load_points: int = 3
) -> Problem:
    """
    Half MBB beam.

    - Symmetry: left edge fixed in x
    - Roller: bottom-right corner fixed in y
    - Load: vertical load on each of the first `n_load_points` top-left nodes
    """
    mesh = Mesh(nelx, nely)

    symmetry = Support(node_indices=mesh.node_id(0, np.arange(nely + 1)), constrained_dofs=[DOF.UX])
    roller = Support(node_indices=[mesh.node_id(nelx, 0)], constrained_dofs=[DOF.UY])

    loads = [
        PointLoad(node_index=int(mesh.node_id(i, nely)), force_vector=[0.0, load])
        for i in range(n_load_points)
    ]

    bc = BoundaryConditions.from_nodes([symmetry, roller], point_loads=loads, dofs_per_node=2)
    return Problem(
        name="mbb",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description=f"Half MBB beam, load over {n_load_points} top-left nodes",
    )


def create_l_bracket(
    nelx: int = 100,
    nely: int = 100,
    arm_fraction: float = 0.4,
    load: float = -1.0
) -> Problem:
    """
    2D L-bracket.

    The top-right block beyond `arm_fraction` of the width and height is void.

    - Constraint: top edge of the vertical arm clamped
    - Load: vertical point load at mid-height of the horizontal arm's right end
    """
    mesh = Mesh(nelx, nely)
    arm_x = max(1, int(round(arm_fraction * nelx)))
    arm_y = max(1, int(round(arm_fraction * nely)))
    mask = rectangular_cutout_mask(mesh, (arm_x, arm_y), (nelx, nely))

    top_edge = mesh.node_id(np.arange(arm_x + 1), nely)
    clamp = Support(node_indices=top_edge, constrained_dofs=ALL_2D)
    tip = PointLoad(node_index=int(mesh.node_id(nelx, arm_y // 2)), force_vector=[0.0, load])

    bc = BoundaryConditions.from_nodes([clamp], point_loads=[tip], dofs_per_node=2)
    return Problem(
        name="l_bracket",
        mesh=mesh,
        design_mask=mask,
        boundary_conditions=bc,
        description=f"L-bracket, arms {arm_x} x {arm_y} elements",
    )


def create_cantilever_3d(
    nelx: int = 80,
    nely: int = 40,
    nelz: int = 20,
    load: float = -1.0,
    load_area: int = 4,
    dx: float = 1.0,
    dy: float = 1.0,
    dz: float = 1.0
) -> Problem:
    """
    3D cantilever beam.

    - Constraint: left face (x = 0) clamped in x, y, z
    - Load: vertical force spread uniformly over a square patch of nodes
      centred on the right face
    """
    mesh = Mesh(nelx, nely, nelz, dx=dx, dy=dy, dz=dz)

    # === BOUNDARY CONDITIONS ===
    jj, kk = np.meshgrid(np.arange(nely + 1), np.arange(nelz + 1), indexing="ij")
    left_face = mesh.node_id(0, jj.ravel(), kk.ravel())
    clamp = Support(node_indices=left_face, constrained_dofs=ALL_3D)

    # === LOADS ===
    half = load_area // 2
    mid_y, mid_z = (nely + 1) // 2, (nelz + 1) // 2
    js = np.arange(max(0, mid_y - half), min(nely, mid_y + half) + 1)
    ks = np.arange(max(0, mid_z - half), min(nelz, mid_z + half) + 1)
    jl, kl = np.meshgrid(js, ks, indexing="ij")
    patch = DistributedLoad(
        node_indices=mesh.node_id(nelx, jl.ravel(), kl.ravel()),
        total_force=[0.0, load, 0.0],
    )

    bc = BoundaryConditions.from_nodes([clamp], distributed_loads=[patch], dofs_per_node=3)
    return Problem(
        name="cantilever_3d",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description=f"Left face clamped, load over {patch.node_indices.size} right-face nodes",
    )


def create_cantilever_distributed(
    nelx: int = 120,
    nely: int = 60,
    load: float = -10.0,
    load_height: int = 10
) -> Problem:
    """
    2D cantilever with the tip load spread over part of the right edge.

    - Constraint: left edge clamped
    - Load: total vertical force shared by `load_height + 1` right-edge
      nodes centred at mid-height
    """
    mesh = Mesh(nelx, nely)

    # === BOUNDARY CONDITIONS ===
    clamp = Support(node_indices=mesh.node_id(0, np.arange(nely + 1)))

    # === LOADS ===
    load_height = min(load_height, nely)
    start = max(0, min(nely // 2 - load_height // 2, nely - load_height))
    rows = np.arange(start, start + load_height + 1)
    edge_load = DistributedLoad(node_indices=mesh.node_id(nelx, rows), total_force=[0.0, load])

    bc = BoundaryConditions.from_nodes([clamp], distributed_loads=[edge_load], dofs_per_node=2)
    return Problem(
        name="cantilever_distributed",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description=f"Left edge clamped, load over {rows.size} right-edge nodes",
    )


def create_fixed_fixed_beam(
    nelx: int = 120,
    nely: int = 40,
    load: float = -1.0
) -> Problem:
    """
    Beam clamped at both ends, point load at the top of mid-span.
    """
    mesh = Mesh(nelx, nely)
    edge = np.arange(nely + 1)
    clamps = [
        Support(node_indices=mesh.node_id(0, edge), constrained_dofs=ALL_2D),
        Support(node_indices=mesh.node_id(nelx, edge), constrained_dofs=ALL_2D),
    ]
    mid = PointLoad(node_index=int(mesh.node_id(nelx // 2, nely)), force_vector=[0.0, load])

    bc = BoundaryConditions.from_nodes(clamps, point_loads=[mid], dofs_per_node=2)
    return Problem(
        name="fixed_fixed",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description="Both edges clamped, point load at top mid-span",
    )


def create_simply_supported_beam(
    nelx: int = 120,
    nely: int = 40,
    load: float = -1.0
) -> Problem:
    """
    Beam with a clamped left edge and a vertical roller along the right edge.

    - Constraint: left edge fixed in x and y, right edge fixed in y
    - Load: point load at the top of mid-span
    """
    mesh = Mesh(nelx, nely)
    edge = np.arange(nely + 1)
    supports = [
        Support(node_indices=mesh.node_id(0, edge), constrained_dofs=ALL_2D),
        Support(node_indices=mesh.node_id(nelx, edge), constrained_dofs=[DOF.UY]),
    ]
    mid = PointLoad(node_index=int(mesh.node_id(nelx // 2, nely)), force_vector=[0.0, load])

    bc = BoundaryConditions.from_nodes(supports, point_loads=[mid], dofs_per_node=2)
    return Problem(
        name="simply_supported",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description="Left edge clamped, right edge on rollers, point load at top mid-span",
    )


def _columns(nelx: int, fractions: Sequence[float]) -> List[int]:
    return [min(max(int(round(f * nelx)), 0), nelx) for f in fractions]


def create_multiple_supports(
    nelx: int = 120,
    nely: int = 60,
    load: float = -1.0,
    support_positions: Sequence[float] = (0.2, 0.5, 0.8),
    load_positions: Sequence[float] = (0.3, 0.7)
) -> Problem:
    """
    Beam pinned at several bottom nodes and loaded at several top nodes.

    Positions are fractions of the beam length; the total load is shared
    equally by the load points.
    """
    mesh = Mesh(nelx, nely)
    pins = Support(node_indices=mesh.node_id(np.array(_columns(nelx, support_positions)), 0))
    loads = [
        PointLoad(node_index=int(mesh.node_id(i, nely)), force_vector=[0.0, load / len(load_positions)])
        for i in _columns(nelx, load_positions)
    ]

    bc = BoundaryConditions.from_nodes([pins], point_loads=loads, dofs_per_node=2)
    return Problem(
        name="multiple_supports",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description=f"{len(support_positions)} bottom pins, {len(load_positions)} top loads",
    )


def create_c_beam(
    nelx: int = 120,
    nely: int = 60,
    spine_width: int = 20,
    arm_height: int = 20,
    load: float = -1.0,
    n_load_points: int = 3
) -> Problem:
    """
    C-shaped beam: a clamped vertical spine with two horizontal arms.

    - Void: the block right of the spine between the arms
    - Constraint: left edge clamped
    - Load: `n_load_points` unit loads on the free end of the top arm
    """
    if not 0 < spine_width < nelx or not 0 < 2 * arm_height < nely:
        raise ValueError("C-beam spine and arms must leave a cutout inside the mesh")
    mesh = Mesh(nelx, nely)
    mask = rectangular_cutout_mask(mesh, (spine_width, arm_height), (nelx, nely - arm_height))

    clamp = Support(node_indices=mesh.node_id(0, np.arange(nely + 1)), constrained_dofs=ALL_2D)
    n_load_points = min(n_load_points, arm_height + 1)
    loads = [
        PointLoad(node_index=int(mesh.node_id(nelx, nely - k)), force_vector=[0.0, load])
        for k in range(n_load_points)
    ]

    bc = BoundaryConditions.from_nodes([clamp], point_loads=loads, dofs_per_node=2)
    return Problem(
        name="c_beam",
        mesh=mesh,
        design_mask=mask,
        boundary_conditions=bc,
        description=f"C-beam, spine {spine_width}, arms {arm_height} elements",
    )


def _face_patch(n_nodes: int, centre: int, area: int) -> np.ndarray:
    """Node indices centre +/- area // 2, kept inside [0, n_nodes)."""
    half = area // 2
    return np.arange(max(0, centre - half), min(n_nodes - 1, centre + half) + 1)


def create_l_bracket_3d(
    nelx: int = 20,
    nely: int = 20,
    nelz: int = 4,
    arm_fraction: float = 0.4,
    load: float = -1.0,
    load_area: int = 2
) -> Problem:
    """
    3D L-bracket, the 2D bracket extruded through the thickness.

    - Void: top-right block beyond `arm_fraction`, through all z layers
    - Constraint: top face of the vertical arm clamped
    - Load: vertical force over three nodes around mid-height of the
      horizontal arm's free end, on `load_area` layers around mid-thickness
    """
    mesh = Mesh(nelx, nely, nelz)
    arm_x = max(1, int(round(arm_fraction * nelx)))
    arm_y = max(1, int(round(arm_fraction * nely)))
    mask = rectangular_cutout_mask(mesh, (arm_x, arm_y, 0), (nelx, nely, nelz))

    # === BOUNDARY CONDITIONS ===
    ii, kk = np.meshgrid(np.arange(arm_x + 1), np.arange(nelz + 1), indexing="ij")
    clamp = Support(node_indices=mesh.node_id(ii.ravel(), nely, kk.ravel()), constrained_dofs=ALL_3D)

    # === LOADS ===
    js = _face_patch(arm_y + 1, arm_y // 2, 2)
    ks = _face_patch(nelz + 1, (nelz + 1) // 2, load_area)
    jl, kl = np.meshgrid(js, ks, indexing="ij")
    patch = DistributedLoad(
        node_indices=mesh.node_id(nelx, jl.ravel(), kl.ravel()),
        total_force=[0.0, load, 0.0],
    )

    bc = BoundaryConditions.from_nodes([clamp], distributed_loads=[patch], dofs_per_node=3)
    return Problem(
        name="l_bracket_3d",
        mesh=mesh,
        design_mask=mask,
        boundary_conditions=bc,
        description=f"3D L-bracket, arms {arm_x} x {arm_y} x {nelz} elements",
    )


def create_plate_3d(
    nelx: int = 24,
    nely: int = 12,
    nelz: int = 8,
    load: float = -1.0,
    load_area_y: int = 4,
    load_area_z: int = 3
) -> Problem:
    """
    3D cantilever plate with a rectangular load patch.

    - Constraint: left face clamped
    - Load: vertical force over a `load_area_y` x `load_area_z` patch of
      nodes centred on the right face
    """
    mesh = Mesh(nelx, nely, nelz)

    jj, kk = np.meshgrid(np.arange(nely + 1), np.arange(nelz + 1), indexing="ij")
    clamp = Support(node_indices=mesh.node_id(0, jj.ravel(), kk.ravel()), constrained_dofs=ALL_3D)

    js = _face_patch(nely + 1, (nely + 1) // 2, min(load_area_y, nely))
    ks = _face_patch(nelz + 1, (nelz + 1) // 2, min(load_area_z, nelz))
    jl, kl = np.meshgrid(js, ks, indexing="ij")
    patch = DistributedLoad(
        node_indices=mesh.node_id(nelx, jl.ravel(), kl.ravel()),
        total_force=[0.0, load, 0.0],
    )

    bc = BoundaryConditions.from_nodes([clamp], distributed_loads=[patch], dofs_per_node=3)
    return Problem(
        name="plate_3d",
        mesh=mesh,
        design_mask=mesh.full_mask(),
        boundary_conditions=bc,
        description=f"Left face clamped, {js.size} x {ks.size} node load patch on right face",
    )


# Available problems, by CLI name
PROBLEMS: Dict[str, Callable[..., Problem]] = {
    "cantilever": create_cantilever,
    "mbb": create_mbb_beam,
    "l_bracket": create_l_bracket,
    "cantilever_3d": create_cantilever_3d,
    "cantilever_distributed": create_cantilever_distributed,
    "fixed_fixed": create_fixed_fixed_beam,
    "simply_supported": create_simply_supported_beam,
    "multiple_supports": create_multiple_supports,
    "c_beam": create_c_beam,
    "l_bracket_3d": create_l_bracket_3d,
    "plate_3d": create_plate_3d,
}


if __name__ == "__main__":
    for name, factory in PROBLEMS.items():
        problem = factory()
        bc = problem.boundary_conditions
        print(f"{name}: mesh {problem.mesh.shape}, design elements {problem.n_design:,}")
        print(f"  - Fixed DOFs: {bc.fixed_dofs.size}")
        print(f"  - Loaded DOFs: {bc.load_dofs.size}, total load {bc.total_load:.2f}")
