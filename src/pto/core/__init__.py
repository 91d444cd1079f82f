"""
PTO Core - Problem Definitions

Contains the structured mesh, boundary conditions and benchmark problems used
by the numerical optimizer and the command-line driver.
"""

from .mesh import Mesh, rectangular_cutout_mask
from .loads import (
    DOF,
    BoundaryConditionError,
    BoundaryConditions,
    DistributedLoad,
    PointLoad,
    Support,
)
from .problems import (
    PROBLEMS,
    Problem,
    create_c_beam,
    create_cantilever,
    create_cantilever_3d,
    create_cantilever_distributed,
    create_fixed_fixed_beam,
    create_l_bracket,
    create_l_bracket_3d,
    create_mbb_beam,
    create_multiple_supports,
    create_plate_3d,
    create_simply_supported_beam,
)

__all__ = [
    "Mesh",
    "rectangular_cutout_mask",
    "DOF",
    "BoundaryConditionError",
    "BoundaryConditions",
    "DistributedLoad",
    "PointLoad",
    "Support",
    "PROBLEMS",
    "Problem",
    "create_c_beam",
    "create_cantilever",
    "create_cantilever_3d",
    "create_cantilever_distributed",
    "create_fixed_fixed_beam",
    "create_l_bracket",
    "create_l_bracket_3d",
    "create_mbb_beam",
    "create_multiple_supports",
    "create_plate_3d",
    "create_simply_supported_beam",
]
