"""
PTO - Proportional Topology Optimization Package

This package provides a non-sensitivity topology optimizer for 2D and 3D
structured meshes, structured in two main submodules:

- **core**: Problem definitions (mesh, boundary conditions, benchmarks)
- **numerical**: SIMP FEM solver and the PTO loop (compliance and stress variants)
- **export**: STL surface of 3D results
"""

__version__ = "0.1.0"

from .core.mesh import Mesh
from .core.loads import BoundaryConditionError, BoundaryConditions
from .core.problems import PROBLEMS, Problem
from .export import export_density_to_stl
from .numerical.fem import MaterialProperties, SingularSystemError
from .numerical.topopt import (
    ComplianceVariant,
    PTOParams,
    PTOResult,
    PTOptimizer,
    StressVariant,
    optimize,
)

__all__ = [
    # Core
    "Mesh",
    "BoundaryConditionError",
    "BoundaryConditions",
    "PROBLEMS",
    "Problem",
    # Numerical
    "MaterialProperties",
    "SingularSystemError",
    "ComplianceVariant",
    "PTOParams",
    "PTOResult",
    "PTOptimizer",
    "StressVariant",
    "optimize",
    # Export
    "export_density_to_stl",
]
