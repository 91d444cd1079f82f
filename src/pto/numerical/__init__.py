"""
PTO Numerical - FEM Solver and Optimization Loop

Contains the SIMP finite-element model, the derived element fields, the
density filter, the proportional redistribution algorithms and the outer
optimization loop.
"""

from .elements import (
    constitutive_matrix,
    get_element_stiffness_matrix,
    strain_displacement_matrix,
)
from .fem import (
    MaterialProperties,
    SingularSystemError,
    SolverWarning,
    assemble_global_stiffness,
    solve_displacements,
    solve_fem,
)
from .fields import element_compliance, total_compliance, von_mises_stress
from .filters import DensityFilter, FilterWarning
from .redistribution import (
    Allocation,
    ComplianceRedistributor,
    MaterialRedistributor,
    RedistributionWarning,
    StressRedistributor,
    TargetMaterialPolicy,
)
from .update import update_density
from .convergence import ConvergenceMonitor, ConvergenceStatus, ConvergenceVerdict
from .topopt import (
    ComplianceVariant,
    IterationRecord,
    OptimizationState,
    PTOParams,
    PTOResult,
    PTOptimizer,
    StepResult,
    StressVariant,
    optimize,
    threshold_density,
)

__all__ = [
    # FEM
    "constitutive_matrix",
    "get_element_stiffness_matrix",
    "strain_displacement_matrix",
    "MaterialProperties",
    "SingularSystemError",
    "SolverWarning",
    "assemble_global_stiffness",
    "solve_displacements",
    "solve_fem",
    "element_compliance",
    "total_compliance",
    "von_mises_stress",
    # PTO building blocks
    "DensityFilter",
    "FilterWarning",
    "Allocation",
    "ComplianceRedistributor",
    "MaterialRedistributor",
    "RedistributionWarning",
    "StressRedistributor",
    "TargetMaterialPolicy",
    "update_density",
    "ConvergenceMonitor",
    "ConvergenceStatus",
    "ConvergenceVerdict",
    # Loop
    "ComplianceVariant",
    "IterationRecord",
    "OptimizationState",
    "PTOParams",
    "PTOResult",
    "PTOptimizer",
    "StepResult",
    "StressVariant",
    "optimize",
    "threshold_density",
]
