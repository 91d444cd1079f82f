"""
topopt.py - Proportional Topology Optimization loop.

This module handles:
- PTO parameters and the two variants (compliance "C", stress "S")
- Immutable optimization state and the pure per-iteration step
- The outer loop with history, convergence and final stress evaluation
- Density thresholding for geometry export
"""

import time
import numpy as np
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Union

from ..core.loads import BoundaryConditions
from ..core.mesh import Mesh
from ..utils.logging_utils import get_logger
from .convergence import ConvergenceMonitor, ConvergenceStatus, ConvergenceVerdict
from .elements import element_matrices
from .fem import MaterialProperties, assemble_global_stiffness, solve_fem
from .fields import element_compliance, total_compliance, von_mises_stress
from .filters import DensityFilter
from .redistribution import (
    ComplianceRedistributor,
    MaterialRedistributor,
    StressRedistributor,
    TargetMaterialPolicy,
)
from .update import update_density

logger = get_logger(__name__)


@dataclass
class PTOParams:
    """
    Parameters shared by both PTO variants.

    Attributes:
        filter_radius: Density filter radius (physical units)
        move_limit: Weight of the previous density in the update (alpha)
        rho_min: Minimum density in the design region
        rho_max: Maximum density
        max_iterations: Outer iteration cap
        convergence_tol: Tolerance on the max density change
        max_inner_iterations: Cap of redistribution passes per iteration
        remaining_material_tol: Relative budget left that ends the passes
        bisection_tol: Relative bracket width ending the OC bisection
        solver: 'direct' or 'iterative'
        verbose: Log one INFO line per iteration
    """
    filter_radius: float = 1.5
    move_limit: float = 0.3
    rho_min: float = 1e-3
    rho_max: float = 1.0
    max_iterations: int = 200
    convergence_tol: float = 1e-3
    max_inner_iterations: int = 20
    remaining_material_tol: float = 1e-6
    bisection_tol: float = 1e-6
    solver: str = "direct"
    verbose: bool = True

    def __post_init__(self):
        if self.filter_radius < 0:
            raise ValueError(f"filter_radius must be non-negative, got {self.filter_radius}")
        if not 0.0 <= self.move_limit <= 1.0:
            raise ValueError(f"move_limit must lie in [0, 1], got {self.move_limit}")
        if not 0.0 <= self.rho_min < self.rho_max <= 1.0:
            raise ValueError(f"Need 0 <= rho_min < rho_max <= 1, got {self.rho_min}, {self.rho_max}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.convergence_tol <= 0:
            raise ValueError(f"convergence_tol must be positive, got {self.convergence_tol}")
        if self.max_inner_iterations < 1:
            raise ValueError(f"max_inner_iterations must be >= 1, got {self.max_inner_iterations}")
        if self.solver not in ("direct", "iterative"):
            raise ValueError(f"Unknown solver: {self.solver}")


@dataclass
class ComplianceVariant:
    """
    Minimum compliance under a fixed material budget (PTOc).

    Attributes:
        volume_fraction: Budget as a fraction of the design elements
        q: Exponent of the compliance-proportional allocation
    """
    volume_fraction: float = 0.4
    q: float = 1.0

    name = "C"

    def __post_init__(self):
        if not 0.0 < self.volume_fraction <= 1.0:
            raise ValueError(f"volume_fraction must lie in (0, 1], got {self.volume_fraction}")


@dataclass
class StressVariant:
    """
    Minimum material with the peak Von Mises stress inside a band (PTOs).

    Attributes:
        allowable_stress: Target peak stress
        tolerance_band: Relative half-width of the accepted band (tau)
        initial_target_material: Starting budget (default 0.4 * design elements)
        q: Exponent of the stress-proportional allocation
        tm_policy: Callable (sigma_max, sigma_allow, tau) -> TM factor
    """
    allowable_stress: float = 1.0
    tolerance_band: float = 0.05
    initial_target_material: Optional[float] = None
    q: float = 2.0
    tm_policy: Callable[[float, float, float], float] = field(default_factory=TargetMaterialPolicy)

    name = "S"

    def __post_init__(self):
        if self.allowable_stress <= 0:
            raise ValueError(f"allowable_stress must be positive, got {self.allowable_stress}")
        if not 0.0 <= self.tolerance_band < 1.0:
            raise ValueError(f"tolerance_band must lie in [0, 1), got {self.tolerance_band}")
        if self.initial_target_material is not None and self.initial_target_material <= 0:
            raise ValueError("initial_target_material must be positive")


Variant = Union[ComplianceVariant, StressVariant]


@dataclass(frozen=True)
class IterationRecord:
    """One row of the optimization history."""
    iteration: int
    compliance: float
    volume: float
    change: float
    sigma_max: Optional[float] = None
    target_material: Optional[float] = None


@dataclass(frozen=True)
class OptimizationState:
    """
    Everything carried from one iteration to the next.

    Attributes:
        iteration: Completed iterations
        density: Current density field (read-only)
        target_material: Current material budget
    """
    iteration: int
    density: np.ndarray
    target_material: float


@dataclass(frozen=True)
class StepResult:
    """
    Output of one iteration.

    Attributes:
        state: State after the iteration
        record: History entry
        field: Field that drove the allocation (compliance or Von Mises)
        verdict: Convergence verdict
    """
    state: OptimizationState
    record: IterationRecord
    field: np.ndarray
    verdict: ConvergenceVerdict


@dataclass
class PTOResult:
    """
    Result of a PTO run.

    Attributes:
        density: Final density field (read-only)
        history: One record per iteration
        converged: True only when the convergence criteria were met
        iterations: Number of iterations run
        status: Final convergence status
        stress_field: Von Mises field of the final density (stress variant)
        elapsed_time: Wall time [s]
    """
    density: np.ndarray
    history: List[IterationRecord] = field(default_factory=list)
    converged: bool = False
    iterations: int = 0
    status: ConvergenceStatus = ConvergenceStatus.RUNNING
    stress_field: Optional[np.ndarray] = None
    elapsed_time: float = 0.0

    @property
    def compliance_history(self) -> List[float]:
        return [r.compliance for r in self.history]

    @property
    def volume_history(self) -> List[float]:
        return [r.volume for r in self.history]

    @property
    def final_compliance(self) -> float:
        return self.history[-1].compliance if self.history else 0.0

    @property
    def final_volume(self) -> float:
        return self.history[-1].volume if self.history else 0.0


def _frozen(array: np.ndarray) -> np.ndarray:
    out = np.array(array, dtype=np.float64, copy=True)
    out.setflags(write=False)
    return out


class PTOptimizer:
    """
    Proportional topology optimizer.

    Each iteration: solve K*u = F -> evaluate field (element compliance or
    Von Mises stress) -> (stress variant) adjust target material ->
    redistribute -> filter -> move-limited update -> convergence check.
    """

    def __init__(
        self,
        mesh: Mesh,
        design_mask: np.ndarray,
        boundary_conditions: BoundaryConditions,
        material: MaterialProperties = None,
        params: PTOParams = None,
        variant: Variant = None
    ):
        """
        Set up the optimizer.

        Args:
            mesh: Structured mesh
            design_mask: True for optimizable elements
            boundary_conditions: Fixed and loaded DOFs
            material: Material properties (default unit modulus)
            params: Algorithm parameters (default PTOParams())
            variant: ComplianceVariant or StressVariant (default compliance)

        Raises:
            ValueError: bad mask or parameters
            BoundaryConditionError: ill-posed boundary conditions
        """
        self.mesh = mesh
        self.design_mask = mesh.validate_mask(design_mask).copy()
        self.design_mask.setflags(write=False)
        self.boundary_conditions = boundary_conditions
        self.material = material or MaterialProperties()
        self.params = params or PTOParams()
        self.variant = variant or ComplianceVariant()

        boundary_conditions.validate(mesh)

        self.n_design = int(self.design_mask.sum())
        self.is_stress = isinstance(self.variant, StressVariant)

        # Pre-computed per-mesh data
        self.Ke, self.B, self.D0 = element_matrices(mesh, self.material.nu)
        self.edof = mesh.connectivity()
        self.F = boundary_conditions.get_force_vector(mesh.n_dofs)
        self.filter = DensityFilter(self.params.filter_radius, mesh.spacing)

        self.redistributor = self._build_redistributor()
        self.monitor = ConvergenceMonitor(
            max_iterations=self.params.max_iterations,
            tol=self.params.convergence_tol,
            allowable_stress=self.variant.allowable_stress if self.is_stress else None,
            tolerance_band=self.variant.tolerance_band if self.is_stress else 0.0,
        )

    def _build_redistributor(self) -> MaterialRedistributor:
        p = self.params
        common = dict(
            max_passes=p.max_inner_iterations,
            remaining_tol=p.remaining_material_tol,
        )
        if self.is_stress:
            return StressRedistributor(p.rho_min, p.rho_max, q=self.variant.q, **common)
        return ComplianceRedistributor(
            p.rho_min, p.rho_max, q=self.variant.q, bisection_tol=p.bisection_tol, **common
        )

    @property
    def material_bounds(self):
        """Smallest and largest budget the design region can hold."""
        return self.n_design * self.params.rho_min, self.n_design * self.params.rho_max

    def initial_target_material(self) -> float:
        if self.is_stress:
            tm = self.variant.initial_target_material
            return 0.4 * self.n_design if tm is None else float(tm)
        return self.variant.volume_fraction * self.n_design

    def initial_state(self) -> OptimizationState:
        """Uniform density carrying the initial budget, clamped, 0 outside the mask."""
        tm = self.initial_target_material()
        rho0 = np.clip(tm / self.n_design, self.params.rho_min, self.params.rho_max)
        density = np.where(self.design_mask, rho0, 0.0)
        return OptimizationState(iteration=0, density=_frozen(density), target_material=tm)

    def solve(self, density: np.ndarray):
        """Assemble and solve for a density field; returns (u, K)."""
        K = assemble_global_stiffness(self.mesh, density, self.material, self.Ke, self.edof)
        u = solve_fem(K, self.F, self.boundary_conditions.fixed_dofs, method=self.params.solver)
        return u, K

    def stress_field(self, density: np.ndarray, u: Optional[np.ndarray] = None) -> np.ndarray:
        """Von Mises stress of a density field (solving first if u is not given)."""
        if u is None:
            u, _ = self.solve(density)
        return von_mises_stress(u, self.edof, density, self.B, self.D0, self.material)

    def _adjust_target_material(self, tm: float, sigma_max: float) -> float:
        """
        Scale TM by the policy factor.

        TM is not capped at the design capacity: a budget above N * rho_max
        leaves every element at rho_max once the update clamps the density.
        """
        factor = self.variant.tm_policy(
            sigma_max, self.variant.allowable_stress, self.variant.tolerance_band
        )
        if not factor > 0:
            raise ValueError(f"Target material policy returned a non-positive factor: {factor}")
        new_tm = float(tm * factor)
        _, capacity = self.material_bounds
        if new_tm > capacity >= tm:
            logger.warning(
                "Target material %.4g exceeds the design capacity %.4g; "
                "allocation saturates at rho_max", new_tm, capacity
            )
        return new_tm

    def step(self, state: OptimizationState) -> StepResult:
        """
        Run one iteration; `state` is not modified.

        Args:
            state: Current optimization state

        Returns:
            StepResult with the next state
        """
        p = self.params
        rho = state.density

        # === ANALYSIS ===
        u, K = self.solve(rho)
        compliance = total_compliance(u, K)

        sigma_max = None
        tm = state.target_material
        if self.is_stress:
            drive = self.stress_field(rho, u)
            sigma_max = float(drive[self.design_mask].max())
            tm = self._adjust_target_material(tm, sigma_max)
        else:
            drive = element_compliance(u, self.edof, rho, self.Ke, self.material)

        # === REDISTRIBUTION ===
        allocation = self.redistributor.distribute(drive, tm, self.design_mask)
        rho_filtered = self.filter(allocation.density)
        rho_new = update_density(
            rho, rho_filtered, self.design_mask, p.move_limit, p.rho_min, p.rho_max
        )

        iteration = state.iteration + 1
        verdict = self.monitor.check(rho_new, rho, self.design_mask, iteration, sigma_max)

        record = IterationRecord(
            iteration=iteration,
            compliance=compliance,
            volume=float(rho_new[self.design_mask].sum()),
            change=verdict.change,
            sigma_max=sigma_max,
            target_material=tm if self.is_stress else None,
        )
        new_state = OptimizationState(
            iteration=iteration, density=_frozen(rho_new), target_material=tm
        )
        return StepResult(state=new_state, record=record, field=drive, verdict=verdict)

    def _log_header(self) -> None:
        p = self.params
        logger.info("=" * 60)
        logger.info("Proportional Topology Optimization (variant %s)", self.variant.name)
        logger.info("=" * 60)
        logger.info("Mesh: %s, design elements: %s", " x ".join(map(str, self.mesh.shape)), f"{self.n_design:,}")
        if self.is_stress:
            logger.info("Allowable stress: %.4g (band +/- %.1f%%)",
                        self.variant.allowable_stress, 100 * self.variant.tolerance_band)
        else:
            logger.info("Target volume fraction: %.2f%%", 100 * self.variant.volume_fraction)
        logger.info("Filter radius: %s | Move limit: %s | Penalty: %s",
                    p.filter_radius, p.move_limit, self.material.penalty)
        logger.info("-" * 60)

    def _log_iteration(self, record: IterationRecord) -> None:
        line = (f"Iter {record.iteration:3d} | "
                f"Compliance: {record.compliance:.4e} | "
                f"Volume: {record.volume:.4f} | "
                f"Change: {record.change:.4f}")
        if record.sigma_max is not None:
            line += f" | Stress: {record.sigma_max:.4e} | TM: {record.target_material:.2f}"
        if self.params.verbose:
            logger.info(line)
        else:
            logger.debug(line)

    def run(self, callback: Optional[Callable[[StepResult], None]] = None) -> PTOResult:
        """
        Iterate until converged or out of iterations.

        Args:
            callback: Called with every StepResult

        Returns:
            PTOResult
        """
        start_time = time.time()
        if self.params.verbose:
            self._log_header()

        history: List[IterationRecord] = []
        state = self.initial_state()

        while True:
            result = self.step(state)
            history.append(result.record)
            self._log_iteration(result.record)
            if callback:
                callback(result)
            state = result.state
            if result.verdict.should_stop:
                break

        status = result.verdict.status
        stress = self.stress_field(state.density) if self.is_stress else None
        elapsed_time = time.time() - start_time

        if status is ConvergenceStatus.CONVERGED:
            logger.info("Converged at iteration %d", state.iteration)
        else:
            logger.warning("Stopped after %d iterations without converging", state.iteration)
        if self.params.verbose:
            logger.info("=" * 60)
            logger.info("Optimization complete in %.1fs", elapsed_time)
            logger.info("Final compliance: %.4e", history[-1].compliance)
            logger.info("Final volume: %.4f", history[-1].volume)
            logger.info("=" * 60)

        return PTOResult(
            density=state.density,
            history=history,
            converged=status is ConvergenceStatus.CONVERGED,
            iterations=state.iteration,
            status=status,
            stress_field=_frozen(stress) if stress is not None else None,
            elapsed_time=elapsed_time,
        )


def optimize(
    mesh: Mesh,
    design_mask: np.ndarray,
    boundary_conditions: BoundaryConditions,
    material: MaterialProperties = None,
    filter_radius: Optional[float] = None,
    move_limit: Optional[float] = None,
    variant: Variant = None,
    max_iterations: Optional[int] = None,
    convergence_tol: Optional[float] = None,
    params: PTOParams = None,
    callback: Optional[Callable[[StepResult], None]] = None
) -> PTOResult:
    """
    Run PTO on a problem in one call.

    Keyword arguments given explicitly override the matching fields of
    `params`.

    Returns:
        PTOResult
    """
    overrides = {
        "filter_radius": filter_radius,
        "move_limit": move_limit,
        "max_iterations": max_iterations,
        "convergence_tol": convergence_tol,
    }
    params = replace(params or PTOParams(), **{k: v for k, v in overrides.items() if v is not None})

    optimizer = PTOptimizer(
        mesh=mesh,
        design_mask=design_mask,
        boundary_conditions=boundary_conditions,
        material=material,
        params=params,
        variant=variant,
    )
    return optimizer.run(callback=callback)


def threshold_density(
    density: np.ndarray,
    threshold: float = 0.5
) -> np.ndarray:
    """
    Binarize a density field.

    Args:
        density: Continuous density field [0, 1]
        threshold: Cut-off value

    Returns:
        Field of 0.0 / 1.0
    """
    return (density >= threshold).astype(np.float64)
