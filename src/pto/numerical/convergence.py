"""
convergence.py - Stopping rules of the outer loop.

This module handles:
- Density change metric over the design region
- Stress band check for the stress variant
- RUNNING / CONVERGED / EXHAUSTED verdicts
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ConvergenceStatus(Enum):
    RUNNING = "running"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class ConvergenceVerdict:
    """
    Result of one convergence check.

    Attributes:
        status: Loop state after the check
        change: Max absolute density change over the design mask
        stress_ok: Peak stress inside the allowed band (None for compliance)
    """
    status: ConvergenceStatus
    change: float
    stress_ok: Optional[bool] = None

    @property
    def should_stop(self) -> bool:
        return self.status is not ConvergenceStatus.RUNNING


class ConvergenceMonitor:
    """
    Stateless convergence checker.

    Compliance variant: converged when the density change drops below `tol`.
    Stress variant: additionally requires (1-tau)*s_a <= sigma_max <= (1+tau)*s_a.
    Otherwise the loop is exhausted once `max_iterations` is reached.
    """

    def __init__(
        self,
        max_iterations: int,
        tol: float,
        allowable_stress: Optional[float] = None,
        tolerance_band: float = 0.0
    ):
        if max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
        self.max_iterations = max_iterations
        self.tol = tol
        self.allowable_stress = allowable_stress
        self.tolerance_band = tolerance_band

    @staticmethod
    def density_change(rho_new: np.ndarray, rho_prev: np.ndarray, mask: np.ndarray) -> float:
        mask = np.asarray(mask, dtype=bool)
        if not mask.any():
            return 0.0
        return float(np.max(np.abs(rho_new[mask] - rho_prev[mask])))

    def stress_in_band(self, sigma_max: float) -> bool:
        s_a, tau = self.allowable_stress, self.tolerance_band
        return (1 - tau) * s_a <= sigma_max <= (1 + tau) * s_a

    def check(
        self,
        rho_new: np.ndarray,
        rho_prev: np.ndarray,
        mask: np.ndarray,
        iteration: int,
        sigma_max: Optional[float] = None
    ) -> ConvergenceVerdict:
        """
        Classify the loop state after `iteration` completed iterations.

        Args:
            rho_new: Density after this iteration's update
            rho_prev: Density before it
            mask: Design mask
            iteration: Number of completed iterations (1-based)
            sigma_max: Peak Von Mises stress (stress variant only)

        Returns:
            ConvergenceVerdict
        """
        change = self.density_change(rho_new, rho_prev, mask)

        stress_ok = None
        if self.allowable_stress is not None:
            if sigma_max is None:
                raise ValueError("Stress variant check needs sigma_max")
            stress_ok = self.stress_in_band(sigma_max)

        converged = change < self.tol and stress_ok is not False
        if converged:
            status = ConvergenceStatus.CONVERGED
        elif iteration >= self.max_iterations:
            status = ConvergenceStatus.EXHAUSTED
        else:
            status = ConvergenceStatus.RUNNING

        return ConvergenceVerdict(status=status, change=change, stress_ok=stress_ok)
