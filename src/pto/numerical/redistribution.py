"""
redistribution.py - Proportional material redistribution.

This module handles:
- Compliance-proportional allocation via Optimality Criteria bisection
- Stress-proportional allocation with the saturation (remaining material) loop
- Target material adjustment policy for the stress variant

Both redistributors expose the same interface and are selected once when the
optimizer is built.
"""

import warnings
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass


class RedistributionWarning(RuntimeWarning):
    """Material could not be distributed exactly as requested."""


@dataclass(frozen=True)
class Allocation:
    """
    Outcome of distributing a material budget.

    Attributes:
        density: Allocated density (0 outside the design mask)
        remaining: Budget left unallocated (negative when over-allocated)
        passes: Number of redistribution passes used
    """
    density: np.ndarray
    remaining: float
    passes: int


class MaterialRedistributor(ABC):
    """
    Base class for proportional redistribution.

    Subclasses implement a single pass (`redistribute`); `distribute` repeats
    passes with the material left over after clamping until the budget is
    spent or `max_passes` is reached.
    """

    def __init__(
        self,
        rho_min: float,
        rho_max: float,
        q: float,
        max_passes: int = 20,
        remaining_tol: float = 1e-6
    ):
        if not 0 <= rho_min < rho_max:
            raise ValueError(f"Need 0 <= rho_min < rho_max, got {rho_min}, {rho_max}")
        if q <= 0:
            raise ValueError(f"Exponent q must be positive, got {q}")
        if max_passes < 1:
            raise ValueError(f"max_passes must be >= 1, got {max_passes}")
        self.rho_min = rho_min
        self.rho_max = rho_max
        self.q = q
        self.max_passes = max_passes
        self.remaining_tol = remaining_tol

    @abstractmethod
    def redistribute(
        self,
        field: np.ndarray,
        remaining_material: float,
        mask: np.ndarray
    ) -> np.ndarray:
        """
        One allocation pass.

        Args:
            field: Element field driving the allocation (compliance or stress)
            remaining_material: Budget to allocate
            mask: Design mask

        Returns:
            Density increment, 0 outside the mask
        """

    def distribute(
        self,
        field: np.ndarray,
        target_material: float,
        mask: np.ndarray
    ) -> Allocation:
        """Allocate `target_material` over the mask, re-spending what clamping leaves over."""
        mask = np.asarray(mask, dtype=bool)
        total = np.zeros(mask.shape)
        remaining = float(target_material)
        tol = self.remaining_tol * abs(target_material)

        passes = 0
        while passes < self.max_passes:
            passes += 1
            increment = self.redistribute(field, remaining, mask)
            total += increment
            remaining -= float(increment[mask].sum())
            if remaining < tol:
                break

        if remaining >= tol:
            warnings.warn(
                f"{remaining:.4g} of {target_material:.4g} material left after "
                f"{passes} redistribution passes",
                RedistributionWarning,
                stacklevel=2,
            )

        return Allocation(density=total, remaining=remaining, passes=passes)


class ComplianceRedistributor(MaterialRedistributor):
    """
    Compliance-proportional allocation (PTOc).

    rho_e = clamp((C_e / lambda)^(1/q), rho_min, rho_max), with the multiplier
    lambda found by bisection so that the allocated total matches the budget.
    """

    def __init__(
        self,
        rho_min: float,
        rho_max: float,
        q: float = 1.0,
        bisection_tol: float = 1e-6,
        max_bisection_steps: int = 200,
        **kwargs
    ):
        super().__init__(rho_min, rho_max, q, **kwargs)
        self.bisection_tol = bisection_tol
        self.max_bisection_steps = max_bisection_steps

    def density_at(self, field: np.ndarray, lam: float) -> np.ndarray:
        """Clamped allocation for a given multiplier (field values clipped at 0)."""
        c = np.maximum(np.asarray(field, dtype=np.float64), 0.0)
        return np.clip((c / lam) ** (1.0 / self.q), self.rho_min, self.rho_max)

    def redistribute(
        self,
        field: np.ndarray,
        remaining_material: float,
        mask: np.ndarray
    ) -> np.ndarray:
        mask = np.asarray(mask, dtype=bool)
        out = np.zeros(mask.shape)
        c = np.maximum(np.asarray(field, dtype=np.float64)[mask], 0.0)
        n = c.size
        if n == 0:
            return out

        lower, upper = n * self.rho_min, n * self.rho_max
        if remaining_material <= lower:
            if remaining_material < lower * (1 - 1e-12):
                warnings.warn(
                    f"Material budget {remaining_material:.4g} below minimum {lower:.4g}; "
                    "allocating rho_min everywhere",
                    RedistributionWarning,
                    stacklevel=2,
                )
            out[mask] = self.rho_min
            return out
        if remaining_material >= upper:
            if remaining_material > upper * (1 + 1e-12):
                warnings.warn(
                    f"Material budget {remaining_material:.4g} above maximum {upper:.4g}; "
                    "allocating rho_max everywhere",
                    RedistributionWarning,
                    stacklevel=2,
                )
            out[mask] = self.rho_max
            return out

        c_max = c.max()
        if c_max <= 0:
            warnings.warn(
                "Compliance field has no positive entry; allocating uniformly",
                RedistributionWarning,
                stacklevel=2,
            )
            out[mask] = remaining_material / n
            return out

        # At l2 every element sits at rho_min, as lambda -> 0 every element
        # reaches rho_max, so the root is bracketed.
        rho_floor = max(self.rho_min, 1e-12)
        l1, l2 = 0.0, c_max / rho_floor ** self.q
        steps = 0
        while (l2 - l1) / (l1 + l2) > self.bisection_tol:
            if steps >= self.max_bisection_steps:
                warnings.warn(
                    f"OC bisection stopped after {steps} steps "
                    f"(relative bracket {(l2 - l1) / (l1 + l2):.2e})",
                    RedistributionWarning,
                    stacklevel=2,
                )
                break
            lmid = 0.5 * (l1 + l2)
            if self.density_at(c, lmid).sum() > remaining_material:
                l1 = lmid
            else:
                l2 = lmid
            steps += 1

        out[mask] = self.density_at(c, 0.5 * (l1 + l2))
        return out

    def distribute(
        self,
        field: np.ndarray,
        target_material: float,
        mask: np.ndarray
    ) -> Allocation:
        """Single pass: the bisection already accounts for clamping."""
        mask = np.asarray(mask, dtype=bool)
        density = self.redistribute(field, target_material, mask)
        remaining = float(target_material - density[mask].sum())
        return Allocation(density=density, remaining=remaining, passes=1)


class StressRedistributor(MaterialRedistributor):
    """
    Stress-proportional allocation (PTOs).

    rho_e = clamp(RM * w_e / sum(w), rho_min, rho_max), w_e = max(sigma_e, eps)^q
    """

    STRESS_FLOOR = 1e-9
    WEIGHT_FLOOR = 1e-12

    def __init__(self, rho_min: float, rho_max: float, q: float = 2.0, **kwargs):
        super().__init__(rho_min, rho_max, q, **kwargs)

    def redistribute(
        self,
        field: np.ndarray,
        remaining_material: float,
        mask: np.ndarray
    ) -> np.ndarray:
        mask = np.asarray(mask, dtype=bool)
        out = np.zeros(mask.shape)
        sigma = np.asarray(field, dtype=np.float64)[mask]
        if sigma.size == 0:
            return out

        w = np.maximum(sigma, self.STRESS_FLOOR) ** self.q
        w_sum = w.sum()
        if w_sum < self.WEIGHT_FLOOR:
            rho = np.full(sigma.size, remaining_material / sigma.size)
        else:
            rho = remaining_material * w / w_sum

        out[mask] = np.clip(rho, self.rho_min, self.rho_max)
        return out


@dataclass
class TargetMaterialPolicy:
    """
    Multiplicative target material adjustment for the stress variant.

    Increases TM when the peak stress exceeds the upper band edge and
    decreases it when below the lower edge. Inside the band TM is held
    (`hold_in_band=True`) or decreased (`hold_in_band=False`).

    Attributes:
        step: Relative change per iteration
        hold_in_band: Keep TM unchanged inside the band
        inclusive_upper: Increase also when sigma_max equals the upper edge
    """
    step: float = 0.05
    hold_in_band: bool = True
    inclusive_upper: bool = False

    def __post_init__(self):
        if not 0 < self.step < 1:
            raise ValueError(f"TM step must lie in (0, 1), got {self.step}")

    def __call__(self, sigma_max: float, sigma_allow: float, tau: float) -> float:
        upper = (1 + tau) * sigma_allow
        lower = (1 - tau) * sigma_allow
        over = sigma_max >= upper if self.inclusive_upper else sigma_max > upper
        if over:
            return 1.0 + self.step
        if sigma_max < lower or not self.hold_in_band:
            return 1.0 - self.step
        return 1.0
