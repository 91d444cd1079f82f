import numpy as np
import pytest

from pto.numerical.update import update_density

RHO_MIN, RHO_MAX = 1e-3, 1.0


@pytest.fixture
def mask():
    m = np.ones((6, 4), dtype=bool)
    m[0, 0] = False
    return m


def test_bounds_and_void_elements(mask, rng):
    prev = rng.uniform(-0.5, 1.5, size=mask.shape)
    new = rng.uniform(-0.5, 1.5, size=mask.shape)
    rho = update_density(prev, new, mask, 0.3, RHO_MIN, RHO_MAX)
    assert np.all(rho[mask] >= RHO_MIN)
    assert np.all(rho[mask] <= RHO_MAX)
    assert rho[0, 0] == 0.0


def test_convex_combination(mask):
    prev = np.full(mask.shape, 0.2)
    new = np.full(mask.shape, 0.6)
    rho = update_density(prev, new, mask, 0.25, RHO_MIN, RHO_MAX)
    assert np.allclose(rho[mask], 0.25 * 0.2 + 0.75 * 0.6)


def test_alpha_extremes(mask):
    prev = np.full(mask.shape, 0.2)
    new = np.full(mask.shape, 0.6)
    assert np.allclose(update_density(prev, new, mask, 1.0, RHO_MIN, RHO_MAX)[mask], 0.2)
    assert np.allclose(update_density(prev, new, mask, 0.0, RHO_MIN, RHO_MAX)[mask], 0.6)
    # out-of-range alpha is clipped
    assert np.allclose(update_density(prev, new, mask, 2.0, RHO_MIN, RHO_MAX)[mask], 0.2)
    assert np.allclose(update_density(prev, new, mask, -1.0, RHO_MIN, RHO_MAX)[mask], 0.6)


def test_saturated_allocation_is_clamped(mask):
    prev = np.full(mask.shape, 0.9)
    new = np.full(mask.shape, 1.8)
    rho = update_density(prev, new, mask, 0.3, RHO_MIN, RHO_MAX)
    assert np.all(rho[mask] == RHO_MAX)
