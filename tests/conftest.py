import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from pto.core.problems import create_cantilever, create_l_bracket
from pto.numerical.topopt import PTOParams


@pytest.fixture
def cantilever():
    """10 x 5 cantilever, left edge clamped, unit load at bottom-right."""
    return create_cantilever(nelx=10, nely=5)


@pytest.fixture
def l_bracket():
    return create_l_bracket(nelx=10, nely=10)


@pytest.fixture
def quiet_params():
    return PTOParams(max_iterations=5, verbose=False)


@pytest.fixture
def rng():
    return np.random.default_rng(0)
