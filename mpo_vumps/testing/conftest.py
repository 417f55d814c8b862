import numpy as np
import pytest

import mpo_vumps.drivers as drivers


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def jax_backend():
    """
    Switches to the jax backend for one test.
    """
    drivers.set_backend(True)
    yield
    drivers.set_backend(False)
