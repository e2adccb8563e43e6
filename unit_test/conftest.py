import numpy as np
import pytest

from perm_densecrf import DenseCRFConfig


@pytest.fixture
def rng():
    return np.random.default_rng(20230720)


@pytest.fixture(params=["np", "tf"])
def lattice_backend(request):
    return request.param


@pytest.fixture
def no_kernel_config():
    return DenseCRFConfig(max_iter=5, pos_w=(), pos_xy_std=())
