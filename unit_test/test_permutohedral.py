import numpy as np
import pytest

from perm_densecrf.model_src.pairwise import LatticeFactory
from perm_densecrf.model_src.permutohedralx_computation import PermutohedralXComputation, PermutohedralXTF
from perm_densecrf.model_src.permutohedralx_np import PermutohedralXNP
from perm_densecrf.model_src.permutohedralx_initializer import PermutohedralXInitializer


def test_initializer_constants():
    init = PermutohedralXInitializer(2)

    np.testing.assert_array_equal(init.canonical, [[0, 0, 0], [1, 1, -2], [2, -1, -1]])
    np.testing.assert_allclose(init.E, [[1., 1.], [-1., 1.], [0., -2.]])
    np.testing.assert_allclose(init.alpha, 1. / (1. + 0.25))
    np.testing.assert_array_equal(init.blur_shift, [[3, 0], [0, 3], [0, 0]])


@pytest.mark.parametrize("d", [2, 5])
@pytest.mark.parametrize("reverse", [False, True])
def test_tf_and_np_lattices_agree(rng, d, reverse):
    features = rng.uniform(0., 4., size=(60, d)).astype(np.float32)
    values = rng.uniform(0., 1., size=(60, 3)).astype(np.float32)

    lattice_np = PermutohedralXNP(d)
    lattice_np.init(features)
    lattice_tf = PermutohedralXTF(PermutohedralXComputation(d))
    lattice_tf.init(features)

    assert lattice_np.M == int(lattice_tf.M)
    np.testing.assert_allclose(lattice_tf.compute(values, reverse), lattice_np.compute(values, reverse), rtol=1e-4, atol=1e-5)


def test_filter_is_linear(rng, lattice_backend):
    lattice = LatticeFactory(lattice_backend)(2)
    lattice.init(rng.uniform(0., 5., size=(30, 2)).astype(np.float32))

    a = rng.normal(size=(30, 2)).astype(np.float32)
    b = rng.normal(size=(30, 2)).astype(np.float32)
    np.testing.assert_allclose(lattice.compute(2. * a + b), 2. * lattice.compute(a) + lattice.compute(b), rtol=1e-4, atol=1e-5)


def test_reverse_blur_is_transposed_filter(rng):
    lattice = PermutohedralXNP(2)
    lattice.init(rng.uniform(0, 3, size=(10, 2)).astype(np.float32))

    basis = np.eye(10, dtype=np.float32)
    forward = lattice.compute(basis)
    backward = lattice.compute(basis, reverse=True)
    np.testing.assert_allclose(backward, forward.T, rtol=1e-4, atol=1e-6)


def test_identical_features_share_response(lattice_backend):
    lattice = LatticeFactory(lattice_backend)(5)
    lattice.init(np.full((12, 5), 0.3, dtype=np.float32))

    norm = lattice.compute(np.ones((12, 1), dtype=np.float32))
    assert np.all(norm > 0)
    np.testing.assert_allclose(norm[:, 0], norm[0, 0], rtol=1e-6)


def test_distant_points_do_not_interact(lattice_backend):
    features = np.array([[0., 0.], [0.5, 0.], [100., 100.]], dtype=np.float32)
    lattice = LatticeFactory(lattice_backend)(2)
    lattice.init(features)

    out = lattice.compute(np.array([[1.], [0.], [0.]], dtype=np.float32))
    assert out[0, 0] > out[1, 0] > 0
    assert out[2, 0] == 0


def test_compute_requires_init():
    with pytest.raises(RuntimeError):
        PermutohedralXNP(2).compute(np.ones((3, 1), dtype=np.float32))
    with pytest.raises(RuntimeError):
        PermutohedralXTF(PermutohedralXComputation(2)).compute(np.ones((3, 1), dtype=np.float32))


def test_feature_dimension_is_checked():
    with pytest.raises(ValueError):
        PermutohedralXNP(5).init(np.zeros((4, 2), dtype=np.float32))


def test_tf_computation_shared_per_dimension():
    factory = LatticeFactory("tf")
    a, b, c = factory(2), factory(2), factory(5)

    assert a is not b
    assert a.computation is b.computation
    assert a.computation is not c.computation
