import numpy as np

from perm_densecrf import DenseCRFConfig
from perm_densecrf.model_src.kernel_factory import PairwiseKernelFactory, create_bilateral_features, create_spatial_features
from perm_densecrf.model_src.pairwise import PottsPotential


def test_spatial_features_are_row_major():
    features = create_spatial_features(2, 3, 2.0)

    np.testing.assert_allclose(features, [
        [0., 0.], [.5, 0.], [1., 0.],
        [0., .5], [.5, .5], [1., .5],
    ])
    assert features.dtype == np.float32


def test_bilateral_features_read_padded_image(rng):
    image = rng.normal(size=(3, 4, 5)).astype(np.float32)
    features = create_bilateral_features(image, 2, 3, 4.0, 0.5)

    assert features.shape == (6, 5)
    for h in range(2):
        for w in range(3):
            np.testing.assert_allclose(features[h * 3 + w], [w / 4., h / 4., *(image[:, h, w] / 0.5)], rtol=1e-6)


def test_terms_order_and_dimensions(rng):
    config = DenseCRFConfig(pos_w=(3., 1.), pos_xy_std=(3., 5.), bi_w=(10., ), bi_xy_std=(80., ), bi_rgb_std=(13., ), has_image=True, lattice_backend="np")
    pairwise = PairwiseKernelFactory(config).create(4, 5, rng.normal(size=(3, 4, 5)).astype(np.float32))

    assert [p.d for p in pairwise] == [2, 2, 5]
    assert [p.w for p in pairwise] == [3., 1., 10.]
    assert all(isinstance(p, PottsPotential) and p.N == 20 for p in pairwise)


def test_color_kernels_skipped_without_image():
    config = DenseCRFConfig(pos_w=(3., ), pos_xy_std=(3., ), bi_w=(10., ), bi_xy_std=(80., ), bi_rgb_std=(13., ), has_image=True, lattice_backend="np")
    pairwise = PairwiseKernelFactory(config).create(4, 5)

    assert [p.d for p in pairwise] == [2]


def test_no_kernels(no_kernel_config):
    assert PairwiseKernelFactory(no_kernel_config).create(3, 3) == []


def test_potts_apply_adds_weighted_normalized_filter(rng):
    config = DenseCRFConfig(pos_w=(2., ), pos_xy_std=(1., ), lattice_backend="np")
    potential = PairwiseKernelFactory(config).create(3, 4)[0]

    q = rng.dirichlet(np.ones(3), size=12).astype(np.float32)
    out = np.ones((12, 3), dtype=np.float32)
    tmp = np.empty((12, 3), dtype=np.float32)
    potential.apply(out, q, tmp, 3)

    filtered = potential.lattice.compute(q)
    np.testing.assert_allclose(tmp, filtered, rtol=1e-6)
    np.testing.assert_allclose(out, 1. + 2. * potential.norm * filtered, rtol=1e-5)

    # Normalized filter of a distribution is still roughly a distribution
    np.testing.assert_allclose((potential.norm * filtered).sum(axis=1), 1.0, rtol=1e-4)


def test_num_kernels_matches_built_terms(rng):
    config = DenseCRFConfig(pos_w=(3., 1.), pos_xy_std=(3., 5.), bi_w=(10., ), bi_xy_std=(80., ), bi_rgb_std=(13., ), has_image=True, lattice_backend="np")
    pairwise = PairwiseKernelFactory(config).create(4, 5, rng.normal(size=(3, 4, 5)).astype(np.float32))
    assert len(pairwise) == config.num_kernels == 3

    config = DenseCRFConfig(pos_w=(3., ), pos_xy_std=(3., ), lattice_backend="np")
    assert len(PairwiseKernelFactory(config).create(4, 5)) == config.num_kernels == 1
