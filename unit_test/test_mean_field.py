import numpy as np

from perm_densecrf.model_src.kernel_factory import PairwiseKernelFactory
from perm_densecrf.model_src.mean_field import MeanFieldEngine, exp_and_normalize
from perm_densecrf import DenseCRFConfig


class ConstantPotential:
    """ Adds a fixed energy per label and records the calls """
    def __init__(self, energy, calls, name):
        self.energy = np.asarray(energy, dtype=np.float32)
        self.calls = calls
        self.name = name

    def apply(self, out_values, in_values, tmp, value_size):
        self.calls.append((self.name, value_size))
        out_values += self.energy[np.newaxis, :]


def make_engine(scores, max_iter=5):
    num_labels, height, width = scores.shape
    engine = MeanFieldEngine(max_iter)
    engine.reserve(height * width, num_labels)
    engine.setup_unary_energy(scores, height, width)
    return engine


def test_exp_and_normalize_scale():
    inp = np.array([[1., 2., 3.], [0., 0., 0.]], dtype=np.float32)
    out = np.empty_like(inp)

    exp_and_normalize(out, inp, -1.0)
    np.testing.assert_allclose(out[0], np.exp([-1., -2., -3.]) / np.exp([-1., -2., -3.]).sum(), rtol=1e-6)
    np.testing.assert_allclose(out[1], 1 / 3., rtol=1e-6)

    exp_and_normalize(inp, inp, 1.0)
    np.testing.assert_allclose(inp[0], np.exp([1., 2., 3.]) / np.exp([1., 2., 3.]).sum(), rtol=1e-6)


def test_zero_pairwise_keeps_start_softmax(rng):
    engine = make_engine(rng.normal(size=(3, 4, 5)).astype(np.float32))

    engine.start_inference()
    start = engine.current.copy()

    current = engine.run_inference(7)
    np.testing.assert_array_equal(current, start)


def test_distribution_sums_to_one_after_every_step(rng, lattice_backend):
    scores = rng.normal(size=(3, 6, 7)).astype(np.float32)
    image = 20 * rng.normal(size=(3, 6, 7)).astype(np.float32)
    config = DenseCRFConfig(pos_w=(3., ), pos_xy_std=(3., ), bi_w=(5., ), bi_xy_std=(10., ), bi_rgb_std=(13., ), has_image=True, lattice_backend=lattice_backend)

    engine = make_engine(scores)
    engine.set_pairwise(PairwiseKernelFactory(config).create(6, 7, image))

    engine.start_inference()
    np.testing.assert_allclose(engine.current.sum(axis=1), 1.0, rtol=1e-5)
    for _ in range(4):
        engine.step_inference()
        np.testing.assert_allclose(engine.current.sum(axis=1), 1.0, rtol=1e-5)
        assert np.all(engine.current >= 0) and np.all(engine.current <= 1)


def test_pairwise_terms_applied_in_order_every_step():
    scores = np.zeros((2, 2, 2), dtype=np.float32)
    calls = []
    engine = make_engine(scores, max_iter=3)
    engine.set_pairwise([
        ConstantPotential([0., 1.], calls, "first"),
        ConstantPotential([0., 1.], calls, "second"),
    ])

    current = engine.run_inference()

    assert calls == [("first", 2), ("second", 2)] * 3
    # -unary is uniform, so only the pairwise energies decide
    np.testing.assert_allclose(current[:, 1], np.exp(2.) / (1 + np.exp(2.)), rtol=1e-6)


def test_pairwise_energy_is_additive_to_negative_unary():
    scores = np.array([[[2.]], [[0.]]], dtype=np.float32)
    engine = make_engine(scores, max_iter=1)
    engine.set_pairwise([ConstantPotential([0., 4.], [], "flip")])

    current = engine.run_inference()

    # next = log softmax(scores) + [0, 4] = [2, 4] + const
    np.testing.assert_allclose(current[0], np.exp([2., 4.]) / np.exp([2., 4.]).sum(), rtol=1e-5)


def test_clear_pairwise():
    engine = make_engine(np.zeros((2, 1, 1), dtype=np.float32))
    engine.set_pairwise([ConstantPotential([0., 1.], [], "a")])
    engine.clear_pairwise()

    assert engine.pairwise == []
