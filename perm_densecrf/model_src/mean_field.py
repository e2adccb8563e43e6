"""
Mean-field approximation of the dense CRF.

`current` is initialized to softmax(-unary) and then updated exactly `max_iter` times:

    next = -unary + sum_k w_k * norm_k * filter_k(current)
    current = softmax(next)

There is no convergence check.
"""

import logging

import numpy as np

from .buffers import BufferAllocator
from .unary import setup_unary_energy

logger = logging.getLogger(__name__)


def exp_and_normalize(out: np.ndarray, inp: np.ndarray, scale: float) -> np.ndarray:
    """
    Per pixel softmax of `scale * inp` over labels, written to `out`.

    Args:
        out: [N, M], may be `inp` itself.
        inp: [N, M].
        scale: multiplier applied before the max and the exp.

    Returns:
        out.
    """
    b = np.multiply(inp, np.float32(scale), dtype=np.float32) # [N, M]
    # Find the max and subtract it so that the exp doesn't explode
    mx = b.max(axis=1, keepdims=True) # [N, 1]
    np.subtract(b, mx, out=b)
    np.exp(b, out=b)
    tt = b.sum(axis=1, keepdims=True) # [N, 1]
    # Make it a probability
    np.divide(b, tt, out=out)
    return out


class MeanFieldEngine:
    """
    Mean-field inference over buffers owned by a `BufferAllocator`.

    Usage per image: `setup_unary_energy()`, `set_pairwise()`, `run_inference()`, read `current`, `clear_pairwise()`.
    """
    def __init__(self, max_iter: int, buffers: BufferAllocator=None) -> None:
        self.max_iter = max_iter
        self.buffers = buffers or BufferAllocator()
        self.pairwise = []

        self.N, self.M = 0, 0 # effective pixels and labels of the current image
        self.unary = self.current = self.next = self.tmp = None

    def reserve(self, num_pixel: int, num_labels: int) -> bool:
        return self.buffers.reserve(num_pixel, num_labels)

    def setup_unary_energy(self, scores: np.ndarray, height: int, width: int) -> None:
        self.N, self.M = height * width, scores.shape[0]
        self.unary, self.current, self.next, self.tmp = self.buffers.views(self.N, self.M)
        setup_unary_energy(self.unary, scores, height, width)

    def set_pairwise(self, pairwise: list) -> None:
        self.clear_pairwise()
        self.pairwise = list(pairwise)

    def clear_pairwise(self) -> None:
        self.pairwise = []

    def start_inference(self) -> None:
        exp_and_normalize(self.current, self.unary, -1.0)

    def step_inference(self) -> None:
        # Set the unary potential
        np.negative(self.unary, out=self.next)

        # Add up all pairwise potentials
        for potential in self.pairwise:
            potential.apply(self.next, self.current, self.tmp, self.M)

        # Exponentiate and normalize
        exp_and_normalize(self.current, self.next, 1.0)

    def run_inference(self, max_iter: int=None) -> np.ndarray:
        """
        Returns:
            current: [N, M] view of the approximate marginals.
        """
        max_iter = self.max_iter if max_iter is None else max_iter
        self.start_inference()

        for i in range(max_iter):
            logger.debug("Iter. %d...", i + 1)
            self.step_inference()

        return self.current
