"""
Pairwise potentials evaluated with a permutohedral lattice.
"""

import logging

import numpy as np

from .errors import ConfigurationError
from .permutohedralx_computation import PermutohedralXComputation, PermutohedralXTF
from .permutohedralx_np import PermutohedralXNP

logger = logging.getLogger(__name__)


class LatticeFactory:
    """
    Creates a fresh lattice for every pairwise term.
    TF computations are kept per feature dimension, so each is traced only once.
    """
    def __init__(self, backend: str="tf") -> None:
        if backend not in ("tf", "np"):
            raise ConfigurationError("Unknown lattice backend {}.".format(backend))
        self.backend = backend
        self.computations = {}

    def __call__(self, d: int):
        if self.backend == "np":
            return PermutohedralXNP(d)

        if d not in self.computations:
            logger.debug("Creating TF lattice computation for d = %d.", d)
            self.computations[d] = PermutohedralXComputation(d, name="permutohedralx_d{}".format(d))
        return PermutohedralXTF(self.computations[d])


class PottsPotential:
    """
    Potts potential with a Gaussian kernel over `features`.

    The kernel response is normalized per pixel by the response to an all-ones input,
    so `apply()` adds `w * norm * filter(Q)` to the energy.
    """
    def __init__(self, features: np.ndarray, d: int, N: int, w: float, lattice) -> None:
        self.N, self.d, self.w = N, d, float(w)
        self.lattice = lattice
        self.lattice.init(np.asarray(features, dtype=np.float32).reshape((N, d)))

        all_ones = np.ones((N, 1), dtype=np.float32) # [N, 1]
        norm = self.lattice.compute(all_ones)
        self.norm = (1. / (norm + 1e-20)).astype(np.float32) # [N, 1]

    def apply(self, out_values: np.ndarray, in_values: np.ndarray, tmp: np.ndarray, value_size: int) -> None:
        """
        Add this term's contribution to `out_values`, in place.

        Args:
            out_values: energy accumulator, N x value_size elements.
            in_values: current distribution, N x value_size elements.
            tmp: scratch, N x value_size elements, overwritten.
            value_size: number of labels.
        """
        out = out_values.reshape((self.N, value_size))
        tmp = tmp.reshape((self.N, value_size))

        tmp[...] = self.lattice.compute(in_values.reshape((self.N, value_size)))
        out += self.w * self.norm * tmp
