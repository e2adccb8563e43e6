"""
- Permutohedral lattice implementation in NP, channel-last as well.
- `np.float32` as default float type, `np.int64` for lattice keys.
- Reference backend of the pairwise potentials, selected by `lattice_backend="np"`.
"""

import logging

import numpy as np

from .permutohedralx_initializer import PermutohedralXInitializer

logger = logging.getLogger(__name__)


class PermutohedralXNP:
    def __init__(self, d: int) -> None:
        self.initializer = PermutohedralXInitializer(d)
        self.N, self.M, self.d = 0, 0, int(d)

        self.blur_neighbors = None # (2, M, d + 1), 0 for a missing neighbor
        self.os = None # (N * (d + 1), ), start with 1, end with M
        self.ws = None # (N * (d + 1), )

    def init(self, features: np.ndarray) -> None:
        features = np.asarray(features, dtype=np.float32)
        if features.ndim != 2 or features.shape[1] != self.d:
            raise ValueError("Features should be of shape (N, {}), got {}.".format(self.d, features.shape))

        init = self.initializer
        N, d = features.shape[0], self.d
        self.N = N

        # Elevate the feature (y = Ep, see p.5 in [Adams et al. 2010])
        cf = features * init.scale_factor[np.newaxis, ...]  # (N, d)
        elevated = np.matmul(cf, init.E.T)  # (N, d + 1)

        # Find the closest 0-colored simplex through rounding
        down_factor = np.float32(1.0 / (d + 1))
        up_factor = np.float32(d + 1)
        v = down_factor * elevated  # (N, d + 1)
        up = np.ceil(v) * up_factor  # (N, d + 1)
        down = np.floor(v) * up_factor  # (N, d + 1)
        rem0 = np.where(up - elevated < elevated - down, up, down).astype(np.float32)  # (N, d + 1)
        _sum = rem0.astype(np.int64).sum(axis=-1) // (d + 1) # (N, ), exact since rem0 are multiples of d + 1

        # Find the simplex we are in and store it in rank
        diff = elevated - rem0  # (N, d + 1)
        diff_i = diff[..., np.newaxis]  # (N, d + 1, 1)
        diff_j = diff[..., np.newaxis, :]  # (N, 1, d + 1)
        rank = ((diff_i < diff_j) * init.diff_valid[np.newaxis, ...]).sum(axis=-1)  # (N, d + 1)
        rank += ((diff_i >= diff_j) * init.diff_valid[np.newaxis, ...]).sum(axis=-2)  # (N, d + 1)

        # If the point doesn't lie on the plane (sum != 0) bring it back
        rank += _sum[..., np.newaxis]  # (N, d + 1)
        ls_zero = rank < 0  # (N, d + 1)
        gt_d = rank > d  # (N, d + 1)
        rank[ls_zero] += (d + 1)
        rem0[ls_zero] += (d + 1)
        rank[gt_d] -= (d + 1)
        rem0[gt_d] -= (d + 1)

        # Compute the barycentric coordinates (p.10 in [Adams et al. 2010])
        barycentrics = np.zeros((N, d + 2), dtype=np.float32) # (N, d + 2)
        vs = (elevated - rem0) * down_factor # (N, d + 1)
        rows = np.arange(N)[..., np.newaxis] # (N, 1)
        np.add.at(barycentrics, (rows, d - rank), vs)
        np.add.at(barycentrics, (rows, d - rank + 1), -vs)
        barycentrics[..., 0] += (1. + barycentrics[..., d + 1]) # (N, d + 2)

        # Compute all vertices, one per remainder
        canonical_ext = init.canonical.T[rank] # (N, d + 1, d + 1)
        canonical_ext = np.transpose(canonical_ext, axes=(0, 2, 1)) # (N, d + 1, d + 1)

        # Keys (coordinates), shifted so that every neighbor key stays non-negative and in range
        keys = rem0[..., np.newaxis, :d].astype(np.int64) + canonical_ext[..., :d] # (N, d + 1, d)
        keys = keys.reshape((-1, d)) # flatten, (N * (d + 1), d)
        keys -= keys.min(axis=0)[np.newaxis, ...] - (d + 1)
        lens_key = keys.max(axis=0) + (d + 2) # (d, )

        dims_key = np.ones((d, ), dtype=np.int64)
        dims_key[:d - 1] = lens_key[1:][::-1].cumprod()[::-1] # (d, ), row-major

        # 1D coordinates
        coords_1d = (keys * dims_key[np.newaxis, ...]).sum(axis=1) # (N * (d + 1), )
        coords_1d_uniq, offsets = np.unique(coords_1d, return_inverse=True) # sorted
        self.M = coords_1d_uniq.shape[0]

        # Neighbors of each lattice point along each of the d + 1 axes
        shifts = init.blur_shift @ dims_key # (d + 1, )
        n1s = coords_1d_uniq[:, np.newaxis] - dims_key.sum() + shifts[np.newaxis, ...] # (M, d + 1)
        n2s = coords_1d_uniq[:, np.newaxis] + dims_key.sum() - shifts[np.newaxis, ...] # (M, d + 1)
        ns = np.stack([n1s, n2s], axis=0) # (2, M, d + 1)

        idx = np.minimum(np.searchsorted(coords_1d_uniq, ns), self.M - 1) # (2, M, d + 1)
        found = coords_1d_uniq[idx] == ns

        # Shift all values by 1 such that -1 -> 0 (used for blurring)
        self.blur_neighbors = np.where(found, idx + 1, 0) # (2, M, d + 1)
        self.os = offsets.reshape(-1) + 1 # (N * (d + 1), )
        self.ws = barycentrics[..., :d + 1].reshape(-1) # (N * (d + 1), )

        logger.debug("NP lattice initialized, N = %d, d = %d, M = %d.", self.N, d, self.M)

    def compute(self, inp: np.ndarray, reverse: bool=False) -> np.ndarray:
        """
        Splat, blur and slice.

        Args:
            inp: entity to be filtered, (N, value_size), channel-last.
            reverse: blur the lattice axes from d down to 0, the transposed filter. The Potts terms only blur forward.

        Returns:
            out: (N, value_size), float32.
        """
        if self.os is None:
            raise RuntimeError("Lattice not initialized, call `init()` first.")

        inp = np.asarray(inp, dtype=np.float32).reshape((self.N, -1))
        d, value_size = self.d, inp.shape[1]
        values = np.zeros((self.M + 2, value_size), dtype=np.float32)

        # ->> Splat
        weighted = np.repeat(inp, repeats=d + 1, axis=0) * self.ws[..., np.newaxis] # (N * (d + 1), value_size)
        for v in range(value_size):
            values[..., v] = np.bincount(self.os, weights=weighted[..., v], minlength=self.M + 2)

        # ->> Blur
        j_range = range(d, -1, -1) if reverse else range(d + 1)

        for j in j_range:
            n1_vals = values[self.blur_neighbors[0, ..., j]]  # (M, value_size)
            n2_vals = values[self.blur_neighbors[1, ..., j]]  # (M, value_size)

            values[1:self.M + 1] += 0.5 * (n1_vals + n2_vals)

        # ->> Slice
        out = self.ws[..., np.newaxis] * values[self.os] * self.initializer.alpha # (N * (d + 1), value_size)
        out = out.reshape((self.N, d + 1, value_size)) # (N, d + 1, value_size)
        out = out.sum(axis=1) # (N, value_size)

        return out.astype(np.float32)
