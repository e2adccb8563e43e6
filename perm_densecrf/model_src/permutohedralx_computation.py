# -*- coding: utf-8 -*-

"""
- TF implementation of permutohedral lattice, channel-last as well.
- `tf.float32` and `tf.int32` as default float and integer types, `tf.int64` for lattice keys.
- Constants from `PermutohedralXInitializer`, shared with the NP lattice.
- Sorted unique keys and `tf.searchsorted` instead of `tf.lookup.StaticHashTable`, so `init()` is a single `tf.function`.
- Computation (`PermutohedralXComputation`) is stateless and traced once per `d`; state lives in `PermutohedralXTF`.
"""

import logging

import numpy as np
import tensorflow as tf

from .permutohedralx_initializer import PermutohedralXInitializer

logger = logging.getLogger(__name__)


class PermutohedralXComputation(tf.Module):
    def __init__(self, d: int, name: str=None) -> None:
        super().__init__(name=name)
        initializer = PermutohedralXInitializer(d)
        self.d = initializer.d

        self.canonical = tf.constant(initializer.canonical, dtype=tf.int64) # [d + 1, d + 1]
        self.E = tf.constant(initializer.E, dtype=tf.float32) # [d + 1, d]
        self.scale_factor = tf.constant(initializer.scale_factor, dtype=tf.float32) # [d, ]
        self.diff_valid = tf.constant(initializer.diff_valid, dtype=tf.int32) # [d + 1, d + 1]
        self.blur_shift = tf.constant(initializer.blur_shift, dtype=tf.int64) # [d + 1, d]
        self.alpha = tf.constant(initializer.alpha, dtype=tf.float32) # []

    @tf.function(input_signature=[
        tf.TensorSpec(shape=[None, None], dtype=tf.float32), # of features, [N, d], float32
    ])
    def init(self, features: tf.Tensor):
        d = self.d

        # - Elevate the feature (y = Ep, see p.5 in [Adams et al. 2010])
        cf = features * self.scale_factor[tf.newaxis, ...]  # [N, d]
        elevated = tf.matmul(cf, self.E, transpose_b=True)  # [N, d + 1]

        # - Find the closest 0-colored simplex through rounding
        down_factor = 1.0 / float(d + 1)
        up_factor = float(d + 1)
        v = down_factor * elevated  # [N, d + 1]
        up = tf.math.ceil(v) * up_factor  # [N, d + 1]
        down = tf.math.floor(v) * up_factor  # [N, d + 1]
        rem0 = tf.where(up - elevated < elevated - down, up, down)  # [N, d + 1]
        _sum = tf.math.floordiv(tf.reduce_sum(tf.cast(rem0, dtype=tf.int32), axis=1), d + 1)  # [N, ]

        # - Find the simplex we are in and store it in rank
        diff = elevated - rem0  # [N, d + 1]
        diff_i = diff[..., tf.newaxis]  # [N, d + 1, 1]
        diff_j = diff[..., tf.newaxis, :]  # [N, 1, d + 1]
        di_lt_dj = tf.cast(diff_i < diff_j, dtype=tf.int32)  # [N, d + 1, d + 1]
        di_geq_dj = tf.cast(diff_i >= diff_j, dtype=tf.int32)  # [N, d + 1, d + 1]
        rank = tf.reduce_sum(di_lt_dj * self.diff_valid[tf.newaxis, ...], axis=2)  # [N, d + 1]
        rank = rank + tf.reduce_sum(di_geq_dj * self.diff_valid[tf.newaxis, ...], axis=1)  # [N, d + 1]

        # - If the point doesn't lie on the plane (sum != 0) bring it back
        rank = rank + _sum[..., tf.newaxis]  # [N, d + 1]
        ls_zero = rank < 0  # [N, d + 1]
        gt_d = rank > d  # [N, d + 1]
        rank = tf.where(ls_zero, rank + (d + 1), rank)
        rem0 = tf.where(ls_zero, rem0 + up_factor, rem0)
        rank = tf.where(gt_d, rank - (d + 1), rank)
        rem0 = tf.where(gt_d, rem0 - up_factor, rem0)

        # - Compute the barycentric coordinates (p.10 in [Adams et al. 2010])
        vs = (elevated - rem0) * down_factor  # [N, d + 1]
        scatter = tf.one_hot(d - rank, d + 2, dtype=tf.float32) - tf.one_hot(d - rank + 1, d + 2, dtype=tf.float32)  # [N, d + 1, d + 2]
        barycentric = tf.reduce_sum(vs[..., tf.newaxis] * scatter, axis=1)  # [N, d + 2]
        barycentric = tf.concat([
            barycentric[..., :1] + 1.0 + barycentric[..., d + 1:],
            barycentric[..., 1:d + 1],
        ], axis=-1)  # [N, d + 1]

        # - Compute all vertices, one per remainder
        canonical_ext = tf.gather(params=tf.transpose(self.canonical, perm=[1, 0]), indices=rank)  # [N, d + 1, d + 1]
        canonical_ext = tf.transpose(canonical_ext, perm=[0, 2, 1])  # [N, d + 1, d + 1]

        # - Get keys, shifted so that every neighbor key stays non-negative and in range
        keys = tf.cast(rem0[..., tf.newaxis, :d], dtype=tf.int64) + canonical_ext[..., :d]  # [N, d + 1, d]
        keys = tf.reshape(keys, shape=[-1, d])  # flatten, [N x (d + 1), d]
        keys = keys - (tf.reduce_min(keys, axis=0) - (d + 1))[tf.newaxis, ...]
        ranges_key = tf.reduce_max(keys, axis=0) + (d + 2) # [d, ]

        # - Get 1D coordinates
        dims_key = tf.math.cumprod(ranges_key, exclusive=True, reverse=True) # [d, ], row-major
        coords_1d = tf.reduce_sum(keys * dims_key[tf.newaxis, ...], axis=1) # [N x (d + 1), ]

        coords_1d_uniq, _ = tf.unique(coords_1d)
        coords_1d_uniq = tf.sort(coords_1d_uniq) # [M, ]
        offsets = tf.searchsorted(coords_1d_uniq, coords_1d, out_type=tf.int32) # [N x (d + 1), ]
        M = tf.shape(coords_1d_uniq)[0]

        # - Neighbors of each lattice point along each of the d + 1 axes
        shifts = tf.reduce_sum(self.blur_shift * dims_key[tf.newaxis, ...], axis=1) # [d + 1, ]
        dims_sum = tf.reduce_sum(dims_key)
        n1s = coords_1d_uniq[:, tf.newaxis] - dims_sum + shifts[tf.newaxis, ...] # [M, d + 1]
        n2s = coords_1d_uniq[:, tf.newaxis] + dims_sum - shifts[tf.newaxis, ...] # [M, d + 1]
        ns = tf.reshape(tf.stack([n1s, n2s], axis=0), shape=[-1]) # [2 x M x (d + 1), ]

        idx = tf.minimum(tf.searchsorted(coords_1d_uniq, ns, out_type=tf.int32), M - 1)
        found = tf.equal(tf.gather(coords_1d_uniq, idx), ns)

        # - Shift all values by 1 such that -1 -> 0 (used for blurring)
        blur_neighbors = tf.where(found, idx + 1, tf.zeros_like(idx))
        blur_neighbors = tf.reshape(blur_neighbors, shape=[2, M, d + 1]) # [2, M, d + 1]
        os = offsets + 1 # [N x (d + 1), ]
        ws = tf.reshape(barycentric, shape=[-1, ]) # [N x (d + 1), ]

        return os, ws, blur_neighbors, M

    @tf.function(input_signature=[
        tf.TensorSpec(shape=[None, None], dtype=tf.float32), # of inp, flatten, [N, value_size], float32
        tf.TensorSpec(shape=[None, ], dtype=tf.int32), # of os, [N x (d + 1), ], int32
        tf.TensorSpec(shape=[None, ], dtype=tf.float32), # of ws, [N x (d + 1), ], float32
        tf.TensorSpec(shape=[2, None, None], dtype=tf.int32), # of blur_neighbors, [2, M, (d + 1)], int32
        tf.TensorSpec(shape=[], dtype=tf.int32), # of M, [], int32
        tf.TensorSpec(shape=[], dtype=tf.bool), # of reverse, [], bool
    ])
    def compute(self, inp: tf.Tensor, os: tf.Tensor, ws: tf.Tensor, blur_neighbors: tf.Tensor, M: tf.Tensor, reverse: tf.Tensor) -> tf.Tensor:
        """
        Compute sequentially.

        Args:
            inp: entity to be filtered, [size (a.k.a. N), value_size], float32, channel-last.
            os: offset, [N x (d + 1), ], int32.
            ws: barycentric weight, [N x (d + 1), ], float32.
            blur_neighbors: blur neighbors, [2, M, (d + 1)], int32
            M: the number of lattice points, [], int32
            reverse: blur the lattice axes from d down to 0, the transposed filter. The Potts terms only blur forward.

        Returns:
            out: [size, value_size]
        """
        d = self.d
        value_size = tf.shape(inp)[1]

        # ->> Splat
        inp_ext = tf.repeat(inp, repeats=d + 1, axis=0) # [N x (d + 1), value_size]
        values = tf.math.unsorted_segment_sum(inp_ext * ws[..., tf.newaxis], os, num_segments=M + 2) # [M + 2, value_size]

        # ->> Blur
        for k in range(d + 1):
            j = tf.where(reverse, d - k, k)
            n1_vals = tf.gather(values, blur_neighbors[0, :, j])  # [M, value_size]
            n2_vals = tf.gather(values, blur_neighbors[1, :, j])  # [M, value_size]

            values = tf.concat([
                values[:1],
                values[1:M + 1] + 0.5 * (n1_vals + n2_vals),
                values[M + 1:],
            ], axis=0)

        # ->> Slice
        out = ws[..., tf.newaxis] * tf.gather(values, os) * self.alpha
        out = tf.reshape(out, shape=[-1, d + 1, value_size])
        out = tf.reduce_sum(out, axis=1)

        return out


class PermutohedralXTF:
    """
    Stateful lattice over a shared `PermutohedralXComputation`.
    """
    def __init__(self, computation: PermutohedralXComputation) -> None:
        self.computation = computation
        self.d = computation.d
        self.N = 0

        self.os = None # [N x (d + 1), ], int32
        self.ws = None # [N x (d + 1), ], float32
        self.blur_neighbors = None # [2, M, d + 1], int32
        self.M = None # [], int32

    def init(self, features: np.ndarray) -> None:
        features = np.asarray(features, dtype=np.float32)
        if features.ndim != 2 or features.shape[1] != self.d:
            raise ValueError("Features should be of shape (N, {}), got {}.".format(self.d, features.shape))

        self.N = features.shape[0]
        self.os, self.ws, self.blur_neighbors, self.M = self.computation.init(tf.constant(features))
        logger.debug("TF lattice initialized, N = %d, d = %d, M = %d.", self.N, self.d, int(self.M))

    def compute(self, inp: np.ndarray, reverse: bool=False) -> np.ndarray:
        """ See `PermutohedralXComputation.compute()`, `inp` is [N, value_size]. """
        if self.os is None:
            raise RuntimeError("Lattice not initialized, call `init()` first.")

        inp = np.asarray(inp, dtype=np.float32).reshape((self.N, -1))
        out = self.computation.compute(
            inp=tf.constant(inp),
            os=self.os,
            ws=self.ws,
            blur_neighbors=self.blur_neighbors,
            M=self.M,
            reverse=tf.constant(reverse, dtype=tf.bool),
        )
        return out.numpy()
