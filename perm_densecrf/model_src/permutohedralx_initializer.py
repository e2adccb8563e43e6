"""
+ Constants of our permutohedral lattice x built with NumPy, shared by the TF and the NP lattices.
"""

import numpy as np


class PermutohedralXInitializer:
    def __init__(self, d: int) -> None:
        """
        Initialize this class.

        Args:
            d: the dimension of features, such as 5 for bilateral features, 2 for spatial features.

        Returns:
            None.
        """
        self.d = int(d)

        canonical = np.zeros((d + 1, d + 1), dtype=np.int64)  # (d + 1, d + 1)
        for i in range(d + 1):
            canonical[i, :d + 1 - i] = i
            canonical[i, d + 1 - i:] = i - (d + 1)
        self.canonical = canonical  # (d + 1, d + 1), row: remainder, column: rank

        E = np.vstack(
            [
                np.ones((d,), dtype=np.float32),
                np.diag(-np.arange(d, dtype=np.float32) - 2)
                + np.triu(np.ones((d, d), dtype=np.float32)),
            ]
        )  # (d + 1, d)
        self.E = E.astype(np.float32)  # (d + 1, d)

        # Expected standard deviation of our filter (p.6 in [Adams et al. 2010])
        inv_std_dev = np.sqrt(2.0 / 3.0) * np.float32(d + 1)

        # Compute the diagonal part of E (p.5 in [Adams et al 2010])
        scale_factor = (
            1.0 / np.sqrt((np.arange(d) + 2) * (np.arange(d) + 1)) * inv_std_dev
        )  # (d, )
        self.scale_factor = scale_factor.astype(np.float32)  # (d, )

        diff_valid = 1 - np.tril(np.ones((d + 1, d + 1), dtype=np.int32)) # (d + 1, d + 1), pairs i < j
        self.diff_valid = diff_valid # (d + 1, d + 1)

        # Alpha is a magic scaling constant (write Andrew if you really wanna understand this)
        self.alpha = np.float32(1.0 / (1.0 + np.power(2.0, -d)))

        # Neighbor along axis j: every key coordinate moves by -1, coordinate j by +d instead.
        # Row d is all zeros since the last coordinate is implied by the others.
        self.blur_shift = (d + 1) * np.eye(d + 1, d, dtype=np.int64)  # (d + 1, d)
