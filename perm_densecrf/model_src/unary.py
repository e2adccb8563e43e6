"""
Unary energy from raw classifier scores.
"""

import numpy as np


def setup_unary_energy(unary: np.ndarray, scores: np.ndarray, height: int, width: int) -> np.ndarray:
    """
    Take softmax over labels and then -log, cropped to the effective size.

    Args:
        unary: output, [height x width, M] (or as many elements), pixel-major.
        scores: raw scores, [M, pad_height, pad_width], label-major planes.
        height, width: effective size, not larger than the padded size.

    Returns:
        unary: [height x width, M] view of the written energy.
    """
    num_labels = scores.shape[0]
    unary = unary.reshape((height * width, num_labels))

    # - Subtract the max to avoid numerical issues, compute the exp, and then normalize
    norm_data = np.array(scores, dtype=np.float32) # [M, pad_h, pad_w]
    scale_data = norm_data.max(axis=0) # [pad_h, pad_w]
    norm_data -= scale_data[np.newaxis, ...]
    np.exp(norm_data, out=norm_data)
    scale_data = norm_data.sum(axis=0) # [pad_h, pad_w]
    norm_data /= scale_data[np.newaxis, ...]

    # - Crop the effective size and take -log; an underflowed probability gives +inf
    with np.errstate(divide="ignore"):
        energy = -np.log(norm_data[:, :height, :width]) # [M, h, w]
    unary[...] = energy.reshape((num_labels, -1)).T # [h x w, M]

    return unary
