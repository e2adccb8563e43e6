"""
MAP decoding of the approximate marginals into padded outputs.
"""

import numpy as np

from .errors import PreconditionError


def compute_map(current: np.ndarray, height: int, width: int, top_inf: np.ndarray, top_map: np.ndarray) -> None:
    """
    Write marginals and MAP labels of the effective region, zeros elsewhere.

    Args:
        current: [height x width, M], pixel-major marginals.
        height, width: effective size.
        top_inf: output, [M, pad_height, pad_width], label-major planes.
        top_map: output, [1, pad_height, pad_width] or [pad_height, pad_width].

    Ties go to the lowest label index.
    """
    num_labels = current.shape[-1]
    top_channels, top_height, top_width = top_inf.shape

    if top_channels != num_labels:
        raise PreconditionError("top_inf has {} channels, expected {} labels.".format(top_channels, num_labels))
    if top_map.shape[-2:] != (top_height, top_width) or top_map.size != top_height * top_width:
        raise PreconditionError("top_map of shape {} does not match top_inf of shape {}.".format(top_map.shape, top_inf.shape))
    if height > top_height or width > top_width:
        raise PreconditionError("Effective size ({}, {}) exceeds padded size ({}, {}).".format(height, width, top_height, top_width))

    top_inf[...] = 0
    top_map[...] = 0

    q = current.reshape((height, width, num_labels)) # [h, w, M]
    top_inf[:, :height, :width] = np.transpose(q, (2, 0, 1))
    # argmax keeps the first maximum
    top_map[..., :height, :width] = np.argmax(q, axis=-1)
