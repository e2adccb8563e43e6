"""
Builds the pairwise terms of one image: position kernels first, then position + color kernels.
"""

import logging

import numpy as np

from .densecrf_config import DenseCRFConfig
from .pairwise import LatticeFactory, PottsPotential

logger = logging.getLogger(__name__)

D_SPFEATS = 2 # x, y
D_BIFEATS = 5 # x, y, c0, c1, c2


def create_spatial_features(height: int, width: int, xy_std: float) -> np.ndarray:
    """ (x / xy_std, y / xy_std) per pixel, row-major, [height x width, 2] """
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32) # [h, w]
    spatial_feats = np.stack([xs / xy_std, ys / xy_std], axis=-1) # [h, w, 2]
    return spatial_feats.reshape((-1, D_SPFEATS)).astype(np.float32)


def create_bilateral_features(image: np.ndarray, height: int, width: int, xy_std: float, rgb_std: float) -> np.ndarray:
    """
    Create bilateral features.

    Args:
        image: [3, pad_height, pad_width], already normalized (e.g., mean-centered) by the caller.
        height, width: effective size, not larger than the padded size.
        xy_std, rgb_std: bandwidths.

    Returns:
        bilateral_feats: [height x width, 5], float32.
    """
    ys, xs = np.mgrid[0:height, 0:width].astype(np.float32) # [h, w]
    color_feats = np.transpose(image[:, :height, :width], (1, 2, 0)) / rgb_std # [h, w, 3]
    bilateral_feats = np.concatenate([xs[..., np.newaxis] / xy_std, ys[..., np.newaxis] / xy_std, color_feats], axis=-1) # [h, w, 5]
    return bilateral_feats.reshape((-1, D_BIFEATS)).astype(np.float32)


class PairwiseKernelFactory:
    def __init__(self, config: DenseCRFConfig, lattice_factory: LatticeFactory=None) -> None:
        self.config = config
        self.lattice_factory = lattice_factory or LatticeFactory(config.lattice_backend)

    def create(self, height: int, width: int, image: np.ndarray=None) -> list:
        """
        Args:
            height, width: effective size of the image.
            image: optional color, [3, pad_height, pad_width]; color kernels are skipped without it.

        Returns:
            pairwise: list of `PottsPotential`, owned by the caller for one image only.
        """
        N = height * width
        pairwise = []

        # - Add pairwise Gaussian
        for w, xy_std in zip(self.config.pos_w, self.config.pos_xy_std):
            features = create_spatial_features(height, width, xy_std)
            pairwise.append(PottsPotential(features, D_SPFEATS, N, w, self.lattice_factory(D_SPFEATS)))
            logger.debug("Gaussian term added, w = %s, xy_std = %s.", w, xy_std)

        if image is None:
            return pairwise

        # - Add pairwise bilateral
        for w, xy_std, rgb_std in zip(self.config.bi_w, self.config.bi_xy_std, self.config.bi_rgb_std):
            features = create_bilateral_features(image, height, width, xy_std, rgb_std)
            pairwise.append(PottsPotential(features, D_BIFEATS, N, w, self.lattice_factory(D_BIFEATS)))
            logger.debug("Bilateral term added, w = %s, xy_std = %s, rgb_std = %s.", w, xy_std, rgb_std)

        return pairwise
