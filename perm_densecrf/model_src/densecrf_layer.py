# -*- coding: utf-8 -*-

"""
Dense CRF layer, inference only.
channel-first (label-major) input required.

Inputs per image:
    scores: raw classifier output, [M, pad_height, pad_width].
    height, width: effective size (or `data_dims` for a batch).
    image: optional color, [3, pad_height, pad_width], already mean-centered by the caller.

Outputs per image:
    top_inf: marginals, [M, pad_height, pad_width], zeros outside the effective region.
    top_map: MAP labels, [1, pad_height, pad_width], zeros outside the effective region.
"""

import logging

import numpy as np

from .densecrf_config import DenseCRFConfig
from .errors import PreconditionError, UnsupportedOperationError
from .kernel_factory import PairwiseKernelFactory
from .map_decoder import compute_map
from .mean_field import MeanFieldEngine
from .pairwise import LatticeFactory

logger = logging.getLogger(__name__)

NUM_COLOR_CHANNELS = 3


class DenseCRFLayer:
    """ Dense CRF layer """
    def __init__(self, config: DenseCRFConfig=None) -> None:
        # ==> Initialize parameters
        self.config = config or DenseCRFConfig()
        # Again, in case the config was modified after construction
        self.config.validate()

        # ==> Initialize pairwise factory and mean-field engine
        self.lattice_factory = LatticeFactory(self.config.lattice_backend)
        self.kernel_factory = PairwiseKernelFactory(self.config, self.lattice_factory)
        self.engine = MeanFieldEngine(self.config.max_iter)

        self.num_labels = None # M, fixed by the first `reshape()`
        self.pad_height, self.pad_width = 0, 0

    @property
    def has_color(self) -> bool:
        """ Whether color kernels apply, i.e., color input is expected for every image """
        return self.config.has_image

    def reshape(self, num: int, num_labels: int, pad_height: int, pad_width: int) -> tuple:
        """
        Make sure the buffers hold `pad_height x pad_width x num_labels` elements.

        Returns:
            shapes of top_inf and top_map, ([num, M, H, W], [num, 1, H, W]).
        """
        if self.num_labels is not None and num_labels != self.num_labels:
            raise PreconditionError("The number of labels is fixed to {}, got {}.".format(self.num_labels, num_labels))
        if num_labels < 1 or pad_height < 1 or pad_width < 1:
            raise PreconditionError("Invalid shape, {} labels of {} x {}.".format(num_labels, pad_height, pad_width))

        self.num_labels = num_labels
        self.pad_height, self.pad_width = pad_height, pad_width

        # - Allocate largest possible size for data arrays
        self.engine.reserve(pad_height * pad_width, num_labels)

        return (num, num_labels, pad_height, pad_width), (num, 1, pad_height, pad_width)

    def check_image(self, image: np.ndarray, pad_height: int, pad_width: int) -> None:
        if image is None:
            if self.has_color:
                raise PreconditionError("Color input is required by the bilateral kernels but not given.")
            return

        if image.ndim != 3 or image.shape[0] != NUM_COLOR_CHANNELS:
            raise PreconditionError("Can only support color images for now, got image of shape {}.".format(image.shape))
        if image.shape[1:] != (pad_height, pad_width):
            raise PreconditionError("Image of shape {} should have the same height and width as scores, ({}, {}).".format(
                image.shape, pad_height, pad_width))

    def forward_image(self, scores: np.ndarray, height: int, width: int, image: np.ndarray=None, top_inf: np.ndarray=None, top_map: np.ndarray=None) -> tuple:
        """
        Run unary setup, pairwise setup, mean-field inference and MAP decoding for one image.

        Args:
            scores: [M, pad_height, pad_width].
            height, width: effective size.
            image: optional color, [3, pad_height, pad_width].
            top_inf, top_map: optional outputs, allocated if not given.

        Returns:
            top_inf: [M, pad_height, pad_width], float32.
            top_map: [1, pad_height, pad_width], float32.
        """
        scores = np.asarray(scores, dtype=np.float32)
        if scores.ndim != 3:
            raise PreconditionError("Scores should be of shape [M, H, W], got {}.".format(scores.shape))
        num_labels, pad_height, pad_width = scores.shape

        if self.num_labels is not None and num_labels != self.num_labels:
            raise PreconditionError("The number of labels is fixed to {}, got {}.".format(self.num_labels, num_labels))
        if not (0 < height <= pad_height and 0 < width <= pad_width):
            raise PreconditionError("Effective size ({}, {}) should be within padded size ({}, {}).".format(height, width, pad_height, pad_width))

        if image is not None:
            image = np.asarray(image, dtype=np.float32)
        self.check_image(image, pad_height, pad_width)

        # - Check if the pre-allocated memory is enough
        self.engine.buffers.check_capacity(height * width, num_labels)

        if top_inf is None:
            top_inf = np.zeros((num_labels, pad_height, pad_width), dtype=np.float32)
        if top_map is None:
            top_map = np.zeros((1, pad_height, pad_width), dtype=np.float32)

        logger.debug("Dense CRF on %d x %d (padded %d x %d), %d labels, %d kernels.", height, width, pad_height, pad_width, num_labels, self.config.num_kernels)

        self.engine.setup_unary_energy(scores, height, width)
        self.engine.set_pairwise(self.kernel_factory.create(height, width, image))
        try:
            current = self.engine.run_inference()
            compute_map(current, height, width, top_inf, top_map)
        finally:
            self.engine.clear_pairwise()

        return top_inf, top_map

    def forward(self, scores: np.ndarray, data_dims: np.ndarray, images: np.ndarray=None) -> tuple:
        """
        Process a batch, one image at a time.

        Args:
            scores: [num, M, pad_height, pad_width].
            data_dims: [num, 2], (height, width) of each image before cropping / padding.
            images: optional, [num, 3, pad_height, pad_width].

        Returns:
            top_inf: [num, M, pad_height, pad_width].
            top_map: [num, 1, pad_height, pad_width].
        """
        scores = np.asarray(scores, dtype=np.float32)
        data_dims = np.asarray(data_dims).reshape((-1, 2))
        if scores.ndim != 4:
            raise PreconditionError("Scores should be of shape [num, M, H, W], got {}.".format(scores.shape))

        num, num_labels, pad_height, pad_width = scores.shape
        if data_dims.shape[0] != num:
            raise PreconditionError("The DCNN output and data dimension should have the same number.")
        if images is not None and len(images) != num:
            raise PreconditionError("The DCNN output and images should have the same number.")
        if images is None and self.has_color:
            raise PreconditionError("Color input is required by the bilateral kernels but not given.")

        inf_shape, map_shape = self.reshape(num, num_labels, pad_height, pad_width)
        top_inf = np.zeros(inf_shape, dtype=np.float32)
        top_map = np.zeros(map_shape, dtype=np.float32)

        for n in range(num):
            # - A cropped image uses the padded size, a padded one its real size
            height = min(int(data_dims[n, 0]), pad_height)
            width = min(int(data_dims[n, 1]), pad_width)
            image = None if images is None else images[n]
            self.forward_image(scores[n], height, width, image, top_inf[n], top_map[n])

        return top_inf, top_map

    def __call__(self, scores: np.ndarray, data_dims: np.ndarray, images: np.ndarray=None) -> tuple:
        return self.forward(scores, data_dims, images)

    def backward(self, *args, **kwargs) -> None:
        raise UnsupportedOperationError("Dense CRF layer is inference-only, backward is not implemented.")

    def release(self) -> None:
        self.engine.clear_pairwise()
        self.engine.buffers.release()
