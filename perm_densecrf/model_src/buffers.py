"""
Scratch storage of the mean-field iteration, sized to the largest image seen so far.
"""

import logging

import numpy as np

from .errors import PreconditionError

logger = logging.getLogger(__name__)


class BufferAllocator:
    """
    Owns `unary`, `current`, `next` and `tmp`, flat float32 arrays of `unary_element` elements each.
    Capacity only grows, and only through `reserve()`.
    """
    def __init__(self) -> None:
        self.unary_element = 0 # of (pixel, label) pairs
        self.map_element = 0 # of pixels
        self.num_allocations = 0

        self.unary = None
        self.current = None
        self.next = None
        self.tmp = None

    def reserve(self, num_pixel: int, num_labels: int) -> bool:
        """
        Grow all four buffers to `num_pixel x num_labels` elements if they are smaller.

        Returns:
            whether a reallocation happened.
        """
        cur_unary_element = num_pixel * num_labels
        if self.unary_element >= cur_unary_element:
            return False

        self.unary_element = cur_unary_element
        self.map_element = num_pixel

        # - Allocate largest possible size for data arrays
        self.release(keep_capacity=True)
        self.unary = np.empty((self.unary_element, ), dtype=np.float32)
        self.current = np.empty((self.unary_element, ), dtype=np.float32)
        self.next = np.empty((self.unary_element, ), dtype=np.float32)
        self.tmp = np.empty((self.unary_element, ), dtype=np.float32)
        self.num_allocations += 1

        logger.info("Allocated CRF buffers, %d pixels x %d labels.", num_pixel, num_labels)
        return True

    def release(self, keep_capacity: bool=False) -> None:
        self.unary = self.current = self.next = self.tmp = None
        if not keep_capacity:
            self.unary_element = 0
            self.map_element = 0

    def check_capacity(self, num_pixel: int, num_labels: int) -> None:
        if num_pixel > self.map_element or num_pixel * num_labels > self.unary_element:
            raise PreconditionError(
                "The pre-allocated memory is not enough! {} pixels x {} labels requested, {} pixels x {} elements reserved.".format(
                    num_pixel, num_labels, self.map_element, self.unary_element))

    def views(self, num_pixel: int, num_labels: int) -> tuple:
        """ [num_pixel, num_labels] views of (unary, current, next, tmp) """
        self.check_capacity(num_pixel, num_labels)
        size = num_pixel * num_labels
        return tuple(
            buf[:size].reshape((num_pixel, num_labels)) for buf in (self.unary, self.current, self.next, self.tmp)
        )
