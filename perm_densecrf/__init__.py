"""
Dense CRF mean-field inference with permutohedral lattice Potts potentials.
"""

from .model_src.densecrf_config import DenseCRFConfig
from .model_src.densecrf_layer import DenseCRFLayer
from .model_src.errors import (
    ConfigurationError,
    DenseCRFError,
    PreconditionError,
    UnsupportedOperationError,
)

__version__ = "0.1.0"

__all__ = [
    "DenseCRFConfig",
    "DenseCRFLayer",
    "DenseCRFError",
    "ConfigurationError",
    "PreconditionError",
    "UnsupportedOperationError",
]
