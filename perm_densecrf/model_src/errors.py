"""
Errors raised by the dense CRF layer. None of them is recovered internally.
"""


class DenseCRFError(Exception):
    """ Base class of all dense CRF errors """


class ConfigurationError(DenseCRFError, ValueError):
    """ Invalid kernel configuration, raised at construction time """


class PreconditionError(DenseCRFError, ValueError):
    """ Invalid call-time input: capacity, color channels, shapes """


class UnsupportedOperationError(DenseCRFError, NotImplementedError):
    """ The layer is inference-only, gradients are never computed """
