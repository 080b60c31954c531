"""
Exception hierarchy for convolutional analysis operator learning.

All errors are detected eagerly and are never retried: rerunning with the same
inputs reproduces the same failure.
"""

from typing import Optional


class CAOLError(Exception):
    """Base class for all errors raised by the ``caol`` package."""


class ConfigurationError(CAOLError, ValueError):
    """Initial filter bank is not scaled-orthonormal, or run parameters are invalid."""


class ShapeError(CAOLError, ValueError):
    """Signals and filters have incompatible shapes or element types."""


class NumericalFailure(CAOLError, ArithmeticError):
    """
    The SVD in a filter-update step failed to converge.

    Attributes:
        iteration: 1-based iteration index at which the failure happened
            (None when the update was called outside a run)
    """

    def __init__(self, message: str, iteration: Optional[int] = None):
        if iteration is not None:
            message = f"{message} (iteration {iteration})"
        super().__init__(message)
        self.iteration = iteration
