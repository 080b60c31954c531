"""
Core building blocks: signal padding, the filter bank and numeric helpers.
"""

from .padding import filter_shape, pad_signal, pad_signals
from .norms import sos, sosdiff, normdiff, relative_change
from .filter_bank import FilterBank, pack_filters, natural_views, is_scaled_orthonormal, orthonormality_error

__all__ = [
    "filter_shape", "pad_signal", "pad_signals",
    "sos", "sosdiff", "normdiff", "relative_change",
    "FilterBank", "pack_filters", "natural_views", "is_scaled_orthonormal", "orthonormality_error",
]
