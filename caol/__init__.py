from .__about__ import __version__

from .exceptions import CAOLError, ConfigurationError, ShapeError, NumericalFailure
from .config import LearnerConfig, load_config, make_metadata

from .core import (
    FilterBank, pack_filters, natural_views, is_scaled_orthonormal, orthonormality_error,
    filter_shape, pad_signal, pad_signals,
    sos, sosdiff, normdiff, relative_change,
)
from .penalties import hard, L0Penalty
from .sparse_coder import ConvolutionalSparseCoder
from .components import polar_factor, ProcrustesUpdater, PolarUpdater
from .convergence import ConvergenceMonitor
from .learners import (
    CAOLIterable, CAOLState, FilterHaltIterable, TraceRecorder, CAOLResult,
    learn_filters, learn_filters_from_bank, learn_filters_unrolled,
    ConvolutionalAnalysisLearner,
)

__all__ = [
    "__version__",

    # Errors and configuration
    "CAOLError", "ConfigurationError", "ShapeError", "NumericalFailure",
    "LearnerConfig", "load_config", "make_metadata",

    # Filter bank, padding, numeric helpers
    "FilterBank", "pack_filters", "natural_views", "is_scaled_orthonormal", "orthonormality_error",
    "filter_shape", "pad_signal", "pad_signals",
    "sos", "sosdiff", "normdiff", "relative_change",

    # Coding and filter update
    "hard", "L0Penalty", "ConvolutionalSparseCoder",
    "polar_factor", "ProcrustesUpdater", "PolarUpdater",

    # Iteration
    "ConvergenceMonitor",
    "CAOLIterable", "CAOLState", "FilterHaltIterable", "TraceRecorder", "CAOLResult",
    "learn_filters", "learn_filters_from_bank", "learn_filters_unrolled",
    "ConvolutionalAnalysisLearner",
]
